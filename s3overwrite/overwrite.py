"""Overwrite S3 objects in place while keeping their attributes, tags and ACL.

The client is any object with the methods of :class:`S3Client`, called with
keyword arguments and returning mapping responses in the usual S3 API shape
(``Body``, ``ContentType``, ``TagSet``, ``Grants`` and so on).
"""

from __future__ import annotations

import os
import shutil
import tempfile
from contextlib import contextmanager, suppress
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional, Protocol, Tuple, Union
from urllib.parse import quote_plus

__all__ = [
    "ObjectInfo",
    "S3Client",
    "OverwriteError",
    "OverwriteCallback",
    "overwrite_s3_object",
    "overwrite_s3_object_with_acl",
    "build_tagging_string",
    "build_grant_string",
    "has_write_grant",
    "grant_parameters",
]

_TEMP_PREFIX = "s3-overwrite-"
_TEMP_SUFFIX = ".tmp"

# Attributes copied from the downloaded object onto the new upload.
_PRESERVED_ATTRIBUTES = (
    "ContentType",
    "CacheControl",
    "ContentDisposition",
    "ContentEncoding",
    "ContentLanguage",
    "WebsiteRedirectLocation",
)

# Permission name -> request parameter, in the order they are built.
_GRANT_PARAMETERS = (
    ("READ", "GrantRead"),
    ("READ_ACP", "GrantReadACP"),
    ("WRITE_ACP", "GrantWriteACP"),
    ("FULL_CONTROL", "GrantFullControl"),
)

_GRANTEE_FIELDS = (("ID", "id"), ("URI", "uri"), ("EmailAddress", "emailaddress"))


class OverwriteError(Exception):
    """Raised when any step of an overwrite fails."""


@dataclass
class ObjectInfo:
    """Metadata of the object being overwritten, handed to the callback.

    Changes the callback makes to ``metadata`` are written with the new content.
    """

    bucket: str
    key: str
    content_type: Optional[str] = None
    content_length: Optional[int] = None
    etag: Optional[str] = None
    last_modified: Optional[datetime] = None
    metadata: Optional[dict[str, Optional[str]]] = None
    storage_class: str = ""
    tag_count: int = 0
    version_id: Optional[str] = None


class S3Client(Protocol):
    """The subset of an S3 client that overwriting needs."""

    def get_object(self, **kwargs: Any) -> Mapping[str, Any]:
        """Fetch an object; the response carries a readable ``Body``."""
        ...

    def get_object_tagging(self, **kwargs: Any) -> Mapping[str, Any]:
        """Fetch an object's tags as ``TagSet``."""
        ...

    def get_object_acl(self, **kwargs: Any) -> Mapping[str, Any]:
        """Fetch an object's ACL as ``Grants``."""
        ...

    def put_object(self, **kwargs: Any) -> Mapping[str, Any]:
        """Upload an object."""
        ...

    def put_object_acl(self, **kwargs: Any) -> Mapping[str, Any]:
        """Replace an object's ACL."""
        ...


PathArg = Union[str, "os.PathLike[str]", None]
OverwriteCallback = Callable[[ObjectInfo, str], Tuple[PathArg, bool]]
"""Receives the object info and the path of the downloaded copy.

Returns ``(path, auto_remove)``: the file to upload (empty or ``None`` skips
the overwrite) and whether that file is deleted afterwards. The downloaded
copy itself is never removed by ``auto_remove``; it is always cleaned up.
"""


def build_tagging_string(tags: Iterable[Mapping[str, Any]]) -> str:
    """Encode a tag set as a URL query string, as the Tagging header wants."""
    return "&".join(
        f"{quote_plus(tag.get('Key') or '', safe='')}={quote_plus(tag.get('Value') or '', safe='')}"
        for tag in tags
    )


def build_grant_string(grants: Iterable[Mapping[str, Any]], permission: str) -> str:
    """List the grantees holding ``permission`` in grant-header form."""
    grantees = []
    for grant in grants:
        if grant.get("Permission") != permission:
            continue
        grantee = grant.get("Grantee") or {}
        for field_name, label in _GRANTEE_FIELDS:
            value = grantee.get(field_name)
            if value is not None:
                grantees.append(f'{label}="{value}"')
                break
    return ",".join(grantees)


def has_write_grant(grants: Iterable[Mapping[str, Any]]) -> bool:
    """Tell whether any grant gives WRITE permission."""
    return any(grant.get("Permission") == "WRITE" for grant in grants)


def grant_parameters(grants: Iterable[Mapping[str, Any]], include_write: bool) -> dict[str, str]:
    """Build the Grant* request parameters reproducing ``grants``.

    WRITE is only included when ``include_write`` is true, since a plain
    upload cannot carry it.
    """
    grants = list(grants)
    params = {}
    for permission, name in _GRANT_PARAMETERS:
        value = build_grant_string(grants, permission)
        if value:
            params[name] = value
    if include_write:
        value = build_grant_string(grants, "WRITE")
        if value:
            params["GrantWrite"] = value
    return params


def overwrite_s3_object(
    client: S3Client, bucket: str, key: str, callback: OverwriteCallback
) -> None:
    """Overwrite an object, keeping its attributes, tags and existing ACL."""

    def upload(response: Mapping[str, Any], info: ObjectInfo, path: str, tagging: Optional[str]) -> None:
        acl = _request("failed to get object ACL", client.get_object_acl, Bucket=bucket, Key=key)
        grants = list(acl.get("Grants") or [])
        with _open_upload(path) as body:
            params = _put_parameters(bucket, key, body, response, info, tagging)
            params.update(grant_parameters(grants, include_write=False))
            _request("failed to put object", client.put_object, **params)
        if has_write_grant(grants):
            _request(
                "failed to put object ACL",
                client.put_object_acl,
                Bucket=bucket,
                Key=key,
                **grant_parameters(grants, include_write=True),
            )

    _overwrite(client, bucket, key, callback, upload)


def overwrite_s3_object_with_acl(
    client: S3Client, bucket: str, key: str, acl: str, callback: OverwriteCallback
) -> None:
    """Overwrite an object with a canned ACL, keeping its attributes and tags."""

    def upload(response: Mapping[str, Any], info: ObjectInfo, path: str, tagging: Optional[str]) -> None:
        with _open_upload(path) as body:
            params = _put_parameters(bucket, key, body, response, info, tagging)
            params["ACL"] = acl
            _request("failed to put object", client.put_object, **params)

    _overwrite(client, bucket, key, callback, upload)


def _overwrite(
    client: S3Client,
    bucket: str,
    key: str,
    callback: OverwriteCallback,
    upload: Callable[[Mapping[str, Any], ObjectInfo, str, Optional[str]], None],
) -> None:
    response = _request("failed to get object", client.get_object, Bucket=bucket, Key=key)
    body = response.get("Body")
    try:
        with _downloaded(body) as src_path:
            info = _object_info(bucket, key, response)
            try:
                target, auto_remove = callback(info, src_path)
            except Exception as exc:
                raise OverwriteError(f"callback error: {exc}") from exc
            if not target:
                return
            target = os.fspath(target)
            try:
                tagging = _existing_tagging(client, bucket, key, response)
                upload(response, info, target, tagging)
            finally:
                if auto_remove and target != src_path:
                    with suppress(OSError):
                        os.remove(target)
    finally:
        close = getattr(body, "close", None)
        if close is not None:
            with suppress(Exception):
                close()


def _request(message: str, method: Callable[..., Any], **kwargs: Any) -> Mapping[str, Any]:
    try:
        response = method(**kwargs)
    except Exception as exc:
        raise OverwriteError(f"{message}: {exc}") from exc
    return response or {}


@contextmanager
def _downloaded(body: Any) -> Iterator[str]:
    """Copy the object body to a temporary file and yield its path."""
    try:
        handle = tempfile.NamedTemporaryFile(
            prefix=_TEMP_PREFIX, suffix=_TEMP_SUFFIX, delete=False
        )
    except OSError as exc:
        raise OverwriteError(f"failed to create temp file: {exc}") from exc
    try:
        with handle:
            if body is not None:
                try:
                    shutil.copyfileobj(body, handle)
                except Exception as exc:
                    raise OverwriteError(f"failed to copy object content: {exc}") from exc
        yield handle.name
    finally:
        with suppress(OSError):
            os.remove(handle.name)


@contextmanager
def _open_upload(path: str) -> Iterator[Any]:
    try:
        handle = open(path, "rb")
    except OSError as exc:
        raise OverwriteError(f"failed to open overwriting file: {exc}") from exc
    with handle:
        yield handle


def _object_info(bucket: str, key: str, response: Mapping[str, Any]) -> ObjectInfo:
    metadata = response.get("Metadata")
    return ObjectInfo(
        bucket=bucket,
        key=key,
        content_type=response.get("ContentType"),
        content_length=response.get("ContentLength"),
        etag=response.get("ETag"),
        last_modified=response.get("LastModified"),
        metadata=dict(metadata) if metadata is not None else None,
        storage_class=str(response.get("StorageClass") or ""),
        tag_count=int(response.get("TagCount") or 0),
        version_id=response.get("VersionId"),
    )


def _existing_tagging(
    client: S3Client, bucket: str, key: str, response: Mapping[str, Any]
) -> Optional[str]:
    if not response.get("TagCount"):
        return None
    tags = _request(
        "failed to get object tagging", client.get_object_tagging, Bucket=bucket, Key=key
    )
    tag_set = list(tags.get("TagSet") or [])
    return build_tagging_string(tag_set) if tag_set else None


def _put_parameters(
    bucket: str,
    key: str,
    body: Any,
    response: Mapping[str, Any],
    info: ObjectInfo,
    tagging: Optional[str],
) -> dict[str, Any]:
    params: dict[str, Any] = {"Bucket": bucket, "Key": key, "Body": body}
    for name in _PRESERVED_ATTRIBUTES:
        value = response.get(name)
        if value is not None:
            params[name] = value
    storage_class = response.get("StorageClass")
    if storage_class:
        params["StorageClass"] = storage_class
    if info.metadata is not None:
        params["Metadata"] = {k: v for k, v in info.metadata.items() if v is not None}
    if tagging is not None:
        params["Tagging"] = tagging
    return params