# s3overwrite

Rewrite the content of an object in S3 without losing anything else about it.

Uploading a new body over an existing key normally resets the object's
access grants, tags, metadata and headers. `s3overwrite` downloads the object
to a temporary file, hands that file's path to your callback, and uploads
whatever file the callback returns with the original attributes carried over:

- `ContentType`, `CacheControl`, `ContentDisposition`, `ContentEncoding`,
  `ContentLanguage`, `WebsiteRedirectLocation` and `StorageClass`, when the
  downloaded object has them;
- user metadata, including any changes the callback makes to
  `info.metadata` (entries set to `None` are dropped);
- object tags, fetched only when the object reports a non-zero `TagCount`;
- either the object's ACL grants or a canned ACL of your choice.

Everything lives in the module `s3overwrite.overwrite`. It has no
dependencies beyond the standard library.

## The client

The functions take a client object with the methods described by the
`S3Client` protocol: `get_object`, `get_object_tagging`, `get_object_acl`,
`put_object` and `put_object_acl`. Each is called with keyword arguments in
the S3 API style (`Bucket=...`, `Key=...`, `Body=...`, `GrantRead=...`) and
returns a mapping response: `get_object` with a readable `Body` plus headers
such as `ContentType`, `Metadata` and `TagCount`; `get_object_tagging` with
`TagSet`; `get_object_acl` with `Grants`.

## Overwriting while keeping the ACL

```python
import json
import tempfile

from s3overwrite.overwrite import ObjectInfo, overwrite_s3_object


def reformat(info: ObjectInfo, src_path: str):
    if info.content_length and info.content_length > 10 * 1024 * 1024:
        return "", False  # too large: leave the object alone

    with open(src_path, encoding="utf-8") as src:
        data = json.load(src)

    if info.metadata is None:
        info.metadata = {}
    info.metadata["formatted"] = "true"

    with tempfile.NamedTemporaryFile("w", suffix=".json", delete=False) as out:
        json.dump(data, out, indent=2)
    return out.name, True  # upload this file, then delete it


overwrite_s3_object(client, "my-bucket", "data/config.json", reformat)
```

The callback receives an `ObjectInfo` (`bucket`, `key`, `content_type`,
`content_length`, `etag`, `last_modified`, `metadata`, `storage_class`,
`tag_count`, `version_id`) and the path of a temporary file holding the
object's current content. It returns a pair:

- the path of the file to upload, or an empty string or `None` to skip the
  upload entirely (nothing else is requested from the client then);
- whether that file should be removed once the upload is done. The file is
  removed even if the upload fails. The temporary download file is always
  removed and is never touched by this flag, so returning `src_path` itself
  is safe.

`overwrite_s3_object` reads the object's grants with `get_object_acl` and
sends the `READ`, `READ_ACP`, `WRITE_ACP` and `FULL_CONTROL` grants with the
upload. A plain upload cannot carry `WRITE`, so when any grant has it, a
follow-up `put_object_acl` call restores the full set of grants.

## Overwriting with a canned ACL

```python
from s3overwrite.overwrite import overwrite_s3_object_with_acl

overwrite_s3_object_with_acl(
    client, "my-bucket", "public/data.json", "public-read",
    lambda info, src_path: (src_path, False),
)
```

Tags, metadata and headers are preserved; the upload is sent with
`ACL=<the canned ACL given>` (`private`, `public-read`, `public-read-write`,
`authenticated-read`, ...) and the existing grants are not read.

## Errors

Any failure is raised as `OverwriteError`, with a message naming the step
that failed and the original exception chained as its cause:

- `failed to get object: ...`
- `failed to create temp file: ...`
- `failed to copy object content: ...`
- `callback error: ...`
- `failed to get object tagging: ...`
- `failed to get object ACL: ...`
- `failed to open overwriting file: ...`
- `failed to put object: ...`
- `failed to put object ACL: ...`

## Helpers

- `build_tagging_string(tags)` turns a tag set (mappings with `Key` and
  `Value`) into the URL-encoded `key=value&key=value` form used by the
  `Tagging` upload parameter; an empty tag set gives `""`.
- `build_grant_string(grants, permission)` builds the grantee list for one
  permission, using the grantee's `ID`, `URI` or `EmailAddress` in that order
  of preference, e.g. `id="123456",emailaddress="user@example.com"`; no
  matching grant gives `""`.
- `has_write_grant(grants)` tells whether any grant carries `WRITE`.
- `grant_parameters(grants, include_write)` gives the `GrantRead`,
  `GrantReadACP`, `GrantWriteACP`, `GrantFullControl` (and, with
  `include_write`, `GrantWrite`) keyword arguments for an upload or ACL
  call, leaving out those with no grantees.

## What it does not do

This is a library only: it has no command-line tool, does not build or
configure an S3 client for you, and works on one object per call. Listing
objects under a prefix and looping over them is left to the caller.