"""Overwrite S3 objects while preserving their ACL, tags, metadata and headers."""

__version__ = "0.1.0"
__all__ = ["overwrite"]