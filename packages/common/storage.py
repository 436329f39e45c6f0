"""S3-compatible object storage helper for the campus backend.

Wraps the two public buckets (forum image attachments and module cover images)
with the three operations the application needs: upload, public URL, remove.
"""

import logging
from functools import lru_cache
from typing import Iterable
from uuid import uuid4
from .config import get_settings
from .errors import RemoteError, ValidationFailed
import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

log = logging.getLogger(__name__)


def _client():
    s = get_settings()
    return boto3.client(
        "s3",
        endpoint_url=s.STORAGE_ENDPOINT,
        aws_access_key_id=s.STORAGE_ACCESS_KEY,
        aws_secret_access_key=s.STORAGE_SECRET_KEY,
        config=BotoConfig(signature_version="s3v4"),
        region_name=s.STORAGE_REGION,
    )


def ensure_image(content_type: str | None, size: int, max_bytes: int) -> None:
    """Reject anything that is not an image or exceeds `max_bytes`.

    Raises:
        ValidationFailed: unsupported MIME type or oversized file.
    """
    if not (content_type or "").startswith("image/"):
        raise ValidationFailed("Only image files can be attached")
    if size > max_bytes:
        raise ValidationFailed(f"Images cannot be larger than {max_bytes // (1024 * 1024)}MB")


def object_key(prefix: str, filename: str) -> str:
    """Build a collision-free key `<prefix>/<random>.<ext>` keeping the extension."""
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "bin"
    return f"{prefix}/{uuid4().hex}.{ext}"


class ObjectStorage:
    """Thin client around boto3 S3 bound to a single public bucket."""

    def __init__(self, bucket: str, client=None) -> None:
        """Bind to `bucket`; a boto3 client is built from settings unless given."""
        self.bucket = bucket
        self.public_base = get_settings().STORAGE_PUBLIC_URL.rstrip("/")
        self._client = client or _client()

    def upload(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """Upload bytes to the bucket.

        Args:
            key: Object key/path inside the bucket.
            data: Raw bytes to upload.
            content_type: MIME type of the object.

        Returns:
            The object key, for use with `public_url` / `remove`.
        """
        self._client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
        return key

    def public_url(self, key: str) -> str:
        """Return the unauthenticated URL an object is served from."""
        return f"{self.public_base}/{self.bucket}/{key}"

    def remove(self, keys: Iterable[str]) -> None:
        """Delete objects; missing keys are ignored by the store."""
        objects = [{"Key": k} for k in keys]
        if objects:
            self._client.delete_objects(Bucket=self.bucket, Delete={"Objects": objects})


@lru_cache()
def forum_images() -> ObjectStorage:
    """FastAPI dependency: storage for forum attachments."""
    return ObjectStorage(get_settings().FORUM_IMAGES_BUCKET)


@lru_cache()
def module_covers() -> ObjectStorage:
    """FastAPI dependency: storage for module cover images."""
    return ObjectStorage(get_settings().MODULE_COVERS_BUCKET)


def store_object(storage: ObjectStorage, key: str, data: bytes, content_type: str, what: str = "file") -> str:
    """Upload one object and return its public URL. Blocking; run in a threadpool.

    Raises:
        RemoteError: the object store rejected the upload or was unreachable.
    """
    try:
        storage.upload(key, data, content_type)
    except (BotoCoreError, ClientError) as exc:
        log.warning("upload to %s failed: %s", storage.bucket, exc.__class__.__name__)
        raise RemoteError(f"Could not upload the {what}") from exc
    return storage.public_url(key)


def discard(storage: ObjectStorage, keys: Iterable[str]) -> None:
    """Remove objects left behind by a failed database write.

    Runs while another error is propagating, so storage failures are logged
    instead of replacing it.
    """
    try:
        storage.remove(keys)
    except (BotoCoreError, ClientError) as exc:
        log.warning("could not remove orphaned objects from %s: %s", storage.bucket, exc.__class__.__name__)
