"""Object storage uploads with deterministic, append-only key naming.

Two key schemes are used:

- Generated images: ``{resultId}-{unixMillis}-{index}.{ext}``, uploaded with
  overwrite disabled.  The millisecond timestamp plus the batch index keeps
  concurrent or repeated submissions for the same result from colliding.
- Moodboard images: ``{subcultureId}/{unixMillis}_{fileName}``, uploaded with
  overwrite enabled so admins can re-upload under a stable path.

Keys are derived from the wall clock.  That is collision-free at onboarding
traffic levels; a busier deployment would want a random suffix instead.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from pathlib import PurePosixPath
from urllib.parse import unquote

from tribeboard.core.errors import CollaboratorError, DeleteError, UploadError
from tribeboard.core.models import StoredObject
from tribeboard.core.supabase_client import ObjectStore
from tribeboard.core.urls import INTERNAL_STORAGE_BASE, extract_storage_path, normalize_public_url

logger = logging.getLogger(__name__)

EXTENSION_BY_MIME = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


def unix_millis(clock: Callable[[], float] = time.time) -> int:
    return int(clock() * 1000)


def generated_image_key(result_id: str, index: int, ext: str = "jpg", *, now_ms: int) -> str:
    """Build the storage key for image *index* of a generation batch."""
    return f"{result_id}-{now_ms}-{index}.{ext.lstrip('.')}"


def moodboard_image_key(owner_id: str, file_name: str, *, now_ms: int) -> str:
    """Build the storage key for a moodboard upload.

    Directory components in *file_name* are dropped so a client cannot
    place objects outside the owner's prefix.
    """
    base_name = PurePosixPath(file_name.replace("\\", "/")).name or "upload"
    return f"{owner_id}/{now_ms}_{base_name}"


class StorageUploader:
    """Writes bytes to object storage and hands back caller-facing URLs.

    Args:
        store: Object storage collaborator.
        public_base: Externally reachable base URL used to rewrite URLs
            built against ``internal_base``.
        internal_base: Internal storage host prefix.
        clock: Time source returning seconds since the epoch.
    """

    def __init__(
        self,
        store: ObjectStore,
        *,
        public_base: str | None = None,
        internal_base: str = INTERNAL_STORAGE_BASE,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.public_base = public_base
        self.internal_base = internal_base
        self.clock = clock

    def now_ms(self) -> int:
        return unix_millis(self.clock)

    async def upload(
        self,
        data: bytes,
        content_type: str,
        key: str,
        *,
        bucket: str,
        overwrite: bool = False,
        cache_control: str | None = None,
    ) -> StoredObject:
        """Upload *data* under *key* and return the stored object.

        Raises:
            UploadError: With the collaborator's message, if the write fails.
                No URL is produced for a failed write.
        """
        logger.info(f"Uploading {len(data)} bytes to {bucket}/{key}")
        try:
            stored_key = await self.store.put(
                bucket,
                key,
                data,
                content_type=content_type,
                upsert=overwrite,
                cache_control=cache_control,
            )
        except CollaboratorError as e:
            raise UploadError(e.message) from e

        stored_key = stored_key or key
        url = await self.public_url(stored_key, bucket=bucket)
        if unquote(extract_storage_path(url) or "") != stored_key:
            logger.warning(f"Public URL for {bucket}/{stored_key} does not reference its key: {url}")
        logger.info(f"Uploaded {bucket}/{stored_key}")
        return StoredObject(
            bucket=bucket,
            key=stored_key,
            content_type=content_type,
            public_url=url,
        )

    async def public_url(self, key: str, *, bucket: str) -> str:
        """Return the normalized public URL for *key*."""
        raw_url = await self.store.public_url(bucket, key)
        return normalize_public_url(raw_url, self.public_base, self.internal_base)

    async def delete(self, key: str, *, bucket: str) -> None:
        """Delete *key* from *bucket*.

        Deleting a missing key is not distinguished from success here.

        Raises:
            DeleteError: If the collaborator reports a failure.
        """
        try:
            await self.store.remove(bucket, [key])
        except CollaboratorError as e:
            raise DeleteError(f"Failed to delete image: {e.message}") from e
        logger.info(f"Deleted {bucket}/{key}")
