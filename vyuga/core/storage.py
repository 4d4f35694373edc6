"""Blob storage for try-on photos and generated results (Supabase Storage)."""

import logging
import uuid
from typing import Any

from supabase import Client

from vyuga.core.config import get_settings
from vyuga.core.supabase import get_supabase_client

logger = logging.getLogger(__name__)


class SupabaseBlobStore:
    """Durable, publicly readable object storage.

    Every object gets a random suffix so two uploads with the same
    suggested name never overwrite each other.
    """

    def __init__(self, client: Client | None = None, bucket: str | None = None) -> None:
        self.client = client or get_supabase_client()
        self.bucket = bucket or get_settings().blob_bucket

    def put(self, data: bytes, suggested_name: str, content_type: str = "image/jpeg") -> str:
        """Upload bytes and return their public URL.

        Args:
            data: Object content.
            suggested_name: Path hint such as ``tryon/input.jpg``.
            content_type: MIME type stored with the object.

        Returns:
            str: Public URL of the stored object.
        """
        stem, dot, extension = suggested_name.rpartition(".")
        if not dot:
            stem, extension = suggested_name, "jpg"
        storage_path = f"{stem}-{uuid.uuid4().hex[:12]}.{extension}"

        self.client.storage.from_(self.bucket).upload(
            path=storage_path,
            file=data,
            file_options={"content-type": content_type},
        )
        logger.debug("Stored %d bytes at %s/%s", len(data), self.bucket, storage_path)

        return self.client.storage.from_(self.bucket).get_public_url(storage_path)


async def check_storage_connection() -> dict[str, Any]:
    """Check that the try-on bucket is reachable."""
    try:
        get_supabase_client().storage.get_bucket(get_settings().blob_bucket)
        return {"healthy": True}
    except Exception as e:
        return {"healthy": False, "error": str(e)}
