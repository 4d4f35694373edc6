"""Try-on session model type definitions for database operations."""

from datetime import datetime
from typing import Literal, TypedDict
from uuid import UUID


TryOnStatus = Literal["queued", "processing", "completed", "failed"]

TRYON_QUEUED: TryOnStatus = "queued"
TRYON_PROCESSING: TryOnStatus = "processing"
TRYON_COMPLETED: TryOnStatus = "completed"
TRYON_FAILED: TryOnStatus = "failed"

TERMINAL_STATUSES: frozenset[str] = frozenset({TRYON_COMPLETED, TRYON_FAILED})


class TryOnSession(TypedDict):
    """Try-on sessions table row representation.

    The row doubles as the durable work item for the worker pool:
    ``attempts`` and ``lease_expires_at`` track who is executing it.
    """

    id: UUID
    user_id: UUID | None
    garment_id: UUID
    input_image_url: str
    garment_image_url: str
    result_image_url: str | None
    status: TryOnStatus
    error_message: str | None
    share_token: str
    attempts: int
    lease_expires_at: datetime | None
    started_at: datetime | None
    completed_at: datetime | None
    expires_at: datetime
    created_at: datetime
    updated_at: datetime
