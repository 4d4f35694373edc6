"""Try-on Pydantic schemas for API responses."""

from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from vyuga.schemas.garment import GarmentSummary


TryOnStatus = Literal["queued", "processing", "completed", "failed"]


class TryOnSubmitResponse(BaseModel):
    """Schema for POST /try-on/upload."""

    session_id: UUID = Field(description="Try-on session identifier")
    status: TryOnStatus = Field(description="Always queued on submission")
    message: str = Field(description="Human-readable status")
    estimated_time_seconds: int = Field(description="Estimated generation time")
    poll_interval_seconds: int = Field(description="Suggested polling interval for the status endpoint")


class TryOnStatusResponse(BaseModel):
    """Schema for GET /try-on/status/{id}.

    Which optional fields are set depends on ``status``.
    """

    model_config = ConfigDict(from_attributes=True)

    session_id: UUID = Field(description="Try-on session identifier")
    status: TryOnStatus = Field(description="Current status")
    terminal: bool = Field(description="True once the status can no longer change")
    expired: bool = Field(default=False, description="Session is past its 24h validity")
    message: str | None = Field(default=None, description="Progress message while queued or processing")
    poll_interval_seconds: int | None = Field(default=None, description="Suggested polling interval")
    result_image_url: str | None = Field(default=None, description="Generated image (completed only)")
    garment: GarmentSummary | None = Field(default=None, description="Garment tried on (completed only)")
    share_url: str | None = Field(default=None, description="Public share link (completed only)")
    error_message: str | None = Field(default=None, description="Failure description (failed only)")


class TryOnClaimResponse(BaseModel):
    """Schema for POST /try-on/{id}/claim."""

    session_id: UUID = Field(description="Try-on session identifier")
    user_id: UUID = Field(description="User now owning the session")
