"""Read-only projections of try-on sessions for polling clients."""

from datetime import datetime, timezone
from typing import Any

from vyuga.core.config import get_settings
from vyuga.core.errors import NotFoundError
from vyuga.core.supabase import get_supabase_client
from vyuga.models.tryon import TERMINAL_STATUSES, TRYON_COMPLETED, TRYON_FAILED, TRYON_QUEUED

PENDING_MESSAGES = {
    TRYON_QUEUED: "Your try-on is in the queue",
}


def _is_expired(session: dict[str, Any], now: datetime) -> bool:
    expires_at = session.get("expires_at")
    if not expires_at:
        return False
    if isinstance(expires_at, str):
        expires_at = datetime.fromisoformat(expires_at.replace("Z", "+00:00"))
    return now > expires_at


class TryOnStatusService:
    """Projects a session's current status. Never writes."""

    def __init__(self) -> None:
        self.client = get_supabase_client()
        self.settings = get_settings()

    def share_url(self, share_token: str) -> str:
        return f"{self.settings.app_url.rstrip('/')}/share/{share_token}"

    def _project(self, session: dict[str, Any]) -> dict[str, Any]:
        status = session["status"]
        payload: dict[str, Any] = {
            "session_id": session["id"],
            "status": status,
            "terminal": status in TERMINAL_STATUSES,
            "expired": _is_expired(session, datetime.now(timezone.utc)),
        }

        if status == TRYON_COMPLETED:
            payload.update(
                result_image_url=session["result_image_url"],
                garment=session.get("garment"),
                share_url=self.share_url(session["share_token"]),
            )
        elif status == TRYON_FAILED:
            payload["error_message"] = session.get("error_message")
        else:
            payload.update(
                message=PENDING_MESSAGES.get(status, "Processing..."),
                poll_interval_seconds=self.settings.tryon_poll_interval_seconds,
            )

        return payload

    async def get_status(self, session_id: str) -> dict[str, Any]:
        """Current status of a session.

        Raises:
            NotFoundError: If the session does not exist.
        """
        response = (
            self.client.table("tryon_sessions")
            .select("*, garment:garments(*)")
            .eq("id", str(session_id))
            .maybe_single()
            .execute()
        )
        if not response or not response.data:
            raise NotFoundError("Session not found")

        return self._project(response.data)

    async def get_shared_result(self, share_token: str) -> dict[str, Any]:
        """Completed result behind a share link.

        Raises:
            NotFoundError: If the token is unknown, the session has no result
                or the session has expired.
        """
        response = (
            self.client.table("tryon_sessions")
            .select("*, garment:garments(*)")
            .eq("share_token", share_token)
            .eq("status", TRYON_COMPLETED)
            .maybe_single()
            .execute()
        )
        if not response or not response.data:
            raise NotFoundError("Shared try-on not found")
        if _is_expired(response.data, datetime.now(timezone.utc)):
            raise NotFoundError("Shared try-on has expired")

        return self._project(response.data)
