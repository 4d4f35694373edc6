"""Try-on job runner: submission and execution of try-on generation jobs."""

import asyncio
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Callable
from uuid import UUID

from vyuga.core.config import get_settings
from vyuga.core.errors import AuthorizationError, ExternalServiceError, NotFoundError, ValidationError
from vyuga.core.storage import SupabaseBlobStore
from vyuga.core.supabase import get_supabase_client
from vyuga.core.synthesis import HuggingFaceSynthesisClient, SynthesisError
from vyuga.models.tryon import TRYON_COMPLETED, TRYON_FAILED, TRYON_PROCESSING, TRYON_QUEUED, TryOnSession
from vyuga.services.garment_service import GarmentService

logger = logging.getLogger(__name__)

# How many QUEUED rows a worker looks at per claim attempt
CLAIM_BATCH_SIZE = 5

TIMEOUT_MESSAGE = "Try-on generation timed out"
GENERIC_FAILURE_MESSAGE = "Try-on generation failed"


def _extension_for(content_type: str) -> str:
    subtype = content_type.split("/", 1)[-1].split(";")[0].split("+")[0].strip().lower()
    return "jpg" if subtype in ("jpeg", "pjpeg") else subtype or "jpg"


def _upload_name(filename: str | None, garment_id: str, content_type: str) -> str:
    """Storage name hint for an uploaded photo; the client's name is reduced to a safe stem."""
    stem = (filename or "").rsplit("/", 1)[-1].rsplit("\\", 1)[-1].rpartition(".")[0]
    stem = "".join(ch if ch.isalnum() or ch in "-_" else "-" for ch in stem).strip("-")[:40]
    return f"tryon/{stem or garment_id}.{_extension_for(content_type)}"


class TryOnService:
    """Service for try-on sessions.

    Session rows are the durable work items: a worker claims a QUEUED row
    by moving it to PROCESSING with a lease, and every later transition is
    guarded on the row still being PROCESSING. Once a row is COMPLETED or
    FAILED no update matches it again.
    """

    def __init__(
        self,
        blob_store: SupabaseBlobStore | None = None,
        synthesis: HuggingFaceSynthesisClient | None = None,
        garment_service: GarmentService | None = None,
        on_submitted: Callable[[], None] | None = None,
    ) -> None:
        """Initialize try-on service.

        Args:
            blob_store: Storage for uploaded photos and results.
            synthesis: Try-on image synthesis client.
            garment_service: Garment lookups.
            on_submitted: Called after a job is queued, to wake idle workers.
        """
        self.client = get_supabase_client()
        self.settings = get_settings()
        self.blob_store = blob_store or SupabaseBlobStore()
        self.synthesis = synthesis or HuggingFaceSynthesisClient()
        self.garment_service = garment_service or GarmentService()
        self.on_submitted = on_submitted

    async def get_session(self, session_id: str) -> TryOnSession | None:
        """Get a try-on session by ID."""
        response = (
            self.client.table("tryon_sessions")
            .select("*")
            .eq("id", str(session_id))
            .maybe_single()
            .execute()
        )

        return response.data if response and response.data else None

    async def submit(
        self,
        garment_id: str,
        image: bytes,
        content_type: str | None,
        filename: str | None = None,
        user_id: UUID | None = None,
    ) -> dict[str, Any]:
        """Accept a photo and queue a try-on job for it.

        Returns as soon as the job is persisted; generation happens on the
        worker pool.

        Args:
            garment_id: Garment to try on.
            image: The shopper's photo.
            content_type: MIME type of the photo.
            filename: Client file name, used to name the stored object.
            user_id: Owning user if the request is authenticated.

        Returns:
            dict: session_id, status, message, estimated_time_seconds, poll_interval_seconds.

        Raises:
            NotFoundError: If the garment does not exist.
            ValidationError: If the upload is not an image, is empty or too large.
            ExternalServiceError: If the photo cannot be stored.
        """
        garment = await self.garment_service.get_garment(garment_id)
        if not garment:
            raise NotFoundError("Garment not found")

        if not content_type or not content_type.startswith("image/"):
            raise ValidationError("File must be an image")
        if not image:
            raise ValidationError("Uploaded image is empty")
        if len(image) > self.settings.max_upload_bytes:
            raise ValidationError(f"Image exceeds the maximum size of {self.settings.max_upload_bytes} bytes")

        try:
            input_image_url = self.blob_store.put(
                image,
                _upload_name(filename, garment["id"], content_type),
                content_type,
            )
        except Exception as e:
            logger.error("Failed to store try-on photo for garment %s: %s", garment_id, str(e))
            raise ExternalServiceError("Could not store the uploaded photo") from e

        now = datetime.now(timezone.utc)
        session_data = {
            "user_id": str(user_id) if user_id else None,
            "garment_id": str(garment["id"]),
            "input_image_url": input_image_url,
            "garment_image_url": garment["image_url"],
            "status": TRYON_QUEUED,
            "share_token": secrets.token_urlsafe(16),
            "attempts": 0,
            "expires_at": (now + timedelta(hours=self.settings.tryon_session_ttl_hours)).isoformat(),
        }

        response = self.client.table("tryon_sessions").insert(session_data).execute()
        session = response.data[0]
        logger.info("Queued try-on %s for garment %s", session["id"], garment["id"])

        if self.on_submitted:
            self.on_submitted()

        return {
            "session_id": session["id"],
            "status": TRYON_QUEUED,
            "message": "Your try-on is being processed",
            "estimated_time_seconds": self.settings.tryon_estimated_seconds,
            "poll_interval_seconds": self.settings.tryon_poll_interval_seconds,
        }

    def _claim(self, row: dict[str, Any]) -> dict[str, Any] | None:
        """QUEUED -> PROCESSING with a fresh lease. None if another worker won."""
        now = datetime.now(timezone.utc)
        response = (
            self.client.table("tryon_sessions")
            .update(
                {
                    "status": TRYON_PROCESSING,
                    "attempts": (row.get("attempts") or 0) + 1,
                    "lease_expires_at": (now + timedelta(seconds=self.settings.tryon_job_lease_seconds)).isoformat(),
                    "started_at": now.isoformat(),
                    "updated_at": now.isoformat(),
                }
            )
            .eq("id", row["id"])
            .eq("status", TRYON_QUEUED)
            .execute()
        )
        return response.data[0] if response.data else None

    async def claim_next_job(self) -> dict[str, Any] | None:
        """Claim the oldest QUEUED job.

        Returns:
            dict | None: The claimed (now PROCESSING) row, or None if nothing is queued.
        """
        response = (
            self.client.table("tryon_sessions")
            .select("*")
            .eq("status", TRYON_QUEUED)
            .order("created_at")
            .limit(CLAIM_BATCH_SIZE)
            .execute()
        )

        for row in response.data or []:
            claimed = self._claim(row)
            if claimed:
                return claimed
        return None

    async def run_job(self, session_id: str, input_url: str, garment_image_url: str) -> bool:
        """Claim a specific QUEUED job and execute it.

        Returns:
            bool: False if the job was not QUEUED (another worker has it or it finished).

        Raises:
            NotFoundError: If the session does not exist.
        """
        row = await self.get_session(session_id)
        if not row:
            raise NotFoundError("Session not found")

        claimed = self._claim(row)
        if not claimed:
            logger.info("Try-on %s is %s; not running it again", session_id, row["status"])
            return False

        await self._execute(str(claimed["id"]), input_url, garment_image_url)
        return True

    async def execute_job(self, job: dict[str, Any]) -> str:
        """Execute a job this worker has claimed.

        Returns:
            str: The status the job ended in.
        """
        return await self._execute(str(job["id"]), job["input_image_url"], job["garment_image_url"])

    async def _execute(self, session_id: str, input_url: str, garment_image_url: str) -> str:
        """Run synthesis and move the job to COMPLETED or FAILED.

        Every failure, expected or not, ends in FAILED with a message the
        shopper can see; the cause goes to the log.
        """
        try:
            result = await asyncio.wait_for(
                self.synthesis.generate(input_url, garment_image_url),
                timeout=self.settings.synthesis_timeout_seconds,
            )
            result_url = self.blob_store.put(result, f"results/{session_id}.png", "image/png")

        except asyncio.TimeoutError:
            logger.error(
                "Try-on %s timed out after %.0fs",
                session_id,
                self.settings.synthesis_timeout_seconds,
            )
            return self._finish(session_id, TRYON_FAILED, error_message=TIMEOUT_MESSAGE)

        except SynthesisError as e:
            logger.error("Try-on %s failed: %s (%s)", session_id, e.message, e.cause)
            return self._finish(session_id, TRYON_FAILED, error_message=e.message)

        except Exception:
            logger.exception("Try-on %s failed unexpectedly", session_id)
            return self._finish(session_id, TRYON_FAILED, error_message=GENERIC_FAILURE_MESSAGE)

        return self._finish(session_id, TRYON_COMPLETED, result_image_url=result_url)

    def _finish(
        self,
        session_id: str,
        status: str,
        result_image_url: str | None = None,
        error_message: str | None = None,
    ) -> str:
        """PROCESSING -> terminal. A row that is already terminal is left alone."""
        now = datetime.now(timezone.utc).isoformat()
        update_data: dict[str, Any] = {
            "status": status,
            "lease_expires_at": None,
            "completed_at": now,
            "updated_at": now,
        }
        if status == TRYON_COMPLETED:
            update_data["result_image_url"] = result_image_url
        else:
            update_data["error_message"] = error_message

        response = (
            self.client.table("tryon_sessions")
            .update(update_data)
            .eq("id", session_id)
            .eq("status", TRYON_PROCESSING)
            .execute()
        )
        if response.data:
            logger.info("Try-on %s marked as %s", session_id, status)
            return status

        logger.warning("Try-on %s was no longer processing; dropping %s result", session_id, status)
        current = (
            self.client.table("tryon_sessions")
            .select("status")
            .eq("id", session_id)
            .maybe_single()
            .execute()
        )
        return current.data["status"] if current and current.data else status

    async def reclaim_stale_jobs(self) -> list[dict[str, Any]]:
        """Take over PROCESSING jobs whose lease expired.

        Each takeover is guarded on the old lease value, so only one sweeper
        wins a job. Jobs that used up their attempts are failed instead.

        Returns:
            list[dict]: Jobs this caller now holds and must execute.
        """
        now = datetime.now(timezone.utc)
        response = (
            self.client.table("tryon_sessions")
            .select("*")
            .eq("status", TRYON_PROCESSING)
            .lt("lease_expires_at", now.isoformat())
            .execute()
        )

        reclaimed: list[dict[str, Any]] = []
        for row in response.data or []:
            attempts = row.get("attempts") or 0
            exhausted = attempts >= self.settings.tryon_max_attempts
            if exhausted:
                update_data: dict[str, Any] = {
                    "status": TRYON_FAILED,
                    "error_message": TIMEOUT_MESSAGE,
                    "lease_expires_at": None,
                    "completed_at": now.isoformat(),
                    "updated_at": now.isoformat(),
                }
            else:
                update_data = {
                    "attempts": attempts + 1,
                    "lease_expires_at": (now + timedelta(seconds=self.settings.tryon_job_lease_seconds)).isoformat(),
                    "updated_at": now.isoformat(),
                }

            result = (
                self.client.table("tryon_sessions")
                .update(update_data)
                .eq("id", row["id"])
                .eq("status", TRYON_PROCESSING)
                .eq("lease_expires_at", row["lease_expires_at"])
                .execute()
            )
            if not result.data:
                continue

            if exhausted:
                logger.warning("Try-on %s failed after %d attempts", row["id"], attempts)
            else:
                logger.warning("Reclaimed stale try-on %s (attempt %d)", row["id"], attempts + 1)
                reclaimed.append(result.data[0])

        return reclaimed

    async def associate_user(self, session_id: str, user_id: UUID) -> dict[str, Any]:
        """Attach an anonymous try-on session to a user who signed in.

        Raises:
            NotFoundError: If the session does not exist.
            AuthorizationError: If it already belongs to another user.
        """
        response = (
            self.client.table("tryon_sessions")
            .update({"user_id": str(user_id), "updated_at": datetime.now(timezone.utc).isoformat()})
            .eq("id", str(session_id))
            .is_("user_id", "null")
            .execute()
        )
        if response.data:
            return response.data[0]

        session = await self.get_session(session_id)
        if not session:
            raise NotFoundError("Session not found")
        if str(session["user_id"]) != str(user_id):
            raise AuthorizationError("Session belongs to another user")
        return session
