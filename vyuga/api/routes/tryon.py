"""Try-on API routes: photo upload, status polling, sharing and claiming."""

from uuid import UUID

from fastapi import APIRouter, File, Form, UploadFile, status

from vyuga.api.deps import CurrentUser, OptionalUser, TryOnRateLimit, TryOnServiceDep
from vyuga.schemas.tryon import TryOnClaimResponse, TryOnStatusResponse, TryOnSubmitResponse
from vyuga.services.tryon_status_service import TryOnStatusService

router = APIRouter(prefix="/try-on", tags=["try-on"])


@router.post(
    "/upload",
    response_model=TryOnSubmitResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Submit a try-on",
    description=(
        "Uploads a photo and queues a try-on for a garment. Returns immediately; "
        "poll GET /try-on/status/{session_id} for the result."
    ),
)
async def upload_tryon(
    _: TryOnRateLimit,
    service: TryOnServiceDep,
    user: OptionalUser,
    garment_id: UUID = Form(description="Garment to try on"),
    image: UploadFile = File(description="Photo of the shopper"),
) -> TryOnSubmitResponse:
    """Queue a try-on job for the uploaded photo.

    Raises:
        NotFoundError: 404 if the garment does not exist.
        ValidationError: 422 if the upload is not an image or is too large.
        ExternalServiceError: 502 if the photo cannot be stored.
    """
    data = await image.read()
    result = await service.submit(
        str(garment_id),
        data,
        image.content_type,
        filename=image.filename,
        user_id=user.user_id if user else None,
    )
    return TryOnSubmitResponse(**result)


@router.get(
    "/status/{session_id}",
    response_model=TryOnStatusResponse,
    response_model_exclude_none=True,
    summary="Try-on status",
    description="Current state of a try-on session. Safe to poll.",
)
async def get_tryon_status(session_id: UUID) -> TryOnStatusResponse:
    """Project the session's current status."""
    return TryOnStatusResponse(**await TryOnStatusService().get_status(str(session_id)))


@router.get(
    "/share/{share_token}",
    response_model=TryOnStatusResponse,
    response_model_exclude_none=True,
    summary="Shared try-on",
    description="Completed try-on behind a share link.",
)
async def get_shared_tryon(share_token: str) -> TryOnStatusResponse:
    """Resolve a share token to its completed result."""
    return TryOnStatusResponse(**await TryOnStatusService().get_shared_result(share_token))


@router.post(
    "/{session_id}/claim",
    response_model=TryOnClaimResponse,
    summary="Claim a try-on",
    description="Links an anonymous try-on session to the signed-in user.",
)
async def claim_tryon(session_id: UUID, user: CurrentUser, service: TryOnServiceDep) -> TryOnClaimResponse:
    """Attach an anonymous session to the current user.

    Raises:
        NotFoundError: 404 if the session does not exist.
        AuthorizationError: 403 if it belongs to another user.
    """
    session = await service.associate_user(str(session_id), user.user_id)
    return TryOnClaimResponse(session_id=session["id"], user_id=session["user_id"])
