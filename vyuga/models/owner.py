"""Cart and order ownership.

A cart or order belongs either to an authenticated user or to a guest
session, never both. ``Owner`` makes the invalid combinations
unrepresentable; ``owner_from_identity`` is the only place request identity
is turned into an owner.
"""

from dataclasses import dataclass
from uuid import UUID

from vyuga.core.errors import InvalidOwnerError


@dataclass(frozen=True)
class UserOwner:
    """Authenticated user."""

    user_id: UUID

    column = "user_id"

    @property
    def value(self) -> str:
        return str(self.user_id)

    @property
    def key(self) -> str:
        return f"user:{self.user_id}"


@dataclass(frozen=True)
class GuestOwner:
    """Anonymous shopper identified by a client-held session id."""

    session_id: str

    column = "session_id"

    @property
    def value(self) -> str:
        return self.session_id

    @property
    def key(self) -> str:
        return f"guest:{self.session_id}"


Owner = UserOwner | GuestOwner


def owner_from_identity(user_id: UUID | None, session_id: str | None) -> Owner:
    """Build the owner for a request.

    Args:
        user_id: Resolved user id, if the request is authenticated.
        session_id: Guest session id, if supplied.

    Raises:
        InvalidOwnerError: If both or neither are present.
    """
    session_id = session_id.strip() if session_id else None
    if user_id is not None and session_id:
        raise InvalidOwnerError("Send either a bearer token or a guest session id, not both")
    if user_id is not None:
        return UserOwner(user_id=user_id)
    if session_id:
        return GuestOwner(session_id=session_id)
    raise InvalidOwnerError()


def owner_of_row(row: dict) -> Owner:
    """Owner recorded on a persisted cart item or order row."""
    if row.get("user_id"):
        return UserOwner(user_id=UUID(str(row["user_id"])))
    return GuestOwner(session_id=row["session_id"])


def owner_columns(owner: Owner) -> dict[str, str | None]:
    """Both owner columns for an insert; the unused one is null."""
    return {
        "user_id": owner.value if isinstance(owner, UserOwner) else None,
        "session_id": owner.value if isinstance(owner, GuestOwner) else None,
    }
