"""Read-only access to the garment catalog."""

from vyuga.core.supabase import get_supabase_client
from vyuga.models.garment import Garment


class GarmentService:
    """Service for garment lookups used by cart, orders and try-on."""

    def __init__(self) -> None:
        """Initialize garment service with Supabase client."""
        self.client = get_supabase_client()

    async def get_garment(self, garment_id: str) -> Garment | None:
        """Get a garment by ID.

        Args:
            garment_id: The garment's UUID.

        Returns:
            dict | None: The garment row or None if not found.
        """
        response = (
            self.client.table("garments")
            .select("*")
            .eq("id", str(garment_id))
            .maybe_single()
            .execute()
        )

        return response.data if response and response.data else None

    async def get_garments(self, garment_ids: list[str]) -> dict[str, Garment]:
        """Resolve many garments in one query.

        Args:
            garment_ids: Garment UUIDs; duplicates are allowed.

        Returns:
            dict: Garment rows keyed by id. Unknown ids are absent.
        """
        unique_ids = sorted({str(garment_id) for garment_id in garment_ids})
        if not unique_ids:
            return {}

        response = (
            self.client.table("garments")
            .select("*")
            .in_("id", unique_ids)
            .execute()
        )

        return {str(row["id"]): row for row in response.data or []}
