"""Cart business logic service."""

import logging
from datetime import datetime, timezone
from typing import Any, Iterable

from postgrest.exceptions import APIError as PostgrestError

from vyuga.core.errors import APIError, UnknownGarmentError, ValidationError
from vyuga.core.supabase import get_supabase_client
from vyuga.models.cart import CartItemWithGarment
from vyuga.models.owner import Owner, owner_columns
from vyuga.services.garment_service import GarmentService

logger = logging.getLogger(__name__)

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"


class CartService:
    """Service for guest and user carts.

    Cart totals always use the current catalog price; orders freeze it.
    """

    MAX_MERGE_ATTEMPTS = 5

    def __init__(self, garment_service: GarmentService | None = None) -> None:
        """Initialize cart service with clients."""
        self.client = get_supabase_client()
        self.garment_service = garment_service or GarmentService()

    async def get_cart(self, owner: Owner) -> dict[str, Any]:
        """Get the owner's cart with current garment data.

        Args:
            owner: Cart owner.

        Returns:
            dict: ``items`` (each with a nested ``garment``), ``total`` and ``count``.
        """
        response = (
            self.client.table("cart_items")
            .select("*, garment:garments(*)")
            .eq(owner.column, owner.value)
            .order("created_at")
            .execute()
        )
        items: list[CartItemWithGarment] = response.data or []

        total = sum(
            item["garment"]["price"] * item["quantity"]
            for item in items
            if item.get("garment")
        )

        return {"items": items, "total": total, "count": len(items)}

    def _find_item(self, owner: Owner, garment_id: str, size: str) -> dict[str, Any] | None:
        response = (
            self.client.table("cart_items")
            .select("*")
            .eq(owner.column, owner.value)
            .eq("garment_id", garment_id)
            .eq("size", size)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    async def add_item(self, owner: Owner, garment_id: str, size: str, quantity: int = 1) -> dict[str, Any]:
        """Add a garment to the cart, merging with an existing line.

        An existing (owner, garment, size) row has its quantity incremented
        by compare-and-set on the previous quantity, so concurrent adds
        never lose an increment.

        Args:
            owner: Cart owner.
            garment_id: Garment UUID.
            size: Size label offered by the garment.
            quantity: Quantity to add (>= 1).

        Returns:
            dict: The created or updated cart item.

        Raises:
            UnknownGarmentError: If the garment does not exist.
            ValidationError: If size or quantity is invalid.
        """
        garment_id = str(garment_id)
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        garment = await self.garment_service.get_garment(garment_id)
        if not garment:
            raise UnknownGarmentError([garment_id])

        sizes = garment.get("sizes") or []
        if sizes and size not in sizes:
            raise ValidationError(f"Size {size!r} is not available for {garment['name']}")

        for _ in range(self.MAX_MERGE_ATTEMPTS):
            now = datetime.now(timezone.utc).isoformat()
            existing = self._find_item(owner, garment_id, size)

            if existing:
                response = (
                    self.client.table("cart_items")
                    .update({"quantity": existing["quantity"] + quantity, "updated_at": now})
                    .eq("id", existing["id"])
                    .eq("quantity", existing["quantity"])
                    .execute()
                )
                if response.data:
                    return response.data[0]
                continue

            try:
                response = (
                    self.client.table("cart_items")
                    .insert(
                        {
                            **owner_columns(owner),
                            "garment_id": garment_id,
                            "size": size,
                            "quantity": quantity,
                        }
                    )
                    .execute()
                )
                return response.data[0]
            except PostgrestError as e:
                # Another request created the same line first; merge into it
                if e.code != UNIQUE_VIOLATION:
                    raise

        logger.warning("Cart merge for %s kept conflicting on %s/%s", owner.key, garment_id, size)
        raise APIError(
            "Cart was modified concurrently, please retry",
            status_code=409,
            error_type="conflict",
        )

    async def remove_item(self, owner: Owner, item_id: str) -> bool:
        """Delete one of the owner's cart items.

        Returns:
            bool: True if a row was deleted. A missing row is not an error.
        """
        response = (
            self.client.table("cart_items")
            .delete()
            .eq("id", str(item_id))
            .eq(owner.column, owner.value)
            .execute()
        )
        return bool(response.data)

    async def clear_items(self, owner: Owner, keys: Iterable[tuple[str, str]]) -> int:
        """Delete the owner's cart lines matching (garment_id, size) keys.

        Returns:
            int: Number of rows deleted.
        """
        removed = 0
        for garment_id, size in sorted(set(keys)):
            response = (
                self.client.table("cart_items")
                .delete()
                .eq(owner.column, owner.value)
                .eq("garment_id", str(garment_id))
                .eq("size", size)
                .execute()
            )
            removed += len(response.data or [])
        return removed
