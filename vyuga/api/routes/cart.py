"""Cart API routes for guests and signed-in users."""

from uuid import UUID

from fastapi import APIRouter, status

from vyuga.api.deps import CurrentOwner
from vyuga.schemas.cart import CartItemCreate, CartItemRemovedResponse, CartItemResponse, CartResponse
from vyuga.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get(
    "",
    response_model=CartResponse,
    summary="Get cart",
    description="Returns the caller's cart priced at current catalog prices.",
)
async def get_cart(owner: CurrentOwner) -> CartResponse:
    """Get the cart of the requesting user or guest session."""
    cart = await CartService().get_cart(owner)
    return CartResponse(**cart)


@router.post(
    "/items",
    response_model=CartItemResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add to cart",
    description="Adds a garment in a size. Adding an existing garment and size increases its quantity.",
)
async def add_cart_item(data: CartItemCreate, owner: CurrentOwner) -> CartItemResponse:
    """Add a garment to the cart.

    Args:
        data: Garment, size and quantity.
        owner: Cart owner.

    Returns:
        CartItemResponse: The created or merged cart line.
    """
    item = await CartService().add_item(owner, str(data.garment_id), data.size, data.quantity)
    return CartItemResponse(**item)


@router.delete(
    "/items/{item_id}",
    response_model=CartItemRemovedResponse,
    summary="Remove from cart",
    description="Removes a cart line. Removing a line that no longer exists succeeds.",
)
async def remove_cart_item(item_id: UUID, owner: CurrentOwner) -> CartItemRemovedResponse:
    """Remove one of the caller's cart lines."""
    removed = await CartService().remove_item(owner, str(item_id))
    return CartItemRemovedResponse(removed=removed)
