"""Unit tests for CartService."""

import pytest

from tests.conftest import KURTA_ID, SAREE_ID
from tests.fakes import FakeSupabase
from vyuga.core.errors import APIError, UnknownGarmentError, ValidationError
from vyuga.models.owner import GuestOwner, UserOwner
from vyuga.services.cart_service import CartService

MISSING_ID = "99999999-9999-4999-8999-999999999999"


@pytest.fixture
def cart_service(fake_supabase: FakeSupabase, garments: dict) -> CartService:
    """Create CartService over the fake database."""
    return CartService()


class TestAddItem:
    """Tests for add_item."""

    @pytest.mark.asyncio
    async def test_creates_line(self, cart_service: CartService, guest_owner: GuestOwner) -> None:
        """Test adding a new garment and size creates a line."""
        item = await cart_service.add_item(guest_owner, KURTA_ID, "M", 2)

        assert item["garment_id"] == KURTA_ID
        assert item["size"] == "M"
        assert item["quantity"] == 2
        assert item["session_id"] == guest_owner.session_id
        assert item["user_id"] is None

    @pytest.mark.asyncio
    async def test_merges_same_garment_and_size(
        self, cart_service: CartService, fake_supabase: FakeSupabase, guest_owner: GuestOwner
    ) -> None:
        """Test adding q1 then q2 of the same key yields one line of q1 + q2."""
        await cart_service.add_item(guest_owner, KURTA_ID, "M", 1)
        item = await cart_service.add_item(guest_owner, KURTA_ID, "M", 2)

        assert item["quantity"] == 3
        assert len(fake_supabase.rows("cart_items")) == 1

    @pytest.mark.asyncio
    async def test_different_size_is_separate_line(
        self, cart_service: CartService, fake_supabase: FakeSupabase, guest_owner: GuestOwner
    ) -> None:
        """Test sizes of the same garment are separate lines."""
        await cart_service.add_item(guest_owner, KURTA_ID, "M", 1)
        await cart_service.add_item(guest_owner, KURTA_ID, "L", 1)

        assert len(fake_supabase.rows("cart_items")) == 2

    @pytest.mark.asyncio
    async def test_owners_do_not_share_lines(
        self,
        cart_service: CartService,
        fake_supabase: FakeSupabase,
        guest_owner: GuestOwner,
        user_owner: UserOwner,
    ) -> None:
        """Test a guest and a user adding the same key get separate lines."""
        await cart_service.add_item(guest_owner, KURTA_ID, "M", 1)
        await cart_service.add_item(user_owner, KURTA_ID, "M", 1)

        assert len(fake_supabase.rows("cart_items")) == 2

    @pytest.mark.asyncio
    async def test_concurrent_increment_is_not_lost(
        self, cart_service: CartService, fake_supabase: FakeSupabase, guest_owner: GuestOwner
    ) -> None:
        """Test an increment racing with another writer retries instead of overwriting it."""
        await cart_service.add_item(guest_owner, KURTA_ID, "M", 1)

        def other_request_adds_two(db: FakeSupabase) -> None:
            db.rows("cart_items")[0]["quantity"] += 2

        fake_supabase.once("cart_items", "update", other_request_adds_two)

        item = await cart_service.add_item(guest_owner, KURTA_ID, "M", 1)

        assert item["quantity"] == 4

    @pytest.mark.asyncio
    async def test_insert_race_merges_into_winner(
        self, cart_service: CartService, fake_supabase: FakeSupabase, guest_owner: GuestOwner
    ) -> None:
        """Test losing a race to create the line falls back to merging."""

        def other_request_inserts(db: FakeSupabase) -> None:
            db.insert_row(
                "cart_items",
                {"user_id": None, "session_id": guest_owner.session_id, "garment_id": KURTA_ID, "size": "M", "quantity": 5},
            )

        fake_supabase.once("cart_items", "insert", other_request_inserts)

        item = await cart_service.add_item(guest_owner, KURTA_ID, "M", 1)

        assert item["quantity"] == 6
        assert len(fake_supabase.rows("cart_items")) == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_repeated_conflicts(
        self, cart_service: CartService, fake_supabase: FakeSupabase, guest_owner: GuestOwner
    ) -> None:
        """Test a line that keeps changing under us ends in a 409 conflict."""
        await cart_service.add_item(guest_owner, KURTA_ID, "M", 1)

        def bump(db: FakeSupabase) -> None:
            db.rows("cart_items")[0]["quantity"] += 1

        for _ in range(CartService.MAX_MERGE_ATTEMPTS):
            fake_supabase.once("cart_items", "update", bump)

        with pytest.raises(APIError) as exc_info:
            await cart_service.add_item(guest_owner, KURTA_ID, "M", 1)

        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_unknown_garment(self, cart_service: CartService, guest_owner: GuestOwner) -> None:
        """Test adding a garment that does not exist."""
        with pytest.raises(UnknownGarmentError) as exc_info:
            await cart_service.add_item(guest_owner, MISSING_ID, "M", 1)

        assert exc_info.value.garment_ids == [MISSING_ID]

    @pytest.mark.asyncio
    async def test_size_not_offered(self, cart_service: CartService, guest_owner: GuestOwner) -> None:
        """Test a size the garment does not come in is rejected."""
        with pytest.raises(ValidationError):
            await cart_service.add_item(guest_owner, SAREE_ID, "XL", 1)

    @pytest.mark.asyncio
    async def test_quantity_must_be_positive(self, cart_service: CartService, guest_owner: GuestOwner) -> None:
        """Test zero quantity is rejected."""
        with pytest.raises(ValidationError):
            await cart_service.add_item(guest_owner, KURTA_ID, "M", 0)


class TestGetCart:
    """Tests for get_cart."""

    @pytest.mark.asyncio
    async def test_totals_use_current_price(
        self, cart_service: CartService, fake_supabase: FakeSupabase, guest_owner: GuestOwner
    ) -> None:
        """Test the total follows the catalog price at read time."""
        await cart_service.add_item(guest_owner, KURTA_ID, "M", 2)
        await cart_service.add_item(guest_owner, SAREE_ID, "Free", 1)

        cart = await cart_service.get_cart(guest_owner)
        assert cart["total"] == 6000
        assert cart["count"] == 2
        assert cart["items"][0]["garment"]["name"] == "Indigo Block-Print Kurta"

        fake_supabase.row("garments", KURTA_ID)["price"] = 1000

        cart = await cart_service.get_cart(guest_owner)
        assert cart["total"] == 5000

    @pytest.mark.asyncio
    async def test_only_owner_lines(
        self, cart_service: CartService, guest_owner: GuestOwner, user_owner: UserOwner
    ) -> None:
        """Test a cart read returns only the owner's lines."""
        await cart_service.add_item(guest_owner, KURTA_ID, "M", 1)

        cart = await cart_service.get_cart(user_owner)

        assert cart == {"items": [], "total": 0, "count": 0}


class TestRemoveAndClear:
    """Tests for remove_item and clear_items."""

    @pytest.mark.asyncio
    async def test_remove_item(self, cart_service: CartService, guest_owner: GuestOwner) -> None:
        """Test removing a line, then removing it again."""
        item = await cart_service.add_item(guest_owner, KURTA_ID, "M", 1)

        assert await cart_service.remove_item(guest_owner, item["id"]) is True
        assert await cart_service.remove_item(guest_owner, item["id"]) is False

    @pytest.mark.asyncio
    async def test_cannot_remove_another_owners_line(
        self,
        cart_service: CartService,
        fake_supabase: FakeSupabase,
        guest_owner: GuestOwner,
        user_owner: UserOwner,
    ) -> None:
        """Test a line is only removable by its owner."""
        item = await cart_service.add_item(guest_owner, KURTA_ID, "M", 1)

        assert await cart_service.remove_item(user_owner, item["id"]) is False
        assert len(fake_supabase.rows("cart_items")) == 1

    @pytest.mark.asyncio
    async def test_clear_items_removes_only_given_keys(
        self, cart_service: CartService, fake_supabase: FakeSupabase, guest_owner: GuestOwner
    ) -> None:
        """Test clearing removes matching (garment, size) lines and keeps the rest."""
        await cart_service.add_item(guest_owner, KURTA_ID, "M", 1)
        await cart_service.add_item(guest_owner, KURTA_ID, "L", 1)
        await cart_service.add_item(guest_owner, SAREE_ID, "Free", 1)

        removed = await cart_service.clear_items(guest_owner, [(KURTA_ID, "M"), (SAREE_ID, "Free")])

        assert removed == 2
        remaining = fake_supabase.rows("cart_items")
        assert [(row["garment_id"], row["size"]) for row in remaining] == [(KURTA_ID, "L")]
