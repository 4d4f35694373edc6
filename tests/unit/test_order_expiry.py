"""Unit tests for the order expiry sweeper."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from vyuga.services.order_expiry import OrderExpirySweeper


class TestOrderExpirySweeper:
    """Tests for OrderExpirySweeper."""

    @pytest.mark.asyncio
    async def test_sweeps_with_ttl(self) -> None:
        """Test the sweeper cancels expired orders on each tick."""
        payment_service = MagicMock()
        payment_service.cancel_expired_orders = AsyncMock(return_value=0)
        sweeper = OrderExpirySweeper(payment_service, ttl_minutes=30, interval_seconds=0.01)

        await sweeper.start()
        await asyncio.sleep(0.05)
        await sweeper.stop()

        payment_service.cancel_expired_orders.assert_awaited_with(30)

    @pytest.mark.asyncio
    async def test_keeps_running_after_failure(self) -> None:
        """Test a failed sweep is logged and the next one still runs."""
        payment_service = MagicMock()
        calls = []

        async def sweep(ttl_minutes: int) -> int:
            calls.append(ttl_minutes)
            if len(calls) == 1:
                raise RuntimeError("db down")
            return 0

        payment_service.cancel_expired_orders = AsyncMock(side_effect=sweep)
        sweeper = OrderExpirySweeper(payment_service, ttl_minutes=30, interval_seconds=0.005)

        await sweeper.start()
        await asyncio.sleep(0.05)
        await sweeper.stop()

        assert payment_service.cancel_expired_orders.await_count >= 2

    @pytest.mark.asyncio
    async def test_stop_without_start(self) -> None:
        """Test stopping a sweeper that never started."""
        sweeper = OrderExpirySweeper(MagicMock(), ttl_minutes=30, interval_seconds=60)

        await sweeper.stop()

        assert sweeper._task is None
