"""Background sweep cancelling orders that were never paid."""

import asyncio
import logging

from vyuga.services.payment_service import PaymentService

logger = logging.getLogger(__name__)


class OrderExpirySweeper:
    """Periodically voids the intents of PENDING orders past the payment TTL and cancels them."""

    def __init__(self, payment_service: PaymentService, ttl_minutes: int, interval_seconds: float) -> None:
        self.payment_service = payment_service
        self.ttl_minutes = ttl_minutes
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        """Start background sweep task."""
        if self._task is None:
            self._task = asyncio.create_task(self._sweep_loop(), name="order-expiry")
            logger.info("Order expiry sweeper started (ttl=%d minutes)", self.ttl_minutes)

    async def stop(self) -> None:
        """Stop background sweep task."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Order expiry sweeper stopped")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.payment_service.cancel_expired_orders(self.ttl_minutes)
            except Exception:
                logger.exception("Order expiry sweep failed")
