#!/usr/bin/env python
"""Run the try-on worker pool and order expiry sweeper without the API.

Usage:
    python scripts/run_tryon_worker.py

For deployments where the API runs with BACKGROUND_JOBS_ENABLED=false,
this process picks up queued try-ons and cancels unpaid orders instead.
Stop it with Ctrl+C; jobs it was running are retried after their lease
expires.
"""

import asyncio
import logging
import sys
from pathlib import Path

# Add the project root to the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from vyuga.core.config import get_settings
from vyuga.core.stripe import build_payment_gateway
from vyuga.services.order_expiry import OrderExpirySweeper
from vyuga.services.payment_service import PaymentService
from vyuga.services.tryon_service import TryOnService
from vyuga.services.tryon_worker import TryOnWorkerPool

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def main() -> None:
    """Run workers until interrupted."""
    settings = get_settings()

    pool = TryOnWorkerPool(
        TryOnService(),
        concurrency=settings.tryon_worker_concurrency,
        poll_seconds=settings.tryon_worker_poll_seconds,
        recovery_interval_seconds=settings.tryon_recovery_interval_seconds,
    )
    sweeper = OrderExpirySweeper(
        PaymentService(build_payment_gateway(settings)),
        ttl_minutes=settings.order_payment_ttl_minutes,
        interval_seconds=settings.order_expiry_sweep_interval_seconds,
    )

    await pool.start()
    await sweeper.start()
    logger.info("Worker running; press Ctrl+C to stop")

    try:
        await asyncio.Event().wait()
    finally:
        await sweeper.stop()
        await pool.stop()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Worker stopped")
