"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from vyuga.api.middleware.error_handler import error_handler_middleware
from vyuga.api.middleware.latency_logging import latency_logging_middleware
from vyuga.api.middleware.request_size import request_size_limit_middleware
from vyuga.api.routes import cart, health, orders, payments, tryon, webhooks
from vyuga.core.config import get_settings
from vyuga.core.rate_limiter import init_rate_limiter, shutdown_rate_limiter
from vyuga.core.stripe import build_payment_gateway
from vyuga.services.order_expiry import OrderExpirySweeper
from vyuga.services.payment_service import PaymentService
from vyuga.services.tryon_service import TryOnService
from vyuga.services.tryon_worker import TryOnWorkerPool

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Builds the payment gateway (a missing credential stops startup), the
    shared try-on service and, unless disabled, the background try-on
    workers and the order expiry sweeper.
    """
    settings = get_settings()
    logger.info("Starting %s in %s mode", settings.app_name, settings.app_env)

    app.state.payment_gateway = build_payment_gateway(settings)
    logger.info("Payment gateway configured (test mode: %s)", settings.is_stripe_test_mode)

    await init_rate_limiter()
    logger.info("Rate limiter initialized")

    tryon_service = TryOnService()
    app.state.tryon_service = tryon_service

    worker_pool: TryOnWorkerPool | None = None
    sweeper: OrderExpirySweeper | None = None
    if settings.background_jobs_enabled:
        worker_pool = TryOnWorkerPool(
            tryon_service,
            concurrency=settings.tryon_worker_concurrency,
            poll_seconds=settings.tryon_worker_poll_seconds,
            recovery_interval_seconds=settings.tryon_recovery_interval_seconds,
        )
        tryon_service.on_submitted = worker_pool.notify
        await worker_pool.start()

        sweeper = OrderExpirySweeper(
            PaymentService(app.state.payment_gateway),
            ttl_minutes=settings.order_payment_ttl_minutes,
            interval_seconds=settings.order_expiry_sweep_interval_seconds,
        )
        await sweeper.start()
    else:
        logger.warning("Background jobs disabled; queued try-ons will not be processed by this instance")
    app.state.tryon_worker_pool = worker_pool

    yield

    if sweeper:
        await sweeper.stop()
    if worker_pool:
        await worker_pool.stop()
    await shutdown_rate_limiter()
    logger.info("Rate limiter shutdown")
    logger.info("Shutting down %s", settings.app_name)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Vyuga API",
        description="Virtual try-on and checkout backend for the Vyuga storefront",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Error handler is outermost so it formats errors from every layer below
    app.add_middleware(BaseHTTPMiddleware, dispatch=error_handler_middleware)
    app.add_middleware(BaseHTTPMiddleware, dispatch=latency_logging_middleware)
    app.add_middleware(BaseHTTPMiddleware, dispatch=request_size_limit_middleware)

    app.include_router(health.router)

    api_v1_router = APIRouter(prefix="/api/v1")
    api_v1_router.include_router(cart.router)
    api_v1_router.include_router(orders.router)
    api_v1_router.include_router(payments.router)
    api_v1_router.include_router(webhooks.router)
    api_v1_router.include_router(tryon.router)
    app.include_router(api_v1_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "vyuga.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
