"""Application configuration management using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Required settings will raise validation errors if not provided.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="vyuga-api", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=3001, description="Server port")
    max_request_body_size: int = Field(
        default=12 * 1024 * 1024,
        description="Maximum accepted request body in bytes",
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins",
    )

    # Public web app URL, used to build try-on share links
    app_url: str = Field(default="http://localhost:3000", description="Frontend application URL")

    # Supabase
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_secret_key: str = Field(..., description="Supabase secret key for backend operations")
    supabase_signing_key_jwk: str = Field(
        default="",
        description="Supabase signing key JWK (JSON string) for JWT token verification",
    )
    blob_bucket: str = Field(default="tryon-images", description="Supabase Storage bucket for try-on images")

    # Stripe
    stripe_secret_key: str = Field(default="", description="Stripe secret API key")
    stripe_publishable_key: str = Field(default="", description="Stripe publishable key (for frontend)")
    stripe_webhook_secret: str = Field(default="", description="Stripe webhook signing secret")

    # Payments
    payment_callback_secret: str = Field(
        default="",
        description="Shared secret used to sign client payment callbacks (HMAC-SHA256)",
    )
    payment_currency: str = Field(default="inr", description="Currency for every order")
    shipping_cost: int = Field(default=100, ge=0, description="Fixed shipping cost in minor units")
    order_payment_ttl_minutes: int = Field(
        default=30,
        ge=1,
        description="Minutes a PENDING order waits for payment before it is cancelled",
    )
    order_expiry_sweep_interval_seconds: int = Field(
        default=300,
        ge=1,
        description="Seconds between expired-order sweeps",
    )

    # Image synthesis (Hugging Face Inference API)
    huggingface_api_key: str = Field(default="", description="Hugging Face API token")
    huggingface_api_url: str = Field(
        default="https://api-inference.huggingface.co/models",
        description="Hugging Face Inference API base URL",
    )
    huggingface_model: str = Field(default="Kolors/Kolors-Virtual-Try-On", description="Try-on model id")
    synthesis_inference_steps: int = Field(default=30, description="Diffusion steps per generation")
    synthesis_guidance_scale: float = Field(default=2.0, description="Guidance scale per generation")
    synthesis_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description=(
            "Upper bound for one synthesis call, input image downloads included; "
            "the result upload runs after it and is not counted"
        ),
    )

    # Try-on sessions and worker pool
    max_upload_bytes: int = Field(default=10 * 1024 * 1024, description="Maximum try-on photo size in bytes")
    tryon_session_ttl_hours: int = Field(default=24, description="Hours a try-on session stays valid")
    tryon_estimated_seconds: int = Field(default=30, description="Estimated generation time reported to clients")
    tryon_poll_interval_seconds: int = Field(default=3, description="Suggested client polling interval")
    tryon_worker_concurrency: int = Field(default=2, ge=1, description="Concurrent try-on workers")
    tryon_worker_poll_seconds: float = Field(default=2.0, gt=0, description="Idle worker polling interval")
    tryon_job_lease_seconds: int = Field(
        default=300,
        ge=1,
        description="Seconds a claimed job may stay PROCESSING before the recovery sweep takes it over",
    )
    tryon_max_attempts: int = Field(default=3, ge=1, description="Executions allowed per job before it fails")
    tryon_recovery_interval_seconds: int = Field(default=60, ge=1, description="Seconds between recovery sweeps")
    background_jobs_enabled: bool = Field(
        default=True,
        description="Run the try-on worker pool and order expiry sweeper in this process",
    )

    # Rate limiting (try-on submissions are billed per call)
    rate_limit_tryon_requests: int = Field(default=10, description="Try-on submissions per window per owner")
    rate_limit_window_seconds: int = Field(default=900, description="Rate limit window in seconds")

    @model_validator(mode="after")
    def normalize_currency(self) -> "Settings":
        """Stripe expects lowercase ISO currency codes."""
        self.payment_currency = self.payment_currency.lower()
        return self

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_stripe_test_mode(self) -> bool:
        """Check if using Stripe test keys."""
        return self.stripe_secret_key.startswith("sk_test_")


@lru_cache
def get_settings() -> Settings:
    """Settings singleton; tests call ``get_settings.cache_clear()`` to reload."""
    return Settings()
