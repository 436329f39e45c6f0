from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Strongly-typed settings model loaded from env / .env.

    Notes:
        - Backing-store DSN, storage keys, JWT secret and webhook URLs must be
          provided via environment variables; none are embedded in source.
        - No insecure defaults are shipped; application will fail-fast if missing.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        protected_namespaces=()
    )

    ENV: str = Field(..., description="Deployment environment, e.g. dev/staging/prod")
    SERVICE_NAME: str = Field(default="campus", description="Service name")
    LOG_LEVEL: str = Field(default="INFO", description="Root log level")
    FRONTEND_ORIGINS: str = Field(default="", description="Comma-separated CORS origins")

    DATABASE_DSN: str = Field(..., description="Backing store DSN (postgresql+asyncpg://...)")

    JWT_SECRET: str = Field(..., description="Key used to verify access tokens (must be provided)")
    JWT_ALGORITHM: str = Field(default="HS256", description="Access token signature algorithm")
    JWT_AUDIENCE: str = Field(default="authenticated", description="Expected token audience")

    STORAGE_ENDPOINT: str = Field(..., description="S3-compatible storage endpoint URL")
    STORAGE_ACCESS_KEY: str = Field(..., description="Storage access key (must be provided)")
    STORAGE_SECRET_KEY: str = Field(..., description="Storage secret key (must be provided)")
    STORAGE_REGION: str = Field(default="us-east-1", description="Storage region")
    STORAGE_PUBLIC_URL: str = Field(..., description="Base URL for public objects, e.g. https://x/storage/v1/object/public")
    FORUM_IMAGES_BUCKET: str = Field(default="forum-images", description="Bucket for forum attachments")
    MODULE_COVERS_BUCKET: str = Field(default="module-covers", description="Bucket for module cover images")

    FORUM_IMAGE_MAX_BYTES: int = Field(default=5 * 1024 * 1024, description="Max size of one forum image")
    FORUM_MAX_IMAGES: int = Field(default=5, description="Max images attached to one post")
    MODULE_COVER_MAX_BYTES: int = Field(default=5 * 1024 * 1024, description="Max size of one module cover image")

    TUTOR_WEBHOOK_URL: str = Field(..., description="Chat-message webhook URL")
    TUTOR_WEBHOOK_MAX_RETRIES: int = Field(default=3, description="Total attempts per chat message")
    TUTOR_WEBHOOK_RETRY_DELAY: float = Field(default=1.0, description="Base delay in seconds, multiplied by attempt")
    TUTOR_SESSION_ID: str = Field(default="virtual-tutor-session", description="Default chat session id")

    RAG_UPLOAD_URL: str = Field(..., description="Document-ingestion webhook URL (production)")
    RAG_UPLOAD_TEST_URL: str | None = Field(default=None, description="Document-ingestion webhook URL (test)")
    RAG_MAX_BYTES: int = Field(default=10 * 1024 * 1024, description="Max size of an ingested document")

    POINTS_PER_POST: int = Field(default=10, description="Points awarded for a forum post")
    POINTS_PER_LESSON: int = Field(default=25, description="Points awarded for a completed lesson")


@lru_cache()
def get_settings() -> Settings:
    """Return a cached singleton `Settings` instance."""
    return Settings()
