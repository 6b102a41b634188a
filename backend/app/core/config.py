from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ENV: str = Field(default="dev")  # dev|prod|test

    # Security
    JWT_SECRET: str = Field(default="change-me")
    JWT_ALG: str = Field(default="HS256")
    JWT_EXPIRES_MIN: int = Field(default=60 * 12)

    # DB
    DATABASE_URL: str = Field(default="postgresql+psycopg://app:app@db:5432/app")

    # CORS
    CORS_ORIGINS: str = Field(default="http://localhost:3000,http://localhost")

    # Celery / Redis
    REDIS_URL: str = Field(default="redis://redis:6379/0")

    # Blob storage root, objects live at {organization_id}/{import_id}/{filename}
    UPLOAD_DIR: str = Field(default="/app/data/uploads")

    # Ingestion tunables.
    # column descriptors are written ANALYZE_BATCH_SIZE per commit
    ANALYZE_BATCH_SIZE: int = Field(default=25, ge=1)
    ROW_BATCH_SIZE: int = Field(default=500, ge=1)
    SAMPLE_ROWS: int = Field(default=5, ge=1)
    ANALYZE_TIMEOUT_SEC: float = Field(default=300.0, gt=0)
    STALE_ANALYSIS_SEC: float = Field(default=900.0, gt=0)

    # Preview
    DEFAULT_PAGE_SIZE: int = Field(default=50, ge=1)
    MAX_PAGE_SIZE: int = Field(default=500, ge=1)

    # Seed (dev)
    SEED_DEMO: bool = Field(default=True)
    DEMO_ORG_NAME: str = Field(default="Demo Organization")
    DEMO_ADMIN_LOGIN: str = Field(default="admin")
    DEMO_ADMIN_PASSWORD: str = Field(default="admin123")


settings = Settings()
