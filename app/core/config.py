from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# -------------------------------------------------
# Explicitly load .env (CRITICAL)
# -------------------------------------------------

BASE_DIR = Path(__file__).resolve().parent.parent.parent
ENV_PATH = BASE_DIR / ".env"

load_dotenv(dotenv_path=ENV_PATH)


class Settings(BaseSettings):
    DATABASE_URL: str
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Connection pool (one per process, created at startup)
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = Field(default=10, description="Number of pooled database connections")
    DB_MAX_OVERFLOW: int = Field(default=0, description="Connections allowed beyond DB_POOL_SIZE")

    # Development helpers; use alembic in production
    AUTO_CREATE_TABLES: bool = False
    SEED_SAMPLE_DATA: bool = False

    # Comma-separated list, "*" allows any origin
    CORS_ORIGINS: str = "*"

    DEFAULT_PAGE_SIZE: int = Field(default=20, ge=1)
    MAX_PAGE_SIZE: int = Field(default=100, ge=1)

    PAYMENT_REFERENCE_MAX_ATTEMPTS: int = Field(
        default=3, ge=1, description="Reference regenerations allowed on a unique-constraint collision"
    )

    class Config:
        extra = "ignore"
        env_file = str(ENV_PATH)
        env_file_encoding = "utf-8"

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
