from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class ENV(BaseSettings):
    model_config = SettingsConfigDict(validate_default=True, env_file=".env", env_file_encoding="utf-8")

    DEBUG: bool = False

    # Either a full SQLAlchemy url or the POSTGRES_* parts
    DATABASE_URL: str | None = None
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: str = "5432"
    POSTGRES_NAME: str = "taponce"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASS: str = ""

    ADMIN_API_KEY: str

    OVERRIDE_COMMISSION_PERCENT: Decimal = Decimal("2")
    COMMISSION_CREDIT_STATUS: Literal["delivered", "paid"] = "delivered"
    ALLOW_REJECT_AFTER_APPROVAL: bool = False
    DEFAULT_BASE_MSP: Decimal = Decimal("599")
    REQUEST_TIMEOUT_SECONDS: float = 10.0
    MAX_HIERARCHY_DEPTH: int = 32

    PROVISIONING_URL: str | None = None
    PROVISIONING_API_KEY: str | None = None
    NOTIFY_URL: str | None = None
    PUBLIC_PROFILE_BASE_URL: str = "https://taponce.in"


class Settings():
    def __init__(self):
        self.env = ENV()

    def generate_database_url(self) -> str:
        if self.env.DATABASE_URL:
            return self.env.DATABASE_URL
        return f"postgresql+asyncpg://{self.env.POSTGRES_USER}:{self.env.POSTGRES_PASS}@{self.env.POSTGRES_HOST}:{self.env.POSTGRES_PORT}/{self.env.POSTGRES_NAME}"


@lru_cache
def get_settings() -> Settings:
    return Settings()
