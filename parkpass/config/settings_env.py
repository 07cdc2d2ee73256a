from typing import Literal
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Development
    DEV_MODE: bool = Field(default=True, description="Enable debug mode")

    # Database
    DATABASE_URL: str = Field(default="sqlite:///./parkpass.db", description="Database connection URL")
    ASYNC_DATABASE_URL: str = Field(default="sqlite+aiosqlite:///./parkpass.db", description="Async database URL")

    # FastAPI
    FASTAPI_HOST: str = Field(default="localhost", description="FastAPI host")
    FASTAPI_PORT: int = Field(default=8080, description="FastAPI port")

    # Scheduling
    TIMEZONE: str = Field(default="Asia/Bangkok", description="Local timezone of the parking locations")
    MIN_REMAINING_MINUTES: int = Field(default=30, ge=0, description="Minimum minutes left in a started slot")
    DRAFT_TTL_HOURS: int = Field(default=24, gt=0, description="Lifetime of a draft booking")

    # Payment verification
    OCR_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0, description="Upper bound for one OCR call")

    # Access codes
    PIN_STRATEGY: Literal["deterministic", "random"] = Field(default="deterministic", description="How PINs are generated")
    QR_BOX_SIZE: int = Field(default=10, gt=0, description="Pixel size of one QR module")
    QR_BORDER: int = Field(default=4, ge=0, description="QR quiet zone in modules")


# Create settings instance
settings = Settings()
