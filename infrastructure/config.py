"""
Environment configuration for the booking API.
Values come from environment variables or a local .env file.
"""
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

# Load environment variables from .env file if it exists
env_path = Path('.') / '.env'
load_dotenv(dotenv_path=env_path)


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Application
    APP_NAME: str = "Cabin & Hostel Booking API"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Security
    SECRET_KEY: str = Field(default="change-me-in-production", alias="JWT_SECRET_KEY")
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Booking rules
    CURRENCY: str = "INR"
    DUE_DATE_OFFSET_DAYS: int = Field(default=3, ge=0)
    ENDING_SOON_DAYS: int = Field(default=7, ge=0)
    DEFAULT_COMMISSION_RATE: Decimal = Decimal("0.20")
    UNPAID_BOOKING_TIMEOUT_MINUTES: int = Field(default=5, ge=1)

    # Payment gateway
    RAZORPAY_KEY_ID: Optional[str] = None
    RAZORPAY_KEY_SECRET: Optional[str] = None

    # Push notifications
    FCM_PROJECT_ID: Optional[str] = None
    FCM_SERVICE_ACCOUNT_FILE: Optional[str] = None
    FCM_TIMEOUT_SECONDS: float = 10.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        populate_by_name = True
        extra = "ignore"

    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() in ("development", "dev", "local", "test")

    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() in ("production", "prod")

    def fcm_enabled(self) -> bool:
        return bool(self.FCM_PROJECT_ID and self.FCM_SERVICE_ACCOUNT_FILE)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
