"""Domain Entities - Notifications and provider settings"""
from pydantic import BaseModel, Field
from uuid import UUID, uuid4
from datetime import datetime
from typing import Optional, List, Dict

from domain.enums import NotificationTargetType, NotificationType, NotificationStatus, ProviderCategory


class PushMessage(BaseModel):
    """Value Object for one push payload sent to many device tokens"""
    title: str = Field(min_length=1, max_length=200)
    body: str = Field(min_length=1, max_length=2000)
    data: Dict[str, str] = {}

    class Config:
        frozen = True


class PushResult(BaseModel):
    """Outcome of a multicast send"""
    success_count: int = 0
    failure_count: int = 0
    failed_tokens: List[str] = []


class NotificationRecord(BaseModel):
    """History entry for a sent notification"""
    notification_id: UUID = Field(default_factory=uuid4)
    title: str
    body: str
    type: NotificationType = NotificationType.GENERAL
    target_type: NotificationTargetType
    target_ids: List[str] = []
    vendor_id: Optional[UUID] = None
    offer_data: Dict[str, str] = {}
    sent_count: int = 0
    delivered_count: int = 0
    opened_count: int = 0
    status: NotificationStatus = NotificationStatus.SENT
    error: Optional[str] = None
    created_by: Optional[UUID] = None
    sent_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        from_attributes = True


# Required keys per provider; secrets are never echoed back in full
PROVIDER_REQUIRED_KEYS: Dict[str, List[str]] = {
    "smtp": ["host", "port", "username", "password"],
    "mailgun": ["api_key", "domain"],
    "twilio": ["account_sid", "auth_token", "from_number"],
    "msg91": ["api_key", "sender_id"],
    "razorpay": ["key_id", "key_secret"],
}

PROVIDER_CATEGORIES: Dict[str, ProviderCategory] = {
    "smtp": ProviderCategory.EMAIL,
    "mailgun": ProviderCategory.EMAIL,
    "twilio": ProviderCategory.SMS,
    "msg91": ProviderCategory.SMS,
    "razorpay": ProviderCategory.PAYMENT_GATEWAY,
}

_SECRET_MARKERS = ("secret", "password", "token")
MASK_PREFIX = "*" * 8


def is_secret_key(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in _SECRET_MARKERS) or lowered.endswith("key")


class ProviderSettings(BaseModel):
    """Stored configuration for an email, SMS or payment provider"""
    category: ProviderCategory
    provider: str
    is_active: bool = True
    settings: Dict[str, str] = {}
    updated_by: Optional[str] = None
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        from_attributes = True

    @staticmethod
    def create(
        category: ProviderCategory,
        provider: str,
        settings: Dict[str, str],
        is_active: bool = True,
        updated_by: Optional[str] = None
    ) -> "ProviderSettings":
        provider = provider.lower()
        expected = PROVIDER_CATEGORIES.get(provider)
        if expected is None:
            raise ValueError(f"Unknown provider '{provider}'")
        if expected != category:
            raise ValueError(f"Provider '{provider}' belongs to {expected.value}, not {category.value}")

        missing = [k for k in PROVIDER_REQUIRED_KEYS[provider] if not str(settings.get(k, "")).strip()]
        if missing:
            raise ValueError(f"Missing required settings for {provider}: {', '.join(missing)}")

        return ProviderSettings(
            category=category,
            provider=provider,
            is_active=is_active,
            settings={k: str(v) for k, v in settings.items()},
            updated_by=updated_by
        )

    def masked_settings(self) -> Dict[str, str]:
        masked = {}
        for key, value in self.settings.items():
            if is_secret_key(key) and value:
                masked[key] = MASK_PREFIX + value[-4:] if len(value) > 4 else MASK_PREFIX
            else:
                masked[key] = value
        return masked
