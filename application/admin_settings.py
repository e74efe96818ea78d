"""Application Services - Provider configuration"""
import logging
from typing import Dict, List, Optional

from domain.enums import ProviderCategory
from domain.exceptions import ValidationFailedError
from domain.notifications import ProviderSettings, MASK_PREFIX
from domain.repositories import ProviderSettingsRepository

logger = logging.getLogger(__name__)


class AdminSettingsService:
    """Email, SMS and payment gateway settings, one record per provider"""

    def __init__(self, repository: ProviderSettingsRepository):
        self.repository = repository

    async def upsert(
        self,
        category: ProviderCategory,
        provider: str,
        settings: Dict[str, str],
        is_active: bool = True,
        updated_by: Optional[str] = None
    ) -> ProviderSettings:
        existing = await self.repository.find(category, provider)
        # Omitted or still-masked keys keep their stored values
        submitted = {k: v for k, v in settings.items() if not str(v).startswith(MASK_PREFIX)}
        merged = {**(existing.settings if existing else {}), **submitted}
        try:
            record = ProviderSettings.create(category, provider, merged, is_active, updated_by)
        except ValueError as e:
            raise ValidationFailedError(f"Invalid {category.value} settings: {e}")

        if record.is_active:
            # Only one provider per category is active at a time
            for other in await self.repository.find_by_category(category):
                if other.provider != record.provider and other.is_active:
                    other.is_active = False
                    await self.repository.save(other)

        logger.info("%s settings for %s updated by %s", category.value, record.provider, updated_by)
        return await self.repository.save(record)

    async def get(self, category: ProviderCategory, provider: str) -> Optional[ProviderSettings]:
        return await self.repository.find(category, provider)

    async def get_active(self, category: ProviderCategory) -> Optional[ProviderSettings]:
        for record in await self.repository.find_by_category(category):
            if record.is_active:
                return record
        return None

    async def list_settings(self, category: ProviderCategory) -> List[ProviderSettings]:
        return await self.repository.find_by_category(category)

    async def delete(self, category: ProviderCategory, provider: str) -> bool:
        return await self.repository.delete(category, provider)
