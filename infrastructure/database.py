"""Application-wide in-memory database: one store shared by every repository"""
from uuid import UUID

from domain.enums import VendorStatus
from domain.vendors import Vendor
from infrastructure.repositories.in_memory_repositories import (
    InMemoryPropertyRepository, InMemoryRoomRepository, InMemoryInventoryUnitRepository,
    InMemoryBookingRepository, InMemoryDueRepository, InMemoryReceiptRepository, InMemoryTransferRepository,
    InMemoryVendorRepository, InMemoryPayoutRepository, InMemoryUserRepository, InMemoryNotificationRepository,
    InMemoryProviderSettingsRepository
)
from infrastructure.repositories.in_memory_store import InMemoryStore
from infrastructure.unit_of_work import InMemoryUnitOfWork

# Vendor owned by the demo "vendor" login
DEMO_VENDOR_ID = UUID("123e4567-e89b-12d3-a456-426614174100")

store = InMemoryStore()
store.vendors[DEMO_VENDOR_ID] = Vendor(
    vendor_id=DEMO_VENDOR_ID,
    business_name="Demo Study Spaces",
    status=VendorStatus.APPROVED
)

property_repo = InMemoryPropertyRepository(store)
room_repo = InMemoryRoomRepository(store)
unit_repo = InMemoryInventoryUnitRepository(store)
booking_repo = InMemoryBookingRepository(store)
due_repo = InMemoryDueRepository(store)
receipt_repo = InMemoryReceiptRepository(store)
transfer_repo = InMemoryTransferRepository(store)
vendor_repo = InMemoryVendorRepository(store)
payout_repo = InMemoryPayoutRepository(store)
user_repo = InMemoryUserRepository(store)
notification_repo = InMemoryNotificationRepository(store)
provider_settings_repo = InMemoryProviderSettingsRepository(store)


def unit_of_work() -> InMemoryUnitOfWork:
    return InMemoryUnitOfWork(store)
