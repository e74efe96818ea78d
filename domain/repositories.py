"""Domain Repository Interfaces"""
from abc import ABC, abstractmethod
from typing import Optional, List
from uuid import UUID

from domain.auth import UserInDB
from domain.entities import Property, Room, InventoryUnit, Booking, Due, Receipt, BedTransfer
from domain.enums import ProviderCategory
from domain.notifications import NotificationRecord, ProviderSettings
from domain.vendors import Vendor, VendorPayout


class UnitOfWork(ABC):
    """Groups repository writes into one atomic step.

    Leaving the ``async with`` block normally keeps every write made inside it;
    leaving it with an exception undoes all of them.
    """

    @abstractmethod
    async def __aenter__(self) -> "UnitOfWork":
        pass

    @abstractmethod
    async def __aexit__(self, exc_type, exc, tb) -> bool:
        pass


class PropertyRepository(ABC):
    """Repository interface for hostels and reading rooms"""

    @abstractmethod
    async def save(self, prop: Property) -> Property:
        pass

    @abstractmethod
    async def find_by_id(self, property_id: UUID) -> Optional[Property]:
        pass

    @abstractmethod
    async def find_by_vendor(self, vendor_id: UUID) -> List[Property]:
        pass

    @abstractmethod
    async def find_all(self) -> List[Property]:
        pass


class RoomRepository(ABC):

    @abstractmethod
    async def save(self, room: Room) -> Room:
        pass

    @abstractmethod
    async def find_by_id(self, room_id: UUID) -> Optional[Room]:
        pass

    @abstractmethod
    async def find_by_property(self, property_id: UUID) -> List[Room]:
        pass


class InventoryUnitRepository(ABC):
    """Repository interface for beds and seats"""

    @abstractmethod
    async def save(self, unit: InventoryUnit) -> InventoryUnit:
        """Insert a new unit"""
        pass

    @abstractmethod
    async def find_by_id(self, unit_id: UUID) -> Optional[InventoryUnit]:
        pass

    @abstractmethod
    async def find_by_room(self, room_id: UUID) -> List[InventoryUnit]:
        pass

    @abstractmethod
    async def find_by_property(self, property_id: UUID) -> List[InventoryUnit]:
        pass

    @abstractmethod
    async def update(self, unit: InventoryUnit) -> InventoryUnit:
        """Write the unit back; raises ConcurrencyConflictError on a stale version"""
        pass


class BookingRepository(ABC):
    """Repository interface for Booking Aggregate"""

    @abstractmethod
    async def save(self, booking: Booking) -> Booking:
        pass

    @abstractmethod
    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        pass

    @abstractmethod
    async def find_by_user(self, user_id: UUID) -> List[Booking]:
        pass

    @abstractmethod
    async def find_by_unit(self, unit_id: UUID) -> List[Booking]:
        pass

    @abstractmethod
    async def find_by_room(self, room_id: UUID) -> List[Booking]:
        pass

    @abstractmethod
    async def find_by_property(self, property_id: UUID) -> List[Booking]:
        pass

    @abstractmethod
    async def find_all(self) -> List[Booking]:
        pass

    @abstractmethod
    async def update(self, booking: Booking) -> Booking:
        """Write the booking back; raises ConcurrencyConflictError on a stale version"""
        pass


class DueRepository(ABC):

    @abstractmethod
    async def save(self, due: Due) -> Due:
        pass

    @abstractmethod
    async def find_by_id(self, due_id: UUID) -> Optional[Due]:
        pass

    @abstractmethod
    async def find_by_booking(self, booking_id: UUID) -> List[Due]:
        pass

    @abstractmethod
    async def find_by_unit(self, unit_id: UUID) -> List[Due]:
        pass

    @abstractmethod
    async def find_all(self) -> List[Due]:
        pass

    @abstractmethod
    async def update(self, due: Due) -> Due:
        pass


class ReceiptRepository(ABC):
    """Append-only store of receipts"""

    @abstractmethod
    async def save(self, receipt: Receipt) -> Receipt:
        pass

    @abstractmethod
    async def find_by_booking(self, booking_id: UUID) -> List[Receipt]:
        pass

    @abstractmethod
    async def find_all(self) -> List[Receipt]:
        pass


class TransferRepository(ABC):

    @abstractmethod
    async def save(self, transfer: BedTransfer) -> BedTransfer:
        pass

    @abstractmethod
    async def find_by_booking(self, booking_id: UUID) -> List[BedTransfer]:
        pass

    @abstractmethod
    async def find_all(self) -> List[BedTransfer]:
        pass


class VendorRepository(ABC):

    @abstractmethod
    async def save(self, vendor: Vendor) -> Vendor:
        pass

    @abstractmethod
    async def find_by_id(self, vendor_id: UUID) -> Optional[Vendor]:
        pass

    @abstractmethod
    async def find_all(self) -> List[Vendor]:
        pass

    @abstractmethod
    async def update(self, vendor: Vendor) -> Vendor:
        pass


class PayoutRepository(ABC):

    @abstractmethod
    async def save(self, payout: VendorPayout) -> VendorPayout:
        pass

    @abstractmethod
    async def find_by_vendor(self, vendor_id: UUID) -> List[VendorPayout]:
        pass

    @abstractmethod
    async def find_all(self) -> List[VendorPayout]:
        pass


class UserRepository(ABC):

    @abstractmethod
    async def save(self, user: UserInDB) -> UserInDB:
        pass

    @abstractmethod
    async def find_by_id(self, user_id: UUID) -> Optional[UserInDB]:
        pass

    @abstractmethod
    async def find_by_username(self, username: str) -> Optional[UserInDB]:
        pass

    @abstractmethod
    async def find_all(self) -> List[UserInDB]:
        pass

    @abstractmethod
    async def update(self, user: UserInDB) -> UserInDB:
        pass


class NotificationRepository(ABC):

    @abstractmethod
    async def save(self, record: NotificationRecord) -> NotificationRecord:
        pass

    @abstractmethod
    async def find_page(self, offset: int, limit: int) -> List[NotificationRecord]:
        """Newest first"""
        pass

    @abstractmethod
    async def count(self) -> int:
        pass

    @abstractmethod
    async def find_all(self) -> List[NotificationRecord]:
        pass


class ProviderSettingsRepository(ABC):

    @abstractmethod
    async def save(self, settings: ProviderSettings) -> ProviderSettings:
        """Insert or replace the settings for (category, provider)"""
        pass

    @abstractmethod
    async def find(self, category: ProviderCategory, provider: str) -> Optional[ProviderSettings]:
        pass

    @abstractmethod
    async def find_by_category(self, category: ProviderCategory) -> List[ProviderSettings]:
        pass

    @abstractmethod
    async def delete(self, category: ProviderCategory, provider: str) -> bool:
        pass
