"""In-Memory Repository Implementations"""
from typing import Optional, List, Any
from uuid import UUID

from domain.auth import UserInDB
from domain.entities import Property, Room, InventoryUnit, Booking, Due, Receipt, BedTransfer
from domain.enums import ProviderCategory
from domain.exceptions import ConcurrencyConflictError, ResourceNotFoundError
from domain.notifications import NotificationRecord, ProviderSettings
from domain.repositories import (
    PropertyRepository, RoomRepository, InventoryUnitRepository, BookingRepository, DueRepository,
    ReceiptRepository, TransferRepository, VendorRepository, PayoutRepository, UserRepository,
    NotificationRepository, ProviderSettingsRepository
)
from domain.vendors import Vendor, VendorPayout
from infrastructure.repositories.in_memory_store import InMemoryStore


class _InMemoryTable:
    """Row access shared by the in-memory repositories.

    Rows are copied on the way in and on the way out, so callers never hold a
    reference into the store and every change has to go through ``update``.
    """

    table_name: str = ""
    entity_name: str = ""
    key_attr: str = ""
    versioned: bool = False

    def __init__(self, store: Optional[InMemoryStore] = None):
        self._store = store or InMemoryStore()

    @property
    def _rows(self) -> dict:
        return self._store.table(self.table_name)

    def _key(self, entity) -> Any:
        return getattr(entity, self.key_attr)

    def _get(self, key) -> Optional[Any]:
        row = self._rows.get(key)
        return row.model_copy(deep=True) if row is not None else None

    def _all(self) -> List[Any]:
        return [row.model_copy(deep=True) for row in self._rows.values()]

    def _where(self, predicate) -> List[Any]:
        return [row.model_copy(deep=True) for row in self._rows.values() if predicate(row)]

    def _insert(self, entity):
        self._rows[self._key(entity)] = entity.model_copy(deep=True)
        return entity

    def _replace(self, entity):
        key = self._key(entity)
        stored = self._rows.get(key)
        if stored is None:
            raise ResourceNotFoundError(self.entity_name, key)
        if self.versioned:
            if stored.version != entity.version:
                raise ConcurrencyConflictError(self.entity_name, key, entity.version, stored.version)
            entity.version += 1
        self._rows[key] = entity.model_copy(deep=True)
        return entity


class InMemoryPropertyRepository(_InMemoryTable, PropertyRepository):
    table_name = "properties"
    entity_name = "Property"
    key_attr = "property_id"

    async def save(self, prop: Property) -> Property:
        return self._insert(prop)

    async def find_by_id(self, property_id: UUID) -> Optional[Property]:
        return self._get(property_id)

    async def find_by_vendor(self, vendor_id: UUID) -> List[Property]:
        return self._where(lambda p: p.vendor_id == vendor_id)

    async def find_all(self) -> List[Property]:
        return self._all()


class InMemoryRoomRepository(_InMemoryTable, RoomRepository):
    table_name = "rooms"
    entity_name = "Room"
    key_attr = "room_id"

    async def save(self, room: Room) -> Room:
        return self._insert(room)

    async def find_by_id(self, room_id: UUID) -> Optional[Room]:
        return self._get(room_id)

    async def find_by_property(self, property_id: UUID) -> List[Room]:
        rooms = self._where(lambda r: r.property_id == property_id)
        return sorted(rooms, key=lambda r: (r.floor, r.room_number))


class InMemoryInventoryUnitRepository(_InMemoryTable, InventoryUnitRepository):
    table_name = "units"
    entity_name = "Unit"
    key_attr = "unit_id"
    versioned = True

    async def save(self, unit: InventoryUnit) -> InventoryUnit:
        return self._insert(unit)

    async def find_by_id(self, unit_id: UUID) -> Optional[InventoryUnit]:
        return self._get(unit_id)

    async def find_by_room(self, room_id: UUID) -> List[InventoryUnit]:
        units = self._where(lambda u: u.room_id == room_id)
        return sorted(units, key=lambda u: u.number)

    async def find_by_property(self, property_id: UUID) -> List[InventoryUnit]:
        return self._where(lambda u: u.property_id == property_id)

    async def update(self, unit: InventoryUnit) -> InventoryUnit:
        return self._replace(unit)


class InMemoryBookingRepository(_InMemoryTable, BookingRepository):
    table_name = "bookings"
    entity_name = "Booking"
    key_attr = "booking_id"
    versioned = True

    async def save(self, booking: Booking) -> Booking:
        return self._insert(booking)

    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        return self._get(booking_id)

    async def find_by_user(self, user_id: UUID) -> List[Booking]:
        return self._where(lambda b: b.user_id == user_id)

    async def find_by_unit(self, unit_id: UUID) -> List[Booking]:
        return self._where(lambda b: b.unit_id == unit_id)

    async def find_by_room(self, room_id: UUID) -> List[Booking]:
        return self._where(lambda b: b.room_id == room_id)

    async def find_by_property(self, property_id: UUID) -> List[Booking]:
        return self._where(lambda b: b.property_id == property_id)

    async def find_all(self) -> List[Booking]:
        return self._all()

    async def update(self, booking: Booking) -> Booking:
        return self._replace(booking)


class InMemoryDueRepository(_InMemoryTable, DueRepository):
    table_name = "dues"
    entity_name = "Due"
    key_attr = "due_id"
    versioned = True

    async def save(self, due: Due) -> Due:
        return self._insert(due)

    async def find_by_id(self, due_id: UUID) -> Optional[Due]:
        return self._get(due_id)

    async def find_by_booking(self, booking_id: UUID) -> List[Due]:
        return self._where(lambda d: d.booking_id == booking_id)

    async def find_by_unit(self, unit_id: UUID) -> List[Due]:
        return self._where(lambda d: d.unit_id == unit_id)

    async def find_all(self) -> List[Due]:
        return self._all()

    async def update(self, due: Due) -> Due:
        return self._replace(due)


class InMemoryReceiptRepository(_InMemoryTable, ReceiptRepository):
    table_name = "receipts"
    entity_name = "Receipt"
    key_attr = "receipt_id"

    async def save(self, receipt: Receipt) -> Receipt:
        if receipt.receipt_id in self._rows:
            raise ValueError("Receipts cannot be overwritten")
        return self._insert(receipt)

    async def find_by_booking(self, booking_id: UUID) -> List[Receipt]:
        receipts = self._where(lambda r: r.booking_id == booking_id)
        return sorted(receipts, key=lambda r: r.created_at)

    async def find_all(self) -> List[Receipt]:
        return self._all()


class InMemoryTransferRepository(_InMemoryTable, TransferRepository):
    table_name = "transfers"
    entity_name = "Transfer"
    key_attr = "transfer_id"

    async def save(self, transfer: BedTransfer) -> BedTransfer:
        return self._insert(transfer)

    async def find_by_booking(self, booking_id: UUID) -> List[BedTransfer]:
        return self._where(lambda t: t.booking_id == booking_id)

    async def find_all(self) -> List[BedTransfer]:
        return self._all()


class InMemoryVendorRepository(_InMemoryTable, VendorRepository):
    table_name = "vendors"
    entity_name = "Vendor"
    key_attr = "vendor_id"
    versioned = True

    async def save(self, vendor: Vendor) -> Vendor:
        return self._insert(vendor)

    async def find_by_id(self, vendor_id: UUID) -> Optional[Vendor]:
        return self._get(vendor_id)

    async def find_all(self) -> List[Vendor]:
        return self._all()

    async def update(self, vendor: Vendor) -> Vendor:
        return self._replace(vendor)


class InMemoryPayoutRepository(_InMemoryTable, PayoutRepository):
    table_name = "payouts"
    entity_name = "Payout"
    key_attr = "payout_id"

    async def save(self, payout: VendorPayout) -> VendorPayout:
        return self._insert(payout)

    async def find_by_vendor(self, vendor_id: UUID) -> List[VendorPayout]:
        payouts = self._where(lambda p: p.vendor_id == vendor_id)
        return sorted(payouts, key=lambda p: p.created_at, reverse=True)

    async def find_all(self) -> List[VendorPayout]:
        return self._all()


class InMemoryUserRepository(_InMemoryTable, UserRepository):
    table_name = "users"
    entity_name = "User"
    key_attr = "user_id"

    async def save(self, user: UserInDB) -> UserInDB:
        existing = await self.find_by_username(user.username)
        if existing and existing.user_id != user.user_id:
            raise ValueError(f"Username '{user.username}' is already taken")
        return self._insert(user)

    async def find_by_id(self, user_id: UUID) -> Optional[UserInDB]:
        return self._get(user_id)

    async def find_by_username(self, username: str) -> Optional[UserInDB]:
        for user in self._rows.values():
            if user.username == username:
                return user.model_copy(deep=True)
        return None

    async def find_all(self) -> List[UserInDB]:
        return self._all()

    async def update(self, user: UserInDB) -> UserInDB:
        return self._replace(user)


class InMemoryNotificationRepository(_InMemoryTable, NotificationRepository):
    table_name = "notifications"
    entity_name = "Notification"
    key_attr = "notification_id"

    async def save(self, record: NotificationRecord) -> NotificationRecord:
        return self._insert(record)

    async def find_page(self, offset: int, limit: int) -> List[NotificationRecord]:
        records = sorted(self._all(), key=lambda r: r.sent_at, reverse=True)
        return records[offset:offset + limit]

    async def count(self) -> int:
        return len(self._rows)

    async def find_all(self) -> List[NotificationRecord]:
        return self._all()


class InMemoryProviderSettingsRepository(_InMemoryTable, ProviderSettingsRepository):
    table_name = "provider_settings"
    entity_name = "ProviderSettings"

    def _key(self, entity) -> Any:
        return (entity.category, entity.provider)

    async def save(self, settings: ProviderSettings) -> ProviderSettings:
        return self._insert(settings)

    async def find(self, category: ProviderCategory, provider: str) -> Optional[ProviderSettings]:
        return self._get((category, provider.lower()))

    async def find_by_category(self, category: ProviderCategory) -> List[ProviderSettings]:
        return self._where(lambda s: s.category == category)

    async def delete(self, category: ProviderCategory, provider: str) -> bool:
        key = (category, provider.lower())
        if key in self._rows:
            del self._rows[key]
            return True
        return False
