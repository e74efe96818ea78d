"""Application Services - Business use cases"""
import logging
from uuid import UUID
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Set, Tuple, Dict, Any

from dateutil.relativedelta import relativedelta

from domain.entities import Property, Room, InventoryUnit, Booking, Due, Receipt, BedTransfer
from domain.enums import (
    PropertyKind, BookingStatus, PaymentStatus, BookingDuration, DueStatus, GenderPolicy,
    PaymentMethod, InventoryKind
)
from domain.exceptions import (
    ResourceNotFoundError, ValidationFailedError, UnitUnavailableError, InvalidStateTransitionError,
    PaymentVerificationError, PaymentGatewayError
)
from domain.gateways import PaymentGateway
from domain.repositories import (
    PropertyRepository, RoomRepository, InventoryUnitRepository, BookingRepository, DueRepository,
    ReceiptRepository, TransferRepository, UnitOfWork
)
from domain.value_objects import DateRange

logger = logging.getLogger(__name__)

UNPAID_CANCELLATION_REASON = "Payment not completed"


def _date_range(start_date: date, end_date: date) -> DateRange:
    if end_date < start_date:
        raise ValidationFailedError(
            "End date must not be before start date",
            {"start_date": start_date.isoformat(), "end_date": end_date.isoformat()}
        )
    return DateRange(start_date=start_date, end_date=end_date)


class InventoryService:
    """Properties, rooms, beds and seats, and the availability query over them"""

    def __init__(self,
                 properties: PropertyRepository,
                 rooms: RoomRepository,
                 units: InventoryUnitRepository,
                 bookings: BookingRepository,
                 dues: DueRepository):
        self.properties = properties
        self.rooms = rooms
        self.units = units
        self.bookings = bookings
        self.dues = dues

    # ==================== PRICING ====================
    @staticmethod
    def compute_end_date(start_date: date, duration: BookingDuration, count: int) -> date:
        """End of a stay of ``count`` periods starting on ``start_date``"""
        if count < 1:
            raise ValidationFailedError("Duration count must be at least 1")
        if duration == BookingDuration.MONTHLY:
            return start_date + relativedelta(months=count)
        if duration == BookingDuration.WEEKLY:
            return start_date + relativedelta(weeks=count)
        return start_date + relativedelta(days=count)

    @staticmethod
    def quote_price(monthly_price: Decimal, duration: BookingDuration, count: int) -> Decimal:
        """Price a stay from the unit's monthly price"""
        if count < 1:
            raise ValidationFailedError("Duration count must be at least 1")
        if duration == BookingDuration.DAILY:
            price = monthly_price / Decimal("30") * count
        elif duration == BookingDuration.WEEKLY:
            price = monthly_price / Decimal("4") * count
        else:
            price = monthly_price * count
        return price.quantize(Decimal("1"), rounding=ROUND_HALF_UP)

    # ==================== PROPERTIES & ROOMS ====================
    async def create_property(
        self,
        kind: PropertyKind,
        vendor_id: UUID,
        name: str,
        city: Optional[str] = None,
        gender: GenderPolicy = GenderPolicy.CO_ED
    ) -> Property:
        if not name or not name.strip():
            raise ValidationFailedError("Property name is required")
        prop = Property(kind=kind, vendor_id=vendor_id, name=name.strip(), city=city, gender=gender)
        logger.info("Created %s property %s for vendor %s", kind.value, prop.property_id, vendor_id)
        return await self.properties.save(prop)

    async def get_property(self, property_id: UUID) -> Optional[Property]:
        return await self.properties.find_by_id(property_id)

    async def list_properties(self, vendor_id: Optional[UUID] = None) -> List[Property]:
        if vendor_id:
            return await self.properties.find_by_vendor(vendor_id)
        return await self.properties.find_all()

    async def create_room(self, property_id: UUID, room_number: str, floor: int = 0) -> Room:
        prop = await self.properties.find_by_id(property_id)
        if not prop:
            raise ResourceNotFoundError("Property", property_id)
        existing = await self.rooms.find_by_property(property_id)
        if any(r.room_number == room_number for r in existing):
            raise ValidationFailedError(f"Room {room_number} already exists in {prop.name}")
        return await self.rooms.save(Room(property_id=property_id, room_number=room_number, floor=floor))

    async def get_room(self, room_id: UUID) -> Optional[Room]:
        return await self.rooms.find_by_id(room_id)

    async def list_rooms(self, property_id: UUID) -> List[Room]:
        return await self.rooms.find_by_property(property_id)

    # ==================== UNITS ====================
    async def create_unit(
        self,
        room_id: UUID,
        number: int,
        price: Decimal,
        category: str = "standard",
        sharing_type: Optional[str] = None
    ) -> InventoryUnit:
        room = await self.rooms.find_by_id(room_id)
        if not room:
            raise ResourceNotFoundError("Room", room_id)
        prop = await self.properties.find_by_id(room.property_id)
        if not prop:
            raise ResourceNotFoundError("Property", room.property_id)

        existing = await self.units.find_by_room(room_id)
        if any(u.number == number for u in existing):
            raise ValidationFailedError(f"Unit {number} already exists in room {room.room_number}")

        unit = InventoryUnit(
            kind=prop.unit_kind(),
            property_id=prop.property_id,
            room_id=room_id,
            number=number,
            price=price,
            category=category,
            sharing_type=sharing_type
        )
        return await self.units.save(unit)

    async def bulk_create_units(
        self,
        room_id: UUID,
        count: int,
        price: Decimal,
        category: str = "standard",
        sharing_type: Optional[str] = None
    ) -> List[InventoryUnit]:
        """Add ``count`` units numbered after the room's highest existing number"""
        if count < 1:
            raise ValidationFailedError("Count must be at least 1")
        existing = await self.units.find_by_room(room_id)
        start = max((u.number for u in existing), default=0) + 1
        return [
            await self.create_unit(room_id, number, price, category, sharing_type)
            for number in range(start, start + count)
        ]

    async def get_unit(self, unit_id: UUID) -> Optional[InventoryUnit]:
        return await self.units.find_by_id(unit_id)

    async def list_room_units(self, room_id: UUID) -> List[InventoryUnit]:
        return await self.units.find_by_room(room_id)

    async def block_unit(self, unit_id: UUID, reason: str) -> Optional[InventoryUnit]:
        unit = await self.units.find_by_id(unit_id)
        if not unit:
            return None
        try:
            unit.block(reason)
        except ValueError as e:
            raise ValidationFailedError(f"Cannot block unit: {e}")
        logger.info("Blocked unit %s: %s", unit_id, reason)
        return await self.units.update(unit)

    async def unblock_unit(self, unit_id: UUID) -> Optional[InventoryUnit]:
        unit = await self.units.find_by_id(unit_id)
        if not unit:
            return None
        unit.unblock()
        return await self.units.update(unit)

    # ==================== AVAILABILITY ====================
    async def get_available_units(self, room_id: UUID, start_date: date, end_date: date) -> List[InventoryUnit]:
        """Units of the room that are not blocked and not held for any day of the range"""
        _date_range(start_date, end_date)
        units = [u for u in await self.units.find_by_room(room_id) if not u.is_blocked]
        booked = await self._booked_unit_ids(await self.bookings.find_by_room(room_id), start_date, end_date)
        return [u for u in units if u.unit_id not in booked]

    async def check_unit_availability(self, unit_id: UUID, start_date: date, end_date: date) -> bool:
        _date_range(start_date, end_date)
        unit = await self.units.find_by_id(unit_id)
        if not unit:
            raise ResourceNotFoundError("Unit", unit_id)
        if unit.is_blocked:
            return False
        booked = await self._booked_unit_ids(await self.bookings.find_by_unit(unit_id), start_date, end_date)
        return unit_id not in booked

    async def _booked_unit_ids(self, bookings: List[Booking], start_date: date, end_date: date) -> Set[UUID]:
        booked: Set[UUID] = set()
        for booking in bookings:
            if not booking.is_active() or not booking.date_range.overlaps(start_date, end_date):
                continue
            if booking.payment_status == PaymentStatus.ADVANCE_PAID and await self._released_early(booking, start_date):
                continue
            booked.add(booking.unit_id)
        return booked

    async def _released_early(self, booking: Booking, start_date: date) -> bool:
        """An advance-paid stay whose paid-for days end before ``start_date`` no longer holds the unit"""
        dues = await self.dues.find_by_booking(booking.booking_id)
        return any(d.unit_id == booking.unit_id and d.releases_unit_before(start_date) for d in dues)

    async def ensure_unit_free(
        self,
        unit: Optional[InventoryUnit],
        date_range: DateRange,
        exclude_booking_id: Optional[UUID] = None,
        require_flag: bool = True
    ) -> InventoryUnit:
        """Raise UnitUnavailableError unless the unit can take a booking for the range"""
        if unit is None:
            raise UnitUnavailableError("The selected unit does not exist")
        if unit.is_blocked or (require_flag and not unit.is_available):
            raise UnitUnavailableError(
                f"The selected unit {unit.number} is not available",
                {"unit_id": str(unit.unit_id)}
            )
        for booking in await self.bookings.find_by_unit(unit.unit_id):
            if booking.booking_id == exclude_booking_id:
                continue
            if booking.occupies(unit.unit_id, date_range.start_date, date_range.end_date):
                raise UnitUnavailableError(
                    f"The selected unit {unit.number} is already booked for the selected dates",
                    {"unit_id": str(unit.unit_id), "conflicting_booking": booking.serial_number}
                )
        return unit

    async def reserve(self, unit: InventoryUnit) -> InventoryUnit:
        try:
            unit.occupy()
        except ValueError as e:
            raise UnitUnavailableError(str(e), {"unit_id": str(unit.unit_id)})
        return await self.units.update(unit)

    async def release(self, unit: InventoryUnit) -> InventoryUnit:
        unit.release()
        return await self.units.update(unit)


class BookingService:
    """Service for Booking business use cases"""

    def __init__(self,
                 bookings: BookingRepository,
                 units: InventoryUnitRepository,
                 dues: DueRepository,
                 receipts: ReceiptRepository,
                 transfers: TransferRepository,
                 properties: PropertyRepository,
                 inventory: InventoryService,
                 uow: UnitOfWork,
                 payment_gateway: Optional[PaymentGateway] = None,
                 due_date_offset_days: int = 3,
                 unpaid_timeout: timedelta = timedelta(minutes=5)):
        self.bookings = bookings
        self.units = units
        self.dues = dues
        self.receipts = receipts
        self.transfers = transfers
        self.properties = properties
        self.inventory = inventory
        self.uow = uow
        self.payment_gateway = payment_gateway
        self.due_date_offset_days = due_date_offset_days
        self.unpaid_timeout = unpaid_timeout

    # ==================== CREATE ====================
    async def create_booking(
        self,
        user_id: UUID,
        unit_id: UUID,
        start_date: date,
        end_date: Optional[date] = None,
        booking_duration: BookingDuration = BookingDuration.MONTHLY,
        duration_count: int = 1,
        total_price: Optional[Decimal] = None,
        advance_amount: Decimal = Decimal("0"),
        payment_method: Optional[PaymentMethod] = None,
        transaction_id: Optional[str] = None,
        gateway_order_id: Optional[str] = None,
        gateway_payment_id: Optional[str] = None,
        locker_included: bool = False,
        locker_price: Decimal = Decimal("0"),
        user_gender: Optional[str] = None,
        created_by: str = "SYSTEM",
        awaiting_payment: bool = False
    ) -> Booking:
        """Book a bed or seat: booking row, unit flag, receipt and due are written together"""
        unit = await self.units.find_by_id(unit_id)
        if not unit:
            raise ResourceNotFoundError("Unit", unit_id)
        prop = await self.properties.find_by_id(unit.property_id)
        if not prop:
            raise ResourceNotFoundError("Property", unit.property_id)
        if not prop.is_active:
            raise ValidationFailedError(f"{prop.name} is not accepting bookings")
        if not prop.admits(user_gender):
            raise ValidationFailedError(f"{prop.name} only accepts {prop.gender.value} residents")

        if end_date is None:
            end_date = InventoryService.compute_end_date(start_date, booking_duration, duration_count)
        date_range = _date_range(start_date, end_date)
        if total_price is None:
            total_price = InventoryService.quote_price(unit.price, booking_duration, duration_count)

        try:
            booking = Booking.create(
                kind=unit.kind,
                user_id=user_id,
                property_id=unit.property_id,
                room_id=unit.room_id,
                unit_id=unit.unit_id,
                date_range=date_range,
                total_price=total_price,
                advance_amount=advance_amount,
                booking_duration=booking_duration,
                duration_count=duration_count,
                payment_method=payment_method,
                transaction_id=transaction_id,
                gateway_order_id=gateway_order_id,
                gateway_payment_id=gateway_payment_id,
                locker_included=locker_included,
                locker_price=locker_price,
                created_by=created_by,
                awaiting_payment=awaiting_payment
            )
        except ValueError as e:
            raise ValidationFailedError(f"Cannot create booking: {e}")

        async with self.uow:
            # Re-read inside the unit of work so a concurrent booking is seen
            unit = await self.units.find_by_id(unit_id)
            await self.inventory.ensure_unit_free(unit, date_range)

            await self.bookings.save(booking)
            await self.inventory.reserve(unit)
            if booking.payment_status != PaymentStatus.PENDING:
                await self.receipts.save(Receipt.for_booking(booking, collected_by=created_by))
            if booking.payment_status == PaymentStatus.ADVANCE_PAID:
                await self.dues.save(Due.create_for_booking(booking, self.due_date_offset_days))

        logger.info(
            "Booking %s created for unit %s (%s, %s)",
            booking.serial_number, unit_id, booking.status.value, booking.payment_status.value,
            extra={"booking_id": booking.booking_id, "user_id": user_id}
        )
        return booking

    # ==================== QUERIES ====================
    async def get_booking(self, booking_id: UUID) -> Optional[Booking]:
        return await self.bookings.find_by_id(booking_id)

    async def get_user_bookings(self, user_id: UUID) -> List[Booking]:
        bookings = await self.bookings.find_by_user(user_id)
        return sorted(bookings, key=lambda b: b.created_at, reverse=True)

    async def get_room_bookings(self, room_id: UUID) -> List[Booking]:
        return await self.bookings.find_by_room(room_id)

    async def list_bookings(
        self,
        kind: Optional[InventoryKind] = None,
        property_id: Optional[UUID] = None,
        status: Optional[BookingStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        user_id: Optional[UUID] = None
    ) -> List[Booking]:
        bookings = await self.bookings.find_all()
        if kind:
            bookings = [b for b in bookings if b.kind == kind]
        if property_id:
            bookings = [b for b in bookings if b.property_id == property_id]
        if status:
            bookings = [b for b in bookings if b.status == status]
        if payment_status:
            bookings = [b for b in bookings if b.payment_status == payment_status]
        if user_id:
            bookings = [b for b in bookings if b.user_id == user_id]
        return sorted(bookings, key=lambda b: b.created_at, reverse=True)

    async def get_booking_receipts(self, booking_id: UUID) -> List[Receipt]:
        return await self.receipts.find_by_booking(booking_id)

    async def get_booking_dues(self, booking_id: UUID) -> List[Due]:
        return await self.dues.find_by_booking(booking_id)

    # ==================== CANCEL ====================
    async def cancel_booking(self, booking_id: UUID, reason: Optional[str] = None) -> Optional[Booking]:
        """Cancel and free the unit; cancelling twice returns the booking unchanged"""
        async with self.uow:
            booking = await self.bookings.find_by_id(booking_id)
            if not booking:
                return None
            if booking.status == BookingStatus.CANCELLED:
                logger.info("Booking %s is already cancelled", booking.serial_number)
                return booking

            await self._cancel_in_uow(booking, reason)

        logger.info("Booking %s cancelled: %s", booking.serial_number, reason or "no reason given",
                    extra={"booking_id": booking.booking_id})
        return booking

    async def expire_unpaid_bookings(
        self,
        now: Optional[datetime] = None,
        max_age: Optional[timedelta] = None
    ) -> List[Booking]:
        """Cancel bookings still unpaid after ``max_age`` and free their units.

        Each booking is cancelled in its own unit of work. A booking paid in the
        meantime is left alone.
        """
        now = now or datetime.utcnow()
        threshold = now - (max_age or self.unpaid_timeout)
        stale = [
            b for b in await self.bookings.find_all()
            if b.status == BookingStatus.PENDING and b.payment_status == PaymentStatus.PENDING
            and b.created_at < threshold
        ]

        expired = []
        for candidate in stale:
            async with self.uow:
                booking = await self.bookings.find_by_id(candidate.booking_id)
                if not booking or booking.status != BookingStatus.PENDING:
                    continue
                await self._cancel_in_uow(booking, UNPAID_CANCELLATION_REASON)
            expired.append(booking)

        if expired:
            logger.info("Expired %d unpaid booking(s) created before %s", len(expired), threshold.isoformat())
        return expired

    async def _cancel_in_uow(self, booking: Booking, reason: Optional[str]) -> None:
        unit = await self.units.find_by_id(booking.unit_id)
        if unit:
            await self.inventory.release(unit)

        booking.cancel(reason)
        await self.bookings.update(booking)

        for due in await self.dues.find_by_booking(booking.booking_id):
            if due.is_outstanding():
                due.cancel()
                await self.dues.update(due)

    # ==================== TRANSFER ====================
    async def get_transfer_options(self, booking_id: UUID, room_id: UUID) -> List[InventoryUnit]:
        """Units of ``room_id`` the booking could move to"""
        booking = await self.bookings.find_by_id(booking_id)
        if not booking:
            raise ResourceNotFoundError("Booking", booking_id)
        options = []
        for unit in await self.units.find_by_room(room_id):
            if unit.unit_id == booking.unit_id or not unit.is_bookable():
                continue
            try:
                await self.inventory.ensure_unit_free(unit, booking.date_range, exclude_booking_id=booking_id)
            except UnitUnavailableError:
                continue
            options.append(unit)
        return options

    async def transfer_booking(
        self,
        booking_id: UUID,
        to_room_id: UUID,
        to_unit_id: UUID,
        transferred_by: str = "SYSTEM"
    ) -> Optional[Booking]:
        """Move an active booking to another unit; all four writes succeed or none do"""
        async with self.uow:
            booking = await self.bookings.find_by_id(booking_id)
            if not booking:
                return None
            if not booking.is_active():
                raise InvalidStateTransitionError(
                    f"Cannot transfer booking in {booking.status.value} status",
                    {"booking_id": str(booking_id)}
                )

            new_unit = await self.units.find_by_id(to_unit_id)
            if not new_unit:
                raise ResourceNotFoundError("Unit", to_unit_id)
            if new_unit.room_id != to_room_id:
                raise ValidationFailedError("Destination unit is not in the selected room")
            if new_unit.unit_id == booking.unit_id:
                raise ValidationFailedError("Booking already holds this unit")
            if new_unit.property_id != booking.property_id:
                raise ValidationFailedError("Transfers are only allowed within the same property")
            await self.inventory.ensure_unit_free(new_unit, booking.date_range, exclude_booking_id=booking_id)

            from_room_id, from_unit_id = booking.room_id, booking.unit_id
            old_unit = await self.units.find_by_id(from_unit_id)

            booking.transfer_to(new_unit.room_id, new_unit.unit_id)
            await self.bookings.update(booking)
            if old_unit:
                await self.inventory.release(old_unit)
            await self.inventory.reserve(new_unit)

            for due in await self.dues.find_by_booking(booking_id):
                if due.is_outstanding():
                    due.reassign(new_unit.room_id, new_unit.unit_id)
                    await self.dues.update(due)

            await self.transfers.save(BedTransfer(
                booking_id=booking_id,
                property_id=booking.property_id,
                from_room_id=from_room_id,
                from_unit_id=from_unit_id,
                to_room_id=new_unit.room_id,
                to_unit_id=new_unit.unit_id,
                transferred_by=transferred_by
            ))

        logger.info("Booking %s transferred from unit %s to %s", booking.serial_number, from_unit_id, to_unit_id,
                    extra={"booking_id": booking_id})
        return booking

    async def list_transfers(self, property_id: Optional[UUID] = None) -> List[BedTransfer]:
        transfers = await self.transfers.find_all()
        if property_id:
            transfers = [t for t in transfers if t.property_id == property_id]
        return sorted(transfers, key=lambda t: t.transferred_at, reverse=True)

    # ==================== PAYMENT ====================
    async def confirm_gateway_payment(
        self,
        booking_id: UUID,
        order_id: str,
        payment_id: str,
        signature: str
    ) -> Optional[Booking]:
        """Apply a verified online payment; a booking already paid is returned unchanged"""
        if self.payment_gateway is None:
            raise PaymentGatewayError()

        booking = await self.bookings.find_by_id(booking_id)
        if not booking:
            return None
        if booking.status != BookingStatus.PENDING:
            logger.info("Payment callback for booking %s ignored, status is %s",
                        booking.serial_number, booking.status.value)
            return booking
        if booking.gateway_order_id and booking.gateway_order_id != order_id:
            logger.warning("Order id mismatch for booking %s", booking.serial_number)
            raise PaymentVerificationError(payment_id, order_id)
        if not self.payment_gateway.verify_payment_signature(order_id, payment_id, signature):
            raise PaymentVerificationError(payment_id, order_id)

        async with self.uow:
            booking = await self.bookings.find_by_id(booking_id)
            if booking.status != BookingStatus.PENDING:
                return booking
            try:
                booking.record_gateway_payment(order_id, payment_id, signature)
            except ValueError as e:
                raise ValidationFailedError(f"Cannot confirm payment: {e}")
            await self.bookings.update(booking)
            await self.receipts.save(Receipt.for_booking(booking, collected_by="razorpay"))
            if booking.payment_status == PaymentStatus.ADVANCE_PAID:
                await self.dues.save(Due.create_for_booking(booking, self.due_date_offset_days))

        logger.info("Payment %s verified for booking %s (%s)", payment_id, booking.serial_number,
                    booking.payment_status.value, extra={"booking_id": booking_id})
        return booking

    # ==================== EXTEND ====================
    async def extend_booking(
        self,
        booking_id: UUID,
        new_end_date: date,
        additional_amount: Optional[Decimal] = None
    ) -> Optional[Booking]:
        async with self.uow:
            booking = await self.bookings.find_by_id(booking_id)
            if not booking:
                return None
            if new_end_date <= booking.date_range.end_date:
                raise ValidationFailedError("New end date must be after the current end date")

            unit = await self.units.find_by_id(booking.unit_id)
            extension = _date_range(booking.date_range.end_date + timedelta(days=1), new_end_date)
            await self.inventory.ensure_unit_free(unit, extension, exclude_booking_id=booking_id, require_flag=False)

            if additional_amount is None:
                extra_days = (new_end_date - booking.date_range.end_date).days
                additional_amount = InventoryService.quote_price(unit.price, BookingDuration.DAILY, extra_days)

            was_completed = booking.payment_status == PaymentStatus.COMPLETED
            try:
                booking.extend(new_end_date, additional_amount)
            except ValueError as e:
                raise ValidationFailedError(f"Cannot extend booking: {e}")
            await self.bookings.update(booking)

            outstanding = [d for d in await self.dues.find_by_booking(booking_id) if d.is_outstanding()]
            if outstanding:
                due = outstanding[0]
                due.increase(additional_amount, booking.date_range, self.due_date_offset_days)
                await self.dues.update(due)
            elif was_completed and additional_amount > 0:
                await self.dues.save(Due.for_extension(booking, additional_amount, self.due_date_offset_days))

        logger.info("Booking %s extended to %s (+%s)", booking.serial_number, new_end_date, additional_amount)
        return booking


class DueService:
    """Service for collecting the balance of advance-paid bookings"""

    def __init__(self,
                 dues: DueRepository,
                 bookings: BookingRepository,
                 receipts: ReceiptRepository,
                 uow: UnitOfWork):
        self.dues = dues
        self.bookings = bookings
        self.receipts = receipts
        self.uow = uow

    async def get_due(self, due_id: UUID) -> Optional[Due]:
        return await self.dues.find_by_id(due_id)

    async def list_dues(
        self,
        property_id: Optional[UUID] = None,
        status: Optional[DueStatus] = None,
        property_ids: Optional[Set[UUID]] = None
    ) -> List[Due]:
        """Dues ordered by due date; property_ids narrows them to a set of properties"""
        dues = await self.dues.find_all()
        if property_id:
            dues = [d for d in dues if d.property_id == property_id]
        if property_ids is not None:
            dues = [d for d in dues if d.property_id in property_ids]
        if status:
            dues = [d for d in dues if d.status == status]
        return sorted(dues, key=lambda d: d.due_date)

    async def get_summary(
        self,
        today: Optional[date] = None,
        property_id: Optional[UUID] = None,
        property_ids: Optional[Set[UUID]] = None
    ) -> Dict[str, Any]:
        today = today or date.today()
        dues = await self.list_dues(property_id=property_id, property_ids=property_ids)
        outstanding = [d for d in dues if d.is_outstanding()]
        overdue = [d for d in outstanding if d.is_overdue(today)]
        return {
            "total_outstanding": sum((d.remaining() for d in outstanding), Decimal("0")),
            "outstanding_count": len(outstanding),
            "overdue_amount": sum((d.remaining() for d in overdue), Decimal("0")),
            "overdue_count": len(overdue),
            "due_today_count": len([d for d in outstanding if d.due_date == today]),
            "collected_amount": sum((d.paid_amount for d in dues), Decimal("0")),
        }

    async def collect_due(
        self,
        due_id: UUID,
        amount: Decimal,
        payment_method: PaymentMethod = PaymentMethod.CASH,
        transaction_id: Optional[str] = None,
        collected_by: str = "Admin",
        notes: Optional[str] = None
    ) -> Optional[Tuple[Due, Receipt]]:
        """Record a payment against a due; settling it in full completes the booking's payment"""
        async with self.uow:
            due = await self.dues.find_by_id(due_id)
            if not due:
                return None
            try:
                due.collect(amount)
            except ValueError as e:
                raise ValidationFailedError(f"Cannot collect due: {e}")
            await self.dues.update(due)

            receipt = Receipt.for_due_collection(due, amount, payment_method, transaction_id, collected_by, notes)
            await self.receipts.save(receipt)

            if due.status == DueStatus.PAID:
                booking = await self.bookings.find_by_id(due.booking_id)
                if booking:
                    booking.mark_fully_paid()
                    await self.bookings.update(booking)

        logger.info("Collected %s on due %s (%s) by %s", amount, due_id, due.status.value, collected_by)
        return due, receipt

    async def update_due_dates(
        self,
        due_id: UUID,
        due_date: Optional[date] = None,
        proportional_end_date: Optional[date] = None
    ) -> Optional[Due]:
        due = await self.dues.find_by_id(due_id)
        if not due:
            return None
        try:
            due.update_dates(due_date, proportional_end_date)
        except ValueError as e:
            raise ValidationFailedError(f"Cannot update due: {e}")
        return await self.dues.update(due)


class DepositService:
    """Service for locker deposits and their refunds"""

    def __init__(self, bookings: BookingRepository, uow: UnitOfWork):
        self.bookings = bookings
        self.uow = uow

    async def list_deposits(
        self,
        property_id: Optional[UUID] = None,
        refunded: Optional[bool] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> List[Booking]:
        bookings = [b for b in await self.bookings.find_all() if b.locker_included and b.locker_price > 0]
        if property_id:
            bookings = [b for b in bookings if b.property_id == property_id]
        if refunded is not None:
            bookings = [b for b in bookings if b.locker_refunded == refunded]
        if start_date:
            bookings = [b for b in bookings if b.created_at.date() >= start_date]
        if end_date:
            bookings = [b for b in bookings if b.created_at.date() <= end_date]
        return sorted(bookings, key=lambda b: b.created_at, reverse=True)

    async def list_refunds(
        self,
        property_id: Optional[UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> List[Booking]:
        refunds = await self.list_deposits(property_id=property_id, refunded=True)
        if start_date:
            refunds = [b for b in refunds if b.locker_refund_date.date() >= start_date]
        if end_date:
            refunds = [b for b in refunds if b.locker_refund_date.date() <= end_date]
        return sorted(refunds, key=lambda b: b.locker_refund_date, reverse=True)

    async def refund_deposit(
        self,
        booking_id: UUID,
        method: PaymentMethod,
        amount: Optional[Decimal] = None,
        transaction_id: Optional[str] = None,
        reason: Optional[str] = None
    ) -> Optional[Tuple[Booking, bool]]:
        """Refund a deposit once. Returns the booking and whether this call paid it out."""
        async with self.uow:
            booking = await self.bookings.find_by_id(booking_id)
            if not booking:
                return None
            try:
                refunded_now = booking.refund_deposit(
                    amount if amount is not None else booking.locker_price, method, transaction_id, reason
                )
            except ValueError as e:
                raise ValidationFailedError(f"Cannot refund deposit: {e}")
            if refunded_now:
                await self.bookings.update(booking)

        if refunded_now:
            logger.info("Refunded deposit %s on booking %s via %s", booking.locker_refund_amount,
                        booking.serial_number, method.value)
        else:
            logger.info("Deposit on booking %s was already refunded", booking.serial_number)
        return booking, refunded_now

    async def bulk_refund(
        self,
        booking_ids: List[UUID],
        method: PaymentMethod,
        transaction_id: Optional[str] = None,
        reason: Optional[str] = None
    ) -> int:
        """Refund the full deposit of every eligible booking; others are skipped"""
        processed = 0
        async with self.uow:
            for booking_id in booking_ids:
                booking = await self.bookings.find_by_id(booking_id)
                if not booking or not booking.locker_included or booking.locker_price <= 0:
                    continue
                if booking.refund_deposit(booking.locker_price, method, transaction_id, reason):
                    await self.bookings.update(booking)
                    processed += 1
        logger.info("Bulk refund processed %d of %d deposit(s)", processed, len(booking_ids))
        return processed
