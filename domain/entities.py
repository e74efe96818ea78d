"""Domain Entities - Aggregates"""
from pydantic import BaseModel, Field
from uuid import UUID, uuid4
from datetime import datetime, date, timedelta
from typing import Optional
from decimal import Decimal, ROUND_HALF_UP
import random
import string

from domain.enums import (
    PropertyKind, InventoryKind, GenderPolicy, BookingStatus, PaymentStatus, BookingDuration,
    DisplayStatus, DueStatus, ReceiptType, PaymentMethod, BookingPayoutStatus
)
from domain.value_objects import DateRange


def _serial(prefix: str) -> str:
    stamp = datetime.utcnow().strftime("%y%m%d")
    suffix = ''.join(random.choices(string.ascii_uppercase + string.digits, k=6))
    return f"{prefix}-{stamp}-{suffix}"


def _round_money(value: Decimal) -> Decimal:
    return value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


class Property(BaseModel):
    """A hostel or a reading room owned by a vendor"""
    property_id: UUID = Field(default_factory=uuid4)
    kind: PropertyKind
    vendor_id: UUID
    name: str
    city: Optional[str] = None
    gender: GenderPolicy = GenderPolicy.CO_ED
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        from_attributes = True

    def unit_kind(self) -> InventoryKind:
        if self.kind == PropertyKind.HOSTEL:
            return InventoryKind.HOSTEL_BED
        return InventoryKind.CABIN_SEAT

    def admits(self, gender: Optional[str]) -> bool:
        """Co-ed properties admit everyone; otherwise the user's gender must match"""
        if self.gender == GenderPolicy.CO_ED or not gender:
            return True
        return self.gender.value.lower() == gender.lower()


class Room(BaseModel):
    """A hostel room, or the hall of a reading room"""
    room_id: UUID = Field(default_factory=uuid4)
    property_id: UUID
    room_number: str
    floor: int = 0
    is_active: bool = True

    class Config:
        from_attributes = True


class InventoryUnit(BaseModel):
    """Bookable unit: a hostel bed or a cabin seat"""

    # Identity
    unit_id: UUID = Field(default_factory=uuid4)
    kind: InventoryKind

    # Location
    property_id: UUID
    room_id: UUID
    number: int = Field(ge=1)

    # Pricing
    price: Decimal = Field(ge=0)
    category: str = "standard"
    sharing_type: Optional[str] = None

    # Occupancy flags
    is_available: bool = True
    is_blocked: bool = False
    block_reason: Optional[str] = None

    # Metadata
    created_at: datetime = Field(default_factory=datetime.utcnow)
    version: int = 1

    class Config:
        from_attributes = True

    def is_bookable(self) -> bool:
        return self.is_available and not self.is_blocked

    def occupy(self) -> None:
        if self.is_blocked:
            raise ValueError(f"Unit {self.number} is blocked")
        if not self.is_available:
            raise ValueError(f"Unit {self.number} is already occupied")
        self.is_available = False

    def release(self) -> None:
        self.is_available = True

    def block(self, reason: str) -> None:
        if not reason or not reason.strip():
            raise ValueError("Block reason is required")
        self.is_blocked = True
        self.block_reason = reason

    def unblock(self) -> None:
        self.is_blocked = False
        self.block_reason = None


class Booking(BaseModel):
    """Booking Aggregate Root Entity"""

    # Identity
    booking_id: UUID = Field(default_factory=uuid4)
    serial_number: str

    # References to other aggregates
    kind: InventoryKind
    user_id: UUID
    property_id: UUID
    room_id: UUID
    unit_id: UUID

    # Stay
    date_range: DateRange
    booking_duration: BookingDuration = BookingDuration.MONTHLY
    duration_count: int = 1

    # Money
    total_price: Decimal = Field(ge=0)
    advance_amount: Decimal = Field(default=Decimal("0"), ge=0)
    remaining_amount: Decimal = Field(default=Decimal("0"), ge=0)

    # Payment
    payment_method: Optional[PaymentMethod] = None
    transaction_id: Optional[str] = None
    gateway_order_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    gateway_signature: Optional[str] = None
    payment_status: PaymentStatus = PaymentStatus.PENDING

    # Lifecycle
    status: BookingStatus = BookingStatus.PENDING
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None

    # Locker / security deposit
    locker_included: bool = False
    locker_price: Decimal = Field(default=Decimal("0"), ge=0)
    locker_refunded: bool = False
    locker_refund_date: Optional[datetime] = None
    locker_refund_amount: Optional[Decimal] = None
    locker_refund_method: Optional[PaymentMethod] = None
    locker_refund_transaction_id: Optional[str] = None
    locker_refund_reason: Optional[str] = None

    # Vendor settlement
    commission: Optional[Decimal] = None
    payout_status: BookingPayoutStatus = BookingPayoutStatus.PENDING
    payout_id: Optional[UUID] = None

    # Metadata
    created_at: datetime = Field(default_factory=datetime.utcnow)
    modified_at: datetime = Field(default_factory=datetime.utcnow)
    created_by: str = "SYSTEM"
    version: int = 1

    class Config:
        from_attributes = True

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(
        kind: InventoryKind,
        user_id: UUID,
        property_id: UUID,
        room_id: UUID,
        unit_id: UUID,
        date_range: DateRange,
        total_price: Decimal,
        advance_amount: Decimal = Decimal("0"),
        booking_duration: BookingDuration = BookingDuration.MONTHLY,
        duration_count: int = 1,
        payment_method: Optional[PaymentMethod] = None,
        transaction_id: Optional[str] = None,
        gateway_order_id: Optional[str] = None,
        gateway_payment_id: Optional[str] = None,
        locker_included: bool = False,
        locker_price: Decimal = Decimal("0"),
        created_by: str = "SYSTEM",
        awaiting_payment: bool = False
    ) -> "Booking":
        """Create new booking, deriving payment and booking status from the amounts paid.

        A booking awaiting payment stays pending whatever the amounts say; it is
        confirmed once the gateway payment is verified.
        """
        if awaiting_payment and gateway_payment_id:
            raise ValueError("A gateway payment must be verified before it is recorded")
        if awaiting_payment:
            payment_status = PaymentStatus.PENDING
        else:
            payment_status = Booking.derive_payment_status(total_price, advance_amount, gateway_payment_id)
        Booking._validate_amounts(total_price, advance_amount, paid=payment_status != PaymentStatus.PENDING)
        if duration_count < 1:
            raise ValueError("Duration count must be at least 1")
        if locker_included and locker_price <= 0:
            raise ValueError("Locker price is required when a locker is included")

        status = BookingStatus.PENDING if payment_status == PaymentStatus.PENDING else BookingStatus.CONFIRMED

        booking = Booking(
            serial_number=_serial("HB" if kind == InventoryKind.HOSTEL_BED else "CB"),
            kind=kind,
            user_id=user_id,
            property_id=property_id,
            room_id=room_id,
            unit_id=unit_id,
            date_range=date_range,
            booking_duration=booking_duration,
            duration_count=duration_count,
            total_price=total_price,
            advance_amount=advance_amount,
            payment_method=payment_method,
            transaction_id=transaction_id,
            gateway_order_id=gateway_order_id,
            gateway_payment_id=gateway_payment_id,
            payment_status=payment_status,
            status=status,
            locker_included=locker_included,
            locker_price=locker_price if locker_included else Decimal("0"),
            created_by=created_by
        )
        if payment_status == PaymentStatus.PENDING:
            booking.remaining_amount = booking.total_price
        else:
            booking.remaining_amount = booking.total_price - booking.initial_payment_amount()
        return booking

    @staticmethod
    def derive_payment_status(
        total_price: Decimal,
        advance_amount: Decimal,
        gateway_payment_id: Optional[str]
    ) -> PaymentStatus:
        """Partial advance wins; otherwise a gateway payment means paid in full"""
        if Decimal("0") < advance_amount < total_price:
            return PaymentStatus.ADVANCE_PAID
        if gateway_payment_id:
            return PaymentStatus.COMPLETED
        return PaymentStatus.PENDING

    # ==================== QUERY METHODS ====================
    def is_active(self) -> bool:
        return self.status in (BookingStatus.PENDING, BookingStatus.CONFIRMED)

    def occupies(self, unit_id: UUID, start_date: date, end_date: date) -> bool:
        """True when this booking holds the unit for any day of the given range"""
        return (
            self.is_active()
            and self.unit_id == unit_id
            and self.date_range.overlaps(start_date, end_date)
        )

    def amount_paid(self) -> Decimal:
        return self.total_price - self.remaining_amount

    def initial_payment_amount(self) -> Decimal:
        """Amount settled when the booking was paid: the advance, or the full price"""
        if self.payment_status == PaymentStatus.ADVANCE_PAID:
            return self.advance_amount
        return self.total_price

    def commission_amount(self, rate: Decimal) -> Decimal:
        if self.commission is not None:
            return self.commission
        return (self.total_price * rate).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    def display_status(self, today: date, ending_soon_days: int = 7) -> DisplayStatus:
        if self.status == BookingStatus.CANCELLED:
            return DisplayStatus.CANCELLED
        if self.status == BookingStatus.PENDING:
            return DisplayStatus.PENDING
        if today < self.date_range.start_date:
            return DisplayStatus.UPCOMING
        if today > self.date_range.end_date:
            return DisplayStatus.EXPIRED
        if (self.date_range.end_date - today).days <= ending_soon_days:
            return DisplayStatus.ENDING_SOON
        return DisplayStatus.ACTIVE

    # ==================== STATE TRANSITION METHODS ====================
    def record_gateway_payment(self, order_id: str, payment_id: str, signature: str) -> None:
        """Apply a verified gateway payment to a pending booking"""
        if self.status != BookingStatus.PENDING:
            raise ValueError(f"Cannot apply payment to booking in {self.status.value} status")
        self._validate_amounts(self.total_price, self.advance_amount, paid=True)

        self.gateway_order_id = order_id
        self.gateway_payment_id = payment_id
        self.gateway_signature = signature
        self.transaction_id = self.transaction_id or payment_id
        self.payment_method = PaymentMethod.ONLINE
        self.payment_status = Booking.derive_payment_status(self.total_price, self.advance_amount, payment_id)
        self.status = BookingStatus.CONFIRMED
        self.remaining_amount = self.total_price - self.initial_payment_amount()
        self._touch()

    def mark_fully_paid(self) -> None:
        self.payment_status = PaymentStatus.COMPLETED
        self.remaining_amount = Decimal("0")
        self._touch()

    def cancel(self, reason: Optional[str] = None) -> bool:
        """Cancel booking. Returns False when it was already cancelled."""
        if self.status == BookingStatus.CANCELLED:
            return False
        self.status = BookingStatus.CANCELLED
        self.cancellation_reason = reason
        self.cancelled_at = datetime.utcnow()
        self._touch()
        return True

    def transfer_to(self, room_id: UUID, unit_id: UUID) -> None:
        if not self.is_active():
            raise ValueError(f"Cannot transfer booking in {self.status.value} status")
        if unit_id == self.unit_id:
            raise ValueError("Booking already holds this unit")
        self.room_id = room_id
        self.unit_id = unit_id
        self._touch()

    def extend(self, new_end_date: date, additional_amount: Decimal) -> None:
        if not self.is_active():
            raise ValueError(f"Cannot extend booking in {self.status.value} status")
        if new_end_date <= self.date_range.end_date:
            raise ValueError("New end date must be after the current end date")
        if additional_amount < 0:
            raise ValueError("Additional amount cannot be negative")

        self.date_range = DateRange(start_date=self.date_range.start_date, end_date=new_end_date)
        self.total_price += additional_amount
        self.remaining_amount += additional_amount
        if additional_amount > 0 and self.payment_status == PaymentStatus.COMPLETED:
            self.payment_status = PaymentStatus.ADVANCE_PAID
        self._touch()

    def refund_deposit(
        self,
        amount: Decimal,
        method: PaymentMethod,
        transaction_id: Optional[str] = None,
        reason: Optional[str] = None
    ) -> bool:
        """Refund the locker deposit. Returns False when it was already refunded."""
        if not self.locker_included or self.locker_price <= 0:
            raise ValueError("Booking has no deposit to refund")
        if self.locker_refunded:
            return False
        if amount <= 0 or amount > self.locker_price:
            raise ValueError("Refund amount must be greater than zero and at most the deposit")

        self.locker_refunded = True
        self.locker_refund_date = datetime.utcnow()
        self.locker_refund_amount = amount
        self.locker_refund_method = method
        self.locker_refund_transaction_id = transaction_id
        self.locker_refund_reason = reason
        self._touch()
        return True

    def include_in_payout(self, payout_id: UUID) -> None:
        if self.payout_status == BookingPayoutStatus.INCLUDED:
            raise ValueError(f"Booking {self.serial_number} is already part of a payout")
        self.payout_status = BookingPayoutStatus.INCLUDED
        self.payout_id = payout_id
        self._touch()

    # ==================== VALIDATION METHODS ====================
    @staticmethod
    def _validate_amounts(total_price: Decimal, advance_amount: Decimal, paid: bool = False) -> None:
        if total_price < 0:
            raise ValueError("Total price cannot be negative")
        if advance_amount < 0:
            raise ValueError("Advance amount cannot be negative")
        if advance_amount > total_price:
            raise ValueError("Advance amount cannot exceed total price")
        # Every payment is receipted, and a receipt needs a positive amount
        if paid and total_price == 0:
            raise ValueError("A paid booking must have a price above zero")

    def _touch(self) -> None:
        self.modified_at = datetime.utcnow()


class Due(BaseModel):
    """Outstanding balance of an advance-paid booking"""

    due_id: UUID = Field(default_factory=uuid4)
    booking_id: UUID
    user_id: UUID
    property_id: UUID
    room_id: UUID
    unit_id: UUID

    stay: DateRange
    total_fee: Decimal = Field(ge=0)
    advance_paid: Decimal = Field(ge=0)
    due_amount: Decimal = Field(ge=0)
    paid_amount: Decimal = Field(default=Decimal("0"), ge=0)
    due_date: date
    proportional_end_date: Optional[date] = None
    status: DueStatus = DueStatus.PENDING

    created_at: datetime = Field(default_factory=datetime.utcnow)
    modified_at: datetime = Field(default_factory=datetime.utcnow)
    version: int = 1

    class Config:
        from_attributes = True

    @staticmethod
    def create_for_booking(booking: Booking, due_date_offset_days: int = 3) -> "Due":
        """Open a due for the part of the price not covered by the advance"""
        if booking.payment_status != PaymentStatus.ADVANCE_PAID:
            raise ValueError("Dues are only raised for advance-paid bookings")

        due = Due(
            booking_id=booking.booking_id,
            user_id=booking.user_id,
            property_id=booking.property_id,
            room_id=booking.room_id,
            unit_id=booking.unit_id,
            stay=booking.date_range,
            total_fee=booking.total_price,
            advance_paid=booking.advance_amount,
            due_amount=booking.total_price - booking.advance_amount,
            due_date=booking.date_range.end_date - timedelta(days=due_date_offset_days)
        )
        return due

    @staticmethod
    def for_extension(booking: Booking, amount: Decimal, due_date_offset_days: int = 3) -> "Due":
        """Open a due for the price of extra days added to an already settled booking"""
        if amount <= 0:
            raise ValueError("Extension amount must be greater than zero")
        due = Due(
            booking_id=booking.booking_id,
            user_id=booking.user_id,
            property_id=booking.property_id,
            room_id=booking.room_id,
            unit_id=booking.unit_id,
            stay=booking.date_range,
            total_fee=booking.total_price,
            advance_paid=booking.total_price - amount,
            due_amount=amount,
            due_date=booking.date_range.end_date - timedelta(days=due_date_offset_days)
        )
        return due

    def remaining(self) -> Decimal:
        return max(self.due_amount - self.paid_amount, Decimal("0"))

    def is_outstanding(self) -> bool:
        return self.status in (DueStatus.PENDING, DueStatus.PARTIALLY_PAID)

    def is_overdue(self, today: date) -> bool:
        return self.is_outstanding() and self.due_date < today

    def releases_unit_before(self, day: date) -> bool:
        """The paid-for portion of the stay ends before ``day``"""
        return (
            self.is_outstanding()
            and self.proportional_end_date is not None
            and self.proportional_end_date < day
        )

    def covered_until(self) -> Optional[date]:
        """Last day the payments so far cover, pro rata over the stay"""
        if self.total_fee <= 0:
            return None
        total_days = (self.stay.end_date - self.stay.start_date).days
        paid = self.advance_paid + self.paid_amount
        covered_days = int(_round_money(paid / self.total_fee * total_days))
        return self.stay.start_date + timedelta(days=covered_days)

    def collect(self, amount: Decimal) -> None:
        if not self.is_outstanding():
            raise ValueError(f"Cannot collect on a due in {self.status.value} status")
        if amount <= 0:
            raise ValueError("Collection amount must be greater than zero")
        if amount > self.remaining():
            raise ValueError(f"Collection amount exceeds the remaining due of {self.remaining()}")

        self.paid_amount += amount
        self.status = DueStatus.PAID if self.paid_amount >= self.due_amount else DueStatus.PARTIALLY_PAID
        self.proportional_end_date = self.covered_until()
        self._touch()

    def increase(self, amount: Decimal, new_stay: DateRange, due_date_offset_days: int = 3) -> None:
        """Grow the due after the stay was extended"""
        self.stay = new_stay
        self.total_fee += amount
        self.due_amount += amount
        self.due_date = new_stay.end_date - timedelta(days=due_date_offset_days)
        if self.status == DueStatus.PAID and amount > 0:
            self.status = DueStatus.PARTIALLY_PAID
        if self.proportional_end_date is not None:
            self.proportional_end_date = self.covered_until()
        self._touch()

    def reassign(self, room_id: UUID, unit_id: UUID) -> None:
        self.room_id = room_id
        self.unit_id = unit_id
        self._touch()

    def update_dates(self, due_date: Optional[date] = None, proportional_end_date: Optional[date] = None) -> None:
        if due_date is None and proportional_end_date is None:
            raise ValueError("Nothing to update")
        if due_date is not None:
            self.due_date = due_date
        if proportional_end_date is not None:
            self.proportional_end_date = proportional_end_date
        self._touch()

    def cancel(self) -> None:
        if self.is_outstanding():
            self.status = DueStatus.CANCELLED
            self._touch()

    def _touch(self) -> None:
        self.modified_at = datetime.utcnow()


class Receipt(BaseModel):
    """Immutable payment record"""
    receipt_id: UUID = Field(default_factory=uuid4)
    serial_number: str = Field(default_factory=lambda: _serial("RCP"))
    booking_id: UUID
    user_id: UUID
    property_id: UUID
    due_id: Optional[UUID] = None
    amount: Decimal = Field(gt=0)
    payment_method: Optional[PaymentMethod] = None
    transaction_id: str = ""
    receipt_type: ReceiptType
    collected_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        frozen = True

    @staticmethod
    def for_booking(booking: Booking, collected_by: Optional[str] = None) -> "Receipt":
        return Receipt(
            booking_id=booking.booking_id,
            user_id=booking.user_id,
            property_id=booking.property_id,
            amount=booking.initial_payment_amount(),
            payment_method=booking.payment_method,
            transaction_id=booking.transaction_id or booking.gateway_payment_id or "",
            receipt_type=ReceiptType.BOOKING_PAYMENT,
            collected_by=collected_by
        )

    @staticmethod
    def for_due_collection(
        due: Due,
        amount: Decimal,
        payment_method: PaymentMethod,
        transaction_id: Optional[str],
        collected_by: str,
        notes: Optional[str] = None
    ) -> "Receipt":
        return Receipt(
            booking_id=due.booking_id,
            user_id=due.user_id,
            property_id=due.property_id,
            due_id=due.due_id,
            amount=amount,
            payment_method=payment_method,
            transaction_id=transaction_id or "",
            receipt_type=ReceiptType.DUE_COLLECTION,
            collected_by=collected_by,
            notes=notes
        )


class BedTransfer(BaseModel):
    """History record of a booking moved between units"""
    transfer_id: UUID = Field(default_factory=uuid4)
    booking_id: UUID
    property_id: UUID
    from_room_id: UUID
    from_unit_id: UUID
    to_room_id: UUID
    to_unit_id: UUID
    transferred_by: str = "SYSTEM"
    transferred_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        frozen = True

