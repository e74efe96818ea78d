"""Domain Entities - Vendors and payouts"""
from pydantic import BaseModel, Field
from uuid import UUID, uuid4
from datetime import datetime, timedelta
from typing import Optional, List
from decimal import Decimal, ROUND_HALF_UP

from domain.enums import VendorStatus, CommissionType, ChargeType, PayoutType, PayoutStatus
from domain.value_objects import CommissionSettings, AutoPayoutSettings, BankDetails, ManualRequestCharges


class Vendor(BaseModel):
    """Vendor Aggregate Root: owner of hostels and reading rooms"""

    vendor_id: UUID = Field(default_factory=uuid4)
    business_name: str
    contact_email: Optional[str] = None
    phone: Optional[str] = None
    status: VendorStatus = VendorStatus.PENDING
    is_active: bool = True

    commission_settings: CommissionSettings = Field(default_factory=CommissionSettings)
    auto_payout_settings: AutoPayoutSettings = Field(default_factory=AutoPayoutSettings)
    bank_details: Optional[BankDetails] = None
    pending_payout: Decimal = Decimal("0")

    created_at: datetime = Field(default_factory=datetime.utcnow)
    modified_at: datetime = Field(default_factory=datetime.utcnow)
    version: int = 1

    class Config:
        from_attributes = True

    # ==================== STATUS ====================
    def approve(self) -> None:
        if self.status == VendorStatus.APPROVED:
            raise ValueError("Vendor is already approved")
        self.status = VendorStatus.APPROVED
        self._touch()

    def is_approved(self) -> bool:
        return self.status == VendorStatus.APPROVED

    def is_due_for_auto_payout(self, now: datetime) -> bool:
        settings = self.auto_payout_settings
        return (
            settings.enabled
            and self.is_approved()
            and self.is_active
            and settings.next_auto_payout is not None
            and settings.next_auto_payout <= now
        )

    # ==================== MONEY ====================
    def commission_rate(self, default_rate: Decimal = Decimal("0.20")) -> Decimal:
        """Percentage commission as a fraction; anything else falls back to the default rate"""
        if self.commission_settings.type == CommissionType.PERCENTAGE:
            return self.commission_settings.value / Decimal("100")
        return default_rate

    def manual_request_fee(self, amount: Decimal) -> Decimal:
        charges = self.auto_payout_settings.manual_request_charges
        if not charges.enabled:
            return Decimal("0")
        if charges.charge_type == ChargeType.PERCENTAGE:
            return (amount * charges.charge_value / Decimal("100")).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return charges.charge_value

    def add_pending_payout(self, amount: Decimal) -> None:
        self.pending_payout += amount
        self._touch()

    # ==================== SETTINGS ====================
    def update_auto_payout_settings(
        self,
        enabled: Optional[bool] = None,
        payout_frequency: Optional[int] = None,
        minimum_payout_amount: Optional[Decimal] = None,
        per_property_payout: Optional[bool] = None,
        manual_request_charges: Optional[ManualRequestCharges] = None,
        now: Optional[datetime] = None
    ) -> None:
        current = self.auto_payout_settings
        updates = {
            key: value for key, value in {
                "enabled": enabled,
                "payout_frequency": payout_frequency,
                "minimum_payout_amount": minimum_payout_amount,
                "per_property_payout": per_property_payout,
                "manual_request_charges": manual_request_charges,
            }.items() if value is not None
        }
        settings = AutoPayoutSettings(**{**current.model_dump(), **updates})

        # Newly enabled schedules start counting from now
        if settings.enabled and settings.next_auto_payout is None:
            settings.next_auto_payout = (now or datetime.utcnow()) + timedelta(days=settings.payout_frequency)
        self.auto_payout_settings = settings
        self._touch()

    def schedule_next_auto_payout(self, now: datetime) -> None:
        settings = self.auto_payout_settings
        settings.last_auto_payout = now
        settings.next_auto_payout = now + timedelta(days=settings.payout_frequency)
        self._touch()

    def _touch(self) -> None:
        self.modified_at = datetime.utcnow()


class VendorPayout(BaseModel):
    """Settlement of a batch of paid bookings to a vendor"""

    payout_id: UUID = Field(default_factory=uuid4)
    vendor_id: UUID
    property_id: Optional[UUID] = None
    amount: Decimal = Field(ge=0)
    commission: Decimal = Field(ge=0)
    net_amount: Decimal
    manual_request_fee: Decimal = Decimal("0")
    payout_type: PayoutType
    period_start: datetime
    period_end: datetime
    booking_ids: List[UUID] = []
    status: PayoutStatus = PayoutStatus.PENDING
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        from_attributes = True

    @staticmethod
    def auto(
        vendor_id: UUID,
        property_id: Optional[UUID],
        amount: Decimal,
        commission: Decimal,
        period_start: datetime,
        period_end: datetime,
        booking_ids: List[UUID]
    ) -> "VendorPayout":
        return VendorPayout(
            vendor_id=vendor_id,
            property_id=property_id,
            amount=amount,
            commission=commission,
            net_amount=amount - commission,
            payout_type=PayoutType.AUTO,
            period_start=period_start,
            period_end=period_end,
            booking_ids=booking_ids,
            notes="Automatic payout"
        )

    @staticmethod
    def manual(
        vendor_id: UUID,
        property_id: Optional[UUID],
        requested_amount: Decimal,
        commission: Decimal,
        fee: Decimal,
        period_start: datetime,
        period_end: datetime,
        booking_ids: List[UUID]
    ) -> "VendorPayout":
        if requested_amount <= 0:
            raise ValueError("Payout amount must be greater than zero")
        if fee >= requested_amount:
            raise ValueError("Manual request fee exceeds the requested amount")
        return VendorPayout(
            vendor_id=vendor_id,
            property_id=property_id,
            amount=requested_amount + commission,
            commission=commission,
            net_amount=requested_amount - fee,
            manual_request_fee=fee,
            payout_type=PayoutType.MANUAL,
            period_start=period_start,
            period_end=period_end,
            booking_ids=booking_ids,
            notes="Manual payout request"
        )
