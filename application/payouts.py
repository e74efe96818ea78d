"""Application Services - Vendor settlement"""
import logging
from uuid import UUID
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Dict, Any

from pydantic import BaseModel

from domain.entities import Booking
from domain.enums import PaymentStatus, BookingPayoutStatus, CommissionType
from domain.exceptions import (
    ResourceNotFoundError, ValidationFailedError, InsufficientBalanceError, PermissionDeniedError
)
from domain.repositories import VendorRepository, PropertyRepository, BookingRepository, PayoutRepository, UnitOfWork
from domain.value_objects import CommissionSettings, BankDetails, ManualRequestCharges
from domain.vendors import Vendor, VendorPayout

logger = logging.getLogger(__name__)


class PayoutRunResult(BaseModel):
    """Outcome of one automatic payout run"""
    processed_vendors: int = 0
    payouts: List[VendorPayout] = []
    skipped: List[Dict[str, str]] = []
    failed: List[Dict[str, str]] = []


class PayoutService:
    """Service for vendor onboarding, balances and payouts"""

    def __init__(self,
                 vendors: VendorRepository,
                 properties: PropertyRepository,
                 bookings: BookingRepository,
                 payouts: PayoutRepository,
                 uow: UnitOfWork,
                 default_commission_rate: Decimal = Decimal("0.20")):
        self.vendors = vendors
        self.properties = properties
        self.bookings = bookings
        self.payouts = payouts
        self.uow = uow
        self.default_commission_rate = default_commission_rate

    # ==================== VENDORS ====================
    async def create_vendor(
        self,
        business_name: str,
        contact_email: Optional[str] = None,
        phone: Optional[str] = None,
        commission_type: CommissionType = CommissionType.PERCENTAGE,
        commission_value: Decimal = Decimal("20"),
        bank_details: Optional[BankDetails] = None
    ) -> Vendor:
        if not business_name or not business_name.strip():
            raise ValidationFailedError("Business name is required")
        vendor = Vendor(
            business_name=business_name.strip(),
            contact_email=contact_email,
            phone=phone,
            commission_settings=CommissionSettings(type=commission_type, value=commission_value),
            bank_details=bank_details
        )
        logger.info("Registered vendor %s (%s)", vendor.vendor_id, vendor.business_name)
        return await self.vendors.save(vendor)

    async def approve_vendor(self, vendor_id: UUID) -> Optional[Vendor]:
        vendor = await self.vendors.find_by_id(vendor_id)
        if not vendor:
            return None
        try:
            vendor.approve()
        except ValueError as e:
            raise ValidationFailedError(f"Cannot approve vendor: {e}")
        return await self.vendors.update(vendor)

    async def get_vendor(self, vendor_id: UUID) -> Optional[Vendor]:
        return await self.vendors.find_by_id(vendor_id)

    async def list_vendors(self) -> List[Vendor]:
        return await self.vendors.find_all()

    # ==================== SETTINGS ====================
    async def get_auto_payout_settings(self, vendor_id: UUID) -> Optional[Vendor]:
        return await self.vendors.find_by_id(vendor_id)

    async def update_auto_payout_settings(
        self,
        vendor_id: UUID,
        enabled: Optional[bool] = None,
        payout_frequency: Optional[int] = None,
        minimum_payout_amount: Optional[Decimal] = None,
        per_property_payout: Optional[bool] = None,
        manual_request_charges: Optional[ManualRequestCharges] = None,
        now: Optional[datetime] = None
    ) -> Optional[Vendor]:
        vendor = await self.vendors.find_by_id(vendor_id)
        if not vendor:
            return None
        try:
            vendor.update_auto_payout_settings(
                enabled=enabled,
                payout_frequency=payout_frequency,
                minimum_payout_amount=minimum_payout_amount,
                per_property_payout=per_property_payout,
                manual_request_charges=manual_request_charges,
                now=now
            )
        except ValueError as e:
            raise ValidationFailedError(f"Invalid payout settings: {e}")
        return await self.vendors.update(vendor)

    async def toggle_auto_payout(self, vendor_id: UUID, enabled: bool) -> Optional[Vendor]:
        return await self.update_auto_payout_settings(vendor_id, enabled=enabled)

    # ==================== BALANCE ====================
    async def _vendor_property_ids(self, vendor_id: UUID, property_id: Optional[UUID] = None) -> List[UUID]:
        properties = [p for p in await self.properties.find_by_vendor(vendor_id) if p.is_active]
        if property_id:
            properties = [p for p in properties if p.property_id == property_id]
        return [p.property_id for p in properties]

    async def _unsettled_bookings(
        self,
        property_ids: List[UUID],
        since: Optional[datetime] = None,
        booking_ids: Optional[List[UUID]] = None
    ) -> List[Booking]:
        """Paid bookings of the given properties that no payout has claimed yet"""
        bookings = []
        for property_id in property_ids:
            for booking in await self.bookings.find_by_property(property_id):
                if booking.payment_status != PaymentStatus.COMPLETED:
                    continue
                if booking.payout_status != BookingPayoutStatus.PENDING:
                    continue
                if since and booking.created_at < since:
                    continue
                if booking_ids is not None and booking.booking_id not in booking_ids:
                    continue
                bookings.append(booking)
        return bookings

    def _totals(self, vendor: Vendor, bookings: List[Booking]) -> Dict[str, Decimal]:
        rate = vendor.commission_rate(self.default_commission_rate)
        revenue = sum((b.total_price for b in bookings), Decimal("0"))
        commission = sum((b.commission_amount(rate) for b in bookings), Decimal("0"))
        return {"revenue": revenue, "commission": commission, "net": revenue - commission}

    async def get_balance(self, vendor_id: UUID, property_id: Optional[UUID] = None) -> Dict[str, Any]:
        vendor = await self.vendors.find_by_id(vendor_id)
        if not vendor:
            raise ResourceNotFoundError("Vendor", vendor_id)
        bookings = await self._unsettled_bookings(await self._vendor_property_ids(vendor_id, property_id))
        totals = self._totals(vendor, bookings)
        return {
            "vendor_id": vendor_id,
            "booking_count": len(bookings),
            "total_revenue": totals["revenue"],
            "commission": totals["commission"],
            "available_balance": totals["net"],
            "pending_payout": vendor.pending_payout,
        }

    # ==================== MANUAL PAYOUT ====================
    def calculate_manual_request_charges(self, vendor: Vendor, amount: Decimal) -> Decimal:
        return vendor.manual_request_fee(amount)

    async def get_payout_preview(self, vendor_id: UUID, amount: Decimal) -> Dict[str, Any]:
        vendor = await self.vendors.find_by_id(vendor_id)
        if not vendor:
            raise ResourceNotFoundError("Vendor", vendor_id)
        if amount <= 0:
            raise ValidationFailedError("Amount must be greater than zero")
        fee = self.calculate_manual_request_charges(vendor, amount)
        charges = vendor.auto_payout_settings.manual_request_charges
        return {
            "original_amount": amount,
            "manual_request_fee": fee,
            "final_net_amount": amount - fee,
            "charge_description": charges.description if charges.enabled else "No charges",
            "next_auto_payout": vendor.auto_payout_settings.next_auto_payout,
        }

    async def request_manual_payout(
        self,
        vendor_id: UUID,
        amount: Decimal,
        booking_ids: Optional[List[UUID]] = None,
        property_id: Optional[UUID] = None,
        now: Optional[datetime] = None
    ) -> VendorPayout:
        """Vendor-initiated payout of part or all of the unsettled balance, less the request fee"""
        now = now or datetime.utcnow()
        if amount <= 0:
            raise ValidationFailedError("Amount must be greater than zero")

        async with self.uow:
            vendor = await self.vendors.find_by_id(vendor_id)
            if not vendor:
                raise ResourceNotFoundError("Vendor", vendor_id)
            if not vendor.is_approved():
                raise PermissionDeniedError("Vendor must be approved to request payouts")

            bookings = await self._unsettled_bookings(
                await self._vendor_property_ids(vendor_id, property_id), booking_ids=booking_ids
            )
            totals = self._totals(vendor, bookings)
            if amount > totals["net"]:
                raise InsufficientBalanceError(amount, totals["net"])

            fee = self.calculate_manual_request_charges(vendor, amount)
            try:
                payout = VendorPayout.manual(
                    vendor_id=vendor_id,
                    property_id=property_id,
                    requested_amount=amount,
                    commission=totals["commission"],
                    fee=fee,
                    period_start=min((b.created_at for b in bookings), default=now),
                    period_end=now,
                    booking_ids=[b.booking_id for b in bookings]
                )
            except ValueError as e:
                raise ValidationFailedError(f"Cannot request payout: {e}")
            await self.payouts.save(payout)

            for booking in bookings:
                booking.include_in_payout(payout.payout_id)
                await self.bookings.update(booking)

            vendor.add_pending_payout(payout.net_amount)
            await self.vendors.update(vendor)

        logger.info("Manual payout %s requested by vendor %s: %s (fee %s)",
                    payout.payout_id, vendor_id, payout.net_amount, fee)
        return payout

    async def list_payouts(self, vendor_id: Optional[UUID] = None) -> List[VendorPayout]:
        if vendor_id:
            return await self.payouts.find_by_vendor(vendor_id)
        payouts = await self.payouts.find_all()
        return sorted(payouts, key=lambda p: p.created_at, reverse=True)

    # ==================== AUTO PAYOUT ====================
    async def process_auto_payouts(self, now: Optional[datetime] = None) -> PayoutRunResult:
        """Settle every vendor whose automatic payout is due; one vendor's failure does not stop the run"""
        now = now or datetime.utcnow()
        result = PayoutRunResult()

        eligible = [v for v in await self.vendors.find_all() if v.is_due_for_auto_payout(now)]
        logger.info("Auto payout run found %d eligible vendor(s)", len(eligible))

        for vendor in eligible:
            try:
                payouts = await self._process_vendor(vendor.vendor_id, now, result)
            except Exception as e:
                logger.exception("Auto payout failed for vendor %s", vendor.vendor_id)
                result.failed.append({"vendor_id": str(vendor.vendor_id), "error": str(e)})
                continue
            result.processed_vendors += 1
            result.payouts.extend(payouts)

        return result

    async def _process_vendor(self, vendor_id: UUID, now: datetime, result: PayoutRunResult) -> List[VendorPayout]:
        created: List[VendorPayout] = []
        async with self.uow:
            vendor = await self.vendors.find_by_id(vendor_id)
            settings = vendor.auto_payout_settings
            period_start = now - timedelta(days=settings.payout_frequency)
            property_ids = await self._vendor_property_ids(vendor_id)

            # Either one payout per property or one for all of them
            groups = [[pid] for pid in property_ids] if settings.per_property_payout else [property_ids]
            for group in groups:
                bookings = await self._unsettled_bookings(group, since=period_start)
                if not bookings:
                    continue
                totals = self._totals(vendor, bookings)
                if totals["net"] < settings.minimum_payout_amount:
                    logger.info("Vendor %s payout of %s is below the minimum %s",
                                vendor_id, totals["net"], settings.minimum_payout_amount)
                    result.skipped.append({
                        "vendor_id": str(vendor_id),
                        "reason": f"Net amount {totals['net']} below minimum {settings.minimum_payout_amount}",
                    })
                    continue

                payout = VendorPayout.auto(
                    vendor_id=vendor_id,
                    property_id=group[0] if settings.per_property_payout else None,
                    amount=totals["revenue"],
                    commission=totals["commission"],
                    period_start=period_start,
                    period_end=now,
                    booking_ids=[b.booking_id for b in bookings]
                )
                await self.payouts.save(payout)
                for booking in bookings:
                    booking.include_in_payout(payout.payout_id)
                    await self.bookings.update(booking)
                vendor.add_pending_payout(payout.net_amount)
                created.append(payout)

            vendor.schedule_next_auto_payout(now)
            await self.vendors.update(vendor)

        for payout in created:
            logger.info("Auto payout %s created for vendor %s: %s", payout.payout_id, vendor_id, payout.net_amount)
        return created
