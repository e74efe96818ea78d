"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from typing import List, Optional, Dict

from domain.enums import (
    PropertyKind, InventoryKind, GenderPolicy, BookingStatus, PaymentStatus, BookingDuration, DisplayStatus,
    DueStatus, ReceiptType, PaymentMethod, VendorStatus, CommissionType, ChargeType, PayoutType, PayoutStatus,
    BookingPayoutStatus, UserRole, NotificationTargetType, NotificationType, NotificationStatus, ProviderCategory
)


# ============================================================================
# INVENTORY SCHEMAS
# ============================================================================

class CreatePropertyRequest(BaseModel):
    """Create property request DTO"""
    kind: PropertyKind
    vendor_id: UUID
    name: str = Field(min_length=1, max_length=200)
    city: Optional[str] = None
    gender: GenderPolicy = GenderPolicy.CO_ED


class PropertyResponse(BaseModel):
    property_id: UUID
    kind: PropertyKind
    vendor_id: UUID
    name: str
    city: Optional[str]
    gender: GenderPolicy
    is_active: bool


class CreateRoomRequest(BaseModel):
    room_number: str = Field(min_length=1, max_length=20)
    floor: int = Field(default=0, ge=0)


class RoomResponse(BaseModel):
    room_id: UUID
    property_id: UUID
    room_number: str
    floor: int
    is_active: bool


class CreateUnitRequest(BaseModel):
    """Create bed or seat request DTO"""
    number: int = Field(ge=1)
    price: Decimal = Field(ge=0, description="Monthly price")
    category: str = "standard"
    sharing_type: Optional[str] = None


class BulkCreateUnitsRequest(BaseModel):
    count: int = Field(ge=1, le=200)
    price: Decimal = Field(ge=0)
    category: str = "standard"
    sharing_type: Optional[str] = None


class BlockUnitRequest(BaseModel):
    reason: str = Field(min_length=1)


class UnitResponse(BaseModel):
    unit_id: UUID
    kind: InventoryKind
    property_id: UUID
    room_id: UUID
    number: int
    price: Decimal
    category: str
    sharing_type: Optional[str]
    is_available: bool
    is_blocked: bool
    block_reason: Optional[str]
    version: int


class UnitAvailabilityResponse(BaseModel):
    unit_id: UUID
    start_date: date
    end_date: date
    available: bool


class PriceQuoteResponse(BaseModel):
    unit_id: UUID
    booking_duration: BookingDuration
    duration_count: int
    start_date: date
    end_date: date
    total_price: Decimal
    currency: str


# ============================================================================
# BOOKING SCHEMAS
# ============================================================================

class CreateBookingRequest(BaseModel):
    """Create booking request DTO. Omit end_date or total_price to derive them from the duration."""
    unit_id: UUID
    start_date: date
    end_date: Optional[date] = None
    booking_duration: BookingDuration = BookingDuration.MONTHLY
    duration_count: int = Field(default=1, ge=1, le=36)
    total_price: Optional[Decimal] = Field(default=None, ge=0)
    advance_amount: Decimal = Field(default=Decimal("0"), ge=0)
    payment_method: Optional[PaymentMethod] = None
    transaction_id: Optional[str] = None
    gateway_order_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    locker_included: bool = False
    locker_price: Decimal = Field(default=Decimal("0"), ge=0)
    user_id: Optional[UUID] = Field(default=None, description="Book on behalf of another user (staff only)")


class CancelBookingRequest(BaseModel):
    reason: Optional[str] = None


class TransferBookingRequest(BaseModel):
    to_room_id: UUID
    to_unit_id: UUID


class VerifyPaymentRequest(BaseModel):
    """Razorpay checkout callback fields"""
    razorpay_order_id: str = Field(min_length=1)
    razorpay_payment_id: str = Field(min_length=1)
    razorpay_signature: str = Field(min_length=1)


class ExtendBookingRequest(BaseModel):
    new_end_date: date
    additional_amount: Optional[Decimal] = Field(default=None, ge=0)


class BookingResponse(BaseModel):
    booking_id: UUID
    serial_number: str
    kind: InventoryKind
    user_id: UUID
    property_id: UUID
    room_id: UUID
    unit_id: UUID
    start_date: date
    end_date: date
    booking_duration: BookingDuration
    duration_count: int
    total_price: Decimal
    advance_amount: Decimal
    remaining_amount: Decimal
    currency: str
    payment_method: Optional[PaymentMethod]
    transaction_id: Optional[str]
    gateway_order_id: Optional[str]
    gateway_payment_id: Optional[str]
    payment_status: PaymentStatus
    status: BookingStatus
    display_status: DisplayStatus
    cancellation_reason: Optional[str]
    cancelled_at: Optional[datetime]
    locker_included: bool
    locker_price: Decimal
    locker_refunded: bool
    locker_refund_date: Optional[datetime]
    locker_refund_amount: Optional[Decimal]
    payout_status: BookingPayoutStatus
    created_at: datetime
    modified_at: datetime
    created_by: str
    version: int


class ReceiptResponse(BaseModel):
    receipt_id: UUID
    serial_number: str
    booking_id: UUID
    due_id: Optional[UUID]
    amount: Decimal
    payment_method: Optional[PaymentMethod]
    transaction_id: str
    receipt_type: ReceiptType
    collected_by: Optional[str]
    notes: Optional[str]
    created_at: datetime


class TransferResponse(BaseModel):
    transfer_id: UUID
    booking_id: UUID
    property_id: UUID
    from_room_id: UUID
    from_unit_id: UUID
    to_room_id: UUID
    to_unit_id: UUID
    transferred_by: str
    transferred_at: datetime


# ============================================================================
# DUE SCHEMAS
# ============================================================================

class DueResponse(BaseModel):
    due_id: UUID
    booking_id: UUID
    user_id: UUID
    property_id: UUID
    room_id: UUID
    unit_id: UUID
    total_fee: Decimal
    advance_paid: Decimal
    due_amount: Decimal
    paid_amount: Decimal
    remaining: Decimal
    due_date: date
    proportional_end_date: Optional[date]
    status: DueStatus
    is_overdue: bool


class CollectDueRequest(BaseModel):
    amount: Decimal = Field(gt=0)
    payment_method: PaymentMethod = PaymentMethod.CASH
    transaction_id: Optional[str] = None
    notes: Optional[str] = None


class CollectDueResponse(BaseModel):
    due: DueResponse
    receipt: ReceiptResponse


class UpdateDueDatesRequest(BaseModel):
    due_date: Optional[date] = None
    proportional_end_date: Optional[date] = None


class DueSummaryResponse(BaseModel):
    total_outstanding: Decimal
    outstanding_count: int
    overdue_amount: Decimal
    overdue_count: int
    due_today_count: int
    collected_amount: Decimal


# ============================================================================
# DEPOSIT SCHEMAS
# ============================================================================

class RefundDepositRequest(BaseModel):
    amount: Optional[Decimal] = Field(default=None, gt=0, description="Defaults to the full deposit")
    method: PaymentMethod = PaymentMethod.CASH
    transaction_id: Optional[str] = None
    reason: Optional[str] = None


class BulkRefundRequest(BaseModel):
    booking_ids: List[UUID] = Field(min_length=1)
    method: PaymentMethod = PaymentMethod.CASH
    transaction_id: Optional[str] = None
    reason: Optional[str] = None


class DepositResponse(BaseModel):
    booking_id: UUID
    serial_number: str
    user_id: UUID
    property_id: UUID
    locker_price: Decimal
    locker_refunded: bool
    locker_refund_date: Optional[datetime]
    locker_refund_amount: Optional[Decimal]
    locker_refund_method: Optional[PaymentMethod]
    locker_refund_transaction_id: Optional[str]
    locker_refund_reason: Optional[str]


class RefundResponse(BaseModel):
    deposit: DepositResponse
    refunded_now: bool


class BulkRefundResponse(BaseModel):
    requested: int
    processed: int


# ============================================================================
# VENDOR & PAYOUT SCHEMAS
# ============================================================================

class BankDetailsSchema(BaseModel):
    account_holder_name: str
    account_number: str
    ifsc_code: str
    bank_name: Optional[str] = None
    upi_id: Optional[str] = None


class CreateVendorRequest(BaseModel):
    business_name: str = Field(min_length=1, max_length=200)
    contact_email: Optional[str] = None
    phone: Optional[str] = None
    commission_type: CommissionType = CommissionType.PERCENTAGE
    commission_value: Decimal = Field(default=Decimal("20"), ge=0)
    bank_details: Optional[BankDetailsSchema] = None


class ManualRequestChargesSchema(BaseModel):
    enabled: bool = False
    charge_type: ChargeType = ChargeType.FIXED
    charge_value: Decimal = Field(default=Decimal("0"), ge=0)
    description: str = "Manual payout processing fee"


class AutoPayoutSettingsRequest(BaseModel):
    enabled: Optional[bool] = None
    payout_frequency: Optional[int] = Field(default=None, ge=1, le=90)
    minimum_payout_amount: Optional[Decimal] = Field(default=None, ge=0)
    per_property_payout: Optional[bool] = None
    manual_request_charges: Optional[ManualRequestChargesSchema] = None


class ToggleAutoPayoutRequest(BaseModel):
    enabled: bool


class AutoPayoutSettingsResponse(BaseModel):
    vendor_id: UUID
    enabled: bool
    payout_frequency: int
    minimum_payout_amount: Decimal
    per_property_payout: bool
    manual_request_charges: ManualRequestChargesSchema
    last_auto_payout: Optional[datetime]
    next_auto_payout: Optional[datetime]


class VendorResponse(BaseModel):
    vendor_id: UUID
    business_name: str
    contact_email: Optional[str]
    phone: Optional[str]
    status: VendorStatus
    is_active: bool
    commission_type: CommissionType
    commission_value: Decimal
    pending_payout: Decimal
    auto_payout_enabled: bool


class VendorBalanceResponse(BaseModel):
    vendor_id: UUID
    booking_count: int
    total_revenue: Decimal
    commission: Decimal
    available_balance: Decimal
    pending_payout: Decimal


class PayoutPreviewResponse(BaseModel):
    original_amount: Decimal
    manual_request_fee: Decimal
    final_net_amount: Decimal
    charge_description: str
    next_auto_payout: Optional[datetime]


class ManualPayoutRequest(BaseModel):
    amount: Decimal = Field(gt=0)
    booking_ids: Optional[List[UUID]] = None
    property_id: Optional[UUID] = None


class PayoutResponse(BaseModel):
    payout_id: UUID
    vendor_id: UUID
    property_id: Optional[UUID]
    amount: Decimal
    commission: Decimal
    net_amount: Decimal
    manual_request_fee: Decimal
    payout_type: PayoutType
    period_start: datetime
    period_end: datetime
    booking_ids: List[UUID]
    status: PayoutStatus
    created_at: datetime


class PayoutRunResponse(BaseModel):
    processed_vendors: int
    payouts: List[PayoutResponse]
    skipped: List[Dict[str, str]]
    failed: List[Dict[str, str]]


# ============================================================================
# NOTIFICATION SCHEMAS
# ============================================================================

class SendNotificationRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    body: str = Field(min_length=1, max_length=2000)
    type: NotificationType = NotificationType.GENERAL
    target_type: NotificationTargetType = NotificationTargetType.ALL
    target_ids: List[str] = []
    vendor_id: Optional[UUID] = None
    offer_data: Dict[str, str] = {}


class VendorOfferRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    body: str = Field(min_length=1, max_length=2000)
    offer_data: Dict[str, str] = {}


class NotificationResponse(BaseModel):
    notification_id: UUID
    title: str
    body: str
    type: NotificationType
    target_type: NotificationTargetType
    target_ids: List[str]
    vendor_id: Optional[UUID]
    sent_count: int
    delivered_count: int
    opened_count: int
    status: NotificationStatus
    sent_at: datetime


class NotificationHistoryResponse(BaseModel):
    items: List[NotificationResponse]
    page: int
    limit: int
    total: int
    pages: int


class NotificationStatsResponse(BaseModel):
    total_notifications: int
    total_sent: int
    total_delivered: int
    total_opened: int
    active_tokens: int


class UpdateTokenRequest(BaseModel):
    fcm_token: str = Field(min_length=1)


class NotificationTestRequest(BaseModel):
    token: str = Field(min_length=1)
    title: str = "Test notification"
    body: str = "This is a test notification"


class NotificationTestResponse(BaseModel):
    success_count: int
    failure_count: int


# ============================================================================
# ADMIN SETTINGS SCHEMAS
# ============================================================================

class ProviderSettingsRequest(BaseModel):
    provider: str = Field(min_length=1)
    settings: Dict[str, str]
    is_active: bool = True


class ProviderSettingsResponse(BaseModel):
    category: ProviderCategory
    provider: str
    is_active: bool
    settings: Dict[str, str]
    updated_by: Optional[str]
    updated_at: datetime


# ============================================================================
# AUTH SCHEMAS
# ============================================================================

class Token(BaseModel):
    access_token: str
    token_type: str


class TokenData(BaseModel):
    username: Optional[str] = None


class CreateUserRequest(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    password: str = Field(min_length=6)
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: UserRole = UserRole.STUDENT
    vendor_ids: List[UUID] = []
    gender: Optional[str] = None


class UserResponse(BaseModel):
    user_id: UUID
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    disabled: Optional[bool] = None
    role: UserRole
    vendor_ids: List[UUID] = []
    gender: Optional[str] = None
