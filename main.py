import logging
from fastapi import FastAPI, HTTPException, Depends, Query, Request, Response
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm
from uuid import UUID
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional, Set
import math

from api.schemas import (
    # Inventory
    CreatePropertyRequest, PropertyResponse, CreateRoomRequest, RoomResponse, CreateUnitRequest,
    BulkCreateUnitsRequest, BlockUnitRequest, UnitResponse, UnitAvailabilityResponse, PriceQuoteResponse,
    # Bookings
    CreateBookingRequest, CancelBookingRequest, TransferBookingRequest, VerifyPaymentRequest,
    ExtendBookingRequest, BookingResponse, ReceiptResponse, TransferResponse,
    # Dues
    DueResponse, CollectDueRequest, CollectDueResponse, UpdateDueDatesRequest, DueSummaryResponse,
    # Deposits
    RefundDepositRequest, BulkRefundRequest, DepositResponse, RefundResponse, BulkRefundResponse,
    # Vendors & payouts
    CreateVendorRequest, VendorResponse, AutoPayoutSettingsRequest, AutoPayoutSettingsResponse,
    ToggleAutoPayoutRequest, ManualRequestChargesSchema, VendorBalanceResponse, PayoutPreviewResponse,
    ManualPayoutRequest, PayoutResponse, PayoutRunResponse,
    # Notifications
    SendNotificationRequest, VendorOfferRequest, NotificationResponse, NotificationHistoryResponse,
    NotificationStatsResponse, UpdateTokenRequest, NotificationTestRequest, NotificationTestResponse,
    # Admin settings
    ProviderSettingsRequest, ProviderSettingsResponse,
    # Auth
    Token, UserResponse, CreateUserRequest
)

from api.dependencies import (
    get_current_active_user, require_staff, require_admin, ensure_vendor_access, get_user, get_user_repository
)
from infrastructure.security import verify_password, create_access_token, get_password_hash, ACCESS_TOKEN_EXPIRE_MINUTES
from infrastructure.config import get_settings
from infrastructure.logging_config import setup_logging
from infrastructure.payments import RazorpayPaymentGateway
from infrastructure.push import InMemoryPushSender, FcmPushSender
from infrastructure.database import (
    property_repo, room_repo, unit_repo, booking_repo, due_repo, receipt_repo, transfer_repo, vendor_repo,
    payout_repo, user_repo, notification_repo, provider_settings_repo, unit_of_work
)
from domain.auth import User, UserInDB
from domain.entities import Booking, Due
from domain.enums import (
    BookingStatus, PaymentStatus, BookingDuration, DueStatus, InventoryKind, ProviderCategory
)
from domain.exceptions import BookingPlatformError
from domain.gateways import PaymentGateway
from domain.value_objects import BankDetails, ManualRequestCharges

from application.services import InventoryService, BookingService, DueService, DepositService
from application.payouts import PayoutService
from application.notifications import NotificationService
from application.admin_settings import AdminSettingsService
from application.reports import ReportService, export_filename

settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="Booking API for reading-room cabins and hostel beds with Domain-Driven Design",
    version=settings.APP_VERSION
)

if settings.fcm_enabled():
    push_sender = FcmPushSender.from_service_account(
        settings.FCM_PROJECT_ID, settings.FCM_SERVICE_ACCOUNT_FILE, settings.FCM_TIMEOUT_SECONDS
    )
else:
    push_sender = InMemoryPushSender()


# ============================================================================
# ERROR HANDLERS
# ============================================================================

@app.exception_handler(BookingPlatformError)
async def _booking_platform_error_handler(request: Request, exc: BookingPlatformError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.error_code.value, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(ValueError)
async def _value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    if settings.is_production():
        return JSONResponse(status_code=500, content={"detail": "internal error"})
    return JSONResponse(status_code=500, content={"detail": f"{type(exc).__name__}: {exc}"})


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================

def get_admin_settings_service() -> AdminSettingsService:
    return AdminSettingsService(provider_settings_repo)


async def get_payment_gateway(
    admin_settings: AdminSettingsService = Depends(get_admin_settings_service)
) -> PaymentGateway:
    # Stored gateway settings take precedence over the environment
    active = await admin_settings.get_active(ProviderCategory.PAYMENT_GATEWAY)
    if active and active.provider == "razorpay":
        return RazorpayPaymentGateway(active.settings.get("key_secret"))
    return RazorpayPaymentGateway(settings.RAZORPAY_KEY_SECRET)


def get_inventory_service() -> InventoryService:
    return InventoryService(property_repo, room_repo, unit_repo, booking_repo, due_repo)


def get_booking_service(
    inventory: InventoryService = Depends(get_inventory_service),
    payment_gateway: PaymentGateway = Depends(get_payment_gateway)
) -> BookingService:
    return BookingService(
        booking_repo, unit_repo, due_repo, receipt_repo, transfer_repo, property_repo,
        inventory, unit_of_work(), payment_gateway, settings.DUE_DATE_OFFSET_DAYS,
        timedelta(minutes=settings.UNPAID_BOOKING_TIMEOUT_MINUTES)
    )


def get_due_service() -> DueService:
    return DueService(due_repo, booking_repo, receipt_repo, unit_of_work())


def get_deposit_service() -> DepositService:
    return DepositService(booking_repo, unit_of_work())


def get_payout_service() -> PayoutService:
    return PayoutService(
        vendor_repo, property_repo, booking_repo, payout_repo, unit_of_work(), settings.DEFAULT_COMMISSION_RATE
    )


def get_notification_service() -> NotificationService:
    return NotificationService(user_repo, notification_repo, push_sender)


def get_report_service() -> ReportService:
    return ReportService(booking_repo, unit_repo, room_repo, property_repo, user_repo)


# ============================================================================
# HEALTH & ENUM REFERENCE ENDPOINTS
# ============================================================================

@app.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running", "environment": settings.ENVIRONMENT}


@app.get("/api/enums/booking-status", tags=["Enum Reference"])
async def get_booking_statuses():
    return {
        "values": [item.value for item in BookingStatus],
        "description": "Stored booking status: pending, confirmed, cancelled"
    }


@app.get("/api/enums/payment-status", tags=["Enum Reference"])
async def get_payment_statuses():
    return {
        "values": [item.value for item in PaymentStatus],
        "description": "Payment status: pending, advance_paid, completed"
    }


@app.get("/api/enums/booking-duration", tags=["Enum Reference"])
async def get_booking_durations():
    return {
        "values": [item.value for item in BookingDuration],
        "description": "Pricing period: daily (price/30), weekly (price/4), monthly"
    }


# ============================================================================
# AUTH ENDPOINTS
# ============================================================================

@app.post("/token", response_model=Token, tags=["Auth"])
async def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends()):
    user = await get_user(user_repo, form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        logger.warning("Failed login for %s", form_data.username)
        raise HTTPException(
            status_code=401,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token_expires = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(
        data={"sub": user.username}, expires_delta=access_token_expires
    )
    return {"access_token": access_token, "token_type": "bearer"}


@app.get("/users/me", response_model=UserResponse, tags=["Auth"])
async def read_users_me(current_user: User = Depends(get_current_active_user)):
    return _user_to_response(current_user)


@app.post("/api/users", response_model=UserResponse, status_code=201, tags=["Auth"])
async def create_user(
    request: CreateUserRequest,
    repo=Depends(get_user_repository),
    current_user: User = Depends(require_admin)
):
    """Register a user account"""
    if await get_user(repo, request.username):
        raise HTTPException(status_code=400, detail="Username already registered")
    user = UserInDB(
        username=request.username,
        email=request.email,
        full_name=request.full_name,
        role=request.role,
        vendor_ids=request.vendor_ids,
        gender=request.gender,
        hashed_password=get_password_hash(request.password)
    )
    await repo.save(user)
    logger.info("User %s created with role %s", user.username, user.role.value)
    return _user_to_response(user)


# ============================================================================
# PROPERTY, ROOM & UNIT ENDPOINTS
# ============================================================================

@app.post("/api/properties", response_model=PropertyResponse, status_code=201, tags=["Inventory"])
async def create_property(
    request: CreatePropertyRequest,
    service: InventoryService = Depends(get_inventory_service),
    current_user: User = Depends(require_staff)
):
    """Register a hostel or reading room"""
    ensure_vendor_access(current_user, request.vendor_id)
    prop = await service.create_property(request.kind, request.vendor_id, request.name, request.city, request.gender)
    return _property_to_response(prop)


@app.get("/api/properties", response_model=List[PropertyResponse], tags=["Inventory"])
async def list_properties(
    vendor_id: Optional[UUID] = None,
    service: InventoryService = Depends(get_inventory_service),
    current_user: User = Depends(get_current_active_user)
):
    properties = await service.list_properties(vendor_id)
    return [_property_to_response(p) for p in properties]


@app.get("/api/properties/{property_id}", response_model=PropertyResponse, tags=["Inventory"])
async def get_property(
    property_id: UUID,
    service: InventoryService = Depends(get_inventory_service),
    current_user: User = Depends(get_current_active_user)
):
    prop = await service.get_property(property_id)
    if not prop:
        raise HTTPException(status_code=404, detail="Property not found")
    return _property_to_response(prop)


@app.post("/api/properties/{property_id}/rooms", response_model=RoomResponse, status_code=201, tags=["Inventory"])
async def create_room(
    property_id: UUID,
    request: CreateRoomRequest,
    service: InventoryService = Depends(get_inventory_service),
    current_user: User = Depends(require_staff)
):
    prop = await service.get_property(property_id)
    if not prop:
        raise HTTPException(status_code=404, detail="Property not found")
    ensure_vendor_access(current_user, prop.vendor_id)
    room = await service.create_room(property_id, request.room_number, request.floor)
    return _room_to_response(room)


@app.get("/api/properties/{property_id}/rooms", response_model=List[RoomResponse], tags=["Inventory"])
async def list_rooms(
    property_id: UUID,
    service: InventoryService = Depends(get_inventory_service),
    current_user: User = Depends(get_current_active_user)
):
    rooms = await service.list_rooms(property_id)
    return [_room_to_response(r) for r in rooms]


@app.post("/api/rooms/{room_id}/units", response_model=UnitResponse, status_code=201, tags=["Inventory"])
async def create_unit(
    room_id: UUID,
    request: CreateUnitRequest,
    service: InventoryService = Depends(get_inventory_service),
    current_user: User = Depends(require_staff)
):
    """Add a bed or seat to a room"""
    await _ensure_room_access(service, current_user, room_id)
    unit = await service.create_unit(room_id, request.number, request.price, request.category, request.sharing_type)
    return _unit_to_response(unit)


@app.post("/api/rooms/{room_id}/units/bulk", response_model=List[UnitResponse], status_code=201, tags=["Inventory"])
async def bulk_create_units(
    room_id: UUID,
    request: BulkCreateUnitsRequest,
    service: InventoryService = Depends(get_inventory_service),
    current_user: User = Depends(require_staff)
):
    await _ensure_room_access(service, current_user, room_id)
    units = await service.bulk_create_units(room_id, request.count, request.price, request.category,
                                            request.sharing_type)
    return [_unit_to_response(u) for u in units]


@app.get("/api/rooms/{room_id}/units", response_model=List[UnitResponse], tags=["Inventory"])
async def list_room_units(
    room_id: UUID,
    service: InventoryService = Depends(get_inventory_service),
    current_user: User = Depends(get_current_active_user)
):
    units = await service.list_room_units(room_id)
    return [_unit_to_response(u) for u in units]


@app.get("/api/rooms/{room_id}/available-units", response_model=List[UnitResponse], tags=["Inventory"])
async def get_available_units(
    room_id: UUID,
    start_date: date,
    end_date: date,
    service: InventoryService = Depends(get_inventory_service),
    current_user: User = Depends(get_current_active_user)
):
    """Units of the room that are free for every day of the range"""
    units = await service.get_available_units(room_id, start_date, end_date)
    return [_unit_to_response(u) for u in units]


@app.get("/api/units/{unit_id}", response_model=UnitResponse, tags=["Inventory"])
async def get_unit(
    unit_id: UUID,
    service: InventoryService = Depends(get_inventory_service),
    current_user: User = Depends(get_current_active_user)
):
    unit = await service.get_unit(unit_id)
    if not unit:
        raise HTTPException(status_code=404, detail="Unit not found")
    return _unit_to_response(unit)


@app.get("/api/units/{unit_id}/availability", response_model=UnitAvailabilityResponse, tags=["Inventory"])
async def check_unit_availability(
    unit_id: UUID,
    start_date: date,
    end_date: date,
    service: InventoryService = Depends(get_inventory_service),
    current_user: User = Depends(get_current_active_user)
):
    available = await service.check_unit_availability(unit_id, start_date, end_date)
    return UnitAvailabilityResponse(unit_id=unit_id, start_date=start_date, end_date=end_date, available=available)


@app.get("/api/units/{unit_id}/quote", response_model=PriceQuoteResponse, tags=["Inventory"])
async def quote_unit_price(
    unit_id: UUID,
    start_date: date,
    booking_duration: BookingDuration = BookingDuration.MONTHLY,
    duration_count: int = Query(default=1, ge=1, le=36),
    service: InventoryService = Depends(get_inventory_service),
    current_user: User = Depends(get_current_active_user)
):
    """Price and end date of a stay on this unit"""
    unit = await service.get_unit(unit_id)
    if not unit:
        raise HTTPException(status_code=404, detail="Unit not found")
    return PriceQuoteResponse(
        unit_id=unit_id,
        booking_duration=booking_duration,
        duration_count=duration_count,
        start_date=start_date,
        end_date=service.compute_end_date(start_date, booking_duration, duration_count),
        total_price=service.quote_price(unit.price, booking_duration, duration_count),
        currency=settings.CURRENCY
    )


@app.post("/api/units/{unit_id}/block", response_model=UnitResponse, tags=["Inventory"])
async def block_unit(
    unit_id: UUID,
    request: BlockUnitRequest,
    service: InventoryService = Depends(get_inventory_service),
    current_user: User = Depends(require_staff)
):
    unit = await service.block_unit(unit_id, request.reason)
    if not unit:
        raise HTTPException(status_code=404, detail="Unit not found")
    return _unit_to_response(unit)


@app.post("/api/units/{unit_id}/unblock", response_model=UnitResponse, tags=["Inventory"])
async def unblock_unit(
    unit_id: UUID,
    service: InventoryService = Depends(get_inventory_service),
    current_user: User = Depends(require_staff)
):
    unit = await service.unblock_unit(unit_id)
    if not unit:
        raise HTTPException(status_code=404, detail="Unit not found")
    return _unit_to_response(unit)


# ============================================================================
# BOOKING ENDPOINTS
# ============================================================================

@app.post("/api/bookings", response_model=BookingResponse, status_code=201, tags=["Bookings"])
async def create_booking(
    request: CreateBookingRequest,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Book a bed or seat"""
    guest = current_user
    if request.user_id and request.user_id != current_user.user_id:
        if not current_user.is_staff():
            raise HTTPException(status_code=403, detail="Only staff can book for another user")
        guest = await user_repo.find_by_id(request.user_id)
        if not guest:
            raise HTTPException(status_code=404, detail="User not found")
    # Guests pay through the gateway checkout; only staff record payments taken elsewhere
    if request.gateway_payment_id and not current_user.is_staff():
        raise HTTPException(status_code=403, detail="Online payments are confirmed through verify-payment")

    booking = await service.create_booking(
        user_id=guest.user_id,
        unit_id=request.unit_id,
        start_date=request.start_date,
        end_date=request.end_date,
        booking_duration=request.booking_duration,
        duration_count=request.duration_count,
        total_price=request.total_price,
        advance_amount=request.advance_amount,
        payment_method=request.payment_method,
        transaction_id=request.transaction_id,
        gateway_order_id=request.gateway_order_id,
        gateway_payment_id=request.gateway_payment_id,
        locker_included=request.locker_included,
        locker_price=request.locker_price,
        user_gender=guest.gender,
        created_by=current_user.username,
        awaiting_payment=not current_user.is_staff()
    )
    return _booking_to_response(booking)


@app.get("/api/bookings", response_model=List[BookingResponse], tags=["Bookings"])
async def list_bookings(
    kind: Optional[InventoryKind] = None,
    property_id: Optional[UUID] = None,
    status: Optional[BookingStatus] = None,
    payment_status: Optional[PaymentStatus] = None,
    user_id: Optional[UUID] = None,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(require_staff)
):
    await _ensure_property_access(current_user, property_id)
    bookings = await service.list_bookings(kind, property_id, status, payment_status, user_id)
    return [_booking_to_response(b) for b in await _only_managed(current_user, bookings)]


@app.post("/api/bookings/expire-unpaid", response_model=List[BookingResponse], tags=["Bookings"])
async def expire_unpaid_bookings(
    max_age_minutes: Optional[int] = Query(default=None, ge=1),
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(require_admin)
):
    """Cancel bookings whose checkout was never completed and free their units"""
    max_age = timedelta(minutes=max_age_minutes) if max_age_minutes else None
    expired = await service.expire_unpaid_bookings(max_age=max_age)
    return [_booking_to_response(b) for b in expired]


@app.get("/api/bookings/me", response_model=List[BookingResponse], tags=["Bookings"])
async def get_my_bookings(
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    bookings = await service.get_user_bookings(current_user.user_id)
    return [_booking_to_response(b) for b in bookings]


@app.get("/api/bookings/{booking_id}", response_model=BookingResponse, tags=["Bookings"])
async def get_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    booking = await _get_accessible_booking(service, current_user, booking_id)
    return _booking_to_response(booking)


@app.post("/api/bookings/{booking_id}/cancel", response_model=BookingResponse, tags=["Bookings"])
async def cancel_booking(
    booking_id: UUID,
    request: CancelBookingRequest,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Cancel a booking and free its unit. Repeating the call is harmless."""
    await _get_accessible_booking(service, current_user, booking_id)
    booking = await service.cancel_booking(booking_id, request.reason)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return _booking_to_response(booking)


@app.get("/api/bookings/{booking_id}/transfer-options", response_model=List[UnitResponse], tags=["Bookings"])
async def get_transfer_options(
    booking_id: UUID,
    room_id: UUID,
    service: BookingService = Depends(get_booking_service),
    inventory: InventoryService = Depends(get_inventory_service),
    current_user: User = Depends(require_staff)
):
    await _get_accessible_booking(service, current_user, booking_id, manage=True)
    await _ensure_room_access(inventory, current_user, room_id)
    units = await service.get_transfer_options(booking_id, room_id)
    return [_unit_to_response(u) for u in units]


@app.post("/api/bookings/{booking_id}/transfer", response_model=BookingResponse, tags=["Bookings"])
async def transfer_booking(
    booking_id: UUID,
    request: TransferBookingRequest,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(require_staff)
):
    """Move a booking to another bed"""
    await _get_accessible_booking(service, current_user, booking_id, manage=True)
    booking = await service.transfer_booking(booking_id, request.to_room_id, request.to_unit_id,
                                             transferred_by=current_user.username)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return _booking_to_response(booking)


@app.post("/api/bookings/{booking_id}/verify-payment", response_model=BookingResponse, tags=["Bookings"])
async def verify_payment(
    booking_id: UUID,
    request: VerifyPaymentRequest,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Verify a Razorpay checkout and confirm the booking"""
    await _get_accessible_booking(service, current_user, booking_id)
    booking = await service.confirm_gateway_payment(
        booking_id, request.razorpay_order_id, request.razorpay_payment_id, request.razorpay_signature
    )
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return _booking_to_response(booking)


@app.post("/api/bookings/{booking_id}/extend", response_model=BookingResponse, tags=["Bookings"])
async def extend_booking(
    booking_id: UUID,
    request: ExtendBookingRequest,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(require_staff)
):
    await _get_accessible_booking(service, current_user, booking_id, manage=True)
    booking = await service.extend_booking(booking_id, request.new_end_date, request.additional_amount)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return _booking_to_response(booking)


@app.get("/api/bookings/{booking_id}/receipts", response_model=List[ReceiptResponse], tags=["Bookings"])
async def get_booking_receipts(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    await _get_accessible_booking(service, current_user, booking_id)
    receipts = await service.get_booking_receipts(booking_id)
    return [_receipt_to_response(r) for r in receipts]


@app.get("/api/bookings/{booking_id}/dues", response_model=List[DueResponse], tags=["Bookings"])
async def get_booking_dues(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    await _get_accessible_booking(service, current_user, booking_id)
    dues = await service.get_booking_dues(booking_id)
    return [_due_to_response(d) for d in dues]


# ============================================================================
# TRANSFER HISTORY ENDPOINTS
# ============================================================================

@app.get("/api/transfers", response_model=List[TransferResponse], tags=["Transfers"])
async def list_transfers(
    property_id: Optional[UUID] = None,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(require_staff)
):
    await _ensure_property_access(current_user, property_id)
    transfers = await _only_managed(current_user, await service.list_transfers(property_id))
    return [TransferResponse(**t.model_dump()) for t in transfers]


@app.get("/api/transfers/export", tags=["Transfers"])
async def export_transfers(
    property_id: Optional[UUID] = None,
    service: BookingService = Depends(get_booking_service),
    reports: ReportService = Depends(get_report_service),
    current_user: User = Depends(require_staff)
):
    await _ensure_property_access(current_user, property_id)
    transfers = await _only_managed(current_user, await service.list_transfers(property_id))
    content = await reports.bed_transfers_csv(transfers)
    return _csv_response(content, export_filename("bed-transfers"))


# ============================================================================
# DUE ENDPOINTS
# ============================================================================

@app.get("/api/dues", response_model=List[DueResponse], tags=["Dues"])
async def list_dues(
    property_id: Optional[UUID] = None,
    status: Optional[DueStatus] = None,
    service: DueService = Depends(get_due_service),
    current_user: User = Depends(require_staff)
):
    await _ensure_property_access(current_user, property_id)
    dues = await service.list_dues(property_id, status, property_ids=await _managed_property_ids(current_user))
    return [_due_to_response(d) for d in dues]


@app.get("/api/dues/summary", response_model=DueSummaryResponse, tags=["Dues"])
async def get_due_summary(
    property_id: Optional[UUID] = None,
    service: DueService = Depends(get_due_service),
    current_user: User = Depends(require_staff)
):
    await _ensure_property_access(current_user, property_id)
    managed = await _managed_property_ids(current_user)
    summary = await service.get_summary(property_id=property_id, property_ids=managed)
    return DueSummaryResponse(**summary)


@app.get("/api/dues/{due_id}", response_model=DueResponse, tags=["Dues"])
async def get_due(
    due_id: UUID,
    service: DueService = Depends(get_due_service),
    current_user: User = Depends(require_staff)
):
    return _due_to_response(await _get_accessible_due(service, current_user, due_id))


@app.post("/api/dues/{due_id}/collect", response_model=CollectDueResponse, tags=["Dues"])
async def collect_due(
    due_id: UUID,
    request: CollectDueRequest,
    service: DueService = Depends(get_due_service),
    current_user: User = Depends(require_staff)
):
    """Record a payment against a due and issue a receipt"""
    await _get_accessible_due(service, current_user, due_id)
    result = await service.collect_due(
        due_id,
        request.amount,
        request.payment_method,
        request.transaction_id,
        collected_by=current_user.full_name or current_user.username,
        notes=request.notes
    )
    if not result:
        raise HTTPException(status_code=404, detail="Due not found")
    due, receipt = result
    return CollectDueResponse(due=_due_to_response(due), receipt=_receipt_to_response(receipt))


@app.patch("/api/dues/{due_id}/dates", response_model=DueResponse, tags=["Dues"])
async def update_due_dates(
    due_id: UUID,
    request: UpdateDueDatesRequest,
    service: DueService = Depends(get_due_service),
    current_user: User = Depends(require_staff)
):
    await _get_accessible_due(service, current_user, due_id)
    due = await service.update_due_dates(due_id, request.due_date, request.proportional_end_date)
    if not due:
        raise HTTPException(status_code=404, detail="Due not found")
    return _due_to_response(due)


# ============================================================================
# DEPOSIT ENDPOINTS
# ============================================================================

@app.get("/api/deposits", response_model=List[DepositResponse], tags=["Deposits"])
async def list_deposits(
    property_id: Optional[UUID] = None,
    refunded: Optional[bool] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    service: DepositService = Depends(get_deposit_service),
    current_user: User = Depends(require_staff)
):
    await _ensure_property_access(current_user, property_id)
    deposits = await service.list_deposits(property_id, refunded, start_date, end_date)
    deposits = await _only_managed(current_user, deposits)
    return [_deposit_to_response(b) for b in deposits]


@app.get("/api/deposits/refunds", response_model=List[DepositResponse], tags=["Deposits"])
async def list_refunds(
    property_id: Optional[UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    service: DepositService = Depends(get_deposit_service),
    current_user: User = Depends(require_staff)
):
    await _ensure_property_access(current_user, property_id)
    refunds = await service.list_refunds(property_id, start_date, end_date)
    refunds = await _only_managed(current_user, refunds)
    return [_deposit_to_response(b) for b in refunds]


@app.get("/api/deposits/export", tags=["Deposits"])
async def export_deposits(
    property_id: Optional[UUID] = None,
    refunded: Optional[bool] = None,
    service: DepositService = Depends(get_deposit_service),
    reports: ReportService = Depends(get_report_service),
    current_user: User = Depends(require_staff)
):
    await _ensure_property_access(current_user, property_id)
    deposits = await _only_managed(current_user, await service.list_deposits(property_id, refunded))
    report = "refunds" if refunded else "deposits"
    return _csv_response(await reports.deposits_csv(deposits), export_filename(report))


@app.post("/api/deposits/bulk-refund", response_model=BulkRefundResponse, tags=["Deposits"])
async def bulk_refund_deposits(
    request: BulkRefundRequest,
    service: DepositService = Depends(get_deposit_service),
    current_user: User = Depends(require_staff)
):
    for booking_id in request.booking_ids:
        await _ensure_booking_managed(current_user, booking_id)
    processed = await service.bulk_refund(request.booking_ids, request.method, request.transaction_id, request.reason)
    return BulkRefundResponse(requested=len(request.booking_ids), processed=processed)


@app.post("/api/deposits/{booking_id}/refund", response_model=RefundResponse, tags=["Deposits"])
async def refund_deposit(
    booking_id: UUID,
    request: RefundDepositRequest,
    service: DepositService = Depends(get_deposit_service),
    current_user: User = Depends(require_staff)
):
    """Refund a locker deposit; a repeated refund changes nothing"""
    await _ensure_booking_managed(current_user, booking_id)
    result = await service.refund_deposit(booking_id, request.method, request.amount, request.transaction_id,
                                          request.reason)
    if not result:
        raise HTTPException(status_code=404, detail="Booking not found")
    booking, refunded_now = result
    return RefundResponse(deposit=_deposit_to_response(booking), refunded_now=refunded_now)


# ============================================================================
# VENDOR & PAYOUT ENDPOINTS
# ============================================================================

@app.post("/api/vendors", response_model=VendorResponse, status_code=201, tags=["Vendors"])
async def create_vendor(
    request: CreateVendorRequest,
    service: PayoutService = Depends(get_payout_service),
    current_user: User = Depends(require_admin)
):
    bank_details = BankDetails(**request.bank_details.model_dump()) if request.bank_details else None
    vendor = await service.create_vendor(
        request.business_name, request.contact_email, request.phone,
        request.commission_type, request.commission_value, bank_details
    )
    return _vendor_to_response(vendor)


@app.get("/api/vendors", response_model=List[VendorResponse], tags=["Vendors"])
async def list_vendors(
    service: PayoutService = Depends(get_payout_service),
    current_user: User = Depends(require_admin)
):
    return [_vendor_to_response(v) for v in await service.list_vendors()]


@app.get("/api/vendors/{vendor_id}", response_model=VendorResponse, tags=["Vendors"])
async def get_vendor(
    vendor_id: UUID,
    service: PayoutService = Depends(get_payout_service),
    current_user: User = Depends(require_staff)
):
    ensure_vendor_access(current_user, vendor_id)
    vendor = await service.get_vendor(vendor_id)
    if not vendor:
        raise HTTPException(status_code=404, detail="Vendor not found")
    return _vendor_to_response(vendor)


@app.post("/api/vendors/{vendor_id}/approve", response_model=VendorResponse, tags=["Vendors"])
async def approve_vendor(
    vendor_id: UUID,
    service: PayoutService = Depends(get_payout_service),
    current_user: User = Depends(require_admin)
):
    vendor = await service.approve_vendor(vendor_id)
    if not vendor:
        raise HTTPException(status_code=404, detail="Vendor not found")
    return _vendor_to_response(vendor)


@app.get("/api/vendors/{vendor_id}/payout-settings", response_model=AutoPayoutSettingsResponse, tags=["Payouts"])
async def get_payout_settings(
    vendor_id: UUID,
    service: PayoutService = Depends(get_payout_service),
    current_user: User = Depends(require_staff)
):
    ensure_vendor_access(current_user, vendor_id)
    vendor = await service.get_auto_payout_settings(vendor_id)
    if not vendor:
        raise HTTPException(status_code=404, detail="Vendor not found")
    return _payout_settings_to_response(vendor)


@app.put("/api/vendors/{vendor_id}/payout-settings", response_model=AutoPayoutSettingsResponse, tags=["Payouts"])
async def update_payout_settings(
    vendor_id: UUID,
    request: AutoPayoutSettingsRequest,
    service: PayoutService = Depends(get_payout_service),
    current_user: User = Depends(require_admin)
):
    charges = None
    if request.manual_request_charges:
        charges = ManualRequestCharges(**request.manual_request_charges.model_dump())
    vendor = await service.update_auto_payout_settings(
        vendor_id,
        enabled=request.enabled,
        payout_frequency=request.payout_frequency,
        minimum_payout_amount=request.minimum_payout_amount,
        per_property_payout=request.per_property_payout,
        manual_request_charges=charges
    )
    if not vendor:
        raise HTTPException(status_code=404, detail="Vendor not found")
    return _payout_settings_to_response(vendor)


@app.post("/api/vendors/{vendor_id}/payout-settings/toggle", response_model=AutoPayoutSettingsResponse,
          tags=["Payouts"])
async def toggle_auto_payout(
    vendor_id: UUID,
    request: ToggleAutoPayoutRequest,
    service: PayoutService = Depends(get_payout_service),
    current_user: User = Depends(require_admin)
):
    vendor = await service.toggle_auto_payout(vendor_id, request.enabled)
    if not vendor:
        raise HTTPException(status_code=404, detail="Vendor not found")
    return _payout_settings_to_response(vendor)


@app.get("/api/vendors/{vendor_id}/balance", response_model=VendorBalanceResponse, tags=["Payouts"])
async def get_vendor_balance(
    vendor_id: UUID,
    property_id: Optional[UUID] = None,
    service: PayoutService = Depends(get_payout_service),
    current_user: User = Depends(require_staff)
):
    ensure_vendor_access(current_user, vendor_id)
    return VendorBalanceResponse(**await service.get_balance(vendor_id, property_id))


@app.get("/api/vendors/{vendor_id}/payout-preview", response_model=PayoutPreviewResponse, tags=["Payouts"])
async def get_payout_preview(
    vendor_id: UUID,
    amount: Decimal = Query(gt=0),
    service: PayoutService = Depends(get_payout_service),
    current_user: User = Depends(require_staff)
):
    """Fee and net amount of a manual payout request"""
    ensure_vendor_access(current_user, vendor_id)
    return PayoutPreviewResponse(**await service.get_payout_preview(vendor_id, amount))


@app.post("/api/vendors/{vendor_id}/payouts", response_model=PayoutResponse, status_code=201, tags=["Payouts"])
async def request_payout(
    vendor_id: UUID,
    request: ManualPayoutRequest,
    service: PayoutService = Depends(get_payout_service),
    current_user: User = Depends(require_staff)
):
    ensure_vendor_access(current_user, vendor_id)
    payout = await service.request_manual_payout(vendor_id, request.amount, request.booking_ids, request.property_id)
    return PayoutResponse(**payout.model_dump())


@app.get("/api/vendors/{vendor_id}/payouts", response_model=List[PayoutResponse], tags=["Payouts"])
async def list_vendor_payouts(
    vendor_id: UUID,
    service: PayoutService = Depends(get_payout_service),
    current_user: User = Depends(require_staff)
):
    ensure_vendor_access(current_user, vendor_id)
    return [PayoutResponse(**p.model_dump()) for p in await service.list_payouts(vendor_id)]


@app.post("/api/payouts/auto-run", response_model=PayoutRunResponse, tags=["Payouts"])
async def run_auto_payouts(
    service: PayoutService = Depends(get_payout_service),
    current_user: User = Depends(require_admin)
):
    """Settle every vendor whose automatic payout is due"""
    result = await service.process_auto_payouts()
    return PayoutRunResponse(
        processed_vendors=result.processed_vendors,
        payouts=[PayoutResponse(**p.model_dump()) for p in result.payouts],
        skipped=result.skipped,
        failed=result.failed
    )


# ============================================================================
# NOTIFICATION ENDPOINTS
# ============================================================================

@app.post("/api/notifications/send", response_model=NotificationResponse, tags=["Notifications"])
async def send_notification(
    request: SendNotificationRequest,
    service: NotificationService = Depends(get_notification_service),
    current_user: User = Depends(require_admin)
):
    record = await service.send_notification(
        title=request.title,
        body=request.body,
        target_type=request.target_type,
        target_ids=request.target_ids,
        type=request.type,
        vendor_id=request.vendor_id,
        offer_data=request.offer_data,
        created_by=current_user.user_id
    )
    return NotificationResponse(**record.model_dump())


@app.post("/api/notifications/vendor-offer/{vendor_id}", response_model=NotificationResponse,
          tags=["Notifications"])
async def send_vendor_offer(
    vendor_id: UUID,
    request: VendorOfferRequest,
    service: NotificationService = Depends(get_notification_service),
    current_user: User = Depends(require_staff)
):
    ensure_vendor_access(current_user, vendor_id)
    record = await service.send_vendor_offer(vendor_id, request.title, request.body, request.offer_data,
                                             created_by=current_user.user_id)
    return NotificationResponse(**record.model_dump())


@app.get("/api/notifications/history", response_model=NotificationHistoryResponse, tags=["Notifications"])
async def get_notification_history(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    service: NotificationService = Depends(get_notification_service),
    current_user: User = Depends(require_admin)
):
    items, total = await service.get_history(page, limit)
    return NotificationHistoryResponse(
        items=[NotificationResponse(**r.model_dump()) for r in items],
        page=page,
        limit=limit,
        total=total,
        pages=math.ceil(total / limit) if total else 0
    )


@app.get("/api/notifications/stats", response_model=NotificationStatsResponse, tags=["Notifications"])
async def get_notification_stats(
    service: NotificationService = Depends(get_notification_service),
    current_user: User = Depends(require_admin)
):
    return NotificationStatsResponse(**await service.get_stats())


@app.post("/api/notifications/update-token", tags=["Notifications"])
async def update_fcm_token(
    request: UpdateTokenRequest,
    service: NotificationService = Depends(get_notification_service),
    current_user: User = Depends(get_current_active_user)
):
    """Register the caller's device for push notifications"""
    await service.update_token(current_user.user_id, request.fcm_token)
    return {"success": True, "message": "FCM token updated"}


@app.post("/api/notifications/test", response_model=NotificationTestResponse, tags=["Notifications"])
async def send_test_notification(
    request: NotificationTestRequest,
    service: NotificationService = Depends(get_notification_service),
    current_user: User = Depends(require_admin)
):
    result = await service.send_test(request.token, request.title, request.body)
    return NotificationTestResponse(success_count=result.success_count, failure_count=result.failure_count)


# ============================================================================
# ADMIN SETTINGS ENDPOINTS
# ============================================================================

@app.get("/api/admin/settings/{category}", response_model=List[ProviderSettingsResponse], tags=["Admin Settings"])
async def list_provider_settings(
    category: ProviderCategory,
    service: AdminSettingsService = Depends(get_admin_settings_service),
    current_user: User = Depends(require_admin)
):
    return [_provider_settings_to_response(s) for s in await service.list_settings(category)]


@app.get("/api/admin/settings/{category}/{provider}", response_model=ProviderSettingsResponse,
         tags=["Admin Settings"])
async def get_provider_settings(
    category: ProviderCategory,
    provider: str,
    service: AdminSettingsService = Depends(get_admin_settings_service),
    current_user: User = Depends(require_admin)
):
    record = await service.get(category, provider)
    if not record:
        raise HTTPException(status_code=404, detail="Settings not found")
    return _provider_settings_to_response(record)


@app.put("/api/admin/settings/{category}", response_model=ProviderSettingsResponse, tags=["Admin Settings"])
async def upsert_provider_settings(
    category: ProviderCategory,
    request: ProviderSettingsRequest,
    service: AdminSettingsService = Depends(get_admin_settings_service),
    current_user: User = Depends(require_admin)
):
    """Create or update email, SMS or payment gateway settings"""
    record = await service.upsert(category, request.provider, request.settings, request.is_active,
                                  updated_by=current_user.username)
    return _provider_settings_to_response(record)


@app.delete("/api/admin/settings/{category}/{provider}", status_code=204, tags=["Admin Settings"])
async def delete_provider_settings(
    category: ProviderCategory,
    provider: str,
    service: AdminSettingsService = Depends(get_admin_settings_service),
    current_user: User = Depends(require_admin)
):
    if not await service.delete(category, provider):
        raise HTTPException(status_code=404, detail="Settings not found")
    return Response(status_code=204)


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

async def _get_accessible_booking(
    service: BookingService,
    current_user: User,
    booking_id: UUID,
    manage: bool = False
) -> Booking:
    """Fetch a booking the caller owns, or one at a property the caller manages"""
    booking = await service.get_booking(booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    if booking.user_id == current_user.user_id and not manage:
        return booking
    if not current_user.is_staff():
        raise HTTPException(status_code=403, detail="Not allowed to access this booking")
    await _ensure_property_access(current_user, booking.property_id)
    return booking


async def _get_accessible_due(service: DueService, current_user: User, due_id: UUID) -> Due:
    due = await service.get_due(due_id)
    if not due:
        raise HTTPException(status_code=404, detail="Due not found")
    await _ensure_property_access(current_user, due.property_id)
    return due


async def _ensure_booking_managed(current_user: User, booking_id: UUID) -> None:
    # Unknown bookings are left to the service, which reports them
    booking = await booking_repo.find_by_id(booking_id)
    if booking:
        await _ensure_property_access(current_user, booking.property_id)


async def _ensure_property_access(current_user: User, property_id: Optional[UUID]) -> None:
    if property_id is None or current_user.is_admin():
        return
    prop = await property_repo.find_by_id(property_id)
    if not prop:
        raise HTTPException(status_code=404, detail="Property not found")
    ensure_vendor_access(current_user, prop.vendor_id)


async def _managed_property_ids(current_user: User) -> Optional[Set[UUID]]:
    """Properties of the caller's vendors; None for admins, who see every property"""
    if current_user.is_admin():
        return None
    property_ids: Set[UUID] = set()
    for vendor_id in current_user.vendor_ids:
        property_ids.update(p.property_id for p in await property_repo.find_by_vendor(vendor_id))
    return property_ids


async def _only_managed(current_user: User, records: list) -> list:
    property_ids = await _managed_property_ids(current_user)
    if property_ids is None:
        return records
    return [r for r in records if r.property_id in property_ids]


async def _ensure_room_access(service: InventoryService, current_user: User, room_id: UUID) -> None:
    room = await service.get_room(room_id)
    if not room:
        raise HTTPException(status_code=404, detail="Room not found")
    prop = await service.get_property(room.property_id)
    ensure_vendor_access(current_user, prop.vendor_id)


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


def _user_to_response(user) -> UserResponse:
    return UserResponse(
        user_id=user.user_id,
        username=user.username,
        email=user.email,
        full_name=user.full_name,
        disabled=user.disabled,
        role=user.role,
        vendor_ids=user.vendor_ids,
        gender=user.gender
    )


def _property_to_response(prop) -> PropertyResponse:
    return PropertyResponse(
        property_id=prop.property_id,
        kind=prop.kind,
        vendor_id=prop.vendor_id,
        name=prop.name,
        city=prop.city,
        gender=prop.gender,
        is_active=prop.is_active
    )


def _room_to_response(room) -> RoomResponse:
    return RoomResponse(
        room_id=room.room_id,
        property_id=room.property_id,
        room_number=room.room_number,
        floor=room.floor,
        is_active=room.is_active
    )


def _unit_to_response(unit) -> UnitResponse:
    return UnitResponse(
        unit_id=unit.unit_id,
        kind=unit.kind,
        property_id=unit.property_id,
        room_id=unit.room_id,
        number=unit.number,
        price=unit.price,
        category=unit.category,
        sharing_type=unit.sharing_type,
        is_available=unit.is_available,
        is_blocked=unit.is_blocked,
        block_reason=unit.block_reason,
        version=unit.version
    )


def _booking_to_response(booking) -> BookingResponse:
    """Convert Booking entity to BookingResponse"""
    return BookingResponse(
        booking_id=booking.booking_id,
        serial_number=booking.serial_number,
        kind=booking.kind,
        user_id=booking.user_id,
        property_id=booking.property_id,
        room_id=booking.room_id,
        unit_id=booking.unit_id,
        start_date=booking.date_range.start_date,
        end_date=booking.date_range.end_date,
        booking_duration=booking.booking_duration,
        duration_count=booking.duration_count,
        total_price=booking.total_price,
        advance_amount=booking.advance_amount,
        remaining_amount=booking.remaining_amount,
        currency=settings.CURRENCY,
        payment_method=booking.payment_method,
        transaction_id=booking.transaction_id,
        gateway_order_id=booking.gateway_order_id,
        gateway_payment_id=booking.gateway_payment_id,
        payment_status=booking.payment_status,
        status=booking.status,
        display_status=booking.display_status(date.today(), settings.ENDING_SOON_DAYS),
        cancellation_reason=booking.cancellation_reason,
        cancelled_at=booking.cancelled_at,
        locker_included=booking.locker_included,
        locker_price=booking.locker_price,
        locker_refunded=booking.locker_refunded,
        locker_refund_date=booking.locker_refund_date,
        locker_refund_amount=booking.locker_refund_amount,
        payout_status=booking.payout_status,
        created_at=booking.created_at,
        modified_at=booking.modified_at,
        created_by=booking.created_by,
        version=booking.version
    )


def _receipt_to_response(receipt) -> ReceiptResponse:
    return ReceiptResponse(
        receipt_id=receipt.receipt_id,
        serial_number=receipt.serial_number,
        booking_id=receipt.booking_id,
        due_id=receipt.due_id,
        amount=receipt.amount,
        payment_method=receipt.payment_method,
        transaction_id=receipt.transaction_id,
        receipt_type=receipt.receipt_type,
        collected_by=receipt.collected_by,
        notes=receipt.notes,
        created_at=receipt.created_at
    )


def _due_to_response(due) -> DueResponse:
    return DueResponse(
        due_id=due.due_id,
        booking_id=due.booking_id,
        user_id=due.user_id,
        property_id=due.property_id,
        room_id=due.room_id,
        unit_id=due.unit_id,
        total_fee=due.total_fee,
        advance_paid=due.advance_paid,
        due_amount=due.due_amount,
        paid_amount=due.paid_amount,
        remaining=due.remaining(),
        due_date=due.due_date,
        proportional_end_date=due.proportional_end_date,
        status=due.status,
        is_overdue=due.is_overdue(date.today())
    )


def _deposit_to_response(booking) -> DepositResponse:
    return DepositResponse(
        booking_id=booking.booking_id,
        serial_number=booking.serial_number,
        user_id=booking.user_id,
        property_id=booking.property_id,
        locker_price=booking.locker_price,
        locker_refunded=booking.locker_refunded,
        locker_refund_date=booking.locker_refund_date,
        locker_refund_amount=booking.locker_refund_amount,
        locker_refund_method=booking.locker_refund_method,
        locker_refund_transaction_id=booking.locker_refund_transaction_id,
        locker_refund_reason=booking.locker_refund_reason
    )


def _vendor_to_response(vendor) -> VendorResponse:
    return VendorResponse(
        vendor_id=vendor.vendor_id,
        business_name=vendor.business_name,
        contact_email=vendor.contact_email,
        phone=vendor.phone,
        status=vendor.status,
        is_active=vendor.is_active,
        commission_type=vendor.commission_settings.type,
        commission_value=vendor.commission_settings.value,
        pending_payout=vendor.pending_payout,
        auto_payout_enabled=vendor.auto_payout_settings.enabled
    )


def _payout_settings_to_response(vendor) -> AutoPayoutSettingsResponse:
    settings_ = vendor.auto_payout_settings
    return AutoPayoutSettingsResponse(
        vendor_id=vendor.vendor_id,
        enabled=settings_.enabled,
        payout_frequency=settings_.payout_frequency,
        minimum_payout_amount=settings_.minimum_payout_amount,
        per_property_payout=settings_.per_property_payout,
        manual_request_charges=ManualRequestChargesSchema(**settings_.manual_request_charges.model_dump()),
        last_auto_payout=settings_.last_auto_payout,
        next_auto_payout=settings_.next_auto_payout
    )


def _provider_settings_to_response(record) -> ProviderSettingsResponse:
    return ProviderSettingsResponse(
        category=record.category,
        provider=record.provider,
        is_active=record.is_active,
        settings=record.masked_settings(),
        updated_by=record.updated_by,
        updated_at=record.updated_at
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
