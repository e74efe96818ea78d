"""Domain Enums"""
from enum import Enum


class PropertyKind(str, Enum):
    HOSTEL = "hostel"
    READING_ROOM = "reading_room"


class InventoryKind(str, Enum):
    HOSTEL_BED = "hostel_bed"
    CABIN_SEAT = "cabin_seat"


class GenderPolicy(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    CO_ED = "Co-ed"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    ADVANCE_PAID = "advance_paid"
    COMPLETED = "completed"


class BookingDuration(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class DisplayStatus(str, Enum):
    """Read-only label derived from booking dates, never stored"""
    PENDING = "pending"
    UPCOMING = "upcoming"
    ACTIVE = "active"
    ENDING_SOON = "ending_soon"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class DueStatus(str, Enum):
    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    CANCELLED = "cancelled"


class ReceiptType(str, Enum):
    BOOKING_PAYMENT = "booking_payment"
    DUE_COLLECTION = "due_collection"


class PaymentMethod(str, Enum):
    ONLINE = "online"
    CASH = "cash"
    UPI = "upi"
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"


class VendorStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SUSPENDED = "suspended"


class CommissionType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class ChargeType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class PayoutType(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


class PayoutStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class BookingPayoutStatus(str, Enum):
    PENDING = "pending"
    INCLUDED = "included"


class UserRole(str, Enum):
    ADMIN = "admin"
    VENDOR = "vendor"
    VENDOR_EMPLOYEE = "vendor_employee"
    STUDENT = "student"


class NotificationTargetType(str, Enum):
    ALL = "all"
    VENDOR_SPECIFIC = "vendor_specific"
    ROLE_SPECIFIC = "role_specific"
    USER_SPECIFIC = "user_specific"


class NotificationType(str, Enum):
    GENERAL = "general"
    OFFER = "offer"
    BOOKING = "booking"
    PAYMENT = "payment"
    REMINDER = "reminder"


class NotificationStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    NO_RECIPIENTS = "no_recipients"


class ProviderCategory(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    PAYMENT_GATEWAY = "payment_gateway"
