"""Domain Value Objects"""
from pydantic import BaseModel, Field, validator
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from domain.enums import CommissionType, ChargeType


class DateRange(BaseModel):
    """Value Object for an inclusive stay period"""
    start_date: date
    end_date: date

    @validator('end_date')
    def end_not_before_start(cls, v, values):
        if 'start_date' in values and v < values['start_date']:
            raise ValueError('End date must not be before start date')
        return v

    def days(self) -> int:
        """Number of days covered, both ends included"""
        return (self.end_date - self.start_date).days + 1

    def overlaps(self, start_date: date, end_date: date) -> bool:
        """Two inclusive ranges overlap when each starts before the other ends"""
        return self.start_date <= end_date and self.end_date >= start_date

    class Config:
        frozen = True


class CommissionSettings(BaseModel):
    """Value Object for the platform commission charged to a vendor"""
    type: CommissionType = CommissionType.PERCENTAGE
    value: Decimal = Field(default=Decimal("20"), ge=0)

    class Config:
        frozen = True


class ManualRequestCharges(BaseModel):
    """Value Object for the fee on a vendor-initiated payout"""
    enabled: bool = False
    charge_type: ChargeType = ChargeType.FIXED
    charge_value: Decimal = Field(default=Decimal("0"), ge=0)
    description: str = "Manual payout processing fee"

    class Config:
        frozen = True


class BankDetails(BaseModel):
    """Value Object for vendor settlement account"""
    account_holder_name: str
    account_number: str
    ifsc_code: str
    bank_name: Optional[str] = None
    upi_id: Optional[str] = None

    class Config:
        frozen = True


class AutoPayoutSettings(BaseModel):
    """Child Entity holding the vendor's payout schedule"""
    enabled: bool = False
    payout_frequency: int = Field(default=7, ge=1, le=90)
    minimum_payout_amount: Decimal = Field(default=Decimal("500"), ge=0)
    per_property_payout: bool = False
    manual_request_charges: ManualRequestCharges = Field(default_factory=ManualRequestCharges)
    last_auto_payout: Optional[datetime] = None
    next_auto_payout: Optional[datetime] = None

    class Config:
        from_attributes = True
