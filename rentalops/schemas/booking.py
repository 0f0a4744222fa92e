from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import AwareDatetime, BaseModel, Field

from rentalops.core.enums import BookingStatus, DepositAction, ReturnState, ReturnStepId
from rentalops.schemas.pricing import BookingQuoteRequest, Money


class WorkflowCheck(BaseModel):
    allowed: bool
    reason: Optional[str] = None


class StepProgress(BaseModel):
    id: ReturnStepId
    number: int
    title: str
    description: str
    accessible: bool
    complete: bool
    current: bool


class ReturnProgressOut(BaseModel):
    booking_id: int
    return_state: ReturnState
    current_step: ReturnStepId
    steps: List[StepProgress]


class BookingCreate(BookingQuoteRequest):
    client_total: Optional[Money] = Field(None, ge=0)
    notes: Optional[str] = None


class StatusChange(BaseModel):
    status: BookingStatus
    bypass_reason: Optional[str] = None


class ReturnStateAdvance(BaseModel):
    target_state: ReturnState
    bypass_reason: Optional[str] = None


class ReturnIntakeIn(BaseModel):
    returned_at: AwareDatetime
    odometer_km: Optional[int] = Field(None, ge=0)
    fuel_level: Optional[int] = Field(None, ge=0, le=100)


class DepositDecision(BaseModel):
    deduction: Money = Field(Decimal("0"), ge=0)
    reason: Optional[str] = None


class DepositLedgerOut(BaseModel):
    id: int
    action: DepositAction
    amount: Money
    reason: Optional[str] = None
    created_by: int
    created_at: datetime


class BookingOut(BaseModel):
    id: int
    booking_code: str
    status: BookingStatus
    return_state: Optional[ReturnState] = None

    vehicle_kind: str
    vehicle_ref: str
    vehicle_category: Optional[str] = None
    start_at: datetime
    end_at: datetime
    total_days: int
    driver_age_band: Optional[str] = None
    protection_plan: Optional[str] = None

    daily_rate: Money
    protection_daily_rate: Money
    add_ons_total: Money
    delivery_fee: Money
    different_dropoff_fee: Money
    young_driver_fee: Money
    late_fee: Money
    subtotal: Money
    tax_amount: Money
    total_amount: Money
    deposit_amount: Money
    rate_table_version: Optional[str] = None

    returned_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_by: int
    created_at: datetime
    updated_at: Optional[datetime] = None
