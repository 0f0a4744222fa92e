from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, model_validator

from rentalops.core.enums import DiscountType, DriverAgeBand, ProtectionPlan

# Exact decimal internally, plain JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
Rate = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

# Ten years
MAX_RENTAL_DAYS = 3650


class PricingInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    vehicle_daily_rate: Money = Field(ge=0)
    rental_days: int = Field(ge=0, le=MAX_RENTAL_DAYS)
    protection_daily_rate: Money = Field(Decimal("0"), ge=0)
    add_ons_total: Money = Field(Decimal("0"), ge=0)
    delivery_fee: Money = Field(Decimal("0"), ge=0)
    different_dropoff_fee: Money = Field(Decimal("0"), ge=0)
    driver_age_band: Optional[DriverAgeBand] = None
    pickup_date: Optional[date] = None
    late_fee_amount: Money = Field(Decimal("0"), ge=0)


class PricingBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    rental_days: int
    daily_rate: Money

    vehicle_base_total: Money
    weekend_days: int
    weekend_surcharge: Money
    vehicle_after_surcharge: Money
    discount_type: DiscountType
    discount_rate: Rate
    duration_discount: Money
    vehicle_total: Money

    protection_daily_rate: Money
    protection_total: Money
    add_ons_total: Money
    delivery_fee: Money
    different_dropoff_fee: Money

    pvrt_total: Money
    acsrch_total: Money
    daily_fees_total: Money
    young_driver_fee: Money
    late_fee: Money

    subtotal: Money
    pst_amount: Money
    gst_amount: Money
    tax_amount: Money
    total: Money

    rate_table_version: str


class DurationDiscount(BaseModel):
    model_config = ConfigDict(frozen=True)

    rate: Rate
    type: DiscountType


class VehicleSource(BaseModel):
    kind: Literal["vehicle"] = "vehicle"
    vehicle_id: str
    daily_rate: Money = Field(ge=0)
    category: Optional[str] = None


class CategorySource(BaseModel):
    kind: Literal["category"] = "category"
    category_id: str
    name: str
    daily_rate: Money = Field(ge=0)


VehicleRef = Annotated[Union[VehicleSource, CategorySource], Field(discriminator="kind")]


class BookingQuoteRequest(BaseModel):
    vehicle: VehicleRef
    pickup_at: datetime
    return_at: datetime
    protection_plan: ProtectionPlan = ProtectionPlan.NONE
    driver_age_band: Optional[DriverAgeBand] = None
    add_ons_total: Money = Field(Decimal("0"), ge=0)
    delivery_distance_km: Optional[float] = Field(None, ge=0)
    pickup_fee_group: Optional[str] = None
    return_fee_group: Optional[str] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.return_at <= self.pickup_at:
            raise ValueError("return_at must be after pickup_at")
        # calendar span in the pricing timezone can exceed the elapsed time by one day
        if self.return_at - self.pickup_at >= timedelta(days=MAX_RENTAL_DAYS):
            raise ValueError(f"Rental cannot exceed {MAX_RENTAL_DAYS} days")
        return self


class LateFeeIn(BaseModel):
    minutes_late: int = Field(ge=0)
    daily_rate: Optional[Money] = Field(None, ge=0)


class LateFeeOut(BaseModel):
    minutes_late: int
    fee: Money


class LateReturnInfo(BaseModel):
    is_late: bool
    in_grace_period: bool
    minutes_late: int
    hours_late: int
    fee: Money
    message: str


class DeliveryQuote(BaseModel):
    distance_km: float
    fee: Money
    within_range: bool


class CancellationQuote(BaseModel):
    fee: Money
    is_free: bool
    reason: str
