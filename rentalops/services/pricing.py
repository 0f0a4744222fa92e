"""
Booking pricing calculator.

Pure functions only: every call builds a fresh PricingBreakdown from its
input and the rate table it is handed. Each monetary step is rounded to
cents (half-up) before it feeds the next one.
"""
import logging
import math
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Tuple

from rentalops.core.enums import DiscountType, DriverAgeBand, WeekendSurchargePolicy
from rentalops.core.exceptions import PriceMismatchError
from rentalops.schemas.pricing import (
    BookingQuoteRequest,
    CategorySource,
    DurationDiscount,
    LateReturnInfo,
    PricingBreakdown,
    PricingInput,
)
from rentalops.services.dates import DEFAULT_TIMEZONE, count_weekend_days, is_weekend_pickup, rental_days, to_local_date
from rentalops.services.fees import calculate_delivery_fee, dropoff_fee
from rentalops.services.rates import DEFAULT_RATE_TABLE, RateTable

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def round2(value) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def get_duration_discount(days: int, rates: RateTable = DEFAULT_RATE_TABLE) -> DurationDiscount:
    if days >= rates.monthly_discount_threshold:
        return DurationDiscount(rate=rates.monthly_discount_rate, type=DiscountType.MONTHLY)
    if days >= rates.weekly_discount_threshold:
        return DurationDiscount(rate=rates.weekly_discount_rate, type=DiscountType.WEEKLY)
    return DurationDiscount(rate=Decimal("0"), type=DiscountType.NONE)


def _weekend_surcharge(inp: PricingInput, base_total: Decimal, rates: RateTable) -> Tuple[int, Decimal]:
    weekend_days = count_weekend_days(inp.pickup_date, inp.rental_days)

    if rates.weekend_policy == WeekendSurchargePolicy.PER_WEEKEND_DAY:
        if weekend_days == 0:
            return weekend_days, ZERO
        return weekend_days, round2(inp.vehicle_daily_rate * weekend_days * rates.weekend_surcharge_rate)

    if not is_weekend_pickup(inp.pickup_date):
        return weekend_days, ZERO
    return weekend_days, round2(base_total * rates.weekend_surcharge_rate)


def calculate_booking_pricing(inp: PricingInput, rates: RateTable = DEFAULT_RATE_TABLE) -> PricingBreakdown:
    days = inp.rental_days

    vehicle_base_total = round2(inp.vehicle_daily_rate * days)
    weekend_days, weekend_surcharge = _weekend_surcharge(inp, vehicle_base_total, rates)
    vehicle_after_surcharge = round2(vehicle_base_total + weekend_surcharge)

    discount = get_duration_discount(days, rates)
    duration_discount = round2(vehicle_after_surcharge * discount.rate)
    vehicle_total = round2(vehicle_after_surcharge - duration_discount)

    protection_total = round2(inp.protection_daily_rate * days)

    pvrt_total = round2(rates.pvrt_daily_fee * days)
    acsrch_total = round2(rates.acsrch_daily_fee * days)
    daily_fees_total = round2(pvrt_total + acsrch_total)

    young_driver_fee = ZERO
    if inp.driver_age_band == DriverAgeBand.AGE_20_24:
        young_driver_fee = round2(rates.young_driver_daily_fee * days)

    add_ons_total = round2(inp.add_ons_total)
    delivery_fee = round2(inp.delivery_fee)
    different_dropoff_fee = round2(inp.different_dropoff_fee)
    late_fee = round2(inp.late_fee_amount)

    subtotal = round2(
        vehicle_total + protection_total + add_ons_total + delivery_fee
        + different_dropoff_fee + young_driver_fee + daily_fees_total + late_fee
    )
    pst_amount = round2(subtotal * rates.pst_rate)
    gst_amount = round2(subtotal * rates.gst_rate)
    tax_amount = round2(pst_amount + gst_amount)
    total = round2(subtotal + tax_amount)

    return PricingBreakdown(
        rental_days=days,
        daily_rate=round2(inp.vehicle_daily_rate),
        vehicle_base_total=vehicle_base_total,
        weekend_days=weekend_days,
        weekend_surcharge=weekend_surcharge,
        vehicle_after_surcharge=vehicle_after_surcharge,
        discount_type=discount.type,
        discount_rate=discount.rate,
        duration_discount=duration_discount,
        vehicle_total=vehicle_total,
        protection_daily_rate=round2(inp.protection_daily_rate),
        protection_total=protection_total,
        add_ons_total=add_ons_total,
        delivery_fee=delivery_fee,
        different_dropoff_fee=different_dropoff_fee,
        pvrt_total=pvrt_total,
        acsrch_total=acsrch_total,
        daily_fees_total=daily_fees_total,
        young_driver_fee=young_driver_fee,
        late_fee=late_fee,
        subtotal=subtotal,
        pst_amount=pst_amount,
        gst_amount=gst_amount,
        tax_amount=tax_amount,
        total=total,
        rate_table_version=rates.version,
    )


def calculate_late_fee(
    minutes_late: int,
    daily_rate: Optional[Decimal] = None,
    rates: RateTable = DEFAULT_RATE_TABLE,
) -> Decimal:
    """
    Late-return charge. Nothing inside the grace period; after it, billable
    time is rounded up to whole hours. With a daily rate, up to two hours
    cost a quarter day each and anything longer costs one extra day.
    Without one, a flat hourly rate applies, capped at a day's worth of hours.
    """
    if minutes_late <= rates.late_grace_minutes:
        return ZERO

    hours_late = math.ceil((minutes_late - rates.late_grace_minutes) / 60)

    if daily_rate is not None:
        daily_rate = Decimal(daily_rate)
        if hours_late <= rates.late_partial_day_hours:
            return round2(hours_late * daily_rate * rates.late_partial_day_rate)
        return round2(daily_rate)

    return round2(min(hours_late, rates.late_max_hours) * rates.late_hourly_rate)


def assess_late_return(
    scheduled_end: datetime,
    actual_return: datetime,
    daily_rate: Optional[Decimal] = None,
    rates: RateTable = DEFAULT_RATE_TABLE,
) -> LateReturnInfo:
    if actual_return <= scheduled_end:
        return LateReturnInfo(
            is_late=False, in_grace_period=False, minutes_late=0, hours_late=0, fee=ZERO, message="On time"
        )

    minutes_late = int((actual_return - scheduled_end).total_seconds() // 60)
    if minutes_late <= rates.late_grace_minutes:
        return LateReturnInfo(
            is_late=False,
            in_grace_period=True,
            minutes_late=minutes_late,
            hours_late=0,
            fee=ZERO,
            message=f"Within {rates.late_grace_minutes}-minute grace period",
        )

    hours_late = math.ceil((minutes_late - rates.late_grace_minutes) / 60)
    fee = calculate_late_fee(minutes_late, daily_rate, rates)
    return LateReturnInfo(
        is_late=True,
        in_grace_period=False,
        minutes_late=minutes_late,
        hours_late=hours_late,
        fee=fee,
        message=f"{hours_late} hour{'s' if hours_late != 1 else ''} late - CA${fee} fee",
    )


def resolve_vehicle(vehicle) -> Tuple[Decimal, Optional[str]]:
    """Daily rate and category name from either vehicle reference shape."""
    if isinstance(vehicle, CategorySource):
        return vehicle.daily_rate, vehicle.name
    return vehicle.daily_rate, vehicle.category


def build_pricing_input(
    req: BookingQuoteRequest,
    rates: RateTable = DEFAULT_RATE_TABLE,
    tz_name: str = DEFAULT_TIMEZONE,
    late_fee_amount: Decimal = ZERO,
) -> PricingInput:
    daily_rate, category = resolve_vehicle(req.vehicle)

    delivery_fee = ZERO
    if req.delivery_distance_km is not None:
        delivery_fee = calculate_delivery_fee(req.delivery_distance_km).fee

    return PricingInput(
        vehicle_daily_rate=daily_rate,
        rental_days=rental_days(req.pickup_at, req.return_at, tz_name),
        protection_daily_rate=rates.protection_rate(req.protection_plan, category),
        add_ons_total=req.add_ons_total,
        delivery_fee=delivery_fee,
        different_dropoff_fee=dropoff_fee(req.pickup_fee_group, req.return_fee_group),
        driver_age_band=req.driver_age_band,
        pickup_date=to_local_date(req.pickup_at, tz_name),
        late_fee_amount=late_fee_amount,
    )


def quote_booking(
    req: BookingQuoteRequest,
    rates: RateTable = DEFAULT_RATE_TABLE,
    tz_name: str = DEFAULT_TIMEZONE,
) -> PricingBreakdown:
    return calculate_booking_pricing(build_pricing_input(req, rates, tz_name), rates)


def validate_client_total(
    breakdown: PricingBreakdown,
    client_total: Decimal,
    rates: RateTable = DEFAULT_RATE_TABLE,
) -> None:
    diff = abs(breakdown.total - round2(client_total))
    if diff > rates.price_mismatch_tolerance:
        logger.warning(f"Price mismatch: client={client_total}, server={breakdown.total}, diff={diff}")
        raise PriceMismatchError(
            f"Price mismatch: expected ${breakdown.total}, received ${round2(client_total)}"
        )
