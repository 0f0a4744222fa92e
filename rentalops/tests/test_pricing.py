import pytest
from datetime import date, datetime, timedelta
from decimal import Decimal

from pydantic import ValidationError

from rentalops.core.enums import DiscountType, DriverAgeBand, ProtectionPlan, WeekendSurchargePolicy
from rentalops.core.exceptions import PriceMismatchError
from rentalops.schemas.pricing import MAX_RENTAL_DAYS, BookingQuoteRequest, PricingInput
from rentalops.services.pricing import (
    assess_late_return,
    build_pricing_input,
    calculate_booking_pricing,
    calculate_late_fee,
    get_duration_discount,
    quote_booking,
    round2,
    validate_client_total,
)
from rentalops.services.rates import DEFAULT_RATE_TABLE

MONDAY = date(2025, 3, 10)
THURSDAY = date(2025, 3, 13)
FRIDAY = date(2025, 3, 14)

PER_DAY_RATES = DEFAULT_RATE_TABLE.with_overrides({"weekend_policy": "per_weekend_day"})


def _input(**kwargs):
    data = {"vehicle_daily_rate": Decimal("100"), "rental_days": 3, "pickup_date": MONDAY}
    data.update(kwargs)
    return PricingInput(**data)


class TestRounding:

    @pytest.mark.parametrize("value,expected", [
        ("21.525", "21.53"),
        ("15.375", "15.38"),
        ("0.005", "0.01"),
        ("0.004", "0.00"),
        ("10", "10.00"),
    ])
    def test_round_half_up(self, value, expected):
        assert round2(Decimal(value)) == Decimal(expected)


class TestDurationDiscount:

    @pytest.mark.parametrize("days,expected_type,expected_rate", [
        (1, DiscountType.NONE, "0"),
        (6, DiscountType.NONE, "0"),
        (7, DiscountType.WEEKLY, "0.10"),
        (20, DiscountType.WEEKLY, "0.10"),
        (21, DiscountType.MONTHLY, "0.20"),
        (60, DiscountType.MONTHLY, "0.20"),
    ])
    def test_thresholds(self, days, expected_type, expected_rate):
        discount = get_duration_discount(days)
        assert discount.type == expected_type
        assert discount.rate == Decimal(expected_rate)


class TestBookingPricing:

    def test_weekday_rental(self):
        result = calculate_booking_pricing(_input())

        assert result.vehicle_base_total == Decimal("300.00")
        assert result.weekend_days == 0
        assert result.weekend_surcharge == Decimal("0.00")
        assert result.discount_type == DiscountType.NONE
        assert result.vehicle_total == Decimal("300.00")
        assert result.pvrt_total == Decimal("4.50")
        assert result.acsrch_total == Decimal("3.00")
        assert result.daily_fees_total == Decimal("7.50")
        assert result.subtotal == Decimal("307.50")
        # 7% of 307.50 is 21.525 and 5% is 15.375; both round up
        assert result.pst_amount == Decimal("21.53")
        assert result.gst_amount == Decimal("15.38")
        assert result.tax_amount == Decimal("36.91")
        assert result.total == Decimal("344.41")
        assert result.rate_table_version == DEFAULT_RATE_TABLE.version

    def test_weekend_pickup_surcharges_whole_base(self):
        result = calculate_booking_pricing(_input(rental_days=5, pickup_date=FRIDAY))

        assert result.weekend_days == 3
        assert result.weekend_surcharge == Decimal("75.00")
        assert result.vehicle_after_surcharge == Decimal("575.00")
        assert result.subtotal == Decimal("587.50")
        assert result.tax_amount == Decimal("70.51")
        assert result.total == Decimal("658.01")

    def test_weekday_pickup_spanning_weekend_has_no_surcharge(self):
        result = calculate_booking_pricing(_input(rental_days=5, pickup_date=THURSDAY))

        assert result.weekend_days == 3
        assert result.weekend_surcharge == Decimal("0.00")

    def test_per_weekend_day_policy(self):
        result = calculate_booking_pricing(_input(rental_days=5, pickup_date=THURSDAY), PER_DAY_RATES)

        assert result.weekend_days == 3
        assert result.weekend_surcharge == Decimal("45.00")
        assert result.rate_table_version != DEFAULT_RATE_TABLE.version

    def test_per_weekend_day_policy_without_weekend(self):
        result = calculate_booking_pricing(_input(rental_days=3, pickup_date=MONDAY), PER_DAY_RATES)
        assert result.weekend_surcharge == Decimal("0.00")

    def test_missing_pickup_date_means_no_surcharge(self):
        result = calculate_booking_pricing(_input(rental_days=5, pickup_date=None))

        assert result.weekend_days == 0
        assert result.weekend_surcharge == Decimal("0.00")

    def test_weekly_discount_applies_after_surcharge(self):
        result = calculate_booking_pricing(_input(vehicle_daily_rate=Decimal("50"), rental_days=7))

        assert result.vehicle_base_total == Decimal("350.00")
        assert result.discount_type == DiscountType.WEEKLY
        assert result.duration_discount == Decimal("35.00")
        assert result.vehicle_total == Decimal("315.00")
        assert result.daily_fees_total == Decimal("17.50")
        assert result.subtotal == Decimal("332.50")
        assert result.total == Decimal("372.41")

    def test_monthly_discount(self):
        result = calculate_booking_pricing(_input(vehicle_daily_rate=Decimal("40"), rental_days=21))

        assert result.discount_type == DiscountType.MONTHLY
        assert result.duration_discount == Decimal("168.00")
        assert result.vehicle_total == Decimal("672.00")

    def test_young_driver_fee(self):
        young = calculate_booking_pricing(_input(driver_age_band=DriverAgeBand.AGE_20_24))
        standard = calculate_booking_pricing(_input(driver_age_band=DriverAgeBand.AGE_25_70))

        assert young.young_driver_fee == Decimal("45.00")
        assert standard.young_driver_fee == Decimal("0.00")
        assert young.subtotal - standard.subtotal == Decimal("45.00")

    def test_extras_flow_into_subtotal(self):
        result = calculate_booking_pricing(_input(
            protection_daily_rate=Decimal("32.99"),
            add_ons_total=Decimal("20"),
            delivery_fee=Decimal("49"),
            different_dropoff_fee=Decimal("50"),
            late_fee_amount=Decimal("25"),
        ))

        assert result.protection_total == Decimal("98.97")
        assert result.subtotal == Decimal("300.00") + Decimal("98.97") + Decimal("20.00") + Decimal("49.00") \
            + Decimal("50.00") + Decimal("7.50") + Decimal("25.00")
        assert result.total == result.subtotal + result.tax_amount

    def test_zero_days(self):
        result = calculate_booking_pricing(_input(rental_days=0))

        assert result.vehicle_base_total == Decimal("0.00")
        assert result.daily_fees_total == Decimal("0.00")
        assert result.total == Decimal("0.00")

    def test_inputs_are_not_mutated(self):
        inp = _input(rental_days=5, pickup_date=FRIDAY)
        first = calculate_booking_pricing(inp)
        second = calculate_booking_pricing(inp)

        assert first == second
        assert inp.rental_days == 5

    @pytest.mark.parametrize("days", [1, 3, 6, 7, 13, 21, 45])
    @pytest.mark.parametrize("daily_rate", ["19.99", "57.35", "100", "249.49"])
    @pytest.mark.parametrize("age_band", [None, DriverAgeBand.AGE_20_24, DriverAgeBand.AGE_25_70])
    @pytest.mark.parametrize("pickup_date", [MONDAY + timedelta(days=n) for n in range(7)])
    def test_total_is_subtotal_plus_taxes(self, days, daily_rate, age_band, pickup_date):
        inp = _input(
            vehicle_daily_rate=Decimal(daily_rate),
            rental_days=days,
            driver_age_band=age_band,
            pickup_date=pickup_date,
        )
        result = calculate_booking_pricing(inp)

        assert result.total == result.subtotal + result.pst_amount + result.gst_amount
        assert result.tax_amount == result.pst_amount + result.gst_amount
        assert calculate_booking_pricing(inp) == result

        per_day = calculate_booking_pricing(inp, PER_DAY_RATES)
        assert per_day.total == per_day.subtotal + per_day.pst_amount + per_day.gst_amount

    def test_longest_rental_prices(self):
        result = calculate_booking_pricing(_input(rental_days=MAX_RENTAL_DAYS))

        assert result.weekend_days == 1563
        assert result.discount_type == DiscountType.MONTHLY

    def test_rental_days_beyond_limit_rejected(self):
        with pytest.raises(ValidationError):
            _input(rental_days=3_000_000)


class TestLateFee:

    @pytest.mark.parametrize("minutes,expected", [
        (0, "0.00"),
        (30, "0.00"),
        (31, "25.00"),
        (90, "25.00"),
        (91, "50.00"),
        (10000, "600.00"),
    ])
    def test_hourly(self, minutes, expected):
        assert calculate_late_fee(minutes) == Decimal(expected)

    @pytest.mark.parametrize("minutes,expected", [
        (30, "0.00"),
        (31, "25.00"),
        (150, "50.00"),
        (151, "100.00"),
    ])
    def test_with_daily_rate(self, minutes, expected):
        assert calculate_late_fee(minutes, Decimal("100")) == Decimal(expected)

    def test_on_time(self, vancouver):
        end = vancouver.localize(datetime(2025, 3, 13, 10, 0))
        info = assess_late_return(end, end)

        assert info.is_late is False
        assert info.in_grace_period is False
        assert info.fee == Decimal("0.00")

    def test_within_grace(self, vancouver):
        end = vancouver.localize(datetime(2025, 3, 13, 10, 0))
        info = assess_late_return(end, vancouver.localize(datetime(2025, 3, 13, 10, 20)))

        assert info.is_late is False
        assert info.in_grace_period is True
        assert info.minutes_late == 20
        assert info.fee == Decimal("0.00")

    def test_late(self, vancouver):
        end = vancouver.localize(datetime(2025, 3, 13, 10, 0))
        info = assess_late_return(end, vancouver.localize(datetime(2025, 3, 13, 12, 0)))

        assert info.is_late is True
        assert info.minutes_late == 120
        assert info.hours_late == 2
        assert info.fee == Decimal("50.00")
        assert "2 hours late" in info.message


class TestBookingQuote:

    def _request(self, **kwargs):
        data = {
            "vehicle": {"kind": "vehicle", "vehicle_id": "v-1", "daily_rate": "100", "category": "Compact"},
            "pickup_at": datetime(2025, 3, 14, 10, 0),
            "return_at": datetime(2025, 3, 19, 10, 0),
        }
        data.update(kwargs)
        return BookingQuoteRequest(**data)

    def test_quote_matches_calculator(self):
        result = quote_booking(self._request())

        assert result.rental_days == 5
        assert result.weekend_surcharge == Decimal("75.00")
        assert result.total == Decimal("658.01")

    def test_category_source_and_protection_group(self):
        req = self._request(
            vehicle={"kind": "category", "category_id": "c-9", "name": "Standard SUV", "daily_rate": "100"},
            protection_plan=ProtectionPlan.BASIC,
        )
        inp = build_pricing_input(req)

        assert inp.protection_daily_rate == Decimal("52.99")
        assert quote_booking(req).protection_total == Decimal("264.95")

    def test_delivery_and_dropoff_fees(self):
        req = self._request(delivery_distance_km=25, pickup_fee_group="Langley", return_fee_group="surrey")
        inp = build_pricing_input(req)

        assert inp.delivery_fee == Decimal("49.00")
        assert inp.different_dropoff_fee == Decimal("50.00")

    def test_same_day_return_counts_one_day(self):
        req = self._request(return_at=datetime(2025, 3, 14, 18, 0))
        assert build_pricing_input(req).rental_days == 1

    def test_return_before_pickup_rejected(self):
        with pytest.raises(ValueError):
            self._request(return_at=datetime(2025, 3, 13, 10, 0))

    def test_span_beyond_limit_rejected(self):
        with pytest.raises(ValueError):
            self._request(return_at=datetime(2035, 3, 14, 10, 0))


class TestClientTotal:

    def test_within_tolerance(self):
        breakdown = calculate_booking_pricing(_input())
        validate_client_total(breakdown, Decimal("344.00"))

    def test_mismatch(self):
        breakdown = calculate_booking_pricing(_input())
        with pytest.raises(PriceMismatchError):
            validate_client_total(breakdown, Decimal("343.90"))

    def test_weekend_policy_enum_is_exposed(self):
        assert PER_DAY_RATES.weekend_policy == WeekendSurchargePolicy.PER_WEEKEND_DAY
