"""Delivery, drop-off and cancellation fees that feed the booking quote"""
from decimal import Decimal
from typing import Optional

from rentalops.schemas.pricing import CancellationQuote, DeliveryQuote

MAX_DELIVERY_DISTANCE_KM = 50.0

# (max km, fee), checked in order
DELIVERY_TIERS = [
    (10.0, Decimal("0.00")),
    (50.0, Decimal("49.00")),
]

# Keyed by the alphabetically sorted pair of location fee groups
DROPOFF_FEES = {
    ("langley", "surrey"): Decimal("50.00"),
    ("abbotsford", "langley"): Decimal("75.00"),
    ("abbotsford", "surrey"): Decimal("75.00"),
}

CANCELLATION_PENALTY_DAYS = 1


def calculate_delivery_fee(distance_km: float) -> DeliveryQuote:
    if distance_km > MAX_DELIVERY_DISTANCE_KM:
        return DeliveryQuote(distance_km=distance_km, fee=Decimal("0.00"), within_range=False)

    for max_km, fee in DELIVERY_TIERS:
        if distance_km <= max_km:
            return DeliveryQuote(distance_km=distance_km, fee=fee, within_range=True)

    return DeliveryQuote(distance_km=distance_km, fee=DELIVERY_TIERS[-1][1], within_range=True)


def dropoff_fee(pickup_group: Optional[str], return_group: Optional[str]) -> Decimal:
    if not pickup_group or not return_group:
        return Decimal("0.00")
    pair = tuple(sorted((pickup_group.lower(), return_group.lower())))
    if pair[0] == pair[1]:
        return Decimal("0.00")
    return DROPOFF_FEES.get(pair, Decimal("0.00"))


def calculate_cancellation_fee(hours_until_pickup: float, daily_rate: Decimal) -> CancellationQuote:
    if hours_until_pickup > 0:
        return CancellationQuote(fee=Decimal("0.00"), is_free=True, reason="Free cancellation (before pickup time)")

    fee = Decimal(daily_rate) * CANCELLATION_PENALTY_DAYS
    return CancellationQuote(
        fee=fee,
        is_free=False,
        reason=f"Cancellation after pickup time incurs a {CANCELLATION_PENALTY_DAYS}-day rental penalty (${fee:.2f})",
    )
