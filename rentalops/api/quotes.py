"""Pricing quote endpoints with Redis caching"""
import json
import logging
from decimal import Decimal
from fastapi import APIRouter, Depends, Query

from rentalops.core.config import settings
from rentalops.core.metrics import cache_hits, cache_misses, quotes_calculated
from rentalops.core.redis import get_redis
from rentalops.schemas.pricing import (
    BookingQuoteRequest,
    CancellationQuote,
    DeliveryQuote,
    DurationDiscount,
    LateFeeIn,
    LateFeeOut,
    PricingBreakdown,
    PricingInput,
)
from rentalops.services.fees import calculate_cancellation_fee, calculate_delivery_fee
from rentalops.services.pricing import (
    calculate_booking_pricing,
    calculate_late_fee,
    get_duration_discount,
    quote_booking,
)
from rentalops.services.rates import RateTable
from rentalops.api.rates import get_rate_table
from rentalops.utils.hashing import cache_key

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/quotes", tags=["quotes"])


def _quote_cache_key(inp: PricingInput, rates: RateTable) -> str:
    return cache_key("price", {"input": inp.model_dump(mode="json"), "rates": rates.version})


@router.post("/calc", response_model=PricingBreakdown)
async def calc_quote(inp: PricingInput, rates: RateTable = Depends(get_rate_table)):
    key = _quote_cache_key(inp, rates)
    redis = get_redis()

    if redis is not None:
        try:
            cached = await redis.get(key)
            if cached:
                cache_hits.labels(cache="price").inc()
                return PricingBreakdown.model_validate(json.loads(cached))
        except Exception as e:
            logger.warning(f"Cache retrieval failed: {e}")

    cache_misses.labels(cache="price").inc()
    result = calculate_booking_pricing(inp, rates)
    quotes_calculated.labels(source="calc", discount_type=str(result.discount_type)).inc()

    if redis is not None:
        try:
            await redis.set(key, result.model_dump_json(), ex=settings.PRICE_CACHE_TTL)
        except Exception as e:
            logger.warning(f"Cache write failed: {e}")

    return result


@router.post("/booking", response_model=PricingBreakdown)
async def booking_quote(req: BookingQuoteRequest, rates: RateTable = Depends(get_rate_table)):
    result = quote_booking(req, rates, settings.PRICING_TIMEZONE)
    quotes_calculated.labels(source="booking_quote", discount_type=str(result.discount_type)).inc()
    return result


@router.post("/late-fee", response_model=LateFeeOut)
async def late_fee(req: LateFeeIn, rates: RateTable = Depends(get_rate_table)):
    fee = calculate_late_fee(req.minutes_late, req.daily_rate, rates)
    return LateFeeOut(minutes_late=req.minutes_late, fee=fee)


@router.get("/duration-discount/{days}", response_model=DurationDiscount)
async def duration_discount(days: int, rates: RateTable = Depends(get_rate_table)):
    return get_duration_discount(days, rates)


@router.get("/delivery-fee", response_model=DeliveryQuote)
async def delivery_fee(distance_km: float = Query(..., ge=0)):
    return calculate_delivery_fee(distance_km)


@router.get("/cancellation-fee", response_model=CancellationQuote)
async def cancellation_fee(
    hours_until_pickup: float = Query(...),
    daily_rate: Decimal = Query(..., ge=0),
):
    return calculate_cancellation_fee(hours_until_pickup, daily_rate)
