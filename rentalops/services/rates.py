"""
Versioned pricing rate table.

Every fee, tax and threshold the calculator uses lives on one immutable
RateTable. Admin-editable overrides from the settings store are folded in
with `with_overrides`, which yields a new table with a derived version, so
a quote is always computed against one explicit table.
"""
import logging
import re
from decimal import Decimal
from typing import Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from rentalops.core.enums import ProtectionPlan, WeekendSurchargePolicy
from rentalops.core.exceptions import InvalidRateSettingError
from rentalops.utils.hashing import payload_hash

logger = logging.getLogger(__name__)

# Both historical key layouts: "protection_basic_rate" (group 1) and
# "protection_g2_basic_rate"
PROTECTION_KEY = re.compile(r"^protection(?:_g(?P<group>[123]))?_(?P<plan>basic|smart|premium)_rate$")


class GroupRates(BaseModel):
    model_config = ConfigDict(frozen=True)

    basic: Decimal = Field(ge=0)
    smart: Decimal = Field(ge=0)
    premium: Decimal = Field(ge=0)


DEFAULT_PROTECTION_RATES = {
    1: GroupRates(basic=Decimal("32.99"), smart=Decimal("37.99"), premium=Decimal("49.99")),
    2: GroupRates(basic=Decimal("52.99"), smart=Decimal("57.99"), premium=Decimal("69.99")),
    3: GroupRates(basic=Decimal("64.99"), smart=Decimal("69.99"), premium=Decimal("82.99")),
}


class RateTable(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: str = "2025.1"

    pst_rate: Decimal = Field(Decimal("0.07"), ge=0)
    gst_rate: Decimal = Field(Decimal("0.05"), ge=0)

    pvrt_daily_fee: Decimal = Field(Decimal("1.50"), ge=0)
    acsrch_daily_fee: Decimal = Field(Decimal("1.00"), ge=0)
    young_driver_daily_fee: Decimal = Field(Decimal("15.00"), ge=0)

    weekend_surcharge_rate: Decimal = Field(Decimal("0.15"), ge=0)
    weekend_policy: WeekendSurchargePolicy = WeekendSurchargePolicy.PICKUP_DAY

    weekly_discount_threshold: int = Field(7, ge=1)
    weekly_discount_rate: Decimal = Field(Decimal("0.10"), ge=0, le=1)
    monthly_discount_threshold: int = Field(21, ge=1)
    monthly_discount_rate: Decimal = Field(Decimal("0.20"), ge=0, le=1)

    late_grace_minutes: int = Field(30, ge=0)
    late_hourly_rate: Decimal = Field(Decimal("25.00"), ge=0)
    late_max_hours: int = Field(24, ge=1)
    late_partial_day_hours: int = Field(2, ge=0)
    late_partial_day_rate: Decimal = Field(Decimal("0.25"), ge=0)

    minimum_deposit: Decimal = Field(Decimal("350.00"), ge=0)
    price_mismatch_tolerance: Decimal = Field(Decimal("0.50"), ge=0)

    protection_rates: Dict[int, GroupRates] = Field(default_factory=lambda: dict(DEFAULT_PROTECTION_RATES))

    def protection_rate(self, plan: Optional[str], category_name: Optional[str]) -> Decimal:
        if not plan or plan == ProtectionPlan.NONE:
            return Decimal("0")
        rates = self.protection_rates.get(protection_group(category_name)) or self.protection_rates[1]
        return getattr(rates, ProtectionPlan(plan).value)

    def with_overrides(self, overrides: Mapping[str, str]) -> "RateTable":
        """Fold settings-store key/value pairs into a new table."""
        if not overrides:
            return self

        data = self.model_dump()
        groups = {g: rates.model_dump() for g, rates in self.protection_rates.items()}
        applied = {}

        for key, value in sorted(overrides.items()):
            match = PROTECTION_KEY.match(key)
            if match:
                group = int(match.group("group") or 1)
                groups.setdefault(group, dict(groups[1]))[match.group("plan")] = value
                applied[key] = str(value)
            elif is_known_rate_key(key):
                data[key] = value
                applied[key] = str(value)
            else:
                logger.warning(f"Ignoring unknown rate setting '{key}'")

        if not applied:
            return self

        data["protection_rates"] = groups
        data["version"] = f"{self.version}+{payload_hash(applied)[:8]}"
        try:
            return RateTable.model_validate(data)
        except ValidationError as e:
            raise InvalidRateSettingError(f"Error: invalid rate setting: {e.errors()[0]['msg']}")


def is_known_rate_key(key: str) -> bool:
    if PROTECTION_KEY.match(key):
        return True
    return key in RateTable.model_fields and key not in ("version", "protection_rates")


def protection_group(category_name: Optional[str]) -> int:
    """Map a vehicle category name to its protection pricing group."""
    if not category_name:
        return 1
    name = category_name.upper()
    if "LARGE" in name and "SUV" in name:
        return 3
    if "MINIVAN" in name:
        return 2
    if "STANDARD" in name and "SUV" in name:
        return 2
    return 1


DEFAULT_RATE_TABLE = RateTable()
