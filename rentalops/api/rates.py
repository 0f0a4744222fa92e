"""Rate table inspection and admin overrides"""
import logging
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from rentalops.core.audit_log import log_audit
from rentalops.core.config import settings
from rentalops.core.enums import AuditAction
from rentalops.core.security import require_admin
from rentalops.db.session import get_db
from rentalops.models.setting import SystemSetting
from rentalops.services.rates import DEFAULT_RATE_TABLE, RateTable, is_known_rate_key

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/rates", tags=["rates"])


class RateSettingIn(BaseModel):
    value: str = Field(min_length=1, max_length=80)


async def load_overrides(db: AsyncSession) -> dict:
    res = await db.execute(select(SystemSetting))
    return {row.key: row.value for row in res.scalars().all()}


def build_rate_table(overrides: dict) -> RateTable:
    """Defaults, then the configured weekend policy, then stored overrides."""
    base = {}
    if settings.WEEKEND_SURCHARGE_POLICY != DEFAULT_RATE_TABLE.weekend_policy:
        base["weekend_policy"] = settings.WEEKEND_SURCHARGE_POLICY.value
    return DEFAULT_RATE_TABLE.with_overrides({**base, **overrides})


async def load_rate_table(db: AsyncSession) -> RateTable:
    return build_rate_table(await load_overrides(db))


async def get_rate_table(db: AsyncSession = Depends(get_db)) -> RateTable:
    return await load_rate_table(db)


@router.get("/", response_model=RateTable)
async def current_rates(rates: RateTable = Depends(get_rate_table)):
    return rates


@router.put("/{key}", response_model=RateTable)
async def update_rate_setting(
    key: str,
    payload: RateSettingIn,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_admin),
):
    if not is_known_rate_key(key):
        raise HTTPException(status_code=404, detail=f"Unknown rate setting '{key}'")

    overrides = await load_overrides(db)
    overrides[key] = payload.value
    # Raises InvalidRateSettingError before anything is stored
    rates = build_rate_table(overrides)

    res = await db.execute(select(SystemSetting).where(SystemSetting.key == key))
    setting = res.scalars().first()
    if setting is None:
        setting = SystemSetting(key=key, value=payload.value, updated_by=int(current_user.id))
        db.add(setting)
    else:
        setting.value = payload.value
        setting.updated_by = int(current_user.id)

    await log_audit(
        db,
        int(current_user.id),
        AuditAction.UPDATE_RATE_SETTING,
        {"key": key, "value": payload.value},
        note=rates.version,
    )
    await db.commit()
    logger.info(f"Rate setting {key} set to {payload.value} by user {current_user.id}, table {rates.version}")
    return rates
