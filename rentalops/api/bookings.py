from fastapi import APIRouter, BackgroundTasks, Depends, Header, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from typing import Optional, List

from rentalops.api.rates import get_rate_table
from rentalops.db.session import get_db
from rentalops.models.booking import Booking
from rentalops.schemas.booking import (
    BookingCreate,
    BookingOut,
    DepositDecision,
    DepositLedgerOut,
    ReturnIntakeIn,
    ReturnProgressOut,
    ReturnStateAdvance,
    StatusChange,
)
from rentalops.schemas.pricing import LateReturnInfo
from rentalops.core.config import settings
from rentalops.core.audit_log import log_audit
from rentalops.core.enums import AuditAction, BookingStatus, ReturnState, UserRole
from rentalops.core.security import get_current_user, require_operations
from rentalops.core.rate_limit import check_rate_limit
from rentalops.core.auth_utils import check_ownership
from rentalops.core.response_builders import build_booking_response, build_ledger_response, build_progress_response
from rentalops.services import bookings as booking_service
from rentalops.services.rates import RateTable
from rentalops.services.tasks import reprice_booking
from rentalops.services.webhook import send_webhook
from rentalops.utils.idempotency import get_idempotent, set_idempotent

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _webhook_payload(booking: Booking, event: str) -> dict:
    return {
        "event": event,
        "booking_id": booking.id,
        "booking_code": booking.booking_code,
        "status": str(booking.status),
        "return_state": str(booking.return_state) if booking.return_state else None,
        "total_amount": str(booking.total_amount),
    }


@router.post("/", response_model=BookingOut)
async def create_booking(
    payload: BookingCreate,
    idempotency_key: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
    rates: RateTable = Depends(get_rate_table),
    current_user=Depends(get_current_user),
):
    await check_rate_limit(int(current_user.id))

    # Keys are scoped per user so one customer can never replay another's response
    scoped_key = f"booking:{current_user.id}:{idempotency_key}" if idempotency_key else None
    if scoped_key:
        prev = await get_idempotent(scoped_key)
        if prev:
            return prev

    booking, _ = await booking_service.create_booking(
        db, payload, int(current_user.id), rates, settings.PRICING_TIMEZONE
    )
    await db.commit()
    await db.refresh(booking)

    out = build_booking_response(booking)
    if scoped_key:
        await set_idempotent(scoped_key, out.model_dump(mode="json"))
    return out


@router.get("/", response_model=List[BookingOut])
async def list_bookings(
    status: Optional[BookingStatus] = Query(None),
    return_state: Optional[ReturnState] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    q = select(Booking)

    if current_user.role == UserRole.CUSTOMER:
        q = q.where(Booking.created_by == int(current_user.id))
    if status:
        q = q.where(Booking.status == status)
    if return_state:
        q = q.where(Booking.return_state == return_state)

    q = q.order_by(Booking.start_at.desc()).limit(limit).offset(offset)
    res = await db.execute(q)
    return [build_booking_response(b) for b in res.scalars().all()]


@router.get("/{booking_id}", response_model=BookingOut)
async def get_booking(
    booking_id: int,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    booking = await booking_service.get_booking(db, booking_id)
    check_ownership(booking, current_user)
    return build_booking_response(booking)


@router.post("/{booking_id}/status", response_model=BookingOut)
async def change_status(
    booking_id: int,
    payload: StatusChange,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_operations),
):
    await check_rate_limit(int(current_user.id))

    booking = await booking_service.get_booking(db, booking_id)
    old_status = booking.status
    await booking_service.change_booking_status(
        db, booking, payload.status, int(current_user.id), payload.bypass_reason
    )
    await db.commit()
    await db.refresh(booking)

    if old_status != booking.status and booking.status == BookingStatus.COMPLETED:
        background_tasks.add_task(send_webhook, _webhook_payload(booking, "booking.completed"))

    return build_booking_response(booking)


@router.get("/{booking_id}/return", response_model=ReturnProgressOut)
async def return_progress(
    booking_id: int,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_operations),
):
    booking = await booking_service.get_booking(db, booking_id)
    return build_progress_response(booking)


@router.post("/{booking_id}/return/advance", response_model=ReturnProgressOut)
async def advance_return(
    booking_id: int,
    payload: ReturnStateAdvance,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_operations),
):
    booking = await booking_service.get_booking(db, booking_id)
    await booking_service.advance_return_state(
        db, booking, payload.target_state, int(current_user.id), payload.bypass_reason
    )
    await db.commit()
    await db.refresh(booking)
    return build_progress_response(booking)


@router.post("/{booking_id}/return/intake", response_model=LateReturnInfo)
async def record_intake(
    booking_id: int,
    payload: ReturnIntakeIn,
    db: AsyncSession = Depends(get_db),
    rates: RateTable = Depends(get_rate_table),
    current_user=Depends(require_operations),
):
    booking = await booking_service.get_booking(db, booking_id)
    late = await booking_service.record_return_intake(
        db, booking, payload, int(current_user.id), rates, settings.PRICING_TIMEZONE
    )
    await db.commit()
    return late


@router.post("/{booking_id}/deposit", response_model=List[DepositLedgerOut])
async def process_deposit(
    booking_id: int,
    payload: DepositDecision,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_operations),
):
    booking = await booking_service.get_booking(db, booking_id)
    entries = await booking_service.process_deposit(db, booking, payload, int(current_user.id))
    await db.commit()
    for entry in entries:
        await db.refresh(entry)

    background_tasks.add_task(send_webhook, _webhook_payload(booking, "booking.deposit_processed"))
    return [build_ledger_response(e) for e in entries]


@router.post("/{booking_id}/reprice")
async def reprice(
    booking_id: int,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_operations),
):
    await check_rate_limit(int(current_user.id))

    booking = await booking_service.get_booking(db, booking_id)
    await log_audit(db, int(current_user.id), AuditAction.REPRICE_BOOKING, entity_id=booking.id)
    await db.commit()
    reprice_booking.delay(booking_id)

    return {"status": "queued"}
