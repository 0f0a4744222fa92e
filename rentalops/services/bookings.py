"""
Booking operations on top of the pricing calculator and return workflow.

These functions mutate ORM objects and write audit rows but never commit;
the router owns the transaction. Concurrent writers to one booking are
serialised by the booking's version column, so a stale read fails at
flush time instead of moving the return workflow out of order.
"""
import logging
import secrets
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from rentalops.core.audit_log import log_audit
from rentalops.core.enums import AuditAction, BookingStatus, DepositAction, ReturnState, ReturnStepId
from rentalops.core.exceptions import (
    BookingNotFoundError,
    DepositProcessingError,
    InvalidBypassReasonError,
    WorkflowViolationError,
)
from rentalops.core.metrics import (
    booking_status_changes,
    quotes_calculated,
    return_state_transitions,
    workflow_blocked,
    workflow_bypasses,
)
from rentalops.models.booking import Booking
from rentalops.models.deposit import DepositLedgerEntry
from rentalops.schemas.booking import BookingCreate, DepositDecision, ReturnIntakeIn
from rentalops.schemas.pricing import CategorySource, LateReturnInfo, PricingBreakdown, PricingInput
from rentalops.services.dates import DEFAULT_TIMEZONE, localize, to_local_date
from rentalops.services.pricing import (
    assess_late_return,
    build_pricing_input,
    calculate_booking_pricing,
    round2,
    validate_client_total,
)
from rentalops.services.rates import DEFAULT_RATE_TABLE, RateTable
from rentalops.services.return_workflow import (
    can_access_step,
    can_transition_to,
    is_step_complete,
    is_valid_bypass_reason,
    validate_return_workflow,
)

logger = logging.getLogger(__name__)

RETURN_WORKFLOW_STATUSES = {BookingStatus.ACTIVE, BookingStatus.COMPLETED}


def generate_booking_code() -> str:
    return f"RB{secrets.token_hex(4).upper()}"


async def get_booking(db: AsyncSession, booking_id: int) -> Booking:
    res = await db.execute(select(Booking).where(Booking.id == booking_id))
    booking = res.scalars().first()
    if not booking:
        raise BookingNotFoundError(f"Booking with id {booking_id} not found")
    return booking


def apply_pricing(booking: Booking, breakdown: PricingBreakdown) -> None:
    booking.total_days = breakdown.rental_days
    booking.daily_rate = breakdown.daily_rate
    booking.protection_daily_rate = breakdown.protection_daily_rate
    booking.add_ons_total = breakdown.add_ons_total
    booking.delivery_fee = breakdown.delivery_fee
    booking.different_dropoff_fee = breakdown.different_dropoff_fee
    booking.young_driver_fee = breakdown.young_driver_fee
    booking.late_fee = breakdown.late_fee
    booking.subtotal = breakdown.subtotal
    booking.tax_amount = breakdown.tax_amount
    booking.total_amount = breakdown.total
    booking.rate_table_version = breakdown.rate_table_version


def reprice_booking(
    booking: Booking,
    rates: RateTable = DEFAULT_RATE_TABLE,
    tz_name: str = DEFAULT_TIMEZONE,
) -> PricingBreakdown:
    """Recompute the stored pricing columns from the booking's own inputs."""
    inp = PricingInput(
        vehicle_daily_rate=booking.daily_rate,
        rental_days=booking.total_days,
        protection_daily_rate=rates.protection_rate(booking.protection_plan, booking.vehicle_category),
        add_ons_total=booking.add_ons_total or Decimal("0"),
        delivery_fee=booking.delivery_fee or Decimal("0"),
        different_dropoff_fee=booking.different_dropoff_fee or Decimal("0"),
        driver_age_band=booking.driver_age_band,
        pickup_date=to_local_date(booking.start_at, tz_name),
        late_fee_amount=booking.late_fee or Decimal("0"),
    )
    breakdown = calculate_booking_pricing(inp, rates)
    apply_pricing(booking, breakdown)
    quotes_calculated.labels(source="reprice", discount_type=str(breakdown.discount_type)).inc()
    return breakdown


async def create_booking(
    db: AsyncSession,
    payload: BookingCreate,
    user_id: int,
    rates: RateTable = DEFAULT_RATE_TABLE,
    tz_name: str = DEFAULT_TIMEZONE,
) -> Tuple[Booking, PricingBreakdown]:
    breakdown = calculate_booking_pricing(build_pricing_input(payload, rates, tz_name), rates)
    if payload.client_total is not None:
        validate_client_total(breakdown, payload.client_total, rates)

    vehicle = payload.vehicle
    if isinstance(vehicle, CategorySource):
        vehicle_ref, category = vehicle.category_id, vehicle.name
    else:
        vehicle_ref, category = vehicle.vehicle_id, vehicle.category

    booking = Booking(
        booking_code=generate_booking_code(),
        created_by=int(user_id),
        status=BookingStatus.PENDING,
        vehicle_kind=vehicle.kind,
        vehicle_ref=vehicle_ref,
        vehicle_category=category,
        start_at=localize(payload.pickup_at, tz_name),
        end_at=localize(payload.return_at, tz_name),
        driver_age_band=str(payload.driver_age_band) if payload.driver_age_band else None,
        protection_plan=str(payload.protection_plan),
        pickup_fee_group=payload.pickup_fee_group,
        return_fee_group=payload.return_fee_group,
        delivery_distance_km=payload.delivery_distance_km,
        deposit_amount=rates.minimum_deposit,
        notes=payload.notes,
    )
    apply_pricing(booking, breakdown)
    quotes_calculated.labels(source="booking", discount_type=str(breakdown.discount_type)).inc()

    db.add(booking)
    await db.flush()
    db.add(DepositLedgerEntry(
        booking_id=booking.id,
        created_by=int(user_id),
        action=DepositAction.HOLD,
        amount=booking.deposit_amount,
        reason="Security deposit held at booking",
    ))
    await log_audit(db, user_id, AuditAction.CREATE_BOOKING, payload, entity_id=booking.id)
    logger.info(f"Booking {booking.booking_code} created, total {breakdown.total}")
    return booking, breakdown


async def _authorise_bypass(
    db: AsyncSession,
    booking: Booking,
    actor_id: int,
    kind: str,
    blocked_reason: str,
    bypass_reason: Optional[str],
    detail: dict,
) -> None:
    """Let a blocked transition through only with an adequate justification."""
    if bypass_reason is None:
        workflow_blocked.labels(kind=kind).inc()
        raise WorkflowViolationError(blocked_reason)
    if not is_valid_bypass_reason(bypass_reason):
        workflow_blocked.labels(kind=kind).inc()
        raise InvalidBypassReasonError()

    workflow_bypasses.labels(kind=kind).inc()
    logger.warning(
        f"Workflow bypass on booking {booking.booking_code} by user {actor_id}: {kind} {detail}"
    )
    await log_audit(
        db,
        actor_id,
        AuditAction.WORKFLOW_BYPASS,
        {"kind": kind, **detail},
        entity_id=booking.id,
        note=bypass_reason.strip(),
    )


async def change_booking_status(
    db: AsyncSession,
    booking: Booking,
    new_status: BookingStatus,
    actor_id: int,
    bypass_reason: Optional[str] = None,
) -> Booking:
    old_status = booking.status
    check = validate_return_workflow(old_status, new_status, booking.return_state)
    if not check.allowed:
        await _authorise_bypass(
            db,
            booking,
            actor_id,
            "status",
            check.reason,
            bypass_reason,
            {"from": str(old_status), "to": str(new_status), "return_state": str(booking.return_state)},
        )

    booking.status = new_status
    if new_status == BookingStatus.ACTIVE and booking.return_state is None:
        booking.return_state = ReturnState.NOT_STARTED

    booking_status_changes.labels(from_status=str(old_status), to_status=str(new_status)).inc()
    await log_audit(
        db,
        actor_id,
        AuditAction.CHANGE_STATUS,
        {"from": str(old_status), "to": str(new_status)},
        entity_id=booking.id,
    )
    return booking


async def advance_return_state(
    db: AsyncSession,
    booking: Booking,
    target: ReturnState,
    actor_id: int,
    bypass_reason: Optional[str] = None,
) -> Booking:
    if booking.status not in RETURN_WORKFLOW_STATUSES:
        raise WorkflowViolationError(
            f"Return workflow is only available for active or completed bookings (status: {booking.status})"
        )

    current = booking.return_state or ReturnState.NOT_STARTED
    if not can_transition_to(current, target):
        await _authorise_bypass(
            db,
            booking,
            actor_id,
            "return_state",
            f"Return state can only advance one step at a time (current: {current}, requested: {target})",
            bypass_reason,
            {"from": str(current), "to": str(target)},
        )

    booking.return_state = target
    return_state_transitions.labels(from_state=str(current), to_state=str(target)).inc()
    await log_audit(
        db,
        actor_id,
        AuditAction.ADVANCE_RETURN_STATE,
        {"from": str(current), "to": str(target)},
        entity_id=booking.id,
    )
    return booking


async def record_return_intake(
    db: AsyncSession,
    booking: Booking,
    intake: ReturnIntakeIn,
    actor_id: int,
    rates: RateTable = DEFAULT_RATE_TABLE,
    tz_name: str = DEFAULT_TIMEZONE,
) -> LateReturnInfo:
    """Record the return, price any late fee into the booking and complete intake."""
    current = booking.return_state or ReturnState.NOT_STARTED
    if not can_access_step(ReturnStepId.INTAKE, current):
        raise WorkflowViolationError("Start the return before recording intake")
    if is_step_complete(ReturnStepId.INTAKE, current):
        raise WorkflowViolationError("Return intake has already been recorded")

    late = assess_late_return(booking.end_at, intake.returned_at, rates=rates)

    booking.returned_at = intake.returned_at
    booking.odometer_km = intake.odometer_km
    booking.fuel_level = intake.fuel_level
    booking.late_fee = late.fee
    reprice_booking(booking, rates, tz_name)

    await log_audit(db, actor_id, AuditAction.RECORD_INTAKE, intake, entity_id=booking.id)
    await advance_return_state(db, booking, ReturnState.INTAKE_DONE, actor_id)
    return late


async def process_deposit(
    db: AsyncSession,
    booking: Booking,
    decision: DepositDecision,
    actor_id: int,
) -> List[DepositLedgerEntry]:
    """Withhold and/or release the security deposit, then finish the return."""
    current = booking.return_state or ReturnState.NOT_STARTED
    if not can_access_step(ReturnStepId.DEPOSIT, current):
        raise WorkflowViolationError("Close out the return before processing the deposit")
    if is_step_complete(ReturnStepId.DEPOSIT, current):
        raise DepositProcessingError("Deposit has already been processed")

    held = round2(booking.deposit_amount or 0)
    deduction = round2(decision.deduction)
    reason = (decision.reason or "").strip() or None

    if deduction > held:
        raise DepositProcessingError(f"Deduction {deduction} exceeds the deposit held ({held})")
    if deduction > 0 and not reason:
        raise DepositProcessingError("A reason is required when withholding any of the deposit")

    entries = []
    if deduction > 0:
        entries.append(DepositLedgerEntry(
            booking_id=booking.id,
            created_by=int(actor_id),
            action=DepositAction.DEDUCT,
            amount=deduction,
            reason=reason,
        ))
    released = held - deduction
    if released > 0:
        entries.append(DepositLedgerEntry(
            booking_id=booking.id,
            created_by=int(actor_id),
            action=DepositAction.RELEASE,
            amount=released,
            reason=reason if deduction > 0 else "Released on return closeout",
        ))

    for entry in entries:
        db.add(entry)
    await db.flush()

    await log_audit(
        db,
        actor_id,
        AuditAction.PROCESS_DEPOSIT,
        {"held": str(held), "deducted": str(deduction), "released": str(released)},
        entity_id=booking.id,
    )
    await advance_return_state(db, booking, ReturnState.DEPOSIT_PROCESSED, actor_id)
    return entries
