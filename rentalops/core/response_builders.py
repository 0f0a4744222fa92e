from rentalops.core.enums import ReturnState
from rentalops.models.booking import Booking
from rentalops.models.deposit import DepositLedgerEntry
from rentalops.schemas.booking import BookingOut, DepositLedgerOut, ReturnProgressOut
from rentalops.services.return_workflow import get_current_step_from_state, return_progress


def build_booking_response(booking: Booking) -> BookingOut:
    return BookingOut(
        id=booking.id,
        booking_code=booking.booking_code,
        status=booking.status,
        return_state=booking.return_state,
        vehicle_kind=booking.vehicle_kind,
        vehicle_ref=booking.vehicle_ref,
        vehicle_category=booking.vehicle_category,
        start_at=booking.start_at,
        end_at=booking.end_at,
        total_days=booking.total_days,
        driver_age_band=booking.driver_age_band,
        protection_plan=booking.protection_plan,
        daily_rate=booking.daily_rate,
        protection_daily_rate=booking.protection_daily_rate,
        add_ons_total=booking.add_ons_total,
        delivery_fee=booking.delivery_fee,
        different_dropoff_fee=booking.different_dropoff_fee,
        young_driver_fee=booking.young_driver_fee,
        late_fee=booking.late_fee,
        subtotal=booking.subtotal,
        tax_amount=booking.tax_amount,
        total_amount=booking.total_amount,
        deposit_amount=booking.deposit_amount,
        rate_table_version=booking.rate_table_version,
        returned_at=booking.returned_at,
        notes=booking.notes,
        created_by=booking.created_by,
        created_at=booking.created_at,
        updated_at=booking.updated_at,
    )


def build_ledger_response(entry: DepositLedgerEntry) -> DepositLedgerOut:
    return DepositLedgerOut(
        id=entry.id,
        action=entry.action,
        amount=entry.amount,
        reason=entry.reason,
        created_by=entry.created_by,
        created_at=entry.created_at,
    )


def build_progress_response(booking: Booking) -> ReturnProgressOut:
    state = booking.return_state or ReturnState.NOT_STARTED
    return ReturnProgressOut(
        booking_id=booking.id,
        return_state=state,
        current_step=get_current_step_from_state(state),
        steps=return_progress(state),
    )
