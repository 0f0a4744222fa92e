"""Authorization helpers for booking access"""
from fastapi import HTTPException
from rentalops.core.enums import UserRole


def check_ownership(booking, current_user) -> None:
    """Customers only see their own bookings; operations staff see all."""
    if current_user.role == UserRole.CUSTOMER and booking.created_by != int(current_user.id):
        raise HTTPException(
            status_code=403,
            detail="Forbidden: You can only access your own bookings"
        )
