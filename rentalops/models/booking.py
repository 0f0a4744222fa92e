from sqlalchemy import Column, String, Integer, Float, Numeric, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from rentalops.models.base import BaseModel
from rentalops.core.enums import BookingStatus, ReturnState


class Booking(BaseModel):
    __tablename__ = "bookings"

    booking_code = Column(String(16), unique=True, nullable=False, index=True)
    created_by = Column(ForeignKey("users.id"), nullable=False)

    creator = relationship("User", backref="bookings")

    status = Column(Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False)
    # Null until the rental goes active
    return_state = Column(Enum(ReturnState), nullable=True)

    vehicle_kind = Column(String(16), nullable=False)
    vehicle_ref = Column(String(64), nullable=False)
    vehicle_category = Column(String(80), nullable=True)

    start_at = Column(DateTime(timezone=True), nullable=False)
    end_at = Column(DateTime(timezone=True), nullable=False)
    total_days = Column(Integer, nullable=False)

    driver_age_band = Column(String(8), nullable=True)
    protection_plan = Column(String(16), nullable=True)
    pickup_fee_group = Column(String(40), nullable=True)
    return_fee_group = Column(String(40), nullable=True)
    delivery_distance_km = Column(Float, nullable=True)

    daily_rate = Column(Numeric(10, 2), nullable=False)
    protection_daily_rate = Column(Numeric(10, 2), nullable=False, default=0)
    add_ons_total = Column(Numeric(10, 2), nullable=False, default=0)
    delivery_fee = Column(Numeric(10, 2), nullable=False, default=0)
    different_dropoff_fee = Column(Numeric(10, 2), nullable=False, default=0)
    young_driver_fee = Column(Numeric(10, 2), nullable=False, default=0)
    late_fee = Column(Numeric(10, 2), nullable=False, default=0)
    subtotal = Column(Numeric(10, 2), nullable=False)
    tax_amount = Column(Numeric(10, 2), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    deposit_amount = Column(Numeric(10, 2), nullable=False)
    rate_table_version = Column(String(40), nullable=True)

    returned_at = Column(DateTime(timezone=True), nullable=True)
    odometer_km = Column(Integer, nullable=True)
    fuel_level = Column(Integer, nullable=True)

    notes = Column(String, nullable=True)

    # Optimistic concurrency: concurrent writers to one booking get StaleDataError
    version = Column(Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version}
