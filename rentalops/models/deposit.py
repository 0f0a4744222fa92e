from sqlalchemy import Column, String, Numeric, ForeignKey, Enum
from sqlalchemy.orm import relationship
from rentalops.models.base import BaseModel
from rentalops.core.enums import DepositAction


class DepositLedgerEntry(BaseModel):
    """Append-only: rows are inserted, never updated or deleted."""
    __tablename__ = "deposit_ledger"

    booking_id = Column(ForeignKey("bookings.id"), nullable=False, index=True)
    created_by = Column(ForeignKey("users.id"), nullable=False)

    booking = relationship("Booking", backref="deposit_entries")

    action = Column(Enum(DepositAction), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    reason = Column(String, nullable=True)
