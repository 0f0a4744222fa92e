from sqlalchemy import Column, String, ForeignKey
from rentalops.models.base import BaseModel


class SystemSetting(BaseModel):
    """Admin-editable key/value pairs folded into the pricing rate table."""
    __tablename__ = "system_settings"

    key = Column(String(80), unique=True, nullable=False, index=True)
    value = Column(String(80), nullable=False)
    updated_by = Column(ForeignKey("users.id"), nullable=True)
