from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship
from rentalops.models.base import BaseModel


class Audit(BaseModel):
    __tablename__ = "audits"

    user_id = Column(ForeignKey("users.id"), nullable=False)

    user = relationship("User", backref="audit_logs")

    action = Column(String(64), nullable=False, index=True)
    entity_id = Column(Integer, nullable=True, index=True)
    payload_hash = Column(String(128), nullable=False)
    # Free text kept verbatim, e.g. a workflow bypass justification
    note = Column(String, nullable=True)
