import enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, Enum as SAEnum
from sqlalchemy.sql import func

from database import Base


class CareStatus(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"


class CareRelationship(Base):
    __tablename__ = "care_relationships"
    __table_args__ = (UniqueConstraint("patient_id", "caregiver_id", name="uq_care_pair"),)

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    caregiver_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    status = Column(SAEnum(CareStatus), nullable=False, default=CareStatus.pending)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
