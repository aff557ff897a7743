import enum

from sqlalchemy import Column, Integer, String, Date, DateTime, Text, ForeignKey, Enum as SAEnum
from sqlalchemy.sql import func

from database import Base


class FrequencyUnit(str, enum.Enum):
    months = "months"
    years = "years"


class RecurringCheckup(Base):
    __tablename__ = "recurring_checkups"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    patient_id = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    title = Column(String(200), nullable=False)
    frequency_value = Column(Integer, nullable=False, default=6)
    frequency_unit = Column(SAEnum(FrequencyUnit), nullable=False, default=FrequencyUnit.months)
    last_visit_date = Column(Date, nullable=True)
    next_due_date = Column(Date, nullable=True, index=True)
    last_notified_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
