from sqlalchemy import Column, Integer, String, Float, Date, DateTime, ForeignKey
from sqlalchemy.sql import func

from database import Base


class Medication(Base):
    __tablename__ = "medications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    current_stock = Column(Integer, default=0)
    daily_dosage = Column(Float, default=0)
    expiry_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    # Bumped on every edit; the stock warning silence window keys off it.
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
