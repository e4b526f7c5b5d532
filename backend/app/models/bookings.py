import uuid
from sqlalchemy import Column, Date, DateTime, Integer, Text, Uuid
from sqlalchemy.sql import func
from app.core.db import Base

class BookingRow(Base):
    __tablename__ = "bookings"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), nullable=True, index=True)

    pnr = Column(Text, nullable=True, index=True)
    train_number = Column(Text, nullable=False)       # as booked, matched before the train exists
    journey_date = Column(Date, nullable=False, index=True)
    origin = Column(Text, nullable=False)             # station code
    destination = Column(Text, nullable=False)        # station code

    train_ref = Column(Text, nullable=True, index=True)  # feed train id, set on completion
    final_delay_minutes = Column(Integer, nullable=True)  # NULL until the journey is finalized

    monitor_failed_at = Column(DateTime(timezone=True), nullable=True)  # set when permanently failed
    monitor_error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
