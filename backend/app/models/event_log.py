import uuid
from sqlalchemy import Column, DateTime, Text, Uuid
from sqlalchemy.sql import func
from app.core.db import Base
from app.models.job_runs import JSON_TYPE

class EventLog(Base):
    __tablename__ = "event_log"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    booking_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    event_name = Column(Text, nullable=False, index=True)
    event_ts = Column(DateTime(timezone=True), nullable=False)
    payload = Column(JSON_TYPE, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
