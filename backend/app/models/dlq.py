"""
Dead letter storage for telemetry entries.

An ingestion entry lands here once it has failed `ingestion_max_attempts`
deliveries. The original queue envelope is kept verbatim so the reading can
be put back on the queue by an operator.
"""

import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, Enum
from sqlalchemy.sql import func

from backend.app.db.session import Base


class DLQStatus(str, enum.Enum):
    FAILED = "FAILED"
    RETRYING = "RETRYING"
    ARCHIVED = "ARCHIVED"  # Payload unreadable, never retried


class DeadLetterQueue(Base):
    __tablename__ = "dead_letter_queue"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    task_name = Column(String(100), nullable=False, index=True)  # "telemetry.process"
    tenant_id = Column(String(64), nullable=True, index=True)
    vehicle_id = Column(String(64), nullable=True, index=True)  # None for unreadable entries

    error_message = Column(Text, nullable=False)
    payload = Column(JSON, nullable=True)

    status = Column(Enum(DLQStatus), default=DLQStatus.FAILED, nullable=False, index=True)
    retry_count = Column(Integer, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_retry_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def reading_payload(self):
        return (self.payload or {}).get("reading")

    def __repr__(self):
        return f"<DeadLetter(id={self.id}, tenant='{self.tenant_id}', vehicle='{self.vehicle_id}', status='{self.status}')>"
