from sqlalchemy import Column, String, DateTime, Text, Index, text
from core.database import Base, GUID, JSONType, utc_now
from enum import Enum
import uuid


class ProcessingResult(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class ProcessedEvent(Base):
    """
    Ledger of delivery attempts. Exactly one SUCCESS or FAILED row claims an
    event id; SKIPPED rows only record duplicate deliveries.
    """
    __tablename__ = "processed_events"
    __table_args__ = (
        Index(
            'uq_processed_events_event_id_claim',
            'event_id',
            unique=True,
            postgresql_where=text("processing_result <> 'SKIPPED'"),
            sqlite_where=text("processing_result <> 'SKIPPED'")
        ),
        Index('idx_processed_events_event_type', 'event_type'),
        Index('idx_processed_events_created_at', 'created_at'),
        {'extend_existing': True}
    )

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    event_id = Column(String(255), nullable=False, index=True)
    event_type = Column(String(100), nullable=False)
    event_data = Column(JSONType, nullable=True)
    processing_result = Column(String(20), nullable=False)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    def to_dict(self):
        return {
            "id": str(self.id),
            "event_id": self.event_id,
            "event_type": self.event_type,
            "event_data": self.event_data,
            "processing_result": self.processing_result,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ProcessedEvent(event_id='{self.event_id}', event_type='{self.event_type}', result={self.processing_result})>"
