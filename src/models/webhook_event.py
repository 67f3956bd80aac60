"""
Webhook event audit trail - every authenticated delivery is recorded by its
ingestion task. Enables debugging, replay, and the webhook status endpoint.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID

from src.database import Base


class WebhookEvent(Base):
    __tablename__ = "webhook_events"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    received_at = Column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False, index=True
    )
    source = Column(String(50), nullable=False, index=True)
    event_type = Column(String(50), nullable=False)
    payload_hash = Column(String(64), nullable=False, index=True)
    raw_payload = Column(JSONB, nullable=False)
    processing_status = Column(
        String(20), nullable=False, default="processing", server_default="processing"
    )  # processing, completed, ignored, failed
    error_message = Column(Text, nullable=True)
    result_summary = Column(JSONB, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    correlation_id = Column(String(64), nullable=True, index=True)
