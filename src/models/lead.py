"""
Lead model - every lead in the back office, whether keyed in by staff or
ingested from Meta Lead Ads.
Pipeline: New → Contacted → Site Visit → Negotiation → Closed / Lost.
Leads from external platforms carry external_id (unique) so repeat webhook
deliveries never create a second row.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.database import Base

INITIAL_STAGE = "New"
NO_PHONE_PLACEHOLDER = "No phone provided"


class Lead(Base):
    __tablename__ = "leads"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )

    # Contact info
    name: Mapped[str] = mapped_column(String, nullable=False)
    phone: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String)

    # Source and pipeline
    source: Mapped[str] = mapped_column(
        String(50), nullable=False
    )  # Facebook, Instagram, Walk-in, Referral, Website, ...
    stage: Mapped[str] = mapped_column(String(30), default=INITIAL_STAGE, nullable=False)

    # Requirements (free text from lead forms, unbounded)
    budget: Mapped[Optional[str]] = mapped_column(String)
    preferred_location: Mapped[Optional[str]] = mapped_column(String)

    # Staff workflow (managed by the CRUD side of the back office)
    assigned_to: Mapped[Optional[str]] = mapped_column(String(64))
    next_follow_up: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    lead_creation_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    comments: Mapped[Optional[str]] = mapped_column(Text)

    # External platform linkage
    external_id: Mapped[Optional[str]] = mapped_column(String(255))
    external_data: Mapped[Optional[dict]] = mapped_column(JSONB)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("uq_leads_external_id", "external_id", unique=True),
        Index("ix_leads_stage", "stage"),
        Index("ix_leads_source", "source"),
        Index("ix_leads_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Lead {self.external_id or self.id} source={self.source} stage={self.stage}>"
