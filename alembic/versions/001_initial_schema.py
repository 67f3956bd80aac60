"""Initial schema - leads and the Meta webhook audit trail.

Revision ID: 001
Revises:
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Leads
    op.create_table(
        "leads",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("phone", sa.String(), nullable=False),
        sa.Column("email", sa.String()),
        sa.Column("source", sa.String(50), nullable=False),
        sa.Column("stage", sa.String(30), nullable=False, server_default="New"),
        sa.Column("budget", sa.String()),
        sa.Column("preferred_location", sa.String()),
        sa.Column("assigned_to", sa.String(64)),
        sa.Column("next_follow_up", sa.DateTime(timezone=True)),
        sa.Column("lead_creation_date", sa.DateTime(timezone=True)),
        sa.Column("comments", sa.Text),
        sa.Column("external_id", sa.String(255)),
        sa.Column("external_data", postgresql.JSONB),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    # One lead per external platform id; concurrent duplicate inserts fail here
    op.create_index("uq_leads_external_id", "leads", ["external_id"], unique=True)
    op.create_index("ix_leads_stage", "leads", ["stage"])
    op.create_index("ix_leads_source", "leads", ["source"])
    op.create_index("ix_leads_created_at", "leads", ["created_at"])

    # Webhook audit trail - one row per authenticated delivery
    op.create_table(
        "webhook_events",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("source", sa.String(50), nullable=False),
        sa.Column("event_type", sa.String(50), nullable=False),
        sa.Column("payload_hash", sa.String(64), nullable=False),
        sa.Column("raw_payload", postgresql.JSONB, nullable=False),
        sa.Column("processing_status", sa.String(20), nullable=False, server_default="processing"),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("result_summary", postgresql.JSONB, nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("correlation_id", sa.String(64), nullable=True),
    )
    op.create_index("ix_webhook_events_source", "webhook_events", ["source"])
    op.create_index("ix_webhook_events_payload_hash", "webhook_events", ["payload_hash"])
    op.create_index("ix_webhook_events_correlation_id", "webhook_events", ["correlation_id"])
    op.create_index("ix_webhook_events_received_at", "webhook_events", ["received_at"])


def downgrade() -> None:
    op.drop_table("webhook_events")
    op.drop_table("leads")
