"""
Lead store - the two persistence operations the ingestion pipeline needs.
Inserts only; an existing lead is never modified from here.
"""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.lead import INITIAL_STAGE, NO_PHONE_PLACEHOLDER, Lead
from src.schemas.meta_webhook import LeadDraft


async def find_lead_by_external_id(db: AsyncSession, external_id: str) -> Optional[Lead]:
    result = await db.execute(
        select(Lead).where(Lead.external_id == external_id).limit(1)
    )
    return result.scalar_one_or_none()


async def insert_lead(
    db: AsyncSession,
    draft: LeadDraft,
    external_id: str,
    external_data: Optional[dict] = None,
) -> Lead:
    """
    Add a new lead from a draft and flush it.
    A missing phone is stored as the placeholder, never as an empty string.
    """
    lead = Lead(
        name=draft.name,
        phone=draft.phone or NO_PHONE_PLACEHOLDER,
        email=draft.email or None,
        source=draft.source,
        budget=draft.budget or None,
        preferred_location=draft.preferred_location or None,
        stage=INITIAL_STAGE,
        external_id=external_id,
        external_data=external_data,
    )
    db.add(lead)
    await db.flush()
    return lead
