"""
Lead ingestion - turns authenticated Meta deliveries into leads.

The webhook route acknowledges first and hands the raw body to
dispatch_delivery(), which runs process_delivery() as a detached task:

    parse envelope -> audit row -> entry[].changes[] in order ->
    Graph lead detail -> field extraction -> skip-if-exists / insert

Nothing raised here reaches the HTTP caller. Each change is isolated:
an unavailable detail or a failed insert skips that change only.
"""
import asyncio
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import MetaWebhookConfig
from src.database import async_session_factory
from src.integrations.meta_graph import MetaGraphClient
from src.models.webhook_event import WebhookEvent
from src.schemas.meta_webhook import (
    LEADGEN_FIELD,
    PAGE_OBJECT,
    IngestionSummary,
    LeadDetail,
    LeadDraft,
    LeadgenChangeValue,
    WebhookChange,
    WebhookEnvelope,
)
from src.services.lead_extraction import extract_lead_draft
from src.services.lead_store import find_lead_by_external_id, insert_lead
from src.utils.logging import get_correlation_id
from src.utils.webhook_signatures import compute_payload_hash

logger = logging.getLogger(__name__)

EVENT_SOURCE = "facebook"
EVENT_TYPE = "leadgen"

SessionFactory = Callable[[], AsyncSession]

# asyncpg connect failures (refused, DNS, timeout) surface as OSError subclasses
DATABASE_ERRORS = (SQLAlchemyError, OSError)

# Strong references so the event loop does not garbage-collect running tasks
_inflight: set[asyncio.Task] = set()


def dispatch_delivery(
    body: bytes,
    config: MetaWebhookConfig,
    session_factory: Optional[SessionFactory] = None,
) -> None:
    """Schedule processing of one delivery and return immediately (fire-and-forget)."""
    task = asyncio.create_task(
        process_delivery(body, config, session_factory=session_factory)
    )
    _inflight.add(task)
    task.add_done_callback(_on_delivery_done)


def _on_delivery_done(task: asyncio.Task) -> None:
    _inflight.discard(task)
    if task.cancelled():
        logger.warning("Lead ingestion task cancelled")
        return
    exc = task.exception()
    if exc is not None:
        logger.error(
            "Lead ingestion task failed: %s", str(exc),
            exc_info=(type(exc), exc, exc.__traceback__),
        )


def inflight_count() -> int:
    return len(_inflight)


async def drain_inflight(timeout: float = 10.0) -> int:
    """
    Wait for in-flight deliveries to finish. Tasks are not cancelled.
    Returns how many were still running when the timeout expired.
    """
    if not _inflight:
        return 0
    _, pending = await asyncio.wait(set(_inflight), timeout=timeout)
    if pending:
        logger.warning("%d lead ingestion task(s) still running after %.1fs", len(pending), timeout)
    return len(pending)


def _parse_envelope(body: bytes) -> tuple[dict, Optional[WebhookEnvelope], Optional[str]]:
    """Returns (raw payload dict, envelope, error). Payload is {} when unparseable."""
    try:
        payload = json.loads(body)
    except ValueError:
        return {}, None, "Invalid JSON"
    if not isinstance(payload, dict):
        return {}, None, "Payload is not a JSON object"
    try:
        return payload, WebhookEnvelope.model_validate(payload), None
    except ValidationError as e:
        return payload, None, f"Invalid envelope: {e.error_count()} error(s)"


async def process_delivery(
    body: bytes,
    config: MetaWebhookConfig,
    session_factory: Optional[SessionFactory] = None,
    graph_client: Optional[MetaGraphClient] = None,
) -> Optional[IngestionSummary]:
    """
    Process one acknowledged delivery end to end.
    Returns the per-change summary, or None when the delivery was not processable.
    """
    session_factory = session_factory or async_session_factory
    graph_client = graph_client or MetaGraphClient(config)

    payload, envelope, parse_error = _parse_envelope(body)
    event_id = await _record_webhook_event(session_factory, body, payload)

    if envelope is None:
        logger.warning("Unreadable Meta delivery: %s", parse_error, extra={"event_id": event_id})
        await _complete_webhook_event(session_factory, event_id, "failed", error_message=parse_error)
        return None

    if envelope.object != PAGE_OBJECT:
        logger.info("Ignoring Meta delivery for object=%s", envelope.object, extra={"event_id": event_id})
        await _complete_webhook_event(session_factory, event_id, "ignored")
        return None

    summary = IngestionSummary()
    for entry in envelope.entry:
        for change in entry.changes:
            try:
                outcome = await process_change(change, session_factory, graph_client)
            except Exception as e:
                logger.error(
                    "Meta change processing error: %s", str(e),
                    exc_info=True, extra={"event_id": event_id},
                )
                outcome = "error"
            summary.record(outcome)

    await _complete_webhook_event(session_factory, event_id, "completed", summary=summary)
    logger.info(
        "Meta delivery processed: changes=%d created=%d duplicates=%d unavailable=%d failed=%d errors=%d",
        summary.changes_seen, summary.leads_created, summary.duplicates_skipped,
        summary.details_unavailable, summary.persistence_failures, summary.change_errors,
        extra={"event_id": event_id},
    )
    return summary


async def process_change(
    change: WebhookChange,
    session_factory: SessionFactory,
    graph_client: MetaGraphClient,
) -> str:
    """
    Handle a single change. Returns the outcome:
    ignored, invalid, detail_unavailable, duplicate, created, persistence_failed.
    """
    if change.field != LEADGEN_FIELD:
        logger.debug("Skipping Meta change field=%s", change.field)
        return "ignored"

    try:
        value = LeadgenChangeValue.model_validate(change.value)
    except ValidationError:
        logger.warning("Skipping leadgen change without a usable leadgen_id")
        return "invalid"

    detail = await graph_client.fetch_lead_detail(value.leadgen_id)
    if detail is None:
        logger.warning(
            "Lead %s skipped - detail unavailable",
            value.leadgen_id, extra={"leadgen_id": value.leadgen_id},
        )
        return "detail_unavailable"

    draft = extract_lead_draft(detail, value)
    return await create_lead_if_new(session_factory, draft, detail, value)


def build_external_data(detail: LeadDetail, value: LeadgenChangeValue, platform: str) -> dict:
    """Platform ids and the raw form answers, kept on the lead for audit/debug."""
    return {
        "platform": platform,
        "lead_id": detail.id,
        "page_id": value.page_id,
        "form_id": value.form_id,
        "ad_id": value.ad_id,
        "adgroup_id": value.adgroup_id,
        "created_time": detail.created_time,
        "raw_data": [datum.model_dump() for datum in detail.field_data],
    }


async def create_lead_if_new(
    session_factory: SessionFactory,
    draft: LeadDraft,
    detail: LeadDetail,
    value: LeadgenChangeValue,
) -> str:
    """Skip-on-conflict insert keyed by the leadgen id. Existing leads are never updated."""
    external_id = detail.id
    log_extra = {"external_id": external_id, "source": draft.source}

    try:
        async with session_factory() as db:
            existing = await find_lead_by_external_id(db, external_id)
            if existing:
                logger.info("Lead %s already exists - skipping", external_id, extra=log_extra)
                return "duplicate"

            lead = await insert_lead(
                db, draft, external_id,
                external_data=build_external_data(detail, value, draft.source),
            )
            await db.commit()
            lead_id = str(lead.id)
    except IntegrityError:
        # Lost the race against a concurrent delivery of the same lead
        if await _lead_exists(session_factory, external_id):
            logger.info("Lead %s inserted concurrently - skipping", external_id, extra=log_extra)
            return "duplicate"
        logger.error("Lead %s rejected by the database", external_id, exc_info=True, extra=log_extra)
        return "persistence_failed"
    except DATABASE_ERRORS:
        logger.error("Failed to persist lead %s", external_id, exc_info=True, extra=log_extra)
        return "persistence_failed"

    logger.info("Lead created from %s: %s", draft.source, lead_id[:8], extra=log_extra)
    return "created"


async def _lead_exists(session_factory: SessionFactory, external_id: str) -> bool:
    try:
        async with session_factory() as db:
            return await find_lead_by_external_id(db, external_id) is not None
    except DATABASE_ERRORS:
        logger.error("Lead lookup failed for %s", external_id, exc_info=True)
        return False


async def _record_webhook_event(
    session_factory: SessionFactory,
    body: bytes,
    payload: dict,
) -> Optional[uuid.UUID]:
    """Record the delivery in the audit trail. Audit failures never block ingestion."""
    try:
        async with session_factory() as db:
            event = WebhookEvent(
                source=EVENT_SOURCE,
                event_type=EVENT_TYPE,
                payload_hash=compute_payload_hash(body),
                raw_payload=payload,
                processing_status="processing",
                correlation_id=get_correlation_id(),
            )
            db.add(event)
            await db.commit()
            return event.id
    except DATABASE_ERRORS as e:
        logger.error("Failed to record webhook event: %s", str(e))
        return None


async def _complete_webhook_event(
    session_factory: SessionFactory,
    event_id: Optional[uuid.UUID],
    status: str,
    error_message: Optional[str] = None,
    summary: Optional[IngestionSummary] = None,
) -> None:
    """Update webhook event status after processing."""
    if event_id is None:
        return
    try:
        async with session_factory() as db:
            event = await db.get(WebhookEvent, event_id)
            if event is None:
                return
            event.processing_status = status
            event.error_message = error_message
            event.result_summary = summary.model_dump() if summary else None
            event.processed_at = datetime.now(timezone.utc)
            await db.commit()
    except DATABASE_ERRORS as e:
        logger.error("Failed to complete webhook event %s: %s", event_id, str(e))
