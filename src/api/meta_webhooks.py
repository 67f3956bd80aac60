"""
Meta Lead Ads webhook endpoints (Facebook and Instagram lead forms).

- GET  /api/v1/webhook/facebook         - one-time subscription handshake
- POST /api/v1/webhook/facebook         - lead deliveries (signed, acknowledged immediately)
- GET  /api/v1/webhook/facebook/status  - configuration and recent delivery counts

Deliveries are acknowledged with 200 as soon as the signature checks out.
Meta disables endpoints that error after accepting, so processing happens in a
detached task and its outcome is only visible in logs and the audit trail.
"""
import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from fastapi.responses import PlainTextResponse
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import MetaWebhookConfig, Settings, get_meta_webhook_config, get_settings
from src.database import get_db
from src.models.webhook_event import WebhookEvent
from src.services.lead_ingestion import EVENT_SOURCE, dispatch_delivery
from src.services.meta_handshake import verify_subscription
from src.utils.webhook_signatures import SIGNATURE_HEADER, validate_meta_signature

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/webhook", tags=["webhooks"])

ACK_BODY = "EVENT_RECEIVED"
INVALID_SIGNATURE_BODY = "Forbidden - Invalid signature"
STATUS_WINDOW_HOURS = 24

staff_bearer_scheme = HTTPBearer(auto_error=False)


async def require_staff(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(staff_bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Guard for back-office routes. Bearer STAFF_API_TOKEN when configured.
    Without a token the route is open outside production and closed in production.
    """
    expected = settings.staff_api_token
    if not expected:
        if settings.app_env == "production":
            logger.error("STAFF_API_TOKEN not set in production - rejecting staff route access.")
            raise HTTPException(status_code=401, detail="Unauthorized")
        return

    supplied = credentials.credentials if credentials else ""
    if not supplied or not hmac.compare_digest(
        supplied.encode("utf-8"), expected.encode("utf-8")
    ):
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.get("/facebook", response_class=PlainTextResponse)
async def facebook_webhook_verify(
    hub_mode: Optional[str] = Query(None, alias="hub.mode"),
    hub_verify_token: Optional[str] = Query(None, alias="hub.verify_token"),
    hub_challenge: Optional[str] = Query(None, alias="hub.challenge"),
    config: MetaWebhookConfig = Depends(get_meta_webhook_config),
):
    """Echo hub.challenge as plain text when the verify token matches."""
    result = verify_subscription(hub_mode, hub_verify_token, hub_challenge, config.verify_token)
    return PlainTextResponse(result.body, status_code=result.status_code)


@router.post("/facebook", response_class=PlainTextResponse)
async def facebook_leadgen_webhook(
    request: Request,
    config: MetaWebhookConfig = Depends(get_meta_webhook_config),
):
    """Lead delivery. Signature is checked over the raw body before anything is parsed."""
    body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)

    if not validate_meta_signature(config.app_secret, signature, body):
        client_ip = request.client.host if request.client else "unknown"
        logger.warning("Invalid Meta webhook signature: ip=%s", client_ip)
        return PlainTextResponse(INVALID_SIGNATURE_BODY, status_code=403)

    dispatch_delivery(body, config)
    return PlainTextResponse(ACK_BODY, status_code=200)


@router.get("/facebook/status", dependencies=[Depends(require_staff)])
async def facebook_webhook_status(
    db: AsyncSession = Depends(get_db),
    config: MetaWebhookConfig = Depends(get_meta_webhook_config),
):
    """
    Integration status for the back office settings page. Staff only.
    Reports only whether each secret is set, never the values.
    """
    since = datetime.now(timezone.utc) - timedelta(hours=STATUS_WINDOW_HOURS)

    counts_result = await db.execute(
        select(WebhookEvent.processing_status, func.count(WebhookEvent.id))
        .where(WebhookEvent.source == EVENT_SOURCE, WebhookEvent.received_at >= since)
        .group_by(WebhookEvent.processing_status)
    )
    events_by_status = {status: count for status, count in counts_result.all()}

    last_result = await db.execute(
        select(func.max(WebhookEvent.received_at)).where(WebhookEvent.source == EVENT_SOURCE)
    )
    last_received_at = last_result.scalar_one_or_none()

    return {
        "configured": {
            "app_secret": bool(config.app_secret),
            "verify_token": bool(config.verify_token),
            "access_token": bool(config.access_token),
        },
        "ready": config.is_complete,
        "graph_api_version": config.graph_api_version,
        "events_last_24h": events_by_status,
        "last_received_at": last_received_at.isoformat() if last_received_at else None,
    }
