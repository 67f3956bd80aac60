"""
Meta Graph API client - reads full lead details for a leadgen id.

Auth: page access token as a query parameter.
Docs: https://developers.facebook.com/docs/marketing-api/guides/lead-ads/retrieving
Every failure is logged and returned as None; the caller skips that lead.
No retries.
"""
import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from src.config import MetaWebhookConfig
from src.schemas.meta_webhook import LeadDetail

logger = logging.getLogger(__name__)

MAX_LOGGED_BODY_CHARS = 500


class MetaGraphClient:
    """Graph API reads for Lead Ads."""

    def __init__(self, config: MetaWebhookConfig):
        self.config = config

    def lead_url(self, leadgen_id: str) -> str:
        return f"{self.config.graph_base_url}/{self.config.graph_api_version}/{leadgen_id}"

    async def fetch_lead_detail(self, leadgen_id: str) -> Optional[LeadDetail]:
        """Fetch the submitted form fields for one lead. Returns None when unavailable."""
        if not self.config.access_token:
            logger.error(
                "FACEBOOK_ACCESS_TOKEN not configured - cannot fetch lead %s",
                leadgen_id, extra={"leadgen_id": leadgen_id},
            )
            return None

        try:
            async with httpx.AsyncClient(timeout=self.config.timeout_seconds) as client:
                response = await client.get(
                    self.lead_url(leadgen_id),
                    params={"access_token": self.config.access_token},
                )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(
                "Graph API request failed for lead %s: %s",
                leadgen_id, type(e).__name__, extra={"leadgen_id": leadgen_id},
            )
            return None

        if not response.is_success:
            logger.error(
                "Graph API error for lead %s: status=%d body=%s",
                leadgen_id, response.status_code, response.text[:MAX_LOGGED_BODY_CHARS],
                extra={"leadgen_id": leadgen_id, "status_code": response.status_code},
            )
            return None

        try:
            detail = LeadDetail.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error(
                "Graph API returned an unreadable lead %s: %s",
                leadgen_id, str(e)[:200], extra={"leadgen_id": leadgen_id},
            )
            return None

        if detail.id != leadgen_id:
            logger.error(
                "Graph API returned lead %s for requested %s",
                detail.id, leadgen_id, extra={"leadgen_id": leadgen_id},
            )
            return None

        return detail
