"""
Simulate a Meta Lead Ads delivery against a running server.

Signs the body with FACEBOOK_APP_SECRET exactly as Meta does, so the request
passes X-Hub-Signature-256 validation. The server then fetches the lead from
the Graph API, so use a real test lead id (Lead Ads Testing Tool) unless the
Graph base URL points at a stub.

Usage:
    python scripts/simulate_meta_lead.py --leadgen-id 123456789
    python scripts/simulate_meta_lead.py --leadgen-id 123 --ad-id instagram_987
    python scripts/simulate_meta_lead.py --handshake
"""
import argparse
import asyncio
import hashlib
import hmac
import json
import logging
import time

import httpx

from src.config import get_settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

BASE_URL = "http://localhost:8000"
WEBHOOK_PATH = "/api/v1/webhook/facebook"


def build_delivery(leadgen_id: str, page_id: str, form_id: str, ad_id: str | None) -> dict:
    value = {
        "leadgen_id": leadgen_id,
        "page_id": page_id,
        "form_id": form_id,
        "created_time": int(time.time()),
    }
    if ad_id:
        value["ad_id"] = ad_id
    return {
        "object": "page",
        "entry": [
            {
                "id": page_id,
                "time": int(time.time()),
                "changes": [{"field": "leadgen", "value": value}],
            }
        ],
    }


async def send_delivery(base_url: str, app_secret: str, payload: dict):
    """POST a signed delivery. Signs the exact bytes that are sent."""
    body = json.dumps(payload).encode("utf-8")
    digest = hmac.new(app_secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    async with httpx.AsyncClient(timeout=30) as client:
        resp = await client.post(
            f"{base_url}{WEBHOOK_PATH}",
            content=body,
            headers={
                "Content-Type": "application/json",
                "X-Hub-Signature-256": f"sha256={digest}",
            },
        )
        logger.info("Delivery response: %s %s", resp.status_code, resp.text)
        return resp


async def send_handshake(base_url: str, verify_token: str):
    """Replay the subscription handshake Meta performs when the webhook is registered."""
    params = {
        "hub.mode": "subscribe",
        "hub.verify_token": verify_token,
        "hub.challenge": "simulated-challenge-42",
    }
    async with httpx.AsyncClient(timeout=30) as client:
        resp = await client.get(f"{base_url}{WEBHOOK_PATH}", params=params)
        logger.info("Handshake response: %s %s", resp.status_code, resp.text)
        return resp


async def main():
    parser = argparse.ArgumentParser(description="Simulate Meta Lead Ads webhook traffic")
    parser.add_argument("--base-url", default=BASE_URL)
    parser.add_argument("--handshake", action="store_true", help="Send the verification GET instead")
    parser.add_argument("--leadgen-id", default="444444444444")
    parser.add_argument("--page-id", default="111111111111")
    parser.add_argument("--form-id", default="222222222222")
    parser.add_argument("--ad-id", default=None)
    args = parser.parse_args()

    settings = get_settings()
    if args.handshake:
        await send_handshake(args.base_url, settings.facebook_verify_token)
        return

    if not settings.facebook_app_secret:
        logger.error("FACEBOOK_APP_SECRET is not set - the server would reject this delivery")
        return

    payload = build_delivery(args.leadgen_id, args.page_id, args.form_id, args.ad_id)
    await send_delivery(args.base_url, settings.facebook_app_secret, payload)


if __name__ == "__main__":
    asyncio.run(main())
