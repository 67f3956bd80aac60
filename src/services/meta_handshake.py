"""
Meta webhook subscription handshake.

When a webhook is registered, Meta sends a one-time GET with hub.mode,
hub.verify_token and hub.challenge. Echoing the challenge proves ownership.
"""
import hmac
import logging
from typing import NamedTuple, Optional

logger = logging.getLogger(__name__)

SUBSCRIBE_MODE = "subscribe"


class HandshakeResult(NamedTuple):
    status_code: int
    body: str


def verify_subscription(
    mode: Optional[str],
    token: Optional[str],
    challenge: Optional[str],
    verify_token: str,
) -> HandshakeResult:
    """
    Return (200, challenge) when mode is "subscribe" and the token matches the
    configured verify token, else (403, "Forbidden").
    An unconfigured verify token never matches.
    """
    token_ok = bool(verify_token) and token is not None and hmac.compare_digest(
        token.encode("utf-8"), verify_token.encode("utf-8")
    )
    if mode == SUBSCRIBE_MODE and token_ok:
        logger.info("Meta webhook subscription verified")
        return HandshakeResult(200, challenge or "")

    if not verify_token:
        logger.error("Meta webhook verification failed: FACEBOOK_VERIFY_TOKEN not configured")
    else:
        logger.warning("Meta webhook verification failed: mode=%s", mode)
    return HandshakeResult(403, "Forbidden")
