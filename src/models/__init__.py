"""
Database models - import all models here so Alembic can discover them.
"""
from src.models.lead import Lead
from src.models.webhook_event import WebhookEvent

__all__ = [
    "Lead",
    "WebhookEvent",
]
