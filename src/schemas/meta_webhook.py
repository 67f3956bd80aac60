"""
Meta Lead Ads payload schemas.

Webhook deliveries only carry ids; the submitted form fields are read
separately from the Graph API as a LeadDetail.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

PAGE_OBJECT = "page"
LEADGEN_FIELD = "leadgen"


class WebhookChange(BaseModel):
    """One change notification. Only field == "leadgen" is actionable."""
    field: str = ""
    value: dict = Field(default_factory=dict)


class WebhookEntry(BaseModel):
    id: Optional[str] = None  # Page id
    time: Optional[int] = None
    changes: list[WebhookChange] = Field(default_factory=list)

    model_config = ConfigDict(coerce_numbers_to_str=True)


class WebhookEnvelope(BaseModel):
    """Top-level delivery body: {"object": "page", "entry": [...]}."""
    object: str = ""
    entry: list[WebhookEntry] = Field(default_factory=list)


class LeadgenChangeValue(BaseModel):
    """Value of a leadgen change. leadgen_id is the idempotency key."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    leadgen_id: str = Field(min_length=1)
    page_id: Optional[str] = None
    form_id: Optional[str] = None
    adgroup_id: Optional[str] = None
    ad_id: Optional[str] = None
    created_time: Optional[int] = None


class LeadFieldDatum(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    name: str
    values: list[str] = Field(default_factory=list)

    @field_validator("values", mode="before")
    @classmethod
    def _null_values_to_empty(cls, v):
        # Graph may send "values": null or null items
        if v is None:
            return []
        if isinstance(v, list):
            return [item for item in v if item is not None]
        return v


class LeadDetail(BaseModel):
    """Graph API lead read: GET /{leadgen_id}."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    created_time: Optional[str] = None
    field_data: list[LeadFieldDatum] = Field(default_factory=list)


class LeadDraft(BaseModel):
    """Canonical lead attributes extracted from a LeadDetail, before persistence."""
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    budget: Optional[str] = None
    preferred_location: Optional[str] = None
    source: str


class IngestionSummary(BaseModel):
    """Per-delivery counters, stored on the webhook audit row."""
    changes_seen: int = 0
    leads_created: int = 0
    duplicates_skipped: int = 0
    details_unavailable: int = 0
    invalid_changes: int = 0
    persistence_failures: int = 0
    ignored_changes: int = 0
    change_errors: int = 0

    def record(self, outcome: str) -> None:
        self.changes_seen += 1
        counter = {
            "created": "leads_created",
            "duplicate": "duplicates_skipped",
            "detail_unavailable": "details_unavailable",
            "invalid": "invalid_changes",
            "persistence_failed": "persistence_failures",
            "ignored": "ignored_changes",
            "error": "change_errors",
        }[outcome]
        setattr(self, counter, getattr(self, counter) + 1)
