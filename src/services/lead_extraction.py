"""
Lead field extraction - maps free-form Lead Ads form fields to lead attributes.

Form field names are chosen by whoever designed the form, so each canonical
attribute has an ordered list of candidate names, matched case-insensitively.
"""
from typing import Optional

from src.schemas.meta_webhook import LeadDetail, LeadDraft, LeadFieldDatum, LeadgenChangeValue

UNKNOWN_NAME = "Unknown"
SOURCE_FACEBOOK = "Facebook"
SOURCE_INSTAGRAM = "Instagram"

FIELD_CANDIDATES: dict[str, tuple[str, ...]] = {
    "name": ("full_name", "name"),
    "phone": ("phone_number", "phone"),
    "email": ("email",),
    "budget": ("budget",),
    "preferred_location": ("location", "preferred_location"),
}


def build_field_map(field_data: list[LeadFieldDatum]) -> dict[str, str]:
    """
    Lower-cased field name -> first non-blank value.
    The first occurrence of a name wins; fields without a usable value are left out.
    """
    fields: dict[str, str] = {}
    for datum in field_data:
        key = datum.name.strip().lower()
        if not key or key in fields:
            continue
        value = next((v.strip() for v in datum.values if v and v.strip()), None)
        if value is not None:
            fields[key] = value
    return fields


def first_match(fields: dict[str, str], candidates: tuple[str, ...]) -> Optional[str]:
    for candidate in candidates:
        value = fields.get(candidate)
        if value:
            return value
    return None


def resolve_name(fields: dict[str, str]) -> str:
    name = first_match(fields, FIELD_CANDIDATES["name"])
    if name:
        return name
    first_name = fields.get("first_name")
    last_name = fields.get("last_name")
    if first_name and last_name:
        return f"{first_name} {last_name}"
    return UNKNOWN_NAME


def derive_source(ad_id: Optional[str]) -> str:
    """
    Instagram vs Facebook from the ad id. This is a heuristic: Meta does not
    put the placement in the webhook, so anything unrecognized is Facebook.
    """
    if ad_id and "instagram" in ad_id.lower():
        return SOURCE_INSTAGRAM
    return SOURCE_FACEBOOK


def extract_lead_draft(detail: LeadDetail, change_value: LeadgenChangeValue) -> LeadDraft:
    """Build the pre-persistence lead from a Graph lead detail and its webhook change."""
    fields = build_field_map(detail.field_data)
    return LeadDraft(
        name=resolve_name(fields),
        phone=first_match(fields, FIELD_CANDIDATES["phone"]),
        email=first_match(fields, FIELD_CANDIDATES["email"]),
        budget=first_match(fields, FIELD_CANDIDATES["budget"]),
        preferred_location=first_match(fields, FIELD_CANDIDATES["preferred_location"]),
        source=derive_source(change_value.ad_id),
    )
