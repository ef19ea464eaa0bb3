# backend/leadreport/schemas/enrichment.py
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


class OrganizationRecord(BaseModel):
    """Normalised organization block from the person lookup."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    name: str | None = None
    website_url: str | None = None
    primary_domain: str | None = None
    linkedin_url: str | None = None
    industry: str | None = None
    estimated_num_employees: int | str | None = None
    founded_year: int | None = None
    phone: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    short_description: str | None = None

    @field_validator("phone", mode="before")
    @classmethod
    def _phone_from_object(cls, v: Any) -> Any:
        # Apollo sometimes nests the number: {"number": ..., "sanitized_number": ...}
        if isinstance(v, dict):
            return v.get("sanitized_number") or v.get("number")
        return v


class PersonRecord(BaseModel):
    """
    Person + organization as returned by enrichment.

    This is the shape persisted as ``enrichment_data`` and handed to the
    lead data builder and the prompt builders. Unknown provider keys are
    dropped.
    """

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    title: str | None = None
    headline: str | None = None
    seniority: str | None = None
    email: str | None = None
    phone: str | None = None
    linkedin_url: str | None = None
    twitter_url: str | None = None
    facebook_url: str | None = None
    photo_url: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    employment_history: list[dict[str, Any]] = []
    organization: OrganizationRecord | None = None

    @property
    def display_name(self) -> str | None:
        if self.name:
            return self.name
        joined = " ".join(x for x in (self.first_name, self.last_name) if x)
        return joined or None
