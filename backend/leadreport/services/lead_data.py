from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping
from uuid import uuid4

from ..schemas.enrichment import PersonRecord
from ..schemas.reports import ReportSubmission

DEFAULT_PROJECT = "Unassigned"
DEFAULT_LEAD_SCORE = 88

# Keys the pipeline derives from enrichment. Everything else in leadData
# belongs to the submitter / later edits and must survive every rebuild.
PIPELINE_OWNED_KEYS = frozenset({
    "name",
    "position",
    "companyName",
    "photo",
    "contactDetails",
    "companyDetails",
    "aboutLead",
    "aboutCompany",
    "leadScoring",
})

_USER_DEFAULTS: dict[str, Any] = {
    "project": DEFAULT_PROJECT,
    "notes": [],
    "engagementTimeline": [],
    "status": "warm",
    "tags": [],
    "nextFollowUp": None,
    "customFields": {},
    "leadIndustry": None,
    "leadDesignation": None,
    "leadBackground": None,
    "companyOverview": None,
}


def _now() -> str:
    return datetime.utcnow().isoformat()


def initial_lead_data(submission: ReportSubmission) -> dict[str, Any]:
    """leadData as stored at submit time, before any enrichment."""
    notes = []
    if submission.initial_note:
        notes.append(
            {"id": str(uuid4()), "content": submission.initial_note, "createdAt": _now(), "updatedAt": _now()}
        )
    timeline = []
    if submission.initial_activity:
        timeline.append(
            {"id": str(uuid4()), "type": "note", "content": submission.initial_activity, "createdAt": _now()}
        )

    return {
        **_USER_DEFAULTS,
        "project": submission.project or DEFAULT_PROJECT,
        "notes": notes,
        "engagementTimeline": timeline,
        "leadIndustry": submission.lead_industry,
        "leadDesignation": submission.lead_designation,
        "leadBackground": submission.lead_background,
        "companyOverview": submission.company_overview,
        "leadScoring": {"rating": None, "score": DEFAULT_LEAD_SCORE, "qualificationCriteria": {}},
    }


def format_headquarters(city: str | None, state: str | None, country: str | None) -> str | None:
    parts = [p.strip() for p in (city, state, country) if p and p.strip()]
    return ", ".join(parts) or None


def build_lead_data(record: PersonRecord, existing: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """
    Project an enrichment record into leadData.

    Pipeline-owned keys are recomputed; every other key in ``existing``
    (project, notes, timeline, custom fields, ...) is carried over untouched.
    """
    existing = dict(existing or {})
    org = record.organization
    name = record.display_name
    company_name = org.name if org else None
    previous_scoring = existing.get("leadScoring") or {}

    employees = org.estimated_num_employees if org else None
    headquarters = format_headquarters(org.city, org.state, org.country) if org else None

    projected = {
        "name": name,
        "position": record.title,
        "companyName": company_name,
        "photo": record.photo_url,
        "contactDetails": {
            "email": record.email,
            "phone": record.phone or (org.phone if org else None),
            "linkedin": record.linkedin_url,
        },
        "companyDetails": {
            "industry": org.industry if org else None,
            "employees": str(employees) if employees is not None else None,
            "headquarters": headquarters,
            "website": org.website_url if org else None,
        },
        "aboutLead": (
            f"{name or 'The lead'} is {record.title or 'a professional'} "
            f"at {company_name or 'their organization'}"
        ),
        "aboutCompany": org.short_description if org else None,
        "leadScoring": {
            "rating": previous_scoring.get("rating") or "⭐⭐⭐⭐⭐",
            "score": previous_scoring.get("score", DEFAULT_LEAD_SCORE),
            "qualificationCriteria": previous_scoring.get("qualificationCriteria")
            or {
                "decisionMaker": "YES",
                "viewedSolutionDeck": "YES",
                "haveBudget": "YES",
                "need": "YES",
            },
        },
    }

    merged = {**_USER_DEFAULTS, **existing, **projected}
    if not merged.get("project"):
        merged["project"] = DEFAULT_PROJECT
    return merged
