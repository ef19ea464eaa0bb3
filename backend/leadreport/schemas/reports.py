# backend/leadreport/schemas/reports.py
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from ..models.report import ReportStatus

MAX_TEXT_FIELD_LEN = 4000
MAX_SHORT_FIELD_LEN = 300


class ReportSubmission(BaseModel):
    """
    Lead report request, as posted by the dashboard form.

    Everything is optional at this layer. The email check lives in the
    orchestrator so every caller gets the same ``ReportValidationError``.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    email: str | None = None
    report_owner_name: str | None = None

    meeting_date: str | None = None
    meeting_time: str | None = None
    meeting_timezone: str | None = None
    meeting_platform: str | None = None
    meeting_link: str | None = None
    meeting_location: str | None = None
    meeting_name: str | None = None
    meeting_objective: str | None = None
    problem_pitch: str | None = None

    project: str | None = None
    lead_industry: str | None = None
    lead_designation: str | None = None
    lead_background: str | None = None
    company_overview: str | None = None
    initial_note: str | None = None
    initial_activity: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _blank_to_none(cls, v):
        if isinstance(v, str):
            stripped = v.strip()
            return stripped or None
        return v

    @field_validator(
        "report_owner_name",
        "meeting_date",
        "meeting_time",
        "meeting_timezone",
        "meeting_platform",
        "meeting_link",
        "meeting_location",
        "meeting_name",
        "project",
        "lead_industry",
        "lead_designation",
    )
    @classmethod
    def _short_field(cls, v: str | None) -> str | None:
        if v is not None and len(v) > MAX_SHORT_FIELD_LEN:
            raise ValueError(f"must be at most {MAX_SHORT_FIELD_LEN} characters")
        return v

    @field_validator(
        "meeting_objective",
        "problem_pitch",
        "lead_background",
        "company_overview",
        "initial_note",
        "initial_activity",
    )
    @classmethod
    def _long_field(cls, v: str | None) -> str | None:
        if v is not None and len(v) > MAX_TEXT_FIELD_LEN:
            raise ValueError(f"is too long; maximum length is {MAX_TEXT_FIELD_LEN} characters")
        return v


class ReportSubmitted(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    report_id: str
    status: ReportStatus = ReportStatus.PROCESSING


class ReportStatusOut(BaseModel):
    """``data`` only when completed, ``error`` only when failed."""

    status: ReportStatus
    data: dict[str, Any] | None = None
    error: str | None = None
