from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Generic, TypeVar


class ReportValidationError(ValueError):
    """Submission rejected before any report state was created."""


class ReportNotFoundError(LookupError):
    def __init__(self, report_id: str) -> None:
        super().__init__(f"Report {report_id} not found")
        self.report_id = report_id


class EnrichmentErrorKind(str, enum.Enum):
    RATE_LIMITED = "rate_limited"
    UNAUTHORIZED = "unauthorized"
    BAD_REQUEST = "bad_request"
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"


_ENRICHMENT_MESSAGES = {
    EnrichmentErrorKind.RATE_LIMITED: "Apollo API rate limit exceeded. Please try again later.",
    EnrichmentErrorKind.UNAUTHORIZED: "Invalid Apollo API key. Please check your configuration.",
    EnrichmentErrorKind.BAD_REQUEST: "Invalid request to Apollo API. Please check the email format.",
    EnrichmentErrorKind.NOT_FOUND: "No data found for the provided email address.",
}


class EnrichmentError(Exception):
    """
    Failure of the person lookup. Always terminal for the report.

    ``str(err)`` is the user-facing message; ``detail`` keeps whatever the
    provider said, for logs only.
    """

    def __init__(
        self,
        kind: EnrichmentErrorKind,
        message: str | None = None,
        *,
        status_code: int | None = None,
        detail: str | None = None,
    ) -> None:
        if message is None:
            message = _ENRICHMENT_MESSAGES.get(kind)
        if message is None:
            suffix = f": {status_code}" if status_code else ""
            message = f"Failed to fetch Apollo data{suffix}"
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code
        self.detail = detail

    @classmethod
    def from_status(cls, status_code: int, detail: str | None = None) -> "EnrichmentError":
        kind = {
            429: EnrichmentErrorKind.RATE_LIMITED,
            401: EnrichmentErrorKind.UNAUTHORIZED,
            400: EnrichmentErrorKind.BAD_REQUEST,
            404: EnrichmentErrorKind.NOT_FOUND,
        }.get(status_code, EnrichmentErrorKind.UNKNOWN)
        return cls(kind, status_code=status_code, detail=detail)


class GenerationError(Exception):
    """LLM call or parse failure on the mandatory narrative step."""


class ParseError(GenerationError):
    """LLM returned text from which no JSON object could be recovered."""


class SectionGenerationError(Exception):
    """LLM call or parse failure for one optional report section."""

    def __init__(self, section: str, message: str) -> None:
        super().__init__(message)
        self.section = section


T = TypeVar("T")
E = TypeVar("E", bound=Exception)


@dataclass(frozen=True)
class Result(Generic[T, E]):
    """
    Outcome of a collaborator call that is expected to fail sometimes.

    Exactly one of ``value`` / ``error`` is meaningful; check ``ok`` first.
    """

    value: T | None = None
    error: E | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T, E]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: E) -> "Result[T, E]":
        return cls(error=error)
