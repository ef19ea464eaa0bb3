# backend/leadreport/services/report_store.py

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator
from uuid import UUID

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from ..core.db import Base, create_db_engine, create_session_factory
from ..models.report import ACTIVE_STATUSES, Report, ReportStatus
from ..models.report_section import ReportSection
from ..schemas.reports import ReportSubmission
from .errors import ReportNotFoundError
from .lead_data import PIPELINE_OWNED_KEYS

logger = logging.getLogger(__name__)

MAX_ERROR_LEN = 500

_MEETING_FIELDS = (
    ("report_owner_name", "reportOwnerName"),
    ("meeting_date", "meetingDate"),
    ("meeting_time", "meetingTime"),
    ("meeting_timezone", "meetingTimezone"),
    ("meeting_platform", "meetingPlatform"),
    ("meeting_link", "meetingLink"),
    ("meeting_location", "meetingLocation"),
    ("meeting_name", "meetingName"),
    ("meeting_objective", "meetingObjective"),
    ("problem_pitch", "problemPitch"),
)


def parse_report_id(report_id: str | UUID) -> UUID:
    if isinstance(report_id, UUID):
        return report_id
    try:
        return UUID(str(report_id))
    except ValueError:
        raise ReportNotFoundError(str(report_id)) from None


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() + "Z" if value else None


def serialize_report(report: Report, sections: list[ReportSection]) -> dict[str, Any]:
    """Full report document as exposed to polling clients."""
    ai_content = {s.section: s.content for s in sections if s.content is not None}
    ai_errors = {s.section: s.error for s in sections if s.error}

    doc: dict[str, Any] = {
        "id": str(report.id),
        "email": report.email,
        "status": report.status.value,
    }
    for column, key in _MEETING_FIELDS:
        doc[key] = getattr(report, column)
    doc.update(
        {
            "enrichmentData": report.enrichment_data,
            "companyNews": report.company_news or {"articles": [], "totalResults": 0},
            "narrativeReport": report.narrative_report,
            "leadData": report.lead_data or {},
            "aiContent": ai_content,
            "aiContentErrors": ai_errors,
            "error": report.error,
            "createdAt": _iso(report.created_at),
            "updatedAt": _iso(report.updated_at),
            "completedAt": _iso(report.completed_at),
        }
    )
    return doc


class ReportStore:
    """
    Persistence handle for reports, keyed by report id.

    Every mutation is a targeted, conditional update: status changes only
    apply from the expected source state, and section content is one row per
    section. No method rewrites a whole report, so concurrent writers never
    clobber each other's fields.
    """

    def __init__(self, session_factory: sessionmaker, engine: Engine | None = None) -> None:
        self._session_factory = session_factory
        self._engine = engine

    @classmethod
    def from_url(cls, database_url: str, create_tables: bool = False) -> "ReportStore":
        engine = create_db_engine(database_url)
        if create_tables:
            Base.metadata.create_all(engine)
        return cls(create_session_factory(engine), engine=engine)

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()

    @contextmanager
    def session(self) -> Iterator[Session]:
        db: Session = self._session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def create(self, submission: ReportSubmission, lead_data: dict[str, Any]) -> Report:
        with self.session() as db:
            report = Report(
                email=submission.email,
                status=ReportStatus.PROCESSING,
                lead_data=lead_data,
                **{column: getattr(submission, column) for column, _ in _MEETING_FIELDS},
            )
            db.add(report)
            db.flush()
            db.refresh(report)
            return report

    def get(self, report_id: str | UUID) -> Report:
        rid = parse_report_id(report_id)
        with self.session() as db:
            report = db.query(Report).filter(Report.id == rid).first()
        if report is None:
            raise ReportNotFoundError(str(report_id))
        return report

    def snapshot(self, report_id: str | UUID) -> dict[str, Any]:
        rid = parse_report_id(report_id)
        with self.session() as db:
            report = db.query(Report).filter(Report.id == rid).first()
            if report is None:
                raise ReportNotFoundError(str(report_id))
            sections = (
                db.query(ReportSection)
                .filter(ReportSection.report_id == rid)
                .order_by(ReportSection.id)
                .all()
            )
            return serialize_report(report, sections)

    def claim(self, report_id: str | UUID, token: str) -> bool:
        """
        Take ownership of a freshly submitted report. Only one caller ever
        succeeds; a duplicate pipeline delivery gets False and must stop.
        """
        rid = parse_report_id(report_id)
        with self.session() as db:
            updated = (
                db.query(Report)
                .filter(
                    Report.id == rid,
                    Report.status == ReportStatus.PROCESSING,
                    Report.claim_token.is_(None),
                )
                .update({Report.claim_token: token}, synchronize_session=False)
            )
        return updated == 1

    def transition(
        self,
        report_id: str | UUID,
        from_status: ReportStatus,
        to_status: ReportStatus,
        **fields: Any,
    ) -> bool:
        rid = parse_report_id(report_id)
        values = {getattr(Report, name): value for name, value in fields.items()}
        values[Report.status] = to_status
        with self.session() as db:
            updated = (
                db.query(Report)
                .filter(Report.id == rid, Report.status == from_status)
                .update(values, synchronize_session=False)
            )
        if updated != 1:
            logger.warning(
                "Refused %s -> %s transition",
                from_status.value,
                to_status.value,
                extra={"report_id": str(rid), "status": to_status.value},
            )
        return updated == 1

    def complete(self, report_id: str | UUID, narrative: str, lead_data: dict[str, Any]) -> bool:
        """
        ``fetching_apollo`` -> ``completed``. Pipeline-owned leadData keys are
        replaced; every other key already on the row wins over ``lead_data``.
        """
        rid = parse_report_id(report_id)
        with self.session() as db:
            report = (
                db.query(Report)
                .filter(Report.id == rid, Report.status == ReportStatus.FETCHING_APOLLO)
                .with_for_update()
                .first()
            )
            if report is None:
                return False
            current = dict(report.lead_data or {})
            preserved = {k: v for k, v in current.items() if k not in PIPELINE_OWNED_KEYS}
            report.lead_data = {**lead_data, **preserved}
            report.narrative_report = narrative
            report.status = ReportStatus.COMPLETED
            report.error = None
            report.completed_at = datetime.utcnow()
        return True

    def mark_failed(self, report_id: str | UUID, error: str) -> bool:
        """Only an in-flight report can fail; completed and failed are terminal."""
        rid = parse_report_id(report_id)
        with self.session() as db:
            updated = (
                db.query(Report)
                .filter(Report.id == rid, Report.status.in_(ACTIVE_STATUSES))
                .update(
                    {
                        Report.status: ReportStatus.FAILED,
                        Report.error: (error or "Unknown error")[:MAX_ERROR_LEN],
                        Report.completed_at: datetime.utcnow(),
                    },
                    synchronize_session=False,
                )
            )
        return updated == 1

    def update_company_news(self, report_id: str | UUID, news: dict[str, Any]) -> bool:
        """Replace ``company_news`` only; status and every other column are untouched."""
        rid = parse_report_id(report_id)
        with self.session() as db:
            updated = (
                db.query(Report)
                .filter(Report.id == rid)
                .update({Report.company_news: news}, synchronize_session=False)
            )
        return updated == 1

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _write_section(self, rid: UUID, section: str, **values: Any) -> bool:
        try:
            return self._upsert_section(rid, section, values)
        except IntegrityError:
            # another writer created the row between our read and insert
            return self._upsert_section(rid, section, values)

    def _upsert_section(self, rid: UUID, section: str, values: dict[str, Any]) -> bool:
        with self.session() as db:
            status = db.query(Report.status).filter(Report.id == rid).scalar()
            if status != ReportStatus.COMPLETED:
                return False

            row = (
                db.query(ReportSection)
                .filter(ReportSection.report_id == rid, ReportSection.section == section)
                .first()
            )
            if row is None:
                db.add(ReportSection(report_id=rid, section=section, **values))
            else:
                for name, value in values.items():
                    setattr(row, name, value)
        return True

    def save_section(self, report_id: str | UUID, section: str, content: dict[str, Any]) -> bool:
        """Store normalised content for one section; clears any earlier error."""
        return self._write_section(parse_report_id(report_id), section, content=content, error=None)

    def record_section_error(self, report_id: str | UUID, section: str, message: str) -> bool:
        """Note a generation failure. Previously stored content is left alone."""
        return self._write_section(
            parse_report_id(report_id), section, error=(message or "Unknown error")[:MAX_ERROR_LEN]
        )
