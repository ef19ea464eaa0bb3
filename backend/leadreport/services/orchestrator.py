from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Protocol
from uuid import uuid4

from ..models.report import ReportStatus
from ..schemas.reports import ReportSubmission
from ..schemas.section_content import SECTIONS, to_document
from .ai_content import SectionContentGenerator
from .connectors.apollo import ApolloConnector
from .connectors.news import NewsConnector
from .errors import ReportValidationError
from .lead_data import build_lead_data, initial_lead_data
from .normalizer import normalize
from .report_store import ReportStore
from .writer import NarrativeWriter

logger = logging.getLogger(__name__)


class Dispatcher(Protocol):
    def dispatch_pipeline(self, report_id: str) -> None: ...

    def dispatch_sections(self, report_id: str, sections: Iterable[str] | None = None) -> None: ...


class ReportOrchestrator:
    """
    Owns the report lifecycle:

        processing -> fetching_apollo -> completed
             \\               \\
              +-> failed <----+

    ``submit`` and ``get_status`` run in the API process; ``run_pipeline`` and
    ``generate_sections`` run in a worker. Every status write goes through a
    conditional store update, so a late or duplicated job can never move a
    report backwards or out of a terminal state.
    """

    def __init__(
        self,
        store: ReportStore,
        dispatcher: Dispatcher,
        enrichment: ApolloConnector | None = None,
        writer: NarrativeWriter | None = None,
        generator: SectionContentGenerator | None = None,
        news: NewsConnector | None = None,
    ) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self.enrichment = enrichment
        self.writer = writer
        self.generator = generator
        self.news = news

    # ------------------------------------------------------------------
    # API side
    # ------------------------------------------------------------------

    def submit(self, submission: ReportSubmission | dict[str, Any]) -> str:
        if not isinstance(submission, ReportSubmission):
            submission = ReportSubmission.model_validate(submission)

        email = submission.email
        if not email or "@" not in email:
            raise ReportValidationError("Please provide a valid email address")

        report = self.store.create(submission, initial_lead_data(submission))
        report_id = str(report.id)
        logger.info("Report created", extra={"report_id": report_id, "step": "submit"})

        try:
            self.dispatcher.dispatch_pipeline(report_id)
        except Exception as e:
            logger.exception("Could not schedule report pipeline", extra={"report_id": report_id})
            self.store.mark_failed(report_id, f"Failed to schedule report generation: {e}")

        return report_id

    def get_status(self, report_id: str) -> dict[str, Any]:
        doc = self.store.snapshot(report_id)
        status = doc["status"]
        out: dict[str, Any] = {"status": status}
        if status == ReportStatus.COMPLETED.value:
            out["data"] = doc
        if status == ReportStatus.FAILED.value:
            out["error"] = doc.get("error")
        return out

    def regenerate_section(self, report_id: str, section: str) -> None:
        if section not in SECTIONS:
            raise ReportValidationError(f"Unknown section '{section}'")
        report = self.store.get(report_id)
        if report.status != ReportStatus.COMPLETED:
            raise ReportValidationError("Sections can only be regenerated for completed reports")
        self.dispatcher.dispatch_sections(str(report.id), [section])

    async def refresh_news(self, report_id: str) -> dict[str, Any]:
        """
        Re-fetch company news for an enriched report.

        Only ``company_news`` is written, and only when the fetch found
        articles; a failed or empty fetch leaves the stored news in place.
        """
        report = self.store.get(report_id)
        organization = (report.enrichment_data or {}).get("organization") or {}
        company_name = (organization.get("name") or "").strip()
        if not company_name or company_name == "N/A":
            raise ReportValidationError("No company name found in report")

        news = (
            dict(await self.news.fetch(company_name))
            if self.news is not None
            else {"articles": [], "totalResults": 0}
        )
        if news["articles"]:
            self.store.update_company_news(report_id, news)
        logger.info(
            "Company news refreshed: %d articles",
            len(news["articles"]),
            extra={"report_id": report_id, "step": "news"},
        )
        return news

    # ------------------------------------------------------------------
    # Worker side
    # ------------------------------------------------------------------

    async def run_pipeline(self, report_id: str) -> ReportStatus:
        """
        Enrichment, narrative and leadData for one report, then hand off the
        section fan-out. Returns the status the report ended in (or was
        already in, for a duplicate delivery).
        """
        log_extra = {"report_id": report_id}
        token = uuid4().hex
        if not self.store.claim(report_id, token):
            current = self.store.get(report_id).status
            logger.info(
                "Report already claimed; skipping duplicate pipeline run",
                extra={**log_extra, "status": current.value},
            )
            return current

        report = self.store.get(report_id)

        # Step 1: enrichment (mandatory)
        logger.info("Looking up lead", extra={**log_extra, "step": "enrichment"})
        lookup = await self.enrichment.lookup(report.email)
        if not lookup.ok:
            return self._fail(report_id, f"Failed to fetch lead data: {lookup.error}")
        record = lookup.value

        company_name = record.organization.name if record.organization else None
        company_news = (
            dict(await self.news.fetch(company_name))
            if self.news is not None
            else {"articles": [], "totalResults": 0}
        )

        if not self.store.transition(
            report_id,
            ReportStatus.PROCESSING,
            ReportStatus.FETCHING_APOLLO,
            enrichment_data=record.model_dump(mode="json"),
            company_news=company_news,
        ):
            return self.store.get(report_id).status

        # Step 2: leadData + narrative (mandatory)
        lead_data = build_lead_data(record, existing=report.lead_data)
        logger.info("Writing narrative report", extra={**log_extra, "step": "narrative"})
        narrative = await asyncio.to_thread(self.writer.generate, lead_data)
        if not narrative.ok:
            return self._fail(report_id, f"Failed to generate report: {narrative.error}")

        if not self.store.complete(report_id, narrative.value, lead_data):
            return self.store.get(report_id).status
        logger.info("Report completed", extra={**log_extra, "step": "completed"})

        # Step 3: optional sections, off the mandatory path
        try:
            self.dispatcher.dispatch_sections(report_id)
        except Exception:
            logger.exception("Could not schedule section generation", extra=log_extra)
        return ReportStatus.COMPLETED

    async def generate_sections(
        self,
        report_id: str,
        sections: Iterable[str] | None = None,
    ) -> dict[str, bool]:
        """
        Generate, normalise and store each requested section independently.

        Returns ``{section: stored}``. A failure in one section is recorded
        against that section only; the report status is never touched.
        """
        report = self.store.get(report_id)
        if report.status != ReportStatus.COMPLETED:
            logger.info(
                "Skipping section generation for non-completed report",
                extra={"report_id": report_id, "status": report.status.value},
            )
            return {}

        names = [s for s in (sections or SECTIONS) if s in SECTIONS]
        lead_data = report.lead_data or {}
        enrichment = report.enrichment_data or {}
        news = report.company_news or {}

        async def _one(section: str) -> bool:
            extra = {"report_id": report_id, "section": section}
            try:
                result = await asyncio.to_thread(
                    self.generator.generate, section, lead_data, enrichment, news
                )
                if not result.ok:
                    self.store.record_section_error(report_id, section, str(result.error))
                    return False
                content = normalize(section, result.value)
                stored = self.store.save_section(report_id, section, to_document(content))
                logger.info("Section stored" if stored else "Section write refused", extra=extra)
                return stored
            except Exception as e:
                logger.exception("Section generation crashed", extra=extra)
                try:
                    self.store.record_section_error(report_id, section, f"Unexpected error: {e}")
                except Exception:
                    logger.exception("Could not record section error", extra=extra)
                return False

        outcomes = await asyncio.gather(*(_one(s) for s in names))
        return dict(zip(names, outcomes))

    def _fail(self, report_id: str, message: str) -> ReportStatus:
        logger.warning(message, extra={"report_id": report_id, "status": ReportStatus.FAILED.value})
        if self.store.mark_failed(report_id, message):
            return ReportStatus.FAILED
        return self.store.get(report_id).status
