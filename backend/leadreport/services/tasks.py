from __future__ import annotations

import asyncio
import logging

from celery.signals import worker_process_init, worker_process_shutdown

from ..core.celery_app import PIPELINE_TASK, REPORTS_QUEUE, SECTIONS_TASK, celery_app
from ..core.config import get_settings
from .ai_content import SectionContentGenerator
from .connectors.apollo import ApolloConnector
from .connectors.news import NewsConnector
from .dispatch import CeleryDispatcher
from .orchestrator import ReportOrchestrator
from .report_store import ReportStore
from .writer import NarrativeWriter

logger = logging.getLogger(__name__)

_orchestrator: ReportOrchestrator | None = None


def build_worker_orchestrator(store: ReportStore) -> ReportOrchestrator:
    return ReportOrchestrator(
        store=store,
        dispatcher=CeleryDispatcher(),
        enrichment=ApolloConnector(),
        writer=NarrativeWriter(),
        generator=SectionContentGenerator(),
        news=NewsConnector(),
    )


def get_orchestrator() -> ReportOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        store = ReportStore.from_url(get_settings().DATABASE_URL)
        _orchestrator = build_worker_orchestrator(store)
    return _orchestrator


@worker_process_init.connect
def _init_worker_store(**_kwargs) -> None:
    # Engines must not be shared across the prefork boundary.
    global _orchestrator
    _orchestrator = None
    get_orchestrator()


@worker_process_shutdown.connect
def _dispose_worker_store(**_kwargs) -> None:
    global _orchestrator
    if _orchestrator is not None:
        _orchestrator.store.dispose()
        _orchestrator = None


@celery_app.task(name=PIPELINE_TASK, queue=REPORTS_QUEUE)
def run_report_pipeline(report_id: str) -> str:
    orchestrator = get_orchestrator()
    try:
        status = asyncio.run(orchestrator.run_pipeline(report_id))
        return status.value
    except Exception as e:
        logger.exception("Report pipeline crashed", extra={"report_id": report_id, "step": "failed"})
        orchestrator.store.mark_failed(report_id, f"Unexpected error while generating report: {e}")
        raise


@celery_app.task(name=SECTIONS_TASK, queue=REPORTS_QUEUE)
def generate_report_sections(report_id: str, sections: list[str] | None = None) -> dict:
    orchestrator = get_orchestrator()
    try:
        return asyncio.run(orchestrator.generate_sections(report_id, sections))
    except Exception:
        # Sections are optional; the report stays completed.
        logger.exception("Section fan-out crashed", extra={"report_id": report_id})
        return {}
