from __future__ import annotations

import logging
from typing import Iterable

from ..core.celery_app import PIPELINE_TASK, REPORTS_QUEUE, SECTIONS_TASK, celery_app

logger = logging.getLogger(__name__)


class CeleryDispatcher:
    """Fire-and-forget hand-off of report jobs to the Celery workers."""

    def dispatch_pipeline(self, report_id: str) -> None:
        celery_app.send_task(PIPELINE_TASK, args=[report_id], queue=REPORTS_QUEUE)
        logger.info("Pipeline task queued", extra={"report_id": report_id, "step": "dispatch"})

    def dispatch_sections(self, report_id: str, sections: Iterable[str] | None = None) -> None:
        celery_app.send_task(
            SECTIONS_TASK,
            args=[report_id, list(sections) if sections is not None else None],
            queue=REPORTS_QUEUE,
        )
        logger.info("Section task queued", extra={"report_id": report_id, "step": "dispatch"})
