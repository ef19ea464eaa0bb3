from celery import Celery

from .config import get_settings
from .logging import configure_logging

settings = get_settings()
configure_logging()

PIPELINE_TASK = "leadreport.services.tasks.run_report_pipeline"
SECTIONS_TASK = "leadreport.services.tasks.generate_report_sections"
REPORTS_QUEUE = "reports"

celery_app = Celery(
    "lead_reports",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

celery_app.conf.update(
    task_routes={
        PIPELINE_TASK: {"queue": REPORTS_QUEUE},
        SECTIONS_TASK: {"queue": REPORTS_QUEUE},
    },
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    imports=("leadreport.services.tasks",),
)
