from sqlalchemy import Column, String, Text, JSON, Enum, DateTime, Uuid
from datetime import datetime
import uuid
import enum
from ..core.db import Base


class ReportStatus(str, enum.Enum):
    PROCESSING = "processing"
    FETCHING_APOLLO = "fetching_apollo"
    COMPLETED = "completed"
    FAILED = "failed"


# Statuses from which the pipeline may still fail a report
ACTIVE_STATUSES = (ReportStatus.PROCESSING, ReportStatus.FETCHING_APOLLO)


class Report(Base):
    __tablename__ = "reports"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String, nullable=False, index=True)
    status = Column(
        Enum(
            ReportStatus,
            name="report_status",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=ReportStatus.PROCESSING,
    )

    # submission form fields; the pipeline never writes these
    report_owner_name = Column(String, nullable=True)
    meeting_date = Column(String, nullable=True)
    meeting_time = Column(String, nullable=True)
    meeting_timezone = Column(String, nullable=True)
    meeting_platform = Column(String, nullable=True)
    meeting_link = Column(String, nullable=True)
    meeting_location = Column(String, nullable=True)
    meeting_name = Column(String, nullable=True)
    meeting_objective = Column(String, nullable=True)
    problem_pitch = Column(Text, nullable=True)

    enrichment_data = Column(JSON, nullable=True)  # PersonRecord document
    company_news = Column(JSON, nullable=True)     # {articles: [...], totalResults}
    narrative_report = Column(Text, nullable=True)
    lead_data = Column(JSON, nullable=False, default=dict)

    error = Column(String, nullable=True)
    claim_token = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)
