from sqlalchemy import Column, Integer, String, DateTime, JSON, ForeignKey, UniqueConstraint, Uuid
from datetime import datetime

from ..core.db import Base


class ReportSection(Base):
    __tablename__ = "report_sections"
    __table_args__ = (
        UniqueConstraint("report_id", "section", name="uq_report_sections_report_section"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    report_id = Column(Uuid(as_uuid=True),
                       ForeignKey("reports.id", ondelete="CASCADE"),
                       index=True,
                       nullable=False)
    section = Column(String, nullable=False)   # "overview", "techStack", …

    content = Column(JSON, nullable=True)      # normalized SectionContent document
    error = Column(String, nullable=True)      # last generation failure, for diagnostics

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
