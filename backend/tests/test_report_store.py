"""
Tests for report_store.py

Runs against in-memory SQLite. Every mutation is conditional, so most tests
check both the write that should land and the one that must be refused.
"""
import pytest

from leadreport.models.report import ReportStatus
from leadreport.schemas.reports import ReportSubmission
from leadreport.services.errors import ReportNotFoundError
from leadreport.services.lead_data import initial_lead_data
from leadreport.services.report_store import MAX_ERROR_LEN, parse_report_id

from tests.fixtures.report_fixtures import SUBMISSION


@pytest.fixture
def report_id(store):
    submission = ReportSubmission.model_validate(SUBMISSION)
    return str(store.create(submission, initial_lead_data(submission)).id)


@pytest.fixture
def completed_id(store, report_id):
    store.transition(report_id, ReportStatus.PROCESSING, ReportStatus.FETCHING_APOLLO)
    store.complete(report_id, "# Jane Doe", {"name": "Jane Doe"})
    return report_id


class TestCreateAndRead:
    def test_create_stores_form_fields(self, store, report_id):
        doc = store.snapshot(report_id)
        assert doc["status"] == "processing"
        assert doc["email"] == "jane@acme.com"
        assert doc["reportOwnerName"] == "Sam Rivera"
        assert doc["meetingPlatform"] == "Zoom"
        assert doc["leadData"]["project"] == "Robotics Q4"
        assert doc["companyNews"] == {"articles": [], "totalResults": 0}
        assert doc["aiContent"] == {}
        assert doc["completedAt"] is None

    def test_unknown_report(self, store):
        with pytest.raises(ReportNotFoundError):
            store.get("1b4e28ba-2fa1-11d2-883f-0016d3cca427")

    def test_garbage_id(self, store):
        with pytest.raises(ReportNotFoundError):
            store.snapshot("not-a-uuid")
        with pytest.raises(ReportNotFoundError):
            parse_report_id("../etc/passwd")


class TestStatusTransitions:
    def test_claim_succeeds_once(self, store, report_id):
        assert store.claim(report_id, "a")
        assert not store.claim(report_id, "b")

    def test_transition_requires_source_status(self, store, report_id):
        assert not store.transition(report_id, ReportStatus.FETCHING_APOLLO, ReportStatus.COMPLETED)
        assert store.transition(report_id, ReportStatus.PROCESSING, ReportStatus.FETCHING_APOLLO)
        assert not store.transition(report_id, ReportStatus.PROCESSING, ReportStatus.FETCHING_APOLLO)
        assert store.get(report_id).status == ReportStatus.FETCHING_APOLLO

    def test_complete_only_from_fetching(self, store, report_id):
        assert not store.complete(report_id, "# Jane", {"name": "Jane Doe"})
        assert store.get(report_id).status == ReportStatus.PROCESSING

    def test_complete_keeps_user_owned_keys(self, store, report_id):
        store.transition(report_id, ReportStatus.PROCESSING, ReportStatus.FETCHING_APOLLO)
        assert store.complete(
            report_id,
            "# Jane Doe",
            {"name": "Jane Doe", "project": "Unassigned", "notes": []},
        )
        report = store.get(report_id)
        assert report.status == ReportStatus.COMPLETED
        assert report.narrative_report == "# Jane Doe"
        assert report.completed_at is not None
        assert report.lead_data["name"] == "Jane Doe"
        assert report.lead_data["project"] == "Robotics Q4"
        assert [n["content"] for n in report.lead_data["notes"]] == ["Met at ProMat booth"]

    def test_completed_is_terminal(self, store, completed_id):
        assert not store.mark_failed(completed_id, "late failure")
        assert store.get(completed_id).status == ReportStatus.COMPLETED
        assert store.get(completed_id).error is None

    def test_failed_is_terminal(self, store, report_id):
        assert store.mark_failed(report_id, "first")
        assert not store.mark_failed(report_id, "second")
        assert not store.transition(report_id, ReportStatus.PROCESSING, ReportStatus.FETCHING_APOLLO)
        assert store.get(report_id).error == "first"

    def test_error_truncated(self, store, report_id):
        store.mark_failed(report_id, "x" * 2000)
        assert len(store.get(report_id).error) == MAX_ERROR_LEN


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

class TestSections:
    def test_refused_before_completion(self, store, report_id):
        assert not store.save_section(report_id, "overview", {"summary": "x"})
        assert store.snapshot(report_id)["aiContent"] == {}

    def test_save_and_overwrite(self, store, completed_id):
        assert store.save_section(completed_id, "overview", {"summary": "first"})
        assert store.save_section(completed_id, "overview", {"summary": "second"})
        assert store.snapshot(completed_id)["aiContent"] == {"overview": {"summary": "second"}}

    def test_sections_are_independent(self, store, completed_id):
        store.save_section(completed_id, "overview", {"summary": "x"})
        store.save_section(completed_id, "company", {"description": "y"})
        assert set(store.snapshot(completed_id)["aiContent"]) == {"overview", "company"}

    def test_error_keeps_previous_content(self, store, completed_id):
        store.save_section(completed_id, "news", {"relevantIndustryTrends": ["a"]})
        assert store.record_section_error(completed_id, "news", "Failed to parse AI response")
        doc = store.snapshot(completed_id)
        assert doc["aiContent"]["news"] == {"relevantIndustryTrends": ["a"]}
        assert doc["aiContentErrors"] == {"news": "Failed to parse AI response"}

    def test_successful_save_clears_error(self, store, completed_id):
        store.record_section_error(completed_id, "news", "boom")
        store.save_section(completed_id, "news", {"relevantIndustryTrends": []})
        doc = store.snapshot(completed_id)
        assert doc["aiContentErrors"] == {}
        assert "news" in doc["aiContent"]

    def test_section_writes_leave_report_alone(self, store, completed_id):
        store.save_section(completed_id, "overview", {"summary": "x"})
        report = store.get(completed_id)
        assert report.status == ReportStatus.COMPLETED
        assert report.narrative_report == "# Jane Doe"


class TestCompanyNews:
    def test_update_touches_news_only(self, store, completed_id):
        store.save_section(completed_id, "overview", {"summary": "x"})
        news = {"articles": [{"title": "Acme opens Denver hub"}], "totalResults": 1}

        assert store.update_company_news(completed_id, news)

        doc = store.snapshot(completed_id)
        assert doc["companyNews"] == news
        assert doc["status"] == "completed"
        assert doc["narrativeReport"] == "# Jane Doe"
        assert doc["aiContent"] == {"overview": {"summary": "x"}}

    def test_unknown_report(self, store):
        assert not store.update_company_news("1b4e28ba-2fa1-11d2-883f-0016d3cca427", {"articles": []})
