"""
Tests for the reports API routes
"""
import asyncio

import pytest
from fastapi.testclient import TestClient

from leadreport.core.config import get_settings
from leadreport.main import create_app

from tests.fixtures.report_fixtures import SUBMISSION, news_connector


@pytest.fixture
def orchestrator(make_orchestrator):
    return make_orchestrator()


@pytest.fixture
def client(orchestrator):
    with TestClient(create_app(orchestrator=orchestrator)) as c:
        yield c


class TestSubmit:
    def test_accepted(self, client, dispatcher):
        resp = client.post("/api/reports", json=SUBMISSION)
        assert resp.status_code == 202
        body = resp.json()
        assert body["success"] is True
        assert body["status"] == "processing"
        assert dispatcher.pipeline_calls == [body["reportId"]]

    def test_missing_email(self, client, dispatcher):
        resp = client.post("/api/reports", json={"reportOwnerName": "Sam"})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Please provide a valid email address"
        assert dispatcher.pipeline_calls == []


class TestStatus:
    def test_processing(self, client):
        report_id = client.post("/api/reports", json=SUBMISSION).json()["reportId"]
        resp = client.get(f"/api/reports/{report_id}/status")
        assert resp.status_code == 200
        assert resp.json() == {"status": "processing", "data": None, "error": None}

    def test_completed(self, client, orchestrator):
        report_id = client.post("/api/reports", json=SUBMISSION).json()["reportId"]
        asyncio.run(orchestrator.run_pipeline(report_id))

        body = client.get(f"/api/reports/{report_id}/status").json()
        assert body["status"] == "completed"
        assert body["data"]["leadData"]["name"] == "Jane Doe"
        assert body["data"]["meetingLocation"] is None

    @pytest.mark.parametrize("report_id", ["1b4e28ba-2fa1-11d2-883f-0016d3cca427", "garbage"])
    def test_not_found(self, client, report_id):
        resp = client.get(f"/api/reports/{report_id}/status")
        assert resp.status_code == 404


class TestRegenerate:
    def test_accepted(self, client, orchestrator, dispatcher):
        report_id = client.post("/api/reports", json=SUBMISSION).json()["reportId"]
        asyncio.run(orchestrator.run_pipeline(report_id))

        resp = client.post(f"/api/reports/{report_id}/sections/news/regenerate")
        assert resp.status_code == 202
        assert resp.json() == {"success": True, "reportId": report_id, "section": "news"}
        assert dispatcher.section_calls[-1] == (report_id, ["news"])

    def test_report_not_ready(self, client):
        report_id = client.post("/api/reports", json=SUBMISSION).json()["reportId"]
        resp = client.post(f"/api/reports/{report_id}/sections/news/regenerate")
        assert resp.status_code == 409

    def test_unknown_report(self, client):
        resp = client.post("/api/reports/garbage/sections/news/regenerate")
        assert resp.status_code == 404


class TestApiKey:
    def test_key_required_when_configured(self, client, monkeypatch):
        monkeypatch.setattr(get_settings(), "API_AUTH_KEY", "s3cret")

        assert client.post("/api/reports", json=SUBMISSION).status_code == 401
        resp = client.post("/api/reports", json=SUBMISSION, headers={"X-API-Key": "s3cret"})
        assert resp.status_code == 202


class TestRefreshNews:
    def test_refreshed(self, client, orchestrator):
        report_id = client.post("/api/reports", json=SUBMISSION).json()["reportId"]
        asyncio.run(orchestrator.run_pipeline(report_id))
        orchestrator.news = news_connector("Acme opens Denver hub")

        resp = client.post(f"/api/reports/{report_id}/news/refresh")
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["message"] == "Found 1 news articles"
        assert body["companyNews"]["articles"][0]["source"] == "Reuters"

        status = client.get(f"/api/reports/{report_id}/status").json()
        assert status["data"]["companyNews"] == body["companyNews"]

    def test_not_enriched(self, client):
        report_id = client.post("/api/reports", json=SUBMISSION).json()["reportId"]
        resp = client.post(f"/api/reports/{report_id}/news/refresh")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "No company name found in report"

    def test_unknown_report(self, client):
        assert client.post("/api/reports/garbage/news/refresh").status_code == 404
