import logging
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Request, Security
from fastapi.security.api_key import APIKeyHeader

from ..core.config import get_settings
from ..schemas.reports import ReportStatusOut, ReportSubmission, ReportSubmitted
from ..services.errors import ReportNotFoundError, ReportValidationError
from ..services.orchestrator import ReportOrchestrator

router = APIRouter(tags=["reports"])

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)
logger = logging.getLogger(__name__)


def verify_api_key(api_key: str | None = Security(api_key_header)) -> None:
    """
    Simple header-based API key authentication.

    - In dev, if API_AUTH_KEY is not set, auth is skipped.
    - Otherwise, require X-API-Key == API_AUTH_KEY.
    """
    settings = get_settings()
    expected = settings.API_AUTH_KEY

    if settings.ENV == "dev" and not expected:
        return

    if not expected:
        raise HTTPException(status_code=401, detail="API key not configured")

    if api_key != expected:
        raise HTTPException(status_code=401, detail="Invalid API key")


def get_orchestrator(request: Request) -> ReportOrchestrator:
    return request.app.state.orchestrator


@router.post(
    "/reports",
    response_model=ReportSubmitted,
    status_code=202,
)
def submit_report(
    payload: ReportSubmission,
    orchestrator: ReportOrchestrator = Depends(get_orchestrator),
    _: None = Depends(verify_api_key),
):
    request_id = str(uuid4())
    logger.info("Report submission received", extra={"request_id": request_id, "step": "submit"})
    try:
        report_id = orchestrator.submit(payload)
    except ReportValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(
        "Report accepted",
        extra={"request_id": request_id, "report_id": report_id, "step": "accepted"},
    )
    return ReportSubmitted(report_id=report_id)


@router.get("/reports/{report_id}/status", response_model=ReportStatusOut)
def get_report_status(
    report_id: str,
    orchestrator: ReportOrchestrator = Depends(get_orchestrator),
    _: None = Depends(verify_api_key),
):
    try:
        return orchestrator.get_status(report_id)
    except ReportNotFoundError:
        raise HTTPException(status_code=404, detail="Report not found")


@router.post("/reports/{report_id}/sections/{section}/regenerate", status_code=202)
def regenerate_report_section(
    report_id: str,
    section: str,
    orchestrator: ReportOrchestrator = Depends(get_orchestrator),
    _: None = Depends(verify_api_key),
):
    try:
        orchestrator.regenerate_section(report_id, section)
    except ReportNotFoundError:
        raise HTTPException(status_code=404, detail="Report not found")
    except ReportValidationError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"success": True, "reportId": report_id, "section": section}


@router.post("/reports/{report_id}/news/refresh")
async def refresh_report_news(
    report_id: str,
    orchestrator: ReportOrchestrator = Depends(get_orchestrator),
    _: None = Depends(verify_api_key),
):
    try:
        news = await orchestrator.refresh_news(report_id)
    except ReportNotFoundError:
        raise HTTPException(status_code=404, detail="Report not found")
    except ReportValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    count = len(news["articles"])
    return {
        "success": True,
        "reportId": report_id,
        "message": f"Found {count} news articles" if count else "No news articles found for this company",
        "companyNews": news,
    }
