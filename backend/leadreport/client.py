from __future__ import annotations

import logging
import time
from typing import Any, Callable

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = ("completed", "failed")


class PollTimeoutError(TimeoutError):
    def __init__(self, report_id: str, last_status: str | None, timeout: float) -> None:
        super().__init__(
            f"Report {report_id} still '{last_status}' after {timeout:.0f}s"
        )
        self.report_id = report_id
        self.last_status = last_status


class ReportFailedError(RuntimeError):
    def __init__(self, report_id: str, error: str | None) -> None:
        super().__init__(error or "Report generation failed")
        self.report_id = report_id
        self.error = error


class LeadReportClient:
    """
    Submit lead reports and wait for them over HTTP.

        with LeadReportClient("http://localhost:8000/api") as client:
            report_id = client.submit("jane@acme.com", reportOwnerName="Sam")
            data = client.wait_for_completion(report_id)
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        transport: httpx.BaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        headers = {"X-API-Key": api_key} if api_key else {}
        self._http = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "LeadReportClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def submit(self, email: str, **fields: Any) -> str:
        resp = self._http.post("/reports", json={"email": email, **fields})
        resp.raise_for_status()
        return resp.json()["reportId"]

    @retry(
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        stop=stop_after_attempt(3),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    def get_status(self, report_id: str) -> dict[str, Any]:
        resp = self._http.get(f"/reports/{report_id}/status")
        resp.raise_for_status()
        return resp.json()

    def wait_for_completion(
        self,
        report_id: str,
        poll_interval: float = 2.0,
        timeout: float = 300.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> dict[str, Any]:
        """
        Poll until the report is terminal. Returns the completed report
        document; raises ``ReportFailedError`` or ``PollTimeoutError``.
        """
        deadline = clock() + timeout
        last_status: str | None = None
        while True:
            payload = self.get_status(report_id)
            last_status = payload.get("status")
            if last_status == "completed":
                return payload.get("data") or {}
            if last_status == "failed":
                raise ReportFailedError(report_id, payload.get("error"))

            remaining = deadline - clock()
            if remaining <= 0:
                raise PollTimeoutError(report_id, last_status, timeout)
            logger.debug("Report still %s", last_status, extra={"report_id": report_id})
            sleep(min(poll_interval, remaining))
