from __future__ import annotations

import logging
import re
from datetime import date, timedelta
from typing import Any, Dict, Optional

import httpx

from .base import BaseConnector, ConnectorResult
from ...core.config import get_settings

logger = logging.getLogger(__name__)

_LEGAL_SUFFIX_RE = re.compile(r"\s+(Inc|LLC|Ltd|Corporation|Corp)\.?$", re.IGNORECASE)


def _empty() -> ConnectorResult:
    return ConnectorResult({"articles": [], "totalResults": 0})


def company_query(company_name: str) -> str:
    """Exact-phrase query on the company name without its legal suffix."""
    return f'"{_LEGAL_SUFFIX_RE.sub("", company_name).strip()}"'


class NewsConnector(BaseConnector):
    """
    Recent company news from NewsAPI ``everything``.

    Strictly best-effort: no key, rate limiting, bad credentials or network
    trouble all yield an empty article list.
    """

    name = "newsapi"
    timeout = 15

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(transport=transport)
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.NEWS_API_KEY
        self.base_url = (base_url or settings.NEWS_API_BASE_URL).rstrip("/")
        self.lookback_days = settings.NEWS_LOOKBACK_DAYS
        self.max_articles = settings.NEWS_MAX_ARTICLES

    async def fetch(self, company_name: str | None, today: date | None = None) -> ConnectorResult:
        if not self.api_key or not company_name:
            return _empty()

        from_date = (today or date.today()) - timedelta(days=self.lookback_days)
        params = {
            "q": company_query(company_name),
            "from": from_date.isoformat(),
            "sortBy": "publishedAt",
            "language": "en",
            "pageSize": self.max_articles,
            "apiKey": self.api_key,
        }

        try:
            async with self._client() as client:
                resp = await client.get(
                    f"{self.base_url}/everything",
                    params=params,
                    headers={"User-Agent": "LeadReport/1.0"},
                )
            if resp.status_code in (401, 429):
                logger.warning(
                    "NewsAPI returned %s; continuing without news",
                    resp.status_code,
                    extra={"connector": self.name},
                )
                return _empty()
            resp.raise_for_status()
            data: Dict[str, Any] = resp.json() or {}
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("NewsAPI lookup failed: %s", e, extra={"connector": self.name})
            return _empty()

        articles = []
        for article in (data.get("articles") or [])[: self.max_articles]:
            if not isinstance(article, dict):
                continue
            articles.append(
                {
                    "title": article.get("title"),
                    "description": article.get("description"),
                    "url": article.get("url"),
                    "source": (article.get("source") or {}).get("name") or "Unknown",
                    "publishedAt": article.get("publishedAt"),
                    "urlToImage": article.get("urlToImage"),
                }
            )

        return ConnectorResult({"articles": articles, "totalResults": data.get("totalResults") or 0})
