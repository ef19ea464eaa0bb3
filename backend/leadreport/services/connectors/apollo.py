# backend/leadreport/services/connectors/apollo.py

from __future__ import annotations

import logging
import zlib
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError
from tenacity import (
    retry,
    wait_exponential,
    stop_after_attempt,
    retry_if_exception,
)

from .base import BaseConnector
from ..caching import cached_get
from ..errors import EnrichmentError, EnrichmentErrorKind, Result
from ...core.config import get_settings
from ...schemas.enrichment import PersonRecord

logger = logging.getLogger(__name__)

_AVATAR_COLOURS = ("2563eb", "4f46e5", "7c3aed", "0891b2", "0284c7")


def _is_retryable(exc: BaseException) -> bool:
    # Network failures and 5xx only; a 429 is surfaced to the user, not retried.
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return isinstance(exc, httpx.TransportError)


def resolve_photo_url(person: Dict[str, Any], email: str) -> str:
    """
    Apollo photo if present, else the public Facebook picture, else a
    generated initials avatar. Colour is derived from the name so the same
    lead always gets the same avatar.
    """
    if person.get("photo_url"):
        return person["photo_url"]

    facebook_url = person.get("facebook_url") or ""
    if "facebook.com/" in facebook_url:
        username = facebook_url.split("facebook.com/", 1)[1].split("?", 1)[0].strip("/")
        if username:
            return f"https://graph.facebook.com/{username}/picture?type=large"

    name = person.get("name") or email.split("@", 1)[0]
    bg = _AVATAR_COLOURS[zlib.crc32(name.encode("utf-8")) % len(_AVATAR_COLOURS)]
    return (
        f"https://ui-avatars.com/api/?name={quote(name)}"
        f"&background={bg}&color=ffffff&bold=true&size=200&length=2&font-size=0.4"
    )


class ApolloConnector(BaseConnector):
    """
    Person + organization lookup by email via Apollo ``people/match``.

    Returns a normalised ``PersonRecord`` (never raw Apollo JSON) or a typed
    ``EnrichmentError`` distinguishing rate limiting, bad credentials,
    malformed input and no match. Successful lookups are cached in Redis for
    ``APOLLO_CACHE_TTL_SECONDS``.
    """

    name = "apollo"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(transport=transport)
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.APOLLO_API_KEY
        self.base_url = (base_url or settings.APOLLO_BASE_URL).rstrip("/")
        self.timeout = settings.APOLLO_TIMEOUT_SECONDS
        self.cache_ttl = settings.APOLLO_CACHE_TTL_SECONDS

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Cache-Control": "no-cache",
            "X-Api-Key": self.api_key or "",
        }

    @retry(
        wait=wait_exponential(multiplier=1, min=1, max=10),
        stop=stop_after_attempt(3),
        retry=retry_if_exception(_is_retryable),
        reraise=True,
    )
    async def _match(self, email: str) -> Dict[str, Any]:
        async with self._client() as client:
            resp = await client.post(
                f"{self.base_url}/people/match",
                headers=self._headers(),
                json={
                    "email": email,
                    "reveal_personal_emails": False,
                    "reveal_phone_number": False,
                },
            )

        if resp.status_code >= 500:
            resp.raise_for_status()
        if resp.status_code >= 400:
            raise EnrichmentError.from_status(resp.status_code, detail=resp.text[:500])

        return resp.json() or {}

    async def lookup(self, email: str) -> Result[PersonRecord, EnrichmentError]:
        email = (email or "").strip().lower()
        if not self.api_key:
            return Result.failure(
                EnrichmentError(EnrichmentErrorKind.UNAUTHORIZED, "Apollo API key is not configured")
            )

        cache_key = f"apollo:email={email}"
        cached = await cached_get(cache_key)
        if cached is not None:
            try:
                return Result.success(PersonRecord.model_validate(cached))
            except ValidationError:
                logger.warning("Discarding malformed cached Apollo record", extra={"connector": self.name})

        try:
            payload = await self._match(email)
        except EnrichmentError as e:
            logger.warning(
                "Apollo lookup rejected (%s): %s",
                e.status_code,
                e.detail,
                extra={"connector": self.name, "status": e.kind.value},
            )
            return Result.failure(e)
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Apollo lookup failed after retries: %s",
                e,
                extra={"connector": self.name},
            )
            return Result.failure(
                EnrichmentError.from_status(e.response.status_code, detail=e.response.text[:500])
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Apollo lookup failed: %s", e, extra={"connector": self.name})
            return Result.failure(
                EnrichmentError(
                    EnrichmentErrorKind.UNKNOWN,
                    f"Failed to fetch Apollo data: {e}",
                    detail=str(e),
                )
            )

        person = payload.get("person") if isinstance(payload, dict) else None
        if not person:
            return Result.failure(
                EnrichmentError(
                    EnrichmentErrorKind.NOT_FOUND,
                    "No person data found in Apollo API response",
                )
            )

        person = {**person, "photo_url": resolve_photo_url(person, email)}
        try:
            record = PersonRecord.model_validate(person)
        except ValidationError as e:
            logger.warning("Apollo returned an unusable person record", extra={"connector": self.name})
            return Result.failure(
                EnrichmentError(
                    EnrichmentErrorKind.UNKNOWN,
                    "Failed to fetch Apollo data: unexpected response shape",
                    detail=str(e)[:500],
                )
            )

        await cached_get(cache_key, set_value=record.model_dump(mode="json"), ttl=self.cache_ttl)
        logger.info("Apollo lookup succeeded", extra={"connector": self.name})
        return Result.success(record)
