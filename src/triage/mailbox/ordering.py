"""HTTP client for the external inbox-ordering scraper.

The scraper runs a logged-in browser against the person's mail client and
reports the inbox as they see it.  Wire contract::

    POST {base_url}/scrape   {"accountEmail": "..."}
    200 -> {"threads": [{"position": 0, "sender": "...", "subject": "...",
                          "timestamp": "...", "externalId": "...", "rawText": "..."}]}
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from triage.domain.models import ExternalObservation
from triage.resilience.retry import resilient_api_call

logger = structlog.get_logger()


class ScrapeOrderingClient:
    """Fetch the observed inbox ordering from the scraper service.

    Args:
        base_url: Root URL of the scraper service.
        api_key: Optional bearer token sent as ``Authorization``.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        if self._api_key:
            return {"Authorization": f"Bearer {self._api_key}"}
        return {}

    @resilient_api_call("ordering_scraper", retry_on=(httpx.TransportError,))
    async def scrape_order(self, account: str) -> list[ExternalObservation]:
        """Return the observed ordering for *account*.

        Raises:
            httpx.HTTPStatusError: If the scraper answers with a non-2xx status.
            httpx.TransportError: If the scraper is unreachable after retries.
        """
        async with httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers(),
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            response = await client.post("/scrape", json={"accountEmail": account})
            response.raise_for_status()
            payload: dict[str, Any] = response.json()

        observations = [
            ExternalObservation.model_validate(thread) for thread in payload.get("threads", [])
        ]
        logger.info("ordering_scraped", account=account, count=len(observations))
        return observations
