from typing import Protocol

import httpx
import structlog
from pydantic import TypeAdapter
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.core.config import settings
from src.schemas.ranking import Badge

logger = structlog.get_logger()

_badges_adapter = TypeAdapter(list[Badge])


class EngagementProvider(Protocol):
    """Source of engagement scores and earned badges used at ingestion."""

    async def get_engagement_score(self, user_id: str) -> float: ...

    async def get_user_achievements(self, user_id: str) -> list[Badge]: ...


class InMemoryEngagementProvider:
    """Process-local provider. Unknown users score 0 and hold no badges."""

    def __init__(self) -> None:
        self._scores: dict[str, float] = {}
        self._badges: dict[str, list[Badge]] = {}

    def set_engagement_score(self, user_id: str, score: float) -> None:
        self._scores[user_id] = score

    def set_achievements(self, user_id: str, badges: list[Badge]) -> None:
        self._badges[user_id] = list(badges)

    async def get_engagement_score(self, user_id: str) -> float:
        return self._scores.get(user_id, 0)

    async def get_user_achievements(self, user_id: str) -> list[Badge]:
        return list(self._badges.get(user_id, []))


class HttpEngagementProvider:
    """Client for the engagement/achievement HTTP API."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = settings.engagement_api_timeout,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.headers = {"Accept": "application/json"}
        if token:
            self.headers["Authorization"] = f"Bearer {token}"
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers=self.headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(settings.engagement_api_max_retries),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def get_engagement_score(self, user_id: str) -> float:
        """Fetch a user's engagement score; unknown users score 0."""
        async with self._client() as client:
            response = await client.get(f"{self.base_url}/users/{user_id}/engagement")
            if response.status_code == 404:
                return 0
            response.raise_for_status()
            return float(response.json()["score"])

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(settings.engagement_api_max_retries),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def get_user_achievements(self, user_id: str) -> list[Badge]:
        """Fetch the badges a user has earned."""
        async with self._client() as client:
            response = await client.get(f"{self.base_url}/users/{user_id}/achievements")
            if response.status_code == 404:
                return []
            response.raise_for_status()
            return _badges_adapter.validate_python(response.json())


def get_engagement_provider() -> EngagementProvider:
    """Create the provider selected by settings."""
    if settings.engagement_api_base_url is not None:
        logger.info(
            "Using HTTP engagement provider",
            base_url=str(settings.engagement_api_base_url),
        )
        return HttpEngagementProvider(
            str(settings.engagement_api_base_url),
            token=settings.engagement_api_token,
        )
    return InMemoryEngagementProvider()
