import httpx
import pytest

from src.schemas.ranking import Badge, BadgeRarity
from src.services.engagement_service import HttpEngagementProvider, InMemoryEngagementProvider

BASE_URL = "https://engagement.example.com/api"


def _handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/api/users/u1/engagement":
        return httpx.Response(200, json={"score": 420.5})
    if request.url.path == "/api/users/u1/achievements":
        return httpx.Response(
            200,
            json=[
                {
                    "id": "b1",
                    "achievementId": "first-win",
                    "name": "First Win",
                    "rarity": "rare",
                }
            ],
        )
    if request.url.path == "/api/users/broken/engagement":
        return httpx.Response(500, json={"detail": "boom"})
    return httpx.Response(404)


@pytest.fixture
def provider() -> HttpEngagementProvider:
    return HttpEngagementProvider(
        BASE_URL + "/",
        token="secret",
        transport=httpx.MockTransport(_handler),
    )


class TestHttpEngagementProvider:
    @pytest.mark.asyncio
    async def test_fetches_engagement_score(self, provider) -> None:
        assert await provider.get_engagement_score("u1") == 420.5

    @pytest.mark.asyncio
    async def test_unknown_user_scores_zero(self, provider) -> None:
        assert await provider.get_engagement_score("ghost") == 0
        assert await provider.get_user_achievements("ghost") == []

    @pytest.mark.asyncio
    async def test_fetches_badges(self, provider) -> None:
        badges = await provider.get_user_achievements("u1")

        assert len(badges) == 1
        assert badges[0].achievement_id == "first-win"
        assert badges[0].rarity == BadgeRarity.RARE

    @pytest.mark.asyncio
    async def test_server_errors_propagate(self, provider) -> None:
        with pytest.raises(httpx.HTTPStatusError):
            await provider.get_engagement_score("broken")

    def test_token_becomes_bearer_header(self, provider) -> None:
        assert provider.headers["Authorization"] == "Bearer secret"
        assert provider.base_url == BASE_URL


class TestInMemoryEngagementProvider:
    @pytest.mark.asyncio
    async def test_defaults_for_unknown_users(self) -> None:
        provider = InMemoryEngagementProvider()
        assert await provider.get_engagement_score("u1") == 0
        assert await provider.get_user_achievements("u1") == []

    @pytest.mark.asyncio
    async def test_returns_configured_values(self) -> None:
        provider = InMemoryEngagementProvider()
        badge = Badge(id="b1", achievement_id="a1", name="Streak")
        provider.set_engagement_score("u1", 150)
        provider.set_achievements("u1", [badge])

        assert await provider.get_engagement_score("u1") == 150
        assert await provider.get_user_achievements("u1") == [badge]
