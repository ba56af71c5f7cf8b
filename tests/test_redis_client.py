import pytest

from app.utils import redis_client


class _ClosableRedis:
    def __init__(self) -> None:
        self.closed = False

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def built(monkeypatch):
    clients = []

    def _from_url(url, **kwargs):
        client = _ClosableRedis()
        clients.append((url, kwargs, client))
        return client

    redis_client.get_redis_client.cache_clear()
    monkeypatch.setattr(redis_client.Redis, "from_url", _from_url)
    yield clients
    redis_client.get_redis_client.cache_clear()


def test_client_is_built_once_from_settings(built) -> None:
    first = redis_client.get_redis_client()
    second = redis_client.get_redis_client()

    assert first is second
    assert len(built) == 1
    url, kwargs, _ = built[0]
    assert url == redis_client.settings.redis_url
    assert kwargs == {"decode_responses": True}


@pytest.mark.asyncio
async def test_close_releases_and_forgets_the_client(built) -> None:
    client = redis_client.get_redis_client()

    await redis_client.close_redis_client()

    assert client.closed is True
    assert redis_client.get_redis_client() is not client


@pytest.mark.asyncio
async def test_close_without_client_builds_nothing(built) -> None:
    await redis_client.close_redis_client()

    assert built == []
