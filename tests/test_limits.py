import fakeredis
import pytest

from trivia_app.limits import CACHE_KEY, MemoryResponseCache, RedisResponseCache

BASE = '/api/trivia-questions-database'


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_api_routes_are_throttled(make_app):
    app = make_app(RATELIMIT_ENABLED=True, RATE_LIMIT='3 per 15 minutes')
    client = app.test_client()
    for _ in range(3):
        assert client.get('/api/user').status_code == 401
    resp = client.get('/api/user')
    assert resp.status_code == 429
    assert resp.get_json() == {'error': 'Too many requests, please try again later.'}


def test_limit_is_shared_across_api_routes(make_app, login):
    app = make_app(RATELIMIT_ENABLED=True, RATE_LIMIT='1 per 15 minutes')
    client = login(app.test_client(), 'U1')
    assert client.get('/api/my-trivia-results').status_code == 200
    assert client.delete('/api/my-trivia-results/1').status_code == 429


def test_non_api_routes_are_not_throttled(make_app):
    app = make_app(RATELIMIT_ENABLED=True, RATE_LIMIT='1 per 15 minutes')
    client = app.test_client()
    for _ in range(3):
        assert client.get('/get-trivia').status_code == 200


def test_memory_cache_expires():
    clock = FakeClock()
    cache = MemoryResponseCache(ttl=300, timer=clock)
    cache.set('/x', b'[]')
    clock.now += 299
    assert cache.get('/x') == b'[]'
    clock.now += 1
    assert cache.get('/x') is None


@pytest.fixture
def redis_server(monkeypatch):
    server = fakeredis.FakeRedis()
    monkeypatch.setattr('redis.from_url', lambda url, **kwargs: server)
    return server


def test_listing_cache_uses_redis_when_configured(make_app, login, redis_server):
    app = make_app(REDIS_URL='redis://cache.test:6379/0', RATELIMIT_STORAGE_URI='memory://')
    assert isinstance(app.extensions[CACHE_KEY], RedisResponseCache)
    client = login(app.test_client(), 'U1')

    assert client.get(BASE).headers['X-Cache'] == 'MISS'
    assert redis_server.keys('trivia:questions:*') == [f'trivia:questions:{BASE}?'.encode()]
    assert redis_server.ttl(f'trivia:questions:{BASE}?') <= 300
    assert client.get(BASE).headers['X-Cache'] == 'HIT'

    client.post(BASE, json={'question': 'Q', 'correct_answer': 'A'})
    assert redis_server.keys('trivia:questions:*') == []
    resp = client.get(BASE)
    assert resp.headers['X-Cache'] == 'MISS'
    assert len(resp.get_json()) == 1
