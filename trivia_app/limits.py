"""
Request throttling and response caching for the API routes.

With ``REDIS_URL`` set, rate-limit counters and cached listings live in
Redis and are shared by every worker. Without it (development, tests)
both stay in process memory.
"""
import logging
import threading
import time
from functools import wraps

import redis
from cachetools import TTLCache
from flask import current_app, jsonify, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

LIMITER_KEY = 'trivia_limiter'
CACHE_KEY = 'response_cache'


def init_rate_limiting(app):
    """Give each client address one shared ``RATE_LIMIT`` budget across all
    routes under ``RATE_LIMIT_PREFIX``."""
    prefix = app.config.get('RATE_LIMIT_PREFIX', '/api/')
    limiter = Limiter(
        key_func=get_remote_address,
        app=app,
        application_limits=[app.config['RATE_LIMIT']],
    )

    @limiter.request_filter
    def outside_api():
        return not request.path.startswith(prefix)

    @app.errorhandler(429)
    def too_many_requests(e):
        logger.warning('Rate limit exceeded for %s on %s', get_remote_address(), request.path)
        return jsonify({'error': 'Too many requests, please try again later.'}), 429

    app.extensions[LIMITER_KEY] = limiter
    return limiter


class MemoryResponseCache:
    """Per-process response store."""

    def __init__(self, ttl, maxsize=256, timer=time.monotonic):
        self._entries = TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)
        self._lock = threading.Lock()

    def get(self, key):
        with self._lock:
            return self._entries.get(key)

    def set(self, key, value):
        with self._lock:
            self._entries[key] = value

    def clear(self):
        with self._lock:
            self._entries.clear()


class RedisResponseCache:
    """Response store shared by all workers.

    Redis failures are logged and treated as misses so the view still answers.
    """

    def __init__(self, client, ttl, prefix):
        self.client = client
        self.ttl = ttl
        self.prefix = prefix

    def get(self, key):
        try:
            return self.client.get(self.prefix + key)
        except RedisError as e:
            logger.warning('Cache read failed for %s: %s', key, e)
            return None

    def set(self, key, value):
        try:
            self.client.setex(self.prefix + key, self.ttl, value)
        except RedisError as e:
            logger.warning('Cache write failed for %s: %s', key, e)

    def clear(self):
        try:
            keys = list(self.client.scan_iter(match=self.prefix + '*'))
            if keys:
                self.client.delete(*keys)
        except RedisError as e:
            logger.error('Cache invalidation failed: %s', e)


def init_response_cache(app):
    ttl = app.config.get('QUESTION_CACHE_SECONDS') or 0
    if ttl <= 0:
        cache = None
    elif app.config.get('REDIS_URL'):
        client = redis.from_url(app.config['REDIS_URL'])
        cache = RedisResponseCache(client, ttl, app.config.get('QUESTION_CACHE_PREFIX', 'trivia:'))
    else:
        cache = MemoryResponseCache(ttl)
    app.extensions[CACHE_KEY] = cache
    return cache


def invalidate_cache():
    cache = current_app.extensions.get(CACHE_KEY)
    if cache is not None:
        cache.clear()


def cached_response(view):
    """Cache successful JSON responses, keyed by path and query string.

    Apply it beneath the auth decorators so the guard runs before the cache is
    consulted.
    """
    @wraps(view)
    def wrapped(*args, **kwargs):
        cache = current_app.extensions.get(CACHE_KEY)
        if cache is None:
            return view(*args, **kwargs)

        key = request.full_path
        body = cache.get(key)
        if body is not None:
            resp = current_app.response_class(body, mimetype='application/json')
            resp.headers['X-Cache'] = 'HIT'
            return resp

        resp = current_app.make_response(view(*args, **kwargs))
        if resp.status_code == 200:
            cache.set(key, resp.get_data())
            resp.headers['X-Cache'] = 'MISS'
        return resp
    return wrapped
