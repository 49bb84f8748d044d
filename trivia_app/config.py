import os
import secrets
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_int(name, default):
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


class Config:
    """Defaults read from the environment (and a local .env file)."""

    FLASK_ENV = os.getenv('FLASK_ENV', '').lower()
    SECRET_KEY = os.getenv('SECRET_KEY')

    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', '').strip() or None
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {'pool_pre_ping': True}

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    SESSION_COOKIE_SECURE = FLASK_ENV == 'production'
    # Login sessions are rows in login_sessions; the cookie only carries their id
    LOGIN_SESSION_LIFETIME = timedelta(days=_env_int('SESSION_LIFETIME_DAYS', 7))
    PERMANENT_SESSION_LIFETIME = LOGIN_SESSION_LIFETIME

    FRONTEND_URL = os.getenv('FRONTEND_URL', '/')
    TRUST_PROXY = _env_bool('TRUST_PROXY')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

    # Identity providers; a provider is enabled when both values are set
    GOOGLE_CLIENT_ID = os.getenv('GOOGLE_CLIENT_ID')
    GOOGLE_CLIENT_SECRET = os.getenv('GOOGLE_CLIENT_SECRET')
    GITHUB_CLIENT_ID = os.getenv('GITHUB_CLIENT_ID')
    GITHUB_CLIENT_SECRET = os.getenv('GITHUB_CLIENT_SECRET')
    LINKEDIN_CLIENT_ID = os.getenv('LINKEDIN_CLIENT_ID')
    LINKEDIN_CLIENT_SECRET = os.getenv('LINKEDIN_CLIENT_SECRET')

    # Delete the user row on logout
    EPHEMERAL_ACCOUNTS = _env_bool('EPHEMERAL_ACCOUNTS')

    TRIVIA_API_URL = os.getenv('TRIVIA_API_URL', 'https://opentdb.com/api.php')
    TRIVIA_HTTP_TRANSPORT = None
    TRIVIA_MAX_AMOUNT = 50

    RATELIMIT_ENABLED = _env_bool('RATE_LIMIT_ENABLED', True)
    # Shared by every /api/ route, per client address
    RATE_LIMIT = os.getenv('RATE_LIMIT', '100 per 15 minutes')
    RATE_LIMIT_PREFIX = '/api/'

    # Rate-limit counters and cached listings live here; required in production
    REDIS_URL = os.getenv('REDIS_URL', '').strip() or None
    RATELIMIT_STORAGE_URI = None

    QUESTION_CACHE_SECONDS = _env_int('QUESTION_CACHE_SECONDS', 5 * 60)
    QUESTION_CACHE_PREFIX = 'trivia:questions:'


def provider_credentials(config, name):
    """Return (client_id, client_secret) for a provider or None if unset."""
    prefix = name.upper()
    client_id = config.get(f'{prefix}_CLIENT_ID')
    client_secret = config.get(f'{prefix}_CLIENT_SECRET')
    if client_id and client_secret:
        return client_id, client_secret
    return None


def validate_config(app):
    """Fail fast on settings that must be supplied outside development,
    then fill in the development fallbacks."""
    production = app.config.get('FLASK_ENV') == 'production'
    if not app.config.get('SECRET_KEY'):
        if production:
            raise RuntimeError('SECRET_KEY must be set in production.')
        app.config['SECRET_KEY'] = secrets.token_hex(32)
    if not app.config.get('SQLALCHEMY_DATABASE_URI'):
        if production:
            raise RuntimeError('DATABASE_URL must be set in production.')
        os.makedirs(app.instance_path, exist_ok=True)
        app.config['SQLALCHEMY_DATABASE_URI'] = 'sqlite:///' + os.path.join(app.instance_path, 'trivia.db')
    if not app.config.get('REDIS_URL') and production:
        raise RuntimeError('REDIS_URL must be set in production.')
    if not app.config.get('RATELIMIT_STORAGE_URI'):
        app.config['RATELIMIT_STORAGE_URI'] = app.config.get('REDIS_URL') or 'memory://'

    url = app.config['SQLALCHEMY_DATABASE_URI']
    # Heroku/Render style URLs
    if url.startswith('postgres://'):
        app.config['SQLALCHEMY_DATABASE_URI'] = url.replace('postgres://', 'postgresql://', 1)
