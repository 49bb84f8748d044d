"""Identity providers and profile normalization.

Every provider exposes the same two calls used by the auth blueprint:

    provider.authorize_redirect(redirect_uri)  -> redirect response
    provider.exchange_callback()               -> Profile

The OAuth handshake itself is delegated to Authlib; this module only decides
how each provider's user payload maps onto a ``Profile``.
"""
import logging
from typing import NamedTuple, Optional

from authlib.integrations.flask_client import OAuth

from .config import provider_credentials

logger = logging.getLogger(__name__)


class Profile(NamedTuple):
    id: str
    display_name: str
    email: Optional[str]
    provider: str


class ProfileError(ValueError):
    """Raised when a provider payload cannot identify a user."""


def _clean(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _profile(provider, user_id, display_name, username, email):
    user_id = _clean(user_id)
    if not user_id:
        raise ProfileError(f'{provider} profile has no user id')
    email = _clean(email)
    name = _clean(display_name) or _clean(username) or email or user_id
    return Profile(id=user_id, display_name=name, email=email, provider=provider)


def normalize_google(info):
    """Map an OpenID Connect userinfo payload from Google."""
    return _profile('google', info.get('sub') or info.get('id'), info.get('name'),
                    info.get('given_name'), info.get('email'))


def normalize_github(user, emails=None):
    """Map a GitHub ``/user`` payload, with ``/user/emails`` as the email fallback."""
    email = user.get('email')
    if not email and emails:
        primary = [e for e in emails if e.get('primary') and e.get('verified')]
        verified = [e for e in emails if e.get('verified')]
        chosen = (primary or verified or [None])[0]
        email = chosen.get('email') if chosen else None
    return _profile('github', user.get('id'), user.get('name'), user.get('login'), email)


def normalize_linkedin(info):
    """Map LinkedIn's OpenID Connect userinfo payload."""
    name = info.get('name')
    if not name:
        name = ' '.join(p for p in (info.get('given_name'), info.get('family_name')) if p)
    return _profile('linkedin', info.get('sub'), name, None, info.get('email'))


def _oidc_userinfo(client, token):
    info = token.get('userinfo')
    if not info:
        info = client.userinfo(token=token)
    return info


def _google_profile(client, token):
    return normalize_google(_oidc_userinfo(client, token))


def _github_profile(client, token):
    resp = client.get('user', token=token)
    resp.raise_for_status()
    user = resp.json()
    emails = None
    if not user.get('email'):
        resp = client.get('user/emails', token=token)
        if resp.ok:
            emails = resp.json()
    return normalize_github(user, emails)


def _linkedin_profile(client, token):
    return normalize_linkedin(_oidc_userinfo(client, token))


class OAuthProvider:
    """A provider backed by a registered Authlib client."""

    def __init__(self, name, client, fetch_profile):
        self.name = name
        self.client = client
        self._fetch_profile = fetch_profile

    def authorize_redirect(self, redirect_uri):
        return self.client.authorize_redirect(redirect_uri)

    def exchange_callback(self):
        token = self.client.authorize_access_token()
        return self._fetch_profile(self.client, token)

    def __repr__(self):
        return f'<OAuthProvider {self.name}>'


PROVIDER_SETTINGS = {
    'google': {
        'register': {
            'server_metadata_url': 'https://accounts.google.com/.well-known/openid-configuration',
            'client_kwargs': {'scope': 'openid email profile'},
        },
        'fetch_profile': _google_profile,
    },
    'github': {
        'register': {
            'access_token_url': 'https://github.com/login/oauth/access_token',
            'authorize_url': 'https://github.com/login/oauth/authorize',
            'api_base_url': 'https://api.github.com/',
            'client_kwargs': {'scope': 'user:email'},
        },
        'fetch_profile': _github_profile,
    },
    'linkedin': {
        'register': {
            'server_metadata_url': 'https://www.linkedin.com/oauth/.well-known/openid-configuration',
            'client_kwargs': {
                'scope': 'openid profile email',
                'token_endpoint_auth_method': 'client_secret_post',
            },
        },
        'fetch_profile': _linkedin_profile,
    },
}


def build_providers(app):
    """Register every provider that has credentials configured.

    Returns a mapping of provider name to provider object; providers without
    credentials are skipped with a warning.
    """
    oauth = OAuth(app)
    providers = {}
    for name, settings in PROVIDER_SETTINGS.items():
        creds = provider_credentials(app.config, name)
        if not creds:
            logger.warning('%s login is not configured (set %s_CLIENT_ID and %s_CLIENT_SECRET).',
                           name, name.upper(), name.upper())
            continue
        client_id, client_secret = creds
        client = oauth.register(
            name=name,
            client_id=client_id,
            client_secret=client_secret,
            **settings['register']
        )
        providers[name] = OAuthProvider(name, client, settings['fetch_profile'])
        logger.info('%s login registered', name)
    return providers
