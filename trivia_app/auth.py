import logging
from datetime import timedelta
from functools import wraps
from typing import NamedTuple, Optional

from flask import Blueprint, current_app, jsonify, redirect, session, url_for
from flask_login import LoginManager, current_user, login_user, logout_user
from sqlalchemy.exc import SQLAlchemyError

from .models import LoginSession, User, db, utcnow

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)
login_manager = LoginManager()

PROVIDERS_KEY = 'trivia_providers'


class Principal(NamedTuple):
    """The signed-in caller for the current request."""
    id: str
    role: str
    display_name: Optional[str] = None
    session_id: Optional[str] = None

    # Flask-Login user protocol
    is_authenticated = True
    is_active = True
    is_anonymous = False

    def get_id(self):
        return self.session_id


def _session_expired(record):
    lifetime = current_app.config.get('LOGIN_SESSION_LIFETIME')
    if not lifetime:
        return False
    if not isinstance(lifetime, timedelta):
        lifetime = timedelta(seconds=lifetime)
    return record.created_at + lifetime <= utcnow()


def _user_row(user_id):
    try:
        return db.session.get(User, user_id)
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Failed to load user %s', user_id)
        return None


@login_manager.user_loader
def load_principal(session_id):
    """Resolve the session cookie's id to a Principal, reading the role from the users table."""
    try:
        record = db.session.get(LoginSession, session_id)
        if record is not None and _session_expired(record):
            db.session.delete(record)
            db.session.commit()
            record = None
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Failed to load login session')
        return None
    if record is None:
        return None

    # A missing row means the login-time upsert failed; such a user is never an admin
    user = _user_row(record.user_id)
    return Principal(
        id=record.user_id,
        role=(user.user_type if user is not None else None) or 'user',
        display_name=(user.display_name if user is not None else None) or record.display_name,
        session_id=record.id,
    )


def current_principal():
    if not current_user.is_authenticated:
        return None
    return current_user._get_current_object()


def login_required(view):
    """Reject anonymous callers with 401; pass ``principal`` to the view."""
    @wraps(view)
    def wrapped(*args, **kwargs):
        principal = current_principal()
        if principal is None:
            return jsonify({'error': 'Unauthorized'}), 401
        return view(*args, principal=principal, **kwargs)
    return wrapped


def role_required(*roles):
    """Like ``login_required``, then reject callers whose role is not in ``roles`` with 403."""
    allowed = frozenset(roles)

    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            principal = current_principal()
            if principal is None:
                return jsonify({'error': 'Unauthorized'}), 401
            if principal.role not in allowed:
                return jsonify({'error': 'Forbidden'}), 403
            return view(*args, principal=principal, **kwargs)
        return wrapped
    return decorator


def upsert_user(profile):
    """Insert or refresh the user row for ``profile`` and return its role.

    Only identity fields are written; an existing ``user_type`` is kept.
    Storage errors are logged and do not block the login.
    """
    try:
        user = db.session.get(User, profile.id)
        if user is None:
            user = User(id=profile.id, user_type='user')
            db.session.add(user)
        user.display_name = profile.display_name
        user.email = profile.email
        user.provider = profile.provider
        user.last_login_at = utcnow()
        db.session.commit()
        return user.user_type or 'user'
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Failed to save user %s from %s', profile.id, profile.provider)
        return 'user'


def delete_user(user_id):
    """Remove the user row and every login session bound to it."""
    try:
        LoginSession.query.filter_by(user_id=user_id).delete()
        deleted = User.query.filter_by(id=user_id).delete()
        db.session.commit()
        return deleted
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Failed to delete user %s on logout', user_id)
        return 0


def start_login_session(profile):
    record = LoginSession(user_id=profile.id, display_name=profile.display_name,
                          provider=profile.provider)
    db.session.add(record)
    db.session.commit()
    return record


def end_login_session(session_id):
    try:
        LoginSession.query.filter_by(id=session_id).delete()
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Failed to delete login session')


def _landing(error=None):
    url = current_app.config.get('FRONTEND_URL') or '/'
    if error:
        return f"{url.rstrip('/')}/?error={error}"
    return url


def _get_provider(name):
    return current_app.extensions.get(PROVIDERS_KEY, {}).get(name)


@auth_bp.route('/auth/<provider>')
def login(provider):
    client = _get_provider(provider)
    if client is None:
        return jsonify({'error': f'Unknown login provider: {provider}'}), 404
    redirect_uri = url_for('auth.callback', provider=provider, _external=True)
    return client.authorize_redirect(redirect_uri)


@auth_bp.route('/auth/<provider>/callback')
def callback(provider):
    client = _get_provider(provider)
    if client is None:
        return jsonify({'error': f'Unknown login provider: {provider}'}), 404

    try:
        profile = client.exchange_callback()
    except Exception:
        logger.exception('%s login callback failed', provider)
        profile = None
    if profile is None:
        logger.warning('%s login failed', provider)
        return redirect(_landing(error='login_failed'))

    user_type = upsert_user(profile)

    # Reset the session so nothing from a previous identity survives
    previous = session.get('_user_id')
    if previous:
        end_login_session(previous)
    session.clear()

    try:
        record = start_login_session(profile)
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Failed to start a session for %s', profile.id)
        return redirect(_landing(error='login_failed'))

    login_user(Principal(id=profile.id, role=user_type,
                         display_name=profile.display_name, session_id=record.id))
    session.permanent = True
    logger.info('User %s logged in via %s as %s', profile.id, profile.provider, user_type)
    return redirect(_landing())


@auth_bp.route('/logout')
def logout():
    principal = current_principal()
    if principal is not None:
        if current_app.config.get('EPHEMERAL_ACCOUNTS'):
            delete_user(principal.id)
        end_login_session(principal.session_id)
        logger.info('User %s logged out', principal.id)
    logout_user()
    session.clear()
    return redirect(_landing())


@auth_bp.route('/api/user')
def api_user():
    principal = current_principal()
    if principal is None:
        return jsonify({
            'error': 'Not authenticated',
            'code': 401,
            'message': 'User is not logged in',
            'help': 'Please log in via Google or GitHub'
        }), 401
    return jsonify({'displayName': principal.display_name})
