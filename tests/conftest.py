import httpx
import pytest
from flask import redirect

from trivia_app import create_app
from trivia_app.models import LoginSession, User, db
from trivia_app.providers import Profile

FRONTEND_URL = 'http://frontend.test'

SAMPLE_QUESTION = {
    'type': 'multiple',
    'difficulty': 'easy',
    'category': 'General Knowledge',
    'question': 'What is the capital of France?',
    'correct_answer': 'Paris',
    'incorrect_answers': ['Lyon', 'Marseille', 'Nice'],
}


class FakeProvider:
    """Identity provider double: the next callback yields ``profile`` or raises ``error``."""

    def __init__(self, name):
        self.name = name
        self.profile = Profile(id=f'{name}-1', display_name=f'{name.title()} User',
                               email=f'{name}@example.com', provider=name)
        self.error = None
        self.redirect_uris = []

    def authorize_redirect(self, redirect_uri):
        self.redirect_uris.append(redirect_uri)
        return redirect(f'https://login.example/{self.name}')

    def exchange_callback(self):
        if self.error is not None:
            raise self.error
        return self.profile


class UpstreamStub:
    """httpx.MockTransport handler standing in for the trivia question source."""

    def __init__(self):
        self.requests = []
        self.status = 200
        self.payload = {'response_code': 0, 'results': [SAMPLE_QUESTION]}
        self.error = None

    def __call__(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status, json=self.payload)

    @property
    def last_params(self):
        return dict(self.requests[-1].url.params)


@pytest.fixture
def providers():
    return {'google': FakeProvider('google'), 'github': FakeProvider('github')}


@pytest.fixture
def upstream():
    return UpstreamStub()


@pytest.fixture
def make_app(providers, upstream):
    apps = []

    def factory(**overrides):
        config = {
            'TESTING': True,
            'SECRET_KEY': 'test-secret',
            'SQLALCHEMY_DATABASE_URI': 'sqlite://',
            'FRONTEND_URL': FRONTEND_URL,
            'TRIVIA_HTTP_TRANSPORT': httpx.MockTransport(upstream),
            'RATELIMIT_ENABLED': False,
            'RATELIMIT_STORAGE_URI': 'memory://',
            'REDIS_URL': None,
            'QUESTION_CACHE_SECONDS': 300,
        }
        config.update(overrides)
        app = create_app(config, providers=providers)
        apps.append(app)
        return app

    yield factory

    for app in apps:
        with app.app_context():
            db.session.remove()
            db.drop_all()


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
def client(app):
    return app.test_client()


def login_as(client, user_id, role='user', display_name=None):
    """Sign ``client`` in as ``user_id`` without going through a provider."""
    with client.application.app_context():
        db.session.merge(User(id=user_id, user_type=role, display_name=display_name or user_id))
        record = LoginSession(user_id=user_id, display_name=display_name or user_id)
        db.session.add(record)
        db.session.commit()
        session_id = record.id
    with client.session_transaction() as sess:
        sess['_user_id'] = session_id
        sess['_fresh'] = True
    return client


@pytest.fixture
def login():
    return login_as


@pytest.fixture
def user_client(app):
    return login_as(app.test_client(), 'U1')


@pytest.fixture
def admin_client(app):
    return login_as(app.test_client(), 'A1', role='admin')
