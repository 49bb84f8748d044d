import logging

from flask import Flask, jsonify
from werkzeug.middleware.proxy_fix import ProxyFix

from . import cli, errors, trivia_api
from .auth import PROVIDERS_KEY, auth_bp, login_manager
from .config import Config, validate_config
from .limits import init_rate_limiting, init_response_cache
from .models import db
from .providers import build_providers
from .questions_api import questions_bp
from .results_api import results_bp
from .trivia_api import trivia_bp

logger = logging.getLogger(__name__)


def create_app(config=None, providers=None):
    """Build the application.

    ``config`` is a mapping applied over the environment defaults.
    ``providers`` maps provider names to identity providers; when omitted,
    the providers with configured credentials are registered via Authlib.

    Run it with ``flask --app trivia_app run``.
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config:
        app.config.update(config)
    validate_config(app)

    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=app.config.get('LOG_LEVEL', 'INFO'),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    if app.config.get('TRUST_PROXY'):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

    db.init_app(app)
    with app.app_context():
        db.create_all()
    login_manager.init_app(app)

    if providers is None:
        providers = build_providers(app)
    app.extensions[PROVIDERS_KEY] = dict(providers)

    init_rate_limiting(app)
    init_response_cache(app)
    trivia_api.init_app(app)
    errors.init_app(app)

    # ---------------- Routes ----------------
    @app.route('/')
    def index():
        return jsonify({
            'name': 'Trivia API',
            'providers': sorted(app.extensions[PROVIDERS_KEY]),
        })

    # ---------------- Blueprints ----------------
    app.register_blueprint(auth_bp)
    app.register_blueprint(results_bp)
    app.register_blueprint(questions_bp)
    app.register_blueprint(trivia_bp)

    cli.init_app(app)

    logger.info('Trivia API ready (providers: %s)', ', '.join(sorted(providers)) or 'none')
    return app
