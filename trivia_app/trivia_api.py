import logging

import httpx
from flask import Blueprint, current_app, g, jsonify, request

logger = logging.getLogger(__name__)

trivia_bp = Blueprint('trivia_api', __name__)

FILTERS = ('category', 'difficulty', 'type')


def get_client():
    """HTTP client for the current app context, closed on teardown."""
    if 'trivia_http' not in g:
        g.trivia_http = httpx.Client(transport=current_app.config.get('TRIVIA_HTTP_TRANSPORT'))
    return g.trivia_http


def close_client(e=None):
    client = g.pop('trivia_http', None)
    if client is not None:
        client.close()


def init_app(app):
    app.teardown_appcontext(close_client)


def build_query(amount, args):
    """Upstream query params; filters that are empty or 'any' are left out."""
    params = {'amount': amount}
    for name in FILTERS:
        value = (args.get(name) or '').strip()
        if value and value.lower() != 'any':
            params[name] = value
    return params


def parse_amount(raw, maximum):
    if raw is None or str(raw).strip() == '':
        return 1
    amount = int(raw)
    if amount < 1 or amount > maximum:
        raise ValueError(f'amount must be between 1 and {maximum}')
    return amount


def fetch_questions(params):
    resp = get_client().get(current_app.config['TRIVIA_API_URL'], params=params)
    resp.raise_for_status()
    return resp.json()


@trivia_bp.route('/get-trivia', methods=['GET'])
def get_trivia():
    maximum = current_app.config.get('TRIVIA_MAX_AMOUNT', 50)
    try:
        amount = parse_amount(request.args.get('amount'), maximum)
    except ValueError:
        return jsonify({'error': f'amount must be an integer between 1 and {maximum}'}), 400

    params = build_query(amount, request.args)
    try:
        data = fetch_questions(params)
    except (httpx.HTTPError, ValueError) as e:
        logger.error('Trivia source request failed (%s): %s', params, e)
        return jsonify({'error': str(e)}), 500
    return jsonify(data)
