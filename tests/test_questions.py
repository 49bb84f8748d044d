import pytest

from trivia_app.models import TriviaQuestion, TriviaResult, db

BASE = '/api/trivia-questions-database'

QUESTION = {
    'question_category': 'Science',
    'question': 'What is H2O?',
    'correct_answer': 'Water',
}


@pytest.fixture
def question_id(app):
    with app.app_context():
        question = TriviaQuestion(created_by='A1', **QUESTION)
        db.session.add(question)
        db.session.commit()
        return question.id


@pytest.mark.parametrize('method,path', [
    ('post', BASE),
    ('get', BASE),
    ('get', f'{BASE}/1'),
    ('put', f'{BASE}/1'),
    ('delete', f'{BASE}/1'),
])
def test_anonymous_caller_is_rejected(client, method, path):
    resp = getattr(client, method)(path, json=QUESTION)
    assert resp.status_code == 401


def test_user_can_create_and_read(app, user_client):
    resp = user_client.post(BASE, json=QUESTION)
    assert resp.status_code == 200
    new_id = resp.get_json()['id']

    assert user_client.get(f'{BASE}/{new_id}').get_json() == dict(QUESTION, id=new_id)
    assert user_client.get(BASE).get_json() == [dict(QUESTION, id=new_id)]
    with app.app_context():
        assert db.session.get(TriviaQuestion, new_id).created_by == 'U1'
        # The question bank does not leak into personal results
        assert TriviaResult.query.count() == 0


def test_create_requires_question_and_answer(app, user_client):
    resp = user_client.post(BASE, json={'question_category': 'Science'})
    assert resp.status_code == 400
    assert resp.get_json()['missing'] == ['question', 'correct_answer']
    with app.app_context():
        assert TriviaQuestion.query.count() == 0


def test_get_missing_question_is_404(user_client):
    assert user_client.get(f'{BASE}/999').status_code == 404


def test_update_question(app, user_client, question_id):
    resp = user_client.put(f'{BASE}/{question_id}', json={'correct_answer': 'Dihydrogen monoxide'})
    assert resp.get_json() == {'success': True}
    body = user_client.get(f'{BASE}/{question_id}').get_json()
    assert body['correct_answer'] == 'Dihydrogen monoxide'
    assert body['question'] == QUESTION['question']


def test_update_validation(user_client, question_id):
    assert user_client.put(f'{BASE}/{question_id}', json={'unknown': 1}).status_code == 400
    assert user_client.put(f'{BASE}/{question_id}', json={'question': ''}).status_code == 400
    assert user_client.put(f'{BASE}/999', json=QUESTION).status_code == 404


def test_user_cannot_delete(user_client, question_id):
    resp = user_client.delete(f'{BASE}/{question_id}')
    assert resp.status_code == 403
    assert resp.get_json() == {'error': 'Forbidden'}
    assert user_client.get(f'{BASE}/{question_id}').status_code == 200


def test_admin_can_delete(admin_client, question_id):
    assert admin_client.delete(f'{BASE}/{question_id}').get_json() == {'success': True}
    assert admin_client.delete(f'{BASE}/{question_id}').status_code == 404
    assert admin_client.delete(f'{BASE}/424242').status_code == 404


def test_unknown_role_cannot_create(app, login):
    guest = login(app.test_client(), 'G1', role='guest')
    assert guest.post(BASE, json=QUESTION).status_code == 403
    assert guest.get(BASE).status_code == 200


def test_listing_is_cached_after_guard(app, user_client, question_id):
    first = user_client.get(BASE)
    assert first.headers['X-Cache'] == 'MISS'
    second = user_client.get(BASE)
    assert second.headers['X-Cache'] == 'HIT'
    assert second.get_json() == first.get_json()

    # A cached listing is never served to an anonymous caller
    assert app.test_client().get(BASE).status_code == 401


def test_listing_cache_is_invalidated_by_writes(user_client, admin_client, question_id):
    assert len(user_client.get(BASE).get_json()) == 1
    user_client.post(BASE, json=QUESTION)
    resp = user_client.get(BASE)
    assert resp.headers['X-Cache'] == 'MISS'
    assert len(resp.get_json()) == 2

    admin_client.delete(f'{BASE}/{question_id}')
    assert len(user_client.get(BASE).get_json()) == 1


def test_listing_cache_can_be_disabled(make_app, login):
    app = make_app(QUESTION_CACHE_SECONDS=0)
    client = login(app.test_client(), 'U1')
    assert 'X-Cache' not in client.get(BASE).headers
