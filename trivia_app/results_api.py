from flask import Blueprint, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from .auth import login_required
from .errors import storage_error
from .models import TriviaResult, db

results_bp = Blueprint('results_api', __name__)

# Fields a client must send for each save flow
RESULT_FIELDS = ('question_difficulty', 'question_category', 'question',
                 'correct_answer', 'user_answer', 'is_correct')
ANSWER_FIELDS = ('question', 'correct_answer', 'user_answer')

TEXT_FIELDS = ('question_difficulty', 'question_category', 'question',
               'correct_answer', 'user_answer')


def missing_fields(data, required):
    missing = []
    for name in required:
        value = data.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(name)
    return missing


def _text(value):
    return None if value is None else str(value)


def save_result(principal, required):
    """Validate the JSON body against ``required`` and store it for ``principal``."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'error': 'Expected a JSON object'}), 400

    missing = missing_fields(data, required)
    if missing:
        return jsonify({'error': 'Missing required fields', 'missing': missing}), 400

    is_correct = data.get('is_correct')
    if is_correct is None:
        is_correct = str(data['user_answer']) == str(data['correct_answer'])
    elif not isinstance(is_correct, bool):
        return jsonify({'error': 'is_correct must be a boolean'}), 400

    fields = {name: _text(data.get(name)) for name in TEXT_FIELDS}
    # user_id always comes from the session, never from the body
    result = TriviaResult(user_id=principal.id, is_correct=is_correct, **fields)
    try:
        db.session.add(result)
        db.session.commit()
    except SQLAlchemyError as e:
        return storage_error(e, 'save trivia result')
    return jsonify({'success': True, 'id': result.id})


@results_bp.route('/save-trivia-result', methods=['POST'])
@login_required
def save_trivia_result(principal):
    return save_result(principal, RESULT_FIELDS)


@results_bp.route('/save-trivia-answer', methods=['POST'])
@login_required
def save_trivia_answer(principal):
    return save_result(principal, ANSWER_FIELDS)


@results_bp.route('/api/my-trivia-results', methods=['GET'])
@login_required
def my_trivia_results(principal):
    try:
        rows = (TriviaResult.query
                .filter_by(user_id=principal.id)
                .order_by(TriviaResult.created_at.desc(), TriviaResult.id.desc())
                .all())
    except SQLAlchemyError as e:
        return storage_error(e, 'load trivia results')
    return jsonify([r.to_dict() for r in rows])


@results_bp.route('/api/my-trivia-results/<int:result_id>', methods=['DELETE'])
@login_required
def delete_my_trivia_result(result_id, principal):
    try:
        # Ownership is part of the match so other users' rows look absent
        deleted = TriviaResult.query.filter_by(id=result_id, user_id=principal.id).delete()
        db.session.commit()
    except SQLAlchemyError as e:
        return storage_error(e, 'delete trivia result')
    if not deleted:
        return jsonify({'error': 'Result not found or not authorized'}), 404
    return jsonify({'success': True, 'message': 'Result deleted successfully'})
