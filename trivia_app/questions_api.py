from flask import Blueprint, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from .auth import login_required, role_required
from .errors import storage_error
from .limits import cached_response, invalidate_cache
from .models import TriviaQuestion, db

questions_bp = Blueprint('questions_api', __name__, url_prefix='/api/trivia-questions-database')

EDITABLE_FIELDS = ('question_category', 'question', 'correct_answer')
REQUIRED_FIELDS = ('question', 'correct_answer')


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def _blank(value):
    return value is None or (isinstance(value, str) and not value.strip())


@questions_bp.route('', methods=['POST'])
@role_required('admin', 'user')
def create_question(principal):
    data = _json_body()
    if data is None:
        return jsonify({'error': 'Expected a JSON object'}), 400
    missing = [f for f in REQUIRED_FIELDS if _blank(data.get(f))]
    if missing:
        return jsonify({'error': 'Missing required fields', 'missing': missing}), 400

    question = TriviaQuestion(
        question_category=data.get('question_category'),
        question=str(data['question']),
        correct_answer=str(data['correct_answer']),
        created_by=principal.id,
    )
    try:
        db.session.add(question)
        db.session.commit()
    except SQLAlchemyError as e:
        return storage_error(e, 'create trivia question')
    invalidate_cache()
    return jsonify({'success': True, 'id': question.id})


@questions_bp.route('', methods=['GET'])
@login_required
@cached_response
def list_questions(principal):
    try:
        rows = TriviaQuestion.query.order_by(TriviaQuestion.id).all()
    except SQLAlchemyError as e:
        return storage_error(e, 'list trivia questions')
    return jsonify([q.to_dict() for q in rows])


@questions_bp.route('/<int:question_id>', methods=['GET'])
@login_required
def get_question(question_id, principal):
    try:
        question = db.session.get(TriviaQuestion, question_id)
    except SQLAlchemyError as e:
        return storage_error(e, 'load trivia question')
    if question is None:
        return jsonify({'error': 'Question not found'}), 404
    return jsonify(question.to_dict())


@questions_bp.route('/<int:question_id>', methods=['PUT'])
@role_required('admin', 'user')
def update_question(question_id, principal):
    data = _json_body()
    if data is None:
        return jsonify({'error': 'Expected a JSON object'}), 400
    changes = {f: data[f] for f in EDITABLE_FIELDS if f in data}
    if not changes:
        return jsonify({'error': 'No updatable fields supplied'}), 400
    blank = [f for f in REQUIRED_FIELDS if f in changes and _blank(changes[f])]
    if blank:
        return jsonify({'error': 'Fields cannot be empty', 'fields': blank}), 400

    try:
        question = db.session.get(TriviaQuestion, question_id)
        if question is None:
            return jsonify({'error': 'Question not found'}), 404
        for name, value in changes.items():
            setattr(question, name, None if value is None else str(value))
        db.session.commit()
    except SQLAlchemyError as e:
        return storage_error(e, 'update trivia question')
    invalidate_cache()
    return jsonify({'success': True})


@questions_bp.route('/<int:question_id>', methods=['DELETE'])
@role_required('admin')
def delete_question(question_id, principal):
    try:
        deleted = TriviaQuestion.query.filter_by(id=question_id).delete()
        db.session.commit()
    except SQLAlchemyError as e:
        return storage_error(e, 'delete trivia question')
    if not deleted:
        return jsonify({'error': 'Question not found'}), 404
    invalidate_cache()
    return jsonify({'success': True})
