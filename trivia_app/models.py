import secrets
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

USER_TYPES = ('user', 'admin')
PROVIDERS = ('google', 'github', 'linkedin')


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.String(255), primary_key=True)
    user_type = db.Column(db.String(50), nullable=False, default='user')
    display_name = db.Column(db.String(255))
    email = db.Column(db.String(255))
    provider = db.Column(db.String(50))
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    last_login_at = db.Column(db.DateTime)

    def to_dict(self):
        return {
            'id': self.id,
            'user_type': self.user_type,
            'displayName': self.display_name,
            'email': self.email,
            'provider': self.provider,
        }


class TriviaResult(db.Model):
    """One answered question in a user's personal history."""
    __tablename__ = 'trivia_results'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    # No FK constraint: results outlive their user row in ephemeral mode
    user_id = db.Column(db.String(255), index=True)
    question_difficulty = db.Column(db.String(40))
    question_category = db.Column(db.String(100))
    question = db.Column(db.Text, nullable=False)
    correct_answer = db.Column(db.String(255), nullable=False)
    user_answer = db.Column(db.String(255))
    is_correct = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'question_difficulty': self.question_difficulty,
            'question_category': self.question_category,
            'question': self.question,
            'correct_answer': self.correct_answer,
            'user_answer': self.user_answer,
            'is_correct': bool(self.is_correct),
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class TriviaQuestion(db.Model):
    """Question bank entry, managed through the CRUD API."""
    __tablename__ = 'trivia_questions'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    question_category = db.Column(db.String(100))
    question = db.Column(db.Text, nullable=False)
    correct_answer = db.Column(db.String(255), nullable=False)
    created_by = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'question_category': self.question_category,
            'question': self.question,
            'correct_answer': self.correct_answer,
        }


def new_session_id():
    return secrets.token_urlsafe(32)


class LoginSession(db.Model):
    """Server-side record of one signed-in browser.

    The session cookie only carries ``id``; deleting the row ends the login.
    """
    __tablename__ = 'login_sessions'

    id = db.Column(db.String(64), primary_key=True, default=new_session_id)
    user_id = db.Column(db.String(255), nullable=False, index=True)
    display_name = db.Column(db.String(255))
    provider = db.Column(db.String(50))
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'provider': self.provider,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
