import click
from flask import Flask
from flask.cli import with_appcontext
from sqlalchemy import func

from .models import USER_TYPES, LoginSession, TriviaQuestion, TriviaResult, User, db


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create any missing tables."""
    db.create_all()
    click.echo('Database initialized.')


@click.command('set-role')
@with_appcontext
@click.argument('user_id')
@click.argument('role', type=click.Choice(USER_TYPES))
def set_role_command(user_id, role):
    """Change a user's role; signed-in sessions see it on their next request."""
    user = db.session.get(User, user_id)
    if user is None:
        raise click.ClickException(f'No user with id {user_id}')
    user.user_type = role
    db.session.commit()
    click.echo(f'{user_id} ({user.display_name}) is now {role}.')


@click.command('inspect-db')
@with_appcontext
@click.option('--limit', default=5, show_default=True, help='Rows to show per table.')
def inspect_db_command(limit):
    """Print row counts and the newest rows of each table."""
    tables = (
        ('users', User, User.created_at),
        ('trivia_results', TriviaResult, TriviaResult.created_at),
        ('trivia_questions', TriviaQuestion, TriviaQuestion.id),
        ('login_sessions', LoginSession, LoginSession.created_at),
    )
    for name, model, order in tables:
        count = db.session.query(func.count()).select_from(model).scalar()
        click.echo(f'\n-- {name} ({count} rows)')
        rows = model.query.order_by(order.desc()).limit(limit).all()
        for row in rows:
            click.echo(row.to_dict())
        if not rows:
            click.echo('(no rows)')


def init_app(app: Flask):
    app.cli.add_command(init_db_command)
    app.cli.add_command(set_role_command)
    app.cli.add_command(inspect_db_command)
