import click
from app import create_app
from app.extensions import db
from app.models import User
from werkzeug.security import generate_password_hash

app = create_app()

@app.cli.command("create-user")
@click.argument("email")
@click.password_option()
@click.option("--name", default=None, help="Display name.")
def create_user(email, password, name):
    """Create a local login, or reset the password of an existing one."""
    email = email.strip().lower()
    with app.app_context():
        user = User.query.filter_by(email=email).first()
        if user is None:
            user = User(email=email, name=name or email.split("@")[0])
            db.session.add(user)
            click.echo(f"Created {email}")
        else:
            click.echo(f"Updated password for {email}")
        user.password_hash = generate_password_hash(password)
        db.session.commit()
