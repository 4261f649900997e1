# app/extensions.py
from __future__ import annotations

from flask import jsonify, redirect, request, url_for
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_wtf.csrf import CSRFProtect

# Instantiate extensions (no app bound yet)
db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
csrf = CSRFProtect()

login_manager.login_view = "auth.login"
login_manager.login_message = "Please log in."
login_manager.login_message_category = "info"


@login_manager.unauthorized_handler
def _unauthorized():
    # API callers get JSON, browsers get the login page
    if request.path.startswith("/api/"):
        return jsonify({"error": "Unauthorized"}), 401
    return redirect(url_for(login_manager.login_view, next=request.path))


def init_app(app):
    """
    Bind extensions to the Flask app.
    Call this once from your app factory (create_app).
    """
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)   # CSRF on all POST/PUT/PATCH/DELETE routes; JSON callers send X-CSRFToken

    # Defer user loader import to avoid circular imports
    from .models import User

    @login_manager.user_loader
    def load_user(user_id: str):
        return db.session.get(User, int(user_id))
