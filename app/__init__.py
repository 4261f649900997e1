# app/__init__.py
from __future__ import annotations
from flask import Flask, g, jsonify, redirect, request, url_for
from werkzeug.exceptions import HTTPException
from .extensions import init_app as init_extensions
from .config import Config


def create_app(overrides: dict | None = None) -> Flask:
    """Application factory function."""
    app = Flask(__name__)

    # Load configuration
    app.config.from_object(Config())
    if overrides:
        app.config.update(overrides)

    # Bind extensions (DB, Migrate, LoginManager, CSRF, etc.)
    init_extensions(app)

    # --- START: Register CLI Commands ---
    from .extensions import db
    from .models import Client, User
    from werkzeug.security import generate_password_hash
    import click

    @app.cli.command("seed")
    def seed_command():
        """Seeds the database with a default admin user."""
        if User.query.filter_by(email="admin@example.com").first():
            click.echo("Admin user already exists. Skipping seed.")
            return

        admin_user = User(
            email="admin@example.com",
            name="Admin",
            password_hash=generate_password_hash("admin"),
        )
        db.session.add(admin_user)
        db.session.commit()
        click.echo("Successfully seeded admin user (admin@example.com/admin).")

    @app.cli.command("sync-client")
    @click.argument("client_id", type=int)
    @click.option("--start-date", default=None, help="YYYY-MM-DD, defaults to the lookback window.")
    @click.option("--end-date", default=None, help="YYYY-MM-DD, defaults to today.")
    def sync_client_command(client_id, start_date, end_date):
        """Pulls uncategorized transactions for one client from QuickBooks."""
        from .services.qb_sync import sync_transactions_for_client
        from .services.quickbooks import QuickBooksError
        from .utils import parse_date

        client = db.session.get(Client, client_id)
        if client is None:
            raise click.ClickException(f"Client {client_id} not found.")

        try:
            result = sync_transactions_for_client(client, parse_date(start_date), parse_date(end_date))
        except QuickBooksError as e:
            raise click.ClickException(str(e)) from e

        click.echo(result["message"])
        for err in result.get("errors") or []:
            click.echo(f"  ! {err}")

    @app.cli.command("push-learning")
    @click.option("--limit", type=int, default=None, help="Maximum number of examples to push.")
    def push_learning_command(limit):
        """Retries the Pinecone upsert for learning examples that never made it."""
        from .services.learning import is_index_configured, push_unsynced_examples

        if not is_index_configured():
            raise click.ClickException("Pinecone is not configured. Set PINECONE_API_KEY.")

        outcome = push_unsynced_examples(limit)
        click.echo(f"Pushed {outcome['pushed']} learning examples, {outcome['failed']} failed, {outcome['skipped']} skipped.")
    # --- END: Register CLI Commands ---

    # Register blueprints
    from .blueprints.dashboard import bp as dashboard_bp
    from .blueprints.auth import bp as auth_bp
    from .blueprints.quickbooks import bp as quickbooks_bp
    from .blueprints.transactions import bp as transactions_bp
    from .blueprints.webhooks import bp as webhooks_bp

    app.register_blueprint(dashboard_bp, url_prefix="/dashboard")
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(quickbooks_bp)
    app.register_blueprint(transactions_bp)
    app.register_blueprint(webhooks_bp)

    # Root redirect
    @app.route("/")
    def _root():
        return redirect(url_for("dashboard.index"))

    @app.errorhandler(404)
    def _not_found(e):
        if request.path.startswith("/api/"):
            return jsonify({"error": "Not found"}), 404
        return e

    @app.errorhandler(500)
    def _server_error(e):
        db.session.rollback()
        app.logger.error("Unhandled error on %s: %s", request.path, getattr(e, "original_exception", e))
        if request.path.startswith("/api/"):
            return jsonify({"error": "Internal server error", "details": str(getattr(e, "original_exception", e))}), 500
        if isinstance(e, HTTPException):
            return e
        return "Internal Server Error", 500

    @app.before_request
    def before_request():
        from .services.ai_categorizer import is_ai_configured
        g.ai_configured = is_ai_configured()

    return app
