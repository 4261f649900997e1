import secrets

from flask import Blueprint, current_app, jsonify, redirect, request, session, url_for
from flask_login import current_user, login_required

from ..extensions import db
from ..models import Client
from ..services.learning import delete_client_vectors
from ..services.quickbooks import (
    QuickBooksClient,
    QuickBooksError,
    build_authorization_url,
    exchange_code,
    is_quickbooks_configured,
    token_expiry,
)
from .transactions import owned_client

bp = Blueprint("quickbooks", __name__, url_prefix="/api/quickbooks")

STATE_KEY = "qb_oauth_state"


def _back_to_dashboard(**params):
    return redirect(url_for("dashboard.index", **params))


@bp.route("/connect", methods=["GET"])
@login_required
def connect():
    if not is_quickbooks_configured():
        return jsonify({"error": "QuickBooks is not configured"}), 503

    state = secrets.token_urlsafe(24)
    session[STATE_KEY] = state
    try:
        auth_url = build_authorization_url(state)
    except Exception as e:
        current_app.logger.exception("Error generating QuickBooks auth URL")
        return jsonify({"error": "Failed to generate auth URL", "details": str(e)}), 500
    return jsonify({"authUrl": auth_url})


@bp.route("/callback", methods=["GET"])
def callback():
    failed = {"error": "quickbooks_connection_failed"}

    error = request.args.get("error")
    if error:
        current_app.logger.warning("QuickBooks OAuth error: %s", error)
        return _back_to_dashboard(**failed)

    code = request.args.get("code")
    realm_id = request.args.get("realmId")
    state = request.args.get("state")
    expected_state = session.pop(STATE_KEY, None)

    if not code or not realm_id or not state:
        return _back_to_dashboard(**failed)
    if not current_user.is_authenticated or not expected_state or not secrets.compare_digest(state, expected_state):
        current_app.logger.warning("QuickBooks OAuth state mismatch for realm %s", realm_id)
        return _back_to_dashboard(**failed)

    environment = current_app.config.get("QB_ENVIRONMENT", "sandbox")
    try:
        tokens = exchange_code(code, realm_id)
        qb = QuickBooksClient(tokens["access_token"], realm_id, environment)
        company = qb.get_company_info()
    except QuickBooksError:
        current_app.logger.exception("QuickBooks callback failed for realm %s", realm_id)
        return _back_to_dashboard(**failed)

    company_name = company.get("CompanyName") or company.get("LegalName") or f"Company {realm_id}"

    client = Client.query.filter_by(qb_realm_id=realm_id).first()
    if client is not None and client.user_id != current_user.id:
        current_app.logger.warning("Realm %s is already connected by another user", realm_id)
        return _back_to_dashboard(**failed)

    if client is None:
        client = Client(user_id=current_user.id, qb_realm_id=realm_id)
        db.session.add(client)

    client.name = company_name
    client.qb_access_token = tokens["access_token"]
    client.qb_refresh_token = tokens["refresh_token"]
    client.qb_token_expiry = token_expiry(tokens["expires_in"])
    client.qb_environment = environment
    client.is_active = True
    db.session.commit()

    current_app.logger.info("Connected QuickBooks realm %s as client %s", realm_id, client.id)
    return _back_to_dashboard(success="client_connected")


@bp.route("/disconnect", methods=["POST"])
@login_required
def disconnect():
    body = request.get_json(silent=True) or {}
    client_id = body.get("clientId")
    if not client_id:
        return jsonify({"error": "Client ID is required"}), 400

    client = owned_client(client_id)
    if client is None:
        return jsonify({"error": "Client not found or unauthorized"}), 404

    delete_client_vectors(client)
    try:
        db.session.delete(client)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("Error disconnecting client %s", client_id)
        return jsonify({"error": "Failed to disconnect client", "details": str(e)}), 500

    return jsonify({"success": True})
