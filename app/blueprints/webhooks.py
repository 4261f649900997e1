from flask import Blueprint, current_app, jsonify, request
from svix.webhooks import Webhook, WebhookVerificationError

from ..extensions import csrf, db
from ..models import User

bp = Blueprint("webhooks", __name__, url_prefix="/api/webhooks")
csrf.exempt(bp)

SVIX_HEADERS = ("svix-id", "svix-timestamp", "svix-signature")


def _primary_email(data):
    addresses = data.get("email_addresses") or []
    if not addresses:
        return None
    email = (addresses[0] or {}).get("email_address")
    return email.strip().lower() if email else None


def _display_name(data):
    name = f"{data.get('first_name') or ''} {data.get('last_name') or ''}".strip()
    return name or "User"


def _upsert_user(data):
    clerk_id = data.get("id")
    email = _primary_email(data)
    if not clerk_id or not email:
        current_app.logger.warning("Clerk user event without id or email: %s", clerk_id)
        return None

    user = User.query.filter_by(clerk_id=clerk_id).first()
    if user is None:
        # a local account with the same email is linked rather than duplicated
        user = User.query.filter_by(email=email).first() or User()
        user.clerk_id = clerk_id
        db.session.add(user)
    user.email = email
    user.name = _display_name(data)
    db.session.commit()
    return user


def _delete_user(data):
    user = User.query.filter_by(clerk_id=data.get("id")).first()
    if user is None:
        return
    db.session.delete(user)
    db.session.commit()


HANDLERS = {
    "user.created": _upsert_user,
    "user.updated": _upsert_user,
    "user.deleted": _delete_user,
}


@bp.route("/clerk", methods=["POST"])
def clerk():
    headers = {name: request.headers.get(name) for name in SVIX_HEADERS}
    if not all(headers.values()):
        return jsonify({"error": "Missing svix headers"}), 400

    secret = current_app.config.get("CLERK_WEBHOOK_SECRET")
    if not secret:
        current_app.logger.error("CLERK_WEBHOOK_SECRET is not set")
        return jsonify({"error": "Webhook secret not configured"}), 500

    try:
        event = Webhook(secret).verify(request.get_data(), headers)
    except WebhookVerificationError as e:
        current_app.logger.warning("Error verifying webhook: %s", e)
        return jsonify({"error": "Invalid signature"}), 400

    event_type = event.get("type")
    handler = HANDLERS.get(event_type)
    if handler is None:
        current_app.logger.info("Ignoring Clerk event %s", event_type)
        return jsonify({"received": True})

    try:
        handler(event.get("data") or {})
        current_app.logger.info("Handled Clerk event %s", event_type)
    except Exception:
        # always 2xx once verified; Clerk redelivers otherwise
        db.session.rollback()
        current_app.logger.exception("Error handling Clerk event %s", event_type)

    return jsonify({"received": True})
