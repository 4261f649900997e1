from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from ..extensions import db
from ..models import Client, Transaction, TransactionStatus
from ..services.ai_categorizer import categorize_pending
from ..services.qb_sync import sync_categorizations_to_qb, sync_transactions_for_client
from ..services.quickbooks import QuickBooksAuthError, QuickBooksError
from ..services.review import ReviewError, approve_transaction, reject_transaction
from ..services.stats import status_counts
from ..utils import parse_date

bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


def _as_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _transaction_ids(body):
    """
    The optional transactionIds filter as a list of ints, or None when absent.
    Raises ValueError on anything else; an empty list means "none of them".
    """
    values = body.get("transactionIds")
    if values is None:
        return None
    if not isinstance(values, list):
        raise ValueError("transactionIds must be a list of integers")
    ids = [_as_int(v) for v in values]
    if any(i is None or isinstance(v, bool) for i, v in zip(ids, values)):
        raise ValueError("transactionIds must be a list of integers")
    return ids


def owned_client(client_id):
    """The current user's client with this id, or None."""
    client_id = _as_int(client_id)
    if client_id is None:
        return None
    return Client.query.filter_by(id=client_id, user_id=current_user.id).first()


def _client_from_body(body):
    client_id = body.get("clientId")
    if not client_id:
        return None, (jsonify({"error": "Client ID is required"}), 400)
    client = owned_client(client_id)
    if client is None:
        return None, (jsonify({"error": "Client not found or unauthorized"}), 404)
    return client, None


def _failure(message, e, status=500):
    return jsonify({"error": message, "details": str(e)}), status


@bp.route("", methods=["GET"])
@login_required
def list_transactions():
    client = owned_client(request.args.get("clientId"))
    if client is None:
        return jsonify({"error": "Client not found or unauthorized"}), 404

    query = Transaction.query.filter(Transaction.client_id == client.id)
    status = (request.args.get("status") or "").upper()
    if status:
        if status not in TransactionStatus.ALL:
            return jsonify({"error": f"Unknown status: {status}"}), 400
        query = query.filter(Transaction.status == status)

    items = query.order_by(Transaction.txn_date.desc(), Transaction.id.desc()).all()
    return jsonify({"transactions": [t.to_dict() for t in items], "total": len(items)})


@bp.route("/sync", methods=["POST"])
@login_required
def sync():
    body = request.get_json(silent=True) or {}
    client, error = _client_from_body(body)
    if error:
        return error

    try:
        start_date = parse_date(body.get("startDate"))
        end_date = parse_date(body.get("endDate"))
    except (ValueError, OverflowError) as e:
        return _failure("Invalid date", e, 400)

    try:
        result = sync_transactions_for_client(client, start_date, end_date)
    except QuickBooksAuthError as e:
        current_app.logger.warning("QuickBooks auth failed for client %s: %s", client.id, e)
        return _failure("QuickBooks authorization failed. Reconnect this client.", e, 401)
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("Error syncing transactions for client %s", client.id)
        return _failure("Failed to sync transactions", e)

    return jsonify(result)


@bp.route("/categorize", methods=["POST"])
@login_required
def categorize():
    body = request.get_json(silent=True) or {}
    client, error = _client_from_body(body)
    if error:
        return error

    try:
        transaction_ids = _transaction_ids(body)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    try:
        results, errors = categorize_pending(client, transaction_ids)
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("Error in categorize endpoint")
        return _failure("Failed to categorize transactions", e)

    if not results and not errors:
        return jsonify({"success": True, "message": "No transactions to categorize", "categorized": 0})

    payload = {
        "success": True,
        "message": f"Categorized {len(results)} transactions",
        "categorized": len(results),
        "failed": len(errors),
        "results": results,
    }
    if errors:
        payload["errors"] = errors
    return jsonify(payload)


@bp.route("/categorize", methods=["GET"])
@login_required
def categorize_status():
    client_id = request.args.get("clientId")
    if not client_id:
        return jsonify({"error": "Client ID is required"}), 400
    client = owned_client(client_id)
    if client is None:
        return jsonify({"error": "Client not found or unauthorized"}), 404

    return jsonify(status_counts(client.id))


@bp.route("/approve", methods=["POST"])
@login_required
def approve():
    body = request.get_json(silent=True) or {}
    transaction_id = _as_int(body.get("transactionId"))
    if transaction_id is None:
        return jsonify({"error": "Transaction ID is required"}), 400
    approved = body.get("approved")
    if not isinstance(approved, bool):
        return jsonify({"error": "approved must be true or false"}), 400

    txn = db.session.get(Transaction, transaction_id)
    if txn is None:
        return jsonify({"error": "Transaction not found"}), 404
    if txn.client.user_id != current_user.id:
        return jsonify({"error": "Unauthorized"}), 403

    try:
        if approved:
            approve_transaction(txn, body.get("accountId"), body.get("classId"))
            message = "Transaction approved"
        else:
            reject_transaction(txn)
            message = "Transaction rejected"
    except ReviewError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 409
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("Error approving transaction %s", transaction_id)
        return _failure("Failed to process transaction", e)

    return jsonify({"success": True, "message": message, "transaction": txn.to_dict()})


@bp.route("/sync-to-qb", methods=["POST"])
@login_required
def sync_to_qb():
    body = request.get_json(silent=True) or {}
    client, error = _client_from_body(body)
    if error:
        return error

    try:
        transaction_ids = _transaction_ids(body)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    try:
        outcome = sync_categorizations_to_qb(client, transaction_ids)
    except QuickBooksAuthError as e:
        current_app.logger.warning("QuickBooks auth failed for client %s: %s", client.id, e)
        return _failure("QuickBooks authorization failed. Reconnect this client.", e, 401)
    except QuickBooksError as e:
        db.session.rollback()
        current_app.logger.exception("Error syncing to QuickBooks for client %s", client.id)
        return _failure("Failed to sync to QuickBooks", e)

    message = f"Successfully synced {outcome['synced']} transactions to QuickBooks"
    if outcome["errors"]:
        message += f", {outcome['errors']} errors"
    return jsonify({"success": True, **outcome, "message": message})
