# app/blueprints/dashboard.py
from flask import Blueprint, flash, redirect, render_template, request, url_for
from flask_login import current_user, login_required

from ..forms import CSRFOnlyForm
from ..models import Client, QBAccount, QBClass, Transaction, TransactionStatus
from ..services.ai_categorizer import confidence_level
from ..services.quickbooks import is_quickbooks_configured
from ..services.stats import client_stats, dashboard_stats, status_counts

bp = Blueprint("dashboard", __name__)

BANNERS = {
    "client_connected": "QuickBooks company connected.",
    "quickbooks_connection_failed": "Could not connect to QuickBooks. Please try again.",
}


@bp.route("/")
@login_required
def index():
    success = request.args.get("success")
    error = request.args.get("error")
    if success:
        flash(BANNERS.get(success, success), "success")
    if error:
        flash(BANNERS.get(error, error), "error")

    return render_template(
        "dashboard/index.html",
        stats=dashboard_stats(current_user),
        clients=[client_stats(c) for c in current_user.clients],
        form=CSRFOnlyForm(),
    )


@bp.route("/clients/connect")
@login_required
def connect():
    return render_template(
        "dashboard/connect.html",
        qb_configured=is_quickbooks_configured(),
        form=CSRFOnlyForm(),
    )


@bp.route("/clients/<int:client_id>/review")
@login_required
def review(client_id):
    client = Client.query.filter_by(id=client_id, user_id=current_user.id).first()
    if client is None:
        flash("Client not found.", "error")
        return redirect(url_for("dashboard.index"))

    status = (request.args.get("status") or TransactionStatus.PENDING).upper()
    if status not in TransactionStatus.ALL:
        status = TransactionStatus.PENDING

    transactions = (
        Transaction.query
        .filter(Transaction.client_id == client.id, Transaction.status == status)
        .order_by(Transaction.txn_date.desc(), Transaction.id.desc())
        .all()
    )
    accounts = (
        QBAccount.query.filter_by(client_id=client.id, active=True)
        .order_by(QBAccount.fully_qualified_name, QBAccount.name)
        .all()
    )
    classes = QBClass.query.filter_by(client_id=client.id, active=True).order_by(QBClass.name).all()

    return render_template(
        "dashboard/review.html",
        client=client,
        status=status,
        statuses=TransactionStatus.ALL,
        transactions=transactions,
        accounts=accounts,
        classes=classes,
        counts=status_counts(client.id),
        confidence_level=confidence_level,
        form=CSRFOnlyForm(),
    )
