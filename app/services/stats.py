# app/services/stats.py
from __future__ import annotations

from flask import current_app
from sqlalchemy import case, func

from ..extensions import db
from ..models import Client, LearningExample, Transaction, TransactionStatus


def status_counts(client_id: int) -> dict:
    rows = (
        db.session.query(Transaction.status, func.count(Transaction.id))
        .filter(Transaction.client_id == client_id)
        .group_by(Transaction.status)
        .all()
    )
    by_status = {status: count for status, count in rows}
    uncategorized = (
        Transaction.query
        .filter(
            Transaction.client_id == client_id,
            Transaction.status.in_(TransactionStatus.CATEGORIZABLE),
            Transaction.ai_account_id.is_(None),
        )
        .count()
    )
    return {
        "clientId": client_id,
        "uncategorized": uncategorized,
        "pending": by_status.get(TransactionStatus.PENDING, 0),
        "approved": by_status.get(TransactionStatus.APPROVED, 0),
        "edited": by_status.get(TransactionStatus.EDITED, 0),
        "rejected": by_status.get(TransactionStatus.REJECTED, 0),
        "synced": by_status.get(TransactionStatus.SYNCED, 0),
        "error": by_status.get(TransactionStatus.ERROR, 0),
        "total": sum(by_status.values()),
    }


def _accuracy(client_ids) -> float | None:
    """Share of approvals where the AI's account was kept, or None with no approvals yet."""
    if not client_ids:
        return None
    total, correct = (
        db.session.query(
            func.count(LearningExample.id),
            func.coalesce(func.sum(case((LearningExample.was_correct == True, 1), else_=0)), 0),
        )
        .filter(LearningExample.client_id.in_(client_ids))
        .one()
    )
    if not total:
        return None
    return round(int(correct) / int(total), 4)


def client_stats(client: Client) -> dict:
    counts = status_counts(client.id)
    return {
        "id": client.id,
        "name": client.name,
        "qbRealmId": client.qb_realm_id,
        "isActive": client.is_active,
        "lastSyncAt": client.last_sync_at,
        "pendingTransactions": counts["pending"],
        "totalTransactions": counts["total"],
        "accuracy": _accuracy([client.id]),
    }


def dashboard_stats(user) -> dict:
    client_ids = [c.id for c in user.clients]
    pending = 0
    reviewed = 0
    if client_ids:
        pending = Transaction.query.filter(
            Transaction.client_id.in_(client_ids),
            Transaction.status == TransactionStatus.PENDING,
        ).count()
        reviewed = Transaction.query.filter(
            Transaction.client_id.in_(client_ids),
            Transaction.reviewed_at.isnot(None),
        ).count()

    seconds = reviewed * current_app.config["SECONDS_SAVED_PER_TRANSACTION"]
    return {
        "totalClients": len(client_ids),
        "pendingTransactions": pending,
        "timeSavedHours": round(seconds / 3600.0, 1),
        "overallAccuracy": _accuracy(client_ids),
    }
