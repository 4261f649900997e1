"""Tests for the dashboard pages and stats."""
from datetime import date, datetime

from app.extensions import db
from app.models import LearningExample, Transaction, TransactionStatus, User
from app.services.stats import dashboard_stats, status_counts


def test_index_shows_own_clients_only(logged_in):
    r = logged_in.get("/dashboard/")
    assert r.status_code == 200
    assert b"Acme Co" in r.data
    assert b"Globex" not in r.data


def test_index_banners(logged_in):
    r = logged_in.get("/dashboard/?success=client_connected")
    assert b"QuickBooks company connected." in r.data

    r = logged_in.get("/dashboard/?error=quickbooks_connection_failed")
    assert b"Could not connect to QuickBooks" in r.data


def test_connect_page(logged_in):
    r = logged_in.get("/dashboard/clients/connect")
    assert r.status_code == 200
    assert b"QuickBooks is not configured" in r.data


def test_review_page(logged_in, seeded):
    r = logged_in.get(f"/dashboard/clients/{seeded.client_id}/review")
    assert r.status_code == 200
    assert b"Printer paper" in r.data
    assert b"Team lunch" in r.data
    assert b"Meals and Entertainment" in r.data


def test_review_page_foreign_client_redirects(logged_in, seeded):
    r = logged_in.get(f"/dashboard/clients/{seeded.foreign_client_id}/review")
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/dashboard/")


def test_status_counts(ctx, seeded):
    db.session.get(Transaction, seeded.suggested_id).status = TransactionStatus.SYNCED
    db.session.commit()

    counts = status_counts(seeded.client_id)

    assert counts["pending"] == 1
    assert counts["synced"] == 1
    assert counts["uncategorized"] == 1
    assert counts["total"] == 2


def test_dashboard_stats(ctx, seeded):
    txn = db.session.get(Transaction, seeded.suggested_id)
    txn.status = TransactionStatus.APPROVED
    txn.reviewed_at = datetime.utcnow()
    for i, correct in enumerate([True, True, True, False]):
        synced = Transaction(
            client_id=seeded.client_id, qb_id=f"90{i}", txn_date=date(2024, 2, 1), amount_cents=100,
            status=TransactionStatus.SYNCED,
        )
        db.session.add(synced)
        db.session.flush()
        db.session.add(LearningExample(
            client_id=seeded.client_id, transaction_id=synced.id, amount_cents=100,
            correct_account_id="7", correct_account_name="Office Supplies", was_correct=correct,
        ))
    db.session.commit()
    ctx.config["SECONDS_SAVED_PER_TRANSACTION"] = 3600

    stats = dashboard_stats(db.session.get(User, seeded.owner_id))

    assert stats["totalClients"] == 1
    assert stats["pendingTransactions"] == 1
    assert stats["timeSavedHours"] == 1.0
    assert stats["overallAccuracy"] == 0.75


def test_dashboard_stats_without_history(ctx, seeded):
    stats = dashboard_stats(db.session.get(User, seeded.other_id))
    assert stats["overallAccuracy"] is None
    assert stats["timeSavedHours"] == 0.0
