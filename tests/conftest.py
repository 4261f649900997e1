from datetime import date, datetime, timedelta
from types import SimpleNamespace

import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from app.extensions import db
from app.models import Client, QBAccount, QBClass, Transaction, TransactionStatus, User

EXTERNAL_ENV = (
    "OPENAI_API_KEY", "OPENAI_API_BASE", "PINECONE_API_KEY",
    "QB_CLIENT_ID", "QB_CLIENT_SECRET", "QB_REDIRECT_URI", "CLERK_WEBHOOK_SECRET",
)


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    for k in EXTERNAL_ENV:
        monkeypatch.delenv(k, raising=False)

    app = create_app({"TESTING": True, "WTF_CSRF_ENABLED": False})
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def ctx(app):
    with app.app_context():
        yield app


def make_client(user_id, realm_id, name):
    return Client(
        user_id=user_id,
        name=name,
        qb_realm_id=realm_id,
        qb_access_token="access-token",
        qb_refresh_token="refresh-token",
        qb_token_expiry=datetime.utcnow() + timedelta(hours=1),
        qb_environment="sandbox",
    )


@pytest.fixture()
def seeded(app):
    """Two bookkeepers, one client each, a small chart of accounts and a review queue."""
    with app.app_context():
        owner = User(email="admin@example.com", name="Admin", password_hash=generate_password_hash("pw"))
        other = User(email="other@example.com", name="Other", password_hash=generate_password_hash("pw"))
        db.session.add_all([owner, other])
        db.session.flush()

        acme = make_client(owner.id, "9130001", "Acme Co")
        globex = make_client(other.id, "9130002", "Globex")
        db.session.add_all([acme, globex])
        db.session.flush()

        db.session.add_all([
            QBAccount(client_id=acme.id, qb_id="7", name="Office Supplies", account_type="Expense"),
            QBAccount(client_id=acme.id, qb_id="13", name="Meals and Entertainment", account_type="Expense"),
            QBAccount(client_id=acme.id, qb_id="31", name="Uncategorized Expense", account_type="Expense"),
            QBClass(client_id=acme.id, qb_id="5000000000000000001", name="Marketing"),
        ])

        suggested = Transaction(
            client_id=acme.id, qb_id="101", txn_date=date(2024, 3, 4), amount_cents=4250,
            description="Printer paper", vendor="Staples",
            ai_account_id="7", ai_account_name="Office Supplies", ai_confidence_score=0.93,
            ai_reasoning_notes="Office supply vendor", status=TransactionStatus.PENDING,
        )
        uncategorized = Transaction(
            client_id=acme.id, qb_id="102", txn_date=date(2024, 3, 5), amount_cents=1899,
            description="Team lunch", vendor="Chipotle", status=TransactionStatus.PENDING,
        )
        foreign = Transaction(
            client_id=globex.id, qb_id="201", txn_date=date(2024, 3, 6), amount_cents=500,
            description="Coffee", vendor="Starbucks", status=TransactionStatus.PENDING,
        )
        db.session.add_all([suggested, uncategorized, foreign])
        db.session.commit()

        return SimpleNamespace(
            owner_id=owner.id,
            other_id=other.id,
            client_id=acme.id,
            foreign_client_id=globex.id,
            suggested_id=suggested.id,
            uncategorized_id=uncategorized.id,
            foreign_txn_id=foreign.id,
        )


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def logged_in(client, seeded):
    r = client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"})
    assert r.status_code == 302
    return client
