"""Tests for the Clerk user-sync webhook."""
import pytest
from svix.webhooks import WebhookVerificationError

from app.blueprints import webhooks
from app.extensions import db
from app.models import Client, User

HEADERS = {"svix-id": "msg_2abc", "svix-timestamp": "1710000000", "svix-signature": "v1,c2lnbmF0dXJl"}


@pytest.fixture()
def deliver(client, app, monkeypatch):
    app.config["CLERK_WEBHOOK_SECRET"] = "whsec_dGVzdA=="
    seen = {}

    class FakeWebhook:
        def __init__(self, secret):
            seen["secret"] = secret

        def verify(self, data, headers):
            seen["headers"] = headers
            if headers["svix-signature"] == "v1,bad":
                raise WebhookVerificationError("No matching signature found")
            return seen["event"]

    monkeypatch.setattr(webhooks, "Webhook", FakeWebhook)

    def send(event, headers=HEADERS):
        seen["event"] = event
        return client.post("/api/webhooks/clerk", json=event, headers=headers)

    send.seen = seen
    return send


def _user_event(kind, clerk_id="user_2x", email="Jane@Example.com", first="Jane", last="Doe"):
    return {
        "type": kind,
        "data": {
            "id": clerk_id,
            "email_addresses": [{"email_address": email}] if email else [],
            "first_name": first,
            "last_name": last,
        },
    }


def test_missing_headers(client):
    r = client.post("/api/webhooks/clerk", json={"type": "user.created"})
    assert r.status_code == 400
    assert r.json == {"error": "Missing svix headers"}


def test_invalid_signature(deliver):
    r = deliver(_user_event("user.created"), headers=dict(HEADERS, **{"svix-signature": "v1,bad"}))
    assert r.status_code == 400
    assert r.json == {"error": "Invalid signature"}


def test_user_created(deliver, app):
    r = deliver(_user_event("user.created"))

    assert r.status_code == 200
    assert r.json == {"received": True}
    assert deliver.seen["secret"] == "whsec_dGVzdA=="
    assert deliver.seen["headers"]["svix-id"] == "msg_2abc"
    with app.app_context():
        user = User.query.filter_by(clerk_id="user_2x").one()
        assert user.email == "jane@example.com"
        assert user.name == "Jane Doe"


def test_user_created_without_name(deliver, app):
    deliver(_user_event("user.created", first=None, last=None))
    with app.app_context():
        assert User.query.filter_by(clerk_id="user_2x").one().name == "User"


def test_user_created_links_local_account(deliver, app, seeded):
    deliver(_user_event("user.created", clerk_id="user_admin", email="admin@example.com"))
    with app.app_context():
        assert User.query.filter_by(email="admin@example.com").one().clerk_id == "user_admin"
        assert User.query.count() == 2


def test_user_updated(deliver, app):
    deliver(_user_event("user.created"))
    deliver(_user_event("user.updated", email="jane.doe@example.com", last="Smith"))

    with app.app_context():
        user = User.query.filter_by(clerk_id="user_2x").one()
        assert user.email == "jane.doe@example.com"
        assert user.name == "Jane Smith"


def test_user_deleted_cascades(deliver, app, seeded):
    with app.app_context():
        db.session.get(User, seeded.owner_id).clerk_id = "user_owner"
        db.session.commit()

    r = deliver({"type": "user.deleted", "data": {"id": "user_owner", "deleted": True}})

    assert r.json == {"received": True}
    with app.app_context():
        assert db.session.get(User, seeded.owner_id) is None
        assert db.session.get(Client, seeded.client_id) is None
        assert db.session.get(Client, seeded.foreign_client_id) is not None


def test_event_failures_are_acknowledged(deliver, app, seeded, monkeypatch):
    def broken(data):
        raise RuntimeError("database is locked")

    monkeypatch.setitem(webhooks.HANDLERS, "user.created", broken)
    r = deliver(_user_event("user.created"))

    assert r.status_code == 200
    assert r.json == {"received": True}


def test_event_without_email_is_skipped(deliver, app):
    r = deliver(_user_event("user.created", email=None))
    assert r.json == {"received": True}
    with app.app_context():
        assert User.query.count() == 0


def test_unknown_event_is_acknowledged(deliver):
    r = deliver({"type": "session.created", "data": {}})
    assert r.json == {"received": True}
