"""Tests for the QuickBooks OAuth connect/callback/disconnect routes."""
from app.blueprints import quickbooks as qb_routes
from app.extensions import db
from app.models import Client, Transaction


class FakeCompanyClient:
    def __init__(self, access_token, realm_id, environment="sandbox", session=None):
        self.access_token = access_token
        self.realm_id = realm_id

    def get_company_info(self):
        return {"CompanyName": "Initech LLC"}


def _configure(app):
    app.config.update(QB_CLIENT_ID="cid", QB_CLIENT_SECRET="secret", QB_REDIRECT_URI="http://localhost/api/quickbooks/callback")


def _fake_exchange(code, realm_id):
    return {"access_token": f"access-{code}", "refresh_token": f"refresh-{code}", "expires_in": 3600}


def test_connect_requires_login(client):
    assert client.get("/api/quickbooks/connect").status_code == 401


def test_connect_unconfigured(logged_in):
    assert logged_in.get("/api/quickbooks/connect").status_code == 503


def test_connect_returns_auth_url_and_remembers_state(logged_in, app, monkeypatch):
    _configure(app)
    monkeypatch.setattr(qb_routes, "build_authorization_url", lambda state: f"https://appcenter.intuit.com/connect/oauth2?state={state}")

    r = logged_in.get("/api/quickbooks/connect")

    assert r.status_code == 200
    with logged_in.session_transaction() as sess:
        state = sess[qb_routes.STATE_KEY]
    assert r.json["authUrl"].endswith(f"state={state}")


def test_callback_oauth_error_redirects(logged_in):
    r = logged_in.get("/api/quickbooks/callback?error=access_denied")
    assert r.status_code == 302
    assert "error=quickbooks_connection_failed" in r.headers["Location"]


def test_callback_state_mismatch(logged_in):
    with logged_in.session_transaction() as sess:
        sess[qb_routes.STATE_KEY] = "expected"

    r = logged_in.get("/api/quickbooks/callback?code=abc&realmId=9130099&state=forged")

    assert "error=quickbooks_connection_failed" in r.headers["Location"]


def test_callback_missing_params(logged_in):
    with logged_in.session_transaction() as sess:
        sess[qb_routes.STATE_KEY] = "expected"
    r = logged_in.get("/api/quickbooks/callback?state=expected")
    assert "error=quickbooks_connection_failed" in r.headers["Location"]


def test_callback_creates_client(logged_in, seeded, app, monkeypatch):
    monkeypatch.setattr(qb_routes, "exchange_code", _fake_exchange)
    monkeypatch.setattr(qb_routes, "QuickBooksClient", FakeCompanyClient)
    with logged_in.session_transaction() as sess:
        sess[qb_routes.STATE_KEY] = "s3cret"

    r = logged_in.get("/api/quickbooks/callback?code=abc&realmId=9130099&state=s3cret")

    assert r.status_code == 302
    assert "success=client_connected" in r.headers["Location"]
    with app.app_context():
        created = Client.query.filter_by(qb_realm_id="9130099").one()
        assert created.user_id == seeded.owner_id
        assert created.name == "Initech LLC"
        assert created.qb_access_token == "access-abc"

    # the state is single use
    r = logged_in.get("/api/quickbooks/callback?code=abc&realmId=9130099&state=s3cret")
    assert "error=quickbooks_connection_failed" in r.headers["Location"]


def test_callback_reconnect_updates_tokens(logged_in, seeded, app, monkeypatch):
    monkeypatch.setattr(qb_routes, "exchange_code", _fake_exchange)
    monkeypatch.setattr(qb_routes, "QuickBooksClient", FakeCompanyClient)
    with app.app_context():
        db.session.get(Client, seeded.client_id).is_active = False
        db.session.commit()
    with logged_in.session_transaction() as sess:
        sess[qb_routes.STATE_KEY] = "s3cret"

    r = logged_in.get("/api/quickbooks/callback?code=xyz&realmId=9130001&state=s3cret")

    assert "success=client_connected" in r.headers["Location"]
    with app.app_context():
        assert Client.query.filter_by(qb_realm_id="9130001").count() == 1
        reconnected = db.session.get(Client, seeded.client_id)
        assert reconnected.qb_refresh_token == "refresh-xyz"
        assert reconnected.is_active is True


def test_callback_refuses_realm_owned_by_someone_else(logged_in, seeded, app, monkeypatch):
    monkeypatch.setattr(qb_routes, "exchange_code", _fake_exchange)
    monkeypatch.setattr(qb_routes, "QuickBooksClient", FakeCompanyClient)
    with logged_in.session_transaction() as sess:
        sess[qb_routes.STATE_KEY] = "s3cret"

    r = logged_in.get("/api/quickbooks/callback?code=xyz&realmId=9130002&state=s3cret")

    assert "error=quickbooks_connection_failed" in r.headers["Location"]
    with app.app_context():
        assert db.session.get(Client, seeded.foreign_client_id).qb_access_token == "access-token"


def test_disconnect(logged_in, seeded, app, monkeypatch):
    removed = []
    monkeypatch.setattr(qb_routes, "delete_client_vectors", lambda c: removed.append(c.id))

    assert logged_in.post("/api/quickbooks/disconnect", json={}).status_code == 400
    assert logged_in.post("/api/quickbooks/disconnect", json={"clientId": seeded.foreign_client_id}).status_code == 404

    r = logged_in.post("/api/quickbooks/disconnect", json={"clientId": seeded.client_id})

    assert r.status_code == 200
    assert r.json == {"success": True}
    assert removed == [seeded.client_id]
    with app.app_context():
        assert db.session.get(Client, seeded.client_id) is None
        assert Transaction.query.filter_by(client_id=seeded.client_id).count() == 0
        assert db.session.get(Client, seeded.foreign_client_id) is not None
