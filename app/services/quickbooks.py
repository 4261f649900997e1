# app/services/quickbooks.py
"""
Intuit OAuth2 and the QuickBooks Online v3 accounting API.

OAuth (authorization URL, code exchange, token refresh) goes through
intuitlib's AuthClient; everything else is plain REST over requests.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

import requests
from flask import current_app
from intuitlib.client import AuthClient
from intuitlib.enums import Scopes
from intuitlib.exceptions import AuthClientError

from ..extensions import db

logger = logging.getLogger(__name__)

BASE_URLS = {
    "sandbox": "https://sandbox-quickbooks.api.intuit.com/v3/company",
    "production": "https://quickbooks.api.intuit.com/v3/company",
}
MINOR_VERSION = "75"
PAGE_SIZE = 1000
MAX_RESULTS = 5000
REQUEST_TIMEOUT = 30

OAUTH_SCOPES = [Scopes.ACCOUNTING, Scopes.OPENID, Scopes.PROFILE, Scopes.EMAIL]

# QBO entity name -> REST resource used for reads and sparse updates
UPDATABLE_TYPES = {
    "Purchase": "purchase",
    "Expense": "purchase",
}


class QuickBooksError(Exception):
    """Base error for QuickBooks API and OAuth failures."""

    def __init__(self, message, status_code: int | None = None, original_exception=None):
        super().__init__(message)
        self.status_code = status_code
        self.original_exception = original_exception


class QuickBooksAuthError(QuickBooksError):
    pass


class QuickBooksNotFoundError(QuickBooksError):
    pass


def is_quickbooks_configured() -> bool:
    config = current_app.config
    return all([config.get("QB_CLIENT_ID"), config.get("QB_CLIENT_SECRET"), config.get("QB_REDIRECT_URI")])


def get_auth_client(environment: str | None = None) -> AuthClient:
    config = current_app.config
    return AuthClient(
        client_id=config["QB_CLIENT_ID"],
        client_secret=config["QB_CLIENT_SECRET"],
        redirect_uri=config["QB_REDIRECT_URI"],
        environment=environment or config.get("QB_ENVIRONMENT", "sandbox"),
    )


def build_authorization_url(state: str) -> str:
    return get_auth_client().get_authorization_url(OAUTH_SCOPES, state_token=state)


def _token_bundle(auth_client: AuthClient) -> Dict[str, Any]:
    return {
        "access_token": auth_client.access_token,
        "refresh_token": auth_client.refresh_token,
        "expires_in": int(auth_client.expires_in or 3600),
        "x_refresh_token_expires_in": auth_client.x_refresh_token_expires_in,
    }


def exchange_code(code: str, realm_id: str) -> Dict[str, Any]:
    """Trade an authorization code for an access/refresh token pair."""
    auth_client = get_auth_client()
    try:
        auth_client.get_bearer_token(code, realm_id=realm_id)
    except AuthClientError as e:
        logger.error("QuickBooks code exchange failed for realm %s: %s", realm_id, e)
        raise QuickBooksAuthError(f"Could not exchange authorization code: {e}", original_exception=e) from e
    return _token_bundle(auth_client)


def refresh_tokens(refresh_token: str, environment: str | None = None) -> Dict[str, Any]:
    auth_client = get_auth_client(environment)
    try:
        auth_client.refresh(refresh_token=refresh_token)
    except AuthClientError as e:
        if "invalid_grant" in str(e).lower():
            # refresh tokens die after ~100 days; the client has to reconnect
            raise QuickBooksAuthError(
                "QuickBooks refresh token has expired. Reconnect this client.", original_exception=e
            ) from e
        raise QuickBooksAuthError(f"Failed to refresh QuickBooks token: {e}", original_exception=e) from e
    return _token_bundle(auth_client)


def token_expiry(expires_in: int) -> datetime:
    return datetime.utcnow() + timedelta(seconds=int(expires_in))


def _fault_message(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict) or "Fault" not in payload:
        return None
    errors = payload["Fault"].get("Error") or [{}]
    first = errors[0]
    message = first.get("Message") or "QuickBooks API error"
    detail = first.get("Detail")
    return f"{message}. {detail}" if detail else message


class QuickBooksClient:
    """Thin REST client bound to one company (realm)."""

    def __init__(self, access_token: str, realm_id: str, environment: str = "sandbox", session=None):
        if environment not in BASE_URLS:
            raise ValueError(f"Invalid QuickBooks environment: '{environment}'. Must be 'sandbox' or 'production'.")
        self.access_token = access_token
        self.realm_id = realm_id
        self.environment = environment
        self.session = session or requests.Session()

    @property
    def base_url(self) -> str:
        return f"{BASE_URLS[self.environment]}/{self.realm_id}"

    def _request(self, method: str, endpoint: str, params: Dict | None = None, json: Dict | None = None) -> Dict:
        url = f"{self.base_url}/{endpoint}"
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        params = dict(params or {})
        params["minorversion"] = MINOR_VERSION

        try:
            response = self.session.request(
                method, url, headers=headers, params=params, json=json, timeout=REQUEST_TIMEOUT
            )
        except requests.RequestException as e:
            logger.error("QuickBooks request %s %s failed: %s", method, endpoint, e)
            raise QuickBooksError(f"QuickBooks API request failed: {e}", original_exception=e) from e

        if response.status_code >= 400:
            try:
                message = _fault_message(response.json()) or response.text
            except ValueError:
                message = response.text
            logger.error("QuickBooks %s %s -> HTTP %s: %s", method, endpoint, response.status_code, message)
            if response.status_code == 401:
                raise QuickBooksAuthError(f"QuickBooks authentication failed: {message}", response.status_code)
            if response.status_code == 404:
                raise QuickBooksNotFoundError(f"QuickBooks object not found: {message}", response.status_code)
            raise QuickBooksError(f"QuickBooks API error: {message}", response.status_code)

        return response.json()

    def query(self, statement: str, entity: str, max_results: int = MAX_RESULTS) -> List[Dict]:
        """
        Run a QBO SQL-ish query, following STARTPOSITION paging until a short
        page comes back or max_results rows are collected.
        """
        rows: List[Dict] = []
        start = 1
        while len(rows) < max_results:
            page_size = min(PAGE_SIZE, max_results - len(rows))
            paged = f"{statement} STARTPOSITION {start} MAXRESULTS {page_size}"
            payload = self._request("GET", "query", params={"query": paged})
            page = payload.get("QueryResponse", {}).get(entity, [])
            rows.extend(page)
            if len(page) < page_size:
                break
            start += page_size
        return rows

    def get_company_info(self) -> Dict:
        payload = self._request("GET", f"companyinfo/{self.realm_id}")
        return payload.get("CompanyInfo", {})

    def fetch_uncategorized_transactions(
        self, start_date: date | None = None, end_date: date | None = None, lookback_days: int = 90
    ) -> List[Dict]:
        end_date = end_date or date.today()
        start_date = start_date or (end_date - timedelta(days=lookback_days))
        statement = (
            f"SELECT * FROM Purchase WHERE TxnDate >= '{start_date.isoformat()}' "
            f"AND TxnDate <= '{end_date.isoformat()}'"
        )
        purchases = self.query(statement, "Purchase")
        return [p for p in purchases if is_uncategorized(p)]

    def fetch_accounts(self) -> List[Dict]:
        return self.query("SELECT * FROM Account", "Account")

    def fetch_classes(self) -> List[Dict]:
        return self.query("SELECT * FROM Class", "Class")

    def get_entity(self, qb_type: str, qb_id: str) -> Dict:
        resource = UPDATABLE_TYPES.get(qb_type)
        if not resource:
            raise QuickBooksError(f"Unsupported QuickBooks transaction type: {qb_type}")
        payload = self._request("GET", f"{resource}/{qb_id}")
        return payload.get("Purchase", {})

    def update_transaction_category(
        self, qb_id: str, qb_type: str, account_id: str, class_id: str | None = None
    ) -> Dict:
        """
        Point every account-based expense line of the transaction at account_id
        (and class_id when given), sent as a sparse update with the current SyncToken.
        """
        resource = UPDATABLE_TYPES.get(qb_type)
        if not resource:
            raise QuickBooksError(f"Unsupported QuickBooks transaction type: {qb_type}")

        current = self.get_entity(qb_type, qb_id)
        lines = current.get("Line") or []
        updated_lines = []
        touched = 0
        for line in lines:
            line = dict(line)
            if line.get("DetailType") == "AccountBasedExpenseLineDetail":
                detail = dict(line.get("AccountBasedExpenseLineDetail") or {})
                detail["AccountRef"] = {"value": account_id}
                if class_id:
                    detail["ClassRef"] = {"value": class_id}
                line["AccountBasedExpenseLineDetail"] = detail
                touched += 1
            updated_lines.append(line)

        if not touched:
            raise QuickBooksError(f"{qb_type} {qb_id} has no account-based expense lines to categorize")

        body = {
            "Id": current.get("Id", qb_id),
            "SyncToken": current.get("SyncToken", "0"),
            "sparse": True,
            "PaymentType": current.get("PaymentType"),
            "AccountRef": current.get("AccountRef"),
            "Line": updated_lines,
        }
        payload = self._request("POST", resource, json={k: v for k, v in body.items() if v is not None})
        return payload.get("Purchase", {})


def _expense_lines(purchase: Dict) -> List[Dict]:
    return [
        line.get("AccountBasedExpenseLineDetail") or {}
        for line in purchase.get("Line") or []
        if line.get("DetailType") == "AccountBasedExpenseLineDetail"
    ]


def is_uncategorized(purchase: Dict) -> bool:
    for detail in _expense_lines(purchase):
        ref = detail.get("AccountRef") or {}
        if not ref.get("value"):
            return True
        if (ref.get("name") or "").lower().startswith("uncategorized"):
            return True
    return False


def client_for(client) -> QuickBooksClient:
    """
    Build an API client for a Client row, refreshing and persisting tokens
    first when the stored access token has expired.
    """
    if datetime.utcnow() >= client.qb_token_expiry:
        logger.info("Access token expired for client %s, refreshing", client.id)
        tokens = refresh_tokens(client.qb_refresh_token, client.qb_environment)
        client.qb_access_token = tokens["access_token"]
        client.qb_refresh_token = tokens["refresh_token"]
        client.qb_token_expiry = token_expiry(tokens["expires_in"])
        db.session.commit()

    return QuickBooksClient(client.qb_access_token, client.qb_realm_id, client.qb_environment)
