# app/services/qb_sync.py
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, List

from flask import current_app

from ..extensions import db
from ..models import QBAccount, QBClass, Transaction, TransactionStatus
from ..utils import coalesce, parse_date, to_cents
from .quickbooks import QuickBooksClient, QuickBooksError, client_for

logger = logging.getLogger(__name__)


# ----- pull: QuickBooks -> local store ---------------------------------------

def parse_qb_transaction(payload: Dict[str, Any], qb_type: str = "Purchase") -> Dict[str, Any]:
    """Map a QBO Purchase payload to Transaction column values."""
    lines = payload.get("Line") or []
    expense_lines = [l for l in lines if l.get("DetailType") == "AccountBasedExpenseLineDetail"]
    first_line = expense_lines[0] if expense_lines else (lines[0] if lines else {})
    detail = first_line.get("AccountBasedExpenseLineDetail") or {}
    account_ref = detail.get("AccountRef") or {}
    class_ref = detail.get("ClassRef") or {}

    entity = payload.get("EntityRef") or {}
    entity_type = entity.get("type")

    return {
        "qb_id": str(payload["Id"]),
        "qb_type": qb_type,
        "txn_date": parse_date(payload["TxnDate"]),
        "amount_cents": abs(to_cents(payload.get("TotalAmt") or 0)),
        "description": coalesce(payload.get("PrivateNote"), payload.get("DocNumber"), first_line.get("Description")) or "",
        # untyped EntityRef on a Purchase is the payee
        "vendor": entity.get("name") if entity_type in (None, "Vendor") else None,
        "customer": entity.get("name") if entity_type == "Customer" else None,
        "memo": payload.get("PrivateNote"),
        "original_account_id": account_ref.get("value"),
        "original_account_name": account_ref.get("name"),
        "original_class_id": class_ref.get("value"),
        "original_class_name": class_ref.get("name"),
    }


def cache_accounts_and_classes(client, accounts: List[Dict], classes: List[Dict]) -> None:
    existing_accounts = {a.qb_id: a for a in QBAccount.query.filter_by(client_id=client.id).all()}
    for raw in accounts:
        qb_id = str(raw["Id"])
        row = existing_accounts.get(qb_id)
        if row is None:
            row = QBAccount(client_id=client.id, qb_id=qb_id)
            db.session.add(row)
            existing_accounts[qb_id] = row
        row.name = raw.get("Name") or qb_id
        row.fully_qualified_name = raw.get("FullyQualifiedName")
        row.account_type = raw.get("AccountType") or "Unknown"
        row.account_sub_type = raw.get("AccountSubType")
        row.classification = raw.get("Classification")
        row.active = raw.get("Active") is not False

    existing_classes = {c.qb_id: c for c in QBClass.query.filter_by(client_id=client.id).all()}
    for raw in classes:
        qb_id = str(raw["Id"])
        row = existing_classes.get(qb_id)
        if row is None:
            row = QBClass(client_id=client.id, qb_id=qb_id)
            db.session.add(row)
            existing_classes[qb_id] = row
        row.name = raw.get("Name") or qb_id
        row.fully_qualified_name = raw.get("FullyQualifiedName")
        row.active = raw.get("Active") is not False

    db.session.commit()
    logger.info("Cached %s accounts and %s classes for client %s", len(accounts), len(classes), client.id)


def sync_transactions_for_client(
    client,
    start_date: date | None = None,
    end_date: date | None = None,
    qb: QuickBooksClient | None = None,
) -> Dict[str, Any]:
    """
    Pull uncategorized transactions from QuickBooks into the review queue and
    refresh the account/class cache. Transactions already stored are skipped.
    """
    qb = qb or client_for(client)

    qb_transactions = qb.fetch_uncategorized_transactions(
        start_date, end_date, lookback_days=current_app.config["SYNC_LOOKBACK_DAYS"]
    )
    logger.info("Fetched %s transactions from QuickBooks for client %s", len(qb_transactions), client.id)

    cache_accounts_and_classes(client, qb.fetch_accounts(), qb.fetch_classes())

    known = {
        qb_id for (qb_id,) in db.session.query(Transaction.qb_id).filter(Transaction.client_id == client.id).all()
    }

    stored, skipped = 0, 0
    errors: List[str] = []
    for payload in qb_transactions:
        try:
            values = parse_qb_transaction(payload)
        except (KeyError, ValueError, TypeError) as e:
            errors.append(f"Transaction {payload.get('Id')}: {e}")
            continue

        if values["qb_id"] in known:
            skipped += 1
            continue

        db.session.add(Transaction(client_id=client.id, status=TransactionStatus.PENDING, **values))
        known.add(values["qb_id"])
        stored += 1

    client.last_sync_at = datetime.utcnow()
    db.session.commit()

    result = {
        "success": True,
        "transactionsFetched": len(qb_transactions),
        "transactionsStored": stored,
        "transactionsSkipped": skipped,
        "message": f"Successfully synced {stored} new transactions",
    }
    if errors:
        result["errors"] = errors
    return result


# ----- push: approved categorizations -> QuickBooks --------------------------

def sync_categorizations_to_qb(client, transaction_ids=None, qb: QuickBooksClient | None = None) -> Dict[str, Any]:
    query = Transaction.query.filter(
        Transaction.client_id == client.id,
        Transaction.status.in_(TransactionStatus.SYNCABLE),
        Transaction.final_account_id.isnot(None),
        Transaction.synced_to_qb == False,
    )
    if transaction_ids is not None:
        query = query.filter(Transaction.id.in_(transaction_ids))
    transactions = query.order_by(Transaction.id).all()

    logger.info("Found %s approved transactions to sync for client %s", len(transactions), client.id)
    if not transactions:
        return {"synced": 0, "errors": 0, "errorDetails": []}

    qb = qb or client_for(client)

    synced = 0
    error_details = []
    for txn in transactions:
        try:
            qb.update_transaction_category(txn.qb_id, txn.qb_type, txn.final_account_id, txn.final_class_id)
        except QuickBooksError as e:
            logger.error("Error syncing transaction %s: %s", txn.id, e)
            txn.status = TransactionStatus.ERROR
            txn.sync_error = str(e) or "Unknown error"
            error_details.append({"transactionId": txn.id, "error": txn.sync_error})
        else:
            txn.status = TransactionStatus.SYNCED
            txn.synced_to_qb = True
            txn.synced_at = datetime.utcnow()
            txn.sync_error = None
            synced += 1
        db.session.commit()

    return {"synced": synced, "errors": len(error_details), "errorDetails": error_details}
