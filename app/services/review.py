# app/services/review.py
from __future__ import annotations

import logging
from datetime import datetime

from ..extensions import db
from ..models import QBAccount, QBClass, TransactionStatus
from .learning import create_learning_example

logger = logging.getLogger(__name__)


class ReviewError(Exception):
    pass


def _lookup(model, client_id: int, qb_id: str | None):
    if not qb_id:
        return None
    return model.query.filter_by(client_id=client_id, qb_id=str(qb_id)).first()


def approve_transaction(txn, account_id: str | None = None, class_id: str | None = None):
    """
    Settle txn's final categorization:
      - the reviewer's account/class when given, otherwise the AI suggestion.
        A failed write-back (ERROR) keeps the categorization it was approved with.
      - APPROVED when it matches the suggestion, EDITED when the reviewer changed it.
      - queue it for write-back and record a learning example.
    """
    if txn.status not in TransactionStatus.REVIEWABLE:
        raise ReviewError(f"Transaction {txn.id} is {txn.status} and cannot be approved")

    if txn.status == TransactionStatus.ERROR and txn.final_account_id:
        current = (txn.final_account_id, txn.final_account_name, txn.final_class_id, txn.final_class_name)
    else:
        current = (txn.ai_account_id, txn.ai_account_name, txn.ai_class_id, txn.ai_class_name)
    current_account_id, current_account_name, current_class_id, current_class_name = current

    final_account_id = str(account_id) if account_id else current_account_id
    if not final_account_id:
        raise ReviewError("No account to approve: categorize the transaction or choose an account")

    account = _lookup(QBAccount, txn.client_id, final_account_id)
    if account_id and account is None:
        raise ReviewError(f"Unknown account id {account_id} for this client")

    if class_id:
        final_class_id = str(class_id)
        qb_class = _lookup(QBClass, txn.client_id, final_class_id)
        if qb_class is None:
            raise ReviewError(f"Unknown class id {class_id} for this client")
        final_class_name = qb_class.name
    elif account_id:
        # a reviewer-chosen account with no class clears the suggested class
        final_class_id, final_class_name = None, None
    else:
        final_class_id, final_class_name = current_class_id, current_class_name

    txn.final_account_id = final_account_id
    txn.final_account_name = account.name if account else current_account_name
    txn.final_class_id = final_class_id
    txn.final_class_name = final_class_name

    unchanged = final_account_id == txn.ai_account_id and final_class_id == txn.ai_class_id
    txn.status = TransactionStatus.APPROVED if unchanged else TransactionStatus.EDITED
    txn.reviewed_at = datetime.utcnow()
    txn.synced_to_qb = False
    txn.sync_error = None
    db.session.commit()

    try:
        create_learning_example(txn)
    except Exception:
        db.session.rollback()
        logger.exception("Error recording learning example for transaction %s", txn.id)

    return txn


def reject_transaction(txn):
    """Drop the suggestion; the transaction goes back in the categorization queue."""
    if txn.status == TransactionStatus.SYNCED:
        raise ReviewError(f"Transaction {txn.id} is already synced to QuickBooks")

    txn.clear_suggestion()
    txn.final_account_id = None
    txn.final_account_name = None
    txn.final_class_id = None
    txn.final_class_name = None
    txn.status = TransactionStatus.REJECTED
    txn.reviewed_at = datetime.utcnow()
    db.session.commit()
    return txn
