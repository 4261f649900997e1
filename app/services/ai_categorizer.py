# app/services/ai_categorizer.py
import json
import logging

from openai import OpenAI, APIConnectionError
from flask import current_app

from ..extensions import db
from ..models import QBAccount, QBClass, Transaction, TransactionStatus
from .learning import find_similar_examples

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert bookkeeper specializing in QuickBooks categorization. "
    "You categorize transactions with high accuracy based on transaction details and historical patterns. "
    "You must respond with ONLY a valid JSON object."
)


class CategorizationError(Exception):
    pass


def is_ai_configured():
    """Check if the necessary AI configuration is present."""
    config = current_app.config
    return all([config.get("OPENAI_API_KEY"), config.get("OPENAI_MODEL_NAME")])


def confidence_level(score):
    if score is None:
        return None
    config = current_app.config
    if score >= config["AI_HIGH_CONFIDENCE"]:
        return "high"
    if score >= config["AI_MEDIUM_CONFIDENCE"]:
        return "medium"
    return "low"


def _openai_client():
    return OpenAI(
        base_url=current_app.config.get("OPENAI_API_BASE") or None,
        api_key=current_app.config["OPENAI_API_KEY"],
    )


def build_categorization_prompt(txn, accounts, classes, examples):
    accounts_list = "\n".join(
        f"- {a.name} (ID: {a.qb_id}, Type: {a.account_type})" for a in accounts
    )
    class_list = (
        "\n".join(f"- {c.name} (ID: {c.qb_id})" for c in classes)
        if classes else "No classes available"
    )
    examples_text = (
        "\n".join(
            f'- Description: "{ex.description}" Vendor: {ex.vendor or "N/A"} -> Account: {ex.correct_account_name}'
            + (f", Class: {ex.correct_class_name}" if ex.correct_class_name else "")
            for ex in examples
        )
        if examples else "No similar past examples found"
    )

    return f"""
Categorize this QuickBooks transaction:

TRANSACTION DETAILS:
- Description: {txn.description or 'N/A'}
- Vendor: {txn.vendor or 'N/A'}
- Amount: ${txn.amount:.2f}
- Date: {txn.txn_date.isoformat()}
- Memo: {txn.memo or 'N/A'}

AVAILABLE ACCOUNTS:
{accounts_list}

AVAILABLE CLASSES:
{class_list}

SIMILAR PAST CATEGORIZATIONS:
{examples_text}

Please provide your categorization in this exact JSON format:
{{
  "accountId": "the QuickBooks account ID",
  "accountName": "the account name",
  "classId": "the QuickBooks class ID (optional)",
  "className": "the class name (optional)",
  "confidence": 0.95,
  "reasoning": "Brief explanation of why you chose this categorization"
}}

Base your categorization on:
1. The transaction description and vendor
2. Similar past categorizations if available
3. Standard bookkeeping practices
4. The account types available

You must choose an account ID from AVAILABLE ACCOUNTS. Provide a confidence score between 0 and 1.
"""


def parse_llm_json(raw_content):
    """Pull the JSON object out of a completion, tolerating surrounding prose."""
    raw_content = raw_content or ""
    start_index = raw_content.find('{')
    end_index = raw_content.rfind('}') + 1

    if start_index == -1 or end_index == 0:
        raise CategorizationError("No valid JSON object found in the LLM response.")

    try:
        return json.loads(raw_content[start_index:end_index])
    except json.JSONDecodeError as e:
        raise CategorizationError(f"Could not parse LLM response as JSON: {e}") from e


def _resolve(result_id, result_name, candidates):
    by_id = {c.qb_id: c for c in candidates}
    if result_id is not None and str(result_id) in by_id:
        return by_id[str(result_id)]
    if result_name:
        by_name = {c.name.lower(): c for c in candidates}
        by_name.update({(c.fully_qualified_name or c.name).lower(): c for c in candidates})
        return by_name.get(str(result_name).lower())
    return None


def _clamp(value):
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    return max(0.0, min(1.0, score))


def categorize_transaction(txn):
    """
    Ask the model for an account/class suggestion for txn and store it.
    Returns the suggestion dict; raises CategorizationError on bad input or output.
    """
    if not is_ai_configured():
        raise CategorizationError("AI features are not configured. Set OPENAI_API_KEY.")

    accounts = (
        QBAccount.query.filter_by(client_id=txn.client_id, active=True)
        .order_by(QBAccount.name)
        .all()
    )
    if not accounts:
        raise CategorizationError("No QuickBooks accounts cached for this client. Sync transactions first.")
    classes = (
        QBClass.query.filter_by(client_id=txn.client_id, active=True)
        .order_by(QBClass.name)
        .all()
    )

    examples = find_similar_examples(txn.client_id, txn.description, txn.vendor)
    prompt = build_categorization_prompt(txn, accounts, classes, examples)

    try:
        response = _openai_client().chat.completions.create(
            model=current_app.config["OPENAI_MODEL_NAME"],
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=0.1,
            response_format={"type": "json_object"},
        )
    except APIConnectionError as e:
        raise CategorizationError("Could not connect to the AI endpoint.") from e

    result = parse_llm_json(response.choices[0].message.content)

    account = _resolve(result.get("accountId"), result.get("accountName"), accounts)
    if account is None:
        raise CategorizationError(
            f"Model suggested an unknown account: {result.get('accountId')!r} ({result.get('accountName')!r})"
        )
    qb_class = _resolve(result.get("classId"), result.get("className"), classes) if classes else None

    txn.ai_account_id = account.qb_id
    txn.ai_account_name = account.name
    txn.ai_class_id = qb_class.qb_id if qb_class else None
    txn.ai_class_name = qb_class.name if qb_class else None
    txn.ai_confidence_score = _clamp(result.get("confidence"))
    txn.ai_reasoning_notes = result.get("reasoning")
    txn.status = TransactionStatus.PENDING
    db.session.commit()

    return {
        "accountId": txn.ai_account_id,
        "accountName": txn.ai_account_name,
        "classId": txn.ai_class_id,
        "className": txn.ai_class_name,
        "confidence": txn.ai_confidence_score,
        "confidenceLevel": confidence_level(txn.ai_confidence_score),
        "reasoning": txn.ai_reasoning_notes,
        "examplesUsed": len(examples),
    }


def categorize_pending(client, transaction_ids=None):
    """
    Categorize a client's queue one transaction at a time. With ids, only those
    (still categorizable) rows; otherwise up to CATEGORIZE_BATCH_LIMIT rows with
    no suggestion yet. Per-row failures are collected, not raised.
    """
    query = Transaction.query.filter(
        Transaction.client_id == client.id,
        Transaction.status.in_(TransactionStatus.CATEGORIZABLE),
    )
    if transaction_ids is not None:
        query = query.filter(Transaction.id.in_(transaction_ids))
    else:
        query = query.filter(Transaction.ai_account_id.is_(None))
    query = query.order_by(Transaction.txn_date.desc(), Transaction.id.desc())
    if transaction_ids is None:
        query = query.limit(current_app.config["CATEGORIZE_BATCH_LIMIT"])

    transactions = query.all()

    results, errors = [], []
    for txn in transactions:
        try:
            result = categorize_transaction(txn)
            results.append({"transactionId": txn.id, "success": True, **result})
        except Exception as e:
            db.session.rollback()
            logger.error("Error categorizing transaction %s: %s", txn.id, e)
            errors.append({"transactionId": txn.id, "error": str(e)})

    return results, errors
