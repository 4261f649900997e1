# app/services/learning.py
"""
Per-client learning corpus.

Every approved categorization becomes a LearningExample row plus a vector in
Pinecone (filtered by clientId at query time), so the categorizer can show
the model how this client booked similar transactions before.
"""
from __future__ import annotations

import logging
from typing import List

from flask import current_app
from openai import OpenAI
from pinecone import Pinecone

from ..extensions import db
from ..models import LearningExample

logger = logging.getLogger(__name__)


def is_index_configured() -> bool:
    config = current_app.config
    return all([config.get("OPENAI_API_KEY"), config.get("PINECONE_API_KEY"), config.get("PINECONE_INDEX_NAME")])


def _openai_client() -> OpenAI:
    return OpenAI(
        base_url=current_app.config.get("OPENAI_API_BASE") or None,
        api_key=current_app.config["OPENAI_API_KEY"],
    )


def _get_index():
    pc = Pinecone(api_key=current_app.config["PINECONE_API_KEY"])
    return pc.Index(current_app.config["PINECONE_INDEX_NAME"])


def learning_text(description: str | None, vendor: str | None) -> str:
    return f"{description or ''} {vendor or ''}".strip()


def embed_text(text: str) -> List[float]:
    response = _openai_client().embeddings.create(
        model=current_app.config["OPENAI_EMBEDDING_MODEL"],
        input=text,
    )
    return list(response.data[0].embedding)


def find_similar_examples(client_id: int, description: str | None, vendor: str | None, top_k: int = 5) -> List[LearningExample]:
    """
    Past approved categorizations for this client that look like the given
    transaction. Failures are logged and yield no examples; categorization
    goes ahead without them.
    """
    text = learning_text(description, vendor)
    if not text or not is_index_configured():
        return []

    try:
        vector = embed_text(text)
        response = _get_index().query(
            vector=vector,
            top_k=top_k,
            filter={"clientId": {"$eq": str(client_id)}},
            include_metadata=True,
        )
        threshold = current_app.config["AI_SIMILARITY_THRESHOLD"]
        example_ids = [m.id for m in response.matches if (m.score or 0) > threshold]
        if not example_ids:
            return []

        return (
            LearningExample.query
            .filter(LearningExample.client_id == client_id, LearningExample.pinecone_id.in_(example_ids))
            .all()
        )
    except Exception:
        logger.exception("Error finding similar examples for client %s", client_id)
        return []


def _vector_id(example: LearningExample) -> str:
    return f"le-{example.id}"


def _upsert(example: LearningExample) -> None:
    vector_id = _vector_id(example)
    _get_index().upsert(vectors=[{
        "id": vector_id,
        "values": example.embedding,
        "metadata": {
            "clientId": str(example.client_id),
            "description": example.description or "",
            "vendor": example.vendor or "",
            "accountId": example.correct_account_id,
            "accountName": example.correct_account_name,
            "classId": example.correct_class_id or "",
            "className": example.correct_class_name or "",
        },
    }])
    example.pinecone_id = vector_id
    example.synced_to_pinecone = True


def create_learning_example(txn) -> LearningExample:
    """
    Record the reviewer's final categorization of txn as a learning example.
    Idempotent per transaction: an existing example is updated in place.
    """
    if not txn.final_account_id:
        raise ValueError("Transaction must be categorized first")

    example = LearningExample.query.filter_by(transaction_id=txn.id).first()
    if example is None:
        example = LearningExample(client_id=txn.client_id, transaction_id=txn.id)
        db.session.add(example)

    example.description = txn.description or ""
    example.vendor = txn.vendor
    example.amount_cents = txn.amount_cents
    example.correct_account_id = txn.final_account_id
    example.correct_account_name = txn.final_account_name or ""
    example.correct_class_id = txn.final_class_id
    example.correct_class_name = txn.final_class_name
    example.ai_account_id = txn.ai_account_id
    example.ai_account_name = txn.ai_account_name
    example.was_correct = bool(txn.ai_account_id) and txn.ai_account_id == txn.final_account_id
    example.synced_to_pinecone = False
    db.session.flush()

    if not is_index_configured():
        db.session.commit()
        return example

    text = learning_text(txn.description, txn.vendor)
    if text:
        try:
            example.embedding = embed_text(text)
            _upsert(example)
        except Exception:
            # row stays unsynced; `flask push-learning` retries it
            logger.exception("Error syncing learning example %s to Pinecone", example.id)

    db.session.commit()
    return example


def push_unsynced_examples(limit: int | None = None) -> dict:
    query = LearningExample.query.filter(LearningExample.synced_to_pinecone == False).order_by(LearningExample.id)
    if limit:
        query = query.limit(limit)

    pushed, failed, skipped = 0, 0, 0
    for example in query.all():
        text = learning_text(example.description, example.vendor)
        if not text and not example.embedding:
            # nothing to embed; the row stays local
            skipped += 1
            continue
        try:
            if not example.embedding:
                example.embedding = embed_text(text)
            _upsert(example)
            pushed += 1
        except Exception:
            logger.exception("Error pushing learning example %s", example.id)
            failed += 1
    db.session.commit()
    return {"pushed": pushed, "failed": failed, "skipped": skipped}


def delete_client_vectors(client) -> None:
    """Best effort removal of a client's vectors when it is disconnected."""
    if not is_index_configured():
        return
    ids = [
        row.pinecone_id
        for row in LearningExample.query.filter(
            LearningExample.client_id == client.id, LearningExample.pinecone_id.isnot(None)
        ).all()
    ]
    if not ids:
        return
    try:
        _get_index().delete(ids=ids)
    except Exception:
        logger.exception("Error deleting Pinecone vectors for client %s", client.id)
