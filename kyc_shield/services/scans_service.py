"""
Scan history persistence: append-only `scans` collection, one document per
completed verification session.

The Firebase `db` client is accessed at call-time via the integration module
so it picks up the instance initialized during the FastAPI lifespan.
"""

import logging
from datetime import datetime, timezone

from firebase_admin import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from kyc_shield.config import settings
from kyc_shield.core.errors import PersistenceError
from kyc_shield.integrations import firebase as firebase_module
from kyc_shield.schemas.auth import SessionContext
from kyc_shield.schemas.history import ScanRecord
from kyc_shield.schemas.verification import Verdict

logger = logging.getLogger(__name__)


def _get_db():
    db = firebase_module.db
    if not db:
        raise PersistenceError("Database service unavailable.")
    return db


def history_query(db, owner: str):
    """Owner's scans, newest first."""
    return (
        db.collection(settings.scans_collection)
        .where(filter=FieldFilter("owner", "==", owner))
        .order_by("occurredAt", direction=firestore.Query.DESCENDING)
    )


def records_from_snapshot(docs) -> list[ScanRecord]:
    return [ScanRecord.from_document(doc.id, doc.to_dict()) for doc in docs]


def save_scan(owner: str, verdict: Verdict) -> str:
    """Appends a ScanRecord for `owner`. Returns the new document id."""
    db = _get_db()
    record = ScanRecord(
        owner=owner,
        occurred_at=datetime.now(timezone.utc),
        is_real=verdict.is_real,
        confidence=verdict.confidence,
        issues=verdict.issues,
        message=verdict.message,
    )

    try:
        _, doc_ref = db.collection(settings.scans_collection).add(record.to_document())
    except Exception as e:
        logger.error(f"[SCANS] Failed to save scan for {owner}: {e}")
        raise PersistenceError(f"Cloud sync failed: {e}") from e

    logger.info(f"[SCANS] Saved scan {doc_ref.id} for {owner} (real={verdict.is_real}, confidence={verdict.confidence})")
    return doc_ref.id


def list_scans(context: SessionContext) -> list[ScanRecord]:
    """
    Scan history for the signed-in user, newest first.
    Anonymous clients and a missing database both yield the empty history.
    """
    if not context.is_signed_in:
        return []

    db = firebase_module.db
    if not db:
        logger.warning("[SCANS] History requested but Firestore is unavailable")
        return []

    try:
        docs = history_query(db, context.user.uid).stream()
        return records_from_snapshot(docs)
    except Exception as e:
        logger.error(f"[SCANS] History read failed for {context.user.uid}: {e}")
        raise PersistenceError("Unable to load scan history.") from e
