"""
Firebase integration: Firestore client and ID-token verification.

`db` starts as None. Call `initialize()` inside the FastAPI lifespan
context manager. Consuming modules read `firebase.db` at call time, so a
missing or broken service account degrades features instead of crashing.
"""

import os
import json
import logging
import firebase_admin
from firebase_admin import auth, credentials, firestore

logger = logging.getLogger(__name__)

# Set by initialize(); None when Firebase could not be brought up.
db = None  # firestore.Client | None


def initialize() -> None:
    """Initialize Firebase Admin SDK and set the module-level `db` client."""
    global db

    try:
        if not firebase_admin._apps:
            service_account_json = os.getenv("FIREBASE_SERVICE_ACCOUNT")
            if service_account_json:
                sa_info = json.loads(service_account_json)
                firebase_admin.initialize_app(credentials.Certificate(sa_info))
            else:
                # Application Default Credentials (GOOGLE_APPLICATION_CREDENTIALS)
                firebase_admin.initialize_app()
        db = firestore.client()
        logger.info("[STARTUP] Firebase initialized")
    except Exception as e:
        db = None
        logger.error(f"[STARTUP] Firebase unavailable, history and sign-in disabled: {e}")


def is_ready() -> bool:
    return db is not None and bool(firebase_admin._apps)


def verify_id_token(id_token: str) -> dict:
    """Verifies a Firebase ID token and returns its decoded claims."""
    return auth.verify_id_token(id_token)
