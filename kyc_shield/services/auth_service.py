"""
Sign-in state per client, backed by Firebase Authentication.

The browser performs the Google popup and hands us the resulting ID token.
We verify it, remember the identity for that client, and turn every
configuration or sign-in problem into a dismissible notice instead of an
error response.
"""

import logging
from typing import Optional

from fastapi.concurrency import run_in_threadpool
from firebase_admin import auth as firebase_auth

from kyc_shield.config import Settings, settings
from kyc_shield.core.errors import ConfigurationError
from kyc_shield.integrations import firebase as firebase_module
from kyc_shield.schemas.auth import AuthStateResponse, UserIdentity

logger = logging.getLogger(__name__)


def check_firebase_config(cfg: Settings = settings) -> Optional[str]:
    """Returns a notice for the most pressing web-config problem, or None."""
    notice = None
    if cfg.firebase_app_id and not cfg.firebase_app_id.startswith("1:"):
        notice = (
            "Invalid Firebase App ID detected. It should start with '1:'. "
            "You likely used the Measurement ID (G-...) instead."
        )
    if not cfg.firebase_auth_domain:
        notice = "Missing FIREBASE_AUTH_DOMAIN. Please add it to your .env file."
    if not cfg.firebase_project_id:
        notice = "Missing FIREBASE_PROJECT_ID. Please add it to your .env file."
    return notice


def describe_login_error(error: Exception) -> str:
    # Expired/Revoked subclass InvalidIdTokenError, so they are checked first.
    if isinstance(error, firebase_auth.ExpiredIdTokenError):
        return "Login failed: Your sign-in session expired. Please sign in again."
    if isinstance(error, firebase_auth.RevokedIdTokenError):
        return "Login failed: This sign-in was revoked. Please sign in again."
    if isinstance(error, firebase_auth.UserDisabledError):
        return "Login failed: This account has been disabled."
    if isinstance(error, firebase_auth.InvalidIdTokenError):
        return "Login failed: The sign-in token is not valid for this project."
    if isinstance(error, firebase_auth.CertificateFetchError):
        return "Login failed: Unable to reach Firebase to verify the sign-in. Please try again."
    if isinstance(error, ValueError):
        return (
            "Login failed: Firebase Admin is misconfigured. "
            "Check FIREBASE_SERVICE_ACCOUNT and the project ID."
        )
    return f"Login failed: {error}"


class AuthState:
    def __init__(self, cfg: Settings = settings):
        self.user: Optional[UserIdentity] = None
        self.notice: Optional[str] = check_firebase_config(cfg)
        self.is_logging_in = False
        if self.notice:
            logger.warning(f"[AUTH] {self.notice}")

    @property
    def is_configured(self) -> bool:
        return firebase_module.is_ready()

    def dismiss_notice(self) -> None:
        self.notice = None

    async def login(self, id_token: str) -> Optional[UserIdentity]:
        """
        Verifies `id_token` and signs the client in.
        On failure the previous identity is kept and `notice` explains why.
        """
        if self.is_logging_in or self.notice:
            return self.user

        if not self.is_configured:
            self.notice = ConfigurationError().message
            return self.user

        self.is_logging_in = True
        try:
            claims = await run_in_threadpool(firebase_module.verify_id_token, id_token)
        except Exception as e:
            logger.warning(f"[AUTH] Login failed: {e}")
            self.notice = describe_login_error(e)
            return self.user
        finally:
            self.is_logging_in = False

        self.user = UserIdentity(
            uid=claims["uid"],
            display_name=claims.get("name"),
            avatar_url=claims.get("picture"),
        )
        logger.info(f"[AUTH] Signed in {self.user.uid}")
        return self.user

    def logout(self) -> None:
        if self.user:
            logger.info(f"[AUTH] Signed out {self.user.uid}")
        self.user = None

    def to_response(self) -> AuthStateResponse:
        return AuthStateResponse(user=self.user, is_configured=self.is_configured, config_notice=self.notice)
