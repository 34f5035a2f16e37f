"""
Per-client state, keyed by the X-Device-ID header.

Each client owns one auth state, at most one verification session, its
assistant conversation, its activity log and its live subscriptions.
Identity changes (login / logout) cancel live subscriptions and clear the
anonymous chat transcript.
"""

import logging
import time
from typing import Callable, Optional

from kyc_shield.integrations.camera import default_camera_factory
from kyc_shield.integrations.realtime import LocalFeed
from kyc_shield.schemas.auth import SessionContext, UserIdentity
from kyc_shield.services.auth_service import AuthState
from kyc_shield.services.chat_service import Conversation
from kyc_shield.services.session_orchestrator import ActivityLog, VerificationSession

logger = logging.getLogger(__name__)


class ClientState:
    def __init__(self, device_id: str, camera_factory: Callable = default_camera_factory):
        self.device_id = device_id
        self.activity = ActivityLog()
        self.auth = AuthState()
        self.session = VerificationSession(self.activity, camera_factory=camera_factory)
        self.conversation = Conversation()
        self.subscriptions: set = set()  # Subscription | LocalFeed
        self.last_seen = time.monotonic()

    def touch(self) -> None:
        self.last_seen = time.monotonic()

    def context(self) -> SessionContext:
        return SessionContext(device_id=self.device_id, user=self.auth.user)

    async def sign_in(self, id_token: str) -> Optional[UserIdentity]:
        previous = self.auth.user
        user = await self.auth.login(id_token)
        if user != previous:
            self._identity_changed()
        return user

    def sign_out(self) -> None:
        if self.auth.user is None:
            return
        self.auth.logout()
        self._identity_changed()

    def _identity_changed(self) -> None:
        self.cancel_subscriptions()
        self.conversation.reset_local()

    def track(self, subscription) -> None:
        self.subscriptions.add(subscription)

    def forget(self, subscription) -> None:
        self.subscriptions.discard(subscription)

    def refresh_local(self, topic: str) -> None:
        """Re-pushes in-memory state to the anonymous sockets watching `topic`."""
        for feed in list(self.subscriptions):
            if isinstance(feed, LocalFeed) and feed.topic == topic:
                feed.refresh()

    def cancel_subscriptions(self) -> None:
        for subscription in list(self.subscriptions):
            subscription.cancel()
        self.subscriptions.clear()

    async def close(self) -> None:
        self.cancel_subscriptions()
        await self.session.wait_for_sync()
        await self.session.close()


class ClientRegistry:
    def __init__(self, camera_factory: Callable = default_camera_factory):
        self._camera_factory = camera_factory
        self._clients: dict[str, ClientState] = {}

    def __len__(self) -> int:
        return len(self._clients)

    def __contains__(self, device_id: str) -> bool:
        return device_id in self._clients

    def get(self, device_id: str) -> ClientState:
        state = self._clients.get(device_id)
        if state is None:
            state = ClientState(device_id, camera_factory=self._camera_factory)
            self._clients[device_id] = state
            logger.info(f"[CLIENTS] New client {device_id}")
        state.touch()
        return state

    async def drop_idle(self, ttl_sec: float) -> int:
        """Closes clients idle for longer than `ttl_sec`. Busy sessions are kept."""
        now = time.monotonic()
        stale = [
            device_id for device_id, state in self._clients.items()
            if now - state.last_seen > ttl_sec
            and not state.session.is_busy
            and not state.subscriptions
        ]
        for device_id in stale:
            state = self._clients.pop(device_id)
            await state.close()
        if stale:
            logger.info(f"[CLIENTS] Dropped {len(stale)} idle clients")
        return len(stale)

    async def close_all(self) -> None:
        for state in list(self._clients.values()):
            await state.close()
        self._clients.clear()
