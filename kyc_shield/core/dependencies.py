"""
FastAPI dependencies that turn a request into explicit client objects.

`registry` is the process-wide ClientRegistry; routes never reach for it
directly; they receive a ClientState and a SessionContext instead.
"""

from fastapi import Depends, Header

from kyc_shield.core.auth import validate_device_id
from kyc_shield.schemas.auth import SessionContext
from kyc_shield.services.clients import ClientRegistry, ClientState

registry = ClientRegistry()


def get_client_state(device_id: str = Header(..., alias="X-Device-ID")) -> ClientState:
    validate_device_id(device_id)
    return registry.get(device_id)


def get_session_context(state: ClientState = Depends(get_client_state)) -> SessionContext:
    return state.context()
