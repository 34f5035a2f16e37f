"""
Sign-in routes. Failures never produce error responses: they come back as
`config_notice` on the auth state so the UI can show a dismissible banner.
"""

from fastapi import APIRouter, Depends

from kyc_shield.core.dependencies import get_client_state
from kyc_shield.schemas.auth import AuthStateResponse, LoginRequest
from kyc_shield.services.clients import ClientState

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.get("/state", response_model=AuthStateResponse)
async def auth_state(state: ClientState = Depends(get_client_state)):
    return state.auth.to_response()


@router.post("/login", response_model=AuthStateResponse)
async def login(payload: LoginRequest, state: ClientState = Depends(get_client_state)):
    await state.sign_in(payload.id_token)
    return state.auth.to_response()


@router.post("/logout", response_model=AuthStateResponse)
async def logout(state: ClientState = Depends(get_client_state)):
    state.sign_out()
    return state.auth.to_response()


@router.post("/dismiss-notice", response_model=AuthStateResponse)
async def dismiss_notice(state: ClientState = Depends(get_client_state)):
    state.auth.dismiss_notice()
    return state.auth.to_response()
