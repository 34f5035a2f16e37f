"""
Verification session routes.

The session lives in the client's state between calls; the frontend polls
GET /api/verification/session (or keeps it open on a timer) to follow the
prompt sequence and pick up the verdict.
"""

import logging

from fastapi import APIRouter, Depends

from kyc_shield.core.dependencies import get_client_state
from kyc_shield.core.rate_limiter import check_rate_limit
from kyc_shield.schemas.verification import SessionStateResponse
from kyc_shield.services.clients import ClientState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/verification", tags=["Verification"])


@router.get("/session", response_model=SessionStateResponse)
async def get_session(state: ClientState = Depends(get_client_state)):
    return state.session.snapshot()


@router.post("/start", response_model=SessionStateResponse)
async def start_camera(state: ClientState = Depends(get_client_state)):
    """Acquires the camera. 503 CAMERA_ACCESS_DENIED leaves the session idle."""
    await state.session.start_camera()
    return state.session.snapshot()


@router.post("/liveness", response_model=SessionStateResponse, status_code=202)
async def begin_liveness(state: ClientState = Depends(get_client_state)):
    """Starts the prompt sequence; capture and analysis follow in the background."""
    state.session.begin_liveness(state.context(), admit=lambda: check_rate_limit(state.device_id))
    logger.info(f"[ROUTE] Liveness check started for {state.device_id}")
    return state.session.snapshot()


@router.post("/reset", response_model=SessionStateResponse)
async def reset_session(state: ClientState = Depends(get_client_state)):
    state.session.reset()
    return state.session.snapshot()


@router.delete("/session", response_model=SessionStateResponse)
async def abandon_session(state: ClientState = Depends(get_client_state)):
    await state.session.abandon()
    return state.session.snapshot()
