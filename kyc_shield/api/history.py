"""
Scan history. Anonymous clients always get the empty history.
"""

from typing import List

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from kyc_shield.core.dependencies import get_session_context
from kyc_shield.schemas.auth import SessionContext
from kyc_shield.schemas.history import ScanRecord
from kyc_shield.services.scans_service import list_scans

router = APIRouter(prefix="/api", tags=["History"])


@router.get("/history", response_model=List[ScanRecord])
async def get_history(context: SessionContext = Depends(get_session_context)):
    return await run_in_threadpool(list_scans, context)
