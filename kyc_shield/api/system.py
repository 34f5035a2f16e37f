"""
System / health routes.
"""

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from kyc_shield.integrations import firebase as firebase_module
from kyc_shield.integrations.gemini import client as gemini_module

router = APIRouter(tags=["System"])


@router.get("/health")
async def health():
    return {
        "status": "healthy",
        "gemini": gemini_module.client is not None,
        "firestore": firebase_module.db is not None,
    }


@router.get("/robots.txt", response_class=PlainTextResponse)
def robots():
    return "User-agent: *\nDisallow: /"
