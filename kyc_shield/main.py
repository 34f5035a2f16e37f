import os
import asyncio
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Load environment variables at the very beginning
load_dotenv()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

from kyc_shield.api import auth, chat, history, realtime, system, verification
from kyc_shield.config import settings
from kyc_shield.core import dependencies
from kyc_shield.core.errors import KycError
from kyc_shield.integrations import firebase, redis_client
from kyc_shield.integrations.gemini import client as gemini_client

# Background cleanup task
cleanup_task = None

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Credentials": "true",
    "Access-Control-Allow-Methods": "*",
    "Access-Control-Allow-Headers": "*",
}


async def periodic_cleanup():
    """Drops idle clients (and releases their cameras) every cleanup interval."""
    while True:
        try:
            await asyncio.sleep(settings.cleanup_interval_sec)
            await dependencies.registry.drop_idle(settings.client_idle_ttl_sec)
            logger.debug("[CLEANUP] Periodic cleanup completed")
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.error(f"[CLEANUP] Error in periodic cleanup: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    global cleanup_task

    firebase.initialize()
    redis_client.initialize()
    gemini_client.initialize()

    if not os.getenv("TESTING"):
        cleanup_task = asyncio.create_task(periodic_cleanup())
        logger.info("[STARTUP] Background cleanup task started")

    yield

    if cleanup_task:
        cleanup_task.cancel()
        try:
            await cleanup_task
        except asyncio.CancelledError:
            pass
        logger.info("[SHUTDOWN] Background cleanup task stopped")

    await dependencies.registry.close_all()
    logger.info("[SHUTDOWN] All client sessions closed")


app = FastAPI(title="KYC Shield API", lifespan=lifespan)


# ---- Error handlers ----
# CORS headers are forced onto every error response so the frontend can read
# the JSON body instead of getting a generic Network Error.
@app.exception_handler(StarletteHTTPException)
async def custom_http_exception_handler(request: Request, exc: StarletteHTTPException):
    headers = dict(getattr(exc, "headers", None) or {})
    headers.update(_CORS_HEADERS)
    logger.info(f"[ERROR HANDLER] Returning {exc.status_code} to client. Body: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)


@app.exception_handler(KycError)
async def kyc_error_handler(request: Request, exc: KycError):
    logger.info(f"[ERROR HANDLER] {exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.to_detail()},
        headers=dict(_CORS_HEADERS),
    )


# ---- CORS ----
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(system.router)
app.include_router(auth.router)
app.include_router(verification.router)
app.include_router(history.router)
app.include_router(chat.router)
app.include_router(realtime.router)


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    uvicorn.run("kyc_shield.main:app", host="0.0.0.0", port=port, log_level="info")
