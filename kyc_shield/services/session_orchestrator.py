"""
Verification session state machine.

    idle --start_camera--> capturing --begin_liveness--> prompting
         --(prompts done, frame captured, camera released)--> analyzing
         --(verdict or synthesized failure)--> result --reset--> idle

A failed camera acquisition goes straight back to idle. The prompt
sequence and the analysis run as one background task; nothing can
interrupt it. The analysis call is raced against a fixed deadline and any
failure becomes FAILED_VERDICT, so once prompting starts the session
always reaches `result` (or `idle` if the camera dies mid-capture).
"""

import asyncio
import logging
import random
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi.concurrency import run_in_threadpool

from kyc_shield.config import settings
from kyc_shield.core.errors import DeviceAccessError, InvalidTransitionError
from kyc_shield.integrations.camera import default_camera_factory
from kyc_shield.schemas.auth import SessionContext
from kyc_shield.schemas.verification import (
    FAILED_VERDICT,
    ActivityLogEntry,
    Metrics,
    SessionStateResponse,
    Stage,
    Verdict,
    VerdictView,
)
from kyc_shield.services import analysis_service, scans_service

logger = logging.getLogger(__name__)


class ActivityLog:
    """Per-client log of user-visible events, newest last."""

    def __init__(self, max_entries: int = settings.activity_log_max_entries):
        self._entries: list[ActivityLogEntry] = []
        self._max_entries = max_entries
        self._counter = 0
        self.add("System Initialized", "system")

    def add(self, message: str, kind: str = "info") -> None:
        self._counter += 1
        self._entries.append(ActivityLogEntry(
            id=str(self._counter),
            timestamp=datetime.now(timezone.utc),
            message=message,
            kind=kind,
        ))
        del self._entries[:-self._max_entries]

    def entries(self) -> list[ActivityLogEntry]:
        return list(self._entries)


class VerificationSession:
    def __init__(
        self,
        activity: ActivityLog,
        camera_factory: Callable = default_camera_factory,
        sleep: Callable = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        self._activity = activity
        self._camera_factory = camera_factory
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._camera = None
        self._task: Optional[asyncio.Task] = None
        self._background: set[asyncio.Task] = set()
        self._attempt = 0
        self._clear()

    def _clear(self) -> None:
        # Any in-flight acquisition belongs to a previous attempt from here on.
        self._attempt += 1
        self.stage = Stage.IDLE
        self.instruction: Optional[str] = None
        self.captured_frame: Optional[bytes] = None
        self.verdict: Optional[Verdict] = None
        self.metrics = Metrics()
        self.error: Optional[str] = None

    @property
    def is_busy(self) -> bool:
        return self.stage in (Stage.PROMPTING, Stage.ANALYZING)

    def _require(self, action: str, *stages: Stage) -> None:
        if self.stage not in stages:
            raise InvalidTransitionError(f"Cannot {action} while the session is {self.stage.value}.")

    # ------------------------------------------------------------------ #
    # Transitions                                                         #
    # ------------------------------------------------------------------ #

    async def start_camera(self) -> None:
        """idle -> capturing. Raises DeviceAccessError after falling back to idle."""
        self._require("start the camera", Stage.IDLE)
        self.stage = Stage.CAPTURING
        self.error = None
        attempt = self._attempt
        self._activity.add("Initializing Camera Stream...", "system")

        camera = self._camera_factory()
        try:
            await run_in_threadpool(camera.open)
        except Exception as e:
            await run_in_threadpool(camera.release)
            if attempt != self._attempt:
                raise InvalidTransitionError("Camera acquisition was abandoned.") from e
            error = e if isinstance(e, DeviceAccessError) else DeviceAccessError()
            self.stage = Stage.IDLE
            self.error = error.message
            self._activity.add("Camera access denied.", "alert")
            logger.warning(f"[SESSION] Camera acquisition failed: {e}")
            raise error from e

        if attempt != self._attempt:
            await run_in_threadpool(camera.release)
            logger.info("[SESSION] Camera opened after the session was left; released")
            raise InvalidTransitionError("Camera acquisition was abandoned.")

        self._camera = camera
        self._activity.add("Video Stream Connected.", "success")

    def begin_liveness(self, context: SessionContext, admit: Optional[Callable[[], None]] = None) -> asyncio.Task:
        """
        capturing -> prompting. Returns the task that drives the rest of the attempt.

        `admit` runs once the transition is known to be valid and may raise
        to refuse the run (the rate limiter does).
        """
        self._require("begin the liveness check", Stage.CAPTURING)
        if self._camera is None:
            raise InvalidTransitionError("Cannot begin the liveness check while the camera is starting.")
        if admit is not None:
            admit()
        self.stage = Stage.PROMPTING
        self._task = asyncio.create_task(self._run(context))
        return self._task

    def reset(self) -> None:
        """result -> idle, dropping every trace of the previous attempt."""
        self._require("reset", Stage.RESULT)
        self._clear()
        self._activity.add("Session reset. Ready for next applicant.", "system")

    async def abandon(self) -> None:
        """The client navigated away: release the camera and start over."""
        self._require("leave the session", Stage.IDLE, Stage.CAPTURING, Stage.RESULT)
        await self._release_camera()
        self._clear()

    async def close(self) -> None:
        """Forcible teardown for shutdown and idle-client cleanup."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        await self._release_camera()
        self._clear()

    # ------------------------------------------------------------------ #
    # Liveness run                                                        #
    # ------------------------------------------------------------------ #

    async def _run(self, context: SessionContext) -> None:
        try:
            await self._present_prompts()
            frame = await self._capture_frame()
            if frame is None:
                return

            self.stage = Stage.ANALYZING
            self._activity.add("Uploading frame to Secure AI Enclave...", "system")
            verdict = await self._analyze(frame)
            self._publish(verdict, context)
        except Exception as e:
            logger.exception(f"[SESSION] Liveness run crashed: {e}")
            await self._release_camera()
            self._clear()
            self.error = "Verification could not be completed. Please retry."
            self._activity.add(self.error, "alert")

    async def _present_prompts(self) -> None:
        for prompt in settings.liveness_prompts:
            self.instruction = prompt
            self._activity.add(f"Liveness Check: {prompt}", "info")
            await self._sleep(settings.liveness_prompt_dwell_sec)

        self.instruction = settings.hold_still_prompt
        await self._sleep(settings.hold_still_dwell_sec)
        self.instruction = None

    async def _capture_frame(self) -> Optional[bytes]:
        self._activity.add("Capturing high-res frame...", "info")
        camera = self._camera
        try:
            frame = await run_in_threadpool(camera.capture_jpeg, settings.capture_jpeg_quality)
        except Exception as e:
            error = e if isinstance(e, DeviceAccessError) else DeviceAccessError(f"Camera capture failed: {e}")
            logger.warning(f"[SESSION] Frame capture failed: {e}")
            await self._release_camera()
            self._clear()
            self.error = error.message
            self._activity.add(f"Capture failed: {error.message}", "alert")
            return None

        await self._release_camera()
        self.captured_frame = frame
        return frame

    async def _analyze(self, frame: bytes) -> Verdict:
        started = time.monotonic()
        try:
            verdict = await analysis_service.request_verdict(frame)
        except Exception as e:
            message = getattr(e, "message", str(e))
            logger.warning(f"[SESSION] Verification failed: {message}")
            self._activity.add(f"Verification failed: {message}", "alert")
            return FAILED_VERDICT

        duration_ms = int((time.monotonic() - started) * 1000)
        self._activity.add(f"Analysis complete in {duration_ms}ms", "info")
        return verdict

    def _publish(self, verdict: Verdict, context: SessionContext) -> None:
        self.verdict = verdict
        self.metrics = Metrics(
            confidence=verdict.confidence,
            blink_rate=self._rng.randint(settings.blink_rate_min, settings.blink_rate_max),
            texture_status="artifacts" if verdict.issues else "clean",
        )

        if verdict.is_real:
            self._activity.add(f"VERIFIED: {verdict.message}", "success")
        else:
            self._activity.add(f"REJECTED: {verdict.message}", "alert")
            for issue in verdict.issues:
                self._activity.add(f"FLAG: {issue}", "alert")

        self.stage = Stage.RESULT
        logger.info(f"[SESSION] {context.device_id} reached result (real={verdict.is_real}, confidence={verdict.confidence})")

        if context.is_signed_in:
            task = asyncio.create_task(self._sync_scan(context.user.uid, verdict))
            self._background.add(task)
            task.add_done_callback(self._background.discard)

    async def _sync_scan(self, owner: str, verdict: Verdict) -> None:
        try:
            await run_in_threadpool(scans_service.save_scan, owner, verdict)
        except Exception as e:
            logger.error(f"[SESSION] Scan sync failed for {owner}: {e}")
            self._activity.add("Cloud sync failed.", "alert")
            return
        self._activity.add("Scan result synced with cloud.", "success")

    async def _release_camera(self) -> None:
        camera, self._camera = self._camera, None
        if camera is not None:
            await run_in_threadpool(camera.release)

    # ------------------------------------------------------------------ #
    # Views                                                               #
    # ------------------------------------------------------------------ #

    async def wait_for_sync(self) -> None:
        """Awaits pending cloud writes. Only shutdown and tests use this."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    def snapshot(self) -> SessionStateResponse:
        verdict_view = None
        if self.verdict is not None:
            verdict_view = VerdictView(
                is_real=self.verdict.is_real,
                confidence=self.verdict.confidence,
                issues=list(self.verdict.issues),
                message=self.verdict.message,
                headline=self.verdict.headline,
                verdict_code=self.verdict.verdict_code,
            )
        return SessionStateResponse(
            stage=self.stage,
            instruction=self.instruction,
            has_captured_frame=self.captured_frame is not None,
            verdict=verdict_view,
            metrics=self.metrics,
            error=self.error,
            activity_log=self._activity.entries(),
        )
