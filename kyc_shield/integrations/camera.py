"""
Capture device access through OpenCV.

A camera is an exclusive resource: `open()` grabs the device, `release()`
hands it back. Frames leave this module only as JPEG bytes.
"""

import io
import logging

import cv2
import numpy as np
from PIL import Image

from kyc_shield.config import settings
from kyc_shield.core.errors import DeviceAccessError

logger = logging.getLogger(__name__)


def encode_jpeg(frame_bgr: np.ndarray, quality: int) -> bytes:
    """Encodes an OpenCV BGR frame as JPEG bytes."""
    rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
    img = Image.fromarray(rgb)
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=quality)
    img.close()
    return buf.getvalue()


class OpenCVCamera:
    def __init__(
        self,
        index: int = settings.camera_index,
        width: int = settings.camera_width,
        height: int = settings.camera_height,
    ):
        self.index = index
        self.width = width
        self.height = height
        self._capture = None

    @property
    def is_open(self) -> bool:
        return self._capture is not None

    def open(self) -> None:
        if self.is_open:
            return

        capture = cv2.VideoCapture(self.index)
        if not capture.isOpened():
            capture.release()
            logger.warning(f"[CAMERA] Device {self.index} could not be opened")
            raise DeviceAccessError()

        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        for _ in range(settings.camera_warmup_frames):
            capture.read()

        self._capture = capture
        logger.info(f"[CAMERA] Device {self.index} opened at {self.width}x{self.height}")

    def capture_jpeg(self, quality: int = settings.capture_jpeg_quality) -> bytes:
        if not self.is_open:
            raise DeviceAccessError("Camera stream is not active.")

        ok, frame = self._capture.read()
        if not ok or frame is None:
            raise DeviceAccessError("Could not read a frame from the camera.")
        return encode_jpeg(frame, quality)

    def release(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info(f"[CAMERA] Device {self.index} released")


def default_camera_factory() -> OpenCVCamera:
    return OpenCVCamera()
