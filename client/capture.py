# =============================================================================
# Person Narrator - Camera Capture & Capture Loop
# =============================================================================
# Provides CameraCapture, which reads frames from an OpenCV camera and turns
# the most recent one into a downscaled JPEG, and CaptureLoop, which takes
# one photo, submits it to the gateway, and refuses to start a second
# capture while one is still in flight.
# =============================================================================

import asyncio
import io
import logging
from typing import Callable, Optional

import cv2
import numpy as np
from PIL import Image

from client.api import InferenceClient
from shared.schemas import InferResponse

logger = logging.getLogger(__name__)


class CameraError(RuntimeError):
    """Raised when the camera cannot be opened or delivers no frame."""


class CameraCapture:
    """
    Frame source backed by ``cv2.VideoCapture``.

    The preview loop calls :meth:`read` continuously; :meth:`capture_jpeg`
    encodes whatever frame is current, so taking a photo never competes with
    the preview for the device.

    Args:
        camera_index: OpenCV camera index (0 = default camera).
        max_width:    Frames wider than this are downscaled before encoding.
        jpeg_quality: Pillow JPEG quality (1-95).
    """

    def __init__(self, camera_index: int = 0, max_width: int = 640, jpeg_quality: int = 85):
        self._camera_index = camera_index
        self._max_width = max_width
        self._jpeg_quality = jpeg_quality
        self._capture: Optional[cv2.VideoCapture] = None
        self._latest: Optional[np.ndarray] = None

    def open(self) -> None:
        """Open the camera device."""
        if self._capture is not None:
            return
        capture = cv2.VideoCapture(self._camera_index)
        if not capture.isOpened():
            capture.release()
            raise CameraError(f"Cannot open camera {self._camera_index}")
        self._capture = capture
        logger.info("Camera %d opened", self._camera_index)

    def read(self) -> np.ndarray:
        """
        Grab the next frame from the camera and remember it as current.

        Returns:
            BGR frame as a numpy array.

        Raises:
            CameraError: If the camera is closed or returns no frame.
        """
        if self._capture is None:
            raise CameraError("Camera not open.")
        ok, frame = self._capture.read()
        if not ok or frame is None:
            raise CameraError("Camera not ready yet.")
        self._latest = frame
        return frame

    def encode_jpeg(self, frame: np.ndarray) -> bytes:
        """
        Downscale a BGR frame to ``max_width`` (keeping aspect) and JPEG-encode it.

        Args:
            frame: BGR numpy array as returned by OpenCV.

        Returns:
            JPEG bytes.
        """
        if frame is None or frame.size == 0:
            raise CameraError("Failed to capture photo.")

        image = Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
        if image.width > self._max_width:
            height = max(1, round(image.height * self._max_width / image.width))
            image = image.resize((self._max_width, height), Image.BILINEAR)

        buffer = io.BytesIO()
        image.save(buffer, format="JPEG", quality=self._jpeg_quality)
        logger.debug("Encoded %dx%d frame (%d KB)", image.width, image.height, buffer.tell() // 1024)
        return buffer.getvalue()

    def capture_jpeg(self) -> bytes:
        """Encode the current frame, reading one first if none is available."""
        frame = self._latest if self._latest is not None else self.read()
        return self.encode_jpeg(frame)

    def close(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info("Camera released.")


class CaptureLoop:
    """
    Capture a photo and submit it to the gateway, one capture at a time.

    Single taps, long presses and auto-repeat cycles all go through the same
    loop, so a busy capture drops any new request instead of queueing it.

    Args:
        camera: Frame source.
        client: Gateway HTTP client (blocking; called off the event loop).
        status: Receives short status texts for the user interface.
    """

    def __init__(
        self,
        camera: CameraCapture,
        client: InferenceClient,
        status: Optional[Callable[[str], None]] = None,
    ):
        self._camera = camera
        self._client = client
        self._status = status or (lambda text: None)
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    async def capture_and_infer(self, mode: str = "detect", debug: bool = False) -> Optional[InferResponse]:
        """
        Take a photo and analyze it.

        Args:
            mode:  Gateway mode, "detect" or "vi".
            debug: Request extraction diagnostics.

        Returns:
            The gateway response, or None if another capture was in flight.

        Raises:
            CameraError: When no frame could be captured.
            InferenceError: When the gateway reports a failure.
        """
        if self._busy:
            logger.debug("Capture (%s) dropped: previous capture still in flight", mode)
            return None

        self._busy = True
        try:
            self._status("Taking photo...")
            image = self._camera.capture_jpeg()

            self._status("Analyzing...")
            return await asyncio.to_thread(self._client.infer, image, mode, debug)
        finally:
            self._busy = False
