"""Camera port backed by OpenCV's VideoCapture."""

from __future__ import annotations

import logging

import cv2
import numpy as np

from proctor_quiz.constants.proctoring_constants import CAMERA_DEVICE_INDEX
from proctor_quiz.core.errors import CameraUnavailableError

logger = logging.getLogger(__name__)


class OpenCVFrameStream:
    def __init__(self, capture: cv2.VideoCapture) -> None:
        self._capture = capture

    def read_frame(self) -> np.ndarray:
        ok, frame = self._capture.read()
        if not ok or frame is None:
            raise CameraUnavailableError("Camera stopped delivering frames.")
        return frame

    def stop(self) -> None:
        self._capture.release()


class OpenCVCamera:
    """Opens the local webcam. A missing or blocked device raises CameraUnavailableError."""

    def __init__(self, device_index: int = CAMERA_DEVICE_INDEX) -> None:
        self._device_index = device_index

    def request_stream(self) -> OpenCVFrameStream:
        capture = cv2.VideoCapture(self._device_index)
        if not capture.isOpened():
            capture.release()
            raise CameraUnavailableError(
                f"Could not open camera {self._device_index}. Check that access is allowed."
            )
        logger.info("Opened camera %d", self._device_index)
        return OpenCVFrameStream(capture)
