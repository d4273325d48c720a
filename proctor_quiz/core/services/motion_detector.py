"""Webcam motion heuristic based on grayscale frame differencing.

Frames are sampled down to a fixed resolution (nearest-pixel sampling) before
they are compared, so the pixel-count threshold does not depend on the camera's
native resolution.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import threading
from typing import Callable

import numpy as np

from proctor_quiz.core.errors import CameraUnavailableError
from proctor_quiz.core.ports import FrameStream

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MotionReading:
    changed_pixels: int
    total_pixels: int
    motion: bool

    @property
    def changed_ratio(self) -> float:
        return self.changed_pixels / self.total_pixels if self.total_pixels else 0.0


class MotionDetector:
    """Compares each sample with the previous one."""

    def __init__(
        self,
        sample_width: int = 160,
        sample_height: int = 120,
        pixel_threshold: int = 40,
        changed_ratio: float = 0.01,
    ) -> None:
        self._sample_width = sample_width
        self._sample_height = sample_height
        self._pixel_threshold = pixel_threshold
        self._changed_ratio = changed_ratio
        self._previous: np.ndarray | None = None

    def to_grayscale(self, frame: np.ndarray) -> np.ndarray:
        """Downsample a frame and average its colour channels into luminance."""
        if frame.ndim not in (2, 3):
            raise ValueError(f"Unsupported frame shape {frame.shape}.")
        height, width = frame.shape[:2]
        if height == 0 or width == 0:
            raise ValueError("Frame is empty.")
        rows = np.linspace(0, height - 1, self._sample_height).astype(np.intp)
        cols = np.linspace(0, width - 1, self._sample_width).astype(np.intp)
        sampled = frame[np.ix_(rows, cols)].astype(np.float32)
        if sampled.ndim == 3:
            sampled = sampled[:, :, :3].mean(axis=2)
        return sampled

    def compare(self, frame: np.ndarray) -> MotionReading | None:
        """Return the reading against the previous sample, or None for the first sample."""
        current = self.to_grayscale(frame)
        previous = self._previous
        self._previous = current
        if previous is None:
            return None
        changed = int(np.count_nonzero(np.abs(current - previous) > self._pixel_threshold))
        total = current.size
        return MotionReading(
            changed_pixels=changed,
            total_pixels=total,
            motion=changed > total * self._changed_ratio,
        )

    def reset(self) -> None:
        self._previous = None


class MotionSampler:
    """Reads the camera on a fixed interval and reports detected motion."""

    def __init__(
        self,
        stream: FrameStream,
        detector: MotionDetector,
        on_motion: Callable[[MotionReading], None],
        on_failure: Callable[[CameraUnavailableError], None],
        interval_ms: int = 2000,
    ) -> None:
        self._stream = stream
        self._detector = detector
        self._on_motion = on_motion
        self._on_failure = on_failure
        self._interval_seconds = interval_ms / 1000
        self._task: asyncio.Task[None] | None = None
        self._read_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="motion-sampler")

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self._detector.reset()

    def release(self) -> None:
        """Stop sampling and release the stream once any in-flight read has returned."""
        self.stop()
        with self._read_lock:
            self._stream.stop()

    def sample_once(self, frame: np.ndarray) -> MotionReading | None:
        reading = self._detector.compare(frame)
        if reading is not None and reading.motion:
            logger.info(
                "Motion detected: %d of %d sampled pixels changed",
                reading.changed_pixels,
                reading.total_pixels,
            )
            self._on_motion(reading)
        return reading

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval_seconds)
            try:
                frame = await asyncio.to_thread(self._read_frame)
            except CameraUnavailableError as exc:
                logger.warning("Camera stream failed: %s", exc)
                self._task = None
                self._on_failure(exc)
                return
            self.sample_once(frame)

    def _read_frame(self) -> np.ndarray:
        with self._read_lock:
            return self._stream.read_frame()
