"""Turns raw browser and webcam signals into integrity events.

Sources:
    * visibility: the page became hidden -> ``tab_switch``
    * clipboard: copy/cut/paste -> ``clipboard_*`` and the action is suppressed
    * context menu: right click -> ``context_menu`` and the menu is suppressed
    * fullscreen: tracked for display only, never an integrity event
    * webcam: frame differencing -> ``motion_detected``

The monitor only reacts while active. It becomes active once the camera has
been granted and stops for good on ``close()``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Callable

from proctor_quiz.core.errors import CameraUnavailableError
from proctor_quiz.core.models import IntegrityEvent, IntegrityEventKind
from proctor_quiz.core.ports import CameraPort, FrameStream
from proctor_quiz.core.services.event_bus import IntegrityEventBus
from proctor_quiz.core.services.motion_detector import MotionDetector, MotionReading, MotionSampler
from proctor_quiz.utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)


class BrowserSignal(str, Enum):
    VISIBILITY_HIDDEN = "visibility_hidden"
    VISIBILITY_VISIBLE = "visibility_visible"
    COPY = "copy"
    CUT = "cut"
    PASTE = "paste"
    CONTEXT_MENU = "context_menu"
    FULLSCREEN_ENTER = "fullscreen_enter"
    FULLSCREEN_EXIT = "fullscreen_exit"


_SIGNAL_EVENTS: dict[BrowserSignal, IntegrityEventKind] = {
    BrowserSignal.VISIBILITY_HIDDEN: IntegrityEventKind.TAB_SWITCH,
    BrowserSignal.COPY: IntegrityEventKind.CLIPBOARD_COPY,
    BrowserSignal.CUT: IntegrityEventKind.CLIPBOARD_CUT,
    BrowserSignal.PASTE: IntegrityEventKind.CLIPBOARD_PASTE,
    BrowserSignal.CONTEXT_MENU: IntegrityEventKind.CONTEXT_MENU,
}

_SUPPRESSED_SIGNALS = frozenset(
    {BrowserSignal.COPY, BrowserSignal.CUT, BrowserSignal.PASTE, BrowserSignal.CONTEXT_MENU}
)


def integrity_event_kind(signal: BrowserSignal) -> IntegrityEventKind | None:
    """Return the event kind a signal raises, or None for display-only signals."""
    return _SIGNAL_EVENTS.get(signal)


@dataclass(frozen=True, slots=True)
class SignalVerdict:
    """What the page should do with the browser action that raised the signal."""

    suppress: bool
    event: IntegrityEvent | None = None


class ProctoringMonitor:
    """Normalizes every signal source of one session onto the event bus."""

    def __init__(
        self,
        session_id: str,
        bus: IntegrityEventBus,
        camera: CameraPort,
        detector: MotionDetector,
        clock: Clock = utc_now,
        motion_interval_ms: int = 2000,
        on_camera_failure: Callable[[CameraUnavailableError], None] | None = None,
    ) -> None:
        self._session_id = session_id
        self._bus = bus
        self._camera = camera
        self._detector = detector
        self._clock = clock
        self._motion_interval_ms = motion_interval_ms
        self._on_camera_failure_callback = on_camera_failure
        self._stream: FrameStream | None = None
        self._sampler: MotionSampler | None = None
        self._active: bool = False
        self._closed: bool = False
        self._fullscreen: bool = False
        self._fullscreen_exits: int = 0
        self._camera_failure: CameraUnavailableError | None = None

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def is_fullscreen(self) -> bool:
        return self._fullscreen

    @property
    def fullscreen_exit_count(self) -> int:
        return self._fullscreen_exits

    @property
    def camera_failure(self) -> CameraUnavailableError | None:
        return self._camera_failure

    @property
    def sampler(self) -> MotionSampler | None:
        return self._sampler

    def activate(self) -> None:
        """Acquire the camera; raises CameraUnavailableError without activating."""
        if self._closed:
            raise RuntimeError("Monitor has already been closed.")
        if self._active:
            return
        try:
            self._stream = self._camera.request_stream()
        except CameraUnavailableError as exc:
            self._camera_failure = exc
            logger.warning("Camera unavailable for session %s: %s", self._session_id, exc)
            raise
        self._camera_failure = None
        self._sampler = MotionSampler(
            stream=self._stream,
            detector=self._detector,
            on_motion=self._on_motion,
            on_failure=self._on_camera_failure,
            interval_ms=self._motion_interval_ms,
        )
        self._active = True
        logger.info("Proctoring active for session %s", self._session_id)

    def start_sampling(self) -> None:
        """Start the periodic webcam sampler on the running event loop."""
        if self._active and self._sampler is not None:
            self._sampler.start()

    def handle_signal(self, signal: BrowserSignal, detail: str | None = None) -> SignalVerdict:
        if not self._active:
            return SignalVerdict(suppress=False)

        if signal is BrowserSignal.FULLSCREEN_EXIT:
            if self._fullscreen:
                self._fullscreen_exits += 1
            self._fullscreen = False
            return SignalVerdict(suppress=False)
        if signal is BrowserSignal.FULLSCREEN_ENTER:
            self._fullscreen = True
            return SignalVerdict(suppress=False)

        kind = integrity_event_kind(signal)
        suppress = signal in _SUPPRESSED_SIGNALS
        if kind is None:
            return SignalVerdict(suppress=suppress)
        event = self._publish(kind, detail)
        return SignalVerdict(suppress=suppress, event=event)

    def handle_frame(self, frame) -> MotionReading | None:
        """Feed one webcam frame directly, bypassing the sampling interval."""
        if not self._active or self._sampler is None:
            return None
        return self._sampler.sample_once(frame)

    def close(self) -> None:
        """Stop every source and release the camera. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True
        self._active = False
        sampler, stream = self._sampler, self._stream
        self._sampler = None
        self._stream = None
        if sampler is not None:
            sampler.release()
        elif stream is not None:
            stream.stop()
        logger.info("Proctoring stopped for session %s", self._session_id)

    def _on_motion(self, reading: MotionReading) -> None:
        if self._active:
            self._publish(IntegrityEventKind.MOTION_DETECTED, str(reading.changed_pixels))

    def _on_camera_failure(self, exc: CameraUnavailableError) -> None:
        self._camera_failure = exc
        self._sampler = None
        if self._on_camera_failure_callback is not None:
            self._on_camera_failure_callback(exc)

    def _publish(self, kind: IntegrityEventKind, detail: str | None) -> IntegrityEvent:
        event = IntegrityEvent(
            kind=kind,
            timestamp=self._clock(),
            session_id=self._session_id,
            detail=detail,
        )
        logger.info("Integrity event %s for session %s", kind.value, self._session_id)
        self._bus.publish(event)
        return event
