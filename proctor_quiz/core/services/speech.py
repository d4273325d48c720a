"""Reads question text aloud when a speech capability is present."""

from __future__ import annotations

import logging

from proctor_quiz.core.errors import SpeechUnavailableError
from proctor_quiz.core.ports import SpeechPort
from proctor_quiz.core.services.notice_board import NoticeBoard

logger = logging.getLogger(__name__)


class SpeechReader:
    """Wraps a SpeechPort and switches itself off on the first capability failure."""

    def __init__(self, port: SpeechPort | None, notices: NoticeBoard | None = None) -> None:
        self._port = port
        self._notices = notices
        self._enabled = port is not None

    @property
    def enabled(self) -> bool:
        return self._enabled

    def read_aloud(self, session_id: str, text: str) -> bool:
        if not self._enabled or self._port is None:
            return False
        try:
            self._port.cancel()
            self._port.speak(text)
        except SpeechUnavailableError as exc:
            self._disable(session_id, exc)
            return False
        return True

    def stop(self) -> None:
        if not self._enabled or self._port is None:
            return
        try:
            self._port.cancel()
        except SpeechUnavailableError as exc:
            logger.debug("Ignoring speech cancel failure: %s", exc)

    def _disable(self, session_id: str, exc: SpeechUnavailableError) -> None:
        self._enabled = False
        logger.warning("Speech disabled: %s", exc)
        if self._notices is not None:
            self._notices.warn(
                session_id,
                "Read aloud unavailable",
                "Text-to-speech is not supported here. You can continue the quiz without it.",
            )
