"""Exception hierarchy for the proctored quiz core."""

from __future__ import annotations


class ProctorQuizError(Exception):
    """Base class for errors raised by the quiz core."""


class CapabilityError(ProctorQuizError):
    """A device capability is unsupported or access was denied."""


class CameraUnavailableError(CapabilityError):
    """Camera access was denied or no camera could be opened.

    Fatal for a session: proctoring cannot run without it.
    """


class SpeechUnavailableError(CapabilityError):
    """Speech synthesis is unsupported. The session continues without it."""


class TransientIOError(ProctorQuizError):
    """An activity-log write or answer sync failed and may be retried later."""


class QuestionGenerationError(ProctorQuizError):
    """The question source returned nothing usable."""


class QuestionBankError(QuestionGenerationError):
    """Raised when a question bank file cannot be parsed."""


class SessionNotFoundError(ProctorQuizError, LookupError):
    """No live, stored, or remote session exists for the given id."""
