from typing import Optional


class SoundSenseError(Exception):
    """Base class for errors raised by soundsense."""


class BackendInitError(SoundSenseError):
    """The classifier backend could not be created (missing model, bad options)."""


class ClassificationUnavailable(SoundSenseError):
    """A classify call finished without producing a result."""


class BackendRuntimeError(SoundSenseError):
    """The backend failed while classifying.

    ``timestamp_ms`` is the correlation token of the failed asynchronous
    call, or None for synchronous calls.
    """

    def __init__(self, message: str, timestamp_ms: Optional[int] = None):
        super().__init__(message)
        self.timestamp_ms = timestamp_ms


class CaptureError(SoundSenseError):
    """The audio capture source could not be opened or driven."""
