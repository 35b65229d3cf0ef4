from .exceptions import (
    BackendInitError,
    BackendRuntimeError,
    CaptureError,
    ClassificationUnavailable,
    SoundSenseError,
)
from .logger import get_logger

__all__ = [
    'BackendInitError',
    'BackendRuntimeError',
    'CaptureError',
    'ClassificationUnavailable',
    'SoundSenseError',
    'get_logger',
]
