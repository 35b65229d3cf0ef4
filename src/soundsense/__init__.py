"""
SoundSense - streaming audio classification

Captures fixed-length audio windows on a timer, classifies them with a
pluggable backend (TFLite YAMNet by default) and reports the top labels
to a listener.
"""

from .app import (
    CallbackListener,
    StreamingClassificationScheduler,
    compute_buffer_size,
    compute_interval,
    create_backend,
)
from .config import CaptureConfig, ClassifierOptions, RunningMode
from .models import AudioFrame, Category, ClassificationResult, ResultBundle
from .state_manager import SchedulerState

__all__ = [
    'AudioFrame',
    'CallbackListener',
    'CaptureConfig',
    'Category',
    'ClassificationResult',
    'ClassifierOptions',
    'ResultBundle',
    'RunningMode',
    'SchedulerState',
    'StreamingClassificationScheduler',
    'compute_buffer_size',
    'compute_interval',
    'create_backend',
]

__version__ = '1.0.0'
