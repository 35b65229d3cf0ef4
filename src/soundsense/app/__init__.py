from .backends import (
    BaseClassifierBackend,
    ClassifierBackend,
    TFLiteAudioBackend,
    TransformersAudioBackend,
    create_backend,
    load_labels,
)
from .scheduler import (
    CallbackListener,
    ClassifierListener,
    StreamingClassificationScheduler,
    compute_buffer_size,
    compute_interval,
)
from .timer import PeriodicTimer

__all__ = [
    'BaseClassifierBackend',
    'CallbackListener',
    'ClassifierBackend',
    'ClassifierListener',
    'PeriodicTimer',
    'StreamingClassificationScheduler',
    'TFLiteAudioBackend',
    'TransformersAudioBackend',
    'compute_buffer_size',
    'compute_interval',
    'create_backend',
    'load_labels',
]
