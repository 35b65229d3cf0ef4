from dataclasses import dataclass, field
from typing import List, Tuple

import numpy as np


@dataclass(frozen=True, eq=False)
class AudioFrame:
    """One window of audio handed to the classifier.

    The samples are copied into a read-only float32 array so a frame cannot
    change after the capture source produced it.
    """
    samples: np.ndarray   # float32 audio samples in [-1, 1]
    sample_rate: int      # sample rate in Hz
    channels: int = 1

    def __post_init__(self):
        samples = np.array(self.samples, dtype=np.float32, copy=True)
        samples.setflags(write=False)
        object.__setattr__(self, 'samples', samples)

    @property
    def num_samples(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration_ms(self) -> float:
        return self.num_samples * 1000.0 / self.sample_rate


@dataclass(frozen=True)
class Category:
    index: int
    label: str
    score: float


@dataclass(frozen=True)
class ClassificationResult:
    categories: Tuple[Category, ...]  # ordered by descending score
    timestamp_ms: int = 0             # correlation token of the classify call
    inference_time_ms: int = 0

    @property
    def top(self):
        return self.categories[0] if self.categories else None


@dataclass
class ResultBundle:
    results: List[ClassificationResult] = field(default_factory=list)
    inference_time_ms: int = 0
