"""
Configuration for the streaming classifier.

ClassifierOptions holds the construction-time settings and is validated
eagerly so that bad thresholds or result counts fail before any backend is
loaded. CaptureConfig is the derived window/overlap description the
scheduler works from.
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

FLOAT32_BYTES = 4


class RunningMode(Enum):
    """How the classifier is driven"""
    AUDIO_CLIPS = "audio_clips"    # one-shot, caller supplies each frame
    AUDIO_STREAM = "audio_stream"  # scheduler captures and classifies periodically


@dataclass(frozen=True)
class CaptureConfig:
    sample_rate_hz: int
    required_window_samples: int
    overlap_factor: float
    channels: int = 1
    buffer_size_factor: int = 2

    def __post_init__(self):
        if self.sample_rate_hz <= 0:
            raise ValueError(f"sample_rate_hz must be positive, got {self.sample_rate_hz}")
        if self.required_window_samples <= 0:
            raise ValueError(
                f"required_window_samples must be positive, got {self.required_window_samples}"
            )
        if not 0.0 <= self.overlap_factor < 1.0:
            raise ValueError(f"overlap_factor must be in [0, 1), got {self.overlap_factor}")
        if self.channels <= 0:
            raise ValueError(f"channels must be positive, got {self.channels}")
        if self.buffer_size_factor <= 0:
            raise ValueError(
                f"buffer_size_factor must be positive, got {self.buffer_size_factor}"
            )

    @property
    def window_duration_ms(self) -> float:
        return self.required_window_samples * 1000.0 / self.sample_rate_hz


@dataclass(frozen=True)
class ClassifierOptions:
    score_threshold: float = 0.1
    max_results: int = 3
    model_name: str = "yamnet.tflite"
    running_mode: RunningMode = RunningMode.AUDIO_STREAM
    overlap: int = 2  # quarter steps, 2 -> 0.5
    sample_rate_hz: int = 16000
    expected_input_seconds: float = 0.975  # YAMNet expects 0.975 s windows
    labels_path: Optional[str] = None
    device: str = "cpu"

    MAX_OVERLAP = 3

    def __post_init__(self):
        if not 0.0 <= self.score_threshold <= 1.0:
            raise ValueError(f"score_threshold must be in [0, 1], got {self.score_threshold}")
        if self.max_results < 1:
            raise ValueError(f"max_results must be at least 1, got {self.max_results}")
        if not self.model_name:
            raise ValueError("model_name must not be empty")
        if not 0 <= self.overlap <= self.MAX_OVERLAP:
            raise ValueError(f"overlap must be in 0..{self.MAX_OVERLAP}, got {self.overlap}")
        if self.sample_rate_hz <= 0:
            raise ValueError(f"sample_rate_hz must be positive, got {self.sample_rate_hz}")
        if self.expected_input_seconds <= 0:
            raise ValueError(
                f"expected_input_seconds must be positive, got {self.expected_input_seconds}"
            )
        if not isinstance(self.running_mode, RunningMode):
            object.__setattr__(self, 'running_mode', RunningMode(self.running_mode))

    @property
    def is_streaming(self) -> bool:
        return self.running_mode is RunningMode.AUDIO_STREAM

    @property
    def overlap_factor(self) -> float:
        return self.overlap * 0.25

    @property
    def required_window_samples(self) -> int:
        return int(round(self.sample_rate_hz * self.expected_input_seconds))

    @property
    def capture_config(self) -> CaptureConfig:
        return CaptureConfig(
            sample_rate_hz=self.sample_rate_hz,
            required_window_samples=self.required_window_samples,
            overlap_factor=self.overlap_factor,
        )

    @classmethod
    def from_env(cls, prefix: str = "SOUNDSENSE_") -> "ClassifierOptions":
        """Build options from environment variables, falling back to defaults."""
        env = os.environ
        defaults = cls()
        return cls(
            score_threshold=float(env.get(prefix + "SCORE_THRESHOLD", defaults.score_threshold)),
            max_results=int(env.get(prefix + "MAX_RESULTS", defaults.max_results)),
            model_name=env.get(prefix + "MODEL", defaults.model_name),
            running_mode=RunningMode(env.get(prefix + "RUNNING_MODE", defaults.running_mode.value)),
            overlap=int(env.get(prefix + "OVERLAP", defaults.overlap)),
            sample_rate_hz=int(env.get(prefix + "SAMPLE_RATE", defaults.sample_rate_hz)),
            expected_input_seconds=float(
                env.get(prefix + "INPUT_SECONDS", defaults.expected_input_seconds)
            ),
            labels_path=env.get(prefix + "LABELS_PATH") or None,
            device=env.get(prefix + "DEVICE", defaults.device),
        )
