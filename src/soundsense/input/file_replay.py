"""
Replays a recorded clip as though it were a live microphone.

The playhead advances with wall time between start() and stop(), so the
scheduler sees the same "latest window" behavior it gets from real capture.
Useful for demos and tests without audio hardware.
"""

import time
from typing import Callable

import numpy as np

from soundsense.input.capture_source import RecordingState
from soundsense.input.wav_loader import wav_to_frame
from soundsense.models.audio_data import AudioFrame
from soundsense.utils.logger import get_logger

logger = get_logger("soundsense.FileReplayCapture")


class FileReplayCaptureSource:
    def __init__(
        self,
        frame: AudioFrame,
        loop: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.sample_rate = frame.sample_rate
        self.channels = frame.channels
        self.loop = loop
        self._samples = frame.samples
        self._clock = clock
        self._state = RecordingState.STOPPED
        self._started_at = 0.0
        self._elapsed = 0.0  # seconds played before the current start()

    @classmethod
    def from_wav(
        cls,
        wav_path: str,
        sample_rate: int = 16000,
        loop: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> "FileReplayCaptureSource":
        frame = wav_to_frame(wav_path, target_sr=sample_rate)
        logger.info(f"Replaying {wav_path}: {frame.duration_ms / 1000:.2f}s, loop={loop}")
        return cls(frame, loop=loop, clock=clock)

    @property
    def recording_state(self) -> RecordingState:
        return self._state

    @property
    def total_samples(self) -> int:
        return int(self._samples.shape[0])

    @property
    def finished(self) -> bool:
        return not self.loop and self.position >= self.total_samples

    @property
    def position(self) -> int:
        """Number of samples played so far."""
        elapsed = self._elapsed
        if self._state == RecordingState.RECORDING:
            elapsed += self._clock() - self._started_at
        pos = int(elapsed * self.sample_rate)
        if not self.loop:
            pos = min(pos, self.total_samples)
        return pos

    def start(self):
        if self._state == RecordingState.RECORDING:
            return
        self._started_at = self._clock()
        self._state = RecordingState.RECORDING

    def stop(self):
        if self._state == RecordingState.STOPPED:
            return
        self._elapsed += self._clock() - self._started_at
        self._state = RecordingState.STOPPED

    def close(self):
        self.stop()

    def read_latest_window(self, num_samples: int) -> np.ndarray:
        out = np.zeros(max(0, num_samples), dtype=np.float32)
        if num_samples <= 0 or self.total_samples == 0:
            return out

        pos = self.position
        idx = np.arange(pos - num_samples, pos)
        valid = idx >= 0
        if self.loop:
            out[valid] = self._samples[idx[valid] % self.total_samples]
        else:
            out[valid] = self._samples[idx[valid]]
        return out
