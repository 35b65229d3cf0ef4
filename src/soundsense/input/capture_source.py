from __future__ import annotations

from enum import Enum
from threading import Lock
from typing import Protocol

import numpy as np


class RecordingState(Enum):
    STOPPED = "stopped"
    RECORDING = "recording"


class CaptureSource(Protocol):
    """Anything the scheduler can pull the latest window of audio from."""

    sample_rate: int
    channels: int

    @property
    def recording_state(self) -> RecordingState: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def read_latest_window(self, num_samples: int) -> np.ndarray: ...

    def close(self) -> None: ...


class RingBuffer:
    """Fixed-capacity float32 circular buffer, safe to write from an audio callback thread."""

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._data = np.zeros(capacity, dtype=np.float32)
        self._write_pos = 0
        self._filled = 0
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return self._filled

    def write(self, chunk: np.ndarray) -> None:
        chunk = np.asarray(chunk, dtype=np.float32).ravel()
        if chunk.size == 0:
            return
        # Only the newest `capacity` samples can survive
        if chunk.size > self.capacity:
            chunk = chunk[-self.capacity:]

        with self._lock:
            end = self._write_pos + chunk.size
            if end <= self.capacity:
                self._data[self._write_pos:end] = chunk
            else:
                split = self.capacity - self._write_pos
                self._data[self._write_pos:] = chunk[:split]
                self._data[:end - self.capacity] = chunk[split:]
            self._write_pos = end % self.capacity
            self._filled = min(self.capacity, self._filled + chunk.size)

    def latest(self, num_samples: int) -> np.ndarray:
        """Return the newest `num_samples`, oldest first, zero-padded in front while filling."""
        if num_samples <= 0:
            return np.zeros(0, dtype=np.float32)

        out = np.zeros(num_samples, dtype=np.float32)
        with self._lock:
            count = min(num_samples, self._filled)
            if count == 0:
                return out
            start = (self._write_pos - count) % self.capacity
            if start + count <= self.capacity:
                recent = self._data[start:start + count]
            else:
                recent = np.concatenate((self._data[start:], self._data[:self._write_pos]))
            out[num_samples - count:] = recent
        return out

    def clear(self) -> None:
        with self._lock:
            self._data.fill(0.0)
            self._write_pos = 0
            self._filled = 0
