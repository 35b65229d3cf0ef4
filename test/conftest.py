import os
import threading
import time

import numpy as np
import pytest

# Keep test runs from writing soundsense.log into the working tree
os.environ.setdefault("SOUNDSENSE_LOG_FILE", "")

from soundsense.config import ClassifierOptions, RunningMode
from soundsense.input.capture_source import RecordingState
from soundsense.models.audio_data import Category, ClassificationResult
from soundsense.utils.exceptions import BackendInitError, BackendRuntimeError


def wait_for(predicate, timeout=2.0, interval=0.005):
    """Poll until predicate() is truthy or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())


def make_result(label="Speech", score=0.9, timestamp_ms=0):
    return ClassificationResult(
        categories=(Category(index=0, label=label, score=score),),
        timestamp_ms=timestamp_ms,
    )


class FakeBackend:
    """Backend that records calls; async calls complete only when told to."""

    def __init__(self, options, result_listener=None, error_listener=None,
                 sync_result="default", auto_complete=False):
        self.options = options
        self.result_listener = result_listener
        self.error_listener = error_listener
        self.sync_result = make_result() if sync_result == "default" else sync_result
        self.auto_complete = auto_complete
        self.async_calls = []
        self.sync_calls = []
        self.closed = False
        self.lock = threading.Lock()

    def classify(self, frame):
        self.sync_calls.append(frame)
        if isinstance(self.sync_result, Exception):
            raise self.sync_result
        return self.sync_result

    def classify_async(self, frame, timestamp_ms):
        if self.closed:
            raise BackendRuntimeError("Classifier backend is closed", timestamp_ms)
        with self.lock:
            self.async_calls.append((frame, timestamp_ms))
        if self.auto_complete:
            self.complete(timestamp_ms)

    def complete(self, timestamp_ms, label="Speech"):
        self.result_listener(make_result(label=label, timestamp_ms=timestamp_ms))

    def fail(self, timestamp_ms, message="model exploded"):
        self.error_listener(BackendRuntimeError(message, timestamp_ms))

    def close(self):
        self.closed = True


class FakeCapture:
    def __init__(self, sample_rate=16000, channels=1, buffer_size_bytes=0):
        self.sample_rate = sample_rate
        self.channels = channels
        self.buffer_size_bytes = buffer_size_bytes
        self.recording_state = RecordingState.STOPPED
        self.start_calls = 0
        self.stop_calls = 0
        self.closed = False

    def start(self):
        self.start_calls += 1
        self.recording_state = RecordingState.RECORDING

    def stop(self):
        self.stop_calls += 1
        self.recording_state = RecordingState.STOPPED

    def read_latest_window(self, num_samples):
        return np.full(num_samples, 0.25, dtype=np.float32)

    def close(self):
        self.closed = True


class RecordingListener:
    def __init__(self):
        self.results = []
        self.errors = []

    def on_result(self, result_bundle):
        self.results.append(result_bundle)

    def on_error(self, error):
        self.errors.append(error)


class Factories:
    """Backend and capture factories that keep a handle on what they built."""

    def __init__(self, **backend_kwargs):
        self.backend_kwargs = backend_kwargs
        self.backends = []
        self.captures = []
        self.backend_error = None
        self.capture_error = None

    def backend(self, options, result_listener, error_listener):
        if self.backend_error is not None:
            raise self.backend_error
        backend = FakeBackend(options, result_listener, error_listener, **self.backend_kwargs)
        self.backends.append(backend)
        return backend

    def capture(self, config, buffer_size_bytes):
        if self.capture_error is not None:
            raise self.capture_error
        capture = FakeCapture(config.sample_rate_hz, config.channels, buffer_size_bytes)
        self.captures.append(capture)
        return capture


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def factories():
    return Factories()


@pytest.fixture
def fast_options():
    """20 sample window at 1 kHz with no overlap: one cycle every 20 ms."""
    return ClassifierOptions(sample_rate_hz=1000, expected_input_seconds=0.02, overlap=0)


@pytest.fixture
def one_shot_options():
    return ClassifierOptions(running_mode=RunningMode.AUDIO_CLIPS)


@pytest.fixture
def failing_factories():
    f = Factories()
    f.backend_error = BackendInitError("yamnet.tflite not found")
    return f
