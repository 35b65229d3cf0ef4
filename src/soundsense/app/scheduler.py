"""
Streaming audio classification scheduler.

Periodically snapshots the latest window of captured audio, submits it to
an asynchronous classifier backend and forwards results or errors to a
listener. Backend failures never propagate to the caller; they arrive as
`on_error` notifications.
"""

from __future__ import annotations

import functools
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol, Set

from soundsense.app.backends import BackendFactory, ClassifierBackend, create_backend
from soundsense.app.timer import PeriodicTimer
from soundsense.config import FLOAT32_BYTES, CaptureConfig, ClassifierOptions
from soundsense.input.capture_source import CaptureSource, RecordingState
from soundsense.models.audio_data import AudioFrame, ClassificationResult, ResultBundle
from soundsense.state_manager import SchedulerState, StateData, StateManager
from soundsense.utils.exceptions import BackendRuntimeError, ClassificationUnavailable
from soundsense.utils.logger import get_logger

logger = get_logger("soundsense.Scheduler")

CaptureFactory = Callable[[CaptureConfig, int], CaptureSource]


class ClassifierListener(Protocol):
    def on_error(self, error: str) -> None: ...

    def on_result(self, result_bundle: ResultBundle) -> None: ...


@dataclass
class CallbackListener:
    """Adapts two plain callables to the listener interface."""
    on_result: Callable[[ResultBundle], None]
    on_error: Callable[[str], None]


def compute_interval(config: CaptureConfig) -> int:
    """
    Milliseconds between capture-classify cycles.

    The window length in ms is shortened by the overlap factor, so 0.5
    overlap classifies twice per window and 0 overlap classifies back to
    back windows. Truncated toward zero, never below 1 ms.
    """
    window_ms = config.required_window_samples * 1000.0 / config.sample_rate_hz
    return max(1, int(window_ms * (1.0 - config.overlap_factor)))


def compute_buffer_size(config: CaptureConfig) -> int:
    """Capture buffer size in bytes: float32 window times the buffer factor."""
    return config.required_window_samples * FLOAT32_BYTES * config.buffer_size_factor


def open_microphone(config: CaptureConfig, buffer_size_bytes: int) -> CaptureSource:
    # Imported here so PortAudio is only loaded when a live stream is needed
    from soundsense.input.microphone import MicrophoneCaptureSource

    return MicrophoneCaptureSource.open(
        config.sample_rate_hz, buffer_size_bytes, channels=config.channels
    )


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


class StreamingClassificationScheduler:
    def __init__(
        self,
        options: Optional[ClassifierOptions] = None,
        listener: Optional[ClassifierListener] = None,
        backend_factory: BackendFactory = create_backend,
        capture_factory: CaptureFactory = open_microphone,
        skip_if_busy: bool = True,
    ):
        """
        Args:
            options: Classifier and window settings (defaults to YAMNet streaming).
            listener: Receives `on_result` / `on_error` notifications.
            backend_factory: Builds the classifier backend on initialize().
            capture_factory: Opens the capture source in stream mode.
            skip_if_busy: Skip a cycle while a previous async classification
                is still pending instead of stacking up calls.
        """
        self.options = options or ClassifierOptions()
        self.capture_config = self.options.capture_config
        self.listener = listener
        self.backend_factory = backend_factory
        self.capture_factory = capture_factory
        self.skip_if_busy = skip_if_busy

        self._state = StateManager()
        self._backend: Optional[ClassifierBackend] = None
        self._capture: Optional[CaptureSource] = None
        self._timer: Optional[PeriodicTimer] = None

        self._lock = threading.Lock()
        self._pending: Set[int] = set()
        self._last_token = 0
        self._session = 0
        self._accepting = False

        self.stats = {
            'cycles': 0,
            'skipped_cycles': 0,
            'results': 0,
            'errors': 0,
        }

    @property
    def state(self) -> SchedulerState:
        return self._state.current_state

    @property
    def interval_ms(self) -> int:
        return compute_interval(self.capture_config)

    def add_state_listener(self, callback: Callable[[StateData, SchedulerState], None]):
        self._state.register_callback(None, callback)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return self.stats.copy()

    def is_stopped(self) -> bool:
        """True when no backend is held: never initialized, failed to initialize, or stopped."""
        return self._backend is None

    def initialize(self) -> bool:
        """
        Create the backend and, in stream mode, the capture source.

        Failures are reported through `listener.on_error` and leave the
        state unchanged.

        Returns:
            bool: True if the scheduler is ready to start.
        """
        current = self._state.current_state
        if current in (SchedulerState.READY, SchedulerState.RUNNING):
            logger.warning(f"Scheduler already initialized ({current.value})")
            return True

        with self._lock:
            self._session += 1
            session = self._session

        streaming = self.options.is_streaming
        try:
            if streaming:
                backend = self.backend_factory(
                    self.options,
                    functools.partial(self._on_stream_result, session),
                    functools.partial(self._on_stream_error, session),
                )
            else:
                backend = self.backend_factory(self.options, None, None)
        except Exception as e:
            self._notify_error(f"Audio classifier failed to initialize: {e}")
            return False

        capture = None
        if streaming:
            buffer_size = compute_buffer_size(self.capture_config)
            try:
                capture = self.capture_factory(self.capture_config, buffer_size)
            except Exception as e:
                self._close_backend(backend)
                self._notify_error(f"Audio capture failed to initialize: {e}")
                return False

        self._backend = backend
        self._capture = capture
        with self._lock:
            self._pending.clear()
            self._accepting = True

        self._state.transition_to(
            SchedulerState.READY,
            metadata={'model': self.options.model_name, 'mode': self.options.running_mode.value}
        )
        return True

    def start(self) -> bool:
        """
        Start capture and the periodic classification cycle.

        A no-op when already recording. Returns False when the scheduler
        is not ready (not initialized, stopped, or one-shot mode).
        """
        capture = self._capture
        if capture is not None and capture.recording_state == RecordingState.RECORDING:
            return True

        current = self._state.current_state
        if current == SchedulerState.RUNNING and capture is not None:
            # Capture was halted underneath us; the timer is still armed
            capture.start()
            return True

        if current != SchedulerState.READY:
            logger.warning(f"Cannot start from state {current.value}; call initialize() first")
            return False
        if capture is None:
            logger.warning("No capture source in one-shot mode; use classify_sync()")
            return False

        try:
            capture.start()
        except Exception as e:
            logger.error(f"Failed to start capture: {e}")
            self._notify_error(f"Audio capture failed to start: {e}")
            return False

        interval = compute_interval(self.capture_config)
        self._timer = PeriodicTimer(interval, self._classify_cycle, name="soundsense-scheduler")
        # Transition first: the first cycle runs immediately and may call stop()
        self._state.transition_to(SchedulerState.RUNNING, metadata={'interval_ms': interval})
        self._timer.start()

        logger.info(
            f"Streaming classification started: window {self.capture_config.window_duration_ms:.0f}ms, "
            f"interval {interval}ms"
        )
        return True

    def stop(self):
        """Cancel future cycles and release the backend and capture source. Idempotent."""
        with self._lock:
            self._accepting = False
            self._pending.clear()

        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

        backend, self._backend = self._backend, None
        if backend is not None:
            self._close_backend(backend)

        capture, self._capture = self._capture, None
        if capture is not None:
            try:
                capture.stop()
                capture.close()
            except Exception as e:
                logger.error(f"Error releasing capture source: {e}")

        if self._state.current_state in (SchedulerState.READY, SchedulerState.RUNNING):
            self._state.transition_to(SchedulerState.STOPPED)

    def classify_sync(self, frame: AudioFrame) -> Optional[ResultBundle]:
        """
        Classify one caller-supplied frame.

        Returns None when no result is available; the listener has already
        received an `on_error` in that case.
        """
        backend = self._backend
        if backend is None:
            self._notify_error("Audio classifier is not initialized.")
            return None

        start_ms = _monotonic_ms()
        try:
            result = backend.classify(frame)
        except Exception as e:
            logger.error(f"Classification failed: {e}")
            self._notify_error(str(e))
            return None

        if result is None:
            self._notify_error(str(ClassificationUnavailable("Audio classifier failed to classify.")))
            return None

        with self._lock:
            self.stats['results'] += 1
        return ResultBundle(results=[result], inference_time_ms=_monotonic_ms() - start_ms)

    def _next_token(self) -> int:
        # Strictly increasing so each in-flight call has its own token
        token = max(_monotonic_ms(), self._last_token + 1)
        self._last_token = token
        return token

    def _classify_cycle(self):
        backend, capture = self._backend, self._capture
        if backend is None or capture is None:
            return

        with self._lock:
            if not self._accepting:
                return
            if self.skip_if_busy and self._pending:
                self.stats['skipped_cycles'] += 1
                logger.debug("Previous classification still pending, skipping cycle")
                return
            timestamp_ms = self._next_token()
            self._pending.add(timestamp_ms)
            self.stats['cycles'] += 1

        try:
            samples = capture.read_latest_window(self.capture_config.required_window_samples)
            frame = AudioFrame(
                samples=samples,
                sample_rate=self.capture_config.sample_rate_hz,
                channels=self.capture_config.channels,
            )
            backend.classify_async(frame, timestamp_ms)
        except Exception as e:
            with self._lock:
                self._pending.discard(timestamp_ms)
                accepting = self._accepting
            if accepting:
                self._notify_error(str(e))

    def _on_stream_result(self, session: int, result: ClassificationResult):
        with self._lock:
            if session != self._session or not self._accepting:
                logger.debug(f"Dropping result {result.timestamp_ms} delivered after stop")
                return
            self._pending.discard(result.timestamp_ms)
            self.stats['results'] += 1

        bundle = ResultBundle(
            results=[result],
            inference_time_ms=max(0, _monotonic_ms() - result.timestamp_ms),
        )
        if self.listener is not None:
            try:
                self.listener.on_result(bundle)
            except Exception as e:
                logger.error(f"Error in result listener: {e}", exc_info=True)

    def _on_stream_error(self, session: int, error: BackendRuntimeError):
        with self._lock:
            if session != self._session or not self._accepting:
                logger.debug(f"Dropping error delivered after stop: {error}")
                return
            self._pending.discard(error.timestamp_ms)

        self._notify_error(str(error))

    def _notify_error(self, message: str):
        # Callers must not hold self._lock
        with self._lock:
            self.stats['errors'] += 1
        logger.error(message)
        if self.listener is not None:
            try:
                self.listener.on_error(message)
            except Exception as e:
                logger.error(f"Error in error listener: {e}", exc_info=True)

    @staticmethod
    def _close_backend(backend: ClassifierBackend):
        try:
            backend.close()
        except Exception as e:
            logger.error(f"Error closing classifier backend: {e}")
