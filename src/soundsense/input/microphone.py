"""
Microphone capture source backed by sounddevice.

Keeps the most recent audio in a ring buffer so the scheduler can snapshot
the latest classification window at any time.
"""

from threading import Lock
from typing import Any, Dict, Optional

import numpy as np
import sounddevice as sd

from soundsense.config import FLOAT32_BYTES
from soundsense.input.capture_source import RecordingState, RingBuffer
from soundsense.utils.exceptions import CaptureError
from soundsense.utils.logger import get_logger

logger = get_logger("soundsense.MicrophoneCapture")


class MicrophoneCaptureSource:
    def __init__(
        self,
        sample_rate: int,
        buffer_size_bytes: int,
        channels: int = 1,
        device: Optional[int] = None,
        blocksize: Optional[int] = None,
    ):
        self.sample_rate = sample_rate
        self.channels = channels
        self.device = device
        # 100 ms blocks keep callback overhead low while the window stays fresh
        self.blocksize = blocksize or int(sample_rate * 0.1)
        self.buffer = RingBuffer(max(1, buffer_size_bytes // FLOAT32_BYTES))

        self._state = RecordingState.STOPPED
        self._state_lock = Lock()
        self.stream: Optional[sd.InputStream] = None

        self.stats = {
            'callbacks': 0,
            'stream_errors': 0,
        }

    @classmethod
    def open(
        cls,
        sample_rate: int,
        buffer_size_bytes: int,
        channels: int = 1,
        device: Optional[int] = None,
    ) -> "MicrophoneCaptureSource":
        """Create the source and its input stream without starting it."""
        source = cls(sample_rate, buffer_size_bytes, channels=channels, device=device)
        try:
            source.stream = sd.InputStream(
                device=device,
                channels=channels,
                samplerate=sample_rate,
                blocksize=source.blocksize,
                dtype='float32',
                callback=source._audio_callback
            )
        except Exception as e:
            raise CaptureError(f"Failed to open audio input stream: {e}") from e

        logger.info(
            f"Microphone opened: {sample_rate}Hz, {channels} channel(s), "
            f"{source.buffer.capacity} sample buffer"
        )
        return source

    @property
    def recording_state(self) -> RecordingState:
        with self._state_lock:
            return self._state

    def _audio_callback(self, indata, frames, time_info, status):
        if status:
            logger.warning(f"Audio stream status: {status}")
            self.stats['stream_errors'] += 1

        self.stats['callbacks'] += 1
        self.buffer.write(indata[:, 0])

    def start(self):
        if self.recording_state == RecordingState.RECORDING:
            return
        if self.stream is None:
            raise CaptureError("Audio input stream is closed")

        self.stream.start()
        with self._state_lock:
            self._state = RecordingState.RECORDING
        logger.info("Audio capture started")

    def stop(self):
        if self.recording_state == RecordingState.STOPPED:
            return

        if self.stream is not None:
            self.stream.stop()
        with self._state_lock:
            self._state = RecordingState.STOPPED
        logger.info("Audio capture stopped")

    def close(self):
        self.stop()
        if self.stream is not None:
            self.stream.close()
            self.stream = None
        self.buffer.clear()

    def read_latest_window(self, num_samples: int) -> np.ndarray:
        return self.buffer.latest(num_samples)

    def get_stats(self) -> Dict[str, Any]:
        return self.stats.copy()

    @staticmethod
    def list_audio_devices():
        devices = sd.query_devices()
        input_devices = []
        for idx, device in enumerate(devices):
            if device['max_input_channels'] > 0:
                input_devices.append((idx, device))
                logger.info(f"[{idx}] {device['name']}")
        return input_devices
