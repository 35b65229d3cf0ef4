"""
Audio capture sources.

The microphone source lives in soundsense.input.microphone and is imported
from there so that sounddevice (and PortAudio) are only loaded when a live
stream is actually needed.
"""

from .capture_source import CaptureSource, RecordingState, RingBuffer
from .file_replay import FileReplayCaptureSource
from .wav_loader import wav_to_frame

__all__ = [
    'CaptureSource',
    'FileReplayCaptureSource',
    'RecordingState',
    'RingBuffer',
    'wav_to_frame',
]
