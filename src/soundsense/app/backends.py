from __future__ import annotations

import csv
import os
import threading
import time
import zipfile
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Protocol, Sequence

import librosa
import numpy as np

from soundsense.config import ClassifierOptions
from soundsense.models.audio_data import AudioFrame, Category, ClassificationResult
from soundsense.utils.exceptions import BackendInitError, BackendRuntimeError
from soundsense.utils.logger import get_logger

logger = get_logger("soundsense.Backend")

ResultListener = Callable[[ClassificationResult], None]
ErrorListener = Callable[[BackendRuntimeError], None]


class ClassifierBackend(Protocol):
    def classify(self, frame: AudioFrame) -> Optional[ClassificationResult]: ...

    def classify_async(self, frame: AudioFrame, timestamp_ms: int) -> None: ...

    def close(self) -> None: ...


BackendFactory = Callable[
    [ClassifierOptions, Optional[ResultListener], Optional[ErrorListener]],
    ClassifierBackend,
]


class BaseClassifierBackend:
    """
    Shared ranking and asynchronous delivery for concrete backends.

    Subclasses implement `_infer`, returning one score per label. The base
    ranks the scores, drops those under `score_threshold`, keeps at most
    `max_results`, and runs `classify_async` on one worker thread that
    reports to the result or error listener.
    """

    def __init__(
        self,
        labels: Sequence[str],
        score_threshold: float = 0.1,
        max_results: int = 3,
        result_listener: Optional[ResultListener] = None,
        error_listener: Optional[ErrorListener] = None,
    ):
        self.labels: List[str] = list(labels)
        self.score_threshold = score_threshold
        self.max_results = max_results
        self.result_listener = result_listener
        self.error_listener = error_listener

        self._executor: Optional[ThreadPoolExecutor] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _infer(self, frame: AudioFrame) -> Optional[np.ndarray]:
        raise NotImplementedError

    def _release(self) -> None:
        """Free model resources. Called once from close()."""

    def _label_for(self, index: int) -> str:
        if 0 <= index < len(self.labels):
            return self.labels[index]
        return str(index)

    def _rank(self, scores) -> tuple:
        scores = np.asarray(scores, dtype=np.float32).ravel()
        categories = []
        for idx in np.argsort(-scores, kind="stable"):
            score = float(scores[idx])
            if score < self.score_threshold:
                break
            categories.append(Category(index=int(idx), label=self._label_for(int(idx)), score=score))
            if len(categories) >= self.max_results:
                break
        return tuple(categories)

    def classify(self, frame: AudioFrame, timestamp_ms: int = 0) -> Optional[ClassificationResult]:
        if self._closed:
            raise BackendRuntimeError("Classifier backend is closed", timestamp_ms)

        start = time.monotonic()
        try:
            scores = self._infer(frame)
        except BackendRuntimeError:
            raise
        except Exception as exc:
            raise BackendRuntimeError(f"Inference failed: {exc}", timestamp_ms) from exc

        if scores is None:
            return None

        return ClassificationResult(
            categories=self._rank(scores),
            timestamp_ms=timestamp_ms,
            inference_time_ms=int((time.monotonic() - start) * 1000),
        )

    def classify_async(self, frame: AudioFrame, timestamp_ms: int) -> None:
        if self._closed:
            raise BackendRuntimeError("Classifier backend is closed", timestamp_ms)
        if self.result_listener is None or self.error_listener is None:
            raise BackendRuntimeError(
                "classify_async needs result and error listeners (stream mode)", timestamp_ms
            )

        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="soundsense-classify")
        self._executor.submit(self._classify_and_notify, frame, timestamp_ms)

    def _classify_and_notify(self, frame: AudioFrame, timestamp_ms: int) -> None:
        try:
            try:
                result = self.classify(frame, timestamp_ms)
            except BackendRuntimeError as e:
                e.timestamp_ms = timestamp_ms
                self.error_listener(e)
                return

            if result is None:
                self.error_listener(
                    BackendRuntimeError("Audio classifier failed to classify.", timestamp_ms)
                )
            else:
                self.result_listener(result)
        except Exception as e:
            # Futures swallow exceptions, so listener failures are logged here
            logger.error(f"Error in classification listener: {e}", exc_info=True)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
        self._release()
        logger.info(f"{type(self).__name__} closed")


def load_labels(model_path: str, labels_path: Optional[str] = None) -> List[str]:
    """
    Read class labels from a text file (one per line), a YAMNet-style class
    map CSV (`display_name` column), or the label file packed in the model.
    """
    if labels_path:
        if labels_path.lower().endswith(".csv"):
            with open(labels_path, newline="", encoding="utf-8") as f:
                rows = list(csv.DictReader(f))
            if rows and "display_name" in rows[0]:
                return [row["display_name"] for row in rows]
            return [list(row.values())[-1] for row in rows]

        with open(labels_path, encoding="utf-8") as f:
            return [line.strip() for line in f if line.strip()]

    # TFLite models with metadata are also zip archives holding the label file
    if zipfile.is_zipfile(model_path):
        with zipfile.ZipFile(model_path) as archive:
            for name in archive.namelist():
                if name.lower().endswith(".txt"):
                    text = archive.read(name).decode("utf-8")
                    return [line.strip() for line in text.splitlines() if line.strip()]

    logger.warning(f"No labels found for {model_path}, categories will use class indices")
    return []


def _quantize(values: np.ndarray, details: dict) -> np.ndarray:
    """Map float input onto an integer tensor using its (scale, zero_point)."""
    dtype = np.dtype(details['dtype'])
    if not np.issubdtype(dtype, np.integer):
        return values.astype(dtype)

    scale, zero_point = details.get('quantization', (0.0, 0))
    if not scale:
        return values.astype(dtype)
    info = np.iinfo(dtype)
    q = np.round(values / scale + zero_point)
    return np.clip(q, info.min, info.max).astype(dtype)


def _dequantize(values: np.ndarray, details: dict) -> np.ndarray:
    if np.issubdtype(values.dtype, np.integer):
        scale, zero_point = details.get('quantization', (0.0, 0))
        if scale:
            return (values.astype(np.float32) - zero_point) * np.float32(scale)
    return values.astype(np.float32)


class TFLiteAudioBackend(BaseClassifierBackend):
    """Waveform-input TensorFlow Lite classifier such as YAMNet."""

    def __init__(
        self,
        model_path: str,
        labels_path: Optional[str] = None,
        sample_rate: int = 16000,
        num_threads: Optional[int] = None,
        **kwargs,
    ):
        if not os.path.isfile(model_path):
            raise FileNotFoundError(f"Model file not found: {model_path}")

        from tflite_runtime.interpreter import Interpreter

        self.model_path = model_path
        self.sample_rate = sample_rate
        self._interpreter = Interpreter(model_path=model_path, num_threads=num_threads)
        self._interpreter.allocate_tensors()
        self._input = self._interpreter.get_input_details()[0]
        self._output = self._interpreter.get_output_details()[0]
        self.input_samples = int(np.prod([d for d in self._input['shape'] if d > 0]))
        # Interpreter calls are not thread-safe; sync and async paths share it
        self._lock = threading.Lock()

        super().__init__(load_labels(model_path, labels_path), **kwargs)
        logger.info(
            f"TFLite model loaded: {model_path}, expects {self.input_samples} samples "
            f"({self.input_samples / sample_rate:.3f}s), {len(self.labels)} labels"
        )

    def _infer(self, frame: AudioFrame) -> np.ndarray:
        samples = np.asarray(frame.samples, dtype=np.float32)
        if frame.sample_rate != self.sample_rate:
            samples = librosa.resample(samples, orig_sr=frame.sample_rate, target_sr=self.sample_rate)

        # Keep the newest samples, pad short input with trailing silence
        if samples.size >= self.input_samples:
            samples = samples[-self.input_samples:]
        else:
            samples = np.pad(samples, (0, self.input_samples - samples.size))

        x = _quantize(samples.reshape(self._input['shape']), self._input)
        with self._lock:
            if self._interpreter is None:
                raise BackendRuntimeError("Classifier backend is closed")
            self._interpreter.set_tensor(self._input['index'], x)
            self._interpreter.invoke()
            raw = np.array(self._interpreter.get_tensor(self._output['index']))

        scores = _dequantize(raw, self._output)
        # Per-frame scores (frames x classes) are averaged over the window
        if scores.ndim > 1:
            scores = scores.reshape(-1, scores.shape[-1]).mean(axis=0)
        return scores

    def _release(self) -> None:
        with self._lock:
            self._interpreter = None


class TransformersAudioBackend(BaseClassifierBackend):
    """Any Hugging Face audio-classification checkpoint (AST, wav2vec2, ...)."""

    def __init__(self, model_name: str, device: str = "cpu", **kwargs):
        from transformers import pipeline

        self.model_name = model_name
        self._pipe = pipeline("audio-classification", model=model_name, device=device)
        id2label = self._pipe.model.config.id2label
        labels = [id2label[i] for i in sorted(id2label)]
        self._label_index = {label: i for i, label in enumerate(labels)}

        super().__init__(labels, **kwargs)
        logger.info(f"Transformers model loaded: {model_name} on {device}, {len(labels)} labels")

    def _infer(self, frame: AudioFrame) -> np.ndarray:
        if self._pipe is None:
            raise BackendRuntimeError("Classifier backend is closed")

        outputs = self._pipe(
            {"raw": np.array(frame.samples), "sampling_rate": frame.sample_rate},
            top_k=len(self.labels),
        )
        scores = np.zeros(len(self.labels), dtype=np.float32)
        for item in outputs:
            scores[self._label_index[item["label"]]] = item["score"]
        return scores

    def _release(self) -> None:
        self._pipe = None


def create_backend(
    options: ClassifierOptions,
    result_listener: Optional[ResultListener] = None,
    error_listener: Optional[ErrorListener] = None,
) -> BaseClassifierBackend:
    """
    Build the backend named by `options.model_name`.

    `.tflite` files load through the TFLite interpreter; anything else is
    treated as a Hugging Face model id or directory.

    Raises:
        BackendInitError: If the model cannot be loaded or stream mode
            is missing its listeners.
    """
    if options.is_streaming and (result_listener is None or error_listener is None):
        raise BackendInitError("Stream mode needs result and error listeners")

    common = dict(
        score_threshold=options.score_threshold,
        max_results=options.max_results,
        result_listener=result_listener,
        error_listener=error_listener,
    )
    try:
        if options.model_name.lower().endswith(".tflite"):
            return TFLiteAudioBackend(
                options.model_name,
                labels_path=options.labels_path,
                sample_rate=options.sample_rate_hz,
                **common,
            )
        return TransformersAudioBackend(options.model_name, device=options.device, **common)
    except Exception as exc:
        raise BackendInitError(
            f"Failed to initialize audio classifier '{options.model_name}': {exc}"
        ) from exc
