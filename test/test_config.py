import pytest

from soundsense.config import CaptureConfig, ClassifierOptions, RunningMode


def test_defaults_match_yamnet_streaming():
    options = ClassifierOptions()
    assert options.score_threshold == pytest.approx(0.1)
    assert options.max_results == 3
    assert options.model_name == "yamnet.tflite"
    assert options.running_mode is RunningMode.AUDIO_STREAM
    assert options.is_streaming
    assert options.overlap_factor == pytest.approx(0.5)
    assert options.required_window_samples == 15600


def test_capture_config_is_derived():
    config = ClassifierOptions(overlap=3, sample_rate_hz=44100, expected_input_seconds=1.0).capture_config
    assert config == CaptureConfig(sample_rate_hz=44100, required_window_samples=44100, overlap_factor=0.75)


@pytest.mark.parametrize("kwargs", [
    {"score_threshold": -0.1},
    {"score_threshold": 1.5},
    {"max_results": 0},
    {"model_name": ""},
    {"overlap": 4},
    {"overlap": -1},
    {"sample_rate_hz": 0},
    {"expected_input_seconds": 0},
])
def test_invalid_options_rejected(kwargs):
    with pytest.raises(ValueError):
        ClassifierOptions(**kwargs)


@pytest.mark.parametrize("kwargs", [
    {"required_window_samples": 0},
    {"overlap_factor": 1.0},
    {"overlap_factor": -0.25},
    {"sample_rate_hz": -16000},
])
def test_invalid_capture_config_rejected(kwargs):
    params = {"sample_rate_hz": 16000, "required_window_samples": 15600, "overlap_factor": 0.5}
    params.update(kwargs)
    with pytest.raises(ValueError):
        CaptureConfig(**params)


def test_running_mode_accepts_value_string():
    assert ClassifierOptions(running_mode="audio_clips").running_mode is RunningMode.AUDIO_CLIPS


def test_from_env(monkeypatch):
    monkeypatch.setenv("SOUNDSENSE_SCORE_THRESHOLD", "0.3")
    monkeypatch.setenv("SOUNDSENSE_MAX_RESULTS", "5")
    monkeypatch.setenv("SOUNDSENSE_MODEL", "models/custom.tflite")
    monkeypatch.setenv("SOUNDSENSE_RUNNING_MODE", "audio_clips")
    monkeypatch.setenv("SOUNDSENSE_OVERLAP", "1")
    monkeypatch.setenv("SOUNDSENSE_LABELS_PATH", "models/labels.txt")

    options = ClassifierOptions.from_env()

    assert options.score_threshold == pytest.approx(0.3)
    assert options.max_results == 5
    assert options.model_name == "models/custom.tflite"
    assert options.running_mode is RunningMode.AUDIO_CLIPS
    assert options.overlap_factor == pytest.approx(0.25)
    assert options.labels_path == "models/labels.txt"
    assert options.sample_rate_hz == 16000


def test_from_env_defaults(monkeypatch):
    for name in ("SCORE_THRESHOLD", "MAX_RESULTS", "MODEL", "RUNNING_MODE", "OVERLAP",
                 "SAMPLE_RATE", "INPUT_SECONDS", "LABELS_PATH", "DEVICE"):
        monkeypatch.delenv("SOUNDSENSE_" + name, raising=False)
    assert ClassifierOptions.from_env() == ClassifierOptions()
