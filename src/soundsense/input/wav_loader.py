import librosa
import soundfile as sf

from soundsense.models.audio_data import AudioFrame


def wav_to_frame(wav_path: str, target_sr: int = 16000) -> AudioFrame:
    """
    Load an audio file as a mono float32 AudioFrame at `target_sr`.

    soundfile scales integer PCM to [-1, 1]; multi-channel files keep
    their first channel.
    """
    samples, sample_rate = sf.read(wav_path, dtype='float32', always_2d=False)
    if samples.ndim > 1:
        samples = samples[:, 0]

    if sample_rate != target_sr:
        samples = librosa.resample(samples, orig_sr=sample_rate, target_sr=target_sr)
        sample_rate = target_sr

    return AudioFrame(samples=samples, sample_rate=sample_rate)
