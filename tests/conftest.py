import numpy as np
import pytest

SAMPLE_RATE = 44100
FRAME_SIZE = 4096
HOP = 2205  # 50 ms at 44.1 kHz


def make_tone(frequency, num_samples, sample_rate=SAMPLE_RATE, amplitude=0.5, phase=0.0):
    t = np.arange(num_samples) / sample_rate
    return amplitude * np.sin(2 * np.pi * frequency * t + phase)


def tone_frames(frequency, count, frame_size=FRAME_SIZE, hop=HOP, amplitude=0.5):
    """Consecutive overlapping windows of one continuous tone."""
    tone = make_tone(frequency, frame_size + hop * count, amplitude=amplitude)
    return [tone[i * hop : i * hop + frame_size] for i in range(count)]


@pytest.fixture
def sine():
    """Factory for a single sine frame: sine(freq, num_samples=4096, amplitude=0.5)."""

    def _sine(frequency, num_samples=FRAME_SIZE, amplitude=0.5, phase=0.0):
        return make_tone(frequency, num_samples, amplitude=amplitude, phase=phase)

    return _sine


@pytest.fixture
def tone():
    """Factory for a list of consecutive frames of a continuous tone."""
    return tone_frames


@pytest.fixture
def silence():
    return np.zeros(FRAME_SIZE)


@pytest.fixture
def wav_file(tmp_path):
    """Write a mono tone (or tones, one after another) to a WAV file."""
    import soundfile as sf

    def _write(frequencies, seconds=1.0, name="tone.wav", gap=0.0):
        parts = []
        for frequency in frequencies:
            parts.append(make_tone(frequency, int(SAMPLE_RATE * seconds)))
            if gap:
                parts.append(np.zeros(int(SAMPLE_RATE * gap)))
        path = tmp_path / name
        sf.write(str(path), np.concatenate(parts).astype(np.float32), SAMPLE_RATE)
        return str(path)

    return _write
