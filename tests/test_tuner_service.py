import threading
import time

import numpy as np
import pytest

from steady_tuner.core.interfaces import IAudioSource
from steady_tuner.services.audio_providers import WavFileAudioSource, to_mono
from steady_tuner.note_types import SILENT_READING, TrackerPhase
from steady_tuner.services.tuner_service import TunerService, analyze_file
from steady_tuner.tuner import TunerEngine

SAMPLE_RATE = 44100


class FakeAudioSource(IAudioSource):
    """Hands out a fixed list of frames, then None."""

    def __init__(self, frames):
        self._frames = list(frames)
        self.started = False

    @property
    def sample_rate(self):
        return SAMPLE_RATE

    @property
    def frame_size(self):
        return 4096

    def start(self):
        self.started = True
        return True

    def stop(self):
        self.started = False

    def is_running(self):
        return self.started

    def read_frame(self):
        if not self._frames:
            return None
        return self._frames.pop(0)


class FailingAudioSource(FakeAudioSource):
    def start(self):
        return False


def poll_all(service, count, start=0.0):
    return [service.poll_once(timestamp=start + i * 0.05) for i in range(count)]


def test_poll_once_without_frame():
    service = TunerService(FakeAudioSource([]))
    assert service.poll_once(timestamp=0.0) is None


def test_events_follow_readings(tone, silence):
    frames = tone(440.0, 5) + [silence] * 12
    service = TunerService(FakeAudioSource(frames))
    readings, locked, lost = [], [], []
    service.events.on_reading(lambda r, ts: readings.append(r))
    service.events.on_note_locked(lambda note, ts: locked.append(note.note))
    service.events.on_signal_lost(lambda ts: lost.append(ts))

    poll_all(service, 17)

    assert len(readings) == 17
    assert locked == ["A4"]
    assert len(lost) == 1
    assert not service.last_reading.signal_present


def test_note_changed_event(tone):
    frames = tone(440.0, 6) + tone(659.25, 20)
    service = TunerService(FakeAudioSource(frames))
    changes = []
    service.events.on_note_changed(lambda old, new, ts: changes.append((old.note, new.note)))

    poll_all(service, 26)

    assert changes == [("A4", "E5")]


def test_preferences_apply_to_next_cycle(tone):
    service = TunerService(FakeAudioSource(tone(466.16, 6)), use_flats=False)
    poll_all(service, 3)
    assert service.last_reading.note.note == "A#4"

    service.update_preferences(reference_a4=441.3, use_flats=True)
    assert service.reference_a4 == 441.5
    reading = service.poll_once(timestamp=0.2)
    assert reading.note.note == "Bb4"


def test_reset_clears_session(tone):
    service = TunerService(FakeAudioSource(tone(440.0, 4)))
    poll_all(service, 4)
    service.reset()
    assert service.last_reading.note is None
    assert not service.engine.tracker.locked_note


def test_start_and_stop_run_the_poll_loop(tone):
    source = FakeAudioSource(tone(440.0, 3))
    service = TunerService(source, poll_interval=0.01)
    seen = []

    assert service.start(lambda reading, ts: seen.append(reading))
    assert service.is_running()
    deadline = time.monotonic() + 2.0
    while len(seen) < 3 and time.monotonic() < deadline:
        time.sleep(0.01)
    service.stop()

    assert len(seen) == 3
    assert not service.is_running()
    assert not source.started


def test_start_fails_when_source_does_not_start():
    service = TunerService(FailingAudioSource([]))
    assert not service.start()
    assert not service.is_running()


def test_callback_errors_are_contained(tone):
    service = TunerService(FakeAudioSource(tone(440.0, 2)))

    def broken(reading, ts):
        raise RuntimeError("display gone")

    service._callback = broken
    assert service.poll_once(timestamp=0.0) is not None


def test_listener_errors_do_not_stop_other_listeners(tone):
    service = TunerService(FakeAudioSource(tone(440.0, 1)))
    seen = []
    service.events.on_reading(lambda r, ts: 1 / 0)
    service.events.on_reading(lambda r, ts: seen.append(r))
    service.poll_once(timestamp=0.0)
    assert len(seen) == 1


def test_poll_errors_emit_error_event(tone):
    class ExplodingSource(FakeAudioSource):
        def read_frame(self):
            raise OSError("device unplugged")

    service = TunerService(ExplodingSource([]), poll_interval=0.01)
    errors = []
    service.events.on_error(errors.append)
    service.start()
    deadline = time.monotonic() + 2.0
    while not errors and time.monotonic() < deadline:
        time.sleep(0.01)
    service.stop()
    assert isinstance(errors[0], OSError)


def test_analyze_file(wav_file):
    path = wav_file([440.0], seconds=1.0)
    results = analyze_file(path)

    timestamps = [ts for ts, _ in results]
    assert timestamps == sorted(timestamps)
    final = results[-1][1]
    assert final.is_locked
    assert final.note.note == "A4"
    assert final.note.cents == 0


def test_analyze_file_with_gap_returns_to_idle(wav_file):
    path = wav_file([329.63, 392.0], seconds=0.8, gap=0.8)
    results = analyze_file(path, use_flats=True)
    locked = []
    for _, reading in results:
        if reading.is_locked and (not locked or locked[-1] != reading.note.note):
            locked.append(reading.note.note)
    assert locked == ["E4", "G4"]
    assert not results[-1][1].signal_present


class TestWavFileAudioSource:
    def test_frames_advance_by_hop(self, wav_file):
        source = WavFileAudioSource(wav_file([440.0], seconds=0.5), frame_size=4096, hop_size=2205)
        assert source.sample_rate == SAMPLE_RATE
        assert source.read_frame() is None  # not started

        source.start()
        frames = []
        while True:
            frame = source.read_frame()
            if frame is None:
                break
            frames.append(frame)
        assert all(f.shape == (4096,) for f in frames)
        assert len(frames) == (int(SAMPLE_RATE * 0.5) - 4096) // 2205 + 1
        assert not source.is_running()

    def test_loop(self, wav_file):
        source = WavFileAudioSource(wav_file([440.0], seconds=0.2), loop=True)
        source.start()
        frames = [source.read_frame() for _ in range(50)]
        assert all(f is not None for f in frames)

    def test_gain(self, wav_file):
        path = wav_file([440.0], seconds=0.2)
        quiet = WavFileAudioSource(path, gain=0.1)
        quiet.start()
        assert np.max(np.abs(quiet.read_frame())) == pytest.approx(0.05, rel=0.01)

    def test_duration(self, wav_file):
        source = WavFileAudioSource(wav_file([440.0], seconds=0.5))
        assert source.duration == pytest.approx(0.5)


def test_to_mono():
    stereo = np.array([[1.0, 0.0], [0.5, 0.5]])
    np.testing.assert_allclose(to_mono(stereo), [0.5, 0.5])


class GatedEngine(TunerEngine):
    """Pauses inside analyze until released."""

    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def analyze(self, *args, **kwargs):
        reading = super().analyze(*args, **kwargs)
        self.entered.set()
        self.release.wait(2.0)
        return reading


def test_reset_waits_for_cycle_in_progress(tone):
    engine = GatedEngine()
    engine.release.set()
    service = TunerService(FakeAudioSource(tone(440.0, 5)), engine=engine)
    poll_all(service, 3)
    assert service.last_reading.is_locked

    engine.entered.clear()
    engine.release.clear()
    poll = threading.Thread(target=service.poll_once, kwargs={"timestamp": 0.15})
    poll.start()
    assert engine.entered.wait(2.0)

    resetter = threading.Thread(target=service.reset)
    resetter.start()
    resetter.join(0.1)
    assert resetter.is_alive()

    engine.release.set()
    poll.join(2.0)
    resetter.join(2.0)

    assert engine.phase is TrackerPhase.IDLE
    assert service.last_reading is SILENT_READING
    reading = service.poll_once(timestamp=0.2)
    assert not reading.is_locked
