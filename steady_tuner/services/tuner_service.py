"""Tuner service that polls an audio source and feeds the tuner engine."""

from __future__ import annotations
import threading
import time
from typing import Callable, List, Optional, Tuple

import soundfile as sf

from ..core.config import TunerConfig
from ..core.events import TunerEvents, TunerEventType
from ..core.interfaces import IAudioSource, ITunerService
from ..logger import get_logger
from ..note_types import SILENT_READING, TunerReading
from ..note_utils import DEFAULT_A4_FREQ, normalize_reference
from ..tuner import TunerEngine
from .audio_providers import WavFileAudioSource

logger = get_logger(__name__)

DEFAULT_POLL_INTERVAL = 0.05  # 20 analyses per second


class TunerService(ITunerService):
    """Runs one tuning session on a fixed polling cadence.

    A single worker thread calls :meth:`poll_once` every
    ``poll_interval`` seconds, so the engine never sees concurrent calls.
    """

    def __init__(
        self,
        audio_source: IAudioSource,
        engine: Optional[TunerEngine] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        reference_a4: float = DEFAULT_A4_FREQ,
        use_flats: bool = False,
        events: Optional[TunerEvents] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the tuner service.

        Args:
            audio_source: Source of analysis frames
            engine: Tuner engine, or None to create one with default settings
            poll_interval: Seconds between analysis cycles
            reference_a4: Frequency of A4 in Hz
            use_flats: Spell accidentals as flats
            events: Event emitter for readings, or None to create one
            clock: Timestamp source passed to the engine
        """
        self._source = audio_source
        self._engine = engine or TunerEngine()
        self._poll_interval = poll_interval
        self._reference_a4 = normalize_reference(reference_a4)
        self._use_flats = use_flats
        self.events = events or TunerEvents()
        self._clock = clock

        self._callback: Optional[Callable[[TunerReading, float], None]] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        # Serializes engine access between the poll thread and host calls
        self._session_lock = threading.Lock()
        self._last_reading = SILENT_READING

    @property
    def engine(self) -> TunerEngine:
        return self._engine

    @property
    def last_reading(self) -> TunerReading:
        return self._last_reading

    @property
    def reference_a4(self) -> float:
        return self._reference_a4

    @property
    def use_flats(self) -> bool:
        return self._use_flats

    def update_preferences(
        self, reference_a4: Optional[float] = None, use_flats: Optional[bool] = None
    ) -> None:
        """Change the reference pitch or notation; takes effect on the next cycle."""
        if reference_a4 is not None:
            self._reference_a4 = normalize_reference(reference_a4)
        if use_flats is not None:
            self._use_flats = bool(use_flats)

    def start(self, callback: Optional[Callable[[TunerReading, float], None]] = None) -> bool:
        """Start polling.

        Args:
            callback: Called with every reading and its timestamp

        Returns:
            True if the audio source started
        """
        if self.is_running():
            logger.warning("Tuner service already running")
            return True

        if not self._source.start():
            logger.error("Audio source failed to start")
            return False

        self._callback = callback
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="tuner-poll", daemon=True)
        self._thread.start()
        logger.info(f"Tuner service started (every {self._poll_interval * 1000:.0f}ms)")
        return True

    def stop(self) -> None:
        """Stop polling and release the audio source."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        self._source.stop()
        logger.info("Tuner service stopped")

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def reset(self) -> None:
        """Clear the session, e.g. after the capture device changed.

        Safe to call while the poll thread is running; it waits for the
        analysis cycle in progress to finish.
        """
        with self._session_lock:
            self._engine.reset()
            self._last_reading = SILENT_READING

    def poll_once(self, timestamp: Optional[float] = None) -> Optional[TunerReading]:
        """Run one analysis cycle on the latest frame.

        Returns:
            The reading, or None if the source had no frame ready
        """
        frame = self._source.read_frame()
        if frame is None:
            return None

        now = self._clock() if timestamp is None else timestamp
        with self._session_lock:
            reading = self._engine.analyze(
                frame,
                self._source.sample_rate,
                self._reference_a4,
                self._use_flats,
                timestamp=now,
            )
            previous = self._last_reading
            self._last_reading = reading
        self._dispatch(previous, reading, now)
        return reading

    def _run(self) -> None:
        while not self._stop_event.is_set():
            started = time.monotonic()
            try:
                self.poll_once()
            except Exception as e:
                logger.error(f"Error in tuner poll: {e}", exc_info=True)
                self.events.emit(TunerEventType.ERROR, e)
            elapsed = time.monotonic() - started
            self._stop_event.wait(max(0.0, self._poll_interval - elapsed))

    def _dispatch(self, previous: TunerReading, reading: TunerReading, timestamp: float) -> None:
        self.events.emit(TunerEventType.READING, reading, timestamp)
        if reading.note_changed:
            self.events.emit(TunerEventType.NOTE_CHANGED, previous.note, reading.note, timestamp)
        elif reading.is_locked and not previous.is_locked:
            self.events.emit(TunerEventType.NOTE_LOCKED, reading.note, timestamp)
        if previous.signal_present and not reading.signal_present:
            self.events.emit(TunerEventType.SIGNAL_LOST, timestamp)

        if self._callback:
            try:
                self._callback(reading, timestamp)
            except Exception as e:
                logger.error(f"Error in tuner reading callback: {e}", exc_info=True)


def analyze_file(
    file_path: str,
    config: Optional[TunerConfig] = None,
    frame_size: int = 4096,
    hop_seconds: float = DEFAULT_POLL_INTERVAL,
    reference_a4: float = DEFAULT_A4_FREQ,
    use_flats: bool = False,
    gain: float = 1.0,
) -> List[Tuple[float, TunerReading]]:
    """Run a whole sound file through a fresh tuning session.

    Timestamps come from the sample position, so the result does not
    depend on how fast the file is processed.

    Returns:
        (timestamp, reading) pairs, one per analysis cycle
    """
    sample_rate = sf.info(file_path).samplerate
    source = WavFileAudioSource(
        file_path,
        frame_size=frame_size,
        hop_size=max(1, int(round(sample_rate * hop_seconds))),
        gain=gain,
    )
    engine = TunerEngine(config)
    results: List[Tuple[float, TunerReading]] = []

    source.start()
    while True:
        frame = source.read_frame()
        if frame is None:
            break
        timestamp = source.position_seconds
        reading = engine.analyze(
            frame, source.sample_rate, reference_a4, use_flats, timestamp=timestamp
        )
        results.append((timestamp, reading))
    source.stop()

    logger.info(f"Analyzed {len(results)} frames from {file_path}")
    return results
