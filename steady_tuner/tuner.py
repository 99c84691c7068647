"""The tuning session: estimator, smoother, mapper and tracker in one call."""

from __future__ import annotations
import time
from typing import Optional

from .core.config import TunerConfig
from .detection.frequency_estimator import FrequencyEstimator
from .detection.frequency_smoother import FrequencySmoother
from .detection.stability_tracker import StabilityTracker
from .logger import get_logger
from .note_types import TrackerPhase, TunerReading
from .note_utils import DEFAULT_A4_FREQ, map_note, normalize_reference

logger = get_logger(__name__)


class TunerEngine:
    """One tuning session.

    The engine is single-writer: the host calls :meth:`analyze` from one
    worker at a fixed cadence and never concurrently. Hosts with several
    inputs create one engine per input.
    """

    def __init__(self, config: Optional[TunerConfig] = None) -> None:
        self._config = config or TunerConfig()
        self._estimator = FrequencyEstimator(self._config)
        self._smoother = FrequencySmoother(self._config)
        self._tracker = StabilityTracker(self._config)
        self._reference_freq = DEFAULT_A4_FREQ
        self._use_flats = False
        logger.info(f"Tuner engine initialized (config v{self._config.version})")

    @property
    def config(self) -> TunerConfig:
        return self._config

    @property
    def phase(self) -> TrackerPhase:
        return self._tracker.phase

    @property
    def smoother(self) -> FrequencySmoother:
        return self._smoother

    @property
    def tracker(self) -> StabilityTracker:
        return self._tracker

    def analyze(
        self,
        frame,
        sample_rate: float,
        reference_freq: float = DEFAULT_A4_FREQ,
        use_flats: bool = False,
        timestamp: Optional[float] = None,
    ) -> TunerReading:
        """Run one analysis cycle.

        Args:
            frame: Mono samples of one analysis window
            sample_rate: Sample rate in Hz
            reference_freq: Frequency of A4, snapped to [420, 460] in 0.5 Hz steps
            use_flats: Spell accidentals as flats
            timestamp: Seconds on the host's clock; defaults to a monotonic clock

        Returns:
            The reading to display for this cycle. Malformed input is
            treated as a cycle without a candidate.
        """
        now = time.monotonic() if timestamp is None else float(timestamp)
        reference_freq = normalize_reference(reference_freq)
        use_flats = bool(use_flats)
        if reference_freq != self._reference_freq or use_flats != self._use_flats:
            self._reference_freq = reference_freq
            self._use_flats = use_flats
            self._tracker.rebase(reference_freq, use_flats)

        level = self._estimator.signal_level(frame)
        candidate = self._estimator.estimate(frame, sample_rate)

        note = None
        smoothed = None
        if candidate is not None:
            smoothed = self._smoother.push(candidate)
        if smoothed is not None:
            note = map_note(
                smoothed.frequency,
                reference_freq,
                use_flats,
                self._config.in_tune_cents,
            )

        was_idle = self._tracker.phase is TrackerPhase.IDLE
        reading = self._tracker.update(note, smoothed, level, now)

        if reading.note_changed and candidate is not None:
            self._smoother.reseed(candidate.frequency)
        elif not was_idle and self._tracker.phase is TrackerPhase.IDLE:
            self._smoother.reset()
        return reading

    def reset(self) -> None:
        """Clear all session state, e.g. after a capture device change."""
        self._smoother.reset()
        self._tracker.reset()
        logger.info("Tuner session reset")
