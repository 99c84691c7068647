"""Rolling frequency history with octave folding and range-aware smoothing."""

from __future__ import annotations
import math
from typing import Optional

import numpy as np

from ..core.config import TunerConfig
from ..logger import get_logger
from ..note_types import FrequencyCandidate, SmoothedFrequency
from ..note_utils import classify_frequency

logger = get_logger(__name__)


class FrequencySmoother:
    """De-noises the per-frame frequency candidates of one tuning session.

    The history is a fixed-capacity ring buffer: ``_values`` never grows,
    ``_cursor`` points at the slot the next value goes into and ``_count``
    is the number of valid slots.
    """

    def __init__(self, config: Optional[TunerConfig] = None) -> None:
        self._config = config or TunerConfig()
        self._capacity = self._config.history_size
        self._values = np.zeros(self._capacity, dtype=np.float64)
        self._cursor = 0
        self._count = 0
        self._fold_streak = 0

    def __len__(self) -> int:
        return self._count

    @property
    def capacity(self) -> int:
        return self._capacity

    def history(self) -> np.ndarray:
        """Accepted frequencies, oldest first."""
        if self._count < self._capacity:
            return self._values[: self._count].copy()
        return np.roll(self._values, -self._cursor)

    def median(self) -> Optional[float]:
        if self._count == 0:
            return None
        return float(np.median(self._values[: self._count]))

    def reset(self) -> None:
        """Forget all history."""
        self._cursor = 0
        self._count = 0
        self._fold_streak = 0

    def reseed(self, frequency: float) -> None:
        """Restart the history from a single known frequency."""
        self.reset()
        if _is_valid(frequency):
            self._insert(float(frequency))

    def push(self, candidate: FrequencyCandidate) -> Optional[SmoothedFrequency]:
        """Add a candidate and return the smoothed frequency.

        Returns None when the candidate frequency is not a positive finite
        number; nothing is inserted in that case.
        """
        cfg = self._config
        frequency = candidate.frequency
        if not _is_valid(frequency):
            return None

        octave_corrected = False
        median = self.median()
        if median is not None:
            folded = self._fold_octave(frequency, median)
            if folded is None:
                self._fold_streak = 0
            else:
                self._fold_streak += 1
                if self._fold_streak > cfg.octave_fold_limit:
                    logger.info(
                        f"Accepting octave change {median:.1f}Hz -> {frequency:.1f}Hz "
                        f"after {self._fold_streak} folds"
                    )
                    self.reset()
                    median = None
                else:
                    logger.debug(f"Octave fold {frequency:.1f}Hz -> {folded:.1f}Hz")
                    frequency = folded
                    octave_corrected = True

        consistent = True
        if median is not None and abs(frequency - median) / median > cfg.consistency_tolerance:
            consistent = False
            logger.debug(f"Inconsistent candidate {frequency:.1f}Hz (median {median:.1f}Hz)")

        frequency_range = classify_frequency(
            frequency, cfg.very_low_threshold, cfg.low_threshold
        )
        if frequency_range.is_low:
            # Bass fundamentals are steady already; smoothing would only add lag
            smoothed = frequency
        else:
            smoothed = self._weighted_average(frequency)

        self._insert(frequency)
        return SmoothedFrequency(
            frequency=smoothed,
            frequency_range=frequency_range,
            consistent=consistent,
            octave_corrected=octave_corrected,
        )

    def _fold_octave(self, frequency: float, median: float) -> Optional[float]:
        tolerance = self._config.octave_tolerance
        if abs(frequency / (2.0 * median) - 1.0) <= tolerance:
            return frequency / 2.0
        if abs(frequency / (median / 2.0) - 1.0) <= tolerance:
            return frequency * 2.0
        return None

    def _weighted_average(self, frequency: float) -> float:
        cfg = self._config
        history = self.history()
        if history.size < 3:
            return frequency

        if history.size >= cfg.outlier_window:
            recent = float(np.mean(history[-cfg.outlier_window :]))
            if abs(frequency - recent) / recent > cfg.outlier_tolerance:
                # Possible outlier: blend it in with raised weight instead of
                # accepting it outright
                weights = np.power(np.arange(history.size) + 2.0, 1.2)
                total = frequency * cfg.outlier_new_weight + float(np.dot(history, weights))
                return total / (cfg.outlier_new_weight + float(weights.sum()))

        values = np.append(history[-(self._capacity - 1) :], frequency)
        ages = np.arange(values.size - 1, -1, -1)
        weights = np.power(cfg.smoothing_decay, ages)
        return float(np.dot(values, weights) / weights.sum())

    def _insert(self, frequency: float) -> None:
        self._values[self._cursor] = frequency
        self._cursor = (self._cursor + 1) % self._capacity
        self._count = min(self._count + 1, self._capacity)


def _is_valid(frequency) -> bool:
    try:
        return math.isfinite(frequency) and frequency > 0
    except TypeError:
        return False
