"""Frame-level fundamental frequency estimation."""

from __future__ import annotations
import numbers
from typing import Callable, Dict, Optional

import numpy as np

from ..core.config import TunerConfig
from ..logger import get_logger
from ..note_types import FrequencyCandidate, FrequencyRange
from ..note_utils import classify_frequency
from .signal_utils import as_frame, rms, zero_crossing_frequency
from .yin import estimate_yin
from .zero_crossing import estimate_zero_crossing

logger = get_logger(__name__)

Strategy = Callable[[np.ndarray, float], Optional[FrequencyCandidate]]


class FrequencyEstimator:
    """Produces zero or one frequency candidate per frame.

    A zero-crossing-rate check pre-classifies the frame; the result picks
    the estimation strategy. Bass-like frames go to the zero-crossing
    estimator, everything else to the difference-function estimator,
    which cross-checks against the zero-crossing estimator inside the
    overlap band.
    """

    def __init__(self, config: Optional[TunerConfig] = None) -> None:
        self._config = config or TunerConfig()
        self._strategies: Dict[FrequencyRange, Strategy] = {
            FrequencyRange.VERY_LOW: self._estimate_low,
            FrequencyRange.NORMAL: self._estimate_blended,
        }

    @property
    def config(self) -> TunerConfig:
        return self._config

    def signal_level(self, samples) -> float:
        """RMS of the frame as the estimator measures it (0.0 for malformed input)."""
        frame = as_frame(samples)
        if frame is None:
            return 0.0
        return rms(frame, self._config.rms_step)

    def estimate(self, samples, sample_rate: float) -> Optional[FrequencyCandidate]:
        """Estimate the fundamental frequency of one frame.

        Args:
            samples: Mono samples, roughly in [-1, 1]
            sample_rate: Sample rate in Hz

        Returns:
            FrequencyCandidate, or None for silence, malformed input, or
            frames without a clear pitch
        """
        cfg = self._config
        if not isinstance(sample_rate, numbers.Real) or not np.isfinite(sample_rate) or sample_rate <= 0:
            logger.debug(f"Invalid sample rate: {sample_rate}")
            return None

        frame = as_frame(samples)
        if frame is None:
            logger.debug("Malformed or empty frame")
            return None
        if frame.size < cfg.min_frame_size:
            logger.debug(f"Frame too short: {frame.size} < {cfg.min_frame_size}")
            return None

        level = rms(frame, cfg.rms_step)
        if level < cfg.silence_floor:
            return None

        approx = zero_crossing_frequency(frame, sample_rate)
        pre_range = (
            FrequencyRange.VERY_LOW
            if approx < cfg.very_low_threshold
            else FrequencyRange.NORMAL
        )
        with np.errstate(all="ignore"):
            candidate = self._strategies[pre_range](frame, float(sample_rate))

        if candidate is not None:
            logger.debug(
                f"Estimate {candidate.frequency:.2f}Hz via {candidate.strategy} "
                f"(rms={level:.4f}, zcr~{approx:.1f}Hz)"
            )
        return candidate

    def _candidate(self, frequency: Optional[float], strategy: str) -> Optional[FrequencyCandidate]:
        cfg = self._config
        if frequency is None or not np.isfinite(frequency) or frequency <= 0:
            return None
        if not cfg.min_frequency <= frequency <= cfg.max_frequency:
            return None
        return FrequencyCandidate(
            frequency=float(frequency),
            frequency_range=classify_frequency(
                frequency, cfg.very_low_threshold, cfg.low_threshold
            ),
            strategy=strategy,
        )

    def _zero_crossing(self, frame: np.ndarray, sample_rate: float) -> Optional[float]:
        cfg = self._config
        return estimate_zero_crossing(
            frame,
            sample_rate,
            min_frequency=cfg.min_frequency,
            max_frequency=cfg.max_frequency,
            lowpass_cutoff=cfg.lowpass_cutoff,
            lowpass_order=cfg.lowpass_order,
            peak_floor=cfg.peak_floor,
            peak_ratio=cfg.peak_ratio,
            slope_ratio=cfg.crossing_slope_ratio,
        )

    def _estimate_low(self, frame: np.ndarray, sample_rate: float) -> Optional[FrequencyCandidate]:
        return self._candidate(self._zero_crossing(frame, sample_rate), "zero-crossing")

    def _estimate_blended(self, frame: np.ndarray, sample_rate: float) -> Optional[FrequencyCandidate]:
        cfg = self._config
        result = estimate_yin(
            frame,
            sample_rate,
            min_frequency=cfg.min_frequency,
            max_frequency=cfg.max_frequency,
            threshold=cfg.yin_threshold,
            fallback_max=cfg.yin_fallback_max,
        )
        if result is None:
            return None

        yin_frequency = result.frequency
        if cfg.overlap_min < yin_frequency < cfg.overlap_max:
            zc_frequency = self._zero_crossing(frame, sample_rate)
            if (
                zc_frequency is not None
                and abs(yin_frequency - zc_frequency) / yin_frequency < cfg.overlap_agreement
            ):
                weight = cfg.overlap_yin_weight
                blended = yin_frequency * weight + zc_frequency * (1.0 - weight)
                return self._candidate(blended, "blend")
        return self._candidate(yin_frequency, "yin")
