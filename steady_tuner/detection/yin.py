"""Difference-function (YIN) pitch estimation.

The estimator works on one frame at a time and keeps no state:

1. squared-difference function over the lag range of the supported band
2. cumulative mean normalized difference function (CMNDF)
3. first dip below the absolute threshold, followed down to its minimum
4. parabolic refinement of the winning lag

If nothing crosses the threshold the global minimum is used only when it
is itself low enough; otherwise there is no pitch.
"""

from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from scipy.signal import fftconvolve

from ..logger import get_logger
from .signal_utils import parabolic_offset

logger = get_logger(__name__)


@dataclass(frozen=True)
class YinResult:
    period: float  # Lag in samples, sub-sample precision
    frequency: float  # Hz
    aperiodicity: float  # CMNDF value at the chosen lag (0 = perfectly periodic)
    from_fallback: bool = False


def lag_bounds(
    frame_size: int, sample_rate: float, min_frequency: float, max_frequency: float
) -> Tuple[int, int]:
    """Lag search range (inclusive) for the supported frequency band."""
    tau_min = max(2, int(math.floor(sample_rate / max_frequency)))
    tau_max = min(int(math.ceil(sample_rate / min_frequency)), frame_size // 2)
    return tau_min, tau_max


def difference_function(frame: np.ndarray, tau_max: int) -> np.ndarray:
    """d(tau) = sum_j (x[j] - x[j + tau])^2 over a window of N - tau_max samples."""
    window = frame.size - tau_max
    squares = np.concatenate(([0.0], np.cumsum(frame * frame)))
    lags = np.arange(tau_max + 1)
    energy = squares[window + lags] - squares[lags]
    correlation = fftconvolve(frame[: window + tau_max], frame[:window][::-1], mode="valid")
    diff = energy[0] + energy - 2.0 * correlation
    diff[0] = 0.0
    return np.maximum(diff, 0.0)


def cumulative_mean_normalized(diff: np.ndarray) -> np.ndarray:
    cmndf = np.ones_like(diff)
    running = np.cumsum(diff[1:])
    lags = np.arange(1, diff.size)
    with np.errstate(divide="ignore", invalid="ignore"):
        normalized = diff[1:] * lags / running
    cmndf[1:] = np.where(running > 0, normalized, 1.0)
    return cmndf


def estimate_yin(
    frame: np.ndarray,
    sample_rate: float,
    min_frequency: float = 20.0,
    max_frequency: float = 8000.0,
    threshold: float = 0.07,
    fallback_max: float = 0.35,
) -> Optional[YinResult]:
    """Estimate the fundamental of one frame.

    Args:
        frame: Mono samples
        sample_rate: Sample rate in Hz
        min_frequency: Lowest frequency to search for
        max_frequency: Highest frequency to search for
        threshold: Absolute CMNDF threshold for the first-dip search
        fallback_max: Highest CMNDF value accepted for the global-minimum fallback

    Returns:
        YinResult, or None when the frame has no clear period
    """
    tau_min, tau_max = lag_bounds(frame.size, sample_rate, min_frequency, max_frequency)
    if tau_max <= tau_min + 1:
        logger.debug(f"Frame of {frame.size} samples too short for lag range")
        return None

    diff = difference_function(frame, tau_max)
    cmndf = cumulative_mean_normalized(diff)

    search = cmndf[tau_min:tau_max]
    below = np.flatnonzero(search < threshold)
    from_fallback = False
    if below.size:
        tau = int(below[0]) + tau_min
        while tau + 1 < tau_max and cmndf[tau + 1] < cmndf[tau]:
            tau += 1
    else:
        tau = int(np.argmin(search)) + tau_min
        if cmndf[tau] > fallback_max:
            logger.debug(f"No period: CMNDF minimum {cmndf[tau]:.3f} at lag {tau}")
            return None
        from_fallback = True

    period = float(tau)
    if 0 < tau < diff.size - 1:
        period += parabolic_offset(diff[tau - 1], diff[tau], diff[tau + 1])
    if period <= 0:
        return None

    frequency = sample_rate / period
    if not min_frequency <= frequency <= max_frequency:
        return None
    return YinResult(
        period=period,
        frequency=frequency,
        aperiodicity=float(cmndf[tau]),
        from_fallback=from_fallback,
    )
