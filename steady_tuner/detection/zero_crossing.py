"""Time-domain period estimation for bass fundamentals.

Peaks first: local maxima above an adaptive threshold, refined to
sub-sample positions, with interquartile filtering of the inter-peak
distances. When that yields fewer than three usable peaks, interpolated
rising zero crossings are used instead.
"""

from __future__ import annotations
from typing import Optional

import numpy as np
from scipy.signal import find_peaks

from ..logger import get_logger
from .signal_utils import lowpass, parabolic_offset

logger = get_logger(__name__)

MIN_PEAKS = 3
MIN_PERIODS = 3


def peak_period(
    frame: np.ndarray,
    sample_rate: float,
    max_frequency: float,
    peak_floor: float = 0.01,
    peak_ratio: float = 0.5,
) -> Optional[float]:
    """Mean distance between waveform peaks, in samples."""
    amplitude = float(np.max(np.abs(frame)))
    height = max(peak_floor, peak_ratio * amplitude)
    min_distance = max(1, int(sample_rate / max_frequency))
    peaks, _ = find_peaks(frame, height=height, distance=min_distance)
    peaks = peaks[(peaks > 0) & (peaks < frame.size - 1)]
    if peaks.size < MIN_PEAKS:
        return None

    positions = np.array(
        [p + parabolic_offset(frame[p - 1], frame[p], frame[p + 1]) for p in peaks]
    )
    distances = np.diff(positions)

    q1, q3 = np.percentile(distances, [25, 75])
    spread = q3 - q1
    inliers = distances[(distances >= q1 - 1.5 * spread) & (distances <= q3 + 1.5 * spread)]
    if inliers.size < MIN_PEAKS - 1:
        return None
    return float(np.mean(inliers))


def crossing_period(frame: np.ndarray, slope_ratio: float = 0.01) -> Optional[float]:
    """Median distance between interpolated rising zero crossings, in samples.

    Crossings whose slope is below ``slope_ratio`` of the frame's peak
    amplitude are treated as noise and skipped.
    """
    amplitude = float(np.max(np.abs(frame)))
    if amplitude == 0:
        return None
    before = frame[:-1]
    after = frame[1:]
    rising = np.flatnonzero((before < 0) & (after >= 0))
    slopes = after[rising] - before[rising]
    rising = rising[slopes >= slope_ratio * amplitude]
    if rising.size < MIN_PERIODS + 1:
        return None

    # Exact crossing by linear interpolation between the two samples
    crossings = rising + before[rising] / (before[rising] - after[rising])
    periods = np.diff(crossings)
    if periods.size < MIN_PERIODS:
        return None
    return float(np.median(periods))


def estimate_zero_crossing(
    frame: np.ndarray,
    sample_rate: float,
    min_frequency: float = 20.0,
    max_frequency: float = 8000.0,
    lowpass_cutoff: Optional[float] = 400.0,
    lowpass_order: int = 4,
    peak_floor: float = 0.01,
    peak_ratio: float = 0.5,
    slope_ratio: float = 0.01,
) -> Optional[float]:
    """Estimate the fundamental frequency from waveform periodicity.

    Args:
        frame: Mono samples
        sample_rate: Sample rate in Hz
        min_frequency: Lowest frequency accepted
        max_frequency: Highest frequency accepted
        lowpass_cutoff: Cutoff of the pre-filter in Hz, or None to skip it
        lowpass_order: Butterworth order of the pre-filter
        peak_floor: Absolute minimum peak height
        peak_ratio: Peak height threshold relative to the frame amplitude
        slope_ratio: Minimum crossing slope relative to the frame amplitude

    Returns:
        Frequency in Hz, or None if no stable period was found
    """
    filtered = frame
    if lowpass_cutoff:
        filtered = lowpass(frame, sample_rate, lowpass_cutoff, lowpass_order)

    period = peak_period(filtered, sample_rate, max_frequency, peak_floor, peak_ratio)
    method = "peaks"
    if period is None:
        period = crossing_period(filtered, slope_ratio)
        method = "crossings"
    if period is None or period <= 0:
        logger.debug("Zero-crossing estimator found no stable period")
        return None

    frequency = sample_rate / period
    if not min_frequency <= frequency <= max_frequency:
        return None
    logger.debug(f"Zero-crossing estimate ({method}): {frequency:.2f}Hz")
    return frequency
