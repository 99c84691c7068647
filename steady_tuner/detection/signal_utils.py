"""Small numeric helpers shared by the pitch estimators."""

from typing import Optional

import numpy as np
from scipy.signal import butter, sosfiltfilt

from ..logger import get_logger

logger = get_logger(__name__)


def as_frame(samples) -> Optional[np.ndarray]:
    """Coerce a sample sequence into a 1-D float64 array.

    Returns None for empty or non-finite input, or input that cannot be
    interpreted as samples at all. Multi-channel input is down-mixed.
    """
    try:
        frame = np.asarray(samples, dtype=np.float64)
    except (TypeError, ValueError):
        return None
    if frame.ndim == 2:
        frame = frame.mean(axis=1)
    if frame.ndim != 1 or frame.size == 0:
        return None
    if not np.all(np.isfinite(frame)):
        return None
    return frame


def rms(frame: np.ndarray, step: int = 1) -> float:
    """Root mean square of the frame, optionally over every ``step``-th sample."""
    if frame.size == 0:
        return 0.0
    subsampled = frame[:: max(1, int(step))]
    return float(np.sqrt(np.mean(subsampled * subsampled)))


def zero_crossing_frequency(frame: np.ndarray, sample_rate: float, step: int = 2) -> float:
    """Rough frequency from the zero-crossing rate.

    Only good enough to tell bass fundamentals from everything else.
    """
    if frame.size < 2 * step or sample_rate <= 0:
        return 0.0
    signs = np.signbit(frame[::step])
    crossings = int(np.count_nonzero(signs[1:] != signs[:-1]))
    return crossings * sample_rate / (2.0 * frame.size)


def parabolic_offset(left: float, center: float, right: float) -> float:
    """Sub-sample offset of the vertex of the parabola through three points.

    Returns 0.0 when the points are collinear.
    """
    denominator = left - 2.0 * center + right
    if denominator == 0 or not np.isfinite(denominator):
        return 0.0
    offset = 0.5 * (left - right) / denominator
    if not -1.0 <= offset <= 1.0:
        return 0.0
    return float(offset)


def lowpass(frame: np.ndarray, sample_rate: float, cutoff: float, order: int = 4) -> np.ndarray:
    """Zero-phase Butterworth low-pass.

    The frame is returned unchanged when the cutoff is at or above Nyquist
    or the frame is too short to filter.
    """
    nyquist = sample_rate / 2.0
    if cutoff <= 0 or cutoff >= nyquist:
        return frame
    sos = butter(order, cutoff / nyquist, btype="low", output="sos")
    # sosfiltfilt pads by 3 * (2 * len(sos) + 1) samples on each side
    if frame.size <= 3 * (2 * len(sos) + 1):
        return frame
    return sosfiltfilt(sos, frame)
