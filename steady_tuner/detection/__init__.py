"""Pitch detection pipeline: estimation, smoothing and note locking."""

from .frequency_estimator import FrequencyEstimator
from .frequency_smoother import FrequencySmoother
from .stability_tracker import StabilityTracker

__all__ = ["FrequencyEstimator", "FrequencySmoother", "StabilityTracker"]
