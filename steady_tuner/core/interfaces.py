"""Defines the core interfaces for the Steady Tuner application."""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional, Callable

import numpy as np

from ..note_types import TunerReading


class IAudioSource(ABC):
    """Pull source of fixed-length sample frames (the capture collaborator)."""

    @abstractmethod
    def start(self) -> bool:
        """Start capturing audio."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop capturing audio."""
        pass

    @abstractmethod
    def is_running(self) -> bool:
        """Check if audio is running."""
        pass

    @abstractmethod
    def read_frame(self) -> Optional[np.ndarray]:
        """Return the latest full analysis window, or None if none is available yet."""
        pass

    @property
    @abstractmethod
    def sample_rate(self) -> int:
        """The sample rate of the audio stream."""
        pass

    @property
    @abstractmethod
    def frame_size(self) -> int:
        """Number of samples in each frame returned by read_frame."""
        pass


class ITunerService(ABC):
    """Interface for the polling tuner service."""

    @abstractmethod
    def start(self, callback: Optional[Callable[[TunerReading, float], None]] = None) -> bool:
        """Start polling the audio source."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop polling."""
        pass

    @abstractmethod
    def is_running(self) -> bool:
        """Check if the service is running."""
        pass

    @abstractmethod
    def reset(self) -> None:
        """Clear the tuning session."""
        pass
