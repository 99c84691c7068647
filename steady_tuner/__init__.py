"""Steady Tuner: stable note and cents readings from a mono audio stream."""

from .core.config import TunerConfig
from .note_types import (
    FrequencyRange,
    NoteInfo,
    TrackerPhase,
    TunerReading,
    TuningStatus,
)
from .note_utils import map_note
from .tuner import TunerEngine

__version__ = "0.1.0"

__all__ = [
    "FrequencyRange",
    "NoteInfo",
    "TrackerPhase",
    "TunerConfig",
    "TunerEngine",
    "TunerReading",
    "TuningStatus",
    "map_note",
]
