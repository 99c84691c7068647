"""Type definitions for the Steady Tuner project."""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class TuningStatus(str, Enum):
    """Canonical tuning classification of a mapped note."""

    FLAT = "flat"
    SHARP = "sharp"
    IN_TUNE = "in-tune"


class FrequencyRange(str, Enum):
    """Frequency range used to pick smoothing and locking parameters."""

    VERY_LOW = "very-low"  # < 100 Hz
    LOW = "low"  # < 200 Hz
    NORMAL = "normal"

    @property
    def is_low(self) -> bool:
        return self is not FrequencyRange.NORMAL


class TrackerPhase(str, Enum):
    """Phases of the stability tracker."""

    IDLE = "idle"  # No note displayed
    PROVISIONAL = "provisional"  # Candidate seen, not yet confirmed
    LOCKED = "locked"  # Note confirmed and displayed


UNKNOWN_NOTE_NAME = "?"


@dataclass(frozen=True)
class NoteInfo:
    """A frequency mapped onto the nearest 12-TET note."""

    note_name: str  # Letter plus optional accidental (e.g., 'A', 'C#', 'Bb')
    octave: int  # Scientific pitch octave (C4 is middle C)
    frequency: float  # Input frequency in Hz
    exact_frequency: float  # Nominal frequency of the note at the reference pitch
    cents: int  # Signed deviation, round(1200 * log2(frequency / exact_frequency))
    tuning_status: TuningStatus
    midi_number: int = -1  # A4 = 69

    @property
    def note(self) -> str:
        """Note name with octave (e.g., 'A4')."""
        if self.is_unknown:
            return UNKNOWN_NOTE_NAME
        return f"{self.note_name}{self.octave}"

    @property
    def is_unknown(self) -> bool:
        return self.note_name == UNKNOWN_NOTE_NAME

    def label(self, show_octave: bool = True) -> str:
        return self.note if show_octave else self.note_name

    def is_in_tune_for(self, band_cents: float) -> bool:
        """Check the cents deviation against a display band wider than the canonical one."""
        return abs(self.cents) <= band_cents

    def __str__(self):
        return f"{self.note} ({self.frequency:.1f}Hz, {self.cents:+d}c)"


@dataclass(frozen=True)
class FrequencyCandidate:
    """One per-frame pitch estimate."""

    frequency: float  # Hz
    frequency_range: FrequencyRange
    strategy: str = ""  # Which estimator produced it ('yin', 'zero-crossing', 'blend')


@dataclass(frozen=True)
class SmoothedFrequency:
    """Output of the frequency smoother for one accepted candidate."""

    frequency: float  # Full precision
    frequency_range: FrequencyRange
    consistent: bool = True  # Within tolerance of the history median
    octave_corrected: bool = False

    @property
    def display_frequency(self) -> float:
        return round(self.frequency, 1)


@dataclass(frozen=True)
class TunerReading:
    """What the engine reports to the host after each analysis cycle."""

    signal_present: bool
    note: Optional[NoteInfo] = None
    is_locked: bool = False
    frequency: Optional[float] = None  # Smoothed frequency in Hz
    frequency_range: Optional[FrequencyRange] = None
    note_changed: bool = False  # Set on the frame where a locked note was replaced
    signal_level: float = 0.0  # RMS of the frame

    def __post_init__(self):
        if not self.signal_present and self.note is not None:
            raise ValueError("A reading without signal cannot carry a note")
        if self.is_locked and self.note is None:
            raise ValueError("A locked reading must carry a note")

    @property
    def tuning_status(self) -> Optional[TuningStatus]:
        return self.note.tuning_status if self.note is not None else None

    @property
    def cents(self) -> int:
        return self.note.cents if self.note is not None else 0

    @property
    def display_frequency(self) -> Optional[float]:
        if self.frequency is None:
            return None
        return round(self.frequency, 1)


SILENT_READING = TunerReading(signal_present=False)
