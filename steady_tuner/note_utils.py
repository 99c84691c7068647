"""Utility functions for working with musical notes and frequencies."""

import math
import numbers
from typing import ClassVar, Dict, List, Optional, Tuple

import numpy as np

from .logger import get_logger
from .note_types import (
    FrequencyRange,
    NoteInfo,
    TuningStatus,
    UNKNOWN_NOTE_NAME,
)

logger = get_logger(__name__)

DEFAULT_A4_FREQ = 440.0
A4_MIDI_NUMBER = 69

MIN_REFERENCE_FREQ = 420.0
MAX_REFERENCE_FREQ = 460.0
REFERENCE_STEP = 0.5

IN_TUNE_CENTS = 5

VERY_LOW_FREQUENCY_THRESHOLD = 100.0  # Below this the zero-crossing estimator is used
LOW_FREQUENCY_THRESHOLD = 200.0  # Below this smoothing is bypassed


class NoteNames:
    """Note alphabets and sharp/flat conversion tables."""

    SHARP_NOTES: ClassVar[List[str]] = [
        "C",
        "C#",
        "D",
        "D#",
        "E",
        "F",
        "F#",
        "G",
        "G#",
        "A",
        "A#",
        "B",
    ]
    FLAT_NOTES: ClassVar[List[str]] = [
        "C",
        "Db",
        "D",
        "Eb",
        "E",
        "F",
        "Gb",
        "G",
        "Ab",
        "A",
        "Bb",
        "B",
    ]

    SHARP_TO_FLAT: ClassVar[Dict[str, str]] = {
        "C#": "Db",
        "D#": "Eb",
        "F#": "Gb",
        "G#": "Ab",
        "A#": "Bb",
    }
    FLAT_TO_SHARP: ClassVar[Dict[str, str]] = {v: k for k, v in SHARP_TO_FLAT.items()}

    @classmethod
    def alphabet(cls, use_flats: bool) -> List[str]:
        return cls.FLAT_NOTES if use_flats else cls.SHARP_NOTES

    @classmethod
    def index_of(cls, note_name: str) -> Optional[int]:
        """Pitch class index (0 = C) of a sharp or flat note name."""
        name = cls.FLAT_TO_SHARP.get(note_name, note_name)
        try:
            return cls.SHARP_NOTES.index(name)
        except ValueError:
            return None


def unknown_note(frequency: float) -> NoteInfo:
    """The explicit result for frequencies that cannot be mapped."""
    return NoteInfo(
        note_name=UNKNOWN_NOTE_NAME,
        octave=0,
        frequency=frequency,
        exact_frequency=frequency,
        cents=0,
        tuning_status=TuningStatus.IN_TUNE,
    )


def tuning_status_for(cents: int, in_tune_cents: float = IN_TUNE_CENTS) -> TuningStatus:
    if cents < -in_tune_cents:
        return TuningStatus.FLAT
    if cents > in_tune_cents:
        return TuningStatus.SHARP
    return TuningStatus.IN_TUNE


def cents_between(frequency: float, target: float) -> Optional[int]:
    """Signed distance in whole cents from ``target`` to ``frequency``.

    Returns None when either value is not a positive finite number.
    """
    if not (_is_positive_finite(frequency) and _is_positive_finite(target)):
        return None
    return int(round(1200.0 * math.log2(frequency / target)))


def map_note(
    frequency: float,
    reference_freq: float = DEFAULT_A4_FREQ,
    use_flats: bool = False,
    in_tune_cents: float = IN_TUNE_CENTS,
) -> NoteInfo:
    """Map a frequency to the nearest equal-tempered note.

    Args:
        frequency: Frequency in Hz
        reference_freq: Frequency of A4 in Hz
        use_flats: Spell accidentals as flats ('Bb') instead of sharps ('A#')
        in_tune_cents: Half-width of the in-tune band

    Returns:
        NoteInfo for the closest note. Frequencies that cannot be mapped
        (non-finite, non-positive, or out of range) give an unknown note
        instead of raising.

    Examples:
        >>> map_note(440.0).note
        'A4'
        >>> map_note(466.16, use_flats=True).note
        'Bb4'
    """
    if not _is_positive_finite(frequency) or not _is_positive_finite(reference_freq):
        logger.debug(f"Cannot map frequency {frequency} at reference {reference_freq}")
        return unknown_note(frequency)

    semitones = 12.0 * math.log2(frequency / reference_freq)
    if not math.isfinite(semitones):
        return unknown_note(frequency)

    midi_number = A4_MIDI_NUMBER + int(round(semitones))
    return note_from_midi(midi_number, frequency, reference_freq, use_flats, in_tune_cents)


def note_from_midi(
    midi_number: int,
    frequency: float,
    reference_freq: float = DEFAULT_A4_FREQ,
    use_flats: bool = False,
    in_tune_cents: float = IN_TUNE_CENTS,
) -> NoteInfo:
    """Measure ``frequency`` against a given note number."""
    # MIDI 60 is C4
    octave = midi_number // 12 - 1
    note_index = midi_number % 12
    if not 0 <= note_index < 12:
        return unknown_note(frequency)

    note_name = NoteNames.alphabet(use_flats)[note_index]
    exact_frequency = reference_freq * 2.0 ** ((midi_number - A4_MIDI_NUMBER) / 12.0)
    cents = cents_between(frequency, exact_frequency)
    if cents is None:
        return unknown_note(frequency)

    return NoteInfo(
        note_name=note_name,
        octave=octave,
        frequency=frequency,
        exact_frequency=exact_frequency,
        cents=cents,
        tuning_status=tuning_status_for(cents, in_tune_cents),
        midi_number=midi_number,
    )


def retune_note(
    note: NoteInfo, frequency: float, in_tune_cents: float = IN_TUNE_CENTS
) -> NoteInfo:
    """Re-measure ``frequency`` against an already chosen note.

    The note name, octave and exact frequency are kept; only the input
    frequency, cents and status change. Used to update cents around a
    locked note without remapping it.
    """
    cents = cents_between(frequency, note.exact_frequency)
    if cents is None:
        return note
    return NoteInfo(
        note_name=note.note_name,
        octave=note.octave,
        frequency=frequency,
        exact_frequency=note.exact_frequency,
        cents=cents,
        tuning_status=tuning_status_for(cents, in_tune_cents),
        midi_number=note.midi_number,
    )


def note_to_frequency(
    note_name: str, octave: int, reference_freq: float = DEFAULT_A4_FREQ
) -> float:
    """Nominal 12-TET frequency of a note.

    Args:
        note_name: Sharp or flat note name (e.g., 'F#' or 'Gb')
        octave: Scientific pitch octave

    Raises:
        ValueError: If the note name is not in either alphabet
    """
    index = NoteNames.index_of(note_name)
    if index is None:
        raise ValueError(f"Unknown note name: {note_name}")
    midi_number = (octave + 1) * 12 + index
    return reference_freq * 2.0 ** ((midi_number - A4_MIDI_NUMBER) / 12.0)


def semitone_distance(a: NoteInfo, b: NoteInfo) -> int:
    """Absolute distance in semitones between two mapped notes."""
    if a.midi_number >= 0 and b.midi_number >= 0:
        return abs(a.midi_number - b.midi_number)
    ia = NoteNames.index_of(a.note_name)
    ib = NoteNames.index_of(b.note_name)
    if ia is None or ib is None:
        return 12
    return abs((a.octave * 12 + ia) - (b.octave * 12 + ib))


def same_note(a: Optional[NoteInfo], b: Optional[NoteInfo]) -> bool:
    """Compare notes by pitch, ignoring spelling and cents."""
    if a is None or b is None:
        return False
    return semitone_distance(a, b) == 0


def split_note(note: str) -> Tuple[str, Optional[int]]:
    """Split 'C#4' into ('C#', 4); octave is None when absent."""
    name = "".join(c for c in note if not c.isdigit() and c != "-").strip()
    octave_part = note[len(name) :]
    try:
        return name, int(octave_part) if octave_part else None
    except ValueError:
        return name, None


def convert_note_notation(note_name: str, to_flats: bool = False) -> str:
    """Convert a note name between sharp and flat notation.

    Args:
        note_name: The note name to convert (e.g., 'F#2' or 'Gb2')
        to_flats: If True, convert to flats (e.g., 'Gb2'), otherwise to sharps (e.g., 'F#2')

    Returns:
        str: The converted note name, or original if no conversion needed or invalid

    Examples:
        >>> convert_note_notation('F#2', to_flats=True)
        'Gb2'
        >>> convert_note_notation('Gb2', to_flats=False)
        'F#2'
    """
    if not note_name or not isinstance(note_name, str):
        return note_name or ""

    name, octave = split_note(note_name)
    suffix = "" if octave is None else str(octave)
    if to_flats and name in NoteNames.SHARP_TO_FLAT:
        return f"{NoteNames.SHARP_TO_FLAT[name]}{suffix}"
    if not to_flats and name in NoteNames.FLAT_TO_SHARP:
        return f"{NoteNames.FLAT_TO_SHARP[name]}{suffix}"
    return note_name


def classify_frequency(
    frequency: float,
    very_low_threshold: float = VERY_LOW_FREQUENCY_THRESHOLD,
    low_threshold: float = LOW_FREQUENCY_THRESHOLD,
) -> FrequencyRange:
    """Classify a frequency into a range category."""
    if frequency < very_low_threshold:
        return FrequencyRange.VERY_LOW
    if frequency < low_threshold:
        return FrequencyRange.LOW
    return FrequencyRange.NORMAL


def normalize_reference(value: float) -> float:
    """Snap a reference pitch to the 0.5 Hz grid inside the supported range."""
    if not isinstance(value, numbers.Real) or not np.isfinite(value):
        logger.warning(f"Invalid reference pitch {value}, using {DEFAULT_A4_FREQ}")
        return DEFAULT_A4_FREQ
    snapped = round(value / REFERENCE_STEP) * REFERENCE_STEP
    return float(min(MAX_REFERENCE_FREQ, max(MIN_REFERENCE_FREQ, snapped)))


def adjust_reference(current: float, increment: float) -> float:
    """Step the reference pitch up or down, staying inside the supported range."""
    return normalize_reference(current + increment)


def _is_positive_finite(value) -> bool:
    try:
        return math.isfinite(value) and value > 0
    except TypeError:
        return False
