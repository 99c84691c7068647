import math
import unittest

import pytest

from steady_tuner.note_types import TuningStatus
from steady_tuner.note_utils import (
    NoteNames,
    adjust_reference,
    cents_between,
    classify_frequency,
    convert_note_notation,
    map_note,
    normalize_reference,
    note_to_frequency,
    retune_note,
    semitone_distance,
)
from steady_tuner.note_types import FrequencyRange


class TestMapNote(unittest.TestCase):
    def test_a4(self):
        note = map_note(440.0)
        self.assertEqual(note.note, "A4")
        self.assertEqual(note.cents, 0)
        self.assertEqual(note.tuning_status, TuningStatus.IN_TUNE)
        self.assertEqual(note.midi_number, 69)

    def test_middle_c(self):
        # Middle C (C4) should be ~261.63 Hz
        self.assertEqual(map_note(261.63).note, "C4")

    def test_octave_transitions(self):
        # B3 -> C4
        self.assertEqual(map_note(246.94).note, "B3")
        self.assertEqual(map_note(261.63).note, "C4")

    def test_sharps_and_flats(self):
        self.assertEqual(map_note(277.18).note, "C#4")
        self.assertEqual(map_note(311.13).note, "D#4")
        self.assertEqual(map_note(277.18, use_flats=True).note, "Db4")
        self.assertEqual(map_note(311.13, use_flats=True).note, "Eb4")

        # Naturals never take an accidental
        self.assertEqual(map_note(329.63, use_flats=True).note, "E4")
        self.assertEqual(map_note(493.88, use_flats=True).note, "B4")

    def test_flats_do_not_change_pitch_math(self):
        sharp = map_note(466.0)
        flat = map_note(466.0, use_flats=True)
        self.assertEqual(sharp.exact_frequency, flat.exact_frequency)
        self.assertEqual(sharp.cents, flat.cents)

    def test_445_is_twenty_cents_sharp(self):
        note = map_note(445.0)
        self.assertEqual(note.note, "A4")
        self.assertEqual(note.cents, 20)
        self.assertEqual(note.tuning_status, TuningStatus.SHARP)

    def test_flat_status(self):
        note = map_note(440.0 * 2 ** (-12 / 1200))
        self.assertEqual(note.cents, -12)
        self.assertEqual(note.tuning_status, TuningStatus.FLAT)

    def test_in_tune_band_edges(self):
        self.assertEqual(map_note(440.0 * 2 ** (5 / 1200)).tuning_status, TuningStatus.IN_TUNE)
        self.assertEqual(map_note(440.0 * 2 ** (-5 / 1200)).tuning_status, TuningStatus.IN_TUNE)
        self.assertEqual(map_note(440.0 * 2 ** (6 / 1200)).tuning_status, TuningStatus.SHARP)
        self.assertEqual(map_note(440.0 * 2 ** (-6 / 1200)).tuning_status, TuningStatus.FLAT)

    def test_reference_pitch(self):
        note = map_note(432.0, reference_freq=432.0)
        self.assertEqual(note.note, "A4")
        self.assertEqual(note.cents, 0)
        self.assertAlmostEqual(note.exact_frequency, 432.0)

    def test_negative_offsets_wrap(self):
        self.assertEqual(map_note(27.5).note, "A0")
        self.assertEqual(map_note(16.35).note, "C0")
        self.assertEqual(map_note(8.176).note, "C-1")
        self.assertEqual(map_note(30.87).note, "B0")

    def test_invalid_frequencies_give_unknown_note(self):
        for value in (0.0, -440.0, float("nan"), float("inf"), None, "440"):
            note = map_note(value)
            self.assertTrue(note.is_unknown, value)
            self.assertEqual(note.note, "?")

    def test_wider_display_band(self):
        note = map_note(440.0 * 2 ** (8 / 1200))
        self.assertEqual(note.tuning_status, TuningStatus.SHARP)
        self.assertTrue(note.is_in_tune_for(10))


@pytest.mark.parametrize("reference", [420.0, 432.0, 440.0, 442.5, 460.0])
@pytest.mark.parametrize("note_name", NoteNames.SHARP_NOTES)
def test_exact_frequency_maps_back_with_zero_cents(note_name, reference):
    frequency = note_to_frequency(note_name, 3, reference)
    note = map_note(frequency, reference)
    assert note.note_name == note_name
    assert note.octave == 3
    assert note.cents == 0
    assert note.exact_frequency == pytest.approx(frequency)


def test_note_to_frequency_accepts_flats():
    assert note_to_frequency("Bb", 4) == pytest.approx(note_to_frequency("A#", 4))
    assert note_to_frequency("A", 4) == pytest.approx(440.0)


def test_note_to_frequency_rejects_unknown_names():
    with pytest.raises(ValueError):
        note_to_frequency("H", 4)


def test_cents_between():
    assert cents_between(880.0, 440.0) == 1200
    assert cents_between(440.0, 0.0) is None
    assert cents_between(float("nan"), 440.0) is None


def test_retune_keeps_note_and_exact_frequency():
    locked = map_note(440.0)
    retuned = retune_note(locked, 452.0)
    assert retuned.note == "A4"
    assert retuned.exact_frequency == locked.exact_frequency
    assert retuned.cents == round(1200 * math.log2(452.0 / 440.0))
    assert retuned.tuning_status is TuningStatus.SHARP


def test_semitone_distance():
    assert semitone_distance(map_note(440.0), map_note(466.16)) == 1
    assert semitone_distance(map_note(440.0), map_note(220.0)) == 12
    assert semitone_distance(map_note(440.0), map_note(440.0, use_flats=True)) == 0


@pytest.mark.parametrize(
    "frequency, expected",
    [
        (41.2, FrequencyRange.VERY_LOW),
        (99.9, FrequencyRange.VERY_LOW),
        (110.0, FrequencyRange.LOW),
        (200.0, FrequencyRange.NORMAL),
        (440.0, FrequencyRange.NORMAL),
    ],
)
def test_classify_frequency(frequency, expected):
    assert classify_frequency(frequency) is expected


def test_convert_note_notation():
    assert convert_note_notation("F#2", to_flats=True) == "Gb2"
    assert convert_note_notation("Gb2", to_flats=False) == "F#2"
    assert convert_note_notation("E4", to_flats=True) == "E4"
    assert convert_note_notation("", to_flats=True) == ""


@pytest.mark.parametrize(
    "value, expected",
    [
        (440.0, 440.0),
        (440.3, 440.5),
        (441.2, 441.0),
        (400.0, 420.0),
        (500.0, 460.0),
        (float("nan"), 440.0),
    ],
)
def test_normalize_reference(value, expected):
    assert normalize_reference(value) == expected


def test_adjust_reference_stays_in_range():
    assert adjust_reference(440.0, 0.5) == 440.5
    assert adjust_reference(459.5, 1.0) == 460.0
    assert adjust_reference(420.0, -0.5) == 420.0


if __name__ == "__main__":
    unittest.main()
