"""Hysteresis and note locking on top of per-frame note estimates."""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Optional, Union

from ..core.config import TunerConfig
from ..logger import get_logger
from ..note_types import (
    FrequencyRange,
    NoteInfo,
    SILENT_READING,
    SmoothedFrequency,
    TrackerPhase,
    TunerReading,
    TuningStatus,
)
from ..note_utils import note_from_midi, retune_note, same_note, semitone_distance

logger = get_logger(__name__)


@dataclass
class Idle:
    phase = TrackerPhase.IDLE


@dataclass
class Provisional:
    note: NoteInfo
    frequency_range: FrequencyRange
    count: int = 1

    phase = TrackerPhase.PROVISIONAL


@dataclass
class Locked:
    note: NoteInfo  # Displayed note; cents are relative to its exact frequency
    frequency_range: FrequencyRange
    locked_at: float
    different_count: int = 0
    pending: Optional[NoteInfo] = None
    in_tune_since: Optional[float] = None

    phase = TrackerPhase.LOCKED


TrackerState = Union[Idle, Provisional, Locked]


class StabilityTracker:
    """Decides which note is displayed, frame by frame.

    ``Idle`` -> ``Provisional`` on the first qualifying frame,
    ``Provisional`` -> ``Locked`` after enough consecutive frames of the
    same note, ``Locked`` -> ``Locked`` on another note once the
    disagreement counter reaches an adaptive threshold, and any state ->
    ``Idle`` after ``hold_time`` seconds without signal.

    Timestamps are supplied by the caller; nothing here reads a clock.
    """

    def __init__(self, config: Optional[TunerConfig] = None) -> None:
        self._config = config or TunerConfig()
        self._state: TrackerState = Idle()
        self._last_signal_time: Optional[float] = None
        self._last_reading = SILENT_READING

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def phase(self) -> TrackerPhase:
        return self._state.phase

    @property
    def locked_note(self) -> Optional[NoteInfo]:
        if isinstance(self._state, Locked):
            return self._state.note
        return None

    def reset(self) -> None:
        """Drop the displayed note and all counters."""
        self._state = Idle()
        self._last_signal_time = None
        self._last_reading = SILENT_READING

    def detection_threshold(self) -> float:
        """RMS a frame needs to count as evidence for a note."""
        cfg = self._config
        threshold = cfg.signal_threshold
        if isinstance(self._state, Locked):
            threshold *= cfg.locked_threshold_scale
            if self._state.frequency_range is FrequencyRange.VERY_LOW:
                threshold *= cfg.very_low_threshold_scale
        return threshold

    @property
    def sustain_threshold(self) -> float:
        """RMS that keeps an already detected signal alive.

        Never below the estimator's silence floor, so a frame the
        estimator treats as silence is never reported as signal.
        """
        cfg = self._config
        return max(cfg.silence_floor, cfg.signal_threshold * cfg.sustain_threshold_scale)

    def switch_threshold(self, candidate: NoteInfo, now: float) -> int:
        """Consecutive disagreeing frames needed to leave the locked note."""
        cfg = self._config
        state = self._state
        if not isinstance(state, Locked):
            return cfg.switch_frames

        threshold = cfg.switch_frames
        if semitone_distance(state.note, candidate) <= cfg.adjacent_semitones:
            threshold += cfg.adjacent_extra_frames
        if state.in_tune_since is not None and now - state.in_tune_since >= cfg.in_tune_hold_time:
            threshold += cfg.in_tune_extra_frames
        if now - state.locked_at > cfg.long_lock_time:
            threshold += cfg.long_lock_extra_frames
        return threshold

    def rebase(self, reference_freq: float, use_flats: bool) -> None:
        """Re-spell and re-reference the current note after a settings change."""
        state = self._state
        if isinstance(state, (Provisional, Locked)) and state.note.midi_number >= 0:
            note = note_from_midi(
                state.note.midi_number,
                state.note.frequency,
                reference_freq,
                use_flats,
                self._config.in_tune_cents,
            )
            if not note.is_unknown:
                state.note = note

    def update(
        self,
        note: Optional[NoteInfo],
        smoothed: Optional[SmoothedFrequency],
        signal_level: float,
        now: float,
    ) -> TunerReading:
        """Advance the state machine by one analysis cycle.

        Args:
            note: Note mapped from the smoothed frequency, or None
            smoothed: Smoothed frequency the note was mapped from, or None
            signal_level: RMS of the frame
            now: Host-supplied timestamp in seconds

        Returns:
            The reading to display for this cycle
        """
        if signal_level >= self.sustain_threshold:
            self._last_signal_time = now

        qualifying = (
            note is not None
            and not note.is_unknown
            and smoothed is not None
            and signal_level >= self.detection_threshold()
        )

        if qualifying:
            state = self._state
            if isinstance(state, Locked):
                reading = self._update_locked(state, note, smoothed, signal_level, now)
            elif isinstance(state, Provisional):
                reading = self._update_provisional(state, note, smoothed, signal_level, now)
            else:
                reading = self._start_provisional(note, smoothed, signal_level, now)
            self._last_reading = reading
            return reading

        return self._without_candidate(signal_level, now)

    def _without_candidate(self, signal_level: float, now: float) -> TunerReading:
        if isinstance(self._state, Idle):
            return TunerReading(
                signal_present=signal_level >= self.sustain_threshold,
                signal_level=signal_level,
            )

        silent_for = now - self._last_signal_time if self._last_signal_time is not None else 0.0
        if silent_for >= self._config.hold_time:
            logger.info(f"Signal lost for {silent_for:.2f}s, releasing {self._state.note.note}")
            self.reset()
            return replace(SILENT_READING, signal_level=signal_level)

        # Hold the last display through short dips
        return replace(self._last_reading, note_changed=False, signal_level=signal_level)

    def _start_provisional(
        self, note: NoteInfo, smoothed: SmoothedFrequency, signal_level: float, now: float
    ) -> TunerReading:
        self._state = Provisional(note=note, frequency_range=smoothed.frequency_range)
        logger.debug(f"Provisional {note.note}")
        if self._config.lock_frames_for(smoothed.frequency_range) <= 1:
            return self._lock(note, smoothed, signal_level, now)
        return self._reading(note, smoothed, signal_level, locked=False)

    def _update_provisional(
        self,
        state: Provisional,
        note: NoteInfo,
        smoothed: SmoothedFrequency,
        signal_level: float,
        now: float,
    ) -> TunerReading:
        if not same_note(state.note, note):
            return self._start_provisional(note, smoothed, signal_level, now)

        state.count += 1
        state.note = note
        state.frequency_range = smoothed.frequency_range
        if state.count >= self._config.lock_frames_for(smoothed.frequency_range):
            return self._lock(note, smoothed, signal_level, now)
        return self._reading(note, smoothed, signal_level, locked=False)

    def _lock(
        self, note: NoteInfo, smoothed: SmoothedFrequency, signal_level: float, now: float
    ) -> TunerReading:
        in_tune = note.tuning_status is TuningStatus.IN_TUNE
        self._state = Locked(
            note=note,
            frequency_range=smoothed.frequency_range,
            locked_at=now,
            in_tune_since=now if in_tune else None,
        )
        logger.info(f"Locked {note.note} ({note.frequency:.1f}Hz, {note.cents:+d}c)")
        return self._reading(note, smoothed, signal_level, locked=True)

    def _update_locked(
        self,
        state: Locked,
        note: NoteInfo,
        smoothed: SmoothedFrequency,
        signal_level: float,
        now: float,
    ) -> TunerReading:
        cfg = self._config
        if same_note(state.note, note):
            state.different_count = 0
            state.pending = None
            state.note = retune_note(state.note, smoothed.frequency, cfg.in_tune_cents)
            if state.note.tuning_status is TuningStatus.IN_TUNE:
                if state.in_tune_since is None:
                    state.in_tune_since = now
            else:
                state.in_tune_since = None
            return self._reading(state.note, smoothed, signal_level, locked=True)

        # Count consecutive frames agreeing on the same new note, so the
        # smoothed frequency gliding through neighbours is not locked onto
        if same_note(state.pending, note):
            state.different_count += 1
        else:
            state.different_count = 1
        state.pending = note
        threshold = self.switch_threshold(note, now)
        logger.debug(
            f"{note.note} disagrees with locked {state.note.note} "
            f"({state.different_count}/{threshold})"
        )
        if state.different_count >= threshold:
            previous = state.note
            reading = self._lock(note, smoothed, signal_level, now)
            logger.info(f"Switched {previous.note} -> {note.note}")
            return replace(reading, note_changed=True)

        # Keep the locked note and its last cents until the switch is decided
        return replace(
            self._reading(state.note, smoothed, signal_level, locked=True),
            frequency=state.note.frequency,
            frequency_range=state.frequency_range,
        )

    def _reading(
        self, note: NoteInfo, smoothed: SmoothedFrequency, signal_level: float, locked: bool
    ) -> TunerReading:
        return TunerReading(
            signal_present=True,
            note=note,
            is_locked=locked,
            frequency=smoothed.frequency,
            frequency_range=smoothed.frequency_range,
            signal_level=signal_level,
        )
