"""Configuration management for Steady Tuner components."""

from __future__ import annotations
from dataclasses import asdict, dataclass, fields
from typing import Dict, Any, Optional, Tuple
import json
import os
from pathlib import Path

from ..logger import get_logger
from ..note_types import FrequencyRange
from ..note_utils import DEFAULT_A4_FREQ, normalize_reference

logger = get_logger(__name__)

CONFIG_VERSION = 1


@dataclass(frozen=True)
class TunerConfig:
    """Every threshold the analysis pipeline uses, in one place."""

    version: int = CONFIG_VERSION

    # Estimator
    silence_floor: float = 0.001  # RMS below this is silence
    rms_step: int = 4  # Subsampling step for the RMS estimate
    min_frequency: float = 20.0
    max_frequency: float = 8000.0
    min_frame_size: int = 2048
    very_low_threshold: float = 100.0
    low_threshold: float = 200.0
    yin_threshold: float = 0.07
    yin_fallback_max: float = 0.35  # Accept the global CMNDF minimum only below this
    overlap_min: float = 100.0
    overlap_max: float = 300.0
    overlap_agreement: float = 0.10
    overlap_yin_weight: float = 0.7
    lowpass_cutoff: float = 400.0
    lowpass_order: int = 4
    peak_floor: float = 0.01
    peak_ratio: float = 0.5
    crossing_slope_ratio: float = 0.01

    # Smoother
    history_size: int = 16
    octave_tolerance: float = 0.10
    consistency_tolerance: float = 0.05
    outlier_tolerance: float = 0.08
    outlier_window: int = 5
    outlier_new_weight: float = 3.0
    smoothing_decay: float = 0.7
    octave_fold_limit: int = 6

    # Note mapper
    in_tune_cents: float = 5.0
    display_in_tune_cents: float = 10.0

    # Stability tracker
    signal_threshold: float = 0.0025
    locked_threshold_scale: float = 0.6
    very_low_threshold_scale: float = 0.75
    sustain_threshold_scale: float = 0.4
    hold_time: float = 0.4  # Seconds of silence before returning to idle
    # (range value, frames) pairs; a mapping is accepted and normalized
    lock_frames: Tuple[Tuple[str, int], ...] = (
        (FrequencyRange.LOW.value, 2),
        (FrequencyRange.NORMAL.value, 3),
        (FrequencyRange.VERY_LOW.value, 2),
    )
    switch_frames: int = 3
    adjacent_semitones: int = 2
    adjacent_extra_frames: int = 3
    in_tune_extra_frames: int = 2
    in_tune_hold_time: float = 0.5
    long_lock_time: float = 1.5
    long_lock_extra_frames: int = 2

    def __post_init__(self):
        lock_frames = dict(self.lock_frames)
        object.__setattr__(self, "lock_frames", tuple(sorted(lock_frames.items())))

        if self.history_size < 1:
            raise ValueError("history_size must be at least 1")
        if not 0 < self.min_frequency < self.max_frequency:
            raise ValueError("min_frequency must be positive and below max_frequency")
        if self.min_frame_size < 2:
            raise ValueError("min_frame_size must be at least 2")
        if not 0.0 < self.yin_threshold < 1.0:
            raise ValueError("yin_threshold must be between 0.0 and 1.0")
        if not 0.0 <= self.overlap_yin_weight <= 1.0:
            raise ValueError("overlap_yin_weight must be between 0.0 and 1.0")
        if not 0.0 < self.smoothing_decay <= 1.0:
            raise ValueError("smoothing_decay must be in (0.0, 1.0]")
        if self.signal_threshold <= 0 or self.silence_floor < 0:
            raise ValueError("signal thresholds must be positive")
        if self.hold_time < 0:
            raise ValueError("hold_time must not be negative")
        if self.switch_frames < 1:
            raise ValueError("switch_frames must be at least 1")
        for key, frames in self.lock_frames:
            FrequencyRange(key)
            if frames < 1:
                raise ValueError(f"lock_frames[{key}] must be at least 1")

    def lock_frames_for(self, frequency_range: FrequencyRange) -> int:
        lock_frames = dict(self.lock_frames)
        return lock_frames.get(frequency_range.value, lock_frames.get(FrequencyRange.NORMAL.value, 3))

    def to_dict(self) -> Dict[str, Any]:
        """Plain JSON-friendly values; ``lock_frames`` becomes a mapping."""
        values = asdict(self)
        values["lock_frames"] = dict(self.lock_frames)
        return values

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TunerConfig":
        """Build a config from a dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown tuner config keys: {sorted(unknown)}")
        values = {k: v for k, v in data.items() if k in known}
        if "lock_frames" in values:
            lock_frames = dict(cls().lock_frames)
            lock_frames.update(dict(values["lock_frames"]))
            values["lock_frames"] = lock_frames
        return cls(**values)


class ConfigManager:
    """Configuration manager for Steady Tuner components."""

    def __init__(self, config_dir: Optional[str] = None):
        """Initialize the configuration manager.

        Args:
            config_dir: Directory to store configuration files, or None to use default
        """
        if config_dir is None:
            # Use ~/.config/steady_tuner by default
            home = os.path.expanduser("~")
            config_dir = os.path.join(home, ".config", "steady_tuner")

        self.config_dir = Path(config_dir)
        self.config_dir.mkdir(parents=True, exist_ok=True)

        # Default configurations
        self.default_configs = {
            "preferences": {
                "reference_a4": DEFAULT_A4_FREQ,
                "use_flats": False,
                "show_octave": True,
            },
            "tuner": {},
            "audio_input": {
                "sample_rate": 44100,
                "frame_size": 4096,
                "device_id": None,
                "poll_interval": 0.05,
            },
        }

        # Load existing configurations or create default ones
        self.configs = {}
        for config_name, default_config in self.default_configs.items():
            self.configs[config_name] = self.load_config(config_name, default_config)

    def load_config(self, name: str, default_config: Dict[str, Any]) -> Dict[str, Any]:
        """Load configuration from file or create default.

        Args:
            name: Configuration name
            default_config: Default configuration to use if file doesn't exist

        Returns:
            Configuration dictionary
        """
        config_file = self.config_dir / f"{name}.json"

        if config_file.exists():
            try:
                with open(config_file, "r") as f:
                    config = json.load(f)
                if not isinstance(config, dict):
                    raise ValueError("configuration root must be an object")
                logger.info(f"Loaded configuration from {config_file}")

                # Ensure all default keys are present
                for key, value in default_config.items():
                    if key not in config:
                        config[key] = value

                return config
            except (OSError, ValueError) as e:
                logger.error(f"Error loading configuration from {config_file}: {e}")
                return default_config.copy()
        else:
            # Create default configuration
            config = default_config.copy()
            self.save_config(name, config)
            return config

    def save_config(self, name: str, config: Dict[str, Any]) -> bool:
        """Save configuration to file.

        Args:
            name: Configuration name
            config: Configuration dictionary

        Returns:
            True if saved successfully, False otherwise
        """
        config_file = self.config_dir / f"{name}.json"

        try:
            with open(config_file, "w") as f:
                json.dump(config, f, indent=2)
            logger.info(f"Saved configuration to {config_file}")
            return True
        except (OSError, TypeError) as e:
            logger.error(f"Error saving configuration to {config_file}: {e}")
            return False

    def get_config(self, name: str) -> Dict[str, Any]:
        """Get configuration by name.

        Args:
            name: Configuration name

        Returns:
            Configuration dictionary
        """
        return self.configs.get(name, {}).copy()

    def update_config(self, name: str, updates: Dict[str, Any]) -> bool:
        """Update configuration and save to file.

        Args:
            name: Configuration name
            updates: Dictionary of updates to apply

        Returns:
            True if updated and saved successfully, False otherwise
        """
        if name not in self.configs:
            logger.error(f"Unknown configuration: {name}")
            return False

        self.configs[name].update(updates)
        return self.save_config(name, self.configs[name])

    def reset_config(self, name: str) -> bool:
        """Reset configuration to default.

        Args:
            name: Configuration name

        Returns:
            True if reset successfully, False otherwise
        """
        if name not in self.default_configs:
            logger.error(f"Unknown configuration: {name}")
            return False

        self.configs[name] = self.default_configs[name].copy()
        return self.save_config(name, self.configs[name])

    def get_tuner_config(self) -> TunerConfig:
        """Build the analysis parameters from the stored overrides."""
        try:
            return TunerConfig.from_dict(self.get_config("tuner"))
        except (TypeError, ValueError) as e:
            logger.error(f"Invalid tuner configuration, using defaults: {e}")
            return TunerConfig()

    @property
    def reference_a4(self) -> float:
        return normalize_reference(
            self.configs["preferences"].get("reference_a4", DEFAULT_A4_FREQ)
        )

    @property
    def use_flats(self) -> bool:
        return bool(self.configs["preferences"].get("use_flats", False))

    def set_reference_a4(self, value: float) -> float:
        """Store a new reference pitch, snapped to the supported grid."""
        reference = normalize_reference(value)
        self.update_config("preferences", {"reference_a4": reference})
        return reference
