"""Core components for the Steady Tuner application."""

# Import interfaces for easier access
from .config import ConfigManager, TunerConfig
from .interfaces import IAudioSource, ITunerService

__all__ = ["ConfigManager", "TunerConfig", "IAudioSource", "ITunerService"]
