"""Factory for creating Steady Tuner components."""

from typing import Optional

from ..logger import get_logger
from ..tuner import TunerEngine
from .config import ConfigManager
from .interfaces import IAudioSource

logger = get_logger(__name__)


class ComponentFactory:
    """Builds engines, audio sources and services from stored configuration."""

    AUDIO_SOURCES = ("live", "file")

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        """Initialize the component factory.

        Args:
            config_manager: Configuration manager, or None to create a default one
        """
        self.config_manager = config_manager or ConfigManager()

    def create_engine(self, **overrides) -> TunerEngine:
        """Create a tuner engine.

        Args:
            **overrides: TunerConfig fields that replace the stored values
        """
        config = self.config_manager.get_tuner_config()
        if overrides:
            values = config.to_dict()
            values.update(overrides)
            config = type(config).from_dict(values)
        logger.info("Created tuner engine")
        return TunerEngine(config)

    def create_audio_source(self, kind: str = "live", **kwargs) -> IAudioSource:
        """Create an audio source.

        Args:
            kind: 'live' for an input device, 'file' for a sound file
            **kwargs: Additional parameters to pass to the constructor

        Raises:
            ValueError: If the kind is not known
        """
        if kind not in self.AUDIO_SOURCES:
            raise ValueError(f"Unknown audio source: {kind}")

        audio = self.config_manager.get_config("audio_input")
        frame_size = kwargs.pop("frame_size", audio.get("frame_size", 4096))

        if kind == "file":
            from ..services.audio_providers import WavFileAudioSource

            instance = WavFileAudioSource(frame_size=frame_size, **kwargs)
        else:
            # sounddevice needs PortAudio, so it is only imported for live input
            from ..services.live_input import LiveAudioSource

            kwargs.setdefault("device_id", audio.get("device_id"))
            kwargs.setdefault("sample_rate", audio.get("sample_rate", 44100))
            instance = LiveAudioSource(frame_size=frame_size, **kwargs)

        logger.info(f"Created audio source: {kind}")
        return instance

    def create_tuner_service(self, audio_source: Optional[IAudioSource] = None, **kwargs):
        """Create a tuner service wired to the stored preferences.

        Args:
            audio_source: Source of frames, or None to create a live one
            **kwargs: Additional parameters to pass to the constructor
        """
        from ..services.tuner_service import TunerService

        if audio_source is None:
            audio_source = self.create_audio_source("live")
        audio = self.config_manager.get_config("audio_input")
        kwargs.setdefault("engine", self.create_engine())
        kwargs.setdefault("poll_interval", audio.get("poll_interval", 0.05))
        kwargs.setdefault("reference_a4", self.config_manager.reference_a4)
        kwargs.setdefault("use_flats", self.config_manager.use_flats)

        instance = TunerService(audio_source, **kwargs)
        logger.info("Created tuner service")
        return instance
