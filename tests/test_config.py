import json

import pytest

from steady_tuner.core.config import CONFIG_VERSION, ConfigManager, TunerConfig
from steady_tuner.core.factory import ComponentFactory
from steady_tuner.note_types import FrequencyRange
from steady_tuner.services.audio_providers import WavFileAudioSource


@pytest.fixture
def config_manager(tmp_path):
    return ConfigManager(str(tmp_path))


class TestTunerConfig:
    def test_defaults(self):
        config = TunerConfig()
        assert config.version == CONFIG_VERSION
        assert config.history_size == 16
        assert config.in_tune_cents == 5
        assert config.lock_frames_for(FrequencyRange.NORMAL) == 3
        assert config.lock_frames_for(FrequencyRange.LOW) == 2
        assert config.lock_frames_for(FrequencyRange.VERY_LOW) == 2

    @pytest.mark.parametrize(
        "overrides",
        [
            {"history_size": 0},
            {"min_frequency": 500.0, "max_frequency": 100.0},
            {"yin_threshold": 1.5},
            {"smoothing_decay": 0.0},
            {"signal_threshold": 0.0},
            {"hold_time": -1.0},
            {"switch_frames": 0},
            {"lock_frames": {"normal": 0}},
            {"lock_frames": {"treble": 2}},
        ],
    )
    def test_invalid_values_raise(self, overrides):
        with pytest.raises(ValueError):
            TunerConfig(**overrides)

    def test_from_dict_ignores_unknown_keys(self):
        config = TunerConfig.from_dict({"hold_time": 0.8, "colour": "blue"})
        assert config.hold_time == 0.8

    def test_from_dict_merges_lock_frames(self):
        config = TunerConfig.from_dict({"lock_frames": {"normal": 5}})
        assert config.lock_frames_for(FrequencyRange.NORMAL) == 5
        assert config.lock_frames_for(FrequencyRange.VERY_LOW) == 2

    def test_round_trip_through_dict(self):
        config = TunerConfig(hold_time=0.6)
        assert TunerConfig.from_dict(config.to_dict()) == config


class TestConfigManager:
    def test_creates_default_files(self, tmp_path, config_manager):
        for name in ("preferences", "tuner", "audio_input"):
            assert (tmp_path / f"{name}.json").exists()
        assert config_manager.reference_a4 == 440.0
        assert not config_manager.use_flats

    def test_reference_is_snapped_and_persisted(self, tmp_path, config_manager):
        assert config_manager.set_reference_a4(441.3) == 441.5
        reloaded = ConfigManager(str(tmp_path))
        assert reloaded.reference_a4 == 441.5

    def test_missing_keys_are_filled(self, tmp_path):
        (tmp_path / "preferences.json").write_text(json.dumps({"use_flats": True}))
        config_manager = ConfigManager(str(tmp_path))
        preferences = config_manager.get_config("preferences")
        assert preferences["use_flats"] is True
        assert preferences["show_octave"] is True
        assert config_manager.reference_a4 == 440.0

    def test_unreadable_file_falls_back_to_defaults(self, tmp_path):
        (tmp_path / "audio_input.json").write_text("{not json")
        config_manager = ConfigManager(str(tmp_path))
        assert config_manager.get_config("audio_input")["frame_size"] == 4096

    def test_update_unknown_config(self, config_manager):
        assert not config_manager.update_config("nonexistent", {"a": 1})

    def test_reset_config(self, config_manager):
        config_manager.update_config("preferences", {"use_flats": True})
        assert config_manager.reset_config("preferences")
        assert not config_manager.use_flats

    def test_tuner_overrides(self, config_manager):
        config_manager.update_config("tuner", {"hold_time": 1.0})
        assert config_manager.get_tuner_config().hold_time == 1.0

    def test_invalid_tuner_overrides_use_defaults(self, config_manager):
        config_manager.update_config("tuner", {"history_size": -3})
        assert config_manager.get_tuner_config() == TunerConfig()


class TestComponentFactory:
    def test_engine_uses_stored_and_override_values(self, config_manager):
        config_manager.update_config("tuner", {"hold_time": 1.0})
        factory = ComponentFactory(config_manager)
        assert factory.create_engine().config.hold_time == 1.0
        assert factory.create_engine(switch_frames=4).config.switch_frames == 4

    def test_file_source(self, config_manager, wav_file):
        factory = ComponentFactory(config_manager)
        source = factory.create_audio_source("file", file_path=wav_file([440.0], seconds=0.2))
        assert isinstance(source, WavFileAudioSource)
        assert source.frame_size == 4096

    def test_unknown_source(self, config_manager):
        with pytest.raises(ValueError):
            ComponentFactory(config_manager).create_audio_source("network")

    def test_service_takes_preferences(self, config_manager, wav_file):
        config_manager.set_reference_a4(442.0)
        config_manager.update_config("preferences", {"use_flats": True})
        factory = ComponentFactory(config_manager)
        source = factory.create_audio_source("file", file_path=wav_file([440.0], seconds=0.2))
        service = factory.create_tuner_service(source)
        assert service.reference_a4 == 442.0
        assert service.use_flats


class TestTunerConfigImmutability:
    def test_config_is_hashable(self):
        assert hash(TunerConfig()) == hash(TunerConfig())

    def test_lock_frames_mapping_is_normalized(self):
        from_mapping = TunerConfig(lock_frames={"normal": 4, "low": 2})
        from_pairs = TunerConfig(lock_frames=(("low", 2), ("normal", 4)))
        assert from_mapping == from_pairs
        assert isinstance(from_mapping.lock_frames, tuple)

    def test_to_dict_is_json_friendly(self):
        values = TunerConfig().to_dict()
        assert values["lock_frames"] == {"low": 2, "normal": 3, "very-low": 2}
        assert json.loads(json.dumps(values))["lock_frames"]["normal"] == 3
