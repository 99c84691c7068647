"""Main entry point for the Steady Tuner CLI."""

import sys
import argparse
import os
import time
from typing import List, Optional

from ..core.config import ConfigManager
from ..core.factory import ComponentFactory
from ..logger import get_logger
from ..logging_config import setup_logging
from ..note_types import TunerReading, TuningStatus
from ..note_utils import adjust_reference
from ..services.tuner_service import analyze_file

logger = get_logger(__name__)


def format_reading(
    reading: TunerReading, show_octave: bool = True, in_tune_cents: Optional[float] = None
) -> str:
    """Render a reading as one line of tuner text.

    Args:
        reading: Reading to render
        show_octave: Append the octave to the note name
        in_tune_cents: Display band for "in-tune", or None for the canonical status
    """
    if not reading.signal_present:
        return "--"
    if reading.note is None:
        return "..."
    note = reading.note
    marker = "" if reading.is_locked else " (detecting)"
    status = note.tuning_status.value
    if in_tune_cents is not None and note.is_in_tune_for(in_tune_cents):
        status = TuningStatus.IN_TUNE.value
    return (
        f"{note.label(show_octave):<4} {note.cents:+4d}c {status:<7} "
        f"{reading.display_frequency:8.1f}Hz{marker}"
    )


def _listen(args, config_manager: ConfigManager) -> int:
    factory = ComponentFactory(config_manager)
    source_kwargs = {}
    if args.device is not None:
        source_kwargs["device_id"] = args.device
    if args.sample_rate is not None:
        source_kwargs["sample_rate"] = args.sample_rate

    try:
        source = factory.create_audio_source("live", **source_kwargs)
    except OSError as e:
        # PortAudio library missing
        logger.error(f"Live input unavailable: {e}")
        print(f"Live input unavailable: {e}", file=sys.stderr)
        return 1

    service = factory.create_tuner_service(source)
    show_octave = config_manager.get_config("preferences").get("show_octave", True)
    band = service.engine.config.display_in_tune_cents
    last_line = [""]

    def on_reading(reading: TunerReading, timestamp: float):
        line = format_reading(reading, show_octave, band)
        if line != last_line[0]:
            print(f"[{timestamp:8.2f}] {line}", flush=True)
            last_line[0] = line

    if not service.start(on_reading):
        print("Could not open the audio input device", file=sys.stderr)
        return 1

    try:
        if args.duration:
            time.sleep(args.duration)
        else:
            while True:
                time.sleep(0.5)
    except KeyboardInterrupt:
        logger.info("Stopped by user")
    finally:
        service.stop()
    return 0


def _analyze(args, config_manager: ConfigManager) -> int:
    if not os.path.isfile(args.file):
        print(f"File not found: {args.file}", file=sys.stderr)
        return 1

    reference = args.reference or config_manager.reference_a4
    use_flats = args.flats or config_manager.use_flats
    config = config_manager.get_tuner_config()
    results = analyze_file(
        args.file,
        config=config,
        frame_size=args.frame_size,
        hop_seconds=args.hop,
        reference_a4=reference,
        use_flats=use_flats,
    )

    previous = None
    locked_notes = []
    for timestamp, reading in results:
        line = format_reading(reading, in_tune_cents=config.display_in_tune_cents)
        if args.verbose or line != previous:
            print(f"[{timestamp:8.2f}] {line}")
        previous = line
        if reading.is_locked and (not locked_notes or locked_notes[-1] != reading.note.note):
            locked_notes.append(reading.note.note)

    print(f"Locked notes: {' '.join(locked_notes) if locked_notes else 'none'}")
    return 0


def _devices(args, config_manager: ConfigManager) -> int:
    try:
        from ..services.live_input import list_input_devices
    except OSError as e:
        print(f"Audio devices unavailable: {e}", file=sys.stderr)
        return 1

    devices = list_input_devices()
    if not devices:
        print("No input devices found")
        return 1
    selected = config_manager.get_config("audio_input").get("device_id")
    for device in devices:
        marker = "*" if device["id"] == selected else " "
        print(
            f"{marker} {device['id']:3d}: {device['name']} "
            f"({device['channels']} ch, {device['sample_rate']:.0f}Hz)"
        )
    return 0


def _config(args, config_manager: ConfigManager) -> int:
    if args.reset:
        config_manager.reset_config("preferences")
    if args.reference is not None:
        config_manager.set_reference_a4(args.reference)
    if args.step is not None:
        config_manager.set_reference_a4(adjust_reference(config_manager.reference_a4, args.step))
    if args.flats or args.sharps:
        config_manager.update_config("preferences", {"use_flats": bool(args.flats)})
    if args.device is not None:
        config_manager.update_config("audio_input", {"device_id": args.device})

    preferences = config_manager.get_config("preferences")
    print(f"Reference A4: {config_manager.reference_a4:.1f}Hz")
    print(f"Notation: {'flats' if config_manager.use_flats else 'sharps'}")
    print(f"Show octave: {preferences.get('show_octave', True)}")
    print(f"Input device: {config_manager.get_config('audio_input').get('device_id')}")
    return 0


COMMANDS = {
    "listen": _listen,
    "analyze": _analyze,
    "devices": _devices,
    "config": _config,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Steady Tuner - stable note and cents readings")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-level", default=None, help="Log level for steady_tuner modules")
    parser.add_argument(
        "--config-dir", default=None, help="Configuration directory (default: ~/.config/steady_tuner)"
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Live tuner
    listen_parser = subparsers.add_parser("listen", help="Tune from an audio input device")
    listen_parser.add_argument("--device", type=int, default=None, help="Audio input device ID")
    listen_parser.add_argument(
        "--sample-rate", type=int, default=None, help="Audio sample rate in Hz"
    )
    listen_parser.add_argument(
        "--duration", type=float, default=None, help="Stop after this many seconds"
    )

    # Offline analysis
    analyze_parser = subparsers.add_parser("analyze", help="Run a sound file through the tuner")
    analyze_parser.add_argument("file", help="Path to a WAV/FLAC/OGG file")
    analyze_parser.add_argument(
        "--reference", type=float, default=None, help="Reference A4 in Hz (420-460)"
    )
    analyze_parser.add_argument("--flats", action="store_true", help="Use flat notes instead of sharps")
    analyze_parser.add_argument("--frame-size", type=int, default=4096, help="Analysis window in samples")
    analyze_parser.add_argument("--hop", type=float, default=0.05, help="Seconds between analyses")
    analyze_parser.add_argument("--verbose", action="store_true", help="Print every reading")

    # Devices
    subparsers.add_parser("devices", help="List audio input devices")

    # Preferences
    config_parser = subparsers.add_parser("config", help="Show or change preferences")
    config_parser.add_argument("--reference", type=float, default=None, help="Set reference A4 in Hz")
    config_parser.add_argument(
        "--step", type=float, default=None, help="Move reference A4 by this many Hz (e.g., 0.5 or -0.5)"
    )
    notation = config_parser.add_mutually_exclusive_group()
    notation.add_argument("--flats", action="store_true", help="Spell accidentals as flats")
    notation.add_argument("--sharps", action="store_true", help="Spell accidentals as sharps")
    config_parser.add_argument("--device", type=int, default=None, help="Default input device ID")
    config_parser.add_argument("--reset", action="store_true", help="Restore default preferences")

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI.

    Args:
        args: Command line arguments, or None to use sys.argv

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = build_parser()
    parsed_args = parser.parse_args(args)

    setup_logging("DEBUG" if parsed_args.debug else parsed_args.log_level)

    handler = COMMANDS.get(parsed_args.command)
    if handler is None:
        parser.print_help()
        return 1

    config_manager = ConfigManager(parsed_args.config_dir)
    return handler(parsed_args, config_manager)


if __name__ == "__main__":
    sys.exit(main())
