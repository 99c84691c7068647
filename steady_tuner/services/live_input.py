"""Live audio capture using sounddevice."""

from __future__ import annotations
import threading
from typing import Any, Dict, List, Optional

import numpy as np
import sounddevice as sd

from ..core.interfaces import IAudioSource
from ..logger import get_logger
from .audio_providers import to_mono

logger = get_logger(__name__)


def list_input_devices() -> List[Dict[str, Any]]:
    """Describe the available audio input devices."""
    devices = []
    for index, device in enumerate(sd.query_devices()):
        if device["max_input_channels"] > 0:
            devices.append(
                {
                    "id": index,
                    "name": device["name"],
                    "channels": device["max_input_channels"],
                    "sample_rate": device["default_samplerate"],
                }
            )
    return devices


class LiveAudioSource(IAudioSource):
    """Provides live audio from an input device using sounddevice.

    The stream callback keeps a rolling window of the most recent
    ``frame_size`` samples; :meth:`read_frame` returns a copy of it.
    """

    def __init__(
        self,
        device_id: Optional[int] = None,
        sample_rate: int = 44100,
        frame_size: int = 4096,
        channels: int = 1,
        blocksize: int = 1024,
    ) -> None:
        self._device_id = device_id
        self._sample_rate = int(sample_rate)
        self._frame_size = int(frame_size)
        self._channels = int(channels)
        self._blocksize = int(blocksize)
        self._stream: Optional[sd.InputStream] = None
        self._window = np.zeros(self._frame_size, dtype=np.float32)
        self._filled = 0
        self._lock = threading.Lock()

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def frame_size(self) -> int:
        return self._frame_size

    def start(self) -> bool:
        if self._stream is not None:
            return True
        try:
            sd.check_input_settings(
                device=self._device_id, channels=self._channels, samplerate=self._sample_rate
            )
            self._stream = sd.InputStream(
                device=self._device_id,
                channels=self._channels,
                samplerate=self._sample_rate,
                blocksize=self._blocksize,
                callback=self._audio_callback,
                dtype="float32",
            )
            self._stream.start()
        except (sd.PortAudioError, ValueError) as e:
            logger.error(f"Could not open input device {self._device_id}: {e}")
            self._stream = None
            return False
        logger.info(
            f"Audio input started: device={self._device_id}, rate={self._sample_rate}Hz, "
            f"frame={self._frame_size}"
        )
        return True

    def stop(self) -> None:
        if self._stream:
            self._stream.stop()
            self._stream.close()
            self._stream = None
            logger.info("Audio input stopped")
        with self._lock:
            self._filled = 0

    def is_running(self) -> bool:
        return self._stream is not None and self._stream.active

    def read_frame(self) -> Optional[np.ndarray]:
        with self._lock:
            if self._filled < self._frame_size:
                return None
            return self._window.copy()

    def _audio_callback(self, indata: np.ndarray, _frames: int, _time_info, status) -> None:
        if status:
            logger.warning(f"Audio input status: {status}")
        samples = to_mono(indata)
        count = min(samples.size, self._frame_size)
        if count == 0:
            return
        with self._lock:
            self._window = np.roll(self._window, -count)
            self._window[-count:] = samples[-count:]
            self._filled = min(self._filled + count, self._frame_size)
