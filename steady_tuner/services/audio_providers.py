"""Audio sources that hand fixed-size frames to the tuner.

Live capture lives in :mod:`steady_tuner.services.live_input` so that
file analysis does not need an audio device library.
"""

from __future__ import annotations
from typing import Optional

import numpy as np
import soundfile as sf

from ..core.interfaces import IAudioSource
from ..logger import get_logger

logger = get_logger(__name__)


def to_mono(data: np.ndarray) -> np.ndarray:
    if data.ndim == 2:
        return data.mean(axis=1)
    return data


class WavFileAudioSource(IAudioSource):
    """Provides audio frames by reading from a sound file.

    Each :meth:`read_frame` advances by ``hop_size`` samples, as if the
    file were being played back and polled at a fixed cadence.
    """

    def __init__(
        self,
        file_path: str,
        frame_size: int = 4096,
        hop_size: Optional[int] = None,
        loop: bool = False,
        gain: float = 1.0,
    ) -> None:
        self._file_path = file_path
        self._frame_size = int(frame_size)
        self._loop = loop
        self._gain = gain

        data, self._sample_rate = sf.read(file_path, dtype="float32", always_2d=True)
        self._data = to_mono(data)
        if self._gain != 1.0:
            self._data = self._data * self._gain
        self._hop_size = int(hop_size) if hop_size else max(1, int(self._sample_rate * 0.05))
        self._position = 0
        self._running = False
        logger.info(
            f"Loaded {file_path}: {self._data.size} samples at {self._sample_rate}Hz"
        )

    @property
    def sample_rate(self) -> int:
        return int(self._sample_rate)

    @property
    def frame_size(self) -> int:
        return self._frame_size

    @property
    def duration(self) -> float:
        return self._data.size / self._sample_rate

    @property
    def position_seconds(self) -> float:
        """Time of the end of the most recently returned frame."""
        return min(self._position + self._frame_size - self._hop_size, self._data.size) / self._sample_rate

    def start(self) -> bool:
        self._position = 0
        self._running = True
        return True

    def stop(self) -> None:
        self._running = False

    def is_running(self) -> bool:
        return self._running

    def read_frame(self) -> Optional[np.ndarray]:
        if not self._running:
            return None
        end = self._position + self._frame_size
        if end > self._data.size:
            if self._loop and self._data.size >= self._frame_size:
                self._position = 0
                end = self._frame_size
            else:
                self._running = False
                return None
        frame = self._data[self._position : end]
        self._position += self._hop_size
        return frame
