"""
Audio Input — Microphone Capture
=================================
An AudioSource delivers float32 mono frames to a callback on its own
capture thread until stopped. Only one source may hold the microphone
at a time; TranscriptionSession owns it while recording.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

import numpy as np

logger = logging.getLogger(__name__)

FrameCallback = Callable[[np.ndarray], None]


class AudioSource(ABC):

    @abstractmethod
    def start(self, on_frame: FrameCallback):
        """Open the device and begin delivering frames. Raises on failure."""
        ...

    @abstractmethod
    def stop(self):
        """Close the device. Safe to call when not started."""
        ...


class SoundDeviceSource(AudioSource):
    """Microphone capture through a sounddevice InputStream."""

    def __init__(self, sample_rate: int = 16000, blocksize: int = 1024,
                 device: Optional[int] = None):
        self.sample_rate = sample_rate
        self.blocksize = blocksize
        self.device = device
        self._stream = None

    def start(self, on_frame: FrameCallback):
        import sounddevice as sd

        def cb(indata, _frames, _time_info, status):
            if status:
                logger.debug("Input status: %s", status)
            on_frame(indata[:, 0].astype(np.float32))

        self._stream = sd.InputStream(
            samplerate=self.sample_rate,
            channels=1,
            dtype="float32",
            blocksize=self.blocksize,
            device=self.device,
            callback=cb,
        )
        self._stream.start()
        logger.info("Microphone open (%d Hz, block %d)", self.sample_rate, self.blocksize)

    def stop(self):
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
        finally:
            stream.close()
        logger.info("Microphone closed")


def has_input_device() -> bool:
    """True if at least one capture device is present."""
    try:
        import sounddevice as sd
        return any(dev["max_input_channels"] > 0 for dev in sd.query_devices())
    except Exception as e:
        logger.debug("No audio input available: %s", e)
        return False
