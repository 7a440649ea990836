"""
Audio Level Meter — Live Loudness Bars
=======================================
Turns one raw audio frame into a fixed number of loudness values in
[0, 1] for a recording visualization. Each bar is the mean absolute
amplitude of one contiguous chunk of the frame, scaled by a fixed gain
and clamped.

Runs on the capture thread for every frame, so it is a single O(n)
numpy pass with no locking and no dependency on the recognizer.
"""

from __future__ import annotations

import numpy as np

DEFAULT_BARS = 20
DEFAULT_GAIN = 10.0


def compute_levels(frame, bars: int = DEFAULT_BARS, gain: float = DEFAULT_GAIN) -> list[float]:
    """Bucketed average absolute amplitude of `frame`, normalized to [0, 1].

    `frame` may be a 1-D sample array or a (samples, channels) block as
    delivered by sounddevice; only the first channel is measured. A frame
    shorter than `bars` still yields `bars` values (empty buckets are 0).
    """
    samples = np.asarray(frame, dtype=np.float32)
    if samples.ndim > 1:
        samples = samples[:, 0]
    if samples.size == 0:
        return [0.0] * bars

    magnitudes = np.abs(samples)
    per_bar = magnitudes.size // bars
    if per_bar > 0:
        averages = magnitudes[: per_bar * bars].reshape(bars, per_bar).mean(axis=1)
    else:
        averages = np.array([
            chunk.mean() if chunk.size else 0.0
            for chunk in np.array_split(magnitudes, bars)
        ], dtype=np.float32)

    levels = np.clip(averages * gain, 0.0, 1.0)
    return [float(level) for level in levels]


class AudioLevelMeter:
    """Fixed-size level meter: `measure(frame)` -> `bars` floats in [0, 1]."""

    def __init__(self, bars: int = DEFAULT_BARS, gain: float = DEFAULT_GAIN):
        if bars <= 0:
            raise ValueError("bars must be positive")
        self.bars = bars
        self.gain = gain

    def measure(self, frame) -> list[float]:
        return compute_levels(frame, self.bars, self.gain)

    def silence(self) -> list[float]:
        return [0.0] * self.bars
