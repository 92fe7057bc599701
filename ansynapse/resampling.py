"""
Sample-rate conversion between the stimulus rate and the synapse rate.

Downsampling goes through a pluggable Resampler so that the polyphase filter
can be swapped for a bit-compatible implementation. Upsampling is always
linear interpolation between consecutive low-rate samples.
"""

import math
from typing import Optional, Protocol, runtime_checkable

import numpy as np
from scipy import signal

from .parameters import SYNAPSE_SAMPLE_RATE


@runtime_checkable
class Resampler(Protocol):
    """Anti-aliased integer-ratio resampler."""

    def downsample(self, x: np.ndarray, factor: int) -> np.ndarray:
        """Return x at 1/factor of its sampling rate, ceil(len(x)/factor) samples."""
        ...

    def upsample(self, x: np.ndarray, factor: int) -> np.ndarray:
        """Return x at factor times its sampling rate, len(x)*factor samples."""
        ...


class PolyphaseResampler:
    """
    Polyphase FIR resampler backed by scipy.signal.resample_poly.

    The default Kaiser window (beta = 5) with a half-length of ten input
    periods matches the anti-aliasing filter of MATLAB's resample(). The edges
    differ: MATLAB pads with zeros, while the default padtype="line" extends
    the trend of the signal. The synapse filter pads its input with the edge
    samples beforehand, so the difference falls mainly on the padding. Pass
    padtype="constant" for zero-padded edges.
    """

    def __init__(self, window=("kaiser", 5.0), padtype: str = "line"):
        self.window = window
        self.padtype = padtype

    def downsample(self, x: np.ndarray, factor: int) -> np.ndarray:
        x = np.asarray(x, dtype=np.float64)
        if factor == 1:
            return x.copy()
        return signal.resample_poly(
            x, 1, factor, window=self.window, padtype=self.padtype
        )

    def upsample(self, x: np.ndarray, factor: int) -> np.ndarray:
        x = np.asarray(x, dtype=np.float64)
        if factor == 1:
            return x.copy()
        return signal.resample_poly(
            x, factor, 1, window=self.window, padtype=self.padtype
        )


def resampling_factor(tdres: float, sample_rate: float = SYNAPSE_SAMPLE_RATE) -> int:
    """Integer decimation factor from 1/tdres down to the synapse rate."""
    ratio = 1.0 / (tdres * sample_rate)
    # 1/(1e-5*1e4) evaluates to 10.000000000000002
    return max(1, math.ceil(round(ratio, 9)))


def linear_upsample(
    x: np.ndarray, factor: int, start: int = 0, length: Optional[int] = None
) -> np.ndarray:
    """
    Linearly interpolate x onto a grid factor times denser.

    Low-rate sample z sits at high-rate index z*factor. Returns `length`
    high-rate samples starting at index `start`.
    """
    x = np.asarray(x, dtype=np.float64)
    if length is None:
        length = (len(x) - 1) * factor + 1 - start
    positions = np.arange(start, start + length, dtype=np.float64)
    knots = np.arange(len(x), dtype=np.float64) * factor
    return np.interp(positions, knots, x)
