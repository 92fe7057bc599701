"""
Fractional Gaussian noise for the power-law adaptation input.

The generator follows the Davies-Harte circulant-embedding method: the
autocovariance of unit-variance fGn is embedded in a circulant matrix whose
eigenvalues (an FFT) shape complex white noise. The noise is synthesized at a
coarse rate and upsampled to the synapse rate, then scaled by a
spontaneous-rate-dependent standard deviation.
"""

import math
from typing import Optional, Protocol, runtime_checkable

import numpy as np
from loguru import logger

from .resampling import PolyphaseResampler, Resampler

COARSE_PERIOD = 1e-1  # sampling period (s) the noise is synthesized at
MIN_COARSE_SAMPLES = 10


@runtime_checkable
class NoiseSource(Protocol):
    """Additive noise for the fast power-law branch."""

    def __call__(self, n_samples: int, binwidth: float, spont: float) -> np.ndarray:
        ...


def noise_sigma(spont: float) -> float:
    """Standard deviation of the noise for a fiber's spontaneous rate."""
    if spont < 0.5:
        return 5.0
    if spont < 18:
        return 50.0
    return 200.0


def circulant_spectrum(n_points: int, hurst: float) -> np.ndarray:
    """Square-root eigenvalues of the circulant embedding of fGn autocovariance."""
    n_fft = 2 ** math.ceil(math.log2(2 * (n_points - 1)))
    half = n_fft // 2
    k = np.concatenate([np.arange(0, half + 1), np.arange(half - 1, 0, -1)])
    k = k.astype(np.float64)
    autocov = 0.5 * (
        (k + 1) ** (2 * hurst) - 2 * k ** (2 * hurst) + np.abs(k - 1) ** (2 * hurst)
    )
    eigenvalues = np.real(np.fft.fft(autocov))
    if np.any(eigenvalues < 0):
        raise ValueError(
            "The FFT of the circulant covariance had negative values "
            f"(hurst={hurst}, n={n_points})"
        )
    return np.sqrt(eigenvalues)


class FractionalGaussianNoise:
    """
    Seedable fractional Gaussian noise source.

    Args:
        hurst: Hurst index in (0, 2). Values in (1, 2) yield fractional
            Brownian motion built from fGn with index hurst - 1.
        rng: Random generator; a fresh default generator when omitted.
        resampler: Used to bring the coarse noise up to the synapse rate.
    """

    def __init__(
        self,
        hurst: float = 0.9,
        rng: Optional[np.random.Generator] = None,
        resampler: Optional[Resampler] = None,
    ):
        if not (0 < hurst < 2) or hurst == 1:
            raise ValueError(f"Hurst index must be in (0, 1) or (1, 2), got {hurst}")
        self.hurst = hurst
        self.rng = rng if rng is not None else np.random.default_rng()
        self.resampler = resampler if resampler is not None else PolyphaseResampler()
        # Spectrum depends only on (n_points, H); cache the last one
        self._cached_spectrum: Optional[tuple] = None

    def _spectrum(self, n_points: int, hurst: float) -> np.ndarray:
        if self._cached_spectrum is None or self._cached_spectrum[:2] != (
            n_points,
            hurst,
        ):
            self._cached_spectrum = (
                n_points,
                hurst,
                circulant_spectrum(n_points, hurst),
            )
        return self._cached_spectrum[2]

    def __call__(self, n_samples: int, binwidth: float, spont: float) -> np.ndarray:
        if n_samples <= 0:
            return np.zeros(0)

        factor = math.ceil(round(COARSE_PERIOD / binwidth, 9))
        n_points = max(math.ceil(n_samples / factor) + 1, MIN_COARSE_SAMPLES)

        brownian = self.hurst > 1
        hurst = self.hurst - 1 if brownian else self.hurst

        magnitude = self._spectrum(n_points, hurst)
        n_fft = len(magnitude)
        z = magnitude * (
            self.rng.standard_normal(n_fft) + 1j * self.rng.standard_normal(n_fft)
        )
        y = np.real(np.fft.ifft(z)) * math.sqrt(n_fft)
        y = y[:n_points]

        if brownian:
            y = np.cumsum(y)

        y = self.resampler.upsample(y, factor)
        sigma = noise_sigma(spont)
        logger.bind(stage="synapse").debug(
            f"fGn: H={self.hurst}, coarse points={n_points}, factor={factor}, sigma={sigma}"
        )
        return y[:n_samples] * sigma
