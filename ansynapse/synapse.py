#
# Inner-hair-cell / auditory-nerve synapse: receptor potential -> firing rate.
#
# Stage 1: exponential adaptation (two-compartment vesicle pools, explicit Euler)
# Stage 2: delay padding and downsampling to the 10 kHz synapse rate
# Stage 3: power-law adaptation (exact or recursive approximation)
# Stage 4: linear upsampling back to the stimulus rate and removal of the delay
#

import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from loguru import logger

from .noise import NoiseSource
from .parameters import (
    FiberSpec,
    PowerLawMode,
    SynapseConstants,
    derive_synapse_constants,
    release_permeability,
    resolve_mode,
    resolve_spont,
    validate_tdres,
)
from .power_law import PowerLawParameters, power_law_adaptation
from .resampling import PolyphaseResampler, Resampler, linear_upsample, resampling_factor


def delay_samples(cf: float) -> int:
    """Group-delay compensation (in stimulus samples) applied before resampling."""
    return int(math.floor(7500 / (cf / 1e3)))


@dataclass
class SynapseOutput:
    """Result of one synapse filter pass."""

    rate: np.ndarray  # firing rate (spikes/s) at the stimulus rate
    exponential: np.ndarray  # CI*PPI, before power-law adaptation
    clamped_samples: int  # samples where CI went negative and was reset


def exponential_adaptation(
    ihc: np.ndarray, tdres: float, constants: SynapseConstants
) -> Tuple[np.ndarray, int]:
    """
    Integrate the immediate (CI) and local (CL) pool concentrations.

    Returns the release rate CI*PPI per sample and the number of samples at
    which CI was driven negative and reset to its saturation value.
    """
    ppi = release_permeability(ihc, constants).tolist()
    n = len(ppi)
    out = np.zeros(n)

    VI, VL = constants.VI, constants.VL
    PL, PG, CG = constants.PL, constants.PG, constants.CG
    CI, CL = constants.CI0, constants.CL0
    clamped = 0

    for k in range(n):
        P = ppi[k]
        CI_last = CI
        CI = CI + (tdres / VI) * (-P * CI + PL * (CL - CI))
        CL = CL + (tdres / VL) * (-PL * (CL - CI_last) + PG * (CG - CL))
        if CI < 0:
            temp = 1 / PG + 1 / PL + 1 / P
            CI = CG / (P * temp)
            CL = CI * (P + PL) / PL
            clamped += 1
        out[k] = CI * P

    return out, clamped


class SynapseFilter:
    """
    Maps receptor-potential samples to an instantaneous firing rate.

    Args:
        cf: Characteristic frequency in Hz, 80 Hz to 40 kHz.
        fiber: Spontaneous-rate class or a custom spontaneous rate.
        tdres: Stimulus sampling period in seconds.
        mode: Exact or approximate power-law integration.
        resampler: Downsampler to the synapse rate; polyphase by default.
        noise: Optional fractional Gaussian noise source for the fast
            power-law branch. Disabled when None.
    """

    def __init__(
        self,
        cf: float,
        fiber: FiberSpec,
        tdres: float,
        mode: PowerLawMode = PowerLawMode.APPROXIMATE,
        resampler: Optional[Resampler] = None,
        noise: Optional[NoiseSource] = None,
    ):
        self.spont = resolve_spont(fiber)
        self.constants = derive_synapse_constants(cf, self.spont)
        self.cf = self.constants.cf
        self.tdres = validate_tdres(tdres)
        self.mode = resolve_mode(mode)
        self.resampler = resampler if resampler is not None else PolyphaseResampler()
        self.noise = noise
        self.factor = resampling_factor(tdres)
        self.delay = delay_samples(self.cf)
        self.power_law_params = PowerLawParameters.for_tdres(tdres)
        self.logger = logger.bind(stage="synapse")

        self.logger.debug(
            f"Synapse constants for cf={self.cf:.1f} Hz, spont={self.spont}: "
            + ", ".join(f"{k}={v:.6g}" for k, v in self.constants.as_dict().items())
        )
        self.logger.debug(
            f"Resampling factor={self.factor}, delay={self.delay} samples"
        )

    def run(self, ihc: np.ndarray) -> SynapseOutput:
        """Filter a receptor-potential trace; output has the same length."""
        ihc = np.asarray(ihc, dtype=np.float64)
        n = len(ihc)
        if n == 0:
            return SynapseOutput(rate=np.zeros(0), exponential=np.zeros(0), clamped_samples=0)

        exponential, clamped = exponential_adaptation(ihc, self.tdres, self.constants)
        if clamped:
            self.logger.warning(
                f"Immediate pool concentration went negative at {clamped} samples "
                f"and was reset to saturation; tdres={self.tdres:g} s may be too "
                f"coarse for cf={self.cf:.1f} Hz"
            )

        padded = np.concatenate(
            [
                np.full(self.delay, exponential[0]),
                exponential,
                np.full(2 * self.delay, exponential[-1]),
            ]
        )
        low_rate = self.resampler.downsample(padded, self.factor)

        noise = None
        if self.noise is not None:
            noise = self.noise(
                len(low_rate), self.power_law_params.binwidth, self.spont
            )

        adapted = power_law_adaptation(
            low_rate, self.power_law_params, self.mode, noise=noise
        )
        rate = linear_upsample(adapted, self.factor, start=self.delay, length=n)

        return SynapseOutput(rate=rate, exponential=exponential, clamped_samples=clamped)
