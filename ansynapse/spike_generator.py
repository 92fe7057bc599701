"""
Spike generation by time rescaling with refractoriness (after B. Scott Jackson).

The firing rate, weighted by a relative refractory function

    1 - c0*exp(-t/s0) - c1*exp(-t/s1)

(t measured from the end of the absolute dead time), is integrated into a
time-warped sum. A spike is emitted whenever the sum reaches the next interval
of a unit-rate Poisson process. No spike can occur within the dead time.
"""

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
from loguru import logger

from .errors import SpikeBufferOverflowError

C0 = 0.5  # amplitude of the fast refractory component
S0 = 1e-3  # time constant of the fast refractory component (s)
C1 = 0.5  # amplitude of the slow refractory component
S1 = 12.5e-3  # time constant of the slow refractory component (s)
DEAD_TIME = 0.75e-3  # absolute refractory period (s)

INITIAL_CHUNK = 1024
MAX_CHUNK = 1 << 20


@dataclass
class SpikeTrain:
    """Spike times and the rate-trace sample index each spike was emitted at."""

    times: np.ndarray
    indices: np.ndarray

    def __len__(self) -> int:
        return len(self.times)


def max_spike_count(duration: float, dead: float = DEAD_TIME) -> int:
    """Upper bound on the spike count imposed by the dead time."""
    return int(math.ceil(duration / dead))


class SpikeGenerator:
    """
    Converts a firing-rate trace into spike times.

    Args:
        tdres: Sampling period of the rate trace in seconds.
        rng: Source of uniform random numbers; a fresh default generator
            when omitted. Pass a seeded generator for reproducible trains.
    """

    def __init__(
        self,
        tdres: float,
        rng: Optional[np.random.Generator] = None,
        c0: float = C0,
        s0: float = S0,
        c1: float = C1,
        s1: float = S1,
        dead: float = DEAD_TIME,
    ):
        self.tdres = tdres
        self.rng = rng if rng is not None else np.random.default_rng()
        self.c0, self.s0 = c0, s0
        self.c1, self.s1 = c1, s1
        self.dead = dead

        self.dead_index = int(math.floor(dead / tdres))  # whole bins in the dead time
        self.refrac_mult0 = 1 - tdres / s0
        self.refrac_mult1 = 1 - tdres / s1
        self.logger = logger.bind(stage="spikes")

    def _unit_rate_interval(self) -> float:
        # 1 - U lies in (0, 1]; normalized by tdres like the time-warped sum
        return -math.log(1.0 - self.rng.random()) / self.tdres

    def _initial_state(self, rate0: float):
        """Refractory values and warped sum left at t=0 by a spike before t=0."""
        if rate0 > 0:
            end_of_dead = max(0.0, math.log(1.0 - self.rng.random()) / rate0 + self.dead)
        else:
            self.rng.random()
            end_of_dead = 0.0
        refrac0 = self.c0 * math.exp(end_of_dead / self.s0)
        refrac1 = self.c1 * math.exp(end_of_dead / self.s1)
        # integral of the refractory function over the remaining dead time,
        # left in seconds as in the published generator so no spike can
        # fall inside the dead time of the virtual spike
        xsum = rate0 * (
            -end_of_dead
            + self.c0 * self.s0 * (math.exp(end_of_dead / self.s0) - 1)
            + self.c1 * self.s1 * (math.exp(end_of_dead / self.s1) - 1)
        )
        return refrac0, refrac1, xsum

    def generate(self, rate: np.ndarray, duration: Optional[float] = None) -> SpikeTrain:
        """
        Generate a spike train for the whole rate trace.

        Args:
            rate: Instantaneous firing rate in spikes/s, one value per sample.
            duration: Total duration in seconds; len(rate)*tdres by default.

        Returns:
            SpikeTrain with non-decreasing times in [0, duration).
        """
        rate = np.asarray(rate, dtype=np.float64)
        n = len(rate)
        if duration is None:
            duration = n * self.tdres
        if n == 0:
            return SpikeTrain(times=np.zeros(0), indices=np.zeros(0, dtype=np.int64))

        max_spikes = max_spike_count(duration, self.dead)
        # sample k is stamped at (k+1)*tdres, which must stay below the duration
        stamps = np.arange(1, n + 1, dtype=np.float64) * self.tdres
        stop = int(np.searchsorted(stamps, duration, side="left"))

        refrac0, refrac1, xsum = self._initial_state(float(rate[0]))
        threshold = self._unit_rate_interval()
        m0, m1 = self.refrac_mult0, self.refrac_mult1

        spike_indices = []
        k = 0
        chunk = INITIAL_CHUNK
        while k < stop:
            end = min(k + chunk, stop)
            steps = np.arange(end - k, dtype=np.float64)
            segment = rate[k:end]
            refractory = refrac0 * m0**steps + refrac1 * m1**steps
            contribution = np.where(segment > 0, segment * (1.0 - refractory), 0.0)
            warped = np.cumsum(np.concatenate(([xsum], contribution)))[1:]
            crossings = np.flatnonzero((warped >= threshold) & (segment > 0))

            if crossings.size == 0:
                xsum = float(warped[-1])
                refrac0 *= m0 ** (end - k)
                refrac1 *= m1 ** (end - k)
                k = end
                chunk = min(chunk * 2, MAX_CHUNK)
                continue

            spike = k + int(crossings[0])
            if len(spike_indices) >= max_spikes:
                raise SpikeBufferOverflowError(
                    f"Spike count exceeds the bound of {max_spikes} for a "
                    f"{duration:g} s trace with {self.dead:g} s dead time"
                )
            spike_indices.append(spike)

            threshold = self._unit_rate_interval()
            xsum = 0.0
            # skip the dead time; refractory values restart one bin after it
            k = spike + self.dead_index + 1
            refrac0 = self.c0 * m0
            refrac1 = self.c1 * m1
            chunk = INITIAL_CHUNK

        indices = np.asarray(spike_indices, dtype=np.int64)
        times = (indices + 1) * self.tdres
        self.logger.debug(
            f"Generated {len(indices)} spikes over {duration:g} s "
            f"(bound {max_spikes})"
        )
        return SpikeTrain(times=times, indices=indices)
