"""
Power-law adaptation of the synaptic release rate (Zilany et al., 2009).

Two parallel branches subtract a weighted history of their own output from
the input:

    sout[k] = max(0, x[k] - alpha * I[k-1])
    I[k]    = sum_{j<=k} sout[j] * binwidth / ((k - j) * binwidth + beta)

The fast branch (alpha1, beta1) and the slow branch (alpha2, beta2) are
averaged. In exact mode I[k] is recomputed from the full output history
(O(k) per sample). In approximate mode it is tracked by a cascade of
second-order recursive sections fitted to the same kernel at 10 kHz.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
from loguru import logger

from .parameters import SYNAPSE_SAMPLE_RATE, PowerLawMode

BETA1 = 5e-4  # fast kernel offset (s)
BETA2 = 1e-1  # slow kernel offset (s)

# Second-order sections as (a1, a2, b1, b2, gain):
#   y[k] = a1*y[k-1] + a2*y[k-2] + gain*(x[k] + b1*x[k-1] + b2*x[k-2])
# fitted to binwidth/((k-j)*binwidth + beta) with binwidth = 1e-4 s.
FAST_KERNEL_SECTIONS: Tuple[Tuple[float, ...], ...] = (
    (0.491115852967412, -0.055050209956838, -0.173492003319319, 0.000000172983796, 0.2),
    (1.084520302502860, -0.288760329320566, -0.803462163297112, 0.154962026341513, 1.0),
    (1.588427084535629, -0.628138993662508, -1.416084732997016, 0.496615555008723, 1.0),
    (1.886287488516458, -0.888972875389923, -1.830362725074550, 0.836399964176882, 1.0),
    (1.989549282714008, -0.989558985673023, -1.983165053215032, 0.983193027347456, 1.0),
)
SLOW_KERNEL_SECTIONS: Tuple[Tuple[float, ...], ...] = (
    (1.992127932802320, -0.992140616993846, -0.994466986569624, 0.000000000002347, 1.0e-3),
    (1.999195329360981, -0.999195402928777, -1.997855276593802, 0.997855827934345, 1.0),
    (-0.798261718183851, -0.199131619873480, 0.798261718184977, 0.199131619874064, 1.0),
)


@dataclass(frozen=True)
class PowerLawParameters:
    """Branch weights for a given stimulus time step."""

    alpha1: float
    beta1: float
    alpha2: float
    beta2: float
    binwidth: float = 1 / SYNAPSE_SAMPLE_RATE

    @classmethod
    def for_tdres(cls, tdres: float) -> "PowerLawParameters":
        return cls(
            alpha1=2.5e-6 / tdres,
            beta1=BETA1,
            alpha2=1e-2 / tdres,
            beta2=BETA2,
        )


class RecursiveKernel:
    """Cascade of second-order sections with zero initial state."""

    __slots__ = ["sections", "state"]

    def __init__(self, sections: Sequence[Tuple[float, ...]]):
        self.sections = tuple(sections)
        # per section: [x[k-1], x[k-2], y[k-1], y[k-2]]
        self.state: List[List[float]] = [[0.0, 0.0, 0.0, 0.0] for _ in self.sections]

    def step(self, x: float) -> float:
        for (a1, a2, b1, b2, gain), st in zip(self.sections, self.state):
            x1, x2, y1, y2 = st
            y = a1 * y1 + a2 * y2 + gain * (x + b1 * x1 + b2 * x2)
            st[0], st[1], st[2], st[3] = x, x1, y, y1
            x = y
        return x


def _exact_kernel(length: int, binwidth: float, beta: float) -> np.ndarray:
    """Kernel weights indexed by lag, reversed so that history[:k+1] aligns."""
    lags = np.arange(length, dtype=np.float64)
    return (binwidth / (lags * binwidth + beta))[::-1]


def power_law_adaptation(
    x: np.ndarray,
    params: PowerLawParameters,
    mode: PowerLawMode = PowerLawMode.APPROXIMATE,
    noise: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Run both power-law branches over a synapse-rate signal.

    Args:
        x: Exponential-adaptation output at the synapse rate.
        params: Branch weights (see PowerLawParameters.for_tdres).
        mode: EXACT recomputes the history sums every sample, APPROXIMATE
            uses the recursive kernels.
        noise: Optional additive noise for the fast branch, same length as x.

    Returns:
        Average of the two branch outputs, same length as x, non-negative.
    """
    mode = PowerLawMode(mode)
    x = np.asarray(x, dtype=np.float64)
    n = len(x)
    if noise is not None and len(noise) < n:
        raise ValueError(f"Noise has {len(noise)} samples, need at least {n}")

    fast_input = x if noise is None else x + np.asarray(noise[:n], dtype=np.float64)
    sout1 = np.zeros(n)
    sout2 = np.zeros(n)
    alpha1, alpha2 = params.alpha1, params.alpha2
    I1 = 0.0
    I2 = 0.0

    logger.bind(stage="synapse").debug(
        f"Power-law adaptation: {n} samples, mode={mode.value}, "
        f"alpha1={alpha1:.4g}, alpha2={alpha2:.4g}"
    )

    if mode is PowerLawMode.EXACT:
        kernel1 = _exact_kernel(n, params.binwidth, params.beta1)
        kernel2 = _exact_kernel(n, params.binwidth, params.beta2)
        for k in range(n):
            sout1[k] = max(0.0, fast_input[k] - alpha1 * I1)
            sout2[k] = max(0.0, x[k] - alpha2 * I2)
            # kernel[n-1-m] is the weight at lag m
            I1 = float(np.dot(sout1[: k + 1], kernel1[n - 1 - k :]))
            I2 = float(np.dot(sout2[: k + 1], kernel2[n - 1 - k :]))
    else:
        fast = RecursiveKernel(FAST_KERNEL_SECTIONS)
        slow = RecursiveKernel(SLOW_KERNEL_SECTIONS)
        fast_list = fast_input.tolist()
        x_list = x.tolist()
        for k in range(n):
            s1 = max(0.0, fast_list[k] - alpha1 * I1)
            s2 = max(0.0, x_list[k] - alpha2 * I2)
            sout1[k] = s1
            sout2[k] = s2
            I1 = fast.step(s1)
            I2 = slow.step(s2)

    return (sout1 + sout2) / 2
