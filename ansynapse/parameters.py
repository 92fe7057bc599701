#
# Closed-form parameters of the inner-hair-cell / auditory-nerve synapse.
#
# The exponential adaptation stage follows the two-compartment vesicle-pool
# model of Westerman & Smith (1988), with the permeabilities and volumes solved
# in closed form as in Zhang et al. (2001), eqs. A10-A20, and the spontaneous
# rate dependence of Heinz (2001) / Verhulst (2014).
#

import math
from dataclasses import dataclass
from enum import Enum
from typing import Union

import numpy as np

from .errors import InvalidParameterError

# Admissible characteristic frequency range (Hz)
CF_MIN = 80.0
CF_MAX = 40e3

# Sampling rate of the power-law adaptation stage (Hz)
SYNAPSE_SAMPLE_RATE = 10e3

# Exponential adaptation time constants (s)
TAU_RAPID = 2e-3
TAU_SHORT_TERM = 60e-3
AR_AST_RATIO = 1.0  # ratio of rapid to short-term adaptation magnitude

CG = 1.0  # global pool concentration, a free parameter
FIBER_THRESHOLD = 0.0  # firing threshold at 1 kHz for the highest SR class
SR_THRESHOLD_SHIFT = 0.5e-3  # Vihc threshold shift for the lowest SR class
VSAT_MAX = 1.28e-3 / 20  # Vihc at which the permeability reaches PI2


class FiberType(str, Enum):
    """Spontaneous-rate class of an auditory-nerve fiber."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class PowerLawMode(str, Enum):
    """Implementation of the power-law adaptation integrals."""

    EXACT = "exact"
    APPROXIMATE = "approximate"


SPONT_RATES = {
    FiberType.LOW: 1.0,
    FiberType.MEDIUM: 5.0,
    FiberType.HIGH: 60.0,
}

# Integer codes accepted for compatibility with the published model interface
FIBER_CODES = {1: FiberType.LOW, 2: FiberType.MEDIUM, 3: FiberType.HIGH}

FiberSpec = Union[FiberType, str, int, float]


def resolve_spont(fiber: FiberSpec) -> float:
    """
    Map a fiber specification to a spontaneous rate in spikes/s.

    Accepts a FiberType, its string value, one of the integer codes 1/2/3, or
    any other positive number, which is used directly as the spontaneous rate.
    """
    if isinstance(fiber, bool):
        raise InvalidParameterError(f"Invalid fiber type: {fiber!r}")
    if isinstance(fiber, FiberType):
        return SPONT_RATES[fiber]
    if isinstance(fiber, str):
        try:
            return SPONT_RATES[FiberType(fiber.strip().lower())]
        except ValueError:
            raise InvalidParameterError(
                f"Unknown fiber type '{fiber}'. "
                f"Valid options: {[f.value for f in FiberType]}"
            ) from None
    if isinstance(fiber, (int, float, np.integer, np.floating)):
        value = float(fiber)
        if value in FIBER_CODES:
            return SPONT_RATES[FIBER_CODES[int(value)]]
        if not math.isfinite(value) or value <= 0:
            raise InvalidParameterError(
                f"Spontaneous rate must be a positive number, got {fiber}"
            )
        return value
    raise InvalidParameterError(f"Invalid fiber type: {fiber!r}")


def validate_cf(cf: float) -> float:
    """Check that the characteristic frequency lies in [80 Hz, 40 kHz]."""
    try:
        cf = float(cf)
    except (TypeError, ValueError):
        raise InvalidParameterError(f"cf must be a number, got {cf!r}") from None
    if not (CF_MIN <= cf <= CF_MAX):
        raise InvalidParameterError(
            f"cf (= {cf:.1f} Hz) must be between 80 Hz and 40 kHz"
        )
    return cf


def validate_tdres(tdres) -> float:
    try:
        tdres = float(tdres)
    except (TypeError, ValueError):
        raise InvalidParameterError(f"tdres must be a number, got {tdres!r}") from None
    if not math.isfinite(tdres) or tdres <= 0:
        raise InvalidParameterError(f"tdres must be a positive number, got {tdres}")
    return tdres


def resolve_mode(mode) -> "PowerLawMode":
    """Map a mode name or PowerLawMode to a PowerLawMode."""
    try:
        return PowerLawMode(mode)
    except ValueError:
        raise InvalidParameterError(
            f"Unknown power-law mode '{mode}'. "
            f"Valid options: {[m.value for m in PowerLawMode]}"
        ) from None


@dataclass(frozen=True)
class SynapseConstants:
    """Derived constants of the exponential adaptation stage for one fiber."""

    cf: float
    spont: float
    Ass: float  # steady-state rate
    PTS: float  # peak-to-steady ratio
    AR: float  # rapid adaptation magnitude
    AST: float  # short-term adaptation magnitude
    PI1: float  # resting permeability of the immediate pool
    PI2: float  # saturated permeability of the immediate pool
    VI: float  # immediate pool volume
    VL: float  # local pool volume
    PL: float  # local-to-immediate permeability
    PG: float  # global-to-local permeability
    CG: float  # global pool concentration
    CI0: float  # resting immediate pool concentration
    CL0: float  # resting local pool concentration

    @property
    def threshold(self) -> float:
        """Receptor potential below which the permeability stays at PI1."""
        return FIBER_THRESHOLD + SR_THRESHOLD_SHIFT / math.exp(self.spont)

    def as_dict(self) -> dict:
        return {
            "Ass": self.Ass,
            "PTS": self.PTS,
            "AR": self.AR,
            "AST": self.AST,
            "PI1": self.PI1,
            "PI2": self.PI2,
            "VI": self.VI,
            "VL": self.VL,
            "PL": self.PL,
            "PG": self.PG,
            "CG": self.CG,
            "CI0": self.CI0,
            "CL0": self.CL0,
        }


def derive_synapse_constants(cf: float, spont: float) -> SynapseConstants:
    """Solve the permeabilities, volumes and resting concentrations for a fiber."""
    cf = validate_cf(cf)

    Ass = 150 + cf / 100  # frequency dependence after Liberman (1978)
    if not (0 < spont < Ass):
        raise InvalidParameterError(
            f"Spontaneous rate must be in (0, {Ass:.1f}) spikes/s, got {spont}"
        )

    PTS = 1 + 6 * spont / (6 + spont)  # from 1 (low SR) towards 7 (high SR)
    AR = (AR_AST_RATIO / (1 + AR_AST_RATIO)) * (PTS * Ass - Ass)
    AST = (1 / (1 + AR_AST_RATIO)) * (PTS * Ass - Ass)
    PI1 = spont * (PTS * Ass - spont) / (PTS * Ass * (1 - spont / Ass))
    PI2 = (PTS * Ass - spont) / (1 - spont / Ass)

    gamma1 = CG / spont
    gamma2 = CG / Ass
    k1 = -1 / TAU_RAPID
    k2 = -1 / TAU_SHORT_TERM

    VI0 = (1 - (PTS * Ass) / spont) / (
        gamma1
        * (AR * (k1 - k2) / (CG * PI2) + k2 / (PI1 * gamma1) - k2 / (PI2 * gamma2))
    )
    VI1 = (1 - (PTS * Ass) / spont) / (
        gamma1
        * (AST * (k2 - k1) / (CG * PI2) + k1 / (PI1 * gamma1) - k1 / (PI2 * gamma2))
    )
    VI = (VI0 + VI1) / 2

    alpha = (CG * TAU_RAPID * TAU_SHORT_TERM) / Ass
    beta = (1 / TAU_SHORT_TERM + 1 / TAU_RAPID) * alpha
    theta1 = (alpha * PI2) / VI
    theta2 = VI / PI2
    theta3 = 1 / Ass - 1 / PI2

    PL = (((beta - theta2 * theta3) / theta1) - 1) * PI2
    PG = 1 / (theta3 - 1 / PL)
    VL = theta1 * PL * PG
    CI0 = spont / PI1
    CL0 = CI0 * (PI1 + PL) / PL

    return SynapseConstants(
        cf=cf,
        spont=spont,
        Ass=Ass,
        PTS=PTS,
        AR=AR,
        AST=AST,
        PI1=PI1,
        PI2=PI2,
        VI=VI,
        VL=VL,
        PL=PL,
        PG=PG,
        CG=CG,
        CI0=CI0,
        CL0=CL0,
    )


def release_permeability(ihc: np.ndarray, constants: SynapseConstants) -> np.ndarray:
    """
    Immediate-pool permeability for each receptor-potential sample.

    Linear between the SR-dependent threshold (PI1) and VSAT_MAX (PI2), held at
    PI1 below threshold. The first sample is forced to PI1 so that the pools
    start in their resting state.
    """
    ihc = np.asarray(ihc, dtype=np.float64)
    slope = (constants.PI2 - constants.PI1) / (VSAT_MAX - FIBER_THRESHOLD)
    shift = SR_THRESHOLD_SHIFT / math.exp(constants.spont)
    ppi = slope * (ihc - shift) + constants.PI1
    ppi[ihc <= constants.threshold] = constants.PI1
    if ppi.size:
        ppi[0] = constants.PI1
    return ppi


def steady_state_rate(constants: SynapseConstants, ppi: float) -> float:
    """Fixed point of CI*PPI for a constant permeability ppi."""
    return constants.CG / (1 / constants.PG + 1 / constants.PL + 1 / ppi)
