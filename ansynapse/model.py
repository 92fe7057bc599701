#
# Single auditory-nerve fiber: stimulus validation, the synapse filter and the
# spike generator run over all repetitions, and folding of the outputs onto
# one repetition period.
#

import sys
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from loguru import logger

from .errors import InvalidParameterError
from .noise import NoiseSource
from .parameters import (
    FiberSpec,
    PowerLawMode,
    resolve_mode,
    resolve_spont,
    validate_cf,
    validate_tdres,
)
from .resampling import Resampler
from .spike_generator import SpikeGenerator
from .synapse import SynapseFilter


def setup_synapse_logger(level: str = "INFO") -> None:
    """Setup colored logging for the synapse model with specified level."""
    logger.remove()
    logger.configure(extra={"stage": "-"})
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        + "<level>{level: <8}</level> | "
        + "<cyan>{extra[stage]: <7}</cyan> | "
        + "<level>{message}</level>",
        level=level,
        colorize=True,
    )


@dataclass
class AuditoryNerveResponse:
    """Outputs of one model run."""

    rate: np.ndarray  # firing rate averaged over repetitions, length totalstim
    psth: np.ndarray  # spike counts per stimulus sample, length totalstim
    spike_times: np.ndarray  # seconds, over the concatenated repetitions
    raw_rate: np.ndarray  # firing rate over all repetitions
    clamped_samples: int  # samples corrected for a negative pool concentration
    totalstim: int  # samples per repetition

    @property
    def nrep(self) -> int:
        return len(self.raw_rate) // self.totalstim


def validate_nrep(nrep) -> int:
    """Accept positive integers, including integral floats such as 2.0."""
    if isinstance(nrep, bool):
        raise InvalidParameterError(f"nrep must be an integer, got {nrep!r}")
    try:
        as_int = int(nrep)
    except (TypeError, ValueError, OverflowError):
        raise InvalidParameterError(f"nrep must be an integer, got {nrep!r}") from None
    if as_int != nrep:
        raise InvalidParameterError(f"nrep must be an integer, got {nrep!r}")
    if as_int < 1:
        raise InvalidParameterError(f"nrep must be greater than 0, got {nrep!r}")
    return as_int


def prepare_stimulus(stimulus, nrep: int) -> Tuple[np.ndarray, int]:
    """
    Truncate the stimulus to a whole number of repetitions.

    Returns the truncated trace and the number of samples per repetition.
    """
    stimulus = np.asarray(stimulus, dtype=np.float64)
    if stimulus.ndim != 1:
        stimulus = np.squeeze(stimulus)
        if stimulus.ndim != 1:
            raise InvalidParameterError(
                f"stimulus must be a one-dimensional trace, got shape {stimulus.shape}"
            )
    totalstim = len(stimulus) // nrep
    if totalstim < 1:
        raise InvalidParameterError(
            f"stimulus has {len(stimulus)} samples, need at least nrep={nrep}"
        )
    stimulus = stimulus[: totalstim * nrep]
    if not np.all(np.isfinite(stimulus)):
        raise InvalidParameterError("stimulus contains non-finite samples")
    return stimulus, totalstim


def fold_repetitions(raw_rate: np.ndarray, totalstim: int) -> np.ndarray:
    """Average a concatenated rate trace across its repetitions."""
    nrep = len(raw_rate) // totalstim
    return raw_rate[: nrep * totalstim].reshape(nrep, totalstim).sum(axis=0) / nrep


def bin_spikes(spike_indices: np.ndarray, totalstim: int) -> np.ndarray:
    """PSTH over one repetition; a spike at sample k is stamped (k+1)*tdres."""
    bins = (np.asarray(spike_indices, dtype=np.int64) + 1) % totalstim
    return np.bincount(bins, minlength=totalstim).astype(np.uint32)


def run_auditory_nerve(
    stimulus,
    cf: float,
    nrep: int,
    tdres: float,
    fiber_type: FiberSpec,
    impl_mode: PowerLawMode = PowerLawMode.APPROXIMATE,
    rng: Optional[np.random.Generator] = None,
    noise: Optional[NoiseSource] = None,
    resampler: Optional[Resampler] = None,
) -> AuditoryNerveResponse:
    """
    Run the synapse model and spike generator for a receptor-potential trace.

    Args:
        stimulus: Inner-hair-cell receptor potential (V), all repetitions
            concatenated. Samples beyond a whole number of repetitions are
            dropped.
        cf: Characteristic frequency in Hz, 80 Hz to 40 kHz.
        nrep: Number of stimulus repetitions, a positive integer.
        tdres: Sampling period in seconds.
        fiber_type: Spontaneous-rate class ("low", "medium", "high" or 1/2/3)
            or a custom spontaneous rate in spikes/s.
        impl_mode: Exact or approximate power-law adaptation.
        rng: Random generator for the spike generator.
        noise: Optional fractional Gaussian noise for power-law adaptation.
        resampler: Downsampler to the synapse rate.

    Raises:
        InvalidParameterError: before any computation, for out-of-range
            arguments.
    """
    cf = validate_cf(cf)
    nrep = validate_nrep(nrep)
    tdres = validate_tdres(tdres)
    spont = resolve_spont(fiber_type)
    impl_mode = resolve_mode(impl_mode)
    stimulus, totalstim = prepare_stimulus(stimulus, nrep)

    run_logger = logger.bind(stage="model")
    run_logger.info(
        f"Running AN model: cf={cf:.1f} Hz, spont={spont} spikes/s, nrep={nrep}, "
        f"tdres={tdres:g} s, {totalstim} samples/rep, mode={impl_mode.value}"
    )

    synapse = SynapseFilter(
        cf, spont, tdres, mode=impl_mode, resampler=resampler, noise=noise
    )
    synapse_out = synapse.run(stimulus)

    duration = totalstim * tdres * nrep
    spikes = SpikeGenerator(tdres, rng=rng).generate(synapse_out.rate, duration)

    response = AuditoryNerveResponse(
        rate=fold_repetitions(synapse_out.rate, totalstim),
        psth=bin_spikes(spikes.indices, totalstim),
        spike_times=spikes.times,
        raw_rate=synapse_out.rate,
        clamped_samples=synapse_out.clamped_samples,
        totalstim=totalstim,
    )
    run_logger.info(
        f"Finished: {len(spikes)} spikes in {duration:g} s, "
        f"mean rate {response.raw_rate.mean():.2f} spikes/s"
    )
    return response


def synapse_and_spikes(
    stimulus,
    cf: float,
    nrep: int,
    tdres: float,
    fiber_type: FiberSpec,
    impl_mode: PowerLawMode = PowerLawMode.APPROXIMATE,
    rng: Optional[np.random.Generator] = None,
    noise: Optional[NoiseSource] = None,
    resampler: Optional[Resampler] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """Return the repetition-averaged firing rate and the PSTH."""
    response = run_auditory_nerve(
        stimulus,
        cf,
        nrep,
        tdres,
        fiber_type,
        impl_mode=impl_mode,
        rng=rng,
        noise=noise,
        resampler=resampler,
    )
    return response.rate, response.psth
