"""
Auditory-Nerve Synapse Model Package
Maps inner-hair-cell receptor potentials to an instantaneous firing rate and a
refractory spike train.
"""

# Import error taxonomy
from .errors import AuditoryNerveError, InvalidParameterError, SpikeBufferOverflowError

# Import model parameters
from .parameters import (
    FiberType,
    PowerLawMode,
    SynapseConstants,
    derive_synapse_constants,
    resolve_spont,
    steady_state_rate,
)

# Import pluggable capabilities
from .resampling import PolyphaseResampler, Resampler
from .noise import FractionalGaussianNoise, NoiseSource

# Import core stages
from .synapse import SynapseFilter, SynapseOutput, exponential_adaptation
from .spike_generator import SpikeGenerator, SpikeTrain

# Import adapter functionality
from .model import (
    AuditoryNerveResponse,
    run_auditory_nerve,
    setup_synapse_logger,
    synapse_and_spikes,
)

__all__ = [
    # Errors
    "AuditoryNerveError",
    "InvalidParameterError",
    "SpikeBufferOverflowError",
    # Parameters
    "FiberType",
    "PowerLawMode",
    "SynapseConstants",
    "derive_synapse_constants",
    "resolve_spont",
    "steady_state_rate",
    # Capabilities
    "Resampler",
    "PolyphaseResampler",
    "NoiseSource",
    "FractionalGaussianNoise",
    # Core stages
    "SynapseFilter",
    "SynapseOutput",
    "exponential_adaptation",
    "SpikeGenerator",
    "SpikeTrain",
    # Adapter
    "AuditoryNerveResponse",
    "run_auditory_nerve",
    "setup_synapse_logger",
    "synapse_and_spikes",
]

__version__ = "0.1.0"
