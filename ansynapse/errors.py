"""
Exception types raised by the auditory-nerve synapse model.
"""


class AuditoryNerveError(Exception):
    """Base class for all model errors."""


class InvalidParameterError(AuditoryNerveError, ValueError):
    """Raised before any computation when a model argument is out of range."""


class SpikeBufferOverflowError(AuditoryNerveError, RuntimeError):
    """Raised when the spike count would exceed the dead-time upper bound."""
