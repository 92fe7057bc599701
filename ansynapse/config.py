"""
Configuration module for model runs.

Provides Pydantic models for YAML configuration parsing and validation.
"""

from pathlib import Path
from typing import Optional

import numpy as np
import yaml
from pydantic import BaseModel, Field, field_validator

from .noise import FractionalGaussianNoise
from .parameters import CF_MAX, CF_MIN, FiberType, PowerLawMode

LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


class ModelConfig(BaseModel):
    """Parameters of a single auditory-nerve fiber simulation."""

    cf: float = Field(default=1000.0, ge=CF_MIN, le=CF_MAX)
    nrep: int = Field(default=1, ge=1)
    tdres: float = Field(default=1e-5, gt=0.0)
    fiber_type: FiberType = FiberType.HIGH
    spont: Optional[float] = Field(
        default=None,
        gt=0.0,
        description="Custom spontaneous rate (spikes/s), overrides fiber_type",
    )
    power_law: PowerLawMode = PowerLawMode.APPROXIMATE
    fgn_noise: bool = False
    hurst: float = Field(default=0.9, gt=0.0, lt=2.0)
    seed: Optional[int] = None
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        v = v.upper()
        if v not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Allowed: {sorted(LOG_LEVELS)}")
        return v

    @property
    def fiber(self):
        """Fiber specification accepted by the model entry points."""
        return self.spont if self.spont is not None else self.fiber_type

    def make_rng(self) -> np.random.Generator:
        return np.random.default_rng(self.seed)

    def make_noise(self, rng: np.random.Generator) -> Optional[FractionalGaussianNoise]:
        if not self.fgn_noise:
            return None
        return FractionalGaussianNoise(hurst=self.hurst, rng=rng)


class StimulusConfig(BaseModel):
    """Location of the receptor-potential trace."""

    path: str
    key: Optional[str] = Field(
        default=None, description="Array name inside an .npz archive"
    )

    def load(self, base_dir: Optional[Path] = None) -> np.ndarray:
        path = Path(self.path)
        if base_dir is not None and not path.is_absolute():
            path = base_dir / path
        if not path.exists():
            raise FileNotFoundError(f"Stimulus file not found: {path}")
        data = np.load(path)
        if not isinstance(data, np.ndarray):  # .npz archive
            with data:
                key = self.key if self.key is not None else data.files[0]
                if key not in data.files:
                    raise KeyError(f"Array '{key}' not found in {path}: {data.files}")
                return np.asarray(data[key], dtype=np.float64)
        return np.asarray(data, dtype=np.float64)


class RunConfig(BaseModel):
    """Root configuration for a model run."""

    model: ModelConfig = Field(default_factory=ModelConfig)
    stimulus: Optional[StimulusConfig] = None
    output: Optional[str] = None


def _parse_run_config(raw_config, source: str) -> RunConfig:
    if raw_config is None:
        raise ValueError(f"Empty configuration {source}")
    if not isinstance(raw_config, dict):
        raise ValueError(
            f"Configuration {source} must be a mapping with model/stimulus/output "
            f"sections, got {type(raw_config).__name__}"
        )
    return RunConfig(**raw_config)


def load_config(config_path: str | Path) -> RunConfig:
    """
    Read a run description (fiber, stimulus file, output archive) from YAML.

    A relative stimulus path is resolved by the caller, usually against the
    directory holding the configuration file.

    Raises:
        FileNotFoundError: the file does not exist.
        ValueError: the file is empty or not a mapping; pydantic's
            ValidationError (a ValueError) for out-of-range model values.
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r") as f:
        return _parse_run_config(yaml.safe_load(f), "file")


def load_config_from_string(config_string: str) -> RunConfig:
    """Same as load_config, for YAML held in memory."""
    return _parse_run_config(yaml.safe_load(config_string), "string")
