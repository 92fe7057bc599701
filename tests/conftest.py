"""
Pytest fixtures for the synapse model tests.
"""

import sys
import tempfile
from pathlib import Path

import numpy as np
import pytest
from loguru import logger

# Add the repository root to the path
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmp:
        yield Path(tmp)


@pytest.fixture
def rng():
    """Seeded random generator."""
    return np.random.default_rng(12345)


@pytest.fixture(autouse=True)
def reset_logger():
    """Drop any sinks a test installed so they don't outlive captured streams."""
    yield
    logger.remove()
    logger.add(sys.stderr, level="WARNING")


@pytest.fixture
def sample_config_yaml():
    """Return a minimal sample configuration YAML."""
    return """
model:
  cf: 2000
  nrep: 2
  tdres: 1.0e-5
  fiber_type: "medium"
  power_law: "approximate"
  seed: 7
stimulus:
  path: "stim.npy"
output: "out.npz"
"""
