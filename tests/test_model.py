"""
Tests for the single-fiber model entry points.
"""

import numpy as np
import pytest

from ansynapse.errors import InvalidParameterError
from ansynapse.model import (
    AuditoryNerveResponse,
    bin_spikes,
    fold_repetitions,
    prepare_stimulus,
    run_auditory_nerve,
    synapse_and_spikes,
    validate_nrep,
    validate_tdres,
)
from ansynapse.spike_generator import C0, C1, DEAD_TIME, S0, S1


def tone_stimulus(n_samples, tdres, freq=1000.0, amplitude=2e-4):
    """Half-wave rectified sinusoid, roughly the shape of an IHC potential."""
    t = np.arange(n_samples) * tdres
    return np.maximum(amplitude * np.sin(2 * np.pi * freq * t), 0.0)


class TestValidation:
    """Tests for argument validation."""

    @pytest.mark.parametrize("cf", [80.0, 40000.0])
    def test_cf_bounds_accepted(self, cf, rng):
        """Test that cf at the range limits is accepted."""
        response = run_auditory_nerve(np.zeros(200), cf, 1, 1e-5, "high", rng=rng)
        assert response.rate.shape == (200,)

    @pytest.mark.parametrize("cf", [79.9, 40000.1])
    def test_cf_out_of_range(self, cf):
        """Test that cf outside [80, 40000] Hz is rejected."""
        with pytest.raises(InvalidParameterError, match="must be between 80 Hz and 40 kHz"):
            run_auditory_nerve(np.zeros(200), cf, 1, 1e-5, "high")

    @pytest.mark.parametrize("nrep", [0, -1, 2.5, True, "a", None])
    def test_invalid_nrep(self, nrep):
        """Test that non-positive and non-integral repetition counts are rejected."""
        with pytest.raises(InvalidParameterError):
            validate_nrep(nrep)

    def test_integral_float_nrep(self):
        """Test that an integral float repetition count is accepted."""
        assert validate_nrep(2.0) == 2
        assert isinstance(validate_nrep(2.0), int)

    @pytest.mark.parametrize("tdres", [0.0, -1e-5, float("nan"), float("inf"), "x"])
    def test_invalid_tdres(self, tdres):
        """Test that non-positive or non-finite sampling periods are rejected."""
        with pytest.raises(InvalidParameterError):
            validate_tdres(tdres)

    def test_invalid_fiber(self):
        """Test that an unknown fiber class is rejected before computing."""
        with pytest.raises(InvalidParameterError):
            run_auditory_nerve(np.zeros(200), 1000.0, 1, 1e-5, "fast")

    def test_invalid_mode(self):
        """Test that an unknown power-law mode is rejected."""
        with pytest.raises(InvalidParameterError, match="power-law mode"):
            run_auditory_nerve(np.zeros(200), 1000.0, 1, 1e-5, "high", impl_mode="fast")

    def test_stimulus_shorter_than_nrep(self):
        """Test that fewer samples than repetitions is rejected."""
        with pytest.raises(InvalidParameterError, match="at least nrep"):
            run_auditory_nerve(np.zeros(3), 1000.0, 4, 1e-5, "high")

    def test_two_dimensional_stimulus(self):
        """Test that a matrix stimulus is rejected."""
        with pytest.raises(InvalidParameterError, match="one-dimensional"):
            prepare_stimulus(np.zeros((10, 10)), 1)

    def test_row_vector_stimulus(self):
        """Test that a 1xN stimulus is accepted as a trace."""
        stimulus, totalstim = prepare_stimulus(np.zeros((1, 10)), 2)
        assert stimulus.shape == (10,)
        assert totalstim == 5

    def test_non_finite_stimulus(self):
        """Test that NaN samples are rejected."""
        stimulus = np.zeros(100)
        stimulus[50] = np.nan
        with pytest.raises(InvalidParameterError, match="non-finite"):
            prepare_stimulus(stimulus, 1)


class TestFolding:
    """Tests for truncation, rate folding and PSTH binning."""

    def test_truncation(self):
        """Test that trailing samples beyond whole repetitions are dropped."""
        stimulus, totalstim = prepare_stimulus(np.arange(1003.0), 2)
        assert totalstim == 501
        assert len(stimulus) == 1002

    def test_fold_is_mean_over_repetitions(self):
        """Test that the folded rate is the mean across repetitions."""
        raw = np.arange(12.0)
        np.testing.assert_allclose(
            fold_repetitions(raw, 4), raw.reshape(3, 4).mean(axis=0)
        )

    def test_bin_spikes(self):
        """Test that a spike at sample k lands in bin (k+1) mod totalstim."""
        psth = bin_spikes(np.array([0, 3, 4, 8]), 5)
        assert psth.dtype == np.uint32
        # 0 -> 1, 3 -> 4, 4 -> 0, 8 -> 4
        np.testing.assert_array_equal(psth, [1, 1, 0, 0, 2])

    def test_bin_spikes_empty(self):
        """Test that no spikes give an all-zero PSTH."""
        psth = bin_spikes(np.zeros(0, dtype=np.int64), 7)
        np.testing.assert_array_equal(psth, np.zeros(7))


class TestRunAuditoryNerve:
    """Tests for a full model run."""

    def test_output_shapes(self, rng):
        """Test output lengths and types for a repeated stimulus."""
        tdres = 1e-5
        stimulus = np.tile(tone_stimulus(2000, tdres), 3)
        response = run_auditory_nerve(stimulus, 1000.0, 3, tdres, "high", rng=rng)

        assert isinstance(response, AuditoryNerveResponse)
        assert response.totalstim == 2000
        assert response.nrep == 3
        assert response.rate.shape == (2000,)
        assert response.psth.shape == (2000,)
        assert response.psth.dtype == np.uint32
        assert response.raw_rate.shape == (6000,)
        assert np.all(response.rate >= 0)

    def test_rate_is_folded_raw_rate(self, rng):
        """Test that the returned rate is the raw rate averaged over repetitions."""
        tdres = 1e-5
        stimulus = np.tile(tone_stimulus(1500, tdres), 2)
        response = run_auditory_nerve(stimulus, 2000.0, 2, tdres, "medium", rng=rng)
        expected = response.raw_rate.reshape(2, 1500).mean(axis=0)
        np.testing.assert_allclose(response.rate, expected)

    def test_psth_counts_every_spike(self, rng):
        """Test that the PSTH holds every generated spike."""
        tdres = 1e-5
        stimulus = np.tile(tone_stimulus(20_000, tdres, amplitude=1e-3), 4)
        response = run_auditory_nerve(stimulus, 1000.0, 4, tdres, "high", rng=rng)
        assert len(response.spike_times) > 0
        assert int(response.psth.sum()) == len(response.spike_times)

    def test_spike_times_respect_dead_time(self, rng):
        """Test spike ordering and the absolute refractory period."""
        tdres = 1e-5
        stimulus = tone_stimulus(100_000, tdres, amplitude=1e-3)
        response = run_auditory_nerve(stimulus, 1000.0, 1, tdres, "high", rng=rng)
        times = response.spike_times
        assert len(times) > 1
        assert np.all(np.diff(times) >= DEAD_TIME - 1e-12)
        assert times[-1] < len(stimulus) * tdres

    def test_deterministic_with_seed(self):
        """Test that a seeded generator reproduces the run exactly."""
        tdres = 1e-5
        stimulus = tone_stimulus(30_000, tdres)
        first = run_auditory_nerve(
            stimulus, 1000.0, 1, tdres, "high", rng=np.random.default_rng(11)
        )
        second = run_auditory_nerve(
            stimulus, 1000.0, 1, tdres, "high", rng=np.random.default_rng(11)
        )
        np.testing.assert_array_equal(first.rate, second.rate)
        np.testing.assert_array_equal(first.psth, second.psth)
        np.testing.assert_array_equal(first.spike_times, second.spike_times)

    def test_custom_spont(self, rng):
        """Test that a custom spontaneous rate falls between the classes."""
        stimulus = np.zeros(20_000)
        rates = [
            run_auditory_nerve(stimulus, 1000.0, 1, 1e-5, fiber, rng=rng).rate.mean()
            for fiber in ("medium", 20.0, "high")
        ]
        assert rates[0] < rates[1] < rates[2]

    def test_stimulus_drives_rate(self, rng):
        """Test that a tone raises the rate above the silent baseline."""
        tdres = 1e-5
        silent = run_auditory_nerve(np.zeros(20_000), 1000.0, 1, tdres, "high", rng=rng)
        driven = run_auditory_nerve(
            tone_stimulus(20_000, tdres, amplitude=1e-3), 1000.0, 1, tdres, "high", rng=rng
        )
        assert driven.rate.mean() > 2 * silent.rate.mean()

    def test_silent_medium_fiber_baseline(self, rng):
        """Test that a 5 s silent run settles onto a stable baseline below 5 spikes/s."""
        tdres = 1e-5
        response = run_auditory_nerve(np.zeros(500_000), 1000.0, 1, tdres, "medium", rng=rng)
        last_second = response.rate[-100_000:]

        assert np.all(response.rate <= 5.0 * (1 + 1e-9))
        assert last_second.min() > 0
        assert (last_second.max() - last_second.min()) / last_second.mean() < 0.05

    def test_high_spont_spike_count(self, rng):
        """Test that the spike count follows the integrated rate."""
        tdres = 1e-4
        n_samples = 50_000  # 5 s
        response = run_auditory_nerve(np.zeros(n_samples), 1000.0, 1, tdres, "high", rng=rng)

        duration = n_samples * tdres
        mean_rate = response.raw_rate.mean()
        # renewal process: dead time plus the integrated relative refractory function
        expected = duration / (1 / mean_rate + DEAD_TIME + C0 * S0 + C1 * S1)
        assert abs(len(response.spike_times) - expected) < 5 * np.sqrt(expected) + 2


class TestSynapseAndSpikes:
    """Tests for the two-output entry point."""

    def test_returns_rate_and_psth(self, rng):
        """Test that the rate and PSTH match the full response."""
        tdres = 1e-5
        stimulus = np.tile(tone_stimulus(1000, tdres), 2)
        rate, psth = synapse_and_spikes(
            stimulus, 1000.0, 2, tdres, 3, rng=np.random.default_rng(5)
        )
        response = run_auditory_nerve(
            stimulus, 1000.0, 2, tdres, 3, rng=np.random.default_rng(5)
        )
        assert psth.dtype == np.uint32
        np.testing.assert_array_equal(rate, response.rate)
        np.testing.assert_array_equal(psth, response.psth)
