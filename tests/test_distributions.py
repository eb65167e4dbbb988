"""Tests for the seeded random source and derived distributions."""

import math

import numpy as np
import pytest

from models.distributions import (
    RandomSource, exponential, log_normal, normal, seed_to_int, uniform, weighted,
)


class FixedSource:
    """Replays a fixed list of uniforms."""

    def __init__(self, values):
        self.values = list(values)
        self.drawn = 0

    def uniform(self):
        value = self.values[self.drawn]
        self.drawn += 1
        return value


class TestRandomSource:
    def test_same_seed_same_sequence(self):
        a = RandomSource(42)
        b = RandomSource(42)
        assert [a.uniform() for _ in range(1000)] == [b.uniform() for _ in range(1000)]

    def test_different_seeds_differ(self):
        a = [RandomSource(42).uniform() for _ in range(5)]
        b = [RandomSource(43).uniform() for _ in range(5)]
        assert a != b

    def test_digit_string_matches_integer(self):
        a = RandomSource("42")
        b = RandomSource(42)
        assert [a.uniform() for _ in range(10)] == [b.uniform() for _ in range(10)]

    def test_string_seed_is_stable(self):
        a = RandomSource("stress-q3")
        b = RandomSource("stress-q3")
        assert [a.uniform() for _ in range(10)] == [b.uniform() for _ in range(10)]
        assert seed_to_int("stress-q3") == seed_to_int("stress-q3")

    def test_seed_42_stream_values(self):
        """First doubles of the seed-42 master stream (PCG64, SeedSequence(42))."""
        rng = RandomSource(42)
        drawn = [rng.uniform() for _ in range(5)]
        assert drawn == pytest.approx([
            0.7739560485559633,
            0.4388784397520523,
            0.8585979199113825,
            0.6973680290593639,
            0.09417734788764953,
        ], rel=1e-15)

    def test_string_seed_42_matches_stream_values(self):
        assert RandomSource("42").uniform() == pytest.approx(0.7739560485559633, rel=1e-15)

    def test_matches_numpy_pcg64_stream(self):
        """Buffered draws equal the raw PCG64 double stream."""
        rng = RandomSource(7)
        expected = np.random.Generator(
            np.random.PCG64(np.random.SeedSequence(7))
        ).random(1500)
        drawn = np.array([rng.uniform() for _ in range(1500)])
        assert np.array_equal(drawn, expected)

    def test_path_sources_independent_of_master(self):
        master = [RandomSource(42).uniform() for _ in range(5)]
        path0 = [RandomSource(42, path_index=0).uniform() for _ in range(5)]
        path1 = [RandomSource.for_path(42, 1).uniform() for _ in range(5)]
        assert master != path0
        assert path0 != path1

    def test_path_source_reproducible(self):
        a = RandomSource(42, path_index=5)
        b = RandomSource(42, path_index=5)
        assert [a.uniform() for _ in range(20)] == [b.uniform() for _ in range(20)]

    def test_uniform_range(self):
        rng = RandomSource(1)
        draws = [uniform(rng) for _ in range(5000)]
        assert min(draws) >= 0.0
        assert max(draws) < 1.0

    def test_negative_seed_rejected(self):
        with pytest.raises(ValueError):
            RandomSource(-1)

    def test_bad_seed_type_rejected(self):
        with pytest.raises(TypeError):
            seed_to_int(1.5)


class TestDistributions:
    def test_box_muller_cosine_branch(self):
        # u1 = exp(-0.5) -> radius 1; u2 = 0 -> cos(0) = 1
        rng = FixedSource([math.exp(-0.5), 0.0])
        assert normal(rng, 3.0, 2.0) == pytest.approx(5.0, rel=1e-12)

    def test_box_muller_redraws_tiny_u1(self):
        """Both uniforms are redrawn when u1 <= 1e-10."""
        rng = FixedSource([1e-11, 0.3, math.exp(-0.5), 0.5])
        assert normal(rng) == pytest.approx(-1.0, rel=1e-12)
        assert rng.drawn == 4

    def test_normal_moments(self):
        rng = RandomSource(123)
        draws = np.array([normal(rng, 2.0, 0.5) for _ in range(20_000)])
        assert abs(draws.mean() - 2.0) < 0.02
        assert abs(draws.std() - 0.5) < 0.02

    def test_log_normal(self):
        rng = FixedSource([math.exp(-0.5), 0.0])
        assert log_normal(rng, 0.0, 1.0) == pytest.approx(math.e, rel=1e-12)

    def test_exponential_inverse_cdf(self):
        rng = FixedSource([0.5])
        assert exponential(rng, 2.0) == pytest.approx(math.log(2) / 2, rel=1e-12)

    def test_exponential_degenerate_draw(self):
        assert exponential(FixedSource([1.0]), 3.0) == 0.0

    @pytest.mark.parametrize("lam", [0.0, -1.5])
    def test_exponential_rate_must_be_positive(self, lam):
        with pytest.raises(ValueError):
            exponential(FixedSource([0.5]), lam)

    def test_weighted_indices(self):
        weights = [1.0, 1.0, 2.0]
        assert weighted(FixedSource([0.1]), weights) == 0
        assert weighted(FixedSource([0.3]), weights) == 1
        assert weighted(FixedSource([0.99]), weights) == 2

    def test_weighted_unnormalized_frequencies(self):
        rng = RandomSource(9)
        counts = np.bincount([weighted(rng, [2, 6, 2]) for _ in range(10_000)], minlength=3)
        freqs = counts / counts.sum()
        assert freqs == pytest.approx([0.2, 0.6, 0.2], abs=0.02)

    def test_weighted_zero_sum_rejected(self):
        with pytest.raises(ValueError):
            weighted(FixedSource([0.5]), [0.0, 0.0])

    def test_weighted_negative_rejected(self):
        with pytest.raises(ValueError):
            weighted(FixedSource([0.5]), [1.0, -1.0])

    def test_weighted_empty_rejected(self):
        with pytest.raises(ValueError):
            weighted(FixedSource([0.5]), [])
