import math

import numpy as np
import pytest

from galaxylf.cosmology import Cosmology
from galaxylf.lensing import (
    convergence,
    flat_prior,
    halo_count,
    magnification_distribution,
    max_radius,
    mean_sigma_nfw,
    metropolis_2d,
    sigma_nfw,
    sigma_nfw_derivative,
)
from galaxylf.spectrum import DarkMatter


@pytest.fixture(scope="module")
def cosmo():
    c = Cosmology(
        mass_min=1.0e7,
        mass_max=1.0e17,
        n_mass=20,
        z_min=0.01,
        z_max=16.01,
        n_z=10,
        nk=200,
    )
    c.initialize(DarkMatter.CDM, output_dir=None)
    return c


@pytest.fixture(scope="module")
def distribution(cosmo):
    rng = np.random.default_rng(3)
    return magnification_distribution(cosmo, 2.0, 0.0, 10, 200, 12, rng)


def test_sigma_nfw_at_scale_radius():
    assert sigma_nfw(2.0, 3.0, 1.0) == pytest.approx(4.0)


def test_mean_sigma_nfw_at_scale_radius():
    assert mean_sigma_nfw(1.0, 1.0, 1.0) == pytest.approx(4.0 * (1.0 + math.log(0.5)))


def test_derivative_vanishes_at_scale_radius():
    assert sigma_nfw_derivative(1.0, 1.0, 1.0) == 0.0


@pytest.mark.parametrize("x", [0.3, 0.7, 1.5, 4.0])
def test_derivative_matches_finite_difference(x):
    h = 1e-6
    numeric = (sigma_nfw(1.0, 1.0, x + h) - sigma_nfw(1.0, 1.0, x - h)) / (2 * h)
    assert sigma_nfw_derivative(1.0, 1.0, x) == pytest.approx(numeric, rel=1e-5)


def test_sigma_nfw_continuous_across_scale_radius():
    centre = sigma_nfw(1.0, 1.0, 1.0)
    assert sigma_nfw(1.0, 1.0, 1.0 - 1e-4) == pytest.approx(centre, rel=1e-3)
    assert sigma_nfw(1.0, 1.0, 1.0 + 1e-4) == pytest.approx(centre, rel=1e-3)


@pytest.mark.parametrize("x", [0.2, 0.9, 2.0, 10.0])
def test_mean_density_exceeds_local_density(x):
    assert mean_sigma_nfw(1.0, 1.0, x) > sigma_nfw(1.0, 1.0, x)


def test_array_input_matches_scalar():
    xs = np.array([0.5, 1.0, 3.0])
    values = sigma_nfw(1.0, 2.0, xs)
    assert values == pytest.approx([sigma_nfw(1.0, 2.0, float(x)) for x in xs])


def test_flat_prior_cases():
    assert flat_prior(5.0, [2.0, 2.0]) == 1.0
    assert flat_prior(5.0, [0.0, 4.0]) == 0.0
    assert flat_prior(1.0, [0.0, 4.0]) == pytest.approx(0.25)


def test_convergence_decreases_with_radius(cosmo):
    near = convergence(cosmo, 2.0, 0.5, 1.0, 1.0e12, 0.0)
    far = convergence(cosmo, 2.0, 0.5, 10.0, 1.0e12, 0.0)
    assert near[0] > far[0] > 0.0
    assert near[1] > near[0]
    assert near[2] < 0.0


def test_convergence_with_extended_source_is_finite(cosmo):
    kappa, mean_kappa, _ = convergence(cosmo, 2.0, 0.5, 5.0, 1.0e12, 1.0)
    assert math.isfinite(kappa) and kappa > 0.0
    assert mean_kappa > kappa


def test_max_radius_brackets_threshold(cosmo):
    threshold = 1.0e-3
    rmax = max_radius(cosmo, 2.0, 0.5, 1.0e12, 0.0, threshold)
    assert rmax > 0.0
    assert convergence(cosmo, 2.0, 0.5, rmax * math.exp(-0.02), 1.0e12, 0.0)[0] > threshold
    assert convergence(cosmo, 2.0, 0.5, rmax * math.exp(0.02), 1.0e12, 0.0)[0] <= threshold


def test_max_radius_zero_for_unreachable_threshold(cosmo):
    assert max_radius(cosmo, 2.0, 0.5, 1.0e8, 0.0, 1.0e30) == 0.0


def test_halo_count_decreases_with_threshold(cosmo):
    low = halo_count(cosmo, 2.0, 0.0, 1.0e-3)
    high = halo_count(cosmo, 2.0, 0.0, 1.0e-1)
    assert low >= high >= 0.0
    assert low > 0.0


def test_halo_count_zero_without_foreground(cosmo):
    assert halo_count(cosmo, 0.005, 0.0, 1.0e-3) == 0.0


def _gaussian(point):
    return math.exp(-(point[0] ** 2 + point[1] ** 2) / 2.0)


def _right_half(point):
    return 1.0 if point[0] > 0.0 else 0.0


def test_metropolis_respects_priors_and_cut():
    rng = np.random.default_rng(7)
    priors = [[-3.0, 3.0], [-3.0, 3.0]]
    samples = metropolis_2d(500, 100, _gaussian, [1.0, 0.0], [0.5, 0.5], priors, _right_half, rng)
    assert len(samples) == 500
    assert all(0.0 < p[0] <= 3.0 and -3.0 <= p[1] <= 3.0 for p in samples)
    assert abs(sum(p[1] for p in samples) / len(samples)) < 0.5


def test_metropolis_is_reproducible():
    priors = [[-3.0, 3.0], [-3.0, 3.0]]
    first = metropolis_2d(
        50, 10, _gaussian, [1.0, 0.0], [0.5, 0.5], priors, _right_half, np.random.default_rng(11)
    )
    second = metropolis_2d(
        50, 10, _gaussian, [1.0, 0.0], [0.5, 0.5], priors, _right_half, np.random.default_rng(11)
    )
    assert first == second


def test_distribution_is_normalised(distribution):
    spacing = distribution[1][0] - distribution[0][0]
    total = sum(p for _, p in distribution) * spacing
    assert total == pytest.approx(1.0)


def test_distribution_bins_are_even_and_cover_zero(distribution):
    lnmu = [row[0] for row in distribution]
    spacing = lnmu[1] - lnmu[0]
    assert spacing > 0.0
    assert all(b - a == pytest.approx(spacing) for a, b in zip(lnmu, lnmu[1:]))
    assert lnmu[0] <= 0.0 <= lnmu[-1] + spacing
    assert all(p >= 0.0 for _, p in distribution)


def test_distribution_rejects_single_bin(cosmo):
    with pytest.raises(ValueError):
        magnification_distribution(cosmo, 2.0, 0.0, 10, 100, 1, np.random.default_rng(0))