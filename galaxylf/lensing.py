"""Weak lensing by NFW halos and the distribution of lensing magnifications."""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from itertools import pairwise

import numpy as np

from .basics import interpolate2, random_real
from .cosmology import Cosmology

__all__ = [
    "sigma_nfw",
    "mean_sigma_nfw",
    "sigma_nfw_derivative",
    "convergence",
    "max_radius",
    "halo_count",
    "flat_prior",
    "metropolis_2d",
    "magnification_distribution",
]

_K_OVER_H0 = 306.535
# Critical surface density prefactor in Msun / kpc^2 units.
_SIGMA_CRIT = 2.08871e16
_N_RADIAL = 10
_N_ANGULAR = 10
_LOG_R_LOW = math.log(1.0e-6)
_LOG_R_HIGH = math.log(1.0e6)
_LOG_R_TOL = 0.02
_KAPPA_LOW = 1.0e-12
_KAPPA_HIGH = 1.0
_LOG_KAPPA_TOL = 0.01
_BURNIN = 1000
_N_RANDOM = 10000
_START_MASS = 1.0e12
_CENTRE_RADIUS = 1.0e-6

Point = list
Density = Callable[[list], float]


def _is_positive_scalar(x) -> bool:
    return np.ndim(x) == 0 and x > 0


def _h_scalar(x: float) -> float:
    if x > 1:
        return 2 * math.atan(math.sqrt((x - 1) / (1 + x))) / math.sqrt(x * x - 1)
    if x < 1:
        return 2 * math.atanh(math.sqrt((1 - x) / (1 + x))) / math.sqrt(1 - x * x)
    return 1.0


def _h_array(x: np.ndarray) -> np.ndarray:
    outer = 2 * np.arctan(np.sqrt((x - 1) / (1 + x))) / np.sqrt(x**2 - 1)
    inner = 2 * np.arctanh(np.sqrt((1 - x) / (1 + x))) / np.sqrt(1 - x**2)
    return np.where(x > 1, outer, np.where(x < 1, inner, 1.0))


def _result(value):
    value = np.asarray(value)
    return float(value) if value.ndim == 0 else value


def sigma_nfw(rs, rhos, x):
    """Projected NFW surface density at ``x = r / r_s``."""
    if _is_positive_scalar(x):
        x = float(x)
        f = 1.0 / 3.0 if x == 1 else (1 - _h_scalar(x)) / (x * x - 1)
        return 2 * rs * rhos * f
    with np.errstate(all="ignore"):
        x = np.asarray(x, dtype=float)
        f = np.where(x == 1, 1.0 / 3.0, (1 - _h_array(x)) / (x**2 - 1))
        return _result(2 * rs * rhos * f)


def mean_sigma_nfw(rs, rhos, x):
    """Mean projected NFW surface density inside ``x = r / r_s``."""
    if _is_positive_scalar(x):
        x = float(x)
        g = _h_scalar(x) + math.log(x / 2)
        return 4 * rs * rhos * g / (x * x)
    with np.errstate(all="ignore"):
        x = np.asarray(x, dtype=float)
        g = _h_array(x) + np.log(x / 2)
        return _result(4 * rs * rhos * g / x**2)


def sigma_nfw_derivative(rs, rhos, x):
    """Derivative of the projected NFW density with respect to ``r``."""
    if _is_positive_scalar(x):
        x = float(x)
        if x == 1:
            return 0.0
        f = (-(1 + 2 * x * x) / x + 3 * x * _h_scalar(x)) / (x * x - 1) ** 2
        return 2 * rhos * f
    with np.errstate(all="ignore"):
        x = np.asarray(x, dtype=float)
        f = (-(1 + 2 * x**2) / x + 3 * x * _h_array(x)) / (x**2 - 1) ** 2
        f = np.where(x == 1, 0.0, f)
        return _result(2 * rhos * f)


def convergence(
    cosmo: Cosmology, zs: float, zl: float, r: float, mass: float, source_radius: float
) -> tuple[float, float, float]:
    """Return ``(kappa, mean kappa inside r, dkappa/dr)`` of a halo at ``zl``.

    ``r`` is the impact parameter in kpc; a positive ``source_radius`` averages
    over the projection of the source onto the lens plane.
    """
    ds = cosmo.luminosity_distance(zs) / (1 + zs) ** 2
    dl = cosmo.luminosity_distance(zl) / (1 + zl) ** 2
    dls = ds - dl * (1 + zl) / (1 + zs)
    sigma_crit = _SIGMA_CRIT * ds / (4.0 * math.pi * dl * dls)

    rs, rhos = (float(v) for v in interpolate2(zl, mass, cosmo.z_list, cosmo.mass_list, cosmo.nfw)[:2])

    if source_radius > 0.0:
        r_proj = source_radius * dl / ds
        area = math.pi * r_proj**2 / 2.0
        d_r = r_proj / (_N_RADIAL - 1)
        d_theta = math.pi / (_N_ANGULAR - 1)
        radii = d_r * np.arange(_N_RADIAL)[:, np.newaxis]
        thetas = d_theta * np.arange(_N_ANGULAR)[np.newaxis, :]
        with np.errstate(all="ignore"):
            x = np.sqrt(r**2 + radii**2 - 2.0 * r * radii * np.cos(thetas)) / rs
            weight = radii * d_r * d_theta * np.ones_like(thetas)
            sigma = float(np.sum(sigma_nfw(rs, rhos, x) * weight)) / area
            mean = float(np.sum(mean_sigma_nfw(rs, rhos, x) * weight)) / area
            slope = float(np.sum(sigma_nfw_derivative(rs, rhos, x) * weight)) / area
    else:
        x = r / rs
        sigma = sigma_nfw(rs, rhos, x)
        mean = mean_sigma_nfw(rs, rhos, x)
        slope = sigma_nfw_derivative(rs, rhos, x)
    return sigma / sigma_crit, mean / sigma_crit, slope / sigma_crit


def max_radius(
    cosmo: Cosmology,
    zs: float,
    zl: float,
    mass: float,
    source_radius: float,
    threshold: float,
) -> float:
    """Largest impact parameter at which the convergence exceeds ``threshold``.

    Returns 0 if even the halo centre stays below the threshold.
    """
    lo, hi = _LOG_R_LOW, _LOG_R_HIGH
    if convergence(cosmo, zs, zl, math.exp(lo), mass, source_radius)[0] <= threshold:
        return 0.0
    while hi - lo > _LOG_R_TOL:
        mid = (lo + hi) / 2.0
        if convergence(cosmo, zs, zl, math.exp(mid), mass, source_radius)[0] > threshold:
            lo = mid
        else:
            hi = mid
    return math.exp((lo + hi) / 2.0)


def halo_count(cosmo: Cosmology, zs: float, source_radius: float, threshold: float) -> float:
    """Expected number of halos in front of the source with convergence above ``threshold``."""
    total = 0.0
    bg = cosmo.background
    for jz, (z_prev, zl) in enumerate(pairwise(cosmo.z_list), start=1):
        if zl >= zs:
            continue
        dz = zl - z_prev
        plane = cosmo.hmf[jz]
        for jm, (m_prev, mass) in enumerate(pairwise(cosmo.mass_list), start=1):
            dlnm = math.log(mass) - math.log(m_prev)
            dndlnm = float(plane[jm][0])
            rmax = max_radius(cosmo, zs, zl, mass, source_radius, threshold)
            total += (
                _K_OVER_H0 * math.pi * ((1.0 + zl) * rmax) ** 2
                / float(bg.hubble(zl)) * dndlnm * dlnm * dz
            )
    return total


def flat_prior(x: float, bounds: Sequence[float]) -> float:
    """Uniform prior density on ``bounds``; a degenerate range gives 1."""
    lower, upper = bounds[0], bounds[1]
    if lower == upper:
        return 1.0
    if x < lower or x > upper:
        return 0.0
    return 1.0 / (upper - lower)


def _ratio(numerator: float, denominator: float) -> float:
    if denominator != 0.0:
        return numerator / denominator
    return math.inf if numerator > 0.0 else math.nan


def metropolis_2d(
    n: int,
    burnin: int,
    pdf: Density,
    initial: Sequence[float],
    steps: Sequence[float],
    priors: Sequence[Sequence[float]],
    cut: Density,
    rng=None,
) -> list[list[float]]:
    """Draw ``n`` accepted Metropolis-Hastings samples of ``pdf``, shuffled.

    Points outside the flat ``priors`` or where ``cut`` is zero are rejected.
    """
    if rng is None:
        rng = np.random.default_rng()
    current = list(initial)
    p_current = pdf(current)
    samples: list[list[float]] = []
    j = -burnin
    while j < n:
        proposal = [c + rng.normal(0.0, s) for c, s in zip(current, steps)]
        weight = 1.0
        for value, bounds in zip(proposal, priors):
            weight *= flat_prior(value, bounds)
        if weight > 0.0:
            weight = cut(proposal)
        if weight <= 0.0:
            continue
        p_proposal = pdf(proposal)
        u = random_real(0.0, 1.0, rng)
        if u < min(1.0, _ratio(p_proposal, p_current)):
            current = proposal
            p_current = p_proposal
            if j >= 0:
                samples.append(list(current))
            j += 1
    order = rng.permutation(len(samples))
    return [samples[i] for i in order]


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def magnification_distribution(
    cosmo: Cosmology,
    zs: float,
    source_radius: float,
    n_halos: int,
    n_real: int,
    n_bins: int,
    rng=None,
) -> list[list[float]]:
    """Distribution of ln(mu) in the source plane: rows ``(ln mu, dP/dln mu)``.

    Halos whose convergence exceeds a threshold are drawn so that about
    ``n_halos`` of them lie in front of each of ``n_real`` sources.
    """
    if n_bins < 2:
        raise ValueError("at least two bins are needed")
    if n_real < 1:
        raise ValueError("at least one realisation is needed")
    if rng is None:
        rng = np.random.default_rng()
    bg = cosmo.background

    k1, k2 = _KAPPA_LOW, _KAPPA_HIGH
    threshold = 10.0 ** ((math.log10(k1) + math.log10(k2)) / 2.0)
    while math.log10(k2) - math.log10(k1) > _LOG_KAPPA_TOL:
        if halo_count(cosmo, zs, source_radius, threshold) > n_halos:
            k1 = threshold
        else:
            k2 = threshold
        threshold = 10.0 ** ((math.log10(k1) + math.log10(k2)) / 2.0)
    n_bar = halo_count(cosmo, zs, source_radius, threshold)

    def pdf(point: list) -> float:
        zl, mass = point[0], math.exp(point[1])
        rmax = max_radius(cosmo, zs, zl, mass, source_radius, threshold)
        density = float(interpolate2(zl, mass, cosmo.z_list, cosmo.mass_list, cosmo.hmf)[0])
        return ((1.0 + zl) * rmax) ** 2 / float(bg.hubble(zl)) * density

    def cut(point: list) -> float:
        zl, mass = point[0], math.exp(point[1])
        kappa0 = convergence(cosmo, zs, zl, _CENTRE_RADIUS, mass, source_radius)[0]
        return 1.0 if kappa0 > threshold else 0.0

    priors = [[cosmo.z_min, zs], [math.log(cosmo.mass_min), math.log(cosmo.mass_max)]]
    steps = [(hi - lo) / 10.0 for lo, hi in priors]

    samples = metropolis_2d(
        _N_RANDOM, _BURNIN, pdf, [zs / 2.0, math.log(_START_MASS)], steps, priors, cut, rng
    )
    idx = 0

    kappas, gammas = [], []
    for _ in range(n_real):
        kappa_sum = gamma1 = gamma2 = 0.0
        for _ in range(int(rng.poisson(n_bar))):
            zl, log_mass = samples[idx]
            mass = math.exp(log_mass)
            idx += 1
            if idx >= _N_RANDOM:
                samples = metropolis_2d(
                    _N_RANDOM, _BURNIN, pdf, [zl, log_mass], steps, priors, cut, rng
                )
                idx = 0
            rmax = max_radius(cosmo, zs, zl, mass, source_radius, threshold)
            r = math.sqrt(random_real(0.0, 1.0, rng)) * rmax
            phi = random_real(0.0, 2 * math.pi, rng)
            kappa, mean_kappa, _ = convergence(cosmo, zs, zl, r, mass, source_radius)
            kappa_sum += kappa
            gamma1 += -math.cos(2 * phi) * (mean_kappa - kappa)
            gamma2 += -math.sin(2 * phi) * (mean_kappa - kappa)
        kappas.append(kappa_sum)
        gammas.append(math.hypot(gamma1, gamma2))

    mean_kappa_all = sum(kappas) / n_real
    ln_mu = []
    for kappa, gamma in zip(kappas, gammas):
        denom = (1.0 - (kappa - mean_kappa_all)) ** 2 - gamma**2
        if denom > 0.0:
            ln_mu.append(math.log(1.0 / denom))

    lnmu_min = min([0.0, *ln_mu])
    lnmu_max = max([0.0, *ln_mu])
    mean_ln = sum(ln_mu) / n_real
    mean_ln2 = sum(v * v for v in ln_mu) / n_real
    variance = mean_ln2 - mean_ln**2
    if variance <= 0.0 or lnmu_max == lnmu_min:
        raise ValueError("the magnification distribution is degenerate")

    dlnmu = math.sqrt(variance) / (n_bins - 1)
    n_cells = math.ceil((lnmu_max - lnmu_min) / dlnmu + 1.0)
    centres = [lnmu_min + j * dlnmu for j in range(n_cells)]
    counts = [0.0] * n_cells
    for value in ln_mu:
        jb = _round_half_up((n_cells - 1) * (value - lnmu_min) / (lnmu_max - lnmu_min))
        if 0 <= jb < n_cells:
            counts[jb] += 1.0

    # Image-plane counts weighted by 1/mu give the source-plane distribution.
    weights = [c * math.exp(-x) for x, c in zip(centres, counts)]
    norm = sum(weights) * dlnmu
    return [[x, w / norm] for x, w in zip(centres, weights)]