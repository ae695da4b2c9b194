"""UV luminosity functions of galaxies, their lensing and a Bayesian fit to data."""

from __future__ import annotations

import logging
import math
from bisect import bisect_left
from collections.abc import Sequence
from dataclasses import astuple, dataclass
from os import PathLike
from pathlib import Path
from typing import Optional, Union

import numpy as np

from .basics import interpolaten, random_real
from .cosmology import Cosmology
from .lensing import flat_prior
from .spectrum import DarkMatter, star_fraction, star_fraction_log_derivative

__all__ = [
    "UVParameters",
    "read_plnmu",
    "kappa_uv",
    "enhancement",
    "muv",
    "muv_derivative",
    "dust_extinction",
    "uvlf_delta",
    "gaussian",
    "phi_uv",
    "write_uvlf",
    "read_uv_data",
    "log_normal_pdf",
    "log_split_normal_pdf",
    "log_likelihood",
    "uniform_prior",
    "mcmc_sampling",
    "gelman_rubin",
    "fit_uvlf",
]

logger = logging.getLogger(__name__)

PathType = Union[str, "PathLike[str]"]

# UV luminosity to star formation rate conversion, Msun s erg^-1 Myr^-1.
_KAPPA_UV0 = 1.15e-22
_MAG_ZERO = 51.63
_MAG_SLOPE = 1.08574
_LENS_SLOPE = 1.086
_MDOT_FLOOR = 1.0e-99
_PHI_FLOOR = 1.0e-64
# Conversion of the luminosity function from kpc^-3 to Mpc^-3.
_PER_MPC3 = 1.0e9
_SIGMA_CUT = 5.0

DEFAULT_DATA_FILES = (
    "UVLF_2102.07775.txt",
    "UVLF_2108.01090.txt",
    "UVLF_2403.03171.txt",
    "UVLF_2503.15594.txt",
    "UVLF_2504.05893.txt",
    "UVLF_2505.11263.txt",
)


@dataclass
class UVParameters:
    """Star formation and UV emission parameters of the galaxy model.

    ``log_m`` is the logarithm of the dark matter model parameter and is
    ignored for cold dark matter.
    """

    log_mt: float
    mc: float
    epsilon: float
    alpha: float
    beta: float
    gamma: float
    zc: float
    fkappa: float
    ze: float
    z0: float
    sigma_uv: float
    log_m: float = 0.0

    @property
    def mt(self) -> float:
        """Turnover halo mass."""
        return 10.0**self.log_mt

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> "UVParameters":
        """Build from 11 or 12 values in field order."""
        values = [float(v) for v in values]
        if not 11 <= len(values) <= 12:
            raise ValueError(f"expected 11 or 12 parameters, got {len(values)}")
        return cls(*values)

    def as_list(self) -> list[float]:
        return list(astuple(self))


def _scalar(value):
    arr = np.asarray(value)
    return float(arr) if arr.ndim == 0 else arr


def read_plnmu(path: PathType = "Plnmu.dat") -> list[list[list[float]]]:
    """Read ``z ln(mu) P`` triples and group them into one table per redshift.

    A new table starts whenever the redshift grows past the current one.
    """
    with open(path, encoding="utf-8") as handle:
        numbers = [float(token) for token in handle.read().split()]
    tables: list[list[list[float]]] = []
    current: list[list[float]] = []
    current_z = 0.0
    for start in range(0, len(numbers) - len(numbers) % 3, 3):
        z, lnmu, density = numbers[start : start + 3]
        if z > current_z:
            if current_z > 0:
                tables.append(current)
                current = []
            current_z = z
        current.append([lnmu, density])
    if current:
        tables.append(current)
    return tables


def kappa_uv(z, gamma, zc, fkappa):
    """UV luminosity conversion factor, moving smoothly between two values around ``zc``."""
    return _KAPPA_UV0 * ((1.0 + fkappa) - (1.0 - fkappa) * math.tanh((z - zc) / gamma)) / 2.0


def enhancement(z, ze, z0):
    """Factor scaling the star formation slopes: 1 below ``ze``, 0 above ``z0``."""
    if ze < z < z0:
        return (z - z0) / (ze - z0)
    if z >= z0:
        return 0.0
    return 1.0


def muv(cosmo: Optional[Cosmology], z, mass, mdot, params: UVParameters):
    """Mean UV magnitude of halos of ``mass`` growing at rate ``mdot``."""
    factor = enhancement(z, params.ze, params.z0)
    fstar = star_fraction(
        mass, params.mc, params.mt, params.epsilon, params.alpha * factor, params.beta * factor
    )
    luminosity = fstar * np.fmax(mdot, _MDOT_FLOOR) / kappa_uv(
        z, params.gamma, params.zc, params.fkappa
    )
    return _scalar(_MAG_ZERO - _MAG_SLOPE * np.log(luminosity))


def muv_derivative(mass, mdot, mdot_derivative, mc, mt, epsilon, alpha, beta):
    """Derivative dM_UV/dM of the UV magnitude with respect to halo mass."""
    return _scalar(
        -_MAG_SLOPE
        * (
            mdot_derivative / np.fmax(mdot, _MDOT_FLOOR)
            + star_fraction_log_derivative(mass, mc, mt, epsilon, alpha, beta)
        )
    )


def dust_extinction(muv_value, z):
    """Dust extinction A_UV, tending smoothly to zero for faint galaxies."""
    c0, c1, sigma_beta = 4.4, 2.0, 0.34
    scale = 1.54 + 0.075 * z
    beta = -np.exp(0.17 * (19.5 + np.asarray(muv_value, dtype=float)) / scale) * scale
    a0 = c0 + 0.2 * math.log(10) * (c1 * sigma_beta) ** 2 + c1 * beta
    s = 3.0
    return _scalar(np.logaddexp(s * a0, 0.0) / s)


def uvlf_delta(z, mass, mdot, mdot_derivative, dndlnm, params: UVParameters):
    """UV luminosity function per halo when every halo has exactly the mean magnitude."""
    factor = enhancement(z, params.ze, params.z0)
    slope = muv_derivative(
        mass,
        mdot,
        mdot_derivative,
        params.mc,
        params.mt,
        params.epsilon,
        params.alpha * factor,
        params.beta * factor,
    )
    return _scalar(-np.asarray(dndlnm) / np.asarray(mass) / slope)


def gaussian(x, mean, sigma):
    """Normal probability density."""
    return _scalar(
        1.0 / (math.sqrt(2.0 * math.pi) * sigma) * np.exp(-((np.asarray(x) - mean) ** 2) / (2.0 * sigma**2))
    )


def _nearest_index(values: Sequence[float], x: float) -> int:
    if len(values) == 0:
        raise ValueError("empty grid")
    j = bisect_left(values, x)
    if j >= len(values):
        j = len(values) - 1
    if j > 0 and values[j] - x > x - values[j - 1]:
        j -= 1
    return j


def _interp_column(x, xs: np.ndarray, ys: np.ndarray):
    """Clamped linear interpolation along a monotonic ``xs``."""
    if xs[0] < xs[-1]:
        return np.interp(x, xs, ys)
    return np.interp(x, xs[::-1], ys[::-1])


def _trapezoid(f: np.ndarray, x: np.ndarray, a: int, b: int) -> float:
    if b <= a:
        return 0.0
    return float(np.sum((f[a:b] + f[a + 1 : b + 1]) * np.diff(x[a : b + 1])) / 2.0)


def _scattered_lf(magnitudes, dndlnm, log_mass, sigma) -> np.ndarray:
    """Luminosity function with a Gaussian scatter of magnitudes at fixed halo mass."""
    n = len(magnitudes)
    lf = np.zeros(n)
    for j, centre in enumerate(magnitudes):
        far = np.abs(magnitudes - centre) > _SIGMA_CUT * sigma
        f = dndlnm * gaussian(centre, magnitudes, sigma)
        total = 0.0
        if j < n - 1:
            hits = np.flatnonzero(far[j : n - 1])
            stop = j + int(hits[0]) if hits.size else n - 2
            total += _trapezoid(f, log_mass, j, stop + 1)
        if j > 0:
            hits = np.flatnonzero(far[1 : j + 1])
            start = 1 + int(hits[-1]) if hits.size else 1
            total += _trapezoid(f, log_mass, start - 1, j)
        lf[j] = total
    return lf


def phi_uv(cosmo: Cosmology, params: UVParameters, model=DarkMatter.CDM) -> np.ndarray:
    """UV luminosity functions at the lensing redshifts of ``cosmo``.

    Returns an array ``[iz, iM] -> (M_UV, M, Phi, Phi with dust, Phi with dust
    and lensing)``, with Phi per unit magnitude and kpc^3.
    """
    model = DarkMatter(model)
    cosmo.select_model(model, 10.0**params.log_m)

    redshifts = list(cosmo.amplification_z)
    tables = cosmo.amplification
    if not redshifts or len(tables) != len(redshifts):
        raise ValueError("one magnification distribution is needed per redshift")
    z_grid = list(cosmo.z_list)
    masses = np.asarray(cosmo.mass_list, dtype=float)
    hmf = np.asarray(cosmo.hmf, dtype=float)
    n = len(masses)
    if hmf.ndim != 3 or hmf.shape[:2] != (len(z_grid), n):
        raise ValueError("halo mass function does not match the (z, M) grid")
    log_mass = np.log(masses)

    result = np.zeros((len(redshifts), n, 5))
    for jz, (z, table) in enumerate(zip(redshifts, tables)):
        plnmu = np.asarray(table, dtype=float)
        if plnmu.ndim != 2 or len(plnmu) < 2:
            raise ValueError("a magnification distribution needs at least two bins")
        jzp = _nearest_index(z_grid, z)
        dndlnm, mdot, dmdot = hmf[jzp, :, 0], hmf[jzp, :, 1], hmf[jzp, :, 2]

        magnitudes = np.asarray(muv(cosmo, z, masses, mdot, params), dtype=float)
        if params.sigma_uv > 0.0:
            lf = _scattered_lf(magnitudes, dndlnm, log_mass, params.sigma_uv)
        else:
            lf = np.asarray(uvlf_delta(z, masses, mdot, dmdot, dndlnm, params), dtype=float)

        observed = magnitudes - np.asarray(dust_extinction(magnitudes, z), dtype=float)
        dusty = _interp_column(observed, magnitudes, lf)
        dlnmu = plnmu[1, 0] - plnmu[0, 0]
        shifted = observed[:, np.newaxis] + _LENS_SLOPE * plnmu[np.newaxis, :, 0]
        lensed = _interp_column(shifted, magnitudes, lf) @ (plnmu[:, 1] * dlnmu)

        result[jz] = np.column_stack([magnitudes, masses, lf, dusty, lensed])
    return result


def _floor(value: float, lower: float) -> float:
    return value if value > lower else lower


def write_uvlf(
    cosmo: Cosmology,
    params: UVParameters,
    model=DarkMatter.CDM,
    path: Optional[PathType] = None,
) -> Path:
    """Write ``z M_UV M Phi0 Phi1 Phi2`` lines and return the file path."""
    model = DarkMatter(model)
    table = phi_uv(cosmo, params, model)
    target = Path(path) if path is not None else Path(f"UVluminosity_{model.name}.dat")
    with open(target, "w", encoding="utf-8") as out:
        for z, rows in zip(cosmo.amplification_z, table):
            for magnitude, mass, phi0, phi1, phi2 in rows:
                fields = [
                    z,
                    magnitude,
                    mass,
                    _floor(phi0, _PHI_FLOOR),
                    _floor(phi1, _PHI_FLOOR),
                    _floor(phi2, _PHI_FLOOR),
                ]
                out.write("   ".join(f"{v:.12e}" for v in fields) + "\n")
    return target


def read_uv_data(paths: Sequence[PathType]) -> list[tuple[float, ...]]:
    """Read rows ``(z, M_UV, Phi, +sigma, -sigma)`` from whitespace separated files.

    Unreadable files are skipped with a warning; values run on across files.
    """
    numbers: list[float] = []
    for path in paths:
        try:
            with open(path, encoding="utf-8") as handle:
                numbers.extend(float(token) for token in handle.read().split())
        except OSError:
            logger.warning("couldn't open %s", path)
    usable = len(numbers) - len(numbers) % 5
    return [tuple(numbers[i : i + 5]) for i in range(0, usable, 5)]


def log_normal_pdf(x, mu, sigma):
    """Logarithm of the normal density."""
    return (-(((x - mu) / sigma) ** 2) - math.log(2 * math.pi) - 2.0 * math.log(sigma)) / 2.0


def log_split_normal_pdf(x, mu, sigma_plus, sigma_minus):
    """Logarithm of a two-piece normal density with different widths on each side."""
    if x < mu:
        return log_normal_pdf(x, mu, sigma_minus) + math.log(
            2 * sigma_minus / (sigma_minus + sigma_plus)
        )
    return log_normal_pdf(x, mu, sigma_plus) + math.log(
        2 * sigma_plus / (sigma_minus + sigma_plus)
    )


def log_likelihood(
    cosmo: Cosmology, data: Sequence[Sequence[float]], values: Sequence[float], model=DarkMatter.CDM
) -> float:
    """Log-likelihood of the lensed, dust attenuated luminosity function given ``data``."""
    table = phi_uv(cosmo, UVParameters.from_sequence(values), model)
    redshifts = list(cosmo.amplification_z)
    total = 0.0
    for z, magnitude, mean, sigma_plus, sigma_minus in data:
        jz = bisect_left(redshifts, z)
        if jz >= len(redshifts):
            raise ValueError(f"redshift {z} lies beyond the tabulated range")
        phi = _PER_MPC3 * interpolaten(magnitude, table[jz].tolist())[4]
        total += log_split_normal_pdf(phi, mean, sigma_plus, sigma_minus)
    return total


def uniform_prior(x: float, bounds: Sequence[float]) -> float:
    """Uniform prior density on ``bounds``; a degenerate range gives 1."""
    return flat_prior(x, bounds)


def _ratio(numerator: float, denominator: float) -> float:
    if denominator != 0.0:
        return numerator / denominator
    return math.inf if numerator > 0.0 else math.nan


def mcmc_sampling(
    cosmo: Cosmology,
    data: Sequence[Sequence[float]],
    initial: Sequence[float],
    steps: Sequence[float],
    priors: Sequence[Sequence[float]],
    n_samples: int,
    n_burnin: int,
    model=DarkMatter.CDM,
    rng=None,
) -> list[list[float]]:
    """Metropolis-Hastings chain of ``n_samples`` rows ``(parameters..., log L)``."""
    if rng is None:
        rng = np.random.default_rng()
    current = [float(v) for v in initial]
    logl_current = log_likelihood(cosmo, data, current, model)
    element = [*current, logl_current]

    chain: list[list[float]] = []
    accepted = 0
    i = -n_burnin
    while len(chain) < n_samples:
        proposal = [c + rng.normal(0.0, s) for c, s in zip(current, steps)]
        ratio = 1.0
        for p, c, bounds in zip(proposal, current, priors):
            ratio *= _ratio(uniform_prior(p, bounds), uniform_prior(c, bounds))
        if ratio > 0.0:
            logl_proposal = log_likelihood(cosmo, data, proposal, model)
            u = random_real(0.0, 1.0, rng)
            log_u = math.log(u) if u > 0.0 else -math.inf
            if logl_proposal - logl_current - math.log(ratio) > log_u:
                current = proposal
                logl_current = logl_proposal
                if i >= 0:
                    accepted += 1
                    element = [*current, logl_current]
            if i >= 0:
                chain.append(list(element))
        i += 1
    if n_samples > 0:
        logger.info("acceptance ratio = %g", accepted / n_samples)
    return chain


def gelman_rubin(chains: Sequence[Sequence[Sequence[float]]]) -> list[float]:
    """Gelman-Rubin statistic per parameter of equally long chains (last column is log L)."""
    arr = np.asarray(chains, dtype=float)
    if arr.ndim != 3 or arr.shape[0] < 2:
        raise ValueError("at least two chains are needed")
    values = arr[:, :, :-1]
    m, n = values.shape[0], values.shape[1]
    means = values.mean(axis=1)
    variances = values.var(axis=1)
    grand = means.mean(axis=0)
    between = np.sum((means - grand) ** 2, axis=0) * n / (m - 1)
    within = variances.mean(axis=0)
    return list(((n - 1) / n * within + between / n) / within)


def fit_uvlf(
    cosmo: Cosmology,
    priors: Sequence[Sequence[float]],
    n_steps: int,
    n_burnin: int,
    n_chains: int,
    xstep: float,
    model=DarkMatter.CDM,
    data_files: Optional[Sequence[PathType]] = None,
    output_path: Optional[PathType] = None,
    rng=None,
) -> list[float]:
    """Run MCMC chains fitting the UV data, write them, and return the best fit point.

    For non-CDM models a prior on the log of the model parameter is appended,
    spanning the tabulated range.
    """
    model = DarkMatter(model)
    if n_steps < 1:
        raise ValueError("chains need at least one step")
    if rng is None:
        rng = np.random.default_rng()
    data = read_uv_data(list(DEFAULT_DATA_FILES) if data_files is None else data_files)

    bounds = [[float(lo), float(hi)] for lo, hi in priors]
    if model is not DarkMatter.CDM:
        params = cosmo.model_params.get(model, [])
        if not params:
            raise ValueError(f"no halo tables computed for {model.name}")
        bounds.append([math.log10(params[0]), math.log10(params[-1])])
    steps = [(hi - lo) / xstep for lo, hi in bounds]

    target = Path(output_path) if output_path is not None else Path(f"MCMCchains_{model.name}.dat")
    best: list[float] = [0.0] * len(bounds)
    best_logl = 0.0
    chains = []
    with open(target, "w", encoding="utf-8") as out:
        for j in range(n_chains):
            logger.info("chain %d", j)
            initial = [random_real(lo, hi, rng) for lo, hi in bounds]
            chain = mcmc_sampling(
                cosmo, data, initial, steps, bounds, n_steps, n_burnin, model, rng
            )
            top = max(chain, key=lambda row: row[-1])
            if top[-1] > best_logl:
                best_logl = top[-1]
                best = list(top)
            for row in chain[:n_steps]:
                out.write("".join(f"{v:g}   " for v in row) + "\n")
            chains.append(chain[:n_steps])

    if n_chains >= 2:
        statistic = gelman_rubin(chains)
        logger.info("Gelman-Rubin statistic: %s", "   ".join(f"{r:g}" for r in statistic))
    return best