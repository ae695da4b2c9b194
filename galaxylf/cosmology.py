"""Halo populations on a redshift and mass grid for several dark matter models."""

from __future__ import annotations

import math
from bisect import bisect_left
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path
from typing import Optional, Union

import numpy as np

from .basics import interpolate, write_grid2, write_grid3, write_matrix, write_stacked
from .spectrum import (
    Background,
    DarkMatter,
    concentration,
    first_crossing,
    loglist,
    sigma_of_mass,
)

__all__ = ["Cosmology"]

PathType = Union[str, "PathLike[str]"]

_K_OVER_H0 = 306.535
# Redshift step used for the time derivative of the collapse threshold.
_DZ = 0.01


def _default_ranges() -> dict:
    return {
        DarkMatter.FDM: (1.0, 2000.0, 0),
        DarkMatter.WDM: (0.7, 40.0, 0),
        DarkMatter.EDM: (0.006, 2.0, 0),
    }


@dataclass
class Cosmology:
    """Halo mass functions, growth rates and NFW profiles on a (z, M) grid.

    Masses are in solar masses, lengths in kpc and times in Myr.  The
    ``model_ranges`` map gives ``(min, max, count)`` of the model parameter
    (FDM mass in 1e-22 eV, WDM mass in keV, EDM cut-off in 1/kpc).
    """

    background: Background = field(default_factory=Background)
    mass_min: float = 1.0e6
    mass_max: float = 1.0e17
    n_mass: int = 2000
    z_min: float = 0.01
    z_max: float = 36.01
    n_z: int = 180
    nk: int = 1000
    model_ranges: dict = field(default_factory=_default_ranges)

    delta_h8: float = field(default=1.0, init=False)
    z_list: list = field(default_factory=list, init=False)
    mass_list: list = field(default_factory=list, init=False)
    sigma_list: np.ndarray = field(default_factory=lambda: np.zeros((0, 3)), init=False)
    hmf: np.ndarray = field(default_factory=lambda: np.zeros((0, 0, 3)), init=False)
    conc: np.ndarray = field(default_factory=lambda: np.zeros((0, 0, 2)), init=False)
    nfw: np.ndarray = field(default_factory=lambda: np.zeros((0, 0, 2)), init=False)
    distance_table: list = field(default_factory=list, init=False)
    age_table_rows: list = field(default_factory=list, init=False)
    model_params: dict = field(default_factory=dict, init=False)
    model_sigma: dict = field(default_factory=dict, init=False)
    model_hmf: dict = field(default_factory=dict, init=False)
    # Redshifts and lensing magnification distributions P(ln mu) at them.
    amplification_z: list = field(default_factory=list, init=False)
    amplification: list = field(default_factory=list, init=False)

    def initialize(self, model=DarkMatter.CDM, output_dir: Optional[PathType] = "."):
        """Build the grids and distance tables, then the halo tables for ``model``."""
        model = DarkMatter(model)
        self.z_list = loglist(self.z_min, self.z_max, self.n_z)
        self.mass_list = loglist(self.mass_min, self.mass_max, self.n_mass)
        self.distance_table = self.comoving_distance_table()
        self.age_table_rows = self.age_table()
        if model is not DarkMatter.CDM:
            lo, hi, count = self.model_ranges[model]
            self.model_params[model] = loglist(lo, hi, count)
        self.compute_halos(model, output_dir)

    def compute_halos(self, model=DarkMatter.CDM, output_dir: Optional[PathType] = "."):
        """Compute sigma(M) and halo mass functions; write them if ``output_dir`` is set."""
        model = DarkMatter(model)
        bg = self.background
        out = Path(output_dir) if output_dir is not None else None

        if model is DarkMatter.CDM:
            self.delta_h8 = bg.sigma8 / sigma_of_mass(bg, bg.m8, 1.0, model, 0.0, self.nk)[0]
            self.sigma_list = self.sigma_table(model)
            self.hmf = self.halo_mass_function()
            if out is not None:
                write_matrix(self.sigma_list, out / "sigma_CDM.dat")
                write_grid2(self.z_list, self.mass_list, self.hmf, out / "HMF_CDM.dat")
            self.conc = self.concentration_table()
            self.nfw = self.nfw_table()
            return

        params = self.model_params.get(model, [])
        sigmas, hmfs = [], []
        for param in params:
            self.delta_h8 = bg.sigma8 / sigma_of_mass(bg, bg.m8, 1.0, model, param, self.nk)[0]
            self.sigma_list = self.sigma_table(model, param)
            self.hmf = self.halo_mass_function()
            sigmas.append(self.sigma_list)
            hmfs.append(self.hmf)
        self.model_sigma[model] = sigmas
        self.model_hmf[model] = hmfs
        if out is not None:
            write_stacked(params, sigmas, out / f"sigma_{model.name}.dat")
            write_grid3(params, self.z_list, self.mass_list, hmfs, out / f"HMF_{model.name}.dat")

    def sigma_table(self, model=DarkMatter.CDM, param: float = 0.0) -> np.ndarray:
        """Rows ``(M, sigma, dsigma/dM)``, extended past ``mass_max`` by a factor of three."""
        model = DarkMatter(model)
        if self.n_mass < 2:
            raise ValueError("the mass grid needs at least two points")
        span = math.log(self.mass_max / self.mass_min)
        n_extra = math.ceil((self.n_mass - 1) * math.log(3.0) / span)
        dlogm = (math.log(self.mass_max) - math.log(self.mass_min)) / (self.n_mass - 1)
        rows = []
        mass = math.exp(math.log(self.mass_min) - dlogm)
        for _ in range(self.n_mass + n_extra):
            mass = math.exp(math.log(mass) + dlogm)
            sigma, dsigma = sigma_of_mass(
                self.background, mass, self.delta_h8, model, param, self.nk
            )
            rows.append((mass, sigma, dsigma))
        return np.array(rows)

    def halo_mass_function(self) -> np.ndarray:
        """Array ``[iz, iM] -> (dn/dlnM, dM/dt, d(dM/dt)/dM)``."""
        bg = self.background
        n = self.n_mass
        table = np.asarray(self.sigma_list, dtype=float)
        if len(table) < n + 1:
            raise ValueError("sigma table must extend past the mass grid")
        masses, sig, dsig = table[: n + 1, 0], table[: n + 1, 1], table[: n + 1, 2]
        var = sig**2
        var_double = np.interp(2.0 * masses, table[:, 0], table[:, 1]) ** 2
        norm = math.sqrt(2.0 / math.pi) / np.abs(2.0 * sig * dsig) * np.sqrt(var - var_double)

        result = np.zeros((len(self.z_list), n, 3))
        for jz, z in enumerate(self.z_list):
            ddelta = (bg.delta_ell(z + _DZ, var) - bg.delta_ell(z, var)) / _DZ
            mdot = (1 + z) * bg.hubble(z) * ddelta * norm
            dc = bg.delta_c(z)
            crossing = np.array([first_crossing(dc, v) for v in var[:n]])
            result[jz, :, 0] = -bg.rho_m0 * crossing * 2.0 * sig[:n] * dsig[:n]
            result[jz, :, 1] = mdot[:n]
            result[jz, :, 2] = np.diff(mdot) / np.diff(masses)
        return result

    def concentration_table(self) -> np.ndarray:
        """Array ``[iz, iM] -> (c, dc/dM)``."""
        n = self.n_mass
        table = np.asarray(self.sigma_list, dtype=float)
        masses, sig = table[: n + 1, 0], table[: n + 1, 1]
        result = np.zeros((len(self.z_list), n, 2))
        for jz, z in enumerate(self.z_list):
            c = concentration(self.background, sig, z)
            result[jz, :, 0] = c[:n]
            result[jz, :, 1] = np.diff(c) / np.diff(masses)
        return result

    def nfw_table(self) -> np.ndarray:
        """Array ``[iz, iM] -> (r_s, rho_s)`` of NFW scale radius and density."""
        rho200 = 200.0 * self.background.rho_c
        masses = np.asarray(self.mass_list, dtype=float)
        r200 = (3.0 * masses / (4.0 * math.pi * rho200)) ** (1.0 / 3.0)
        c = self.conc[:, :, 0]
        rs = r200[np.newaxis, :] / c
        rhos = rho200 * c**3 * (1 + c) / (3.0 * ((1 + c) * np.log(1 + c) - c))
        return np.stack([rs, rhos], axis=-1)

    def _redshift_samples(self) -> np.ndarray:
        n2 = 100 * self.n_z
        dlogz = (math.log(self.z_max) - math.log(self.z_min)) / (n2 - 2)
        return np.concatenate(([0.0], self.z_min * np.exp(dlogz * np.arange(n2 - 1))))

    def comoving_distance_table(self) -> list:
        """Rows ``(z, comoving distance)`` starting at ``(0, 0)``."""
        zs = self._redshift_samples()
        hz = self.background.hubble(zs)
        steps = np.diff(zs) * _K_OVER_H0 / np.sqrt(hz[:-1] * hz[1:])
        dist = np.concatenate(([0.0], np.cumsum(steps)))
        return np.column_stack([zs, dist]).tolist()

    def age_table(self) -> list:
        """Rows ``(z, age of the universe)``; the age reaches zero at ``z_max``."""
        zs = self._redshift_samples()
        inv = 1.0 / ((1 + zs) * self.background.hubble(zs))
        steps = np.diff(zs) * np.sqrt(inv[:-1] * inv[1:])
        elapsed = np.concatenate(([0.0], np.cumsum(steps)))
        return np.column_stack([zs, elapsed[-1] - elapsed]).tolist()

    def luminosity_distance(self, z: float) -> float:
        """Luminosity distance in kpc."""
        return (1 + z) * interpolate(z, self.distance_table)

    def age(self, z: float) -> float:
        """Age of the universe at redshift ``z`` in Myr."""
        return interpolate(z, self.age_table_rows)

    def select_model(self, model, mass: float) -> Optional[float]:
        """Use the halo table whose model parameter is nearest to ``mass``.

        Returns the chosen parameter, or ``None`` for cold dark matter.
        """
        model = DarkMatter(model)
        if model is DarkMatter.CDM:
            return None
        params = self.model_params.get(model, [])
        if not params:
            raise ValueError(f"no halo tables computed for {model.name}")
        jm = bisect_left(params, mass)
        if jm >= len(params):
            jm = len(params) - 1
        if jm > 0 and params[jm] - mass > mass - params[jm - 1]:
            jm -= 1
        self.hmf = self.model_hmf[model][jm]
        return params[jm]