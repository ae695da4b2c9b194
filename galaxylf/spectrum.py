"""Background cosmology, matter power spectra and halo building blocks."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import IntEnum

import numpy as np

__all__ = [
    "DarkMatter",
    "Background",
    "loglist",
    "cdm_transfer",
    "k_m22",
    "fdm_transfer",
    "k_m3",
    "wdm_transfer",
    "power_amplitude",
    "window",
    "window_derivative",
    "smooth_window",
    "smooth_window_derivative",
    "sigma_of_mass",
    "first_crossing",
    "concentration",
    "star_fraction",
    "star_fraction_log_derivative",
]

# Conversion factor between wavenumber in kpc^-1 / H0 in Myr^-1 units.
_K_OVER_H0 = 306.535
_GROWTH_NORM = 0.7869370293916
_SMOOTH_C = 1.0 / 0.43
_SMOOTH_B = 6.0


class DarkMatter(IntEnum):
    """Dark matter model: cold, fuzzy, warm, or white-noise enhanced."""

    CDM = 0
    FDM = 1
    WDM = 2
    EDM = 3


@dataclass
class Background:
    """Homogeneous background cosmology (masses in Msun, lengths in kpc, times in Myr)."""

    omega_m: float = 0.315
    omega_b: float = 0.0493
    zeq: float = 3402.0
    sigma8: float = 0.811
    h: float = 0.674
    t0: float = 2.7255
    ns: float = 0.965

    omega_r: float = field(init=False)
    omega_l: float = field(init=False)
    omega_c: float = field(init=False)
    f_b: float = field(init=False)
    h0: float = field(init=False)
    rho_c: float = field(init=False)
    rho_m0: float = field(init=False)
    m8: float = field(init=False)

    def __post_init__(self) -> None:
        self.omega_r = self.omega_m / (1.0 + self.zeq)
        self.omega_l = 1.0 - self.omega_m - self.omega_r
        self.omega_c = self.omega_m - self.omega_b
        self.f_b = self.omega_b / self.omega_m
        self.h0 = 0.000102247 * self.h
        self.rho_c = 277.394 * self.h**2
        self.rho_m0 = self.omega_m * self.rho_c
        self.m8 = 4.0 * math.pi / 3.0 * (8000.0 / self.h) ** 3 * self.rho_m0

    def hubble_factor(self, z):
        """Squared expansion rate in units of H0 squared."""
        return self.omega_m * (1 + z) ** 3 + self.omega_r * (1 + z) ** 4 + self.omega_l

    def hubble(self, z):
        """Hubble rate at redshift ``z`` in Myr^-1."""
        return self.h0 * np.sqrt(self.hubble_factor(z))

    def omega_m_z(self, z):
        return self.omega_m * (1 + z) ** 3 / self.hubble_factor(z)

    def omega_r_z(self, z):
        return self.omega_r * (1 + z) ** 4 / self.hubble_factor(z)

    def omega_l_z(self, z):
        return self.omega_l / self.hubble_factor(z)

    def growth(self, z):
        """Linear growth function, normalised to the present day."""
        om = self.omega_m_z(z)
        ol = self.omega_l_z(z)
        return (
            2.5 * om
            / (om ** (4.0 / 7.0) - ol + (1 + om / 2.0) * (1 + ol / 70.0))
            / (1 + z)
            / _GROWTH_NORM
        )

    def delta_c(self, z):
        """Spherical collapse threshold."""
        return 3.0 / 5.0 * (3.0 * math.pi / 2.0) ** (2.0 / 3.0) / self.growth(z)

    def delta_ell(self, z, variance):
        """Ellipsoidal collapse threshold for a positive variance."""
        alpha, beta, a = 0.615, 0.485, 0.707
        delta = self.delta_c(z)
        return math.sqrt(a) * delta * (1.0 + beta * (a * delta**2 / variance) ** (-alpha))


def loglist(xmin: float, xmax: float, n: int) -> list[float]:
    """``n`` logarithmically spaced values from ``xmin`` to ``xmax``; empty if ``n < 2``."""
    if n <= 1:
        return []
    dlogx = (math.log(xmax) - math.log(xmin)) / (n - 1)
    values = []
    x = xmin
    for _ in range(n):
        values.append(x)
        x = math.exp(math.log(x) + dlogx)
    return values


def cdm_transfer(bg: Background, k):
    """Cold dark matter transfer function with baryon features."""
    wm = bg.omega_m * bg.h**2
    wb = bg.omega_b * bg.h**2
    fb = bg.omega_b / bg.omega_m
    fc = bg.omega_c / bg.omega_m

    keq = 0.00326227 * bg.hubble(bg.zeq) / (1.0 + bg.zeq)
    ksilk = 0.0016 * wb**0.52 * wm**0.73 * (1 + (10.4 * wm) ** -0.95)
    a1 = (46.9 * wm) ** 0.67 * (1 + (32.1 * wm) ** -0.532)
    a2 = (12.0 * wm) ** 0.424 * (1 + (45.0 * wm) ** -0.582)
    b1 = 0.944 / (1 + (458 * wm) ** -0.708)
    b2 = (0.395 * wm) ** -0.026
    acnum = a1 ** (-fb) * a2 ** (-(fb**3))
    bcnum = 1.0 / (1 + b1 * (fc**b2 - 1))
    s2 = 44.5 * 1000 * math.log(9.83 / wm) / math.sqrt(1 + 10 * wb**0.75)
    b3 = 0.313 * wm**-0.419 * (1 + 0.607 * wm**0.674)
    b4 = 0.238 * wm**0.223
    zd = 1291 * wm**0.251 / (1 + 0.659 * wm**0.828) * (1 + b3 * wb**b4)
    rd = 31.5 * wb * (bg.t0 / 2.7) ** -4.0 / (zd / 1000)

    def g2(y):
        sy = math.sqrt(1 + y)
        return y * (-6 * sy + (2.0 + 3.0 * y) * math.log((sy + 1) / (sy - 1)))

    ab = 2.07 * keq * s2 * (1 + rd) ** -0.75 * g2((1 + bg.zeq) / (1 + zd))
    bb = 0.5 + fb + (3.0 - 2.0 * fb) * math.sqrt(1 + (17.2 * wm) ** 2)
    bnode = 8.41 * wm**0.435

    k = np.asarray(k, dtype=float)
    q = k / (13.41 * keq)
    f = 1.0 / (1 + (k * s2 / 5.4) ** 4)

    def t0_tilde(ac, bc):
        c1 = 14.2 / ac + 386.0 / (1 + 69.9 * q**1.08)
        num = np.log(np.e + 1.8 * bc * q)
        return num / (num + c1 * q**2)

    s3 = s2 / (1 + (bnode / (k * s2)) ** 3) ** (1.0 / 3.0)
    ks3 = k * s3
    tc = f * t0_tilde(1.0, bcnum) + (1 - f) * t0_tilde(acnum, bcnum)
    tb = (
        t0_tilde(1.0, 1.0) / (1 + (k * s2 / 5.2) ** 2)
        + ab / (1 + (bb / (k * s2)) ** 3) * np.exp(-((k / ksilk) ** 1.4))
    ) * (np.sin(ks3) / ks3)
    return fb * tb + fc * tc


def _k_jeans(bg: Background, m22):
    return 66.5e-3 * (bg.omega_c * bg.h**2 / 0.12 / (1 + bg.zeq)) ** 0.25 * np.sqrt(m22)


def k_m22(bg: Background, m22):
    """Characteristic suppression scale of fuzzy dark matter (m22 in 1e-22 eV)."""
    a = 2.22 * m22 ** (1.0 / 25.0 - 0.001 * np.log(m22))
    return _k_jeans(bg, m22) / a


def fdm_transfer(bg: Background, k, m22):
    """Fuzzy dark matter transfer function relative to CDM."""
    n = 2.5
    x = np.asarray(k, dtype=float) / k_m22(bg, m22)
    b = 0.16 * m22 ** (-1.0 / 20.0)
    xn = x**n
    return np.sin(xn) / xn / (1 + b * x ** (6 - n))


def k_m3(bg: Background, m3):
    """Characteristic suppression scale of warm dark matter (m3 in keV)."""
    fix = 3.3 * 0.43
    return 1.0 / (
        fix * 49.0 / bg.h * (bg.omega_c / 0.25) ** 0.11 * (bg.h / 0.7) ** 1.22 * m3**-1.11
    )


def wdm_transfer(bg: Background, k, m3):
    """Warm dark matter transfer function relative to CDM."""
    mu = 1.12
    return (1.0 + (np.asarray(k, dtype=float) / k_m3(bg, m3)) ** (2.0 * mu)) ** (-5.0 / mu)


def _delta_k(bg: Background, k, delta_h, transfer):
    return np.sqrt((_K_OVER_H0 * k / bg.h0) ** (3.0 + bg.ns) * (delta_h * transfer) ** 2)


def power_amplitude(bg: Background, k, delta_h, model, param=0.0):
    """Dimensionless amplitude of matter fluctuations at wavenumber ``k``.

    ``param`` is the FDM mass, the WDM mass or the EDM cut-off scale.
    """
    model = DarkMatter(model)
    k = np.asarray(k, dtype=float)
    if model is DarkMatter.CDM:
        return _delta_k(bg, k, delta_h, cdm_transfer(bg, k))
    if model is DarkMatter.FDM:
        return _delta_k(bg, k, delta_h, fdm_transfer(bg, k, param) * cdm_transfer(bg, k))
    if model is DarkMatter.WDM:
        return _delta_k(bg, k, delta_h, wdm_transfer(bg, k, param) * cdm_transfer(bg, k))
    base = _delta_k(bg, k, delta_h, cdm_transfer(bg, k))
    at_kc = _delta_k(bg, param, delta_h, cdm_transfer(bg, param))
    return base + (k / param) ** 3 * at_kc


def window(x):
    """Real-space top-hat window function."""
    return 3.0 * (x * np.cos(x) - np.sin(x)) / x**3


def window_derivative(x):
    """Derivative of :func:`window`."""
    return -9.0 * np.cos(x) / x**3 + 9.0 * np.sin(x) / x**4 - 3.0 * np.sin(x) / x**2


def smooth_window(x):
    """Smooth k-space window function."""
    return 1.0 / (1.0 + (x / _SMOOTH_C) ** _SMOOTH_B)


def smooth_window_derivative(x):
    """Derivative of :func:`smooth_window`."""
    u = (x / _SMOOTH_C) ** _SMOOTH_B
    return -_SMOOTH_B * u / (x * (1.0 + u) ** 2)


def sigma_of_mass(bg: Background, mass, delta_h, model, param=0.0, nk=1000):
    """Return ``(sigma, dsigma/dM)`` of matter fluctuations smoothed on ``mass``."""
    model = DarkMatter(model)
    rm = (3.0 * mass / (4.0 * math.pi * bg.rho_m0)) ** (1.0 / 3.0)
    drm = rm / (3.0 * mass)

    kmax = 1000.0 / rm
    if model is DarkMatter.FDM:
        kmax = min(kmax, 10.0 * float(k_m22(bg, param)))
    elif model is DarkMatter.WDM:
        kmax = min(kmax, 10.0 * float(k_m3(bg, param)))
    kmin = 1.0e-6 * kmax
    dlogk = (math.log(kmax) - math.log(kmin)) / (nk - 1)

    ks = kmin * np.exp(dlogk * np.arange(nk + 1))
    amp2 = power_amplitude(bg, ks, delta_h, model, param) ** 2
    ws = smooth_window(ks * rm)
    f = ws**2 * amp2 / ks
    g = 2.0 * drm * smooth_window_derivative(ks * rm) * ws * amp2
    dk = np.diff(ks)
    sigma2 = float(np.sum(dk * (f[:-1] + f[1:]) / 2.0))
    dsigma2 = float(np.sum(dk * (g[:-1] + g[1:]) / 2.0))
    sigma = math.sqrt(sigma2)
    return sigma, dsigma2 / (2.0 * sigma)


def first_crossing(delta: float, variance: float) -> float:
    """First-crossing probability density for ellipsoidal collapse."""
    p, q = 0.3, 0.8
    a = 1.0 / (1 + 2.0 ** (-p) * math.gamma(0.5 - p) / math.sqrt(math.pi))
    nu2 = delta**2 / variance if variance > 0.0 else 0.0
    if nu2 > 0.0:
        return (
            a
            * (1 + (q * nu2) ** (-p))
            * math.sqrt(q * nu2 / (2.0 * math.pi))
            * math.exp(-q * nu2 / 2.0)
            / variance
        )
    return 0.0


def concentration(bg: Background, sigma, z):
    """Halo concentration parameter as a function of ``sigma`` and redshift."""
    zp = 1 + z
    c0 = 3.395 * zp**-0.215
    beta = 0.307 * zp**0.540
    gamma1 = 0.628 * zp**-0.047
    gamma2 = 0.317 * zp**-0.893
    nu0 = 4.135 - 0.564 * zp - 0.210 * zp**2 + 0.0557 * zp**3 - 0.00348 * zp**4
    ratio = bg.delta_c(z) / sigma / nu0
    return c0 * ratio ** (-gamma1) * (1 + ratio ** (1.0 / beta)) ** (-beta * (gamma2 - gamma1))


def star_fraction(mass, mc, mt, epsilon, alpha, beta):
    """Star formation efficiency f_*(M)."""
    cutoff = np.exp(-mt / mass)
    if alpha > 0.0 and beta > 0.0:
        u = mass / mc
        return epsilon * (alpha + beta) / (beta * u ** (-alpha) + alpha * u**beta) * cutoff
    return epsilon * cutoff


def star_fraction_log_derivative(mass, mc, mt, epsilon, alpha, beta):
    """Logarithmic derivative (df_*/dM)/f_*."""
    if alpha > 0.0 and beta > 0.0:
        u = (mass / mc) ** (alpha + beta)
        return beta * ((alpha + beta) / (alpha * u + beta) - 1.0) / mass + mt / mass**2
    return mt / mass**2