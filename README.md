# galaxylf

Semi-analytic modelling of high-redshift galaxy populations:

- linear matter power spectra, the variance of matter fluctuations and halo
  mass functions with growth rates (ellipsoidal collapse) for cold, fuzzy,
  warm and white-noise-enhanced dark matter;
- NFW halo profiles, weak-lensing convergence and shear, and the probability
  distribution of the lensing magnification `P(ln mu)` for a source behind a
  random population of halos;
- UV luminosity functions without dust, with dust extinction, and with dust
  and lensing; a Metropolis–Hastings fit to observed luminosity functions and
  the Gelman–Rubin convergence statistic.

Units throughout: masses in solar masses, times in Myr, lengths in kpc.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Command-line use

Two commands are installed. Both compute the halo tables first, which takes a
while on the default grids.

### Lensing magnification distribution

```
galaxylf-lensing [--redshifts Z ...] [--n-halos N] [--n-real N] [--n-bins N]
                 [--source-radius KPC] [--n-mass N] [--n-z N] [--seed S]
                 [--output-dir DIR]
```

Computes cold dark matter halo tables on a mass grid from 1e7 to 1e17 Msun and
a redshift grid from 0.01 to 16.01, writing `sigma_CDM.dat` and `HMF_CDM.dat`.
Then, for each source redshift (default `0.1 0.2 0.5 1 2 5 10`), it draws
halos so that on average about `--n-halos` (default 10) lie above the
convergence threshold, over `--n-real` (default 20000) lines of sight, bins
`ln mu` using `--n-bins` (default 12) and writes `Plnmu.dat` with the columns
source redshift, `ln mu`, `dP/d ln mu`. `--seed` makes the run reproducible.

### UV luminosity functions

```
galaxylf-uvlf FIT MODEL [--n-mass N] [--n-z N] [--nk N] [--n-model N]
              [--n-steps N] [--n-burnin N] [--n-chains N] [--xstep X]
              [--plnmu PATH] [--data-dir DIR] [--output-dir DIR] [--seed S]
```

`MODEL` selects the dark matter: `0` cold, `1` fuzzy, `2` warm, `3`
white-noise enhanced. The halo tables are computed on a mass grid from 1e6 to
1e17 Msun and a redshift grid from 0.01 to 36.01; for the non-cold models they
are computed for `--n-model` (default 50) values of the model parameter, and
the halo tables are written to `sigma_<MODEL>.dat` and `HMF_<MODEL>.dat`.

The command reads the magnification distributions from `--plnmu` (default
`Plnmu.dat`). The file must hold exactly one table for each of the redshifts
4, 5, 6, 7, 8, 9, 10, 11, 12.5, 14.5, 17 and 25, in increasing order; such a
file is produced by

```
galaxylf-lensing --redshifts 4 5 6 7 8 9 10 11 12.5 14.5 17 25
```

If the file is missing or holds a different number of tables, the command
says so and stops.

`FIT` is `0` to use the built-in best-fit parameters or `1` to run the MCMC
fit first. A fit reads the data files `UVLF_2102.07775.txt`,
`UVLF_2108.01090.txt`, `UVLF_2403.03171.txt`, `UVLF_2503.15594.txt`,
`UVLF_2504.05893.txt` and `UVLF_2505.11263.txt` from `--data-dir`, each a
whitespace-separated list of rows `z  M_UV  Phi  +sigma  -sigma` with `Phi` in
Mpc^-3; files that cannot be opened are skipped with a warning. It runs
`--n-chains` chains of `--n-steps` samples after `--n-burnin` burn-in steps,
with proposal widths of prior range divided by `--xstep`, writes them to
`MCMCchains_<MODEL>.dat` and logs the acceptance ratios and the Gelman–Rubin
statistic.

The result is `UVluminosity_<MODEL>.dat` with the columns redshift, `M_UV`,
halo mass, and `Phi` without dust or lensing, with dust, and with dust and
lensing (per magnitude per kpc^3, floored at 1e-64). `<MODEL>` is `CDM`,
`FDM`, `WDM` or `EDM`.

## Library use

```python
import numpy as np
from galaxylf.cosmology import Cosmology
from galaxylf.lensing import magnification_distribution
from galaxylf.spectrum import DarkMatter

cosmo = Cosmology(n_mass=100, n_z=160, z_max=16.01)
cosmo.initialize(DarkMatter.CDM, output_dir=None)   # no table files written
rng = np.random.default_rng(1)
table = magnification_distribution(cosmo, 2.0, 0.0, 10, 20000, 12, rng)
```

The modules:

- `galaxylf.basics` — `interpolate`, `interpolaten` and `interpolate2` (linear
  and bilinear interpolation of tables, clamped at the ends), `random_real`,
  and the text writers `write_column`, `write_matrix`, `write_stacked`,
  `write_grid2`, `write_grid3`;
- `galaxylf.spectrum` — `DarkMatter`, the background expansion `Background`,
  transfer functions, window functions, `sigma_of_mass`, `first_crossing`,
  `concentration`, `star_fraction` and its logarithmic derivative;
- `galaxylf.cosmology` — `Cosmology`, holding the redshift and mass grids,
  halo mass functions and growth rates, concentrations and NFW parameters,
  comoving distances and ages, with `luminosity_distance`, `age` and
  `select_model`;
- `galaxylf.lensing` — NFW surface densities, `convergence`, `max_radius`,
  `halo_count`, `metropolis_2d` and `magnification_distribution`;
- `galaxylf.uvluminosity` — `UVParameters`, `read_plnmu`, `phi_uv`,
  `write_uvlf`, `read_uv_data`, `log_likelihood`, `mcmc_sampling`,
  `gelman_rubin` and `fit_uvlf`.

To use `phi_uv` directly, set `cosmo.amplification_z` to the source redshifts
and `cosmo.amplification` to one `(ln mu, dP/d ln mu)` table per redshift, for
example from `read_plnmu`.