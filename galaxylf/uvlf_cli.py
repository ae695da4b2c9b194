"""Command that computes, and optionally fits, galaxy UV luminosity functions."""

from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path

from .cosmology import Cosmology
from .spectrum import Background, DarkMatter
from .uvluminosity import (
    DEFAULT_DATA_FILES,
    UVParameters,
    fit_uvlf,
    read_plnmu,
    write_uvlf,
)

__all__ = ["main"]

# Redshifts at which the magnification distributions are tabulated.
LENSING_REDSHIFTS = [4.0, 5.0, 6.0, 7.0, 8.0, 9.0, 10.0, 11.0, 12.5, 14.5, 17.0, 25.0]

# (logMt, Mc, epsilon, alpha, beta, gamma, zc, fkappa, ze, z0, sigmaUV, logm)
BEST_FIT = [7.68, 3.88e11, 0.0609, 0.896, 0.382, 0.092, 10.31, 0.355, 12.1, 22.5, 0.057, 0.65]

PRIORS = [
    [6.0, 10.0],
    [3.0e11, 5.0e11],
    [0.0563, 0.0658],
    [0.6, 1.1],
    [0.2, 0.6],
    [0.05, 0.6],
    [9.8, 11.4],
    [0.05, 0.7],
    [7.0, 25.0],
    [16.0, 36.0],
    [0.05, 0.2],
]


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compute UV luminosity functions for a dark matter model."
    )
    parser.add_argument("do_fit", type=int, choices=(0, 1), help="1 to fit the UV data")
    parser.add_argument(
        "dm",
        type=int,
        choices=[m.value for m in DarkMatter],
        help="0: cold, 1: fuzzy, 2: warm, 3: white-noise enhanced dark matter",
    )
    parser.add_argument("--n-mass", type=int, default=2000)
    parser.add_argument("--n-z", type=int, default=180)
    parser.add_argument("--nk", type=int, default=1000)
    parser.add_argument("--n-model", type=int, default=50)
    parser.add_argument("--n-steps", type=int, default=4000)
    parser.add_argument("--n-burnin", type=int, default=1000)
    parser.add_argument("--n-chains", type=int, default=10)
    parser.add_argument("--xstep", type=float, default=16.0)
    parser.add_argument("--plnmu", default="Plnmu.dat")
    parser.add_argument("--data-dir", default=".")
    parser.add_argument("--output-dir", default=".")
    parser.add_argument("--seed", type=int, default=None)
    return parser


def main(argv=None) -> int:
    """Write ``UVluminosity_<model>.dat`` for the best fit parameters."""
    parser = _parser()
    args = parser.parse_args(argv)
    if args.n_mass < 2 or args.n_z < 2 or args.nk < 2:
        parser.error("the mass, redshift and wavenumber grids need at least two points")
    if args.n_model < 2:
        parser.error("--n-model must be at least 2")
    if args.do_fit == 1 and (args.n_steps < 1 or args.n_chains < 1):
        parser.error("the fit needs at least one chain of at least one step")

    logging.basicConfig(level=logging.INFO, format="%(message)s")
    started = time.process_time()
    model = DarkMatter(args.dm)
    out_dir = Path(args.output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    cosmo = Cosmology(
        background=Background(),
        mass_min=1.0e6,
        mass_max=1.0e17,
        n_mass=args.n_mass,
        z_min=0.01,
        z_max=36.01,
        n_z=args.n_z,
        nk=args.nk,
        model_ranges={
            DarkMatter.FDM: (1.0, 2000.0, args.n_model),
            DarkMatter.WDM: (0.7, 40.0, args.n_model),
            DarkMatter.EDM: (0.006, 2.0, args.n_model),
        },
    )
    print("Computing halo mass functions...")
    cosmo.initialize(model, out_dir)

    print("Reading lensing amplifications...")
    cosmo.amplification_z = list(LENSING_REDSHIFTS)
    try:
        cosmo.amplification = read_plnmu(args.plnmu)
    except OSError:
        print("Plnmu.dat missing.")
        cosmo.amplification = []
    if len(cosmo.amplification) != len(cosmo.amplification_z):
        print("Wrong Plnmu.dat file.")
        return 0

    print("Computing UV luminosity functions...")
    best = list(BEST_FIT)
    if args.do_fit == 1:
        import numpy as np

        data_dir = Path(args.data_dir)
        best = fit_uvlf(
            cosmo,
            [list(bounds) for bounds in PRIORS],
            args.n_steps,
            args.n_burnin,
            args.n_chains,
            args.xstep,
            model,
            data_files=[data_dir / name for name in DEFAULT_DATA_FILES],
            output_path=out_dir / f"MCMCchains_{model.name}.dat",
            rng=np.random.default_rng(args.seed),
        )

    params = UVParameters.from_sequence(best[:12])
    write_uvlf(cosmo, params, model, out_dir / f"UVluminosity_{model.name}.dat")

    minutes = (time.process_time() - started) / 60.0
    print(f"Total evaluation time: {minutes:.6f} min.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())