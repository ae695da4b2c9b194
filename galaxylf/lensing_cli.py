"""Command that tabulates lensing magnification distributions at several redshifts."""

from __future__ import annotations

import argparse
import time
from pathlib import Path

import numpy as np

from .cosmology import Cosmology
from .lensing import magnification_distribution
from .spectrum import Background, DarkMatter

__all__ = ["main"]

_DEFAULT_REDSHIFTS = [0.1, 0.2, 0.5, 1.0, 2.0, 5.0, 10.0]


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compute P(ln mu) for point sources behind a halo population."
    )
    parser.add_argument("--redshifts", type=float, nargs="+", default=_DEFAULT_REDSHIFTS)
    parser.add_argument("--n-halos", type=int, default=10)
    parser.add_argument("--n-real", type=int, default=20000)
    parser.add_argument("--n-bins", type=int, default=12)
    parser.add_argument("--source-radius", type=float, default=0.0, help="kpc")
    parser.add_argument("--n-mass", type=int, default=100)
    parser.add_argument("--n-z", type=int, default=160)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--output-dir", default=".")
    return parser


def main(argv=None) -> int:
    """Write ``Plnmu.dat`` with lines ``z  ln mu  dP/dln mu``."""
    parser = _parser()
    args = parser.parse_args(argv)
    if args.n_bins < 2:
        parser.error("--n-bins must be at least 2")
    if args.n_real < 1:
        parser.error("--n-real must be positive")
    if args.n_mass < 2 or args.n_z < 2:
        parser.error("the mass and redshift grids need at least two points")

    started = time.process_time()
    out_dir = Path(args.output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    cosmo = Cosmology(
        background=Background(),
        mass_min=1.0e7,
        mass_max=1.0e17,
        n_mass=args.n_mass,
        z_min=0.01,
        z_max=16.01,
        n_z=args.n_z,
    )
    print("Computing halo mass functions...")
    cosmo.initialize(DarkMatter.CDM, out_dir)

    rng = np.random.default_rng(args.seed)
    print("Generating lensing amplifications...")
    with open(out_dir / "Plnmu.dat", "w", encoding="utf-8") as out:
        for z in args.redshifts:
            print(f"z = {z:.8f}")
            table = magnification_distribution(
                cosmo, z, args.source_radius, args.n_halos, args.n_real, args.n_bins, rng
            )
            for lnmu, density in table:
                out.write(f"{z:g}   {lnmu:g}   {density:g}\n")

    minutes = (time.process_time() - started) / 60.0
    print(f"Total evaluation time: {minutes:.8f} min.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())