# -*- coding: utf-8 -*-
# Copyright (C) 2021-2025 by SVREG Developers
# All rights reserved. BSD 3-clause License.
# This file is part of the SVREG package. Details of the copyright and
# user license can be found in the 'LICENSE' file distributed with the
# package.

"""Command line interface.

::

   svreg register target moving T [-mask IMG] [-maxiter N] [-init T0]
   svreg recon dwi grad out [-lmax L] [-maxiter N] [-tol TOL]

Both subcommands accept ``-config FILE``, ``-loglevel LEVEL`` and
``-logfile FILE``. Errors are logged and result in exit status 1,
without writing any output file.
"""

import argparse
import sys
from typing import List, Optional

import numpy as np

import yaml
from nibabel.filebasedimages import ImageFileError

from svreg import __version__
from svreg.config import Config, load_config, override
from svreg.io import Volume, load_grad, load_mask, load_matrix, load_volume, save_matrix, save_volume
from svreg.lie import is_rigid, se3_log
from svreg.log import get_logger, setup_logging
from svreg.recon import ReconOperator, reconstruct
from svreg.registration import register

logger = get_logger("cli")

_ERRORS = (ValueError, RuntimeError, OSError, ImageFileError, yaml.YAMLError)

# text matrices written with 5 or 6 significant digits must pass
_INIT_ATOL = 1e-4


def _add_common(parser: argparse.ArgumentParser):
    parser.add_argument("-config", "--config", help="YAML configuration file")
    parser.add_argument(
        "-loglevel", "--loglevel", default="INFO", help="logging level (default: INFO)"
    )
    parser.add_argument("-logfile", "--logfile", help="write the log to this file as well")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="svreg",
        description="Slice-to-volume registration and spherical harmonic reconstruction.",
    )
    parser.add_argument("-V", "--version", action="version", version=f"svreg {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    reg = subparsers.add_parser("register", help="rigid registration of two volumes")
    reg.add_argument("target", help="the target image")
    reg.add_argument("moving", help="the moving image")
    reg.add_argument("T", help="the output rigid transform (4x4 text matrix)")
    reg.add_argument("-mask", "--mask", help="mask of the target voxels")
    reg.add_argument(
        "-maxiter", "--maxiter", type=int, help="maximum number of cost function evaluations"
    )
    reg.add_argument("-init", "--init", help="initial rigid transform (4x4 text matrix)")
    _add_common(reg)
    reg.set_defaults(func=_register)

    rec = subparsers.add_parser("recon", help="spherical harmonic reconstruction")
    rec.add_argument("dwi", help="the 4D diffusion weighted image")
    rec.add_argument("grad", help="the gradient table (rows x y z [b])")
    rec.add_argument("out", help="the output coefficient image")
    rec.add_argument("-lmax", "--lmax", type=int, help="maximum spherical harmonic order")
    rec.add_argument("-maxiter", "--maxiter", type=int, help="maximum number of CG iterations")
    rec.add_argument("-tol", "--tol", type=float, help="relative residual tolerance of CG")
    _add_common(rec)
    rec.set_defaults(func=_recon)

    return parser


def _config(args) -> Config:
    if args.config:
        return load_config(args.config)
    return Config()


def _register(args) -> int:
    config = override(_config(args).registration, maxiter=args.maxiter)
    target = load_volume(args.target)
    moving = load_volume(args.moving)
    mask = load_mask(args.mask) if args.mask else None
    x0 = None
    if args.init:
        T0 = load_matrix(args.init)
        if not is_rigid(T0, atol=_INIT_ATOL):
            raise ValueError(f"Initial transform {args.init} is not a rigid transform")
        x0 = np.asarray(se3_log(T0))

    result = register(target, moving, mask=mask, x0=x0, config=config)
    save_matrix(args.T, result.transform)
    logger.info(f"Transform written to {args.T}")
    return 0


def _recon(args) -> int:
    config = _config(args).recon
    config = override(config, lmax=args.lmax, maxiter=args.maxiter, tol=args.tol)
    dwi = load_volume(args.dwi)
    if dwi.data.ndim != 4:
        raise ValueError(f"Image {args.dwi} must be 4-dimensional; got shape {dwi.data.shape}")
    grad = load_grad(args.grad, nv=dwi.data.shape[3])

    A = ReconOperator(dwi.data.shape, grad, config.lmax)
    coef, _ = reconstruct(A, dwi.data, tol=config.tol, maxiter=config.maxiter)
    save_volume(Volume(data=np.asarray(coef), affine=dwi.affine), args.out)
    logger.info(f"Coefficients written to {args.out}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Run the command line interface.

    Args:
        argv: Command line arguments. Defaults to ``sys.argv[1:]``.

    Returns:
        Exit status.
    """
    args = build_parser().parse_args(argv)
    try:
        setup_logging(args.loglevel, args.logfile)
        return args.func(args)
    except _ERRORS as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
