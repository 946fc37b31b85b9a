# Copyright (C) 2021-2025 by SVREG Developers
# All rights reserved. BSD 3-clause License.
# This file is part of the SVREG package. Details of the copyright and
# user license can be found in the 'LICENSE' file distributed with the
# package.

"""Slice-to-Volume REGistration (SVREG) is a Python package for rigid
motion estimation between scan volumes and matrix-free reconstruction
of spherical harmonic signal fields from slice acquisitions.
"""

__version__ = "0.1.0"

import logging

# isort: off

# Suppress jax device warning. See https://github.com/google/jax/issues/6805
logging.getLogger("jax._src.xla_bridge").addFilter(  # jax 0.4.8 and later
    logging.Filter("No GPU/TPU found, falling back to CPU.")
)

# isort: on

import jax

# Registration Jacobians are checked against finite differences, which
# is not meaningful in single precision.
jax.config.update("jax_enable_x64", True)
jax.config.update("jax_default_matmul_precision", "highest")

from .lie import se3_exp, se3_log

__all__ = ["se3_exp", "se3_log"]
