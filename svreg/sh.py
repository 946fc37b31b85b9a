# -*- coding: utf-8 -*-
# Copyright (C) 2021-2025 by SVREG Developers
# All rights reserved. BSD 3-clause License.
# This file is part of the SVREG package. Details of the copyright and
# user license can be found in the 'LICENSE' file distributed with the
# package.

r"""Real, even-order spherical harmonics.

The basis consists of the real spherical harmonics of even order
:math:`l \leq l_{\text{max}}`,

.. math::
   Y_l^m(\theta, \phi) = \left\{ \begin{array}{ll}
   \sqrt{2} \, \mathrm{Im} \, Y_l^{|m|}(\theta, \phi) & m < 0 \\
   Y_l^0(\theta, \phi) & m = 0 \\
   \sqrt{2} \, \mathrm{Re} \, Y_l^m(\theta, \phi) & m > 0
   \end{array} \right. \;,

where :math:`Y_l^m` are the complex spherical harmonics of
:func:`scipy.special.sph_harm_y` (including the Condon-Shortley phase),
:math:`\theta` is the angle from the :math:`z` axis and :math:`\phi` the
azimuth in the :math:`xy` plane. Coefficient :math:`(l, m)` is stored at
position :func:`index` `(l, m)`, so that a basis of maximum order
:math:`l_{\text{max}}` has :func:`nforl` `(lmax)` coefficients.

These functions are evaluated on the host: they are used once to build
dense basis matrices, not inside solver iterations.
"""

import numpy as np

from scipy.special import sph_harm_y
from svreg.typing import ArrayLike


def _check_lmax(lmax: int):
    if lmax < 0:
        raise ValueError(f"lmax must be non-negative; got {lmax}")


def nforl(lmax: int) -> int:
    """Number of coefficients of an even-order basis of order `lmax`.

    Raises:
        ValueError: If `lmax` is negative.
    """
    _check_lmax(lmax)
    return (lmax + 1) * (lmax + 2) // 2


def index(l: int, m: int) -> int:
    """Position of coefficient `(l, m)` in a coefficient vector."""
    return l * (l + 1) // 2 + m


def delta(direction: ArrayLike, lmax: int) -> np.ndarray:
    """Spherical harmonic coefficients of a delta function.

    Equivalently, the values of all basis functions at `direction`.
    Directions are normalized to unit length. A zero direction (e.g. of
    an unweighted volume) is left as is, and evaluated at zero azimuth
    on the equator.

    Args:
        direction: Array of shape (..., 3).
        lmax: Maximum order. For odd `lmax`, the trailing coefficients
           beyond order `lmax - 1` are zero.

    Returns:
        Array of shape `direction.shape[:-1] + (nforl(lmax),)`.
    """
    n = nforl(lmax)
    d = np.asarray(direction, dtype=np.float64)
    if d.shape[-1] != 3:
        raise ValueError(f"Directions must have shape (..., 3); got {d.shape}")
    norm = np.linalg.norm(d, axis=-1, keepdims=True)
    d = np.where(norm > 0, d / np.where(norm > 0, norm, 1.0), d)
    theta = np.arccos(np.clip(d[..., 2], -1.0, 1.0))
    phi = np.arctan2(d[..., 1], d[..., 0])

    out = np.zeros(d.shape[:-1] + (n,), dtype=np.float64)
    for l in range(0, lmax + 1, 2):
        out[..., index(l, 0)] = sph_harm_y(l, 0, theta, phi).real
        for m in range(1, l + 1):
            Y = np.sqrt(2.0) * sph_harm_y(l, m, theta, phi)
            out[..., index(l, m)] = Y.real
            out[..., index(l, -m)] = Y.imag
    return out
