# -*- coding: utf-8 -*-
# Copyright (C) 2021-2025 by SVREG Developers
# All rights reserved. BSD 3-clause License.
# This file is part of the SVREG package. Details of the copyright and
# user license can be found in the 'LICENSE' file distributed with the
# package.

r"""Rigid registration of two volumes.

The moving volume is registered to the target volume by minimizing

.. math::
   \frac{1}{2} \sum_{\mb{p}} \left( I_t(\mb{p}) -
   I_m(T(\mb{v}) \mb{p}) \right)^2

over the twist vector :math:`\mb{v}` of the rigid transform
:math:`T(\mb{v}) = \exp(\hat{\mb{v}})`, where the sum is over the
scanner positions :math:`\mb{p}` of the (masked) target voxels, and
:math:`I_m` is trilinear interpolation of the moving volume. The
minimization uses the Levenberg-Marquardt method with the analytic
Jacobian of the residuals.
"""

import enum
from dataclasses import dataclass
from typing import Optional

import numpy as np

import jax
import jax.numpy as jnp

from svreg.config import RegistrationConfig, override
from svreg.interp import trilinear, trilinear_grad
from svreg.io import Volume, check_dimensions
from svreg.lie import se3_exp, se3_left_jacobian, transform_points
from svreg.log import get_logger
from svreg.solver import least_squares
from svreg.typing import ArrayLike

logger = get_logger("registration")


class OptimizationStatus(enum.Enum):
    """Outcome of a registration."""

    SUCCESS = "success"
    NO_CONVERGENCE = "no_convergence"


@dataclass
class RegistrationResult:
    """Result of :func:`register`."""

    #: Optimal twist vector
    x: np.ndarray
    #: Rigid transform corresponding to `x`
    transform: np.ndarray
    status: OptimizationStatus
    #: Residual norm at `x`
    fnorm: float
    #: Residual norm at the initial twist
    initial_fnorm: float
    #: Number of residual evaluations
    nfev: int
    message: str = ""


class RegistrationCost:
    """Residuals and Jacobian of rigid registration.

    The in-mask target voxels are enumerated once, in C order over the
    three spatial axes, and their scanner positions cached. Entry `i` of
    :meth:`residual` and row `i` of :meth:`jacobian` refer to the same
    voxel.
    """

    def __init__(self, target: Volume, moving: Volume, mask: Optional[ArrayLike] = None):
        """
        Args:
            target: Target volume. A 4D image contributes its first
               volume. Its affine maps voxel indices to scanner
               coordinates.
            moving: Moving volume. A 4D image contributes its first
               volume. The inverse of its affine maps scanner coordinates
               to the voxel coordinates at which it is interpolated.
            mask: Optional boolean array of the spatial shape of
               `target`, selecting the voxels that contribute residuals.

        Raises:
            ValueError: If the mask dimensions do not match the target.
        """
        tgt = np.asarray(target.first_volume(), dtype=np.float64)
        mov = np.asarray(moving.first_volume(), dtype=np.float64)
        if mask is None:
            mask = np.ones(tgt.shape, dtype=bool)
        else:
            mask = np.asarray(mask).astype(bool)
            if mask.ndim != 3:
                raise ValueError(f"Mask must be 3-dimensional; got shape {mask.shape}")
            check_dimensions(mask.shape, tgt.shape, what="Mask and target")

        # argwhere enumerates in C order
        self.voxels = np.argwhere(mask)
        self.residual_size = self.voxels.shape[0]
        self.parameter_size = 6

        self._target_values = jnp.asarray(tgt[tuple(self.voxels.T)])
        self._positions = transform_points(target.affine, self.voxels.astype(np.float64))
        self._moving = jnp.asarray(mov)
        self._moving_inv = jnp.asarray(np.linalg.inv(moving.affine))

        self._residual = jax.jit(self._residual_fn)
        self._jacobian = jax.jit(self._jacobian_fn)
        logger.debug(f"Registration cost with {self.residual_size} residuals")

    def _residual_fn(self, x):
        q = transform_points(se3_exp(x), self._positions)
        values = trilinear(self._moving, transform_points(self._moving_inv, q))
        return self._target_values - values

    def _jacobian_fn(self, x):
        q = transform_points(se3_exp(x), self._positions)
        _, grad_vox = trilinear_grad(self._moving, transform_points(self._moving_inv, q))
        # gradient with respect to scanner coordinates
        g = grad_vox @ self._moving_inv[:3, :3]
        # g [-I | skew(q)]
        rows = jnp.concatenate((-g, jnp.cross(g, q)), axis=1)
        return rows @ se3_left_jacobian(x)

    def residual(self, x: ArrayLike) -> jax.Array:
        """Residuals `target(p) - moving(T(x) p)` of the in-mask voxels.

        Args:
            x: Twist vector of shape (6,).

        Returns:
            Array of shape (residual_size,).
        """
        return self._residual(self._check(x))

    def jacobian(self, x: ArrayLike) -> jax.Array:
        """Jacobian of :meth:`residual` with respect to the twist vector.

        Args:
            x: Twist vector of shape (6,).

        Returns:
            Array of shape (residual_size, 6).
        """
        return self._jacobian(self._check(x))

    def _check(self, x: ArrayLike) -> jax.Array:
        x = jnp.asarray(x, dtype=jnp.float64)
        if x.shape != (self.parameter_size,):
            raise ValueError(f"Twist vector must have shape (6,); got {x.shape}")
        return x


def register(
    target: Volume,
    moving: Volume,
    mask: Optional[ArrayLike] = None,
    x0: Optional[ArrayLike] = None,
    maxiter: Optional[int] = None,
    config: Optional[RegistrationConfig] = None,
) -> RegistrationResult:
    """Rigidly register `moving` to `target`.

    Args:
        target: Target volume.
        moving: Moving volume.
        mask: Optional boolean mask of the target voxels.
        x0: Initial twist vector. Defaults to zero (identity).
        maxiter: Maximum number of residual evaluations, overriding the
           value of `config`.
        config: Solver settings. Defaults to :class:`RegistrationConfig`
           defaults.

    Returns:
        The registration result. Failure to converge within `maxiter`
        evaluations is reported by the `status` attribute.

    Raises:
        ValueError: If the inputs are inconsistent, or there are fewer
           in-mask voxels than parameters.
        RuntimeError: If the solver terminates with an error.
    """
    config = override(config or RegistrationConfig(), maxiter=maxiter)
    cost = RegistrationCost(target, moving, mask=mask)
    if cost.residual_size < cost.parameter_size:
        raise ValueError(
            f"Registration requires at least {cost.parameter_size} voxels; "
            f"got {cost.residual_size}"
        )
    x0 = jnp.zeros(6) if x0 is None else cost._check(x0)
    initial_fnorm = float(jnp.linalg.norm(cost.residual(x0)))

    logger.info("Starting LM optimization.")
    res = least_squares(
        cost.residual,
        x0,
        jac=cost.jacobian,
        method="lm",
        ftol=config.ftol,
        xtol=config.xtol,
        gtol=config.gtol,
        max_nfev=config.maxiter,
    )
    if res.status == 0:
        status = OptimizationStatus.NO_CONVERGENCE
        logger.info(f"LM optimization did not converge within {res.nfev} evaluations.")
    elif res.status in (1, 2, 3, 4):
        status = OptimizationStatus.SUCCESS
        logger.info("LM optimization converged.")
    else:
        logger.error("LM optimization error.")
        raise RuntimeError(f"LM optimization error: {res.message}")

    x = np.asarray(res.x)
    fnorm = float(np.linalg.norm(res.fun))
    logger.info(f"Optimum = {np.array2string(x, precision=6)}")
    logger.info(f"Residual norm = {fnorm:.6g} (initial {initial_fnorm:.6g})")
    return RegistrationResult(
        x=x,
        transform=np.asarray(se3_exp(x)),
        status=status,
        fnorm=fnorm,
        initial_fnorm=initial_fnorm,
        nfev=int(res.nfev),
        message=str(res.message),
    )
