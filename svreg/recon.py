# -*- coding: utf-8 -*-
# Copyright (C) 2021-2025 by SVREG Developers
# All rights reserved. BSD 3-clause License.
# This file is part of the SVREG package. Details of the copyright and
# user license can be found in the 'LICENSE' file distributed with the
# package.

r"""Forward model of slice-wise diffusion-weighted acquisitions.

The measured signal of an acquisition of shape :math:`(n_x, n_y, n_z,
n_v)` is modelled as

.. math::
   \mb{y} = \sum_j \mathrm{diag}(Y_{:, j} \otimes \mb{1}_{n_{xy}}) \,
   M \mb{x}_j \;,

where :math:`\mb{x}_j` is the voxel image of spherical harmonic
coefficient :math:`j`, :math:`M` is the slice sampling matrix
(:class:`SliceSampling`), and row :math:`v n_z + z` of the angular
basis matrix :math:`Y` (:class:`AngularBasis`) holds the basis values
for slice :math:`z` of volume :math:`v`. The operator
:class:`ReconOperator` applies this model and its adjoint one coefficient
at a time, without forming the Kronecker product.

Vector layouts: the input is coefficient-major, with entry
:math:`j n_{xyz} + (z n_y + y) n_x + x` for coefficient :math:`j` of
voxel :math:`(x, y, z)`; the output is the Fortran-order flattening of
an :math:`(n_x, n_y, n_z, n_v)` image.
"""

# Needed to annotate a class method that returns the encapsulating class;
# see https://www.python.org/dev/peps/pep-0563/
from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

import jax
import jax.numpy as jnp
from jax.experimental import sparse

from svreg import sh
from svreg.lie import se3_exp
from svreg.linop import LinearOperator, SparseMatrixOperator
from svreg.log import get_logger
from svreg.solver import lstsq
from svreg.typing import ArrayLike, Shape

logger = get_logger("recon")


class AngularBasis(LinearOperator):
    """Angular basis matrix :math:`Y`.

    Dense matrix of shape :math:`(n_z n_v, N)`, with :math:`N` the
    number of even-order spherical harmonic coefficients of order
    `lmax`. Row :math:`v n_z + z` holds the basis evaluated at the
    gradient direction of volume :math:`v`, optionally rotated by the
    motion of that volume or slice.
    """

    def __init__(
        self,
        grad: ArrayLike,
        nv: int,
        nz: int,
        lmax: int,
        motion: Optional[ArrayLike] = None,
    ):
        """
        Args:
            grad: Gradient table of shape (nv, 3) or (nv, 4). A fourth
               column (b-value) is ignored.
            nv: Number of volumes.
            nz: Number of slices per volume.
            lmax: Maximum spherical harmonic order.
            motion: Optional twist vectors, either of shape (nv, 6) (one
               per volume) or (nv * nz, 6) (one per slice), whose
               rotations are applied to the gradient directions.

        Raises:
            ValueError: If the gradient table does not have `nv` rows,
               or `motion` has an invalid shape.
        """
        grad = np.asarray(grad, dtype=np.float64)
        if grad.ndim != 2 or grad.shape[1] not in (3, 4):
            raise ValueError(f"Gradient table must have shape (nv, 3) or (nv, 4); got {grad.shape}")
        if grad.shape[0] != nv:
            raise ValueError(
                f"Gradient table has {grad.shape[0]} rows but the image has {nv} volumes"
            )
        if nz < 1:
            raise ValueError(f"Number of slices must be positive; got {nz}")

        self.grad = grad
        self.nv = nv
        self.nz = nz
        self.lmax = lmax

        directions = np.repeat(grad[:, :3], nz, axis=0)
        if motion is not None:
            directions = self._rotate(directions, motion)
        #: Dense basis matrix
        self.Y: jax.Array = jnp.asarray(sh.delta(directions, lmax))

        logger.debug(f"Angular basis with {nv} volumes, {nz} slices, lmax {lmax}")
        super().__init__(
            input_shape=self.Y.shape[1],
            output_shape=self.Y.shape[0],
            input_dtype=self.Y.dtype,
            output_dtype=self.Y.dtype,
        )

    def _rotate(self, directions: np.ndarray, motion: ArrayLike) -> np.ndarray:
        motion = np.asarray(motion, dtype=np.float64)
        if motion.shape == (self.nv, 6):
            motion = np.repeat(motion, self.nz, axis=0)
        elif motion.shape != (self.nv * self.nz, 6):
            raise ValueError(
                f"Motion parameters must have shape ({self.nv}, 6) or "
                f"({self.nv * self.nz}, 6); got {motion.shape}"
            )
        R = np.asarray(jax.vmap(se3_exp)(jnp.asarray(motion))[:, :3, :3])
        return np.einsum("nij,nj->ni", R, directions)

    def rebuild(self, motion: ArrayLike) -> AngularBasis:
        """Angular basis for gradient directions rotated by `motion`.

        Args:
            motion: Twist vectors of shape (nv, 6) or (nv * nz, 6).

        Returns:
            A new :class:`AngularBasis`; this instance is not modified.
        """
        return AngularBasis(self.grad, self.nv, self.nz, self.lmax, motion=motion)

    def _eval(self, x):
        return self.Y @ x

    def _adj(self, y):
        return self.Y.T @ y


class SliceSampling(SparseMatrixOperator):
    """Slice sampling matrix :math:`M`.

    Sparse matrix of shape :math:`(n_{xy} n_z n_v, n_{xy} n_z)` mapping a
    voxel image to the stacked slices of all volumes. The default
    matrix replicates the image once per volume (entry :math:`(v
    n_{xyz} + j, j)` is one), i.e. it assumes no motion and an ideal
    slice profile.
    """

    def __init__(self, nxy: int, nz: int, nv: int, matrix: Optional[sparse.BCOO] = None):
        """
        Args:
            nxy: Number of voxels per slice.
            nz: Number of slices per volume.
            nv: Number of volumes.
            matrix: Optional sparse matrix replacing the default
               replication matrix. Must have shape
               `(nxy * nz * nv, nxy * nz)`.
        """
        self.nxy = nxy
        self.nz = nz
        self.nv = nv
        nxyz = nxy * nz
        shape = (nxyz * nv, nxyz)
        if matrix is None:
            rows = np.arange(nxyz * nv)
            cols = np.tile(np.arange(nxyz), nv)
            indices = jnp.asarray(np.stack((rows, cols), axis=1))
            matrix = sparse.BCOO((jnp.ones(rows.size, dtype=jnp.float64), indices), shape=shape)
        elif tuple(matrix.shape) != shape:
            raise ValueError(f"Slice sampling matrix must have shape {shape}; got {matrix.shape}")
        super().__init__(matrix)


class ReconOperator(LinearOperator):
    """Combined slice sampling and angular basis operator.

    Maps a coefficient-major vector of spherical harmonic coefficient
    images to the Fortran-order flattened acquisition, see the module
    docstring for details of the model and the vector layouts.
    """

    def __init__(self, shape: Shape, grad: ArrayLike, lmax: int, jit: bool = True):
        """
        Args:
            shape: Acquisition shape `(nx, ny, nz, nv)`.
            grad: Gradient table of shape (nv, 3) or (nv, 4).
            lmax: Maximum spherical harmonic order.
            jit: If ``True``, jit the forward and adjoint evaluation.

        Raises:
            ValueError: If `shape` is not 4-dimensional or the gradient
               table does not match the number of volumes.
        """
        shape = tuple(shape)
        if len(shape) != 4:
            raise ValueError(f"Acquisition shape must be (nx, ny, nz, nv); got {shape}")
        nx, ny, nz, nv = shape
        Y = AngularBasis(grad, nv, nz, lmax)
        M = SliceSampling(nx * ny, nz, nv)
        self._setup(M, Y, shape, jit)

    @classmethod
    def from_parts(
        cls,
        M: SliceSampling,
        Y: AngularBasis,
        shape: Optional[Shape] = None,
        jit: bool = True,
    ) -> ReconOperator:
        """Construct from existing sampling and basis operators.

        Args:
            M: Slice sampling operator.
            Y: Angular basis operator, e.g. as returned by
               :meth:`AngularBasis.rebuild`.
            shape: Optional acquisition shape `(nx, ny, nz, nv)`,
               required by :func:`reconstruct`.
            jit: If ``True``, jit the forward and adjoint evaluation.

        Returns:
            The reconstruction operator.
        """
        op = cls.__new__(cls)
        op._setup(M, Y, None if shape is None else tuple(shape), jit)
        return op

    def _setup(self, M: SliceSampling, Y: AngularBasis, shape: Optional[Shape], jit: bool):
        if M.nz != Y.nz or M.nv != Y.nv:
            raise ValueError(
                f"Slice sampling (nz={M.nz}, nv={M.nv}) and angular basis "
                f"(nz={Y.nz}, nv={Y.nv}) do not match"
            )
        if shape is not None:
            if len(shape) != 4 or shape[0] * shape[1] != M.nxy or shape[2:] != (M.nz, M.nv):
                raise ValueError(f"Acquisition shape {shape} does not match slice sampling")

        #: Slice sampling operator
        self.M = M
        #: Angular basis operator
        self.Y = Y
        #: Acquisition shape, if known
        self.image_shape: Optional[Tuple[int, ...]] = shape
        self.nxy = M.nxy
        self.nxyz = M.cols
        self.ncoef = Y.cols

        logger.debug(
            f"Reconstruction operator with {M.rows} rows and {M.cols * Y.cols} columns"
        )
        super().__init__(
            input_shape=self.nxyz * self.ncoef,
            output_shape=M.rows,
            input_dtype=Y.input_dtype,
            output_dtype=Y.output_dtype,
            jit=jit,
        )

    def _eval(self, x):
        X = x.reshape(self.ncoef, self.nxyz)
        basis = self.Y.Y

        def accumulate(j, y):
            # row i of the output uses basis row i // nxy
            r = (self.M.A @ X[j]).reshape(-1, self.nxy)
            return y + (r * basis[:, j][:, None]).ravel()

        y0 = jnp.zeros(self.M.rows, dtype=jnp.result_type(x.dtype, basis.dtype))
        return jax.lax.fori_loop(0, self.ncoef, accumulate, y0)

    def _adj(self, y):
        Yr = y.reshape(-1, self.nxy)
        basis = self.Y.Y

        def accumulate(j, X):
            w = (Yr * basis[:, j][:, None]).ravel()
            return X.at[j].set(self.M.AT @ w)

        X0 = jnp.zeros((self.ncoef, self.nxyz), dtype=jnp.result_type(y.dtype, basis.dtype))
        return jax.lax.fori_loop(0, self.ncoef, accumulate, X0).ravel()

    def scale_add(
        self, dst: ArrayLike, x: ArrayLike, alpha: float = 1.0, adjoint: bool = False
    ) -> jax.Array:
        """Compute `dst + A(x)`, or `dst + A.adj(x)` if `adjoint` is ``True``.

        Args:
            dst: Array to which the result is added.
            x: Point at which the operator (or its adjoint) is evaluated.
            alpha: Scaling of the operator. Only unity is supported.
            adjoint: Flag selecting the adjoint.

        Returns:
            The sum, as a new array.

        Raises:
            NotImplementedError: If `alpha` is not 1.
        """
        if alpha != 1.0:
            raise NotImplementedError("Scaling other than unity is not supported")
        y = self.adj(jnp.asarray(x)) if adjoint else self(jnp.asarray(x))
        dst = jnp.asarray(dst)
        if dst.shape != y.shape:
            raise ValueError(f"Destination shape {dst.shape} does not match result shape {y.shape}")
        return dst + y

    def flatten_image(self, data: ArrayLike) -> jax.Array:
        """Flatten an acquisition of shape (nx, ny, nz, nv) to an output
        vector of this operator."""
        data = jnp.asarray(data)
        if self.image_shape is not None and data.shape != self.image_shape:
            raise ValueError(
                f"Image shape {data.shape} does not match acquisition shape {self.image_shape}"
            )
        return data.ravel(order="F")


def reconstruct(
    A: ReconOperator,
    data: ArrayLike,
    x0: Optional[ArrayLike] = None,
    tol: float = 1e-5,
    maxiter: int = 100,
) -> Tuple[jax.Array, dict]:
    """Least squares estimate of spherical harmonic coefficient images.

    Args:
        A: Reconstruction operator with known acquisition shape.
        data: Acquisition of shape (nx, ny, nz, nv).
        x0: Initial coefficient vector. Defaults to zero.
        tol: Relative residual stopping tolerance of CG.
        maxiter: Maximum number of CG iterations.

    Returns:
        tuple: A tuple (`coef`, `info`) of the coefficient images, of
        shape (nx, ny, nz, ncoef), and the CG diagnostic dictionary.
    """
    if A.image_shape is None:
        raise ValueError("Reconstruction requires an operator with known acquisition shape")
    b = A.flatten_image(data)
    if x0 is None:
        x0 = jnp.zeros(A.input_shape, dtype=b.dtype)
    logger.info(f"Start CG reconstruction of {A.ncoef} coefficients per voxel.")
    x, info = lstsq(A, b, x0=jnp.asarray(x0), tol=tol, maxiter=maxiter, info=True)
    logger.info(
        f"CG finished after {info['num_iter']} iterations, relative residual "
        f"{float(info['rel_res']):.3e}."
    )
    nx, ny, nz, _ = A.image_shape
    return x.reshape((nx, ny, nz, A.ncoef), order="F"), info

