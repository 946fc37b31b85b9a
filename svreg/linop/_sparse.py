# -*- coding: utf-8 -*-
# Copyright (C) 2020-2025 by SVREG Developers
# All rights reserved. BSD 3-clause License.
# This file is part of the SVREG package. Details of the copyright and
# user license can be found in the 'LICENSE' file distributed with the
# package.

"""Sparse matrix linear operator class."""


# Needed to annotate a class method that returns the encapsulating class;
# see https://www.python.org/dev/peps/pep-0563/
from __future__ import annotations

import numpy as np

import jax
import jax.numpy as jnp
from jax.experimental import sparse

from ._linop import LinearOperator


class SparseMatrixOperator(LinearOperator):
    """Linear operator implementing sparse matrix multiplication.

    Only the nonzero entries of the matrix are stored, as a
    :class:`jax.experimental.sparse.BCOO` array. The action of the
    operator is :math:`A \\mb{x}` and that of its adjoint is
    :math:`A^T \\mb{y}`.
    """

    def __init__(self, A: sparse.BCOO):
        """
        Args:
            A: Sparse array in BCOO format. A dense array is converted
               to BCOO, keeping only its nonzero entries.
        """
        if isinstance(A, (np.ndarray, jax.Array)):
            A = sparse.BCOO.fromdense(jnp.asarray(A))
        elif not isinstance(A, sparse.BCOO):
            raise TypeError(f"Expected BCOO, np.ndarray or jax.Array, got {type(A)}")

        if A.ndim != 2:
            raise TypeError(f"Expected a 2-dimensional array, got array of shape {A.shape}")

        #: Sparse array implementing this matrix
        self.A: sparse.BCOO = A
        #: Transpose of `A`, stored to avoid re-sorting the indices on each adjoint call
        self.AT: sparse.BCOO = A.T

        super().__init__(
            input_shape=A.shape[1],
            output_shape=A.shape[0],
            input_dtype=A.dtype,
            output_dtype=A.dtype,
        )

    @classmethod
    def from_coords(cls, rows, cols, shape, data=None) -> SparseMatrixOperator:
        """Construct from coordinate lists of the nonzero entries.

        Args:
            rows: Row index of each nonzero entry.
            cols: Column index of each nonzero entry.
            shape: Shape of the matrix.
            data: Value of each nonzero entry. Defaults to ``None``, in
               which case all entries are 1.

        Returns:
            The sparse matrix operator.
        """
        rows = np.asarray(rows)
        cols = np.asarray(cols)
        if data is None:
            data = np.ones(rows.shape, dtype=np.float64)
        indices = jnp.stack((jnp.asarray(rows), jnp.asarray(cols)), axis=1)
        A = sparse.BCOO((jnp.asarray(data), indices), shape=tuple(shape))
        return cls(A)

    @property
    def nnz(self) -> int:
        """Number of stored (nonzero) entries."""
        return int(self.A.nse)

    def _eval(self, x):
        return self.A @ x

    def _adj(self, y):
        return self.AT @ y

    def todense(self) -> jax.Array:
        """Return a dense copy of the matrix."""
        return self.A.todense()
