# Copyright (C) 2020-2025 by SVREG Developers
# All rights reserved. BSD 3-clause License.
# This file is part of the SVREG package. Details of the copyright and
# user license can be found in the 'LICENSE' file distributed with the
# package.

"""Linear operator base class."""


# Needed to annotate a class method that returns the encapsulating class;
# see https://www.python.org/dev/peps/pep-0563/
from __future__ import annotations

from typing import Callable, Optional, Union

import numpy as np

import jax
import jax.numpy as jnp

from svreg.operator._operator import Operator
from svreg.typing import DType, Shape


class LinearOperator(Operator):
    """Generic linear operator base class.

    A :class:`LinearOperator` is exposed to iterative solvers only
    through its shape (:attr:`rows`, :attr:`cols`), its forward
    evaluation (`A(x)` or `A @ x`), and its adjoint (:meth:`adj`, or the
    :class:`LinearOperator` :attr:`H` with swapped shapes).
    """

    def __init__(
        self,
        input_shape: Union[int, Shape],
        output_shape: Optional[Union[int, Shape]] = None,
        eval_fn: Optional[Callable] = None,
        adj_fn: Optional[Callable] = None,
        input_dtype: DType = np.float64,
        output_dtype: Optional[DType] = None,
        jit: bool = False,
    ):
        r"""
        Args:
            input_shape: Shape of input array.
            output_shape: Shape of output array.
                Defaults to ``None``. If ``None``, `output_shape` is
                determined by evaluating `self.__call__` on an input
                array of zeros.
            eval_fn: Function used in evaluating this
                :class:`LinearOperator`. Defaults to ``None``. If
                ``None``, then `self._eval` must be defined in any
                derived classes.
            adj_fn: Function used to evaluate the adjoint of this
                :class:`LinearOperator`. Defaults to ``None``. If
                ``None`` and no `_adj` method is defined in a derived
                class, :meth:`._set_adjoint` will be called silently at
                the first :meth:`.adj` call.
            input_dtype: `dtype` for input argument.
                Defaults to ``float64``.
            output_dtype: `dtype` for output argument.
                Defaults to ``None``. If ``None``, `output_dtype` is
                determined by evaluating `self.__call__` on an input
                array of zeros.
            jit: If ``True``, call :meth:`.jit()` on this
                :class:`LinearOperator` to jit the forward and adjoint
                functions.
        """

        super().__init__(
            input_shape=input_shape,
            output_shape=output_shape,
            eval_fn=eval_fn,
            input_dtype=input_dtype,
            output_dtype=output_dtype,
            jit=False,
        )

        if not hasattr(self, "_adj"):
            self._adj: Optional[Callable] = None
        if callable(adj_fn):
            self._adj = adj_fn
        elif adj_fn is not None:
            raise TypeError(f"Parameter adj_fn must be either a Callable or None; got {adj_fn}")

        if jit:
            self.jit()

    def _set_adjoint(self):
        """Automatically create the adjoint method."""
        adj_fun = jax.linear_transpose(
            self.__call__, jnp.zeros(self.input_shape, dtype=self.input_dtype)
        )
        self._adj = lambda x: adj_fun(x)[0]

    def jit(self):
        """Replace the private functions :meth:`._eval` and :meth:`_adj`
        with jitted versions.
        """
        if self._adj is None:
            self._set_adjoint()

        self._eval = jax.jit(self._eval)
        self._adj = jax.jit(self._adj)

    def __matmul__(self, other):
        # self @ other
        return self(other)

    def __call__(
        self, x: Union[LinearOperator, jax.Array, np.ndarray]
    ) -> Union[LinearOperator, jax.Array]:
        r"""Evaluate this :class:`LinearOperator` at the point :math:`\mb{x}`.

        Args:
            x: Point at which to evaluate this :class:`LinearOperator`.
               If `x` is an array, must have
               `shape == self.input_shape`. If `x` is a
               :class:`LinearOperator`, must have
               `x.output_shape == self.input_shape`.
        """
        if isinstance(x, LinearOperator):
            return ComposedLinearOperator(self, x)
        # Use Operator __call__ for LinearOperator @ array or LinearOperator @ Operator
        return super().__call__(x)

    def adj(self, y: Union[LinearOperator, jax.Array, np.ndarray]) -> Union[LinearOperator, jax.Array]:
        """Adjoint of this :class:`LinearOperator`.

        Compute the adjoint of this :class:`LinearOperator` applied to
        input `y`.

        Args:
            y: Point at which to compute adjoint. If `y` is an array,
                must have `shape == self.output_shape`. If `y` is a
                :class:`LinearOperator`, must have
                `y.output_shape == self.output_shape`.

        Returns:
            Adjoint evaluated at `y`.
        """
        if self._adj is None:
            self._set_adjoint()

        if isinstance(y, LinearOperator):
            return ComposedLinearOperator(self.H, y)
        if self.output_shape != y.shape:
            raise ValueError(
                f"Shapes do not conform: input array with shape {y.shape} does not match "
                f"LinearOperator output_shape {self.output_shape}"
            )
        assert self._adj is not None
        return self._adj(y)

    @property
    def T(self) -> LinearOperator:
        """Transpose of this :class:`LinearOperator`.

        Return a new :class:`LinearOperator` that implements the
        transpose of this :class:`LinearOperator`. All operators in this
        package are real-valued, so the transpose is the adjoint.
        """
        return LinearOperator(
            input_shape=self.output_shape,
            output_shape=self.input_shape,
            eval_fn=self.adj,
            adj_fn=self.__call__,
            input_dtype=self.output_dtype,
            output_dtype=self.input_dtype,
        )

    @property
    def H(self) -> LinearOperator:
        """Adjoint of this :class:`LinearOperator` as a :class:`LinearOperator`.

        Equivalent to :attr:`T` for the real-valued operators of this
        package.
        """
        return self.T


class ComposedLinearOperator(LinearOperator):
    """A composition of two :class:`LinearOperator` objects.

    A new :class:`LinearOperator` formed by the composition of two other
    :class:`LinearOperator` objects.
    """

    def __init__(self, A: LinearOperator, B: LinearOperator, jit: bool = False):
        r"""
        A :class:`ComposedLinearOperator` `AB` implements
        `AB @ x == A @ B @ x`. :class:`LinearOperator` `A` and `B` are
        stored as attributes of the :class:`ComposedLinearOperator`.

        Args:
            A: First (left) :class:`LinearOperator`.
            B: Second (right) :class:`LinearOperator`.
            jit: If ``True``, call :meth:`~.LinearOperator.jit()` on this
                :class:`LinearOperator`.
        """
        if not isinstance(A, LinearOperator):
            raise TypeError(
                "The first argument to ComposedLinearOperator must be a LinearOperator; "
                f"got {type(A)}"
            )
        if not isinstance(B, LinearOperator):
            raise TypeError(
                "The second argument to ComposedLinearOperator must be a LinearOperator; "
                f"got {type(B)}"
            )
        if A.input_shape != B.output_shape:
            raise ValueError(f"Incompatible LinearOperator shapes {A.shape}, {B.shape}")

        self.A = A
        self.B = B

        super().__init__(
            input_shape=self.B.input_shape,
            output_shape=self.A.output_shape,
            input_dtype=self.B.input_dtype,
            output_dtype=self.A.output_dtype,
            eval_fn=lambda x: self.A(self.B(x)),
            adj_fn=lambda z: self.B.adj(self.A.adj(z)),
            jit=jit,
        )
