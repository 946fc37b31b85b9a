# Copyright (C) 2020-2025 by SVREG Developers
# All rights reserved. BSD 3-clause License.
# This file is part of the SVREG package. Details of the copyright and
# user license can be found in the 'LICENSE' file distributed with the
# package.

"""Operator base class."""


# Needed to annotate a class method that returns the encapsulating class;
# see https://www.python.org/dev/peps/pep-0563/
from __future__ import annotations

from typing import Callable, Optional, Tuple, Union

import numpy as np

import jax
import jax.numpy as jnp

from svreg.typing import DType, Shape


class Operator:
    """Generic operator class."""

    def __repr__(self):
        return f"""{type(self)}
shape       : {self.shape}
matrix_shape : {self.matrix_shape}
input_dtype : {self.input_dtype}
output_dtype : {self.output_dtype}
        """

    def __init__(
        self,
        input_shape: Union[int, Shape],
        output_shape: Optional[Union[int, Shape]] = None,
        eval_fn: Optional[Callable] = None,
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
            eval_fn: Function used in evaluating this :class:`.Operator`.
                Defaults to ``None``. Required unless `__init__` is being
                called from a derived class with an `_eval` method.
            input_dtype: `dtype` for input argument.
                Defaults to ``float64``.
            output_dtype: `dtype` for output argument.
                Defaults to ``None``. If ``None``, `output_dtype` is
                determined by evaluating `self.__call__` on an input
                array of zeros.
            jit: If ``True``, call :meth:`Operator.jit()` on this
                :class:`.Operator` to jit the forward function.

        Raises:
            NotImplementedError: If the `eval_fn` parameter is not
               specified and the `_eval` method is not defined in a
               derived class.
        """

        #: Shape of input array.
        self.input_shape: Shape

        #: Size of flattened input.
        self.input_size: int

        #: Shape of output array.
        self.output_shape: Shape

        #: Size of flattened output.
        self.output_size: int

        #: Shape Operator would take if it operated on flattened arrays.
        #: Consists of (output_size, input_size)
        self.matrix_shape: Tuple[int, int]

        #: Shape of Operator. Consists of (output_shape, input_shape).
        self.shape: Tuple[Shape, Shape]

        #: Dtype of input
        self.input_dtype: DType

        if isinstance(input_shape, int):
            self.input_shape = (input_shape,)
        else:
            self.input_shape = tuple(input_shape)
        self.input_dtype = input_dtype

        # Allows for dynamic creation of new Operator/LinearOperator, e.g. for adjoints
        if eval_fn:
            self._eval = eval_fn  # type: ignore
        elif not hasattr(self, "_eval"):
            raise NotImplementedError(
                "Operator is an abstract base class when the eval_fn parameter is not specified."
            )

        # If the shape isn't specified by user we can infer it using by invoking the function
        if output_shape is None or output_dtype is None:
            tmp = self(jnp.zeros(self.input_shape, dtype=input_dtype))
        if output_shape is None:
            self.output_shape = tmp.shape  # type: ignore
        else:
            self.output_shape = (
                (output_shape,) if isinstance(output_shape, int) else tuple(output_shape)
            )

        if output_dtype is None:
            self.output_dtype = tmp.dtype
        else:
            self.output_dtype = output_dtype

        self.input_size = int(np.prod(self.input_shape))
        self.output_size = int(np.prod(self.output_shape))

        self.shape = (self.output_shape, self.input_shape)
        self.matrix_shape = (self.output_size, self.input_size)

        if jit:
            self.jit()

    @property
    def rows(self) -> int:
        """Number of rows of the equivalent matrix (flattened output size)."""
        return self.matrix_shape[0]

    @property
    def cols(self) -> int:
        """Number of columns of the equivalent matrix (flattened input size)."""
        return self.matrix_shape[1]

    def jit(self):
        """Activate just-in-time compilation for the `_eval` method."""
        self._eval = jax.jit(self._eval)

    def __call__(self, x: Union[Operator, jax.Array, np.ndarray]) -> Union[Operator, jax.Array]:
        r"""Evaluate this :class:`Operator` at the point :math:`\mb{x}`.

        Args:
            x: Point at which to evaluate this :class:`.Operator`. If `x`
               is an array, it must have `shape == self.input_shape`. If
               `x` is an :class:`.Operator`, it must have
               `x.output_shape == self.input_shape`.

        Returns:
             :class:`.Operator` evaluated at `x`.

        Raises:
            ValueError: If the `input_shape` attribute of the
                :class:`.Operator` is not equal to the input array shape,
                or to the `output_shape` attribute of another
                :class:`.Operator` with which it is composed.
        """

        if isinstance(x, Operator):
            # Compose the two operators if shapes conform
            if self.input_shape == x.output_shape:
                return Operator(
                    input_shape=x.input_shape,
                    output_shape=self.output_shape,
                    eval_fn=lambda z: self(x(z)),
                    input_dtype=x.input_dtype,
                    output_dtype=self.output_dtype,
                )
            raise ValueError(f"Incompatible shapes {self.shape}, {x.shape}")

        if isinstance(x, (np.ndarray, jax.Array)):
            if self.input_shape == x.shape:
                return self._eval(x)
            raise ValueError(
                f"Cannot evaluate {type(self)} with input_shape={self.input_shape} "
                f"on array with shape={x.shape}"
            )
        # Any other array-like input
        return self._eval(x)
