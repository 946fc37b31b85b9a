# -*- coding: utf-8 -*-
# Copyright (C) 2021-2025 by SVREG Developers
# All rights reserved. BSD 3-clause License.
# This file is part of the SVREG package. Details of the copyright and
# user license can be found in the 'LICENSE' file distributed with the
# package.

"""Type definitions."""

from typing import Tuple, Union

try:
    # available in python 3.10
    from typing import TypeAlias  # type: ignore
except ImportError:
    from typing_extensions import TypeAlias  # type: ignore

import numpy as np

import jax.numpy as jnp
from jax import Array

PRNGKey: TypeAlias = Array
"""A key for jax random number generators (see :mod:`jax.random`)."""

DType: TypeAlias = Union[
    jnp.int32,
    jnp.int64,
    jnp.float32,
    jnp.float64,
    bool,
]
"""A jax dtype."""

Shape: TypeAlias = Tuple[int, ...]
"""A shape of a numpy or jax array."""

ArrayLike: TypeAlias = Union[Array, np.ndarray]
"""A jax or numpy array."""

Twist: TypeAlias = ArrayLike
"""A length-6 se(3) coordinate vector: translation followed by rotation
generators about the x, y, and z axes."""
