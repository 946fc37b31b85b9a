# -*- coding: utf-8 -*-
# Copyright (C) 2020-2025 by SVREG Developers
# All rights reserved. BSD 3-clause License.
# This file is part of the SVREG package. Details of the copyright and
# user license can be found in the 'LICENSE' file distributed with the
# package.

"""Random number generation.

Convenience wrappers around :mod:`jax.random` routines that handle the
generation and splitting of PRNG keys:

::

   # Calls to svreg.random functions always return a PRNG key
   x, key = svreg.random.randn((2,))

   # svreg.random functions split the PRNG key and return an
   # updated key
   y, key = svreg.random.randn((2,), key=key)

If no key is passed, one is created from `seed` (default 0), so that
repeated calls without a key return the same random numbers.
"""

from typing import Optional, Tuple

import numpy as np

import jax

from svreg.typing import DType, PRNGKey, Shape


def _key(key: Optional[PRNGKey], seed: Optional[int]) -> PRNGKey:
    if key is not None and seed is not None:
        raise ValueError("Key and seed cannot both be specified")
    if key is None:
        key = jax.random.PRNGKey(0 if seed is None else seed)
    return key


def randn(
    shape: Shape,
    dtype: DType = np.float64,
    key: Optional[PRNGKey] = None,
    seed: Optional[int] = None,
) -> Tuple[jax.Array, PRNGKey]:
    """Standard normal random array.

    Args:
        shape: Shape of the returned array.
        dtype: Data type of the returned array.
        key: Jax PRNG key. Defaults to ``None``, in which case a new key
           is created from `seed`.
        seed: Seed for the new key. Defaults to ``None`` (seed 0).

    Returns:
        tuple: A tuple (`x`, `key`) of the random array and an updated
        key for subsequent calls.
    """
    key = _key(key, seed)
    key, subkey = jax.random.split(key, 2)
    return jax.random.normal(subkey, shape, dtype=dtype), key


def uniform(
    shape: Shape,
    dtype: DType = np.float64,
    minval: float = 0.0,
    maxval: float = 1.0,
    key: Optional[PRNGKey] = None,
    seed: Optional[int] = None,
) -> Tuple[jax.Array, PRNGKey]:
    """Uniform random array on `[minval, maxval)`.

    Arguments as for :func:`randn`.
    """
    key = _key(key, seed)
    key, subkey = jax.random.split(key, 2)
    return jax.random.uniform(subkey, shape, dtype=dtype, minval=minval, maxval=maxval), key
