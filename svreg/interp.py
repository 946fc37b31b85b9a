# -*- coding: utf-8 -*-
# Copyright (C) 2021-2025 by SVREG Developers
# All rights reserved. BSD 3-clause License.
# This file is part of the SVREG package. Details of the copyright and
# user license can be found in the 'LICENSE' file distributed with the
# package.

r"""Trilinear interpolation of volumes.

Volumes are sampled at arbitrary (fractional) voxel coordinates with
:func:`jax.scipy.ndimage.map_coordinates`. Voxel :math:`(i, j, k)` is
located at coordinate :math:`(i, j, k)`; each of the eight neighbours of
a sample point that lies outside the volume contributes zero to the
interpolated value and gradient.
"""

from typing import Tuple

import jax
import jax.numpy as jnp
from jax.scipy.ndimage import map_coordinates

from svreg.typing import ArrayLike


def _sample(volume: jax.Array, coord: jax.Array) -> jax.Array:
    """Interpolate `volume` at a single (3,) coordinate."""
    return map_coordinates(volume, list(coord), order=1, mode="constant", cval=0.0)


def _check(volume: ArrayLike, coords: ArrayLike) -> Tuple[jax.Array, jax.Array]:
    volume = jnp.asarray(volume)
    if not jnp.issubdtype(volume.dtype, jnp.floating):
        volume = volume.astype(float)
    coords = jnp.asarray(coords, dtype=volume.dtype)
    if volume.ndim != 3:
        raise ValueError(f"Volume must be 3-dimensional; got shape {volume.shape}")
    if coords.shape[-1] != 3:
        raise ValueError(f"Coordinates must have shape (..., 3); got {coords.shape}")
    return volume, coords


def trilinear(volume: ArrayLike, coords: ArrayLike) -> jax.Array:
    """Trilinear interpolation of a volume.

    Args:
        volume: Array of shape (nx, ny, nz).
        coords: Voxel coordinates of shape (..., 3).

    Returns:
        Interpolated values of shape `coords.shape[:-1]`.
    """
    volume, coords = _check(volume, coords)
    flat = coords.reshape(-1, 3)
    values = map_coordinates(volume, list(flat.T), order=1, mode="constant", cval=0.0)
    return values.reshape(coords.shape[:-1])


def trilinear_grad(volume: ArrayLike, coords: ArrayLike) -> Tuple[jax.Array, jax.Array]:
    """Trilinear interpolation of a volume and of its gradient.

    The gradient is that of the interpolating function with respect to
    the voxel coordinates, i.e. within each cell the derivative of the
    trilinear polynomial.

    Args:
        volume: Array of shape (nx, ny, nz).
        coords: Voxel coordinates of shape (..., 3).

    Returns:
        tuple: A tuple (`value`, `grad`) of arrays of shapes
        `coords.shape[:-1]` and `coords.shape`.
    """
    volume, coords = _check(volume, coords)
    flat = coords.reshape(-1, 3)
    value, grad = jax.vmap(jax.value_and_grad(_sample, argnums=1), in_axes=(None, 0))(
        volume, flat
    )
    return value.reshape(coords.shape[:-1]), grad.reshape(coords.shape)
