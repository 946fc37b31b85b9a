# -*- coding: utf-8 -*-
# Copyright (C) 2021-2025 by SVREG Developers
# All rights reserved. BSD 3-clause License.
# This file is part of the SVREG package. Details of the copyright and
# user license can be found in the 'LICENSE' file distributed with the
# package.

r"""Exponential and logarithmic maps of the rigid motion group SE(3).

A rigid transform is represented by a :math:`4 \times 4` homogeneous
matrix and its local (Lie algebra) coordinates by a twist vector
:math:`\mb{v} \in \mbb{R}^6`. The first three components of the twist
are placed directly in the translation column of the generator

.. math::
   \hat{\mb{v}} = \left( \begin{array}{cccc}
   0 & -v_5 & v_4 & v_0 \\
   v_5 & 0 & -v_3 & v_1 \\
   -v_4 & v_3 & 0 & v_2 \\
   0 & 0 & 0 & 0 \end{array} \right) \;,

and the last three are the rotation generators about the :math:`x`,
:math:`y`, and :math:`z` axes. The maps are computed in closed form
(Rodrigues' formula for the rotation, the :math:`V` matrix for the
translation), with Taylor expansions of the angle-dependent factors
close to the identity. The logarithm is not unique at a rotation angle
of :math:`\pi`, and is numerically unstable in its neighbourhood.
"""

from typing import Tuple

import jax
import jax.numpy as jnp

from svreg.typing import ArrayLike

# Angle below which the angle-dependent factors are replaced by their
# Taylor expansions
_SMALL_ANGLE = 1e-3


def _check_twist(v: ArrayLike) -> jax.Array:
    v = jnp.asarray(v)
    if v.shape != (6,):
        raise ValueError(f"Twist vector must have shape (6,); got {v.shape}")
    return v


def _check_transform(T: ArrayLike) -> jax.Array:
    T = jnp.asarray(T)
    if T.shape != (4, 4):
        raise ValueError(f"Rigid transform must have shape (4, 4); got {T.shape}")
    return T


def skew(w: ArrayLike) -> jax.Array:
    """Skew-symmetric matrix of a 3-vector.

    Args:
        w: Array of shape (3,).

    Returns:
        Array of shape (3, 3) such that `skew(w) @ p == cross(w, p)`.
    """
    w = jnp.asarray(w)
    zero = jnp.zeros((), dtype=w.dtype)
    return jnp.array(
        [
            [zero, -w[2], w[1]],
            [w[2], zero, -w[0]],
            [-w[1], w[0], zero],
        ]
    )


def se3_hat(v: ArrayLike) -> jax.Array:
    """Generator (Lie algebra element) of a twist vector.

    Args:
        v: Twist vector of shape (6,).

    Returns:
        Array of shape (4, 4).
    """
    v = _check_twist(v)
    A = jnp.zeros((4, 4), dtype=v.dtype)
    A = A.at[:3, :3].set(skew(v[3:]))
    return A.at[:3, 3].set(v[:3])


def se3_vee(A: ArrayLike) -> jax.Array:
    """Twist vector of a generator.

    Inverse of :func:`se3_hat`. Each rotation component is the average
    of its two skew-symmetric entries, which cancels any numerical
    asymmetry of `A`.

    Args:
        A: Array of shape (4, 4).

    Returns:
        Twist vector of shape (6,).
    """
    A = _check_transform(A)
    return jnp.array(
        [
            A[0, 3],
            A[1, 3],
            A[2, 3],
            (A[2, 1] - A[1, 2]) / 2,
            (A[0, 2] - A[2, 0]) / 2,
            (A[1, 0] - A[0, 1]) / 2,
        ]
    )


def _angle_factors(theta2: jax.Array) -> Tuple[jax.Array, jax.Array, jax.Array]:
    r"""Compute :math:`\sin\theta / \theta`, :math:`(1 - \cos\theta) /
    \theta^2` and :math:`(\theta - \sin\theta) / \theta^3` from
    :math:`\theta^2`.
    """
    small = theta2 < _SMALL_ANGLE**2
    # double where: keep derivatives finite at theta = 0
    theta = jnp.sqrt(jnp.where(small, 1.0, theta2))
    sin, cos = jnp.sin(theta), jnp.cos(theta)
    a = jnp.where(small, 1.0 - theta2 / 6.0 + theta2**2 / 120.0, sin / theta)
    b = jnp.where(small, 0.5 - theta2 / 24.0 + theta2**2 / 720.0, (1.0 - cos) / theta**2)
    c = jnp.where(small, 1.0 / 6.0 - theta2 / 120.0 + theta2**2 / 5040.0, (theta - sin) / theta**3)
    return a, b, c


def se3_exp(v: ArrayLike) -> jax.Array:
    """Exponential map from a twist vector to a rigid transform.

    Args:
        v: Twist vector of shape (6,).

    Returns:
        Rigid transform of shape (4, 4). `se3_exp(0)` is the identity.
    """
    v = _check_twist(v)
    rho, omega = v[:3], v[3:]
    W = skew(omega)
    W2 = W @ W
    a, b, c = _angle_factors(jnp.dot(omega, omega))
    I = jnp.eye(3, dtype=v.dtype)
    R = I + a * W + b * W2
    V = I + b * W + c * W2
    T = jnp.eye(4, dtype=v.dtype)
    T = T.at[:3, :3].set(R)
    return T.at[:3, 3].set(V @ rho)


def se3_log(T: ArrayLike) -> jax.Array:
    r"""Logarithmic map from a rigid transform to a twist vector.

    The input must be a valid rigid transform (proper rotation and
    translation). The result is undefined for rotation angles close to
    :math:`\pi`.

    Args:
        T: Rigid transform of shape (4, 4).

    Returns:
        Twist vector of shape (6,). `se3_log(I)` is zero.
    """
    T = _check_transform(T)
    R, t = T[:3, :3], T[:3, 3]
    cos_theta = jnp.clip(0.5 * (jnp.trace(R) - 1.0), -1.0, 1.0)
    theta = jnp.arccos(cos_theta)
    small = theta < _SMALL_ANGLE
    theta_s = jnp.where(small, 1.0, theta)
    # theta / (2 sin(theta)) applied to R - R^T
    factor = jnp.where(small, 0.5 + theta**2 / 12.0, 0.5 * theta_s / jnp.sin(theta_s))
    omega = factor * jnp.array([R[2, 1] - R[1, 2], R[0, 2] - R[2, 0], R[1, 0] - R[0, 1]])

    # (1 - theta cos(theta / 2) / (2 sin(theta / 2))) / theta^2
    d = jnp.where(
        small,
        1.0 / 12.0 + theta**2 / 720.0 + theta**4 / 30240.0,
        (1.0 - theta_s * jnp.cos(theta_s / 2.0) / (2.0 * jnp.sin(theta_s / 2.0))) / theta_s**2,
    )
    W = skew(omega)
    Vinv = jnp.eye(3, dtype=T.dtype) - 0.5 * W + d * (W @ W)
    return jnp.concatenate((Vinv @ t, omega))


def se3_inverse(T: ArrayLike) -> jax.Array:
    """Inverse of a rigid transform.

    Args:
        T: Rigid transform of shape (4, 4).

    Returns:
        Rigid transform of shape (4, 4).
    """
    T = _check_transform(T)
    Rt = T[:3, :3].T
    Tinv = jnp.eye(4, dtype=T.dtype)
    Tinv = Tinv.at[:3, :3].set(Rt)
    return Tinv.at[:3, 3].set(-Rt @ T[:3, 3])


def se3_left_jacobian(v: ArrayLike) -> jax.Array:
    r"""Left Jacobian of the exponential map.

    Compute the :math:`6 \times 6` matrix :math:`J` for which

    .. math::
       \frac{\partial}{\partial v_k} \exp(\hat{\mb{v}}) =
       \widehat{(J \mb{e}_k)} \exp(\hat{\mb{v}}) \;,

    i.e. the map from a perturbation of the twist coordinates to the
    equivalent left perturbation of the transform. :math:`J` is the
    identity at :math:`\mb{v} = 0`.

    Args:
        v: Twist vector of shape (6,).

    Returns:
        Array of shape (6, 6).
    """
    v = _check_twist(v)
    Tinv = se3_inverse(se3_exp(v))
    dT = jax.jacfwd(se3_exp)(v)  # (4, 4, 6)
    G = jnp.einsum("ijk,jl->kil", dT, Tinv)
    return jax.vmap(se3_vee)(G).T


def transform_points(T: ArrayLike, p: ArrayLike) -> jax.Array:
    """Apply a homogeneous transform to an array of points.

    Args:
        T: Transform of shape (4, 4).
        p: Points of shape (..., 3).

    Returns:
        Transformed points of shape (..., 3).
    """
    T = jnp.asarray(T)
    return jnp.asarray(p) @ T[:3, :3].T + T[:3, 3]


def is_rigid(T: ArrayLike, atol: float = 1e-6) -> bool:
    """Determine whether a matrix is a valid rigid transform.

    Args:
        T: Array of shape (4, 4).
        atol: Absolute tolerance of the orthonormality, determinant, and
           last row checks.

    Returns:
        ``True`` if the upper-left block is a proper rotation and the
        last row is `[0, 0, 0, 1]`.
    """
    T = jnp.asarray(T)
    if T.shape != (4, 4):
        return False
    R = T[:3, :3]
    return bool(
        jnp.allclose(R.T @ R, jnp.eye(3), atol=atol)
        and jnp.abs(jnp.linalg.det(R) - 1.0) < atol
        and jnp.allclose(T[3], jnp.array([0.0, 0.0, 0.0, 1.0]), atol=atol)
    )
