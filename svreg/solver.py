# -*- coding: utf-8 -*-
# Copyright (C) 2020-2025 by SVREG Developers
# All rights reserved. BSD 3-clause License.
# This file is part of the SVREG package. Details of the copyright and
# user license can be found in the 'LICENSE' file distributed with the
# package.

"""Nonlinear and linear least squares solvers.

This module provides an svreg interface wrapper for
:func:`scipy.optimize.least_squares`, since jax does not implement a
Levenberg-Marquardt solver. The wrapper is required because the
functions in :mod:`scipy.optimize` only support 1D, real valued, numpy
arrays. These limitations are addressed by:

- Enabling the use of multi-dimensional parameter arrays by flattening
  and reshaping within the wrapper.
- Enabling the use of jax arrays by automatically converting to and from
  numpy arrays.

The wrapper also JIT compiles the residual and Jacobian evaluations, and
computes the Jacobian by forward-mode automatic differentiation when no
Jacobian function is specified.

The linear solvers :func:`cg` and :func:`lstsq` are implemented in jax,
and operate on any callable, including :class:`.LinearOperator`.
"""


from functools import wraps
from typing import Any, Callable, Optional, Tuple, Union

import numpy as np

import jax
import jax.numpy as jnp

import svreg.linop
from scipy import optimize as spopt
from svreg.typing import DType, Shape


def _wrap_residual(func: Callable, shape: Shape, dtype: DType) -> Callable:
    """Residual evaluation for use in :mod:`scipy.optimize`.

    Reshapes the input to `func` to have `shape`, evaluates `func`, and
    returns the flattened result as a float ndarray.

    Args:
        func: The residual function.
        shape: Shape of input to `func`.
        dtype: Data type of input to `func`.
    """

    res_func = jax.jit(func)

    @wraps(func)
    def wrapper(x, *args):
        res = res_func(jnp.reshape(x, shape).astype(dtype), *args)
        return np.array(res).astype(float).ravel()

    return wrapper


def _wrap_jacobian(jac: Callable, shape: Shape, dtype: DType) -> Callable:
    """Jacobian evaluation for use in :mod:`scipy.optimize`.

    Reshapes the input to `jac` to have `shape`, evaluates `jac`, and
    returns the result as a float ndarray of shape (m, n), with `n` the
    number of parameters.

    Args:
        jac: The Jacobian function.
        shape: Shape of input to `jac`.
        dtype: Data type of input to `jac`.
    """

    jac_func = jax.jit(jac)
    n = int(np.prod(shape))

    @wraps(jac)
    def wrapper(x, *args):
        J = jac_func(jnp.reshape(x, shape).astype(dtype), *args)
        return np.array(J).astype(float).reshape(-1, n)

    return wrapper


def least_squares(
    func: Callable,
    x0: Union[jax.Array, np.ndarray],
    jac: Optional[Callable] = None,
    args: Union[Tuple, Tuple[Any]] = (),
    method: str = "lm",
    ftol: float = 1e-8,
    xtol: float = 1e-8,
    gtol: float = 1e-8,
    max_nfev: Optional[int] = None,
) -> spopt.OptimizeResult:
    r"""Nonlinear least squares.

    Solve

    .. math::
        \argmin_{\mb{x}} \; (1/2) \norm{ \mb{r}(\mb{x}) }_2^2 \;,

    for a residual function :math:`\mb{r}`. Wrapper around
    :func:`scipy.optimize.least_squares`. This function differs from
    :func:`scipy.optimize.least_squares` in that:

        - The Jacobian is calculated using `jax.jacfwd` if `jac` is not
          specified.
        - Functions of N-dimensional parameter arrays are supported.
        - Jax arrays are accepted and returned.

    For more detail, including descriptions of the `ftol`, `xtol`, and
    `gtol` termination criteria, refer to the original docs for
    :func:`scipy.optimize.least_squares`. Note that the ``"lm"`` method
    requires at least as many residuals as parameters.

    Args:
        func: Residual function, mapping an array of the shape of `x0`
           to a 1D array.
        x0: Initial parameters.
        jac: Jacobian function, mapping an array of the shape of `x0` to
           an array of shape (m, x0.size). Defaults to ``None``, in which
           case the Jacobian is computed by automatic differentiation.
        args: Additional arguments of `func` and `jac`.
        method: Solver method, as in :func:`scipy.optimize.least_squares`.
        ftol: Tolerance for termination by the change of the cost.
        xtol: Tolerance for termination by the change of the parameters.
        gtol: Tolerance for termination by the norm of the gradient.
        max_nfev: Maximum number of residual evaluations. Defaults to
           ``None``, in which case the scipy default is used.

    Returns:
        :class:`scipy.optimize.OptimizeResult` with `x` a jax array of
        the shape of `x0`.
    """
    x0 = jnp.asarray(x0)
    x0_shape = x0.shape
    x0_dtype = x0.dtype

    if jac is None:
        jac = jax.jacfwd(func, argnums=0)

    res = spopt.least_squares(
        _wrap_residual(func, x0_shape, x0_dtype),
        np.array(x0).ravel(),
        jac=_wrap_jacobian(jac, x0_shape, x0_dtype),
        args=args,
        method=method,
        ftol=ftol,
        xtol=xtol,
        gtol=gtol,
        max_nfev=max_nfev,
    )

    # un-vectorize the output array from spopt.least_squares
    res.x = jnp.asarray(res.x).reshape(x0_shape).astype(x0_dtype)
    return res


def cg(
    A: Callable,
    b: jax.Array,
    x0: Optional[jax.Array] = None,
    *,
    tol: float = 1e-5,
    atol: float = 0.0,
    maxiter: int = 1000,
    info: bool = True,
    M: Optional[Callable] = None,
) -> Union[jax.Array, Tuple[jax.Array, dict]]:
    r"""Conjugate Gradient solver.

    Solve the linear system :math:`A\mb{x} = \mb{b}`, where :math:`A` is
    positive definite, via the conjugate gradient method.

    Args:
        A: Callable implementing linear operator :math:`A`, which should
           be positive definite.
        b: Input array :math:`\mb{b}`.
        x0: Initial solution. If `A` is a :class:`.LinearOperator`, this
          parameter need not be specified, and defaults to a zero array.
          Otherwise, it is required.
        tol: Relative residual stopping tolerance. Convergence occurs
           when `norm(residual) <= max(tol * norm(b), atol)`.
        atol: Absolute residual stopping tolerance. Convergence occurs
           when `norm(residual) <= max(tol * norm(b), atol)`.
        maxiter: Maximum iterations. Default: 1000.
        info: If ``True`` return a tuple consting of the solution array
           and a dictionary containing diagnostic information, otherwise
           just return the solution.
        M: Preconditioner for `A`. The preconditioner should approximate
           the inverse of `A`. The default, ``None``, uses no
           preconditioner.

    Returns:
        tuple: A tuple (x, info) containing:

            - **x** : Solution array.
            - **info**: Dictionary containing diagnostic information.
    """
    if x0 is None:
        if isinstance(A, svreg.linop.LinearOperator):
            x0 = jnp.zeros(A.input_shape, b.dtype)
        else:
            raise ValueError("Parameter x0 must be specified if A is not a LinearOperator")

    if M is None:
        M = lambda x: x

    x = x0
    Ax = A(x0)
    bn = jnp.linalg.norm(b)
    r = b - Ax
    z = M(r)
    p = z
    num = jnp.sum(r * z)
    ii = 0

    # termination tolerance (uses the "non-legacy" form of scipy.sparse.linalg.cg)
    termination_tol_sq = jnp.maximum(tol * bn, atol) ** 2

    while (ii < maxiter) and (num > termination_tol_sq):
        Ap = A(p)
        alpha = num / jnp.sum(p * Ap)
        x = x + alpha * p
        r = r - alpha * Ap
        z = M(r)
        num_old = num
        num = jnp.sum(r * z)
        beta = num / num_old
        p = z + beta * p
        ii += 1

    if info:
        # guard the relative residual of the trivial system b = 0
        rel_res = jnp.sqrt(num) / jnp.where(bn > 0, bn, 1.0)
        return (x, {"num_iter": ii, "rel_res": rel_res})
    else:
        return x


def lstsq(
    A: Callable,
    b: jax.Array,
    x0: Optional[jax.Array] = None,
    tol: float = 1e-5,
    atol: float = 0.0,
    maxiter: int = 1000,
    info: bool = False,
    M: Optional[Callable] = None,
) -> Union[jax.Array, Tuple[jax.Array, dict]]:
    r"""Least squares solver.

    Solve the least squares problem

    .. math::
        \argmin_{\mb{x}} \; (1/2) \norm{ A \mb{x} - \mb{b}) }_2^2 \;,

    where :math:`A` is a linear operator and :math:`\mb{b}` is a vector.
    The problem is solved by applying :func:`cg` to the normal equations.

    Args:
        A: Callable implementing linear operator :math:`A`.
        b: Input array :math:`\mb{b}`.
        x0: Initial solution. If `A` is a :class:`.LinearOperator`, this
          parameter need not be specified, and defaults to a zero array.
          Otherwise, it is required.
        tol: Relative residual stopping tolerance. Convergence occurs
           when `norm(residual) <= max(tol * norm(b), atol)`.
        atol: Absolute residual stopping tolerance. Convergence occurs
           when `norm(residual) <= max(tol * norm(b), atol)`.
        maxiter: Maximum iterations. Default: 1000.
        info: If ``True`` return a tuple consting of the solution array
           and a dictionary containing diagnostic information, otherwise
           just return the solution.
        M: Preconditioner for `A`. The preconditioner should approximate
           the inverse of `A`. The default, ``None``, uses no
           preconditioner.

    Returns:
        tuple: A tuple (x, info) containing:

            - **x** : Solution array.
            - **info**: Dictionary containing diagnostic information.
    """
    if isinstance(A, svreg.linop.LinearOperator):
        Aop = A
    else:
        assert x0 is not None
        Aop = svreg.linop.LinearOperator(
            input_shape=x0.shape,
            output_shape=b.shape,
            eval_fn=A,
            input_dtype=b.dtype,
            output_dtype=b.dtype,
        )

    ATA = Aop.T @ Aop
    ATb = Aop.T @ b
    return cg(ATA, ATb, x0=x0, tol=tol, atol=atol, maxiter=maxiter, info=info, M=M)
