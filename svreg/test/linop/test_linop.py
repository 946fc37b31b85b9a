import numpy as np

import jax

import pytest

import jax.numpy as jnp
from svreg import linop
from svreg.random import randn


def adjoint_test(A: linop.LinearOperator, rtol: float = 1e-7, x=None, y=None):
    """Check the validity of A.H as the adjoint for a LinearOperator A."""
    assert linop.valid_adjoint(A, A.H, eps=rtol, x=x, y=y)


class AbsMatOp(linop.LinearOperator):
    """Simple LinearOperator subclass for testing purposes.

    Does not define an adjoint, which is therefore derived with
    `jax.linear_transpose`. Used to verify the LinearOperator interface.
    """

    def __init__(self, A, adj_fn=None):
        self.A = A
        super().__init__(
            input_shape=A.shape[1], output_shape=A.shape[0], input_dtype=A.dtype, adj_fn=adj_fn
        )

    def _eval(self, x):
        return self.A @ x


class LinearOperatorTestObj:
    def __init__(self, dtype):
        M, N = (8, 16)
        key = jax.random.PRNGKey(12345)
        self.dtype = dtype

        self.A, key = randn((M, N), dtype=dtype, key=key)
        self.B, key = randn((M, N), dtype=dtype, key=key)
        self.C, key = randn((N, M), dtype=dtype, key=key)

        self.x, key = randn((N,), dtype=dtype, key=key)
        self.y, key = randn((M,), dtype=dtype, key=key)

        self.Ao = AbsMatOp(self.A)
        self.Bo = AbsMatOp(self.B)
        self.Co = AbsMatOp(self.C)


@pytest.fixture(scope="module", params=[np.float32, np.float64])
def testobj(request):
    yield LinearOperatorTestObj(request.param)


def test_matmul_left(testobj):
    comp_mat = testobj.A @ testobj.C
    comp_op = testobj.Ao @ testobj.Co
    assert isinstance(comp_op, linop.ComposedLinearOperator)
    assert comp_op.input_dtype == testobj.A.dtype
    np.testing.assert_allclose(comp_mat @ testobj.y, comp_op @ testobj.y, rtol=5e-5)


def test_matmul_incompatible(testobj):
    with pytest.raises(ValueError):
        testobj.Ao @ testobj.Bo


def test_matvec_left(testobj):
    comp_mat = testobj.A @ testobj.x
    comp_op = testobj.Ao @ testobj.x
    assert comp_op.dtype == testobj.A.dtype
    np.testing.assert_allclose(comp_mat, comp_op, rtol=5e-5)


def test_matvec_shape(testobj):
    with pytest.raises(ValueError):
        testobj.Ao @ testobj.y


def test_normal_composition(testobj):
    Ao = testobj.Ao
    ATA = Ao.T @ Ao
    assert isinstance(ATA, linop.ComposedLinearOperator)
    assert ATA.shape == ((16,), (16,))
    comp_mat = testobj.A.T @ testobj.A @ testobj.x
    np.testing.assert_allclose(ATA @ testobj.x, comp_mat, rtol=5e-4)
    np.testing.assert_allclose(ATA.adj(testobj.x), comp_mat, rtol=5e-4)


def test_matvec_call(testobj):
    np.testing.assert_allclose(testobj.Ao @ testobj.x, testobj.Ao(testobj.x), rtol=5e-5)


def test_adj_composition(testobj):
    comp_mat = testobj.A.T @ testobj.B
    a = testobj.Ao.T @ testobj.Bo
    b = testobj.Ao.adj(testobj.Bo)
    assert a.input_dtype == testobj.A.dtype
    assert b.input_dtype == testobj.A.dtype
    np.testing.assert_allclose(comp_mat @ testobj.x, a @ testobj.x, rtol=5e-4)
    np.testing.assert_allclose(comp_mat @ testobj.x, b @ testobj.x, rtol=5e-4)


def test_transpose_matvec(testobj):
    Ao = testobj.Ao
    y = testobj.y

    a = Ao.T @ y
    b = Ao.H @ y

    comp_mat = testobj.A.T @ y

    assert a.dtype == testobj.A.dtype
    assert b.dtype == testobj.A.dtype
    np.testing.assert_allclose(a, comp_mat, rtol=1e-4)
    np.testing.assert_allclose(a, b, rtol=5e-5)


def test_adjoint_shape(testobj):
    with pytest.raises(ValueError):
        testobj.Ao.adj(testobj.x)


def test_rows_cols(testobj):
    assert testobj.Ao.rows == 8
    assert testobj.Ao.cols == 16
    assert testobj.Ao.T.rows == 16
    assert testobj.Ao.T.cols == 8


def test_adj_fn(testobj):
    A = testobj.A
    Ao = AbsMatOp(A, adj_fn=lambda y: A.T @ y)
    np.testing.assert_allclose(Ao.adj(testobj.y), A.T @ testobj.y, rtol=5e-5)
    with pytest.raises(TypeError):
        AbsMatOp(A, adj_fn=1.0)


def test_valid_adjoint(testobj):
    adjoint_test(testobj.Ao, rtol=1e-4 if testobj.dtype == np.float32 else 1e-7)
    # the transpose of a different operator is not an adjoint
    assert not linop.valid_adjoint(testobj.Ao, testobj.Bo.T, eps=1e-4)
    err = linop.valid_adjoint(testobj.Ao, testobj.Ao.T, eps=None)
    assert isinstance(err, float)


def test_valid_adjoint_shape(testobj):
    with pytest.raises(ValueError):
        linop.valid_adjoint(testobj.Ao, testobj.Ao.T, x=testobj.y)
    with pytest.raises(ValueError):
        linop.valid_adjoint(testobj.Ao, testobj.Ao.T, y=testobj.x)


def test_jit():
    A, _ = randn((6, 4), seed=3)
    x, _ = randn((4,), seed=4)
    Ao = AbsMatOp(A)
    Ao.jit()
    np.testing.assert_allclose(Ao @ x, A @ x, rtol=1e-10)
    np.testing.assert_allclose(Ao.adj(A @ x), A.T @ A @ x, rtol=1e-10)


def test_no_arithmetic(testobj):
    # operators combine only by composition
    with pytest.raises(TypeError):
        testobj.Ao + testobj.Bo
    with pytest.raises(TypeError):
        2.0 * testobj.Ao
