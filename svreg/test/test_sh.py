import numpy as np

import pytest

from svreg import sh


def fibonacci_sphere(n):
    i = np.arange(n) + 0.5
    z = 1.0 - 2.0 * i / n
    r = np.sqrt(1.0 - z**2)
    phi = np.pi * (1.0 + np.sqrt(5.0)) * i
    return np.stack((r * np.cos(phi), r * np.sin(phi), z), axis=1)


@pytest.mark.parametrize("lmax, n", [(0, 1), (2, 6), (4, 15), (8, 45), (1, 3), (3, 10)])
def test_nforl(lmax, n):
    assert sh.nforl(lmax) == n


def test_nforl_negative():
    with pytest.raises(ValueError):
        sh.nforl(-1)
    with pytest.raises(ValueError):
        sh.delta(np.array([0.0, 0.0, 1.0]), -2)


def test_index():
    assert sh.index(0, 0) == 0
    assert sh.index(2, -2) == 1
    assert sh.index(2, 0) == 3
    assert sh.index(2, 2) == 5
    assert sh.index(4, -4) == 6
    assert sh.index(8, 8) == sh.nforl(8) - 1


def test_delta_low_order():
    # direction at polar angle pi/4 in the xz plane
    d = sh.delta(np.array([1.0, 0.0, 1.0]), 2)
    np.testing.assert_allclose(d[sh.index(0, 0)], 1.0 / np.sqrt(4 * np.pi))
    np.testing.assert_allclose(d[sh.index(2, 0)], np.sqrt(5 / (4 * np.pi)) / 4)
    # Condon-Shortley phase
    np.testing.assert_allclose(d[sh.index(2, 1)], -np.sqrt(15 / (4 * np.pi)) / 2)
    np.testing.assert_allclose(d[sh.index(2, 2)], np.sqrt(15 / np.pi) / 8)
    np.testing.assert_allclose(d[sh.index(2, -1)], 0.0, atol=1e-15)
    np.testing.assert_allclose(d[sh.index(2, -2)], 0.0, atol=1e-15)


def test_delta_sine_terms():
    # y axis: phi = pi/2, theta = pi/2
    d = sh.delta(np.array([0.0, 1.0, 0.0]), 2)
    np.testing.assert_allclose(d[sh.index(2, -2)], 0.0, atol=1e-15)
    np.testing.assert_allclose(d[sh.index(2, 2)], -np.sqrt(15 / np.pi) / 4)
    np.testing.assert_allclose(d[sh.index(2, -1)], 0.0, atol=1e-15)


def test_delta_z_axis():
    d = sh.delta(np.array([0.0, 0.0, 1.0]), 4)
    expected = np.zeros(15)
    expected[sh.index(0, 0)] = 1.0 / np.sqrt(4 * np.pi)
    expected[sh.index(2, 0)] = np.sqrt(5 / (4 * np.pi))
    expected[sh.index(4, 0)] = np.sqrt(9 / (4 * np.pi))
    np.testing.assert_allclose(d, expected, atol=1e-14)


def test_delta_normalizes():
    u = np.array([1.0, 2.0, -2.0])
    np.testing.assert_allclose(sh.delta(5.0 * u, 6), sh.delta(u / 3.0, 6), rtol=1e-12)


def test_delta_zero_direction():
    d = sh.delta(np.zeros(3), 4)
    assert np.all(np.isfinite(d))
    np.testing.assert_allclose(d[0], 1.0 / np.sqrt(4 * np.pi))
    # evaluated on the equator at zero azimuth
    np.testing.assert_allclose(d, sh.delta(np.array([1.0, 0.0, 0.0]), 4), atol=1e-15)


@pytest.mark.parametrize("lmax", [2, 4, 8])
def test_addition_theorem(lmax):
    dirs = fibonacci_sphere(20)
    Y = sh.delta(dirs, lmax)
    for l in range(0, lmax + 1, 2):
        band = Y[:, sh.index(l, -l) : sh.index(l, l) + 1]
        np.testing.assert_allclose(
            np.sum(band**2, axis=1), (2 * l + 1) / (4 * np.pi), rtol=1e-10
        )


@pytest.mark.parametrize("lmax", [2, 4, 8])
def test_orthonormal(lmax):
    # Gauss-Legendre nodes in cos(theta) and uniform azimuth integrate
    # products of basis functions exactly
    z, wz = np.polynomial.legendre.leggauss(lmax + 2)
    nphi = 2 * lmax + 4
    phi = 2 * np.pi * np.arange(nphi) / nphi
    zz, pp = np.meshgrid(z, phi, indexing="ij")
    r = np.sqrt(1.0 - zz**2)
    dirs = np.stack((r * np.cos(pp), r * np.sin(pp), zz), axis=-1).reshape(-1, 3)
    w = np.repeat(wz, nphi) * (2 * np.pi / nphi)
    Y = sh.delta(dirs, lmax)
    G = Y.T @ (w[:, None] * Y)
    np.testing.assert_allclose(G, np.eye(sh.nforl(lmax)), atol=1e-12)


def test_odd_lmax():
    dirs = fibonacci_sphere(10)
    Y3 = sh.delta(dirs, 3)
    Y2 = sh.delta(dirs, 2)
    assert Y3.shape == (10, 10)
    np.testing.assert_allclose(Y3[:, :6], Y2)
    np.testing.assert_allclose(Y3[:, 6:], 0.0)


def test_batch_shape():
    dirs = fibonacci_sphere(12).reshape(3, 4, 3)
    assert sh.delta(dirs, 4).shape == (3, 4, 15)
