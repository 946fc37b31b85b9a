import numpy as np

import pytest

import nibabel as nb
from svreg import cli
from svreg.io import load_matrix
from svreg.lie import is_rigid


def blob(center, shape=(16, 16, 16), sigma=(2.5, 3.0, 2.0)):
    i, j, k = np.meshgrid(*[np.arange(n, dtype=float) for n in shape], indexing="ij")
    r2 = sum(((c - c0) / s) ** 2 for c, c0, s in zip((i, j, k), center, sigma))
    return np.exp(-r2 / 2)


def save(path, data, affine=None):
    nb.save(nb.Nifti1Image(data.astype(np.float32), np.eye(4) if affine is None else affine), str(path))
    return str(path)


@pytest.fixture
def images(tmp_path):
    target = save(tmp_path / "target.nii", blob((7.0, 8.0, 8.0)))
    moving = save(tmp_path / "moving.nii", blob((8.0, 8.0, 8.0)))
    return tmp_path, target, moving


def test_register(images):
    tmp_path, target, moving = images
    out = tmp_path / "T.txt"
    assert cli.main(["register", target, moving, str(out)]) == 0
    T = load_matrix(out)
    np.testing.assert_allclose(T[:3, 3], [1.0, 0.0, 0.0], atol=2e-2)
    np.testing.assert_allclose(T[:3, :3], np.eye(3), atol=1e-2)


def test_register_options(images):
    tmp_path, target, moving = images
    mask = np.zeros((16, 16, 16), dtype=np.uint8)
    mask[2:14, 2:14, 2:14] = 1
    mask_path = save(tmp_path / "mask.nii", mask)
    init = tmp_path / "init.txt"
    T0 = np.eye(4)
    T0[0, 3] = 0.8
    np.savetxt(str(init), T0)
    config = tmp_path / "config.yaml"
    config.write_text("registration:\n  ftol: 1.0e-10\n")
    log_file = tmp_path / "log.txt"
    out = tmp_path / "T.txt"
    status = cli.main(
        [
            "register",
            target,
            moving,
            str(out),
            "-mask",
            mask_path,
            "-init",
            str(init),
            "-maxiter",
            "100",
            "-config",
            str(config),
            "-loglevel",
            "DEBUG",
            "-logfile",
            str(log_file),
        ]
    )
    assert status == 0
    np.testing.assert_allclose(load_matrix(out)[:3, 3], [1.0, 0.0, 0.0], atol=2e-2)
    assert "Optimum" in log_file.read_text()


def test_register_no_convergence(images):
    tmp_path, target, moving = images
    out = tmp_path / "T.txt"
    assert cli.main(["register", target, moving, str(out), "-maxiter", "1"]) == 0
    assert out.exists()


@pytest.mark.parametrize("maxiter", ["0", "-4"])
def test_register_invalid_maxiter(images, maxiter):
    tmp_path, target, moving = images
    out = tmp_path / "T.txt"
    assert cli.main(["register", target, moving, str(out), "-maxiter", maxiter]) == 1
    assert not out.exists()


def test_register_mask_mismatch(images):
    tmp_path, target, moving = images
    mask_path = save(tmp_path / "mask.nii", np.ones((16, 16, 15)))
    out = tmp_path / "T.txt"
    assert cli.main(["register", target, moving, str(out), "-mask", mask_path]) == 1
    assert not out.exists()


def test_register_missing_file(images):
    tmp_path, target, _ = images
    out = tmp_path / "T.txt"
    assert cli.main(["register", target, str(tmp_path / "none.nii"), str(out)]) == 1
    assert not out.exists()


def test_register_invalid_init(images):
    tmp_path, target, moving = images
    init = tmp_path / "init.txt"
    np.savetxt(str(init), 2 * np.eye(4))
    out = tmp_path / "T.txt"
    assert cli.main(["register", target, moving, str(out), "-init", str(init)]) == 1
    assert not out.exists()


def test_register_rounded_init(images):
    tmp_path, target, moving = images
    init = tmp_path / "init.txt"
    c, s = np.cos(0.1), np.sin(0.1)
    T0 = np.array([[c, -s, 0.0, 0.8], [s, c, 0.0, 0.0], [0.0, 0.0, 1.0, 0.0], [0.0, 0.0, 0.0, 1.0]])
    np.savetxt(str(init), T0, fmt="%.4f")
    assert not is_rigid(load_matrix(init))
    out = tmp_path / "T.txt"
    assert cli.main(["register", target, moving, str(out), "-init", str(init)]) == 0
    np.testing.assert_allclose(load_matrix(out)[:3, 3], [1.0, 0.0, 0.0], atol=2e-2)


def directions(n):
    i = np.arange(n) + 0.5
    z = 1.0 - 2.0 * i / n
    r = np.sqrt(1.0 - z**2)
    phi = np.pi * (1.0 + np.sqrt(5.0)) * i
    return np.stack((r * np.cos(phi), r * np.sin(phi), z), axis=1)


def test_recon(tmp_path):
    affine = np.diag([2.0, 2.0, 2.0, 1.0])
    data = 1.0 + np.random.RandomState(3).rand(3, 3, 2, 10)
    dwi = save(tmp_path / "dwi.nii", data, affine)
    grad = tmp_path / "grad.txt"
    np.savetxt(str(grad), np.concatenate((directions(10), 1000.0 * np.ones((10, 1))), axis=1))
    out = tmp_path / "coef.nii"
    assert cli.main(["recon", dwi, str(grad), str(out), "-lmax", "2", "-maxiter", "50"]) == 0
    img = nb.load(str(out))
    assert img.shape == (3, 3, 2, 6)
    np.testing.assert_allclose(img.affine, affine)


def test_recon_grad_mismatch(tmp_path):
    dwi = save(tmp_path / "dwi.nii", np.ones((3, 3, 2, 10)))
    grad = tmp_path / "grad.txt"
    np.savetxt(str(grad), directions(9))
    out = tmp_path / "coef.nii"
    assert cli.main(["recon", dwi, str(grad), str(out)]) == 1
    assert not out.exists()


def test_recon_3d_image(tmp_path):
    dwi = save(tmp_path / "dwi.nii", np.ones((3, 3, 2)))
    grad = tmp_path / "grad.txt"
    np.savetxt(str(grad), directions(1))
    out = tmp_path / "coef.nii"
    assert cli.main(["recon", dwi, str(grad), str(out)]) == 1


def test_missing_command():
    with pytest.raises(SystemExit):
        cli.main([])
