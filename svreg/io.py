# -*- coding: utf-8 -*-
# Copyright (C) 2021-2025 by SVREG Developers
# All rights reserved. BSD 3-clause License.
# This file is part of the SVREG package. Details of the copyright and
# user license can be found in the 'LICENSE' file distributed with the
# package.

"""Image, transform, and gradient table input and output.

Images are read and written with :mod:`nibabel`; any format it supports
can be read, and images are written as NIfTI-1. Transforms are 4x4 text
matrices, and gradient tables are text files with one row ``x y z [b]``
per volume.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np

import nibabel as nb

from svreg.log import get_logger
from svreg.typing import ArrayLike

logger = get_logger("io")

PathLike = Union[str, Path]


@dataclass
class Volume:
    """A 3D or 4D image with its voxel-to-scanner transform."""

    #: Image data of shape (nx, ny, nz) or (nx, ny, nz, nv)
    data: np.ndarray
    #: 4x4 voxel-to-scanner transform
    affine: np.ndarray = field(default_factory=lambda: np.eye(4))

    def __post_init__(self):
        self.data = np.asarray(self.data)
        self.affine = np.asarray(self.affine, dtype=np.float64)
        if self.data.ndim not in (3, 4):
            raise ValueError(f"Image must be 3- or 4-dimensional; got shape {self.data.shape}")
        if self.affine.shape != (4, 4):
            raise ValueError(f"Image affine must have shape (4, 4); got {self.affine.shape}")

    @property
    def spatial_shape(self) -> Tuple[int, int, int]:
        """Shape of the three spatial axes."""
        return tuple(self.data.shape[:3])  # type: ignore

    def first_volume(self) -> np.ndarray:
        """The 3D image, or the first volume of a 4D image."""
        if self.data.ndim == 4:
            return self.data[..., 0]
        return self.data


def load_volume(path: PathLike) -> Volume:
    """Load an image.

    Args:
        path: Image file path.

    Returns:
        The image as a float64 :class:`Volume`.
    """
    img = nb.load(str(path))
    data = img.get_fdata(dtype=np.float64)
    logger.debug(f"Loaded image {path} with shape {data.shape}")
    return Volume(data=data, affine=img.affine)


def save_volume(volume: Volume, path: PathLike, dtype=np.float32):
    """Save an image in NIfTI-1 format.

    Args:
        volume: Image to save.
        path: Output file path.
        dtype: Data type of the stored image.
    """
    img = nb.Nifti1Image(np.asarray(volume.data, dtype=dtype), volume.affine)
    nb.save(img, str(path))
    logger.debug(f"Saved image {path} with shape {volume.data.shape}")


def load_mask(path: PathLike) -> np.ndarray:
    """Load a mask image as a boolean 3D array (nonzero voxels are in
    the mask)."""
    return load_volume(path).first_volume() != 0


def check_dimensions(a: Tuple[int, ...], b: Tuple[int, ...], axes: int = 3, what: str = "Image"):
    """Check that the leading `axes` dimensions of two shapes agree.

    Raises:
        ValueError: If the dimensions differ.
    """
    if len(a) < axes or len(b) < axes or tuple(a[:axes]) != tuple(b[:axes]):
        raise ValueError(f"{what} dimensions do not match: {tuple(a)} and {tuple(b)}")


def load_matrix(path: PathLike) -> np.ndarray:
    """Load a 4x4 transform from a whitespace-delimited text file.

    Raises:
        ValueError: If the file does not hold a 4x4 matrix.
    """
    T = np.loadtxt(str(path), ndmin=2)
    if T.shape != (4, 4):
        raise ValueError(f"Transform file {path} must hold a 4x4 matrix; got shape {T.shape}")
    return T


def save_matrix(path: PathLike, T: ArrayLike):
    """Save a 4x4 transform as a whitespace-delimited text file."""
    T = np.asarray(T, dtype=np.float64)
    if T.shape != (4, 4):
        raise ValueError(f"Transform must have shape (4, 4); got {T.shape}")
    np.savetxt(str(path), T, fmt="%.10g")


def load_grad(path: PathLike, nv: Optional[int] = None) -> np.ndarray:
    """Load a gradient table.

    Args:
        path: Text file with one row ``x y z`` or ``x y z b`` per volume.
        nv: Expected number of volumes. If not ``None``, the number of
           rows is checked.

    Returns:
        Array of shape (nv, 3) or (nv, 4).

    Raises:
        ValueError: If the table has the wrong number of rows or
           columns.
    """
    grad = np.loadtxt(str(path), ndmin=2)
    if grad.shape[1] not in (3, 4):
        raise ValueError(f"Gradient table {path} must have 3 or 4 columns; got {grad.shape[1]}")
    if nv is not None and grad.shape[0] != nv:
        raise ValueError(
            f"Gradient table {path} has {grad.shape[0]} rows but the image has {nv} volumes"
        )
    return grad
