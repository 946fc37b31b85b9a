# -*- coding: utf-8 -*-
# Copyright (C) 2021-2025 by SVREG Developers
# All rights reserved. BSD 3-clause License.
# This file is part of the SVREG package. Details of the copyright and
# user license can be found in the 'LICENSE' file distributed with the
# package.

"""Configuration of registration and reconstruction.

Configuration files are YAML documents with optional ``registration``
and ``recon`` sections, e.g.

::

   registration:
     maxiter: 200
     ftol: 1.0e-10
   recon:
     lmax: 6
     tol: 1.0e-6

Keys that are absent take the dataclass defaults.
"""

from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from svreg.log import get_logger

logger = get_logger("config")


@dataclass
class RegistrationConfig:
    """Levenberg-Marquardt registration settings."""

    #: Maximum number of cost function evaluations (``None``: solver default)
    maxiter: Optional[int] = None
    #: Relative reduction of the cost below which iteration stops
    ftol: float = 1e-8
    #: Relative change of the parameters below which iteration stops
    xtol: float = 1e-8
    #: Gradient orthogonality below which iteration stops
    gtol: float = 1e-8

    def __post_init__(self):
        if self.maxiter is not None and (
            isinstance(self.maxiter, bool) or not isinstance(self.maxiter, int) or self.maxiter < 1
        ):
            raise ValueError(f"maxiter must be a positive integer; got {self.maxiter}")
        for name in ("ftol", "xtol", "gtol"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative; got {getattr(self, name)}")


@dataclass
class ReconConfig:
    """Spherical harmonic reconstruction settings."""

    #: Maximum spherical harmonic order
    lmax: int = 8
    #: Maximum number of CG iterations
    maxiter: int = 100
    #: Relative residual stopping tolerance of CG
    tol: float = 1e-5

    def __post_init__(self):
        if self.lmax < 0:
            raise ValueError(f"lmax must be non-negative; got {self.lmax}")
        if self.maxiter < 1:
            raise ValueError(f"maxiter must be a positive integer; got {self.maxiter}")


@dataclass
class Config:
    """Complete configuration."""

    registration: RegistrationConfig = field(default_factory=RegistrationConfig)
    recon: ReconConfig = field(default_factory=ReconConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _section(cls, values: Optional[Dict[str, Any]], name: str):
    if values is None:
        return cls()
    if not isinstance(values, dict):
        raise ValueError(f"Configuration section '{name}' must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = set(values) - known
    if unknown:
        raise ValueError(
            f"Unknown key(s) {sorted(unknown)} in configuration section '{name}'; "
            f"valid keys are {sorted(known)}"
        )
    return cls(**values)


def config_from_dict(data: Optional[Dict[str, Any]]) -> Config:
    """Construct a :class:`Config` from a (parsed YAML) dictionary.

    Raises:
        ValueError: If the dictionary contains unknown sections or keys,
           or invalid values.
    """
    data = data or {}
    if not isinstance(data, dict):
        raise ValueError("Configuration must be a mapping")
    unknown = set(data) - {"registration", "recon"}
    if unknown:
        raise ValueError(f"Unknown configuration section(s) {sorted(unknown)}")
    return Config(
        registration=_section(RegistrationConfig, data.get("registration"), "registration"),
        recon=_section(ReconConfig, data.get("recon"), "recon"),
    )


def load_config(path: Union[str, Path]) -> Config:
    """Load a YAML configuration file.

    Args:
        path: Path of the configuration file.

    Returns:
        The configuration, with defaults for absent keys.
    """
    path = Path(path)
    logger.debug(f"Loading configuration from {path}")
    with open(path) as f:
        data = yaml.safe_load(f)
    return config_from_dict(data)


def override(config, **kwargs):
    """Return a copy of a configuration section with the non-``None``
    keyword arguments replacing the corresponding fields."""
    updates = {k: v for k, v in kwargs.items() if v is not None}
    return replace(config, **updates)
