# -*- coding: utf-8 -*-
# Copyright (C) 2020-2024 by SVREG Developers
# All rights reserved. BSD 3-clause License.
# This file is part of the SVREG package. Details of the copyright and
# user license can be found in the 'LICENSE' file distributed with the
# package.

"""Support functions for determining the package version."""

import os
import re
from ast import parse
from subprocess import PIPE, Popen
from typing import Any, Optional, Tuple, Union


def root_init_path() -> str:  # pragma: no cover
    """Get the path to the package root `__init__.py` file.

    Returns:
       Path to the package root `__init__.py` file.
    """
    return os.path.join(os.path.dirname(__file__), "__init__.py")


def variable_assign_value(path: str, var: str) -> Any:
    """Get variable initialization value from a Python file.

    Args:
        path: Path of Python file.
        var: Name of variable.

    Returns:
        Value to which variable `var` is initialized.

    Raises:
        RuntimeError: If the statement initializing variable `var` is not
           found.
    """
    with open(path) as f:
        try:
            value_obj = parse(next(filter(lambda line: line.startswith(var), f))).body[0].value  # type: ignore
            value = value_obj.value  # type: ignore
        except StopIteration:
            raise RuntimeError(f"Could not find initialization of variable {var}")
    return value


def current_git_hash() -> Optional[str]:  # nosec  pragma: no cover
    """Get current short git hash.

    Returns:
       Short git hash of current commit, or ``None`` if no git repo
       found or git is not available.
    """
    try:
        process = Popen(
            ["git", "rev-parse", "--short", "HEAD"],
            shell=False,
            stdout=PIPE,
            stderr=PIPE,
            cwd=os.path.dirname(root_init_path()),
        )
    except OSError:
        return None
    git_hash: Optional[str] = process.communicate()[0].strip().decode("utf-8")
    if git_hash == "":
        git_hash = None
    return git_hash


def package_version(split: bool = False) -> Union[str, Tuple[str, str]]:  # pragma: no cover
    """Get current package version.

    Development versions (those that are not purely numeric) are
    extended with the short git hash of the current commit.

    Args:
        split: Flag indicating whether to return the package version as a
           single string or split into a tuple of components.

    Returns:
        Package version string or tuple of strings.
    """
    version = variable_assign_value(root_init_path(), "__version__")
    if re.match(r"^[0-9\.]+(post[0-9]+)?$", version):
        git_hash = None
    else:
        git_hash = current_git_hash()
    git_hash = "+" + git_hash if git_hash else ""
    if split:
        return (version, git_hash)
    return version + git_hash
