"""
Configure pytest.
"""

import numpy as np

import pytest

import jax.numpy as jnp


@pytest.fixture(autouse=True)
def add_modules(doctest_namespace):
    """Add common modules for use in docstring examples.

    Allow `np` and `jnp` to be used in docstring examples without
    explicitly importing.
    """
    doctest_namespace["np"] = np
    doctest_namespace["jnp"] = jnp
