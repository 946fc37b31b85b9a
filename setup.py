"""SVREG package configuration."""

import importlib.util
import os
import os.path
import site
import sys

from setuptools import find_namespace_packages, setup

# Import module svreg._version without executing __init__.py
spec = importlib.util.spec_from_file_location("_version", os.path.join("svreg", "_version.py"))
module = importlib.util.module_from_spec(spec)
sys.modules["_version"] = module
spec.loader.exec_module(module)
from _version import package_version

name = "svreg"
version = package_version()
# Add argument exclude=["test", "test.*"] to exclude test subpackage
packages = find_namespace_packages(where="svreg")
packages = ["svreg"] + [f"svreg.{m}" for m in packages]


longdesc = """
SVREG is a Python package for slice-to-volume registration and spherical harmonic reconstruction of diffusion weighted MRI. It provides rigid registration of volumes by Levenberg-Marquardt minimization over the SE(3) twist parameters, and a linear reconstruction operator mapping spherical harmonic coefficients to acquired slices, with motion-dependent angular sampling. SVREG is built on top of JAX, which provides automatic differentiation and GPU acceleration.
"""

# Set install_requires from requirements.txt file
with open("requirements.txt") as f:
    lines = f.readlines()
install_requires = [line.strip() for line in lines]

python_requires = ">=3.8"
tests_require = ["pytest", "pytest-runner"]

extra_require_files = ["dev_requirements.txt"]
extras_require = {"tests": tests_require}
for require_file in extra_require_files:
    extras_label = os.path.basename(require_file).partition("_")[0]
    with open(require_file) as f:
        lines = f.readlines()
    extras_require[extras_label] = [line.strip() for line in lines if line[0:2] != "-r"]

# PEP517 workaround, see https://www.scivision.dev/python-pip-devel-user-install/
site.ENABLE_USER_SITE = True

setup(
    name=name,
    version=version,
    description="Slice-to-volume registration and spherical harmonic "
    "reconstruction for diffusion MRI",
    long_description=longdesc,
    keywords=[
        "Diffusion MRI",
        "Motion Correction",
        "Image Registration",
        "Slice-to-Volume Registration",
        "Spherical Harmonics",
        "Lie Groups",
        "Levenberg-Marquardt",
    ],
    platforms="Any",
    license="BSD-3-Clause",
    author="SVREG Developers",
    packages=packages,
    include_package_data=True,
    python_requires=python_requires,
    install_requires=install_requires,
    extras_require=extras_require,
    entry_points={"console_scripts": ["svreg = svreg.cli:main"]},
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Topic :: Scientific/Engineering :: Medical Science Apps.",
        "Topic :: Scientific/Engineering :: Mathematics",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    zip_safe=False,
)
