# -*- coding: utf-8 -*-
# Copyright (C) 2021-2025 by SVREG Developers
# All rights reserved. BSD 3-clause License.
# This file is part of the SVREG package. Details of the copyright and
# user license can be found in the 'LICENSE' file distributed with the
# package.

"""Operator functions and classes."""

import sys

from ._operator import Operator

__all__ = ["Operator"]

# Imported items in __all__ appear to originate in top-level operator module
for name in __all__:
    getattr(sys.modules[__name__], name).__module__ = __name__
