# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Relief360 - case-management API for municipal indigent support programmes.
"""

__version__ = "1.0.0"
