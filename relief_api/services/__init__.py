# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - Storage, integrations and case operations.
"""

from .mongodb import MongoDBService, PaginationResult

__all__ = [
    "MongoDBService",
    "PaginationResult",
]
