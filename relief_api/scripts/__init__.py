# SPDX-License-Identifier: Apache-2.0

"""
Operational scripts: index creation and development seed data.
"""
