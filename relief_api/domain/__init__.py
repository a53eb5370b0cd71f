# SPDX-License-Identifier: Apache-2.0

"""
Domain logic package for the Relief360 platform.

This package contains pure business logic functions with no side effects:
the means-test eligibility engine, the application state machine with its
document verification gate, and role-based authorization rules.
"""
