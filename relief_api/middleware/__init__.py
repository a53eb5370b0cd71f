# SPDX-License-Identifier: Apache-2.0

"""
Middleware package - authentication, authorization, error handling, CORS,
rate limiting and request validation for the Flask application.
"""
