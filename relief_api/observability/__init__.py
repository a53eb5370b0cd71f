# SPDX-License-Identifier: Apache-2.0

"""
Observability package - OpenTelemetry tracing and structured request logging.
"""
