# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Health endpoint reporting dependency status and system metrics.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
import logging

logger = logging.getLogger(__name__)

health_tag = Tag(name="Health", description="System health and status")
health_bp = APIBlueprint(
    'health',
    __name__,
    url_prefix='/api/health',
    abp_tags=[health_tag]
)


@health_bp.get('')
def health_check():
    """
    Health check with dependency monitoring.

    Returns 503 when MongoDB is unreachable; a missing or failing Redis only
    degrades the service.
    """
    health_data = current_app.health_service.get_comprehensive_health()

    status_code = 503 if health_data["status"] == "unhealthy" else 200
    if status_code != 200:
        logger.warning("Health check reports unhealthy service", extra={"dependencies": health_data["dependencies"]})

    return jsonify(current_app.hal_formatter.format_resource(health_data, '/api/health')), status_code
