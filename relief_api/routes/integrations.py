# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
External integration endpoints: ID verification, municipal sync and call logs.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag

from ..models.requests import IntegrationLogQuery, MunicipalSyncRequest, VerifyIdRequest
from ..models.responses import ErrorResponse, ValidationErrorResponse
from ..middleware.auth import require_roles, get_user_context

integrations_tag = Tag(name="Integrations", description="External system integrations")
integrations_bp = APIBlueprint(
    'integrations',
    __name__,
    url_prefix='/api/integrations',
    abp_tags=[integrations_tag]
)

ERROR_RESPONSES = {
    401: ErrorResponse,
    403: ErrorResponse,
    404: ErrorResponse,
    422: ValidationErrorResponse,
}


@integrations_bp.post('/verify-id', responses=ERROR_RESPONSES)
@require_roles('integrations:use')
def verify_id(body: VerifyIdRequest):
    """Verify a national ID number with the ID verification service."""
    return jsonify(current_app.integration_service.verify_id(body.id_number, get_user_context()))


@integrations_bp.post('/municipal-sync', responses=ERROR_RESPONSES)
@require_roles('integrations:use')
def municipal_sync(body: MunicipalSyncRequest):
    """Push an application to the municipal system."""
    return jsonify(current_app.integration_service.sync_municipal(body.application_id, get_user_context()))


@integrations_bp.get('/logs', responses=ERROR_RESPONSES)
@require_roles('integrations:use')
def list_logs(query: IntegrationLogQuery):
    """Most recent integration calls, newest first."""
    logs = current_app.integration_service.list_logs(query)
    return jsonify(current_app.hal_formatter.format_collection(
        logs,
        len(logs),
        1,
        query.limit,
        '/api/integrations/logs',
        query.model_dump(by_alias=True, exclude={'limit'}, exclude_none=True)
    ))
