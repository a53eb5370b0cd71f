# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Consent endpoints for recording and revoking data-protection consent.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag

from ..models.requests import ConsentPath, ConsentQuery, CreateConsentRequest
from ..models.responses import ErrorResponse, ValidationErrorResponse
from ..middleware.auth import require_auth, get_user_context

consent_tag = Tag(name="Consent", description="Data-protection consent records")
consent_bp = APIBlueprint(
    'consent',
    __name__,
    url_prefix='/api/consent',
    abp_tags=[consent_tag]
)

ERROR_RESPONSES = {
    401: ErrorResponse,
    404: ErrorResponse,
    422: ValidationErrorResponse,
}


def _format(record):
    hal = current_app.hal_formatter
    record_path = f"/api/consent/{record['id']}"
    links = {}
    if record['granted']:
        links['revoke'] = hal.link_builder.build_action_link(record_path, "revoke", method="PUT", title="Revoke consent")
    return hal.format_resource(record, record_path, '/api/consent', links)


@consent_bp.get('', responses=ERROR_RESPONSES)
@require_auth
def list_consents(query: ConsentQuery):
    """List consent records, optionally for one application or user."""
    records = [_format(r) for r in current_app.consent_service.list_consents(query)]
    return jsonify(current_app.hal_formatter.format_collection(
        records,
        len(records),
        1,
        max(len(records), 1),
        '/api/consent',
        query.model_dump(by_alias=True, exclude_none=True)
    ))


@consent_bp.post('', responses=ERROR_RESPONSES)
@require_auth
def create_consent(body: CreateConsentRequest):
    """Record consent captured by the caller."""
    record = current_app.consent_service.create_consent(body, get_user_context())
    return jsonify(_format(record)), 201


@consent_bp.get('/<consent_id>', responses=ERROR_RESPONSES)
@require_auth
def get_consent(path: ConsentPath):
    """Get a consent record."""
    return jsonify(_format(current_app.consent_service.get_consent(path.consent_id)))


@consent_bp.put('/<consent_id>/revoke', responses=ERROR_RESPONSES)
@require_auth
def revoke_consent(path: ConsentPath):
    """Revoke consent; the record is kept with its revocation time."""
    record = current_app.consent_service.revoke_consent(path.consent_id, get_user_context())
    return jsonify(_format(record))
