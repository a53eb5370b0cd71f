# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Benefit endpoints for benefits granted to approved applications.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag

from ..domain.authorization import check_role
from ..models.requests import BenefitPath, BenefitQuery, CreateBenefitRequest, UpdateBenefitRequest
from ..models.responses import ErrorResponse, ValidationErrorResponse
from ..middleware.auth import require_auth, require_roles, get_user_context

benefits_tag = Tag(name="Benefits", description="Benefits granted to approved applicants")
benefits_bp = APIBlueprint(
    'benefits',
    __name__,
    url_prefix='/api/benefits',
    abp_tags=[benefits_tag]
)

ERROR_RESPONSES = {
    400: ErrorResponse,
    401: ErrorResponse,
    403: ErrorResponse,
    404: ErrorResponse,
    422: ValidationErrorResponse,
}


def _format(benefit):
    hal = current_app.hal_formatter
    benefit_path = f"/api/benefits/{benefit['id']}"
    links = {
        'application': hal.link_builder.build_link(
            f"/api/applications/{benefit['applicationId']}", title="Application"
        ),
    }
    if check_role(get_user_context(), 'benefits:write').allowed:
        links['edit'] = hal.link_builder.build_link(
            benefit_path, method="PUT", content_type="application/json", title="Edit benefit"
        )
        links['delete'] = hal.link_builder.build_link(benefit_path, method="DELETE", title="Delete benefit")
    return hal.format_resource(benefit, benefit_path, '/api/benefits', links)


@benefits_bp.get('', responses=ERROR_RESPONSES)
@require_auth
def list_benefits(query: BenefitQuery):
    """List benefits, optionally for one application or status."""
    benefits = [_format(b) for b in current_app.benefit_service.list_benefits(query)]
    return jsonify(current_app.hal_formatter.format_collection(
        benefits,
        len(benefits),
        1,
        max(len(benefits), 1),
        '/api/benefits',
        query.model_dump(by_alias=True, exclude_none=True)
    ))


@benefits_bp.post('', responses=ERROR_RESPONSES)
@require_roles('benefits:write')
def create_benefit(body: CreateBenefitRequest):
    """Grant a benefit; the application must be approved."""
    benefit = current_app.benefit_service.create_benefit(body, get_user_context())
    return jsonify(_format(benefit)), 201


@benefits_bp.get('/<benefit_id>', responses=ERROR_RESPONSES)
@require_auth
def get_benefit(path: BenefitPath):
    """Get a benefit with a summary of its application."""
    return jsonify(_format(current_app.benefit_service.get_benefit(path.benefit_id)))


@benefits_bp.put('/<benefit_id>', responses=ERROR_RESPONSES)
@require_roles('benefits:write')
def update_benefit(path: BenefitPath, body: UpdateBenefitRequest):
    """Update a benefit's amount, dates, status or payment details."""
    benefit = current_app.benefit_service.update_benefit(path.benefit_id, body, get_user_context())
    return jsonify(_format(benefit))


@benefits_bp.delete('/<benefit_id>', responses=ERROR_RESPONSES)
@require_roles('benefits:write')
def delete_benefit(path: BenefitPath):
    """Delete a benefit."""
    current_app.benefit_service.delete_benefit(path.benefit_id, get_user_context())
    return '', 204
