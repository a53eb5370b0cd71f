# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Application case endpoints.

Capture, search and edit applications, move them through review, run the
means test, and manage household members.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag

from ..models.requests import (
    ApplicationPath,
    ApplicationQuery,
    CreateApplicationRequest,
    UpdateApplicationRequest,
    ReviewApplicationRequest,
    HouseholdMemberPath,
    CreateHouseholdMemberRequest,
)
from ..models.responses import ErrorResponse, ValidationErrorResponse
from ..middleware.auth import require_auth, require_roles, get_user_context

applications_tag = Tag(name="Applications", description="Benefit application case management")
applications_bp = APIBlueprint(
    'applications',
    __name__,
    url_prefix='/api/applications',
    abp_tags=[applications_tag]
)

ERROR_RESPONSES = {
    400: ErrorResponse,
    401: ErrorResponse,
    403: ErrorResponse,
    404: ErrorResponse,
    422: ValidationErrorResponse,
}


def _format(application):
    return current_app.hal_formatter.format_application(application, get_user_context())


@applications_bp.get('', responses=ERROR_RESPONSES)
@require_auth
def list_applications(query: ApplicationQuery):
    """
    List applications.

    Filter by status and search application number, ID number and names
    (case-insensitive). Sorted by application date, newest first, unless
    another order is requested.
    """
    result = current_app.application_service.list_applications(query)
    items = [_format(item) for item in result.items]

    response = current_app.hal_formatter.format_collection(
        items,
        result.total,
        result.page,
        result.page_size,
        '/api/applications',
        query.model_dump(by_alias=True, exclude={'page', 'limit'}, exclude_none=True)
    )
    return jsonify(response)


@applications_bp.post('', responses=ERROR_RESPONSES)
@require_auth
def create_application(body: CreateApplicationRequest):
    """Capture a new application in PENDING status."""
    application = current_app.application_service.create_application(body, get_user_context())
    return jsonify(_format(application)), 201


@applications_bp.get('/<application_id>', responses=ERROR_RESPONSES)
@require_auth
def get_application(path: ApplicationPath):
    """Get an application with its household members, documents and benefits."""
    application = current_app.application_service.get_application(path.application_id)
    return jsonify(_format(application))


@applications_bp.put('/<application_id>', responses=ERROR_RESPONSES)
@require_roles('applications:update')
def update_application(path: ApplicationPath, body: UpdateApplicationRequest):
    """
    Edit application fields.

    Approved applications can only be edited by administrators.
    """
    application = current_app.application_service.update_application(
        path.application_id, body, get_user_context()
    )
    return jsonify(_format(application))


@applications_bp.delete('/<application_id>', responses=ERROR_RESPONSES)
@require_roles('applications:delete')
def delete_application(path: ApplicationPath):
    """Delete an application and its household members."""
    current_app.application_service.delete_application(path.application_id, get_user_context())
    return '', 204


@applications_bp.post('/<application_id>/submit', responses=ERROR_RESPONSES)
@require_roles('applications:submit')
def submit_application(path: ApplicationPath):
    """
    Submit a pending application for review.

    Requires a verified ID document and a verified proof of income.
    """
    application = current_app.application_service.submit_for_review(path.application_id, get_user_context())
    return jsonify(_format(application))


@applications_bp.post('/<application_id>/review', responses=ERROR_RESPONSES)
@require_roles('applications:review')
def review_application(path: ApplicationPath, body: ReviewApplicationRequest):
    """Approve or reject an application under review."""
    application = current_app.application_service.review_application(
        path.application_id, body, get_user_context()
    )
    return jsonify(_format(application))


@applications_bp.post('/<application_id>/means-test', responses=ERROR_RESPONSES)
@require_roles('applications:means_test')
def run_means_test(path: ApplicationPath):
    """Run the means test and store the score and outcome."""
    application, result = current_app.application_service.run_means_test(
        path.application_id, get_user_context()
    )

    response = current_app.hal_formatter.format_resource(
        {
            "applicationId": application["id"],
            "score": result.score,
            "status": result.status.value,
            "details": result.details,
        },
        f"/api/applications/{application['id']}/means-test",
        None,
        {"application": current_app.hal_formatter.link_builder.build_link(
            f"/api/applications/{application['id']}", title="Application"
        )}
    )
    return jsonify(response)


# Household members

@applications_bp.get('/<application_id>/household-members', responses=ERROR_RESPONSES)
@require_auth
def list_household_members(path: ApplicationPath):
    """List the household members of an application."""
    members = current_app.application_service.list_household_members(path.application_id)
    collection_path = f"/api/applications/{path.application_id}/household-members"
    items = [
        current_app.hal_formatter.format_resource(member, f"{collection_path}/{member['id']}")
        for member in members
    ]
    return jsonify(current_app.hal_formatter.format_collection(
        items, len(items), 1, max(len(items), 1), collection_path
    ))


@applications_bp.post('/<application_id>/household-members', responses=ERROR_RESPONSES)
@require_roles('household_members:write')
def add_household_member(path: ApplicationPath, body: CreateHouseholdMemberRequest):
    """Add a household member whose income counts toward the household total."""
    member = current_app.application_service.add_household_member(
        path.application_id, body, get_user_context()
    )
    collection_path = f"/api/applications/{path.application_id}/household-members"
    return jsonify(current_app.hal_formatter.format_resource(
        member, f"{collection_path}/{member['id']}", collection_path
    )), 201


@applications_bp.delete('/<application_id>/household-members/<member_id>', responses=ERROR_RESPONSES)
@require_roles('household_members:write')
def remove_household_member(path: HouseholdMemberPath):
    """Remove a household member."""
    current_app.application_service.remove_household_member(
        path.application_id, path.member_id, get_user_context()
    )
    return '', 204
