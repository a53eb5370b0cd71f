# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Reporting endpoints: dashboard, reports, statistics and data export.
"""

from flask import jsonify, current_app, Response
from flask_openapi3 import APIBlueprint, Tag

from ..models.requests import ApplicationReportQuery, BenefitReportQuery, ExportQuery
from ..models.responses import ErrorResponse, ValidationErrorResponse
from ..middleware.auth import require_auth, require_roles, get_user_context

reports_tag = Tag(name="Reports", description="Program reporting and exports")
reports_bp = APIBlueprint(
    'reports',
    __name__,
    url_prefix='/api/reports',
    abp_tags=[reports_tag]
)

ERROR_RESPONSES = {
    401: ErrorResponse,
    403: ErrorResponse,
    422: ValidationErrorResponse,
}


@reports_bp.get('/dashboard', responses=ERROR_RESPONSES)
@require_auth
def dashboard():
    """Application and benefit counters with month-on-month growth."""
    return jsonify(current_app.hal_formatter.format_resource(
        current_app.report_service.dashboard(), '/api/reports/dashboard'
    ))


@reports_bp.get('/applications', responses=ERROR_RESPONSES)
@require_auth
def application_report(query: ApplicationReportQuery):
    """Applications by date range, status and municipality."""
    rows = current_app.report_service.application_report(query)
    return jsonify(current_app.hal_formatter.format_collection(
        rows,
        len(rows),
        1,
        max(len(rows), 1),
        '/api/reports/applications',
        query.model_dump(by_alias=True, exclude_none=True, mode='json')
    ))


@reports_bp.get('/benefits', responses=ERROR_RESPONSES)
@require_auth
def benefit_report(query: BenefitReportQuery):
    """Benefits by start date, status and type, with the total amount."""
    return jsonify(current_app.report_service.benefit_report(query))


@reports_bp.get('/statistics', responses=ERROR_RESPONSES)
@require_auth
def statistics():
    """Status and benefit-type distributions and a twelve-month trend."""
    return jsonify(current_app.report_service.statistics())


@reports_bp.get('/export', responses=ERROR_RESPONSES)
@require_roles('reports:export')
def export_data(query: ExportQuery):
    """Export all applications as JSON or CSV."""
    applications = current_app.report_service.export_applications()
    current_app.audit_service.log_action(
        "DATA_EXPORTED",
        "Application",
        "*",
        get_user_context(),
        changes={"type": query.type, "format": query.format, "count": len(applications)}
    )

    if query.format == 'csv':
        return Response(
            current_app.report_service.to_csv(applications),
            mimetype='text/csv',
            headers={'Content-Disposition': 'attachment; filename=applications.csv'}
        )
    return jsonify(applications)
