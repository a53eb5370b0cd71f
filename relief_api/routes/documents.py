# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Supporting document endpoints: upload, download and verification.
"""

from flask import jsonify, current_app, request, send_file
from flask_openapi3 import APIBlueprint, Tag

from ..models.requests import DocumentPath, DocumentQuery, UploadDocumentRequest, VerifyDocumentRequest
from ..models.responses import ErrorResponse, ValidationErrorResponse
from ..middleware.auth import require_auth, require_roles, get_user_context
from ..middleware.validation import validate_form

documents_tag = Tag(name="Documents", description="Supporting documents and verification")
documents_bp = APIBlueprint(
    'documents',
    __name__,
    url_prefix='/api/documents',
    abp_tags=[documents_tag]
)

ERROR_RESPONSES = {
    401: ErrorResponse,
    403: ErrorResponse,
    404: ErrorResponse,
    422: ValidationErrorResponse,
}


def _format(document):
    hal = current_app.hal_formatter
    document_path = f"/api/documents/{document['id']}"
    links = {
        'download': hal.link_builder.build_link(f"{document_path}/download", title="Download file"),
        'application': hal.link_builder.build_link(
            f"/api/applications/{document['applicationId']}", title="Application"
        ),
    }
    return hal.format_resource(document, document_path, '/api/documents', links)


@documents_bp.get('', responses=ERROR_RESPONSES)
@require_auth
def list_documents(query: DocumentQuery):
    """List documents, optionally for one application or document type."""
    documents = [_format(d) for d in current_app.document_service.list_documents(query)]
    return jsonify(current_app.hal_formatter.format_collection(
        documents,
        len(documents),
        1,
        max(len(documents), 1),
        '/api/documents',
        query.model_dump(by_alias=True, exclude_none=True)
    ))


@documents_bp.post('', responses=ERROR_RESPONSES)
@require_roles('documents:upload')
def upload_document():
    """
    Upload a supporting document.

    Multipart form with `file`, `applicationId` and `documentType`. Accepts
    images, PDFs and Word documents up to the configured size limit.
    """
    form = validate_form(UploadDocumentRequest)
    document = current_app.document_service.upload_document(
        request.files.get('file'), form, get_user_context()
    )
    return jsonify(_format(document)), 201


@documents_bp.get('/<document_id>', responses=ERROR_RESPONSES)
@require_auth
def get_document(path: DocumentPath):
    """Get a document record."""
    return jsonify(_format(current_app.document_service.get_document(path.document_id)))


@documents_bp.get('/<document_id>/download', responses=ERROR_RESPONSES)
@require_auth
def download_document(path: DocumentPath):
    """Download the stored file under its original name."""
    document, file_path = current_app.document_service.resolve_download(path.document_id)
    return send_file(
        file_path,
        mimetype=document.file_type,
        as_attachment=True,
        download_name=document.original_name
    )


@documents_bp.put('/<document_id>/verify', responses=ERROR_RESPONSES)
@require_roles('documents:verify')
def verify_document(path: DocumentPath, body: VerifyDocumentRequest):
    """Mark a document verified or clear the verification."""
    document = current_app.document_service.verify_document(path.document_id, body.verified, get_user_context())
    return jsonify(_format(document))


@documents_bp.delete('/<document_id>', responses=ERROR_RESPONSES)
@require_roles('documents:delete')
def delete_document(path: DocumentPath):
    """Delete a document and its stored file."""
    current_app.document_service.delete_document(path.document_id, get_user_context())
    return '', 204
