# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Document service for supporting-document uploads and verification.
"""

import os
import uuid
import logging
from typing import Any, Dict, List, Optional, Tuple
from pymongo import DESCENDING
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename
from opentelemetry import trace

from ..middleware.error_handler import NotFoundException, ValidationException
from ..models.base import utcnow
from ..models.entities import Document, UserContext
from ..models.enums import DocumentType
from ..models.requests import DocumentQuery, UploadDocumentRequest
from .audit import AuditService
from .mongodb import MongoDBService

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DOCUMENTS = "documents"
APPLICATIONS = "applications"

ALLOWED_EXTENSIONS = {"jpeg", "jpg", "png", "pdf", "doc", "docx"}
DEFAULT_UPLOAD_DIR = "./uploads"
DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024


def file_extension(filename: str) -> str:
    """Lower-cased extension without the dot, or an empty string."""
    _, ext = os.path.splitext(filename or "")
    return ext.lstrip(".").lower()


def is_allowed_file(filename: str) -> bool:
    return file_extension(filename) in ALLOWED_EXTENSIONS


def stream_size(file: FileStorage) -> int:
    """Size of an uploaded file's stream; the stream is rewound."""
    stream = file.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


class DocumentService:
    """Stores uploaded files on disk and their records in MongoDB."""

    def __init__(
        self,
        mongo_service: MongoDBService,
        audit_service: AuditService,
        upload_dir: str = DEFAULT_UPLOAD_DIR,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE
    ):
        self.mongo_service = mongo_service
        self.audit_service = audit_service
        self.upload_dir = os.path.abspath(upload_dir)
        self.max_file_size = max_file_size

    def _stored_path(self, document: Document) -> str:
        return os.path.join(self.upload_dir, document.file_name)

    def get_document_entity(self, document_id: str) -> Document:
        stored = self.mongo_service.find_by_id(DOCUMENTS, document_id)
        if stored is None:
            raise NotFoundException(f"Document {document_id} not found")
        return Document(**stored)

    def list_documents(self, query: DocumentQuery) -> List[Dict[str, Any]]:
        filters: Dict[str, Any] = {}
        if query.application_id:
            filters["applicationId"] = query.application_id
        if query.document_type:
            filters["documentType"] = DocumentType(query.document_type).value

        documents = self.mongo_service.find(DOCUMENTS, filters, sort=[("createdAt", DESCENDING)])
        return [Document(**document).to_public() for document in documents]

    def get_document(self, document_id: str) -> Dict[str, Any]:
        return self.get_document_entity(document_id).to_public()

    def upload_document(
        self,
        file: Optional[FileStorage],
        request: UploadDocumentRequest,
        user_context: UserContext
    ) -> Dict[str, Any]:
        """
        Save an uploaded file and record it against an application.

        Raises:
            ValidationException: If no file was sent, or its type or size is not accepted
            NotFoundException: If the application does not exist
        """
        with tracer.start_as_current_span("document.upload") as span:
            if file is None or not file.filename:
                raise ValidationException("No file uploaded")

            if not is_allowed_file(file.filename):
                raise ValidationException(
                    "Invalid file type. Only images, PDFs, and documents are allowed.",
                    [{"field": "file", "message": f"Allowed extensions: {', '.join(sorted(ALLOWED_EXTENSIONS))}"}]
                )

            size = stream_size(file)
            span.set_attributes({"document.size": size, "document.type": str(request.document_type)})
            if size > self.max_file_size:
                raise ValidationException(
                    f"File exceeds the maximum size of {self.max_file_size} bytes",
                    [{"field": "file", "message": "File too large"}]
                )

            if self.mongo_service.find_by_id(APPLICATIONS, request.application_id) is None:
                raise NotFoundException(f"Application {request.application_id} not found")

            original_name = secure_filename(file.filename) or f"upload.{file_extension(file.filename)}"
            stored_name = f"file-{uuid.uuid4().hex}.{file_extension(file.filename)}"
            os.makedirs(self.upload_dir, exist_ok=True)
            file_path = os.path.join(self.upload_dir, stored_name)
            file.save(file_path)

            document = Document(
                application_id=request.application_id,
                file_name=stored_name,
                original_name=original_name,
                file_type=file.mimetype or "application/octet-stream",
                file_size=size,
                file_path=file_path,
                document_type=request.document_type,
                uploaded_by=user_context.user_id
            )

            try:
                self.mongo_service.create(DOCUMENTS, document.to_document())
            except Exception:
                os.remove(file_path)
                raise

            self.audit_service.log_action(
                "DOCUMENT_UPLOADED",
                "Document",
                document.id,
                user_context,
                application_id=request.application_id,
                changes={"documentType": document.document_type, "originalName": original_name}
            )
            logger.info(
                "Document uploaded",
                extra={
                    "document_id": document.id,
                    "application_id": request.application_id,
                    "document_type": document.document_type,
                    "file_size": size
                }
            )
            return document.to_public()

    def resolve_download(self, document_id: str) -> Tuple[Document, str]:
        """Document record and the path of its file on disk."""
        document = self.get_document_entity(document_id)
        path = self._stored_path(document)
        if not os.path.isfile(path):
            raise NotFoundException("File not found on disk")
        return document, path

    def verify_document(self, document_id: str, verified: bool, user_context: UserContext) -> Dict[str, Any]:
        """Mark a document verified, stamping who and when, or clear the mark."""
        document = self.get_document_entity(document_id)

        updates = {
            "verified": verified,
            "verifiedAt": utcnow() if verified else None,
            "verifiedBy": user_context.user_id if verified else None,
        }
        updated = self.mongo_service.update_by_id(DOCUMENTS, document_id, updates)
        if updated is None:
            raise NotFoundException(f"Document {document_id} not found")

        self.audit_service.log_action(
            "DOCUMENT_VERIFIED" if verified else "DOCUMENT_UNVERIFIED",
            "Document",
            document_id,
            user_context,
            application_id=document.application_id
        )
        return Document(**updated).to_public()

    def delete_application_documents(self, application_id: str) -> int:
        """Remove every document of an application, files first. Returns the number of records removed."""
        documents = self.mongo_service.find(DOCUMENTS, {"applicationId": application_id})
        for stored in documents:
            path = self._stored_path(Document(**stored))
            if os.path.isfile(path):
                os.remove(path)
        return self.mongo_service.delete_many(DOCUMENTS, {"applicationId": application_id})

    def delete_document(self, document_id: str, user_context: UserContext) -> None:
        document = self.get_document_entity(document_id)

        path = self._stored_path(document)
        if os.path.isfile(path):
            os.remove(path)

        self.mongo_service.delete_by_id(DOCUMENTS, document_id)
        self.audit_service.log_action(
            "DOCUMENT_DELETED",
            "Document",
            document_id,
            user_context,
            application_id=document.application_id
        )
