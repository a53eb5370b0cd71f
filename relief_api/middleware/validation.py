# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request validation helpers using Pydantic models.
Formats validation errors as problem documents for both flask-openapi3
bound parameters and manually validated form data.
"""

from flask import request, jsonify, current_app
from typing import Type, Dict, Any, List, TypeVar
from pydantic import BaseModel, ValidationError
from opentelemetry import trace
import logging

from .error_handler import ValidationException

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

M = TypeVar('M', bound=BaseModel)

VALIDATION_ERROR_STATUS = 422


def format_validation_errors(validation_error: ValidationError) -> List[Dict[str, Any]]:
    """
    Format Pydantic validation errors for API response.

    Args:
        validation_error: Pydantic ValidationError

    Returns:
        List of formatted error dictionaries
    """
    errors = []

    for error in validation_error.errors():
        field_path = ".".join(str(loc) for loc in error["loc"])
        formatted = {
            "field": field_path,
            "message": error["msg"],
            "type": error["type"]
        }
        value = error.get("input")
        if value is None or isinstance(value, (str, int, float, bool)):
            formatted["input"] = value
        errors.append(formatted)

    return errors


def validation_error_callback(validation_error: ValidationError):
    """flask-openapi3 hook turning request validation failures into problem documents."""
    errors = format_validation_errors(validation_error)

    logger.warning(
        "Request validation failed",
        extra={
            "path": request.path,
            "method": request.method,
            "errors": errors
        }
    )

    error_response = current_app.hal_formatter.format_validation_error(
        "Request validation failed",
        request.path,
        errors,
        VALIDATION_ERROR_STATUS
    )
    response = jsonify(error_response)
    response.status_code = VALIDATION_ERROR_STATUS
    return response


def validate_form(model_class: Type[M]) -> M:
    """
    Validate multipart form fields against a Pydantic model.

    Raises:
        ValidationException: With field errors when validation fails
    """
    with tracer.start_as_current_span("validation.validate_form") as span:
        span.set_attribute("validation.model", model_class.__name__)
        try:
            model = model_class.model_validate(request.form.to_dict())
        except ValidationError as e:
            span.set_attribute("validation.result", "validation_error")
            raise ValidationException(
                f"Request validation failed for {model_class.__name__}",
                format_validation_errors(e),
                VALIDATION_ERROR_STATUS
            )
        span.set_attribute("validation.result", "success")
        return model
