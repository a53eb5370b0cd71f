"""
Observability Middleware

Request timing, trace correlation and one structured log line per request.
Authenticated requests are tagged with the staff member's id and role.
"""

import time
import uuid
import logging
from flask import Flask, request, g
from opentelemetry import trace
from opentelemetry.instrumentation.flask import FlaskInstrumentor

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = 'X-Request-ID'


def add_observability_middleware(app: Flask):
    """Instrument the app and log each completed request."""

    if app.config.get('OTEL_ENABLED', True):
        FlaskInstrumentor().instrument_app(app, excluded_urls="api/health")

    @app.before_request
    def start_request():
        g.start_time = time.monotonic()
        g.request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        g.trace_id = None

        span = trace.get_current_span()
        if span.is_recording():
            g.trace_id = format(span.get_span_context().trace_id, "032x")
            span.set_attribute("relief.request_id", g.request_id)

    @app.after_request
    def finish_request(response):
        duration_ms = round((time.monotonic() - g.get('start_time', time.monotonic())) * 1000, 2)
        user_context = g.get('user_context')

        span = trace.get_current_span()
        if span.is_recording():
            span.set_attribute("http.duration_ms", duration_ms)
            if user_context is not None:
                span.set_attributes({"user.id": user_context.user_id, "user.role": user_context.role})

        logger.info(
            "HTTP request completed",
            extra={
                "method": request.method,
                "path": request.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "request_id": g.get('request_id'),
                "trace_id": g.get('trace_id'),
                "user_id": user_context.user_id if user_context is not None else None,
            }
        )

        if g.get('request_id'):
            response.headers[REQUEST_ID_HEADER] = g.request_id
        if g.get('trace_id'):
            response.headers['X-Trace-Id'] = g.trace_id

        return response
