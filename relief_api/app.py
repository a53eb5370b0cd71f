"""
Relief360 API - Flask Application Factory

This module builds the Flask application with OpenAPI 3.0 support,
configures middleware and wires the services behind the case-management
endpoints of the municipal indigent support program.
"""

import os
import atexit
import logging
from typing import Any, Dict, Optional
from flask_openapi3 import OpenAPI, Info, Tag

from . import __version__
from .observability.config import setup_observability
from .observability.middleware import add_observability_middleware
from .middleware.cors import configure_cors
from .middleware.error_handler import ErrorHandlerMiddleware, register_custom_error_handlers
from .middleware.validation import validation_error_callback
from .middleware.auth import AuthMiddleware
from .services.hal import create_hal_formatter
from .services.mongodb import MongoDBService
from .services.redis import RedisService
from .services.auth import AuthService
from .services.audit import AuditService
from .services.health import HealthCheckService
from .services.applications import ApplicationService
from .services.documents import DocumentService, DEFAULT_MAX_FILE_SIZE
from .services.benefits import BenefitService
from .services.consent import ConsentService
from .services.users import UserService
from .services.integrations import IntegrationEndpoint, IntegrationService, DEFAULT_TIMEOUT_SECONDS
from .services.reports import ReportService

logger = logging.getLogger(__name__)

# Room for multipart framing around the largest accepted file
UPLOAD_OVERHEAD_BYTES = 1024 * 1024

info = Info(
    title="Relief360 API",
    version=__version__,
    description="Case management for municipal indigent support: applications, "
                "means testing, document verification and benefits"
)

tags = [
    Tag(name="Authentication", description="User authentication and token management"),
    Tag(name="Applications", description="Benefit application case management"),
    Tag(name="Documents", description="Supporting documents and verification"),
    Tag(name="Benefits", description="Benefits granted to approved applicants"),
    Tag(name="Consent", description="Data-protection consent records"),
    Tag(name="Users", description="Staff user administration"),
    Tag(name="Integrations", description="External system integrations"),
    Tag(name="Reports", description="Program reporting and exports"),
    Tag(name="Health", description="System health and status")
]

security_schemes = {
    "jwt": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}
}


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == 'true'


def load_config() -> Dict[str, Any]:
    """Application configuration from environment variables."""
    environment = os.getenv('ENVIRONMENT', 'development')
    return {
        'ENVIRONMENT': environment,
        'DEBUG': environment == 'development',
        'DOCS_ENABLED': _flag('DOCS_ENABLED', 'true'),
        'OTEL_ENABLED': _flag('OTEL_ENABLED', 'true'),
        'AUDIT_LOG_ENABLED': _flag('AUDIT_LOG_ENABLED', 'true'),
        'RATE_LIMIT_ENABLED': _flag('RATE_LIMIT_ENABLED', 'true'),

        # Security configuration
        'JWT_SECRET': os.getenv('JWT_SECRET'),
        'JWT_EXPIRES_SECONDS': int(os.getenv('JWT_EXPIRES_SECONDS', str(7 * 24 * 60 * 60))),

        # Database configuration
        'MONGODB_URI': os.getenv('MONGODB_URI', 'mongodb://localhost:27017/relief360'),
        'MONGODB_DATABASE': os.getenv('MONGODB_DATABASE', 'relief360'),
        'REDIS_URL': os.getenv('REDIS_URL'),
        'REDIS_TOKEN': os.getenv('REDIS_TOKEN'),

        # Documents
        'UPLOAD_DIR': os.getenv('UPLOAD_DIR', './uploads'),
        'MAX_FILE_SIZE': int(os.getenv('MAX_FILE_SIZE', str(DEFAULT_MAX_FILE_SIZE))),

        # Integrations
        'ID_VERIFICATION_API_URL': os.getenv('ID_VERIFICATION_API_URL'),
        'ID_VERIFICATION_API_KEY': os.getenv('ID_VERIFICATION_API_KEY'),
        'MUNICIPAL_API_URL': os.getenv('MUNICIPAL_API_URL'),
        'MUNICIPAL_API_KEY': os.getenv('MUNICIPAL_API_KEY'),
        'INTEGRATION_TIMEOUT_SECONDS': int(
            os.getenv('INTEGRATION_TIMEOUT_SECONDS', str(DEFAULT_TIMEOUT_SECONDS))
        ),

        # API configuration
        'BASE_URL': os.getenv('BASE_URL', 'http://localhost:5000'),
        'CORS_ORIGIN': os.getenv('CORS_ORIGIN', ''),
    }


def create_app(
    config_overrides: Optional[Dict[str, Any]] = None,
    mongodb_service: Optional[MongoDBService] = None,
    redis_service: Optional[RedisService] = None
) -> OpenAPI:
    """
    Build the Flask application.

    Args:
        config_overrides: Values replacing the environment configuration
        mongodb_service: Storage handle to use instead of connecting from config
        redis_service: Redis handle to use instead of connecting from config

    Returns:
        Configured OpenAPI (Flask) application
    """
    config = load_config()
    config.update(config_overrides or {})

    # Initialize observability first
    setup_observability(config['ENVIRONMENT'], config['OTEL_ENABLED'])

    app = OpenAPI(
        __name__,
        info=info,
        security_schemes=security_schemes,
        validation_error_status=422,
        validation_error_callback=validation_error_callback,
        doc_ui=config['DOCS_ENABLED']
    )
    app.config.update(config)
    app.config['MAX_CONTENT_LENGTH'] = config['MAX_FILE_SIZE'] + UPLOAD_OVERHEAD_BYTES

    add_observability_middleware(app)

    # Initialize services
    if mongodb_service is None:
        mongodb_service = MongoDBService(config['MONGODB_URI'], config['MONGODB_DATABASE'])
        atexit.register(mongodb_service.close_connection)
    if redis_service is None:
        redis_service = RedisService(config['REDIS_URL'], config['REDIS_TOKEN'])

    auth_service = AuthService(config['JWT_SECRET'], config['JWT_EXPIRES_SECONDS'])
    audit_service = AuditService(mongodb_service, config['AUDIT_LOG_ENABLED'])

    # Initialize middleware
    hal_formatter = create_hal_formatter(config['BASE_URL'])
    auth_middleware = AuthMiddleware(auth_service, redis_service)
    ErrorHandlerMiddleware(app, hal_formatter)
    configure_cors(app, allow_credentials=True)
    register_custom_error_handlers(app, hal_formatter)

    # Make services available to routes
    app.mongodb_service = mongodb_service
    app.redis_service = redis_service
    app.auth_service = auth_service
    app.audit_service = audit_service
    app.hal_formatter = hal_formatter
    app.auth_middleware = auth_middleware
    app.health_service = HealthCheckService(mongodb_service, redis_service, __version__)
    app.document_service = DocumentService(
        mongodb_service, audit_service, config['UPLOAD_DIR'], config['MAX_FILE_SIZE']
    )
    app.application_service = ApplicationService(mongodb_service, audit_service, app.document_service)
    app.benefit_service = BenefitService(mongodb_service, audit_service)
    app.consent_service = ConsentService(mongodb_service, audit_service)
    app.user_service = UserService(mongodb_service, auth_service, audit_service, redis_service)
    app.integration_service = IntegrationService(
        mongodb_service,
        audit_service,
        id_verification=IntegrationEndpoint(
            config['ID_VERIFICATION_API_URL'], config['ID_VERIFICATION_API_KEY']
        ),
        municipal=IntegrationEndpoint(config['MUNICIPAL_API_URL'], config['MUNICIPAL_API_KEY']),
        timeout_seconds=config['INTEGRATION_TIMEOUT_SECONDS']
    )
    app.report_service = ReportService(mongodb_service)

    # Register routes
    from .routes.applications import applications_bp
    from .routes.documents import documents_bp
    from .routes.benefits import benefits_bp
    from .routes.consent import consent_bp
    from .routes.users import users_bp
    from .routes.auth import auth_bp
    from .routes.integrations import integrations_bp
    from .routes.reports import reports_bp
    from .routes.health import health_bp

    app.register_api(applications_bp)
    app.register_api(documents_bp)
    app.register_api(benefits_bp)
    app.register_api(consent_bp)
    app.register_api(users_bp)
    app.register_api(auth_bp)
    app.register_api(integrations_bp)
    app.register_api(reports_bp)
    app.register_api(health_bp)

    logger.info(
        "Relief360 API initialized",
        extra={"environment": config['ENVIRONMENT'], "docs_enabled": config['DOCS_ENABLED']}
    )
    return app


if __name__ == '__main__':
    # Development server
    application = create_app()
    application.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=application.config['DEBUG']
    )
