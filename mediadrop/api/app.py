"""
MediaDrop API Application

Flask application factory. Every service is built once here and handed to
the pieces that use it.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Any

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from .. import __version__
from ..config import get_config_value, load_config, merge_config
from ..config.security import validate_production_environment, get_security_headers, get_security_config
from ..db import DatabaseManager, AlbumOperations, MimeMappingOperations
from ..errors import RequestError
from ..ingest import (
    BatchCoordinator, DirectoryProvisioner, DuplicateDetector, LoggingNotifier,
    MediaClassifier, NullNotifier, PipelineSettings, StorageWriter,
    ThumbnailGenerator, TrackingRecorder
)
from ..storage import LocalStorage
from .auth import APIAuth
from .models import ErrorResponse
from .upload_routes import upload_api

logger = logging.getLogger(__name__)


def create_app(config: Optional[Dict[str, Any]] = None,
               db: Optional[DatabaseManager] = None) -> Flask:
    """
    Create and configure the MediaDrop API application.

    Args:
        config: Overrides merged on top of the loaded configuration
        db: Database manager to use instead of building one from config

    Returns:
        Configured Flask application
    """
    app_config = merge_config(load_config(), config)

    logger.info("Validating security configuration...")
    validate_production_environment(app_config)

    api_config = app_config.get('api', {})

    app = Flask(__name__)

    security_config = get_security_config(
        secret_key=api_config.get('secret_key'))

    app.config.update(
        SECRET_KEY=security_config.secret_key,
        MAX_CONTENT_LENGTH=int(api_config.get('max_content_length_mb', 512) * 1024 * 1024),
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE='Lax',
        SESSION_COOKIE_SECURE=security_config.secure_cookies,
        PERMANENT_SESSION_LIFETIME=timedelta(days=30),
        SECURITY_CONFIG=security_config,
    )
    if 'flask' in app_config:
        app.config.update(app_config['flask'])

    cors_origins = api_config.get('cors_origins', [])
    if security_config.secure_cookies:  # Production environment
        cors_origins = [origin for origin in cors_origins
                        if not origin.startswith('http://localhost')]
    CORS(app,
         origins=cors_origins,
         methods=['GET', 'POST', 'DELETE', 'OPTIONS'],
         allow_headers=['Content-Type', 'Authorization', 'X-Requested-With'],
         supports_credentials=True,
         max_age=86400)

    # Services
    db = db or DatabaseManager.from_config(app_config)
    storage = LocalStorage(app_config['storage']['root'])

    thumb_config = app_config.get('thumbnails', {})
    thumbnails = ThumbnailGenerator(
        storage,
        directory=thumb_config.get('directory', '.thumbnails'),
        size=thumb_config.get('size', 300),
        quality=thumb_config.get('quality', 85),
        enabled=thumb_config.get('enabled', True),
    )

    mime_mappings = MimeMappingOperations(db)
    if get_config_value(app_config, 'database.auto_init', True) and not mime_mappings.list_mappings():
        mime_mappings.seed_defaults()

    detector = DuplicateDetector(storage)
    recorder = TrackingRecorder(db, storage)
    settings = PipelineSettings.from_config(app_config)
    notifier = LoggingNotifier() if settings.notifications_enabled else NullNotifier()

    coordinator = BatchCoordinator(
        classifier=MediaClassifier(mime_mappings.ordered_patterns),
        detector=detector,
        writer=StorageWriter(storage, detector, db, thumbnails,
                             chunk_size=get_config_value(app_config, 'storage.chunk_size', 1024 * 1024)),
        provisioner=DirectoryProvisioner.from_config(db, app_config),
        recorder=recorder,
        notifier=notifier,
        storage=storage,
        settings=settings,
    )

    app.mediadrop_config = app_config
    app.db = db
    app.storage = storage
    app.albums = AlbumOperations(db)
    app.recorder = recorder
    app.coordinator = coordinator
    app.auth = APIAuth.from_config(security_config.secret_key, app_config,
                                   algorithm=security_config.jwt_algorithm)

    # Middleware
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    # Error handlers
    @app.errorhandler(RequestError)
    def request_error(error: RequestError):
        return jsonify(ErrorResponse(
            message=str(error),
            error_code=error.error_code
        ).to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def http_error(error: HTTPException):
        return jsonify(ErrorResponse(
            message=error.description or error.name,
            error_code=error.name.upper().replace(' ', '_')
        ).to_dict()), error.code

    @app.errorhandler(413)
    def too_large(error):
        return jsonify(ErrorResponse(
            message="Request too large",
            error_code="PAYLOAD_TOO_LARGE"
        ).to_dict()), 413

    @app.errorhandler(500)
    def internal_error(error):
        logger.error(f"Internal error: {error}")
        return jsonify(ErrorResponse(
            message="Internal server error",
            error_code="INTERNAL_ERROR"
        ).to_dict()), 500

    @app.after_request
    def after_request(response):
        """Add security headers."""
        for header, value in get_security_headers().items():
            if value:  # Skip empty values (like HSTS in development)
                response.headers[header] = value
        return response

    @app.route('/health')
    def health_check():
        """Health check endpoint."""
        database_ok = db.is_available()
        return jsonify({
            'status': 'healthy' if database_ok else 'degraded',
            'database': database_ok,
            'version': __version__,
            'timestamp': datetime.now(timezone.utc).isoformat()
        }), 200 if database_ok else 503

    app.register_blueprint(upload_api)

    logger.info(f"MediaDrop API v{__version__} initialized")
    return app


def run_development_server(config: Optional[Dict[str, Any]] = None, host: str = '127.0.0.1',
                           port: int = 5000, debug: bool = False):
    """Run the Flask development server."""
    app = create_app(config)
    app.run(host=host, port=port, debug=debug, threaded=True)
