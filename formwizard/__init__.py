"""
Dynamic Form Wizard Application

A schema-driven, multi-step form renderer. Users sign in with a roll
number and name, receive a form definition from the remote form service
and are walked through its sections one at a time.

Enhanced with:
- CSRF protection
- Rate limiting
- Security headers
- Audit logging
"""

import os
from datetime import datetime
from flask import Flask, request, g, render_template
from flask_sqlalchemy import SQLAlchemy

# Initialize extensions
db = SQLAlchemy()


def _optional_float(value):
    return float(value) if value not in (None, '') else None


def create_app(test_config=None):
    """Application factory pattern."""
    app = Flask(__name__, instance_relative_config=True)

    # Default configuration
    app.config.from_mapping(
        SECRET_KEY=os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production'),
        SQLALCHEMY_DATABASE_URI=os.environ.get('DATABASE_URL', 'sqlite:///form_wizard.db'),
        SQLALCHEMY_TRACK_MODIFICATIONS=False,

        # Remote form service
        FORM_SERVICE_URL=os.environ.get('FORM_SERVICE_URL', 'https://dynamic-form-generator-9rl7.onrender.com'),
        FORM_SERVICE_TIMEOUT=_optional_float(os.environ.get('FORM_SERVICE_TIMEOUT')),  # None = wait forever

        # Form sessions
        SESSION_MAX_AGE=int(os.environ.get('SESSION_MAX_AGE', 3600)),  # 1 hour

        # CSRF settings
        WTF_CSRF_ENABLED=True,
        WTF_CSRF_TIME_LIMIT=3600,  # 1 hour

        # Rate limiting settings
        RATELIMIT_STORAGE_URI=os.environ.get('REDIS_URL', 'memory://'),
        RATELIMIT_STRATEGY='fixed-window',
        RATELIMIT_HEADERS_ENABLED=True,
    )

    if test_config is None:
        # Load instance config if it exists
        app.config.from_pyfile('config.py', silent=True)
    else:
        # Load test config
        app.config.from_mapping(test_config)

    # Ensure instance folder exists
    os.makedirs(app.instance_path, exist_ok=True)

    # Initialize extensions with app
    db.init_app(app)

    from formwizard.security import add_security_headers, init_security, get_client_ip
    init_security(app)

    # Form service client and session store
    from formwizard.client import FormServiceClient
    from formwizard.session import get_store
    app.extensions['form_service'] = FormServiceClient(
        app.config['FORM_SERVICE_URL'],
        timeout=app.config['FORM_SERVICE_TIMEOUT']
    )
    get_store(app)

    # Register blueprints
    from formwizard.routes import main_bp, api_bp
    app.register_blueprint(main_bp)
    app.register_blueprint(api_bp)

    @app.after_request
    def after_request(response):
        """Add security headers to all responses."""
        return add_security_headers(response)

    # Request logging
    @app.before_request
    def before_request():
        """Log request start."""
        g.request_start_time = datetime.utcnow()

    @app.after_request
    def log_request(response):
        """Log request completion."""
        if hasattr(g, 'request_start_time'):
            duration = (datetime.utcnow() - g.request_start_time).total_seconds()
            app.logger.info(
                f'{get_client_ip()} {request.method} {request.path} - {response.status_code} - {duration:.3f}s'
            )
        return response

    # Create database tables
    with app.app_context():
        from formwizard import models  # noqa: F401
        db.create_all()

    # Template globals
    @app.context_processor
    def inject_globals():
        return {
            'current_year': datetime.utcnow().year,
            'app_name': 'Student Portal'
        }

    # Error handlers
    @app.errorhandler(404)
    def not_found(error):
        """Render the not-found screen."""
        app.logger.warning(f'404 Error: User attempted to access non-existent route: {request.path}')
        return render_template('not_found.html', path=request.path), 404

    @app.errorhandler(500)
    def internal_error(error):
        """Handle internal errors."""
        db.session.rollback()
        app.logger.error(f'Internal error: {str(error)}')
        return {'ok': False, 'error': 'Internal server error'}, 500

    return app
