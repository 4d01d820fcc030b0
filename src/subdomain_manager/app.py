"""
Flask Application Factory.

The DNS backend and proxy manager client are constructed once here, from
validated configuration, and handed to the SubdomainProvisioner. Request
handlers reach the provisioner through ``app.extensions``.
"""
import logging
from typing import Optional

from flask import Flask, jsonify, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from werkzeug.middleware.proxy_fix import ProxyFix

from .api import domains_bp, subdomains_bp
from .api.responses import EXTENSION_KEY
from .audit_logger import get_audit_logger
from .backends import DNSBackend, get_backend
from .config import AppConfig, get_value, load_config
from .database import init_db
from .provisioning import SubdomainProvisioner
from .proxy_manager import ProxyManagerClient

logger = logging.getLogger(__name__)


def create_app(config: Optional[AppConfig] = None,
               dns_backend: Optional[DNSBackend] = None,
               proxy_client: Optional[ProxyManagerClient] = None) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        config: Application configuration (default: loaded from environment)
        dns_backend: DNS client to use instead of one built from config
        proxy_client: Proxy manager client to use instead of one built from config

    Returns:
        Configured Flask application instance

    Raises:
        ConfigurationError: If required credentials are missing
    """
    if config is None:
        config = load_config()

    app = Flask(__name__)

    # Trust proxy headers (the tool itself usually sits behind the proxy manager)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)
    app.config['MAX_CONTENT_LENGTH'] = config.max_content_length

    # =========================================================================
    # Database
    # =========================================================================

    init_db(app, config.database_uri)

    # =========================================================================
    # External clients and workflow
    # =========================================================================

    if dns_backend is None:
        dns_backend = get_backend('cloudflare', config.dns_backend_config())
    if proxy_client is None:
        proxy_client = ProxyManagerClient(
            api_url=config.npm_api_url,
            email=config.npm_email,
            password=config.npm_password,
            timeout=config.http_timeout,
        )

    app.extensions[EXTENSION_KEY] = SubdomainProvisioner(
        dns_backend=dns_backend,
        proxy_client=proxy_client,
        audit=get_audit_logger(config.audit_log_file),
        target_host=config.target_host,
    )

    # =========================================================================
    # Rate Limiting
    # =========================================================================

    limiter = Limiter(
        get_remote_address,
        app=app,
        default_limits=["200 per hour", "50 per minute"],
        storage_uri="memory://",
        enabled=config.ratelimit_enabled,
    )
    # Provisioning calls hit two external APIs; keep writes slower
    limiter.limit("10 per minute", methods=['POST', 'PUT', 'DELETE'])(subdomains_bp)
    if not config.ratelimit_enabled:
        logger.info("Rate limiting disabled by configuration")

    # =========================================================================
    # Register Blueprints
    # =========================================================================

    app.register_blueprint(domains_bp)
    app.register_blueprint(subdomains_bp)

    # =========================================================================
    # Error Handlers
    # =========================================================================

    @app.errorhandler(404)
    def not_found(e):
        if request.path.startswith('/api/'):
            return jsonify({'success': False, 'error': 'Endpoint not found'}), 404
        return "Not Found", 404

    @app.errorhandler(500)
    def internal_error(e):
        logger.exception("Internal server error")
        if request.path.startswith('/api/'):
            return jsonify({'success': False, 'error': 'Internal server error'}), 500
        return "Internal Server Error", 500

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.route('/health')
    def health():
        """Health check endpoint."""
        return jsonify({'status': 'ok'})

    logger.info("Flask application created successfully")

    return app


def main():
    """Run the development server (use wsgi.py behind a real WSGI server)."""
    log_level = (get_value('LOG_LEVEL', 'INFO') or 'INFO').upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    app = create_app()
    host = get_value('FLASK_RUN_HOST', '127.0.0.1')
    port = int(get_value('FLASK_RUN_PORT', '5000'))
    app.run(host=host, port=port)


if __name__ == '__main__':
    main()
