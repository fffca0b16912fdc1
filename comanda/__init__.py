"""Flask application factory."""
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from comanda.database import init_db
import os


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Error tracking in production only
    sentry_dsn = app.config.get('SENTRY_DSN')
    if sentry_dsn and (app.config.get('ENV') == 'production' or os.getenv('FLASK_ENV') == 'production'):
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=sentry_dsn,
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,  # 10% of transactions for performance monitoring
            profiles_sample_rate=0.1,
            environment=os.getenv('FLASK_ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Redis cache (catalog reads)
    from comanda.services.cache_service import init_cache
    init_cache(app)

    # Floor/kitchen/waiter notifications
    from comanda.services.event_service import init_events
    init_events(app)

    # Prometheus instrumentation
    from comanda.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: trust the reverse proxy headers
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    # Initialize database
    init_db(app)

    from comanda.middleware import load_principal

    @app.before_request
    def before_request_handler():
        """Load the session principal for each request."""
        load_principal()

    # Error Handlers
    from comanda.exceptions import ComandaError

    @app.errorhandler(ComandaError)
    def handle_comanda_error(error):
        """Typed application errors become JSON with their status code."""
        if error.status_code >= 500:
            app.logger.error(f"ComandaError [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"ComandaError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'status': 'error', 'message': error.description}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.exception(f"Unhandled Exception: {error}")
        return jsonify({'status': 'error', 'message': 'Error interno del servidor'}), 500

    # Register blueprints
    from comanda.blueprints.auth import auth_bp
    from comanda.blueprints.tables import tables_bp
    from comanda.blueprints.orders import orders_bp
    from comanda.blueprints.kitchen import kitchen_bp
    from comanda.blueprints.invoices import invoices_bp
    from comanda.blueprints.catalog import catalog_bp
    from comanda.blueprints.settings import settings_bp
    from comanda.blueprints.staff import staff_bp
    from comanda.blueprints.metrics import metrics_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(tables_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(kitchen_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(staff_bp)
    app.register_blueprint(metrics_bp)

    # CLI commands
    from comanda.cli_commands import init_cli_commands
    init_cli_commands(app)

    app.logger.info(f"Comanda started (events={app.config.get('EVENTS_BACKEND')}, cache={app.config.get('CACHE_ENABLED')})")

    return app
