import os
import logging
from flask import Flask, jsonify, redirect, url_for
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from .config import CONFIGS, ProdConfig
from .exceptions import AllocationConflict, InvalidPriceConfig, MalformedSeriesState

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()


def create_app(config_name: str | None = None) -> Flask:
    """Application factory with environment based configuration."""
    app = Flask(__name__, instance_relative_config=True)
    os.makedirs(app.instance_path, exist_ok=True)

    # Pick configuration
    env = config_name or os.getenv('ENV') or os.getenv('FLASK_ENV') or 'production'
    app.config.from_object(CONFIGS.get(env, ProdConfig))

    # Initialise logging
    logging.basicConfig(level=logging.DEBUG if app.debug else logging.INFO)

    db.init_app(app)
    migrate.init_app(app, db)

    # Ensure models loaded so tables can be created
    from umzug import models  # noqa
    with app.app_context():
        db.create_all()

    @app.route('/')
    def index():
        return redirect(url_for('documents.list_documents'))

    @app.errorhandler(InvalidPriceConfig)
    def invalid_price(e):
        return jsonify(error='invalid_price_config', message=str(e)), 400

    @app.errorhandler(MalformedSeriesState)
    def malformed_series(e):
        logging.error('numbering halted: %s', e)
        return jsonify(error='malformed_series_state', message=str(e)), 500

    @app.errorhandler(AllocationConflict)
    def allocation_conflict(e):
        logging.error('numbering conflict: %s', e)
        return jsonify(error='allocation_conflict', message=str(e)), 409

    @app.errorhandler(400)
    def bad_request(e):
        return jsonify(error='bad_request', message=e.description), 400

    @app.errorhandler(403)
    def forbidden(_):
        return jsonify(error='forbidden'), 403

    @app.errorhandler(404)
    def not_found(_):
        return jsonify(error='not_found'), 404

    @app.errorhandler(500)
    def server_error(_):
        return jsonify(error='server_error'), 500

    from umzug.admin import bp as admin_bp
    from umzug.catalog.routes import bp as catalog_bp
    from umzug.customers.routes import bp as customers_bp
    from umzug.documents.routes import bp as documents_bp
    from umzug.public.routes import bp as public_bp
    from umzug.cli import catalog_cli, documents_cli, series_cli

    app.register_blueprint(admin_bp, url_prefix='/admin')
    app.register_blueprint(catalog_bp, url_prefix='/catalog')
    app.register_blueprint(customers_bp, url_prefix='/customers')
    app.register_blueprint(documents_bp, url_prefix='/documents')
    app.register_blueprint(public_bp, url_prefix='/public')
    app.cli.add_command(catalog_cli)
    app.cli.add_command(documents_cli)
    app.cli.add_command(series_cli)

    return app
