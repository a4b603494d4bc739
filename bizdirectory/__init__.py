from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
import logging
import os
from dotenv import load_dotenv

load_dotenv()

db = SQLAlchemy()

logger = logging.getLogger(__name__)

_LOGGING_CONFIGURED = False


def configure_logging(level_name):
    """Configure process-wide logging once."""
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    logging.basicConfig(
        level=getattr(logging, level_name.upper(), logging.INFO),
        format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
    )
    _LOGGING_CONFIGURED = True


def create_app(config_name='development', config_overrides=None):
    app = Flask(__name__)

    # Config
    if config_name == 'testing':
        app.config['TESTING'] = True
        app.config['SQLALCHEMY_DATABASE_URI'] = 'sqlite://'
    else:
        app.config['SQLALCHEMY_DATABASE_URI'] = os.getenv(
            'DATABASE_URL',
            'sqlite:///directory.db'
        )

    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    app.config['REDIS_URL'] = os.getenv('REDIS_URL')
    app.config['BOOST_CRON_SECRET'] = os.getenv('BOOST_CRON_SECRET')
    app.config['BOOST_SWEEP_INTERVAL'] = int(os.getenv('BOOST_SWEEP_INTERVAL', 300))
    app.config['BOOST_SWEEP_ENABLED'] = (
        config_name != 'testing'
        and os.getenv('BOOST_SWEEP_ENABLED', 'false').lower() in ('true', '1', 'yes')
    )
    app.config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', 'INFO')

    from bizdirectory.services.boosts import utcnow
    app.config['BOOST_CLOCK'] = utcnow

    if config_overrides:
        app.config.update(config_overrides)

    configure_logging(app.config['LOG_LEVEL'])

    # Initialize extensions
    db.init_app(app)
    CORS(app)

    # Create tables with error handling
    with app.app_context():
        from bizdirectory import models  # noqa: F401
        try:
            db.create_all()
        except Exception as e:
            logger.warning(f"Could not create database tables: {e}")

    # Register routes
    from bizdirectory.routes import register_routes
    register_routes(app)

    from bizdirectory.services.boost_ticker import register_cli, start_ticker
    register_cli(app)
    if app.config['BOOST_SWEEP_ENABLED']:
        start_ticker(app)

    # Health check
    @app.route('/health', methods=['GET'])
    def health():
        return {'status': 'ok'}, 200

    return app
