from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from datetime import timedelta
from typing import Optional, Dict, Any

from .config import load_config
from .logging_config import configure_logging

db_engine = None
SessionLocal = None
jwt = JWTManager()


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    app.config.update(load_config())
    if config:
        # allow tests or callers to override default config values
        app.config.update(config)
    app.config.setdefault(
        'JWT_ACCESS_TOKEN_EXPIRES',
        timedelta(minutes=int(app.config['JWT_ACCESS_TOKEN_EXPIRES_MINUTES'])),
    )
    configure_logging(app.config['LOG_LEVEL'])

    # Database
    db_url = app.config['DATABASE_URL']
    if db_url.endswith(':memory:'):
        # Ensure a single shared in-memory SQLite database across all sessions
        db_engine = create_engine(
            db_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        db_engine = create_engine(db_url, echo=False, future=True)
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    # Register every table on the shared metadata before relationships resolve
    from .models import authz, order, payment, delivery, contact, audit  # noqa: F401

    jwt.init_app(app)

    from .services.chapa import ChapaClient
    app.extensions['chapa'] = ChapaClient(
        secret_key=app.config['CHAPA_SECRET_KEY'],
        base_url=app.config['CHAPA_BASE_URL'],
        timeout=app.config['CHAPA_TIMEOUT_SECONDS'],
    )

    from .routes.iam import iam_bp
    from .routes.orders import orders_bp
    from .routes.payments import payments_bp
    from .routes.deliveries import deliveries_bp
    from .routes.reports import rpt_bp
    from .routes.contact import contact_bp
    app.register_blueprint(iam_bp, url_prefix='/iam')
    app.register_blueprint(orders_bp, url_prefix='/orders')
    app.register_blueprint(payments_bp, url_prefix='/payments')
    app.register_blueprint(deliveries_bp, url_prefix='/deliveries')
    app.register_blueprint(rpt_bp, url_prefix='/reports')
    app.register_blueprint(contact_bp, url_prefix='/contact')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    @app.teardown_appcontext
    def remove_session(exc=None):
        # Discard half-finished transactions so the next request starts clean
        if exc is not None and SessionLocal is not None:
            SessionLocal.rollback()

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if isinstance(e, HTTPException):
            payload = {
                'error': {
                    'status': e.code,
                    'title': e.name,
                    'detail': e.description,
                }
            }
            return payload, e.code
        app.logger.exception('Unhandled exception')
        if SessionLocal is not None:
            SessionLocal.rollback()
        return {
            'error': {
                'status': 500,
                'title': 'Internal Server Error',
                'detail': 'Unexpected error'
            }
        }, 500

    return app


def get_db():
    return SessionLocal()
