from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine, event
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import logging
import os

load_dotenv()

db_engine = None
SessionLocal = None
platform = None
jwt = JWTManager()

DOCS_HTML = (
    "<!DOCTYPE html><html><head><title>Cafeteria Back Office API</title>"
    "<link rel=\"stylesheet\" href=\"https://cdn.jsdelivr.net/npm/redoc@next/bundles/redoc.standalone.css\" />"
    "</head><body><redoc spec-url='/openapi.json'></redoc>"
    "<script src='https://cdn.jsdelivr.net/npm/redoc@next/bundles/redoc.standalone.js'></script>"
    "</body></html>"
)


def _load_config(app: Flask, overrides: Optional[Dict[str, Any]]):
    from .config.gestures import load_gesture_config

    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    app.config['DATABASE_URL'] = os.getenv('DATABASE_URL', 'sqlite:///dev.db')
    app.config['ORDERS_LOCAL_TZ'] = os.getenv('ORDERS_LOCAL_TZ', 'America/Lima')
    app.config['ORDERS_SSE_HEARTBEAT'] = float(os.getenv('ORDERS_SSE_HEARTBEAT', '15'))
    app.config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', 'INFO')
    app.config.update(load_gesture_config(os.environ))
    if overrides:
        # tests and callers win over the environment
        app.config.update(overrides)


def _make_engine(db_url: str):
    if db_url.endswith(':memory:'):
        # one shared in-memory database for every session
        engine = create_engine(
            db_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(db_url, echo=False, future=True)
    if engine.dialect.name == 'sqlite':
        # bulk order delete relies on ON DELETE CASCADE for details
        event.listen(engine, 'connect', _enable_sqlite_foreign_keys)
    return engine


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute('PRAGMA foreign_keys=ON')
    cursor.close()


def _error_payload(status: int, title: str, detail: Any):
    return {'error': {'status': status, 'title': title, 'detail': detail}}, status


def _register_error_handlers(app: Flask):
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if isinstance(e, HTTPException):
            return _error_payload(e.code, e.name, e.description)
        app.logger.exception('Unhandled exception')
        return _error_payload(500, 'Internal Server Error', 'Unexpected error')


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal, platform
    app = Flask(__name__)
    _load_config(app, config)

    app.logger.setLevel(app.config['LOG_LEVEL'])
    logging.getLogger('backoffice').setLevel(app.config['LOG_LEVEL'])

    db_engine = _make_engine(app.config['DATABASE_URL'])
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    from .datastore.changefeed import ChangeFeed
    from .datastore.platform import DataPlatform
    platform = DataPlatform(SessionLocal, ChangeFeed())

    jwt.init_app(app)

    from .routes.auth import auth_bp  # staff login
    from .routes.orders import orders_bp  # order workflow
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(orders_bp, url_prefix='/orders')

    _register_error_handlers(app)

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    from .openapi import build_openapi_spec

    @app.route('/openapi.json')
    def openapi_spec():
        return build_openapi_spec()

    @app.route('/docs')
    def docs_index():
        return DOCS_HTML

    return app


def get_db():
    return SessionLocal()


def get_platform():
    return platform
