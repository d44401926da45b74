from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import json
import logging
import os

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()

ENV_DEFAULTS = {
    'JWT_SECRET_KEY': ('dev-secret', str),
    'DATABASE_URL': ('sqlite:///dev.db', str),
    'LOG_LEVEL': ('INFO', str),
    'OVERDUE_THRESHOLD_HOURS': ('48', int),
    'TRANSITION_CONFLICT_RETRIES': ('3', int),
}


def _load_env_config(app: Flask):
    for key, (default, cast) in ENV_DEFAULTS.items():
        app.config[key] = cast(os.getenv(key, default))
    branch_prefixes = os.getenv('BRANCH_PREFIXES')
    if branch_prefixes:
        # JSON object: {"Casa central": "C", "Paraguay": "P", ...}
        app.config['BRANCH_PREFIXES'] = json.loads(branch_prefixes)


def _configure_logging(level_name: str):
    level = getattr(logging, str(level_name).upper(), logging.INFO)
    logging.basicConfig(format='%(asctime)s %(levelname)s %(name)s: %(message)s', level=level)
    logging.getLogger('jobtrack').setLevel(level)
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)


def _build_engine(db_url: str):
    if not db_url.endswith(':memory:'):
        return create_engine(db_url, future=True)
    # one connection shared by every session, otherwise each checkout sees an empty database
    return create_engine(
        db_url,
        future=True,
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )


def _error_body(status: int, title: str, detail: str, context: Optional[Dict[str, Any]] = None):
    body = {'status': status, 'title': title, 'detail': detail}
    if context:
        body.update(context)
    return {'error': body}, status


def _register_error_handlers(app: Flask):
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if isinstance(e, HTTPException):
            if e.code and e.code >= 500:
                app.logger.error('%s: %s', e.name, e.description)
            return _error_body(e.code, e.name, e.description, getattr(e, 'context', None))
        app.logger.exception('Unhandled exception')
        return _error_body(500, 'Internal Server Error', 'Unexpected error')


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)
    _load_env_config(app)
    if config:
        # tests pass overrides here
        app.config.update(config)

    _configure_logging(app.config['LOG_LEVEL'])

    db_engine = _build_engine(app.config['DATABASE_URL'])
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)

    from .routes.jobs import jobs_bp
    from .routes.spare_parts import parts_bp
    from .routes.reports import rpt_bp
    app.register_blueprint(jobs_bp, url_prefix='/jobs')
    app.register_blueprint(parts_bp, url_prefix='/spare-parts')
    app.register_blueprint(rpt_bp, url_prefix='/reports')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    @app.teardown_appcontext
    def remove_session(exc):  # type: ignore
        if SessionLocal is not None:
            SessionLocal.remove()

    _register_error_handlers(app)
    return app


def get_db():
    return SessionLocal()
