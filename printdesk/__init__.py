"""Flask application factory."""

import logging
import os

from flask import Flask

from printdesk.config import config
from printdesk.extensions import celery, db, limiter, login_manager, migrate


def configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )
    logging.getLogger('printdesk').setLevel(level)
    app.logger.setLevel(level)


def configure_celery(app):
    celery.conf.update(
        broker_url=app.config['CELERY_BROKER_URL'],
        result_backend=app.config['CELERY_RESULT_BACKEND'],
        task_serializer='json',
        result_serializer='json',
        accept_content=['json'],
        timezone='UTC',
        enable_utc=True,
        task_always_eager=app.config['CELERY_TASK_ALWAYS_EAGER'],
        task_eager_propagates=app.config['CELERY_TASK_EAGER_PROPAGATES'],
        # Notifications keep their order only with a single consumer
        task_routes={'printdesk.notifications.*': {'queue': 'notifications'}},
    )
    # ContextTask opens this app's context around worker-side task runs
    celery.flask_app = app


def create_app(config_name=None):
    """
    Application factory.

    Args:
        config_name: Key of ``printdesk.config.config`` or a config class;
            defaults to ``FLASK_ENV``
    """
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'default')
    config_class = config[config_name] if isinstance(config_name, str) else config_name

    app = Flask(__name__)
    app.config.from_object(config_class)
    configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    limiter.init_app(app)
    configure_celery(app)

    # Services shared by the blueprints
    from printdesk.files.storage import FileStorage
    from printdesk.lifecycle.engine import LifecycleEngine
    from printdesk.notifications.dispatch import CeleryNotifier
    from printdesk.notifications.fanout import FanoutService, RedisRelay

    storage = FileStorage(
        app.config['UPLOAD_FOLDER'],
        app.config['SECRET_KEY'],
        url_max_age=app.config['FILE_URL_MAX_AGE']
    )

    fanout = FanoutService()
    if app.config.get('FANOUT_REDIS_URL'):
        fanout.relay = RedisRelay(app.config['FANOUT_REDIS_URL'])
        fanout.relay.start(fanout)

    app.extensions['printdesk.fanout'] = fanout
    app.extensions['printdesk.lifecycle'] = LifecycleEngine(
        storage,
        CeleryNotifier(),
        default_timezone=app.config['DEFAULT_TIMEZONE'],
        max_upload_bytes=app.config['MAX_UPLOAD_BYTES']
    )

    from printdesk.errors import register_error_handlers
    register_error_handlers(app)

    # Register blueprints
    from printdesk.auth.routes import auth_bp
    from printdesk.dashboard.routes import dashboard_bp
    from printdesk.files.routes import files_bp
    from printdesk.notifications.routes import notifications_bp
    from printdesk.print_requests.routes import print_requests_bp
    from printdesk.users.routes import users_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(print_requests_bp)
    app.register_blueprint(files_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(notifications_bp)

    # Register CLI commands
    from printdesk import cli
    cli.init_app(app)

    # Health check endpoint
    @app.route('/api/health')
    def health():
        return {'status': 'ok'}, 200

    return app
