"""Flask extensions initialization."""

from celery import Celery, Task
from flask import g, has_app_context, jsonify
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy


class ContextTask(Task):
    """Run task bodies inside the Flask app bound by ``create_app``."""

    def __call__(self, *args, **kwargs):
        # Eager execution already runs inside the caller's app context
        if has_app_context():
            return self.run(*args, **kwargs)
        with self.app.flask_app.app_context():
            return self.run(*args, **kwargs)


# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
limiter = Limiter(key_func=get_remote_address)
celery = Celery('printdesk', task_cls=ContextTask)


@login_manager.user_loader
def load_user(session_id):
    """Load the user behind a Flask-Login session id of the form ``id:epoch``."""
    from printdesk.authz.gate import load_session_user
    return load_session_user(session_id)


@login_manager.request_loader
def load_user_from_request(request):
    """Authenticate API clients presenting ``Authorization: Bearer <token>``."""
    header = request.headers.get('Authorization', '')
    if not header.startswith('Bearer '):
        return None

    from printdesk.auth.tokens import load_token_user
    return load_token_user(header[len('Bearer '):].strip())


@login_manager.unauthorized_handler
def unauthorized():
    if g.get('session_invalid'):
        return jsonify({
            'error': 'Session expired, please log in again',
            'code': 'SESSION_INVALID'
        }), 401
    return jsonify({'error': 'Authentication required', 'code': 'UNAUTHORIZED'}), 401
