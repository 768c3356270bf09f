"""Celery worker entry point.

Notification batches must be consumed one at a time to keep their order:

    celery -A celery_worker.celery worker -Q notifications --concurrency=1
"""

import os
from dotenv import load_dotenv

# Load environment variables from .env file
dotenv_path = os.path.join(os.path.dirname(__file__), '.env')
if os.path.exists(dotenv_path):
    load_dotenv(dotenv_path)

from printdesk import create_app
from printdesk.extensions import celery

# Create Flask app to initialize Celery configuration
app = create_app(os.environ.get('FLASK_ENV', 'development'))

# Importing the module registers its tasks with the worker
import printdesk.notifications.tasks  # noqa: E402,F401

if __name__ == '__main__':
    with app.app_context():
        celery.start()
