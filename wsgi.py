"""
WSGI entry point for Flask application.

This file is used by production WSGI servers (e.g., Gunicorn, uWSGI)
and by the Flask development server via 'flask run'.

Event streams hold a worker each, so run Gunicorn with a threaded or
gevent worker class.
"""

import os
from printdesk import create_app

# Determine environment from FLASK_ENV variable (defaults to development)
config_name = os.environ.get('FLASK_ENV', 'development')
app = create_app(config_name)

if __name__ == '__main__':
    app.run(threaded=True)
