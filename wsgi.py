"""
WSGI Entry Point
gunicorn --worker-class gthread -w 1 wsgi:app
"""
import logging
import os

from evalify import create_app
from evalify.extensions import socketio

app = create_app(os.getenv('EVALIFY_CONFIG'))
logger = logging.getLogger('evalify.wsgi')

if __name__ == '__main__':
    # A single process keeps one evaluation polling loop per quiz
    host = os.getenv('HOST', '0.0.0.0')
    port = int(os.getenv('PORT', 5000))
    logger.info('Serving evalify on %s:%s', host, port)

    socketio.run(
        app,
        host=host,
        port=port,
        debug=app.config.get('DEBUG', False),
        use_reloader=False,
        allow_unsafe_werkzeug=True,
    )
