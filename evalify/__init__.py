"""
Application Factory
Creates and configures the Flask application
"""
import logging

import click
from flask import Flask

from evalify.config import get_config
from evalify.extensions import db, socketio
from evalify.errors import register_error_handlers


def configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    logging.getLogger('evalify').setLevel(level)


def register_commands(app):
    """Register flask CLI commands"""
    from evalify.services import SubmissionService

    @app.cli.command('auto-submit')
    def auto_submit():
        """Auto-submit expired attempts on quizzes with auto_submit enabled"""
        count = SubmissionService.auto_submit_expired()
        click.echo(f'Auto-submitted {count} attempt(s)')


def create_app(config_name=None):
    """
    Application factory pattern
    Creates and configures Flask app
    """
    app = Flask(__name__)

    # Load configuration
    if config_name:
        from evalify.config import config
        app.config.from_object(config[config_name])
    else:
        app.config.from_object(get_config())

    configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    socketio.init_app(
        app,
        cors_allowed_origins=app.config['SOCKETIO_CORS_ALLOWED_ORIGINS'],
        async_mode=app.config['SOCKETIO_ASYNC_MODE']
    )

    register_error_handlers(app)

    # Register blueprints
    from evalify.routes import auth_bp, admin_bp, staff_bp, quizzes_bp, results_bp, student_bp

    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(admin_bp, url_prefix='/admin')
    app.register_blueprint(staff_bp, url_prefix='/staff')
    app.register_blueprint(quizzes_bp, url_prefix='/quizzes')
    app.register_blueprint(results_bp, url_prefix='/results')
    app.register_blueprint(student_bp, url_prefix='/student')

    # Evaluation polling
    from evalify.services import evaluation_monitor
    evaluation_monitor.init_app(app)

    # Register Socket.IO events
    from evalify.sockets import register_socket_events
    with app.app_context():
        register_socket_events()

    register_commands(app)

    # Create database tables
    with app.app_context():
        db.create_all()
        app.logger.info('Database tables created/verified')

    return app
