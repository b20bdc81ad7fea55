"""
Flask Extensions
Extension singletons shared by the factory, models and services
"""
from flask_sqlalchemy import SQLAlchemy
from flask_socketio import SocketIO

# Bound to the app in create_app()
db = SQLAlchemy()
socketio = SocketIO()
