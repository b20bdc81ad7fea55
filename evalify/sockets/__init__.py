"""
Sockets Package
"""
from evalify.sockets.evaluation_events import register_socket_events

__all__ = ['register_socket_events']
