"""
Transport layer: accepted sockets turned into framed HTTP requests.
"""

from .connection import Connection, ConnectionState

__all__ = ["Connection", "ConnectionState"]
