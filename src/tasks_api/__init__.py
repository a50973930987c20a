"""
Tasks API package.

A FastAPI service exposing CRUD endpoints for tasks, with session-based
authentication mounted under /api/auth and generated API documentation.
"""

__version__ = "1.0.0"
