"""
Business Services

- User storage (one in-memory store per process)
"""

from .user_store import User, UserStore

__all__ = [
    'User',
    'UserStore',
]
