"""
HTTP API

- Request validation
- Routing into a process-local user store
- aiohttp listener shared by workers and the coordinator
"""

from .validators import UserValidator
from .router import ApiResponse, UserRouter
from .http_server import create_api_server, run_api_server, router_responder

__all__ = [
    'UserValidator',
    'ApiResponse',
    'UserRouter',
    'create_api_server',
    'run_api_server',
    'router_responder',
]
