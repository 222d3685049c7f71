"""
Core Infrastructure

Essential components shared by the coordinator and the workers:
- Configuration management
- Error taxonomy
"""

from .config import EnvironmentConfig, load_config, check_startup_requirements
from .exceptions import (
    ConfigurationError,
    UserHubError,
    ClientInputError,
    NotFoundError,
    RouteNotFoundError,
    DispatchError,
    DispatchTimeoutError,
    NoWorkersAvailableError,
)

__all__ = [
    'EnvironmentConfig',
    'load_config',
    'check_startup_requirements',
    'ConfigurationError',
    'UserHubError',
    'ClientInputError',
    'NotFoundError',
    'RouteNotFoundError',
    'DispatchError',
    'DispatchTimeoutError',
    'NoWorkersAvailableError',
]
