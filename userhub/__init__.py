"""Users API service with a multi-process dispatch layer."""

from .services.user_store import User, UserStore
from .api.router import ApiResponse, UserRouter
from .distributed.coordinator import Coordinator
from .distributed.worker_manager import WorkerManager

__version__ = "1.0.0"

__all__ = [
    "User",
    "UserStore",
    "ApiResponse",
    "UserRouter",
    "Coordinator",
    "WorkerManager",
]
