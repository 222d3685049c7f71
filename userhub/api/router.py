"""
Users API router.

Maps ``(method, path, body)`` onto a ``UserStore`` operation:

    GET    /api/users          list all
    GET    /api/users/{id}     get by id
    POST   /api/users          create
    PUT    /api/users/{id}     partial update
    DELETE /api/users/{id}     delete

The router is transport-agnostic. Workers call it from their HTTP
listener and from the dispatch channel; the coordinator calls it directly
in single-process mode.
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from userhub.api.validators import UserValidator
from userhub.core.exceptions import NotFoundError, RouteNotFoundError, UserHubError
from userhub.services.user_store import UserStore

logger = logging.getLogger(__name__)


API_NAMESPACE = "api"
COLLECTION = "users"

ENDPOINT_NOT_FOUND = "Endpoint not found."
RESOURCE_NOT_FOUND = "Resource not found."
INTERNAL_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."


@dataclass
class ApiResponse:
    """Status code plus JSON-ready payload."""
    status: int
    body: Any = None


def split_path(path: str) -> List[str]:
    """Path segments with the query string and empty segments removed."""
    path = (path or "").split("?", 1)[0]
    return [segment for segment in path.split("/") if segment]


class UserRouter:
    """Routes API requests into one process's store."""

    def __init__(self, store: UserStore):
        self.store = store

    def handle(self, method: str, path: str, body: Optional[str] = None) -> ApiResponse:
        """
        Answer one request. Never raises.

        Args:
            method: HTTP method
            path: Request path, optionally with a query string
            body: Raw request body text, if any

        Returns:
            ApiResponse with a status code and JSON payload
        """
        try:
            return self._dispatch(method.upper(), split_path(path), body)
        except UserHubError as e:
            return ApiResponse(e.status, e.to_payload())
        except Exception as e:
            logger.error(f"Internal server error on {method} {path}: {e}", exc_info=True)
            return ApiResponse(500, {"message": INTERNAL_ERROR_MESSAGE})

    def _dispatch(self, method: str, segments: List[str], body: Optional[str]) -> ApiResponse:
        if len(segments) < 2 or segments[0] != API_NAMESPACE or segments[1] != COLLECTION:
            raise RouteNotFoundError(RESOURCE_NOT_FOUND)

        if len(segments) == 2:
            if method == "GET":
                return self.list_users()
            if method == "POST":
                return self.create_user(body)
        elif len(segments) == 3:
            user_id = segments[2]
            if method == "GET":
                return self.get_user(user_id)
            if method == "PUT":
                return self.update_user(user_id, body)
            if method == "DELETE":
                return self.delete_user(user_id)

        raise RouteNotFoundError(ENDPOINT_NOT_FOUND)

    def _not_found(self, user_id: str) -> NotFoundError:
        return NotFoundError(f"User with id {user_id} not found.")

    def list_users(self) -> ApiResponse:
        return ApiResponse(200, [user.to_dict() for user in self.store.list_all()])

    def get_user(self, user_id: str) -> ApiResponse:
        UserValidator.validate_user_id(user_id)
        user = self.store.find_by_id(user_id)
        if user is None:
            raise self._not_found(user_id)
        return ApiResponse(200, user.to_dict())

    def create_user(self, body: Optional[str]) -> ApiResponse:
        fields = UserValidator.validate_create(UserValidator.parse_body(body))
        user = self.store.create(fields)
        return ApiResponse(201, user.to_dict())

    def update_user(self, user_id: str, body: Optional[str]) -> ApiResponse:
        UserValidator.validate_user_id(user_id)
        patch = UserValidator.validate_update(UserValidator.parse_body(body), user_id)
        user = self.store.replace(user_id, patch)
        if user is None:
            raise self._not_found(user_id)
        return ApiResponse(200, user.to_dict())

    def delete_user(self, user_id: str) -> ApiResponse:
        UserValidator.validate_user_id(user_id)
        if not self.store.delete(user_id):
            raise self._not_found(user_id)
        return ApiResponse(204, None)
