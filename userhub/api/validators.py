"""Input validation for the users API."""

import json
import logging
import math
import re
from typing import Any

from userhub.core.exceptions import ClientInputError

logger = logging.getLogger(__name__)


INVALID_ID_MESSAGE = "Invalid userId format"
INVALID_JSON_MESSAGE = "Invalid JSON format."

# RFC 4122 versions 1-8 plus the nil and max UUIDs
UUID_PATTERN = re.compile(
    r'^(?:[0-9a-f]{8}-[0-9a-f]{4}-[1-8][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}'
    r'|00000000-0000-0000-0000-000000000000'
    r'|ffffffff-ffff-ffff-ffff-ffffffffffff)$',
    re.IGNORECASE,
)


def _reject_constant(name: str):
    raise ValueError(f"Unsupported JSON constant: {name}")


class UserValidator:
    """Validation rules for user ids and request bodies."""

    @staticmethod
    def is_valid_uuid(value: Any) -> bool:
        return isinstance(value, str) and bool(UUID_PATTERN.match(value))

    @staticmethod
    def validate_user_id(user_id: str) -> str:
        """
        Check the id format before any lookup.

        Raises:
            ClientInputError: If the id is not a UUID
        """
        if not UserValidator.is_valid_uuid(user_id):
            raise ClientInputError(INVALID_ID_MESSAGE)
        return user_id

    @staticmethod
    def parse_body(raw: str) -> Any:
        """
        Decode a JSON request body.

        NaN and Infinity literals are rejected the same way a strict JSON
        parser rejects them.

        Raises:
            ClientInputError: If the body is empty or not valid JSON
        """
        try:
            return json.loads(raw or "", parse_constant=_reject_constant)
        except ValueError:
            raise ClientInputError(INVALID_JSON_MESSAGE)

    @staticmethod
    def validate_name(name: Any) -> str:
        if not isinstance(name, str) or not name.strip():
            raise ClientInputError("Invalid user data: 'name' must be a non-empty string.")
        return name

    @staticmethod
    def validate_age(age: Any) -> float:
        # bool is an int subclass
        if isinstance(age, bool) or not isinstance(age, (int, float)) or not math.isfinite(age):
            raise ClientInputError("Invalid user data: 'age' must be a valid number.")
        return age

    @staticmethod
    def validate_hobbies(hobbies: Any) -> list:
        if not isinstance(hobbies, list) or not all(isinstance(h, str) for h in hobbies):
            raise ClientInputError("Invalid user data: 'hobbies' must be an array of strings.")
        return hobbies

    @staticmethod
    def _require_object(body: Any) -> dict:
        if not isinstance(body, dict):
            raise ClientInputError("Invalid user data: body must be a JSON object.")
        return body

    @classmethod
    def validate_create(cls, body: Any) -> dict:
        """
        Validate a create body; all three fields are required.

        Returns:
            Dictionary with exactly ``name``, ``age`` and ``hobbies``
        """
        body = cls._require_object(body)
        if "id" in body:
            raise ClientInputError("Invalid user data: 'id' must not be provided.")
        return {
            "name": cls.validate_name(body.get("name")),
            "age": cls.validate_age(body.get("age")),
            "hobbies": cls.validate_hobbies(body.get("hobbies")),
        }

    @classmethod
    def validate_update(cls, body: Any, user_id: str) -> dict:
        """
        Validate a partial update body.

        Only supplied fields are checked and returned; unknown keys are
        dropped. An ``id`` key is accepted only when it equals ``user_id``.
        """
        body = cls._require_object(body)
        if "id" in body and body["id"] != user_id:
            raise ClientInputError("Invalid user data: 'id' cannot be changed.")

        patch = {}
        if "name" in body:
            patch["name"] = cls.validate_name(body["name"])
        if "age" in body:
            patch["age"] = cls.validate_age(body["age"])
        if "hobbies" in body:
            patch["hobbies"] = cls.validate_hobbies(body["hobbies"])
        return patch
