"""
User Store - in-memory collection of user records owned by one process.

Each worker (or the coordinator in single-process mode) constructs exactly
one store and passes it to its router. Stores are never shared or
reconciled across processes.
"""

import logging
import uuid
from dataclasses import dataclass, field, replace as replace_record
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


USER_FIELDS = ("name", "age", "hobbies")


@dataclass(frozen=True)
class User:
    """A user record. Instances are immutable; updates build a new record."""
    id: str
    name: str
    age: float
    hobbies: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to a JSON-ready dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "age": self.age,
            "hobbies": list(self.hobbies),
        }


class UserStore:
    """
    Ordered collection of users for a single process.

    Insertion order is preserved; replacing a record keeps its position.
    All operations are synchronous and touch memory only.
    """

    def __init__(self, owner: str = "local"):
        self.owner = owner
        self._users: Dict[str, User] = {}

    def __len__(self) -> int:
        return len(self._users)

    def list_all(self) -> List[User]:
        """All users in insertion order."""
        return list(self._users.values())

    def find_by_id(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    def create(self, fields: dict) -> User:
        """
        Create a user with a fresh id and append it.

        Args:
            fields: Validated ``name``, ``age`` and ``hobbies``

        Returns:
            The new record
        """
        user_id = str(uuid.uuid4())
        while user_id in self._users:
            user_id = str(uuid.uuid4())

        user = User(
            id=user_id,
            name=fields["name"],
            age=fields["age"],
            hobbies=list(fields["hobbies"]),
        )
        self._users[user_id] = user
        logger.debug(f"[{self.owner}] created user {user_id} ({len(self._users)} total)")
        return user

    def replace(self, user_id: str, patch: dict) -> Optional[User]:
        """
        Shallow-merge ``patch`` over an existing record.

        Fields missing from ``patch`` keep their previous value; ``id`` is
        never changed.

        Returns:
            The updated record, or None if ``user_id`` is unknown
        """
        existing = self._users.get(user_id)
        if existing is None:
            return None

        changes = {key: patch[key] for key in USER_FIELDS if key in patch}
        if "hobbies" in changes:
            changes["hobbies"] = list(changes["hobbies"])

        updated = replace_record(existing, **changes)
        self._users[user_id] = updated
        logger.debug(f"[{self.owner}] updated user {user_id}: {sorted(changes)}")
        return updated

    def delete(self, user_id: str) -> bool:
        """Remove a user; True if it existed."""
        if self._users.pop(user_id, None) is None:
            return False
        logger.debug(f"[{self.owner}] deleted user {user_id} ({len(self._users)} left)")
        return True
