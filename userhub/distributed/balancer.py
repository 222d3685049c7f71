"""
Worker selection policies.

A balancer picks one handle out of the coordinator's *current* live set
for each request. The live set is passed in on every call, so workers
that exit or get respawned are picked up without notifying the policy.
"""

import logging
import zlib
from typing import Optional, Sequence

from userhub.core.exceptions import ConfigurationError, NoWorkersAvailableError

logger = logging.getLogger(__name__)


NO_WORKERS_MESSAGE = "No workers available."


class LoadBalancer:
    """Base class for selection policies."""

    name = "base"

    def select(self, workers: Sequence, client_key: Optional[str] = None):
        """
        Pick a worker for one request.

        Args:
            workers: Live worker handles, ordered by ordinal
            client_key: Client address, if known

        Raises:
            NoWorkersAvailableError: If ``workers`` is empty
        """
        if not workers:
            raise NoWorkersAvailableError(NO_WORKERS_MESSAGE)
        return workers[self._index(len(workers), client_key)]

    def _index(self, count: int, client_key: Optional[str]) -> int:
        raise NotImplementedError


class RoundRobinBalancer(LoadBalancer):
    """Cycle through the live workers."""

    name = "round_robin"

    def __init__(self):
        self._counter = 0

    def _index(self, count: int, client_key: Optional[str]) -> int:
        index = self._counter % count
        self._counter += 1
        return index


class StickyBalancer(LoadBalancer):
    """
    Send each client to the same worker while the live set is stable.

    Keeps a client's reads on the worker whose store holds its writes.
    Requests without a client address are spread round robin.
    """

    name = "sticky"

    def __init__(self):
        self._fallback = RoundRobinBalancer()

    def _index(self, count: int, client_key: Optional[str]) -> int:
        if not client_key:
            return self._fallback._index(count, None)
        return zlib.crc32(client_key.encode("utf-8")) % count


BALANCERS = {
    RoundRobinBalancer.name: RoundRobinBalancer,
    StickyBalancer.name: StickyBalancer,
}


def create_balancer(name: str) -> LoadBalancer:
    """
    Build a balancer by policy name.

    Raises:
        ConfigurationError: If the name is unknown
    """
    try:
        balancer = BALANCERS[name]()
    except KeyError:
        raise ConfigurationError(f"Unknown load balancer '{name}'")
    logger.info(f"Using {balancer.name} load balancing")
    return balancer
