"""
Pytest configuration and shared fixtures for the users API tests.

Provides hypothesis profiles, store/router fixtures and request helpers
used across the suites.
"""

import json
import os
import sys
from pathlib import Path

import pytest
from hypothesis import settings, Verbosity

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from userhub.api.router import UserRouter
from userhub.services.user_store import UserStore


# ============================================================================
# Hypothesis Configuration
# ============================================================================

settings.register_profile("default", max_examples=100, deadline=None)
settings.register_profile("ci", max_examples=1000, deadline=None)
settings.register_profile("dev", max_examples=20, verbosity=Verbosity.verbose)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))


# ============================================================================
# Store and Router Fixtures
# ============================================================================

@pytest.fixture
def store():
    """Empty user store."""
    return UserStore(owner="test")


@pytest.fixture
def router(store):
    """Router bound to the ``store`` fixture."""
    return UserRouter(store)


@pytest.fixture
def john_doe():
    """Create body used by the API scenarios."""
    return {"name": "John Doe", "age": 30, "hobbies": ["reading", "sports"]}


@pytest.fixture
def create_user(router, john_doe):
    """Factory that creates a user through the router and returns its payload."""
    def _create(**overrides):
        body = dict(john_doe, **overrides)
        response = router.handle("POST", "/api/users", json.dumps(body))
        assert response.status == 201, response.body
        return response.body

    return _create
