"""
Configuration management and environment validation for the user service.

This module handles:
- Environment variable loading (.env via python-dotenv)
- Numeric settings with range clamping
- Startup error handling
"""

import os
import sys
import logging
from typing import Dict, Optional
from pathlib import Path
from dotenv import load_dotenv

from userhub.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


LOAD_BALANCERS = ("round_robin", "sticky")


def default_worker_count() -> int:
    """Available parallelism minus one (the coordinator keeps a core)."""
    return max((os.cpu_count() or 1) - 1, 0)


class EnvironmentConfig:
    """Environment configuration with validation."""

    # Optional variables with defaults
    OPTIONAL_WITH_DEFAULTS = {
        "PORT": "4000",
        "HOST": "0.0.0.0",
        "DISPATCH_TIMEOUT": "10",
        "LOAD_BALANCER": "round_robin",
        "RESTART_WORKERS": "true",
        "RESTART_DELAY": "1.0",
        "MAX_RESTARTS": "5",
        "LOG_LEVEL": "INFO",
        "CONSOLE_LOG_LEVEL": "INFO",
        "LOG_DIR": "logs",
    }

    ALL_VARIABLES = list(OPTIONAL_WITH_DEFAULTS.keys()) + ["WORKER_COUNT", "WORKER_ID"]

    def __init__(self, env_file: Optional[str] = None):
        """
        Initialize configuration.

        Args:
            env_file: Path to .env file (default: .env in cwd or a parent)
        """
        if env_file:
            load_dotenv(env_file)
        else:
            current = Path.cwd()
            for parent in [current] + list(current.parents):
                env_path = parent / ".env"
                if env_path.exists():
                    load_dotenv(env_path)
                    break

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get environment variable with optional default."""
        value = os.getenv(key)
        if value is None and key in self.OPTIONAL_WITH_DEFAULTS:
            return self.OPTIONAL_WITH_DEFAULTS[key]
        return value or default

    def _get_int(self, key: str, default: int, minimum: int, maximum: int) -> int:
        try:
            value = int(self.get(key, str(default)))
        except (ValueError, TypeError) as e:
            logger.error(f"Invalid {key} value: {e}, using default {default}")
            return default
        if value < minimum:
            logger.warning(f"{key} {value} is too low, using minimum {minimum}")
            return minimum
        if value > maximum:
            logger.warning(f"{key} {value} is too high, using maximum {maximum}")
            return maximum
        return value

    def _get_float(self, key: str, default: float, minimum: float, maximum: float) -> float:
        try:
            value = float(self.get(key, str(default)))
        except (ValueError, TypeError) as e:
            logger.error(f"Invalid {key} value: {e}, using default {default}")
            return default
        if value != value:
            logger.error(f"Invalid {key} value: NaN, using default {default}")
            return default
        if value < minimum:
            logger.warning(f"{key} {value} is too low, using minimum {minimum}")
            return minimum
        if value > maximum:
            logger.warning(f"{key} {value} is too high, using maximum {maximum}")
            return maximum
        return value

    def get_port(self) -> int:
        """Base public port; worker N listens on port + N."""
        return self._get_int("PORT", 4000, 1, 65535)

    def get_host(self) -> str:
        """Bind address for every listener."""
        return self.get("HOST", "0.0.0.0")

    def get_worker_count(self) -> int:
        """Number of worker processes (0 = coordinator serves directly)."""
        if not self.get("WORKER_COUNT"):
            return default_worker_count()
        return self._get_int("WORKER_COUNT", default_worker_count(), 0, 256)

    def get_worker_id(self) -> int:
        """Ordinal of the current worker process (1-based)."""
        return self._get_int("WORKER_ID", 1, 1, 256)

    def get_dispatch_timeout(self) -> float:
        """Seconds the coordinator waits for a worker's answer."""
        return self._get_float("DISPATCH_TIMEOUT", 10.0, 0.1, 300.0)

    def get_load_balancer(self) -> str:
        """
        Get load balancing policy name.

        Raises:
            ConfigurationError: If the policy is unknown
        """
        name = self.get("LOAD_BALANCER", "round_robin").strip().lower()
        if name not in LOAD_BALANCERS:
            raise ConfigurationError(
                f"Unknown LOAD_BALANCER '{name}'. "
                f"Expected one of: {', '.join(LOAD_BALANCERS)}"
            )
        return name

    def restart_workers(self) -> bool:
        """Restart-on-exit (True) or fail-fast (False) supervision."""
        value = self.get("RESTART_WORKERS", "true")
        return value.strip().lower() in ("true", "1", "yes", "on")

    def get_restart_delay(self) -> float:
        """Seconds to wait before respawning an exited worker."""
        return self._get_float("RESTART_DELAY", 1.0, 0.0, 60.0)

    def get_max_restarts(self) -> int:
        """Restart cap per worker ordinal."""
        return self._get_int("MAX_RESTARTS", 5, 0, 1000)

    def validate(self) -> Dict[str, str]:
        """
        Validate environment configuration.

        Returns:
            Dictionary of resolved configuration values

        Raises:
            ConfigurationError: If a setting cannot be used
        """
        config = {}
        for var in self.ALL_VARIABLES:
            value = self.get(var)
            if value:
                config[var] = value

        # Raises on unknown names
        self.get_load_balancer()
        return config


def load_config(env_file: Optional[str] = None) -> EnvironmentConfig:
    """
    Load and validate configuration.

    Args:
        env_file: Path to .env file

    Returns:
        Validated EnvironmentConfig instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    config = EnvironmentConfig(env_file)
    config.validate()
    return config


def check_startup_requirements(config: EnvironmentConfig) -> None:
    """
    Log the resolved configuration and fail fast if it cannot be used.

    Raises:
        SystemExit: If startup checks fail
    """
    try:
        config.validate()

        if sys.version_info < (3, 9):
            raise ConfigurationError(
                f"Python 3.9+ required, found {sys.version_info.major}.{sys.version_info.minor}"
            )

        logger.info("Configuration:")
        logger.info(f"  Port: {config.get_port()}")
        logger.info(f"  Workers: {config.get_worker_count()}")
        logger.info(f"  Load balancer: {config.get_load_balancer()}")
        logger.info(f"  Dispatch timeout: {config.get_dispatch_timeout()}s")
        logger.info(
            f"  Supervision: {'restart' if config.restart_workers() else 'fail-fast'} "
            f"(max {config.get_max_restarts()} restarts)"
        )
    except ConfigurationError as e:
        logger.error(f"Configuration Error: {e}")
        logger.error("Please fix the configuration and try again.")
        sys.exit(1)
