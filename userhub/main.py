"""
Users API service entry point.

    userhub                  # coordinator + (CPU count - 1) workers
    userhub --workers 4      # coordinator + 4 workers
    userhub --single         # one process serving the API directly
"""

import argparse
import asyncio
import signal
import sys

from userhub.core.config import check_startup_requirements, load_config
from userhub.core.exceptions import ConfigurationError
from userhub.distributed.balancer import create_balancer
from userhub.distributed.coordinator import Coordinator
from userhub.distributed.worker_manager import WorkerManager
from userhub.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="In-memory users API behind a multi-process load balancer")
    parser.add_argument("--port", type=int, help="Public port (default: PORT or 4000)")
    parser.add_argument("--workers", type=int, help="Number of worker processes (default: WORKER_COUNT or CPUs - 1)")
    parser.add_argument("--single", action="store_true", help="Serve from a single process without workers")
    parser.add_argument("--env-file", help="Path to a .env file")
    return parser.parse_args(argv)


def build_coordinator(config, port: int, worker_count: int) -> Coordinator:
    """Wire a coordinator from configuration."""
    manager = None
    if worker_count > 0:
        manager = WorkerManager(
            num_workers=worker_count,
            port=port,
            host=config.get_host(),
            restart=config.restart_workers(),
            restart_delay=config.get_restart_delay(),
            max_restarts=config.get_max_restarts(),
        )

    return Coordinator(
        port=port,
        host=config.get_host(),
        worker_count=worker_count,
        dispatch_timeout=config.get_dispatch_timeout(),
        balancer=create_balancer(config.get_load_balancer()),
        manager=manager,
    )


async def run_coordinator(coordinator: Coordinator):
    """Run until SIGINT or SIGTERM."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, coordinator.stop)

    await coordinator.run()


def main(argv=None):
    args = parse_args(argv)

    try:
        config = load_config(args.env_file)
    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(
        log_dir=config.get("LOG_DIR"),
        log_level=config.get("LOG_LEVEL", "INFO"),
        console_level=config.get("CONSOLE_LOG_LEVEL", "INFO"),
        log_name="userhub",
    )
    check_startup_requirements(config)

    port = args.port if args.port is not None else config.get_port()
    if args.single:
        worker_count = 0
    elif args.workers is not None:
        worker_count = max(args.workers, 0)
    else:
        worker_count = config.get_worker_count()

    logger.info(f"Starting users API on port {port} with {worker_count} worker(s)")
    coordinator = build_coordinator(config, port, worker_count)

    try:
        asyncio.run(run_coordinator(coordinator))
    except OSError as e:
        logger.error(f"Failed to start: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
