"""
Worker Manager - spawns and supervises worker processes.

Responsibilities:
- Spawn N worker processes
- Keep the set of live worker handles current
- Detect worker exits and restart (or drop) them
- Shut workers down gracefully
"""

import asyncio
import logging
import os
import sys
from typing import Dict, List, Optional

from userhub.distributed.channel import MessageChannel
from userhub.distributed.messages import RequestEnvelope, ResponseEnvelope

logger = logging.getLogger(__name__)


WORKER_MODULE = "userhub.distributed.worker"


class WorkerHandle:
    """Coordinator-side view of one worker process."""

    def __init__(self, ordinal: int, process, channel: MessageChannel, restarts: int = 0):
        self.ordinal = ordinal
        self.process = process
        self.channel = channel
        self.restarts = restarts

    @property
    def name(self) -> str:
        return f"worker-{self.ordinal}"

    @property
    def pid(self) -> Optional[int]:
        return getattr(self.process, "pid", None)

    @property
    def alive(self) -> bool:
        return self.process.returncode is None and not self.channel.closed

    async def dispatch(self, envelope: RequestEnvelope, timeout: float) -> ResponseEnvelope:
        """Forward a request and wait for its response."""
        return await self.channel.request(envelope, timeout)


class WorkerManager:
    """
    Manages the worker processes behind the coordinator.

    Features:
    - Spawns ``num_workers`` workers with ordinals 1..N
    - Each worker listens on ``port + ordinal``
    - Restart-on-exit with a per-ordinal cap, or fail-fast
    """

    def __init__(
        self,
        num_workers: int,
        port: int,
        host: str = "0.0.0.0",
        restart: bool = True,
        restart_delay: float = 1.0,
        max_restarts: int = 5,
        config: dict = None,
    ):
        """
        Initialize worker manager.

        Args:
            num_workers: Number of worker processes to spawn
            port: Base public port
            host: Bind address passed to workers
            restart: Restart exited workers (False = fail-fast)
            restart_delay: Seconds to wait before a restart
            max_restarts: Restart cap per ordinal
            config: Extra environment variables for workers
        """
        self.num_workers = num_workers
        self.port = port
        self.host = host
        self.restart = restart
        self.restart_delay = restart_delay
        self.max_restarts = max_restarts
        self.config = config or {}

        self.workers: Dict[int, WorkerHandle] = {}
        self.restart_counts: Dict[int, int] = {}
        self._watchers: Dict[int, asyncio.Task] = {}
        self.running = False

        logger.info(
            f"WorkerManager initialized: {num_workers} workers, "
            f"supervision={'restart' if restart else 'fail-fast'}"
        )

    async def start(self):
        """Spawn all workers."""
        self.running = True
        logger.info(f"Spawning {self.num_workers} worker processes...")

        for ordinal in range(1, self.num_workers + 1):
            await self._spawn_worker(ordinal)

    def _worker_env(self, ordinal: int) -> dict:
        env = os.environ.copy()
        env["WORKER_ID"] = str(ordinal)
        env["PORT"] = str(self.port)
        env["HOST"] = self.host
        for key, value in self.config.items():
            env[key.upper()] = str(value)
        return env

    async def _spawn_worker(self, ordinal: int) -> Optional[WorkerHandle]:
        """
        Spawn a single worker process.

        Args:
            ordinal: Worker ordinal (1-based)
        """
        try:
            process = await asyncio.create_subprocess_exec(
                sys.executable, "-m", WORKER_MODULE,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                env=self._worker_env(ordinal),
            )
        except OSError as e:
            logger.error(f"Failed to spawn worker-{ordinal}: {e}")
            return None

        handle = self._register(ordinal, process)
        logger.info(f"worker-{ordinal} spawned (PID: {process.pid}, port {self.port + ordinal})")
        return handle

    def _register(self, ordinal: int, process) -> WorkerHandle:
        channel = MessageChannel(
            process.stdout,
            process.stdin,
            name=f"worker-{ordinal}",
            on_lost=lambda: self._channel_lost(ordinal, process),
        )
        channel.start()

        handle = WorkerHandle(ordinal, process, channel, self.restart_counts.get(ordinal, 0))
        self.workers[ordinal] = handle
        self._watchers[ordinal] = asyncio.create_task(self._watch(handle))
        return handle

    def _channel_lost(self, ordinal: int, process):
        """Kill a worker whose dispatch stream broke; its exit is then supervised as usual."""
        if process.returncode is not None or not self.running:
            return

        logger.error(f"worker-{ordinal} dispatch channel broke while the process is running, killing it")
        try:
            process.kill()
        except ProcessLookupError:
            logger.debug(f"worker-{ordinal} already exited")

    async def _watch(self, handle: WorkerHandle):
        """Wait for a worker to exit, then apply the supervision policy."""
        returncode = await handle.process.wait()

        if self.workers.get(handle.ordinal) is handle:
            del self.workers[handle.ordinal]

        if not self.running:
            logger.info(f"{handle.name} exited with code {returncode}")
            return

        logger.error(f"{handle.name} exited unexpectedly with code {returncode}")
        await handle.channel.close()

        if not self.restart:
            logger.warning(f"{handle.name} will not be restarted (fail-fast supervision)")
            return

        restarts = self.restart_counts.get(handle.ordinal, 0)
        if restarts >= self.max_restarts:
            logger.error(f"{handle.name} reached {self.max_restarts} restarts, giving up")
            return

        await self._restart_worker(handle.ordinal)

    async def _restart_worker(self, ordinal: int):
        """
        Restart a failed worker under the same ordinal.

        Args:
            ordinal: Worker to restart
        """
        self.restart_counts[ordinal] = self.restart_counts.get(ordinal, 0) + 1
        logger.info(
            f"Restarting worker-{ordinal} in {self.restart_delay}s "
            f"(restart {self.restart_counts[ordinal]}/{self.max_restarts})"
        )
        await asyncio.sleep(self.restart_delay)

        if not self.running:
            return

        if await self._spawn_worker(ordinal):
            logger.info(f"worker-{ordinal} restarted successfully")

    def live_workers(self) -> List[WorkerHandle]:
        """Handles of workers that can take requests, ordered by ordinal."""
        return [self.workers[o] for o in sorted(self.workers) if self.workers[o].alive]

    async def stop(self, timeout: float = 10.0):
        """Stop all workers gracefully."""
        logger.info("Stopping all workers...")
        self.running = False

        handles = list(self.workers.values())
        for handle in handles:
            logger.info(f"Stopping {handle.name}...")
            handle.channel.close_input()

        for handle in handles:
            try:
                await asyncio.wait_for(handle.process.wait(), timeout)
            except asyncio.TimeoutError:
                logger.warning(f"{handle.name} did not exit within {timeout}s, terminating")
                await self._terminate(handle)
            await handle.channel.close()

        for task in self._watchers.values():
            if not task.done():
                task.cancel()
        if self._watchers:
            await asyncio.wait(list(self._watchers.values()))
        self._watchers.clear()
        self.workers.clear()

        logger.info("All workers stopped")

    async def _terminate(self, handle: WorkerHandle):
        try:
            handle.process.terminate()
            await asyncio.wait_for(handle.process.wait(), 5)
        except ProcessLookupError:
            return
        except asyncio.TimeoutError:
            logger.error(f"Killing {handle.name}")
            handle.process.kill()
            await handle.process.wait()

    def get_status(self) -> dict:
        """Get manager status."""
        return {
            "running": self.running,
            "num_workers": self.num_workers,
            "live_workers": [handle.ordinal for handle in self.live_workers()],
            "restarts": dict(self.restart_counts),
        }
