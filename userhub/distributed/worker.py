"""
Worker process serving the users API from its own store.

Each worker:
- Owns one UserStore (never shared with other workers)
- Listens for HTTP on base port + its ordinal
- Answers dispatch messages from the coordinator (stdin -> stdout)
- Exits when the coordinator closes its stdin
"""

import asyncio
import logging
import os
import signal
import sys
from typing import Optional

from aiohttp import web

from userhub.api.http_server import create_api_server, router_responder, run_api_server
from userhub.api.router import UserRouter
from userhub.distributed.messages import RequestEnvelope, ResponseEnvelope, frame, read_frame
from userhub.services.user_store import UserStore

logger = logging.getLogger(__name__)


class Worker:
    """
    One worker: a store, a router and two ways in (HTTP and dispatch).

    State moves from ``starting`` to ``listening`` once the HTTP listener
    is bound, and to ``terminated`` after cleanup.
    """

    def __init__(self, worker_id: int, port: int, host: str = "0.0.0.0"):
        """
        Initialize worker.

        Args:
            worker_id: Ordinal of this worker (1-based)
            port: Base public port; this worker listens on port + worker_id
            host: Bind address
        """
        self.worker_id = worker_id
        self.name = f"worker-{worker_id}"
        self.host = host
        self.listen_port = port + worker_id

        self.store = UserStore(owner=self.name)
        self.router = UserRouter(self.store)

        self.state = "starting"
        self.running = False
        self.handled_messages = 0
        self.runner: Optional[web.AppRunner] = None
        self._channel_task: Optional[asyncio.Task] = None

        logger.info(f"Worker {worker_id} initialized (port {self.listen_port})")

    async def start(self, reader: asyncio.StreamReader = None, writer: asyncio.StreamWriter = None):
        """
        Start the listener and serve dispatch messages until EOF or stop().

        Args:
            reader: Dispatch input (default: this process's stdin)
            writer: Dispatch output (default: this process's stdout)
        """
        self.running = True
        try:
            app = create_api_server(router_responder(self.router), self.name)
            self.runner = await run_api_server(app, self.host, self.listen_port)
            self.state = "listening"

            if reader is None:
                reader = await connect_stdin()
            if writer is None:
                writer = await connect_stdout()

            self._channel_task = asyncio.create_task(self.serve_channel(reader, writer))
            await asyncio.wait([self._channel_task])
        except Exception as e:
            logger.error(f"Worker {self.worker_id} error: {e}", exc_info=True)
            raise
        finally:
            await self.cleanup()

    async def serve_channel(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        """Answer dispatch messages in arrival order until EOF."""
        while self.running:
            try:
                payload = await read_frame(reader)
            except ValueError as e:
                logger.error(f"Worker {self.worker_id}: broken dispatch stream: {e}")
                break
            if payload is None:
                logger.info(f"Worker {self.worker_id}: dispatch channel closed")
                break

            reply = self.handle_message(payload)
            if reply is not None:
                writer.write(frame(reply))
                await writer.drain()

    def handle_message(self, payload: bytes) -> Optional[bytes]:
        """
        Run one dispatch message through the router.

        Returns:
            Encoded response payload, or None for an undecodable message
        """
        try:
            envelope = RequestEnvelope.decode(payload)
        except ValueError as e:
            logger.warning(f"Worker {self.worker_id}: dropping malformed message: {e}")
            return None

        response = self.router.handle(envelope.method, envelope.path, envelope.body)
        self.handled_messages += 1
        logger.debug(
            f"Worker {self.worker_id}: {envelope.method} {envelope.path} -> {response.status} "
            f"(request {envelope.id})"
        )
        return ResponseEnvelope(id=envelope.id, status=response.status, body=response.body).encode()

    def stop(self):
        """Stop worker gracefully."""
        logger.info(f"Worker {self.worker_id} stopping...")
        self.running = False
        if self._channel_task and not self._channel_task.done():
            self._channel_task.cancel()

    async def cleanup(self):
        """Cleanup resources."""
        self.running = False
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
        self.state = "terminated"
        logger.info(f"Worker {self.worker_id} cleanup complete")

    def get_status(self) -> dict:
        """Get worker status."""
        return {
            "worker_id": self.worker_id,
            "state": self.state,
            "port": self.listen_port,
            "user_count": len(self.store),
            "handled_messages": self.handled_messages,
        }


async def connect_stdin() -> asyncio.StreamReader:
    """Wrap this process's stdin in an asyncio StreamReader."""
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, sys.stdin)
    return reader


async def connect_stdout() -> asyncio.StreamWriter:
    """Wrap this process's stdout in an asyncio StreamWriter."""
    loop = asyncio.get_running_loop()
    transport, protocol = await loop.connect_write_pipe(asyncio.streams.FlowControlMixin, sys.stdout.buffer)
    return asyncio.StreamWriter(transport, protocol, None, loop)


async def run_worker(worker_id: int, port: int, host: str = "0.0.0.0"):
    """
    Run worker process.

    SIGTERM stops the worker. SIGINT is ignored: on Ctrl-C the coordinator
    shuts its workers down by closing their stdin.
    """
    worker = Worker(worker_id, port, host)

    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGTERM, worker.stop)
    loop.add_signal_handler(signal.SIGINT, lambda: None)

    try:
        await worker.start()
    except Exception as e:
        logger.error(f"Worker {worker_id} crashed: {e}", exc_info=True)
        raise


def main():
    from userhub.core.config import EnvironmentConfig
    from userhub.logging_config import setup_logging

    config = EnvironmentConfig()
    worker_id = config.get_worker_id()

    # stdout is the dispatch channel
    setup_logging(
        log_dir=config.get("LOG_DIR"),
        log_level=config.get("LOG_LEVEL", "INFO"),
        console_level=config.get("CONSOLE_LOG_LEVEL", "INFO"),
        log_name=f"userhub-worker-{worker_id}",
        stream=sys.stderr,
    )
    logger.info(f"Worker {worker_id} starting (pid {os.getpid()})")

    try:
        asyncio.run(run_worker(worker_id, config.get_port(), config.get_host()))
    except Exception:
        sys.exit(1)


if __name__ == "__main__":
    main()
