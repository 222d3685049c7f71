"""
Request/response channel to one worker process.

Requests are written as length-prefixed JSON frames to the worker's stdin;
responses are read back from its stdout and matched to the waiting caller by
correlation id. Each request is bounded by a timeout, and every pending
request fails with ``DispatchError`` as soon as the worker's stream
closes, so a dead worker never leaves a client hanging.
"""

import asyncio
import logging
from typing import Callable, Dict, Optional

from userhub.core.exceptions import DispatchError, DispatchTimeoutError
from userhub.distributed.messages import RequestEnvelope, ResponseEnvelope, frame, read_frame

logger = logging.getLogger(__name__)


WORKER_UNAVAILABLE = "Worker unavailable."
WORKER_TIMEOUT = "Worker did not respond in time."


class MessageChannel:
    """
    Correlated request/response messaging over a pair of byte streams.

    Args:
        reader: Stream carrying response frames (worker stdout)
        writer: Stream receiving request frames (worker stdin)
        name: Peer name used in log lines
        on_lost: Called when the response stream ends or breaks while the
            channel is still in use
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer,
        name: str = "worker",
        on_lost: Optional[Callable[[], None]] = None,
    ):
        self.name = name
        self._reader = reader
        self._writer = writer
        self._pending: Dict[str, asyncio.Future] = {}
        self._reader_task: Optional[asyncio.Task] = None
        self.closed = False
        self._on_lost = on_lost
        self._closing = False

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def start(self):
        """Start consuming responses."""
        if self._reader_task is None:
            self._reader_task = asyncio.create_task(self._read_loop())

    async def request(self, envelope: RequestEnvelope, timeout: float) -> ResponseEnvelope:
        """
        Send ``envelope`` and wait for the matching response.

        Raises:
            DispatchError: If the channel is closed or closes while waiting
            DispatchTimeoutError: If no response arrives within ``timeout``
        """
        if self.closed:
            raise DispatchError(WORKER_UNAVAILABLE)

        future = asyncio.get_running_loop().create_future()
        self._pending[envelope.id] = future
        try:
            try:
                self._writer.write(frame(envelope.encode()))
                await self._writer.drain()
            except (ConnectionError, RuntimeError) as e:
                logger.warning(f"Failed to send request {envelope.id} to {self.name}: {e}")
                raise DispatchError(WORKER_UNAVAILABLE)

            try:
                return await asyncio.wait_for(future, timeout)
            except asyncio.TimeoutError:
                logger.warning(f"{self.name} did not answer request {envelope.id} within {timeout}s")
                raise DispatchTimeoutError(WORKER_TIMEOUT)
        finally:
            self._pending.pop(envelope.id, None)

    async def _read_loop(self):
        try:
            while True:
                try:
                    payload = await read_frame(self._reader)
                except ValueError as e:
                    logger.error(f"Broken stream from {self.name}: {e}")
                    break
                if payload is None:
                    break

                try:
                    response = ResponseEnvelope.decode(payload)
                except ValueError as e:
                    logger.warning(f"Dropping malformed message from {self.name}: {e}")
                    continue

                future = self._pending.get(response.id)
                if future is None or future.done():
                    logger.warning(f"Dropping late response {response.id} from {self.name}")
                    continue
                future.set_result(response)
        except ConnectionError as e:
            logger.error(f"Channel to {self.name} failed: {e}")
        finally:
            self._fail_pending()
            if not self._closing and self._on_lost is not None:
                self._on_lost()

    def _fail_pending(self):
        self.closed = True
        if self._pending:
            logger.warning(f"Channel to {self.name} closed with {len(self._pending)} pending request(s)")
        for future in self._pending.values():
            if not future.done():
                future.set_exception(DispatchError(WORKER_UNAVAILABLE))

    def close_input(self):
        """
        Close the request stream only.

        The worker sees EOF and exits once it has answered what it already
        received; those answers are still delivered.
        """
        self.closed = True
        self._closing = True
        try:
            self._writer.close()
        except (ConnectionError, RuntimeError) as e:
            logger.debug(f"Error closing channel to {self.name}: {e}")

    async def close(self):
        """Close the request stream and stop reading responses."""
        self.close_input()

        if self._reader_task and not self._reader_task.done():
            self._reader_task.cancel()
            await asyncio.wait([self._reader_task])
        self._fail_pending()
