"""
Coordinator - the public entry point of the service.

In cluster mode the coordinator owns no data: it accepts every request on
the public port, picks a live worker with its load balancer and forwards
the request over that worker's message channel. Dispatch failures become
502 (worker gone), 503 (no live workers) or 504 (timeout).

With zero workers the coordinator serves the API itself from a local
store.
"""

import asyncio
import logging
from typing import Optional

from aiohttp import web

from userhub.api.http_server import create_api_server, read_body, router_responder, run_api_server
from userhub.api.router import ApiResponse, UserRouter
from userhub.core.exceptions import UserHubError
from userhub.distributed.balancer import LoadBalancer, RoundRobinBalancer
from userhub.distributed.messages import RequestEnvelope, new_correlation_id
from userhub.distributed.worker_manager import WorkerManager
from userhub.services.user_store import UserStore

logger = logging.getLogger(__name__)


class Coordinator:
    """
    Public listener plus dispatch.

    Args:
        port: Public port
        host: Bind address
        worker_count: Number of workers (0 = serve directly)
        dispatch_timeout: Seconds to wait for a worker's answer
        balancer: Worker selection policy (default round robin)
        manager: Worker manager; built from the other arguments if omitted
    """

    def __init__(
        self,
        port: int,
        host: str = "0.0.0.0",
        worker_count: int = 0,
        dispatch_timeout: float = 10.0,
        balancer: Optional[LoadBalancer] = None,
        manager: Optional[WorkerManager] = None,
    ):
        self.port = port
        self.host = host
        self.worker_count = worker_count
        self.dispatch_timeout = dispatch_timeout
        self.balancer = balancer or RoundRobinBalancer()

        self.router: Optional[UserRouter] = None
        self.manager: Optional[WorkerManager] = None

        if manager is not None:
            self.manager = manager
        elif worker_count > 0:
            self.manager = WorkerManager(num_workers=worker_count, port=port, host=host)

        if self.manager is None:
            self.router = UserRouter(UserStore(owner="coordinator"))
            responder = router_responder(self.router)
            logger.info("Coordinator running without workers, serving requests directly")
        else:
            responder = self.forward

        self.app = create_api_server(responder, "coordinator")
        self.runner: Optional[web.AppRunner] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def clustered(self) -> bool:
        return self.manager is not None

    async def forward(self, request: web.Request) -> ApiResponse:
        """Wrap an inbound request in an envelope and dispatch it."""
        envelope = RequestEnvelope(
            id=new_correlation_id(),
            method=request.method,
            path=request.path_qs,
            body=await read_body(request),
            client=request.remote,
        )
        return await self.dispatch(envelope)

    async def dispatch(self, envelope: RequestEnvelope) -> ApiResponse:
        """
        Send ``envelope`` to a live worker and return its answer.

        Dispatch failures are converted into error responses here; the
        coordinator never validates or interprets the request itself.
        """
        try:
            handle = self.balancer.select(self.manager.live_workers(), envelope.client)
            logger.debug(f"Dispatching {envelope.method} {envelope.path} ({envelope.id}) to {handle.name}")
            response = await handle.dispatch(envelope, self.dispatch_timeout)
        except UserHubError as e:
            logger.warning(f"Dispatch of {envelope.method} {envelope.path} failed: {e.message}")
            return ApiResponse(e.status, e.to_payload())
        return ApiResponse(response.status, response.body)

    async def start(self):
        """Spawn workers (if any) and open the public listener."""
        if self.manager is not None:
            await self.manager.start()
        self.runner = await run_api_server(self.app, self.host, self.port)
        logger.info(f"Load balancer is listening on http://{self.host}:{self.port}")

    async def run(self):
        """Serve until stop() is called."""
        self._stop_event = asyncio.Event()
        await self.start()
        try:
            await self._stop_event.wait()
        finally:
            await self.shutdown()

    def stop(self):
        """Request shutdown of a running coordinator."""
        logger.info("Coordinator stopping...")
        if self._stop_event is not None:
            self._stop_event.set()

    async def shutdown(self):
        """Close the public listener, then the workers."""
        if self.runner is not None:
            await self.runner.cleanup()
            self.runner = None
        if self.manager is not None:
            await self.manager.stop()
        logger.info("Coordinator shutdown complete")

    def get_status(self) -> dict:
        """Get coordinator status."""
        status = {
            "port": self.port,
            "mode": "cluster" if self.clustered else "single",
            "balancer": self.balancer.name,
        }
        if self.manager is not None:
            status["workers"] = self.manager.get_status()
        else:
            status["user_count"] = len(self.router.store)
        return status
