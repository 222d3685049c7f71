"""
HTTP listener shared by workers and the coordinator.

A single catch-all route hands every request to a *responder*
coroutine which returns an ``ApiResponse``; this module owns the
conversion to aiohttp responses, the access log and the last-resort
500 barrier.
"""

import logging
from typing import Awaitable, Callable

from aiohttp import web

from userhub.api.router import ApiResponse, INTERNAL_ERROR_MESSAGE, UserRouter
from userhub.logging_config import log_with_context

logger = logging.getLogger(__name__)


Responder = Callable[[web.Request], Awaitable[ApiResponse]]


async def read_body(request: web.Request) -> str:
    """Whole request body as text; undecodable bytes are replaced."""
    raw = await request.read()
    return raw.decode("utf-8", errors="replace")


def to_web_response(response: ApiResponse) -> web.Response:
    """Convert an ApiResponse to an aiohttp response."""
    if response.status == 204:
        return web.Response(status=204, content_type="application/json")
    return web.json_response(response.body, status=response.status)


def router_responder(router: UserRouter) -> Responder:
    """Responder that answers from a local router and store."""

    async def respond(request: web.Request) -> ApiResponse:
        body = await read_body(request)
        return router.handle(request.method, request.path_qs, body)

    return respond


async def handle_request(request: web.Request) -> web.Response:
    """Catch-all handler."""
    responder = request.app["responder"]
    try:
        response = await responder(request)
    except web.HTTPException as e:
        # Raised by aiohttp while reading the request, e.g. 413 for oversized bodies
        logger.warning(f"Rejected {request.method} {request.path_qs}: {e.status} {e.reason}")
        response = ApiResponse(e.status, {"message": e.reason})
    except Exception as e:
        logger.error(f"Unhandled error on {request.method} {request.path_qs}: {e}", exc_info=True)
        response = ApiResponse(500, {"message": INTERNAL_ERROR_MESSAGE})

    log_with_context(
        logger,
        logging.INFO,
        f"{request.method} {request.path_qs} -> {response.status}",
        server=request.app["server_name"],
        status=response.status,
    )
    return to_web_response(response)


def create_api_server(responder: Responder, server_name: str) -> web.Application:
    """
    Create the API application.

    Args:
        responder: Coroutine producing an ApiResponse for each request
        server_name: Name used in log lines, e.g. ``worker-2``

    Returns:
        aiohttp Application
    """
    app = web.Application()
    app["responder"] = responder
    app["server_name"] = server_name

    app.router.add_route("*", "/{tail:.*}", handle_request)

    logger.debug(f"API server created for {server_name}")
    return app


async def run_api_server(app: web.Application, host: str, port: int) -> web.AppRunner:
    """
    Start serving ``app`` on ``host:port``.

    Returns:
        The AppRunner; call ``cleanup()`` on it to stop listening
    """
    runner = web.AppRunner(app, access_log=None)
    await runner.setup()

    site = web.TCPSite(runner, host, port)
    await site.start()

    logger.info(f"{app['server_name']} is listening on http://{host}:{port}")
    return runner
