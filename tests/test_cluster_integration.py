"""
End-to-end tests with real worker subprocesses.
"""

import aiohttp
import pytest

from userhub.distributed.coordinator import Coordinator
from userhub.distributed.worker_manager import WorkerManager
from tests.test_utils import envelope, free_port, wait_for_condition


pytestmark = pytest.mark.integration


def worker_manager(num_workers: int, port: int) -> WorkerManager:
    return WorkerManager(
        num_workers=num_workers,
        port=port,
        host="127.0.0.1",
        restart=False,
        config={"LOG_DIR": "", "CONSOLE_LOG_LEVEL": "WARNING"},
    )


@pytest.mark.asyncio
async def test_worker_process_answers_dispatch(john_doe):
    manager = worker_manager(1, free_port() - 1)
    await manager.start()
    try:
        await wait_for_condition(lambda: len(manager.live_workers()) == 1)
        handle = manager.live_workers()[0]

        created = await handle.dispatch(envelope("POST", "/api/users", john_doe), timeout=15)
        assert created.status == 201

        fetched = await handle.dispatch(envelope("GET", f"/api/users/{created.body['id']}"), timeout=15)
        assert fetched.status == 200
        assert fetched.body == created.body
    finally:
        await manager.stop()

    assert handle.process.returncode is not None


@pytest.mark.asyncio
async def test_coordinator_with_workers(john_doe):
    port = free_port()
    coordinator = Coordinator(port=port, host="127.0.0.1", dispatch_timeout=15,
                              manager=worker_manager(2, port + 100))
    await coordinator.start()
    try:
        url = f"http://127.0.0.1:{port}/api/users"
        async with aiohttp.ClientSession() as session:
            async with session.post(url, json=john_doe) as resp:
                assert resp.status == 201

            async with session.get(f"{url}/not-a-uuid") as resp:
                assert resp.status == 400
                assert await resp.json() == {"message": "Invalid userId format"}

            async with session.get(f"http://127.0.0.1:{port}/nowhere") as resp:
                assert resp.status == 404
    finally:
        await coordinator.shutdown()

    assert coordinator.manager.workers == {}


@pytest.mark.asyncio
async def test_large_listing_keeps_worker_in_service():
    manager = worker_manager(1, free_port() - 1)
    await manager.start()
    try:
        handle = manager.live_workers()[0]
        for _ in range(3):
            body = {"name": "n" * 900_000, "age": 1, "hobbies": []}
            created = await handle.dispatch(envelope("POST", "/api/users", body), timeout=15)
            assert created.status == 201

        listing = await handle.dispatch(envelope("GET", "/api/users"), timeout=15)

        assert listing.status == 200
        assert len(listing.body) == 3
        assert [h.ordinal for h in manager.live_workers()] == [1]
    finally:
        await manager.stop()
