import asyncio
import socket
import time

import httpx
import pytest

from app.main import create_app
from app.server import ControlPlaneServer, ListenerError, ServerState
from core.config import Settings
from core.state import ZoneRegistry


async def _wait_for(predicate, timeout: float = 5.0) -> None:
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


def _slow_app(settings: Settings, registry: ZoneRegistry, started: asyncio.Event, seconds: float):
    app = create_app(settings, registry)

    @app.get("/slow")
    async def slow():
        started.set()
        await asyncio.sleep(seconds)
        return {"success": True, "result": "done"}

    return app


@pytest.mark.asyncio
async def test_server_serves_until_stopped(
    settings: Settings, registry: ZoneRegistry, auth: dict[str, str]
) -> None:
    server = ControlPlaneServer(create_app(settings, registry), settings)
    assert server.state is ServerState.NOT_STARTED

    stop = asyncio.Event()
    task = asyncio.create_task(server.run(stop))
    await _wait_for(lambda: server.state is ServerState.RUNNING)

    async with httpx.AsyncClient(base_url=f"http://127.0.0.1:{server.port}") as http:
        resp = await http.post("/zone/example.com", headers=auth, content=b'{"records":[]}')
        assert resp.status_code == 200
        resp = await http.get("/zone", headers=auth)
        assert resp.json() == {"success": True, "result": ["example.com"]}

    stop.set()
    await asyncio.wait_for(task, 5)
    assert server.state is ServerState.STOPPED


@pytest.mark.asyncio
async def test_stop_before_start(settings: Settings, registry: ZoneRegistry) -> None:
    server = ControlPlaneServer(create_app(settings, registry), settings)
    stop = asyncio.Event()
    stop.set()

    await asyncio.wait_for(server.run(stop), 5)

    assert server.state is ServerState.STOPPED


@pytest.mark.asyncio
async def test_shutdown_waits_for_in_flight_request(settings: Settings, registry: ZoneRegistry) -> None:
    started = asyncio.Event()
    server = ControlPlaneServer(_slow_app(settings, registry, started, 0.5), settings)
    stop = asyncio.Event()
    task = asyncio.create_task(server.run(stop))
    await _wait_for(lambda: server.state is ServerState.RUNNING)

    async with httpx.AsyncClient(base_url=f"http://127.0.0.1:{server.port}") as http:
        request = asyncio.create_task(http.get("/slow"))
        await asyncio.wait_for(started.wait(), 5)
        stop.set()
        await _wait_for(lambda: server.state is ServerState.SHUTTING_DOWN)

        resp = await request

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "result": "done"}
    await asyncio.wait_for(task, 5)
    assert server.state is ServerState.STOPPED


@pytest.mark.asyncio
async def test_shutdown_deadline_aborts_slow_request(settings: Settings, registry: ZoneRegistry) -> None:
    settings.HTTP_SHUTDOWN_TIMEOUT = 1
    settings.HTTP_WRITE_TIMEOUT = 60
    started = asyncio.Event()
    server = ControlPlaneServer(_slow_app(settings, registry, started, 30), settings)
    stop = asyncio.Event()
    task = asyncio.create_task(server.run(stop))
    await _wait_for(lambda: server.state is ServerState.RUNNING)

    async with httpx.AsyncClient(base_url=f"http://127.0.0.1:{server.port}", timeout=10) as http:
        request = asyncio.create_task(http.get("/slow"))
        await asyncio.wait_for(started.wait(), 5)
        began = time.monotonic()
        stop.set()
        await asyncio.wait_for(task, 10)
        elapsed = time.monotonic() - began

        try:
            resp = await request
        except httpx.HTTPError:
            resp = None

    assert elapsed < 5
    assert resp is None or resp.status_code != 200
    assert server.state is ServerState.STOPPED


@pytest.mark.asyncio
async def test_bind_failure_raises(settings: Settings, registry: ZoneRegistry) -> None:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as taken:
        taken.bind(("127.0.0.1", 0))
        taken.listen(1)
        settings.HTTP_PORT = taken.getsockname()[1]
        server = ControlPlaneServer(create_app(settings, registry), settings)

        with pytest.raises(ListenerError):
            await asyncio.wait_for(server.run(asyncio.Event()), 5)

    assert server.state is ServerState.STOPPED
