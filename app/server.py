"""Lifecycle of the control-plane HTTP listener.

``ControlPlaneServer.run`` runs two tasks in one task group:

- the listener, a uvicorn server serving the FastAPI app;
- the watcher, which waits for the process stop event and then asks the
  listener to drain in-flight requests and exit.

Either task failing cancels the other and the error leaves ``run``. A
listener that cannot bind raises ``ListenerError``.
"""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from enum import Enum
from typing import Callable, Iterator

import uvicorn
from fastapi import FastAPI
from loguru import logger

from core.config import Settings


class ServerState(str, Enum):
    NOT_STARTED = "not-started"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting-down"
    STOPPED = "stopped"


class ListenerError(RuntimeError):
    """The HTTP listener could not start or failed while serving."""


class _Listener(uvicorn.Server):
    def __init__(self, config: uvicorn.Config, on_bound: Callable[[], None]):
        super().__init__(config)
        self._on_bound = on_bound

    @contextmanager
    def capture_signals(self) -> Iterator[None]:
        # signals are turned into the stop event by the process entry point
        yield

    def install_signal_handlers(self) -> None:
        pass

    async def startup(self, sockets=None) -> None:
        await super().startup(sockets=sockets)
        self._on_bound()


class ControlPlaneServer:
    def __init__(self, app: FastAPI, settings: Settings):
        self.settings = settings
        self.state = ServerState.NOT_STARTED
        self._bound = asyncio.Event()
        config = uvicorn.Config(
            app,
            host=settings.HTTP_HOST,
            port=settings.HTTP_PORT,
            timeout_keep_alive=max(1, int(settings.HTTP_IDLE_TIMEOUT)),
            timeout_graceful_shutdown=max(1, int(settings.HTTP_SHUTDOWN_TIMEOUT)),
            log_level=settings.LOG_LEVEL.lower(),
            access_log=False,
        )
        self._listener = _Listener(config, self._on_bound)

    @property
    def port(self) -> int | None:
        """Port actually bound, useful when configured with port 0."""
        for server in self._listener.servers:
            for sock in server.sockets:
                return sock.getsockname()[1]
        return None

    def _on_bound(self) -> None:
        if self._listener.started:
            self.state = ServerState.RUNNING
        self._bound.set()

    async def run(self, stop: asyncio.Event) -> None:
        logger.info(f"Starting HTTP interface on {self.settings.listen}")
        try:
            async with asyncio.TaskGroup() as tg:
                tg.create_task(self._serve(stop))
                tg.create_task(self._watch(stop))
        except ExceptionGroup as eg:
            raise eg.exceptions[0] from None
        finally:
            self.state = ServerState.STOPPED
        logger.info("HTTP interface stopped")

    async def _serve(self, stop: asyncio.Event) -> None:
        try:
            await self._listener.serve()
        except SystemExit as e:
            # uvicorn exits the process when the socket cannot be bound
            raise ListenerError(f"HTTP listener on {self.settings.listen} failed to start") from e
        except OSError as e:
            raise ListenerError(f"HTTP listener on {self.settings.listen} failed: {e}") from e
        finally:
            self._bound.set()
            # release the watcher if the listener ended on its own
            stop.set()
        if not self._listener.started:
            raise ListenerError(f"HTTP listener on {self.settings.listen} failed to start")

    async def _watch(self, stop: asyncio.Event) -> None:
        await stop.wait()
        # uvicorn skips its shutdown if asked to exit before startup completed
        await self._bound.wait()
        if self.state is ServerState.RUNNING:
            self.state = ServerState.SHUTTING_DOWN
            logger.info("shutting down http server")
        self._listener.should_exit = True
