import asyncio
import signal
import sys

from loguru import logger

from app.main import create_app
from app.server import ControlPlaneServer, ListenerError
from core.config import Settings


def setup_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


async def serve(settings: Settings) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    if not settings.HTTP_TOKEN:
        logger.warning("HTTP_TOKEN is not set; every request will be rejected")

    server = ControlPlaneServer(create_app(settings), settings)
    await server.run(stop)


def main() -> int:
    settings = Settings()
    setup_logging(settings.LOG_LEVEL)
    try:
        asyncio.run(serve(settings))
    except ListenerError as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
