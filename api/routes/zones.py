import asyncio
import json
from typing import Any

from fastapi import APIRouter, Depends, Request
from loguru import logger

from api.auth import require_token
from api.responses import APIError, ok
from core.config import Settings
from core.state import SENTINEL_ZONE, ZoneRegistry
from models.zone import Zone
from services.zones_store import encode_zone, save_zone

MAX_DOCUMENT_DEPTH = 64

router = APIRouter(prefix="/zone", tags=["zones"], dependencies=[Depends(require_token)])


def get_registry(request: Request) -> ZoneRegistry:
    return request.app.state.registry


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def document_depth(doc: Any) -> int:
    """Nesting depth of a decoded JSON value, walked without recursion."""
    depth = 0
    stack = [(doc, 1)]
    while stack:
        value, level = stack.pop()
        if isinstance(value, dict):
            children = value.values()
        elif isinstance(value, list):
            children = value
        else:
            continue
        depth = max(depth, level)
        stack.extend((child, level + 1) for child in children)
    return depth


def decode_document(body: bytes) -> dict[str, Any]:
    try:
        doc = json.loads(body)
    except RecursionError:
        raise APIError(400, f"zone document nested deeper than {MAX_DOCUMENT_DEPTH} levels")
    except ValueError as e:
        raise APIError(400, str(e))
    if not isinstance(doc, dict):
        raise APIError(400, f"zone document must be a JSON object, got {type(doc).__name__}")
    # copying and serializing the document recurse once per level
    if document_depth(doc) > MAX_DOCUMENT_DEPTH:
        raise APIError(400, f"zone document nested deeper than {MAX_DOCUMENT_DEPTH} levels")
    return doc


@router.get("")
def get_zones(registry: ZoneRegistry = Depends(get_registry)):
    return ok([name for name in registry.names() if name != SENTINEL_ZONE])


@router.get("/{name}")
def get_zone(name: str, registry: ZoneRegistry = Depends(get_registry)):
    zone = registry.get(name) if name != SENTINEL_ZONE else None
    if zone is None:
        raise APIError(404, "Zone not found")
    return ok(zone.model_dump())


@router.post("/{name}")
async def add_zone(
    name: str,
    request: Request,
    registry: ZoneRegistry = Depends(get_registry),
    settings: Settings = Depends(get_settings),
):
    if name == SENTINEL_ZONE:
        raise APIError(400, "reserved zone name")

    # work on a copy so a failed request never touches the published object
    existing = registry.get(name)
    zone = existing.model_copy(deep=True) if existing is not None else Zone.new_empty(name)

    try:
        async with asyncio.timeout(settings.HTTP_READ_TIMEOUT):
            body = await request.body()
    except TimeoutError:
        raise APIError(400, "timed out reading request body")
    doc = decode_document(body)

    zone.apply_document(doc)

    try:
        data = encode_zone(doc)
    except (TypeError, ValueError) as e:
        raise APIError(400, str(e))

    # no await from here on: the write and the upsert happen together or not at all.
    # The file is small, so the blocking write stays on the event loop.
    try:
        path = save_zone(settings.zones_dir, name, data)
    except (OSError, ValueError) as e:
        logger.warning(f"Writing zone {name} failed: {e}")
        raise APIError(400, str(e))

    registry.upsert(name, zone)
    logger.info(f"Zone {name} written to {path} and published")
    return ok("Zone created successfully")
