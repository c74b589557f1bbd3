from pathlib import Path
from typing import List
import json
import os

from loguru import logger

from models.zone import Zone

ZONE_FILE_MODE = 0o644
ZONE_SUFFIX = ".json"


def zone_path(directory: Path, name: str) -> Path:
    # the zone name is the file stem; anything that could leave the directory is refused
    if not name or name in (".", "..") or "/" in name or "\\" in name or "\x00" in name:
        raise ValueError(f"invalid zone name: {name!r}")
    return Path(directory) / f"{name}{ZONE_SUFFIX}"


def encode_zone(doc: dict) -> bytes:
    return json.dumps(doc, separators=(",", ":"), sort_keys=True, allow_nan=False).encode("utf-8")


def save_zone(directory: Path, name: str, data: bytes) -> Path:
    """Overwrite ``<directory>/<name>.json`` with ``data``.

    Raises ``ValueError`` for an unusable zone name and ``OSError`` when the
    file cannot be written.
    """
    path = zone_path(directory, name)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, ZONE_FILE_MODE)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    return path


def load_zones(directory: Path) -> List[Zone]:
    directory = Path(directory)
    if not directory.is_dir():
        return []
    zones: List[Zone] = []
    for path in sorted(directory.glob(f"*{ZONE_SUFFIX}")):
        name = path.name[: -len(ZONE_SUFFIX)]
        if not name:
            continue
        try:
            doc = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Skipping zone file {path}: {e}")
            continue
        if not isinstance(doc, dict):
            logger.warning(f"Skipping zone file {path}: top level is not an object")
            continue
        zone = Zone.new_empty(name)
        zone.apply_document(doc)
        zones.append(zone)
    return zones
