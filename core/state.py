from __future__ import annotations
import threading
from typing import Dict, List

from models.zone import Zone

# Internal entry the registry keeps for the server itself; never an operator zone
SENTINEL_ZONE = "pgeodns"


class ZoneRegistry:
    """Live zone name -> Zone mapping shared by the control plane and the DNS path.

    The lock is held for a single lookup, upsert or snapshot only, so callers
    may use the registry from any thread or from the event loop.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._zones: Dict[str, Zone] = {SENTINEL_ZONE: Zone.new_empty(SENTINEL_ZONE)}

    def get(self, name: str) -> Zone | None:
        with self._lock:
            return self._zones.get(name)

    def upsert(self, name: str, zone: Zone) -> None:
        if zone.name != name:
            raise ValueError(f"zone {zone.name!r} cannot be registered as {name!r}")
        with self._lock:
            self._zones[name] = zone

    def names(self) -> List[str]:
        with self._lock:
            return list(self._zones)

    def __len__(self) -> int:
        with self._lock:
            return len(self._zones)


# Process-wide registry; the app factory takes another one for tests
registry = ZoneRegistry()
