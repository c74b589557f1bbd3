from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any, Dict, List

from loguru import logger
from pydantic import BaseModel, Field, field_validator

DEFAULT_TTL = 120
DEFAULT_MAX_HOSTS = 2
DEFAULT_TARGETING = "@"


def _typed(value: Any, kind: type, default: Any, where: str) -> Any:
    """Return ``value`` if it is a ``kind``, otherwise warn and fall back to ``default``."""
    if value is None:
        return default
    if kind is int and isinstance(value, float) and value.is_integer():
        value = int(value)
    # bool is an int subclass, JSON true is not a number
    if isinstance(value, kind) and not (kind is int and isinstance(value, bool)):
        return value
    logger.warning(f"{where}: expected {kind.__name__}, got {type(value).__name__}; using default")
    return default


class Label(BaseModel):
    name: str
    ttl: int = 0  # 0 inherits the zone ttl
    max_hosts: int = 0
    closest: bool = False
    records: Dict[str, List[Any]] = Field(default_factory=dict)


class Zone(BaseModel):
    name: str
    serial: int = 0
    ttl: int = DEFAULT_TTL
    max_hosts: int = DEFAULT_MAX_HOSTS
    contact: str = ""
    targeting: str = DEFAULT_TARGETING
    logging: Dict[str, Any] = Field(default_factory=dict)
    labels: Dict[str, Label] = Field(default_factory=dict)
    document: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def _name(cls, name: str) -> str:
        if not name:
            raise ValueError("zone name must not be empty")
        return name

    @classmethod
    def new_empty(cls, name: str) -> "Zone":
        return cls(name=name, contact=f"hostmaster.{name}")

    def apply_document(self, doc: Mapping[str, Any]) -> None:
        """Rebuild the zone's typed fields from a decoded zone document.

        Every field is derived from ``doc`` alone, so applying the same
        document twice gives the same zone. Fields with the wrong JSON type
        are logged and left at their defaults.
        """
        if not isinstance(doc, Mapping):
            raise TypeError("zone document must be a JSON object")

        where = f"zone {self.name}"
        self.serial = _typed(doc.get("serial"), int, 0, f"{where} serial")
        self.ttl = _typed(doc.get("ttl"), int, DEFAULT_TTL, f"{where} ttl")
        self.max_hosts = _typed(doc.get("max_hosts"), int, DEFAULT_MAX_HOSTS, f"{where} max_hosts")
        self.contact = _typed(doc.get("contact"), str, f"hostmaster.{self.name}", f"{where} contact")
        self.targeting = _typed(doc.get("targeting"), str, DEFAULT_TARGETING, f"{where} targeting")
        self.logging = dict(_typed(doc.get("logging"), dict, {}, f"{where} logging"))
        self.labels = self._read_labels(doc.get("data"))
        self.document = copy.deepcopy(dict(doc))

    def _read_labels(self, data: Any) -> Dict[str, Label]:
        data = _typed(data, dict, {}, f"zone {self.name} data")
        labels: Dict[str, Label] = {}
        for label_name, body in data.items():
            where = f"zone {self.name} label {label_name!r}"
            if not isinstance(body, dict):
                logger.warning(f"{where}: expected object, got {type(body).__name__}; skipped")
                continue
            label = Label(name=label_name)
            # ttl, max_hosts and closest configure the label; any other key is a record type
            for key, value in body.items():
                if key == "ttl":
                    label.ttl = _typed(value, int, 0, f"{where} ttl")
                elif key == "max_hosts":
                    label.max_hosts = _typed(value, int, 0, f"{where} max_hosts")
                elif key == "closest":
                    label.closest = _typed(value, bool, False, f"{where} closest")
                else:
                    label.records[key.lower()] = copy.deepcopy(value if isinstance(value, list) else [value])
            labels[label_name] = label
        return labels
