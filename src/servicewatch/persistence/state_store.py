"""JSON state store for the previous run's Inventory.

The file layout is {"Timestamp": <ISO-8601>, "Services": {<name>: {...}}}.
Writes go to a temporary file in the same directory and are moved into
place with os.replace, so an interrupted run never leaves a half-written file.
No locking: concurrent runs against the same path race and the last writer wins.
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import structlog

from ..capabilities.services import Inventory, ServiceSnapshot

logger = structlog.get_logger(__name__)


@dataclass
class StateStoreError(Exception):
    """Structured error for state file operations."""

    code: str
    message: str
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details or {},
        }


class StateReadError(StateStoreError):
    """Previous state exists but could not be read or parsed."""


class StateWriteError(StateStoreError):
    """Current state could not be persisted."""


class StateStore:
    """Loads and saves one Inventory at a fixed path."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> Optional[Inventory]:
        """Load the persisted Inventory.

        Returns:
            The Inventory, or None if no state file exists yet

        Raises:
            StateReadError: If the file cannot be read or is malformed
        """
        if not self.path.exists():
            return None

        try:
            raw = self.path.read_bytes()
        except OSError as exc:
            raise StateReadError(
                code="state_unreadable",
                message=f"Could not read state file: {exc}",
                details={"path": str(self.path)},
            ) from exc

        try:
            # UnicodeDecodeError is a ValueError: undecodable bytes count as malformed
            data = json.loads(raw.decode("utf-8"))
            inventory = _inventory_from_dict(data)
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise StateReadError(
                code="state_malformed",
                message=f"Malformed state file: {exc}",
                details={"path": str(self.path)},
            ) from exc

        logger.debug("state_loaded", path=str(self.path), services=len(inventory))
        return inventory

    def save(self, inventory: Inventory) -> None:
        """Atomically write the Inventory to the state file.

        Raises:
            StateWriteError: If the directory cannot be created or the write fails
        """
        payload = json.dumps(_inventory_to_dict(inventory), indent=2, sort_keys=False)
        tmp_name: Optional[str] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(payload)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StateWriteError(
                code="state_write_failed",
                message=f"Could not write state file: {exc}",
                details={"path": str(self.path)},
            ) from exc

        logger.debug("state_saved", path=str(self.path), services=len(inventory))


def _inventory_to_dict(inventory: Inventory) -> dict[str, Any]:
    return {
        "Timestamp": inventory.captured_at.isoformat(),
        "Services": {name: snapshot.to_dict() for name, snapshot in inventory.services.items()},
    }


def _inventory_from_dict(data: Any) -> Inventory:
    if not isinstance(data, dict):
        raise TypeError(f"Expected a JSON object, got {type(data).__name__}")
    services = data["Services"]
    if not isinstance(services, dict):
        raise TypeError("'Services' must be a JSON object")
    inventory = Inventory(captured_at=datetime.fromisoformat(data["Timestamp"]))
    for name, entry in services.items():
        snapshot = ServiceSnapshot.from_dict(entry)
        inventory.services[name] = snapshot
    return inventory
