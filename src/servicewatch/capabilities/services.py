"""Service inventory data models.

Provides the fixed-shape ServiceSnapshot record, the Inventory keyed by
service name, the Delta produced by comparing two inventories, and the
AccessStats counters reported for each run. Probe errors are classified
into ProbeIssue records so every failure branch shares one recovery path.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

import psutil

UNKNOWN = "Unknown"


class ServiceStatus(str, Enum):
    """Observed service state."""

    RUNNING = "Running"
    STOPPED = "Stopped"
    START_PENDING = "StartPending"
    STOP_PENDING = "StopPending"
    PAUSED = "Paused"
    UNKNOWN = "Unknown"

    @classmethod
    def from_raw(cls, raw: Optional[str]) -> "ServiceStatus":
        """Map a psutil/sc status string ("running", "stop_pending", ...) to a ServiceStatus."""
        if not raw:
            return cls.UNKNOWN
        normalized = raw.replace("_", "").replace(" ", "").lower()
        for member in cls:
            if member.value.lower() == normalized:
                return member
        return cls.UNKNOWN


class AccessLevel(str, Enum):
    """Whether the privileged config query succeeded for a service."""

    FULL = "Full"
    LIMITED = "Limited"


class ProbeErrorKind(str, Enum):
    PERMISSION = "permission"
    NOT_FOUND = "not_found"
    OTHER = "other"


def classify_error(exc: BaseException) -> ProbeErrorKind:
    """Classify a probe exception as permission, not-found or other."""
    if isinstance(exc, (psutil.AccessDenied, PermissionError)):
        return ProbeErrorKind.PERMISSION
    if isinstance(exc, (psutil.NoSuchProcess, LookupError, FileNotFoundError)):
        return ProbeErrorKind.NOT_FOUND
    return ProbeErrorKind.OTHER


@dataclass
class ProbeIssue:
    """A single failed query against one service (or the enumeration)."""

    query: str  # "base" | "config" | "dependencies" | "process_id" | "lookup" | "enumeration"
    kind: ProbeErrorKind
    message: str

    @classmethod
    def from_exception(cls, query: str, exc: BaseException) -> "ProbeIssue":
        return cls(query=query, kind=classify_error(exc), message=str(exc) or type(exc).__name__)


@dataclass
class ServiceSnapshot:
    """One service's observed state at one point in time."""

    name: str
    display_name: str
    status: ServiceStatus
    captured_at: datetime
    start_type: str = UNKNOWN
    account: str = UNKNOWN
    path: str = UNKNOWN
    description: str = UNKNOWN
    dependencies: list[str] = field(default_factory=list)
    process_id: Optional[int] = None  # Only when Running and observable
    last_error_code: int = 0
    delayed_auto_start: bool = False
    access_level: AccessLevel = AccessLevel.LIMITED

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the PascalCase layout used by the state file."""
        return {
            "Name": self.name,
            "DisplayName": self.display_name,
            "Status": self.status.value,
            "StartType": self.start_type,
            "Account": self.account,
            "Path": self.path,
            "Description": self.description,
            "Dependencies": list(self.dependencies),
            "ProcessId": self.process_id,
            "LastErrorCode": self.last_error_code,
            "DelayedAutoStart": self.delayed_auto_start,
            "AccessLevel": self.access_level.value,
            "CapturedAt": self.captured_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ServiceSnapshot":
        """Rebuild a snapshot from its state-file layout.

        Raises:
            KeyError: If a required field is missing
            ValueError: If an enum value or timestamp is malformed
            TypeError: If Dependencies is not a list
        """
        process_id = data.get("ProcessId")
        dependencies = data.get("Dependencies") or []
        if not isinstance(dependencies, list):
            raise TypeError(f"'Dependencies' must be a list, got {type(dependencies).__name__}")
        return cls(
            name=data["Name"],
            display_name=data["DisplayName"],
            status=ServiceStatus(data["Status"]),
            captured_at=datetime.fromisoformat(data["CapturedAt"]),
            start_type=data.get("StartType", UNKNOWN),
            account=data.get("Account", UNKNOWN),
            path=data.get("Path", UNKNOWN),
            description=data.get("Description", UNKNOWN),
            dependencies=list(dependencies),
            process_id=int(process_id) if process_id is not None else None,
            last_error_code=int(data.get("LastErrorCode", 0)),
            delayed_auto_start=bool(data.get("DelayedAutoStart", False)),
            access_level=AccessLevel(data.get("AccessLevel", AccessLevel.LIMITED.value)),
        )


@dataclass
class Inventory:
    """All snapshots captured in one run, keyed by service name."""

    captured_at: datetime
    services: dict[str, ServiceSnapshot] = field(default_factory=dict)

    def add(self, snapshot: ServiceSnapshot) -> None:
        self.services[snapshot.name] = snapshot

    def __len__(self) -> int:
        return len(self.services)

    def __contains__(self, name: object) -> bool:
        return name in self.services


@dataclass
class ServiceChange:
    """A service whose status, start type or account changed between runs."""

    previous: ServiceSnapshot
    current: ServiceSnapshot

    @property
    def name(self) -> str:
        return self.current.name


@dataclass
class Delta:
    """Structured difference between a previous and a current Inventory."""

    modified: list[ServiceChange] = field(default_factory=list)
    new: list[ServiceSnapshot] = field(default_factory=list)
    removed: list[ServiceSnapshot] = field(default_factory=list)
    access_denied: list[ServiceSnapshot] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.modified or self.new or self.removed)


@dataclass
class AccessStats:
    """Per-run probe outcome counters.

    total always equals full_access + limited_access + failed.
    """

    total: int = 0
    full_access: int = 0
    limited_access: int = 0
    failed: int = 0

    def record(self, access_level: Optional[AccessLevel]) -> None:
        """Count one attempted service; None means the probe failed outright."""
        self.total += 1
        if access_level is None:
            self.failed += 1
        elif access_level == AccessLevel.FULL:
            self.full_access += 1
        else:
            self.limited_access += 1

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "full_access": self.full_access,
            "limited_access": self.limited_access,
            "failed": self.failed,
        }
