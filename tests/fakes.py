"""In-memory stand-ins for the Windows service control manager."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from src.servicewatch.capabilities.services import (
    AccessLevel,
    Inventory,
    ServiceSnapshot,
    ServiceStatus,
)
from src.servicewatch.capabilities.source import BaseInfo, ServiceConfig

FIXED_TIME = datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc)


@dataclass
class FakeService:
    """One fake service; any attribute may be an Exception to raise instead."""

    name: str
    display_name: str = ""
    status: Any = "running"
    config: Any = None
    dependencies: Any = field(default_factory=list)
    pid: Any = 1234

    def __post_init__(self):
        if not self.display_name:
            self.display_name = f"{self.name} Service"
        if self.config is None:
            self.config = ServiceConfig(
                start_type="Automatic",
                account="LocalSystem",
                path=f"C:\\Windows\\System32\\{self.name}.exe",
                description=f"{self.name} description",
                last_error_code=0,
                delayed_auto_start=False,
            )


class FakeServiceSource:
    """ServiceSource backed by a dict of FakeService entries."""

    def __init__(self, services: list[FakeService], list_error: Optional[Exception] = None):
        self.services = {svc.name: svc for svc in services}
        self.list_error = list_error
        self.calls: list[tuple[str, str]] = []

    def list_service_names(self) -> list[str]:
        if self.list_error is not None:
            raise self.list_error
        return list(self.services)

    def service_exists(self, name: str) -> bool:
        return name in self.services

    def query_base(self, name: str) -> BaseInfo:
        self.calls.append(("base", name))
        svc = self._get(name)
        status = _value(svc.status)
        return BaseInfo(name=svc.name, display_name=svc.display_name, status=status)

    def query_config(self, name: str) -> ServiceConfig:
        self.calls.append(("config", name))
        return _value(self._get(name).config)

    def query_dependencies(self, name: str) -> list[str]:
        self.calls.append(("dependencies", name))
        return _value(self._get(name).dependencies)

    def query_process_id(self, name: str) -> Optional[int]:
        self.calls.append(("process_id", name))
        return _value(self._get(name).pid)

    def _get(self, name: str) -> FakeService:
        if name not in self.services:
            raise LookupError(f"no such service: {name}")
        return self.services[name]


def _value(value: Any) -> Any:
    if isinstance(value, Exception):
        raise value
    return value


def make_snapshot(
    name: str,
    status: ServiceStatus = ServiceStatus.RUNNING,
    start_type: str = "Automatic",
    account: str = "LocalSystem",
    access_level: AccessLevel = AccessLevel.FULL,
    **kwargs: Any,
) -> ServiceSnapshot:
    return ServiceSnapshot(
        name=name,
        display_name=kwargs.pop("display_name", f"{name} Service"),
        status=status,
        captured_at=kwargs.pop("captured_at", FIXED_TIME),
        start_type=start_type,
        account=account,
        access_level=access_level,
        **kwargs,
    )


def make_inventory(*snapshots: ServiceSnapshot, captured_at: datetime = FIXED_TIME) -> Inventory:
    inventory = Inventory(captured_at=captured_at)
    for snapshot in snapshots:
        inventory.add(snapshot)
    return inventory
