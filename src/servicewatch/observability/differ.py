"""Inventory differ: classifies services as modified, new, removed or access-limited."""

from __future__ import annotations

from typing import Optional

from ..capabilities.services import AccessLevel, Delta, Inventory, ServiceChange, ServiceSnapshot

# Only these fields mark a service as modified. Path, dependencies, process id,
# last error code and delayed auto-start changes are not reported.
CHANGE_TRIGGER_FIELDS = ("status", "start_type", "account")


def changed_fields(previous: ServiceSnapshot, current: ServiceSnapshot) -> list[str]:
    """Return the trigger fields whose values differ between two snapshots."""
    return [
        name for name in CHANGE_TRIGGER_FIELDS
        if getattr(previous, name) != getattr(current, name)
    ]


def compute_delta(previous: Optional[Inventory], current: Inventory) -> Delta:
    """Compare the previous run's Inventory (None on first run) to the current one."""
    delta = Delta()
    previous_services = previous.services if previous is not None else {}

    for name, snapshot in current.services.items():
        if snapshot.access_level == AccessLevel.LIMITED:
            delta.access_denied.append(snapshot)

        before = previous_services.get(name)
        if before is None:
            delta.new.append(snapshot)
        elif changed_fields(before, snapshot):
            delta.modified.append(ServiceChange(previous=before, current=snapshot))

    for name, snapshot in previous_services.items():
        if name not in current.services:
            delta.removed.append(snapshot)

    return delta
