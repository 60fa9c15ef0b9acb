"""Delta reporting: structured log events and a plain-text console summary."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..capabilities.services import AccessStats, Delta
from .differ import changed_fields

if TYPE_CHECKING:
    from .monitor import MonitorResult


def report_delta(delta: Delta, stats: AccessStats, logger: Any, verbose: bool = False) -> None:
    """Emit one log event per change plus a run summary.

    Limited-access services are listed individually only in verbose mode.
    """
    for change in delta.modified:
        fields = changed_fields(change.previous, change.current)
        logger.warning(
            "service_modified",
            service=change.name,
            display_name=change.current.display_name,
            changed_fields=fields,
            before={name: _plain(getattr(change.previous, name)) for name in fields},
            after={name: _plain(getattr(change.current, name)) for name in fields},
        )

    for snapshot in delta.new:
        logger.info(
            "service_new",
            service=snapshot.name,
            display_name=snapshot.display_name,
            status=snapshot.status.value,
            start_type=snapshot.start_type,
        )

    for snapshot in delta.removed:
        logger.warning(
            "service_removed",
            service=snapshot.name,
            display_name=snapshot.display_name,
            last_status=snapshot.status.value,
        )

    if verbose:
        for snapshot in delta.access_denied:
            logger.info(
                "service_access_limited",
                service=snapshot.name,
                display_name=snapshot.display_name,
                status=snapshot.status.value,
            )

    logger.info(
        "service_monitor_summary",
        modified=len(delta.modified),
        new=len(delta.new),
        removed=len(delta.removed),
        access_limited=len(delta.access_denied),
        **stats.to_dict(),
    )


def format_summary(result: "MonitorResult", verbose: bool = False) -> str:
    """Render a short human-readable summary of a monitor run."""
    if not result.success or result.delta is None or result.stats is None:
        return f"Service monitor failed: {result.error or 'unknown error'}"

    delta, stats = result.delta, result.stats
    lines = [
        f"Services checked: {stats.total} "
        f"(full access: {stats.full_access}, limited: {stats.limited_access}, failed: {stats.failed})",
    ]
    if result.previous_captured_at is None:
        lines.append("No previous state; baseline recorded.")
    elif not delta.has_changes:
        lines.append(f"No changes since {result.previous_captured_at.isoformat()}.")
    else:
        lines.append(f"Changes since {result.previous_captured_at.isoformat()}:")

    for change in sorted(delta.modified, key=lambda c: c.name.lower()):
        details = ", ".join(
            f"{name}: {_plain(getattr(change.previous, name))} -> {_plain(getattr(change.current, name))}"
            for name in changed_fields(change.previous, change.current)
        )
        lines.append(f"  ~ {change.name} ({details})")
    if result.previous_captured_at is not None:
        for snapshot in sorted(delta.new, key=lambda s: s.name.lower()):
            lines.append(f"  + {snapshot.name} [{snapshot.status.value}]")
    for snapshot in sorted(delta.removed, key=lambda s: s.name.lower()):
        lines.append(f"  - {snapshot.name}")

    if delta.access_denied:
        lines.append(f"Limited access: {len(delta.access_denied)} service(s)")
        if verbose:
            for snapshot in sorted(delta.access_denied, key=lambda s: s.name.lower()):
                lines.append(f"  ! {snapshot.name}")
    return "\n".join(lines)


def _plain(value: Any) -> Any:
    return getattr(value, "value", value)
