"""Inventory snapshotter.

Collects a full Inventory of Windows services (or an explicit subset) by
running the prober against each one in turn.

Design principles:
- Independent failure domains: enumeration, lookup and each probe are
  caught separately; the run always produces an Inventory
- Sequential: one probe at a time, no shared state between probes
- Read-only: no side effects on the services being observed
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

import structlog

from ..capabilities.services import AccessStats, Inventory, ProbeIssue
from ..capabilities.source import ServiceSource
from .prober import ServiceProber


@dataclass
class CollectionResult:
    """Inventory plus the access statistics gathered while building it."""

    inventory: Inventory
    stats: AccessStats
    issues: dict[str, list[ProbeIssue]] = field(default_factory=dict)
    enumeration_issue: Optional[ProbeIssue] = None
    duration_ms: float = 0.0


class InventorySnapshotter:
    """Builds the current Inventory and AccessStats for one run."""

    def __init__(
        self,
        source: ServiceSource,
        prober: Optional[ServiceProber] = None,
        logger: Any = None,
        slow_threshold_ms: int = 30000,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.source = source
        self.logger = logger or structlog.get_logger(__name__)
        self.prober = prober or ServiceProber(source, logger=self.logger, clock=clock)
        self.slow_threshold_ms = slow_threshold_ms
        self.clock = clock

    def collect(self, target_names: Optional[Iterable[str]] = None) -> CollectionResult:
        """Probe every resolved service and assemble the Inventory.

        Args:
            target_names: Services to probe; None or empty means all services

        Returns:
            CollectionResult. stats.total counts services actually attempted.
        """
        start_ns = time.perf_counter_ns()
        inventory = Inventory(captured_at=self.clock())
        stats = AccessStats()
        result = CollectionResult(inventory=inventory, stats=stats)

        targets = _dedupe(target_names or [])
        if targets:
            names = self._resolve_targets(targets)
        else:
            names = self._enumerate_all(result)

        for name in names:
            outcome = self.prober.probe(name)
            if outcome.issues:
                result.issues[name] = outcome.issues
            if outcome.snapshot is None:
                stats.record(None)
                continue
            inventory.add(outcome.snapshot)
            stats.record(outcome.snapshot.access_level)

        result.duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
        if result.duration_ms > self.slow_threshold_ms:
            self.logger.warning(
                "inventory_collection_slow",
                duration_ms=round(result.duration_ms, 1),
                threshold_ms=self.slow_threshold_ms,
            )
        self.logger.info(
            "inventory_collected",
            services=len(inventory),
            duration_ms=round(result.duration_ms, 1),
            **stats.to_dict(),
        )
        return result

    def _enumerate_all(self, result: CollectionResult) -> list[str]:
        try:
            return list(self.source.list_service_names())
        except Exception as exc:  # noqa: BLE001
            issue = ProbeIssue.from_exception("enumeration", exc)
            result.enumeration_issue = issue
            self.logger.warning(
                "service_enumeration_failed",
                kind=issue.kind.value,
                error=issue.message,
            )
            return []

    def _resolve_targets(self, targets: list[str]) -> list[str]:
        """Keep only requested services that exist; warn about the rest."""
        resolved = []
        for name in targets:
            try:
                found = self.source.service_exists(name)
            except Exception as exc:  # noqa: BLE001
                issue = ProbeIssue.from_exception("lookup", exc)
                self.logger.warning(
                    "service_lookup_failed",
                    service=name,
                    kind=issue.kind.value,
                    error=issue.message,
                )
                continue
            if not found:
                self.logger.warning("service_not_found", service=name)
                continue
            resolved.append(name)
        return resolved


def _dedupe(names: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered = []
    for name in names:
        if name and name not in seen:
            seen.add(name)
            ordered.append(name)
    return ordered
