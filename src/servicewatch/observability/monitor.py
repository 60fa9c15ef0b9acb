"""Service monitor run orchestration.

One run: load previous state -> collect current inventory -> diff ->
report -> save current state. Per-service and state-file errors degrade
to warnings; anything else fails the run without producing a Delta.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import structlog

from ..capabilities.services import AccessStats, Delta, Inventory
from ..capabilities.source import ServiceSource
from ..persistence.state_store import StateReadError, StateStore, StateWriteError
from .differ import compute_delta
from .reporter import report_delta
from .snapshot_collector import InventorySnapshotter


@dataclass
class MonitorSettings:
    """Explicit per-run configuration for the monitor."""

    state_file: Path
    target_services: list[str] = field(default_factory=list)
    verbose: bool = False
    slow_run_threshold_ms: int = 30000

    @classmethod
    def from_config(cls, config: Any, **overrides: Any) -> "MonitorSettings":
        """Build settings from a loaded ConfigManager; non-None overrides win."""
        settings = cls(
            state_file=Path(config.get("state.file_path")),
            target_services=list(config.get("monitor.target_services")),
            verbose=bool(config.get("monitor.verbose")),
            slow_run_threshold_ms=int(config.get("monitor.slow_run_threshold_ms")),
        )
        if overrides.get("state_file") is not None:
            settings.state_file = Path(overrides["state_file"])
        if overrides.get("target_services"):
            settings.target_services = list(overrides["target_services"])
        if overrides.get("verbose"):
            settings.verbose = True
        return settings


@dataclass
class MonitorResult:
    """Outcome of one monitor run, returned to the caller."""

    success: bool
    delta: Optional[Delta] = None
    stats: Optional[AccessStats] = None
    current: Optional[Inventory] = None
    previous_captured_at: Optional[datetime] = None
    state_saved: bool = False
    error: Optional[str] = None


class ServiceMonitor:
    """Runs one snapshot/diff/persist cycle."""

    def __init__(
        self,
        settings: MonitorSettings,
        source: ServiceSource,
        store: Optional[StateStore] = None,
        snapshotter: Optional[InventorySnapshotter] = None,
        logger: Any = None,
    ):
        self.settings = settings
        self.logger = logger or structlog.get_logger(__name__)
        self.store = store or StateStore(settings.state_file)
        self.snapshotter = snapshotter or InventorySnapshotter(
            source,
            logger=self.logger,
            slow_threshold_ms=settings.slow_run_threshold_ms,
        )

    def run(self) -> MonitorResult:
        """Execute one monitoring cycle.

        Returns:
            MonitorResult with success=True and a Delta, or success=False and
            an error message if an unexpected error aborted the run.
        """
        self.logger.info(
            "service_monitor_started",
            state_file=str(self.store.path),
            targets=self.settings.target_services or "all",
        )
        try:
            previous = self._load_previous()
            collection = self.snapshotter.collect(self.settings.target_services or None)
            current = collection.inventory
            delta = compute_delta(previous, current)
            report_delta(delta, collection.stats, self.logger, verbose=self.settings.verbose)
        except Exception as exc:  # noqa: BLE001
            self.logger.error("service_monitor_failed", error=str(exc), exc_info=True)
            return MonitorResult(success=False, error=str(exc) or type(exc).__name__)

        state_saved = self._save_current(current)
        return MonitorResult(
            success=True,
            delta=delta,
            stats=collection.stats,
            current=current,
            previous_captured_at=previous.captured_at if previous is not None else None,
            state_saved=state_saved,
        )

    def _load_previous(self) -> Optional[Inventory]:
        try:
            previous = self.store.load()
        except StateReadError as exc:
            self.logger.warning("previous_state_unreadable", **exc.to_dict())
            return None
        if previous is None:
            self.logger.info("previous_state_missing", path=str(self.store.path))
        return previous

    def _save_current(self, current: Inventory) -> bool:
        try:
            self.store.save(current)
        except StateWriteError as exc:
            self.logger.warning("current_state_not_saved", **exc.to_dict())
            return False
        self.logger.info("current_state_saved", path=str(self.store.path), services=len(current))
        return True
