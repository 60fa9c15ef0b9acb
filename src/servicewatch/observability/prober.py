"""Single-service prober.

Each sub-query (config, dependencies, process id) is its own failure
domain: an access-denied config query still lets the dependency lookup run.
Only a failed base query (name / display name / status) yields no snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import structlog

from ..capabilities.services import (
    AccessLevel,
    ProbeIssue,
    ServiceSnapshot,
    ServiceStatus,
)
from ..capabilities.source import ServiceSource


@dataclass
class ProbeOutcome:
    """Result of probing one service. snapshot is None on total failure."""

    name: str
    snapshot: Optional[ServiceSnapshot]
    issues: list[ProbeIssue] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.snapshot is None


class ServiceProber:
    """Builds a ServiceSnapshot for one service, tolerating partial failure."""

    def __init__(
        self,
        source: ServiceSource,
        logger: Any = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.source = source
        self.logger = logger or structlog.get_logger(__name__)
        self.clock = clock

    def probe(self, name: str) -> ProbeOutcome:
        """Probe one service.

        Args:
            name: Service name as reported by enumeration or requested by the caller

        Returns:
            ProbeOutcome with a snapshot (Full or Limited access) and the
            list of sub-queries that failed.
        """
        issues: list[ProbeIssue] = []

        try:
            base = self.source.query_base(name)
        except Exception as exc:  # noqa: BLE001
            issue = ProbeIssue.from_exception("base", exc)
            self.logger.warning(
                "service_probe_failed",
                service=name,
                kind=issue.kind.value,
                error=issue.message,
            )
            return ProbeOutcome(name=name, snapshot=None, issues=[issue])

        snapshot = ServiceSnapshot(
            name=base.name,
            display_name=base.display_name,
            status=ServiceStatus.from_raw(base.status),
            captured_at=self.clock(),
            access_level=AccessLevel.LIMITED,
        )

        config = self._attempt(snapshot.name, "config", self.source.query_config, issues)
        if config is not None:
            snapshot.start_type = config.start_type
            snapshot.account = config.account
            snapshot.path = config.path
            snapshot.description = config.description
            snapshot.last_error_code = config.last_error_code
            snapshot.delayed_auto_start = config.delayed_auto_start
            snapshot.access_level = AccessLevel.FULL

        dependencies = self._attempt(snapshot.name, "dependencies", self.source.query_dependencies, issues)
        if dependencies is not None:
            snapshot.dependencies = list(dependencies)

        if snapshot.status == ServiceStatus.RUNNING:
            snapshot.process_id = self._attempt(
                snapshot.name, "process_id", self.source.query_process_id, issues
            )

        self.logger.debug(
            "service_probed",
            service=snapshot.name,
            status=snapshot.status.value,
            access_level=snapshot.access_level.value,
            failed_queries=[issue.query for issue in issues],
        )
        return ProbeOutcome(name=snapshot.name, snapshot=snapshot, issues=issues)

    def _attempt(
        self,
        name: str,
        query: str,
        func: Callable[[str], Any],
        issues: list[ProbeIssue],
    ) -> Any:
        """Run one sub-query; on failure record an issue and return None."""
        try:
            return func(name)
        except Exception as exc:  # noqa: BLE001
            issue = ProbeIssue.from_exception(query, exc)
            issues.append(issue)
            self.logger.warning(
                "service_probe_partial_failure",
                service=name,
                query=query,
                kind=issue.kind.value,
                error=issue.message,
            )
            return None
