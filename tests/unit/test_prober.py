"""Unit tests for the single-service prober."""

import psutil
from structlog.testing import capture_logs

from src.servicewatch.capabilities.services import (
    UNKNOWN,
    AccessLevel,
    ProbeErrorKind,
    ServiceStatus,
)
from src.servicewatch.observability.prober import ServiceProber
from tests.fakes import FIXED_TIME, FakeService, FakeServiceSource


def _prober(*services):
    source = FakeServiceSource(list(services))
    return ServiceProber(source, clock=lambda: FIXED_TIME), source


def test_probe_full_access_running_service():
    prober, _ = _prober(FakeService("Spooler", dependencies=["RPCSS", "http"], pid=812))

    outcome = prober.probe("Spooler")

    snapshot = outcome.snapshot
    assert not outcome.failed
    assert outcome.issues == []
    assert snapshot.name == "Spooler"
    assert snapshot.display_name == "Spooler Service"
    assert snapshot.status == ServiceStatus.RUNNING
    assert snapshot.start_type == "Automatic"
    assert snapshot.account == "LocalSystem"
    assert snapshot.dependencies == ["RPCSS", "http"]
    assert snapshot.process_id == 812
    assert snapshot.access_level == AccessLevel.FULL
    assert snapshot.captured_at == FIXED_TIME


def test_config_permission_failure_still_queries_dependencies():
    prober, source = _prober(
        FakeService("WinDefend", config=psutil.AccessDenied(), dependencies=["RpcSs"])
    )

    with capture_logs() as logs:
        outcome = prober.probe("WinDefend")

    snapshot = outcome.snapshot
    assert snapshot is not None
    assert snapshot.access_level == AccessLevel.LIMITED
    assert snapshot.start_type == UNKNOWN
    assert snapshot.account == UNKNOWN
    assert snapshot.path == UNKNOWN
    assert snapshot.last_error_code == 0
    assert snapshot.delayed_auto_start is False
    assert snapshot.dependencies == ["RpcSs"]
    assert snapshot.status == ServiceStatus.RUNNING
    assert ("dependencies", "WinDefend") in source.calls

    assert [(i.query, i.kind) for i in outcome.issues] == [("config", ProbeErrorKind.PERMISSION)]
    warnings = [log for log in logs if log["event"] == "service_probe_partial_failure"]
    assert len(warnings) == 1
    assert warnings[0]["log_level"] == "warning"
    assert warnings[0]["service"] == "WinDefend"
    assert warnings[0]["query"] == "config"
    assert warnings[0]["kind"] == "permission"


def test_dependency_failure_keeps_full_access():
    prober, _ = _prober(FakeService("Dhcp", dependencies=RuntimeError("rpc unavailable")))

    outcome = prober.probe("Dhcp")

    assert outcome.snapshot.access_level == AccessLevel.FULL
    assert outcome.snapshot.dependencies == []
    assert [(i.query, i.kind) for i in outcome.issues] == [("dependencies", ProbeErrorKind.OTHER)]
    assert outcome.issues[0].message == "rpc unavailable"


def test_every_sub_query_failing_yields_limited_snapshot():
    prober, _ = _prober(FakeService(
        "Locked",
        config=PermissionError("denied"),
        dependencies=PermissionError("denied"),
        pid=psutil.NoSuchProcess(pid=0),
    ))

    outcome = prober.probe("Locked")

    assert outcome.snapshot is not None
    assert outcome.snapshot.access_level == AccessLevel.LIMITED
    assert outcome.snapshot.process_id is None
    assert [(i.query, i.kind) for i in outcome.issues] == [
        ("config", ProbeErrorKind.PERMISSION),
        ("dependencies", ProbeErrorKind.PERMISSION),
        ("process_id", ProbeErrorKind.NOT_FOUND),
    ]


def test_process_id_only_queried_when_running():
    prober, source = _prober(FakeService("Fax", status="stopped", pid=999))

    outcome = prober.probe("Fax")

    assert outcome.snapshot.status == ServiceStatus.STOPPED
    assert outcome.snapshot.process_id is None
    assert ("process_id", "Fax") not in source.calls


def test_base_query_failure_is_total_failure():
    prober, source = _prober(FakeService("Broken", status=psutil.AccessDenied()))

    with capture_logs() as logs:
        outcome = prober.probe("Broken")

    assert outcome.failed
    assert outcome.snapshot is None
    assert outcome.issues[0].query == "base"
    assert outcome.issues[0].kind == ProbeErrorKind.PERMISSION
    assert source.calls == [("base", "Broken")]
    assert logs[0]["event"] == "service_probe_failed"
    assert logs[0]["log_level"] == "warning"


def test_unknown_status_string_maps_to_unknown():
    prober, _ = _prober(FakeService("Odd", status="continue_pending"))

    outcome = prober.probe("Odd")

    assert outcome.snapshot.status == ServiceStatus.UNKNOWN
