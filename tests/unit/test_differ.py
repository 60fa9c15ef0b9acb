"""Unit tests for the inventory differ."""

from src.servicewatch.capabilities.services import AccessLevel, ServiceStatus
from src.servicewatch.observability.differ import (
    CHANGE_TRIGGER_FIELDS,
    changed_fields,
    compute_delta,
)
from tests.fakes import make_inventory, make_snapshot


def _names(snapshots):
    return {snapshot.name for snapshot in snapshots}


def test_unchanged_inventory_produces_empty_delta():
    previous = make_inventory(make_snapshot("svcA"), make_snapshot("svcB"))
    current = make_inventory(make_snapshot("svcA"), make_snapshot("svcB"))

    delta = compute_delta(previous, current)

    assert delta.modified == []
    assert delta.new == []
    assert delta.removed == []
    assert not delta.has_changes


def test_first_run_puts_everything_in_new():
    current = make_inventory(
        make_snapshot("svcA"),
        make_snapshot("svcB", status=ServiceStatus.STOPPED),
        make_snapshot("svcC", access_level=AccessLevel.LIMITED),
    )

    delta = compute_delta(None, current)

    assert _names(delta.new) == {"svcA", "svcB", "svcC"}
    assert delta.modified == []
    assert delta.removed == []


def test_first_run_with_empty_inventory():
    delta = compute_delta(None, make_inventory())

    assert delta.new == []
    assert delta.modified == []
    assert delta.removed == []
    assert delta.access_denied == []


def test_status_change_and_new_service_scenario():
    previous = make_inventory(
        make_snapshot("svcA", status=ServiceStatus.RUNNING, start_type="Auto", account="LocalSystem"),
    )
    current = make_inventory(
        make_snapshot("svcA", status=ServiceStatus.STOPPED, start_type="Auto", account="LocalSystem"),
        make_snapshot("svcB", status=ServiceStatus.RUNNING),
    )

    delta = compute_delta(previous, current)

    assert len(delta.modified) == 1
    change = delta.modified[0]
    assert change.name == "svcA"
    assert change.previous.status == ServiceStatus.RUNNING
    assert change.current.status == ServiceStatus.STOPPED
    assert _names(delta.new) == {"svcB"}
    assert delta.removed == []


def test_removed_service_scenario_keeps_last_known_snapshot():
    svc_c = make_snapshot("svcC", status=ServiceStatus.PAUSED, account="NT AUTHORITY\\LocalService")
    previous = make_inventory(make_snapshot("svcA"), svc_c)
    current = make_inventory(make_snapshot("svcA"))

    delta = compute_delta(previous, current)

    assert delta.removed == [svc_c]
    assert delta.removed[0].status == ServiceStatus.PAUSED
    assert delta.modified == []
    assert delta.new == []


def test_path_only_change_is_not_a_modification():
    previous = make_inventory(make_snapshot("svcA", path="C:\\old\\svc.exe", dependencies=["RpcSs"]))
    current = make_inventory(make_snapshot(
        "svcA",
        path="C:\\new\\svc.exe",
        dependencies=["RpcSs", "Tcpip"],
        process_id=4321,
        last_error_code=1077,
        delayed_auto_start=True,
    ))

    delta = compute_delta(previous, current)

    assert delta.modified == []


def test_each_trigger_field_alone_produces_modification():
    base = make_snapshot("svcA")
    variants = {
        "status": make_snapshot("svcA", status=ServiceStatus.STOPPED),
        "start_type": make_snapshot("svcA", start_type="Disabled"),
        "account": make_snapshot("svcA", account="NT AUTHORITY\\NetworkService"),
    }
    assert set(variants) == set(CHANGE_TRIGGER_FIELDS)

    for field_name, changed in variants.items():
        delta = compute_delta(make_inventory(base), make_inventory(changed))
        assert len(delta.modified) == 1, field_name
        assert changed_fields(base, changed) == [field_name]


def test_limited_access_services_are_reported_without_double_counting():
    previous = make_inventory(make_snapshot("svcA"))
    limited = make_snapshot("svcA", access_level=AccessLevel.LIMITED)
    limited_new = make_snapshot("svcB", access_level=AccessLevel.LIMITED)
    current = make_inventory(limited, limited_new)

    delta = compute_delta(previous, current)

    assert _names(delta.access_denied) == {"svcA", "svcB"}
    assert _names(delta.new) == {"svcB"}
    assert delta.modified == []


def test_access_loss_resets_start_type_and_is_reported_as_modified():
    previous = make_inventory(make_snapshot("svcA", start_type="Automatic", account="LocalSystem"))
    current = make_inventory(
        make_snapshot("svcA", start_type="Unknown", account="Unknown", access_level=AccessLevel.LIMITED)
    )

    delta = compute_delta(previous, current)

    assert len(delta.modified) == 1
    assert changed_fields(delta.modified[0].previous, delta.modified[0].current) == ["start_type", "account"]


def test_new_and_removed_are_disjoint_from_modified():
    previous = make_inventory(make_snapshot("keep"), make_snapshot("gone"), make_snapshot("flip"))
    current = make_inventory(
        make_snapshot("keep"),
        make_snapshot("flip", status=ServiceStatus.STOPPED),
        make_snapshot("fresh"),
    )

    delta = compute_delta(previous, current)
    modified = {change.name for change in delta.modified}

    assert modified == {"flip"}
    assert _names(delta.new) == {"fresh"}
    assert _names(delta.removed) == {"gone"}
    assert not (_names(delta.new) & (modified | _names(delta.removed)))
