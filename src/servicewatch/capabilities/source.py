"""Windows service source backed by psutil and sc.exe.

psutil covers enumeration, status and the config properties; sc.exe fills in
what psutil does not expose (dependencies, delayed auto-start and the last
Win32 exit code). Every query raises on failure so the prober can classify
and record it.
"""

from __future__ import annotations

import re
import subprocess
from dataclasses import dataclass
from typing import Optional, Protocol

import psutil

from .services import UNKNOWN


SC_ACCESS_DENIED = 5
SC_SERVICE_DOES_NOT_EXIST = 1060

# sc.exe qc's default buffer overflows on long binary paths or dependency lists
SC_QC_BUFFER_SIZE = "8192"

_SC_FAILED_RE = re.compile(r"FAILED\s+(\d+)")
_SC_FIELD_RE = re.compile(r"^\s*([A-Z0-9_]+)?\s*:\s?(.*)$")


@dataclass
class BaseInfo:
    """Unprivileged service state, always available from enumeration."""

    name: str
    display_name: str
    status: str


@dataclass
class ServiceConfig:
    """Properties that require SERVICE_QUERY_CONFIG access."""

    start_type: str
    account: str
    path: str
    description: str
    last_error_code: int
    delayed_auto_start: bool


class ServiceSource(Protocol):
    """Boundary to the operating system's service control manager."""

    def list_service_names(self) -> list[str]: ...

    def service_exists(self, name: str) -> bool: ...

    def query_base(self, name: str) -> BaseInfo: ...

    def query_config(self, name: str) -> ServiceConfig: ...

    def query_dependencies(self, name: str) -> list[str]: ...

    def query_process_id(self, name: str) -> Optional[int]: ...


class ScCommandError(OSError):
    """sc.exe exited with a Win32 error code."""

    def __init__(self, code: int, output: str):
        super().__init__(f"sc.exe failed with error {code}: {output.strip()}")
        self.code = code


def parse_sc_fields(output: str) -> dict[str, list[str]]:
    """Parse `sc qc` / `sc query` output into FIELD -> values.

    Continuation lines (": value" with no field name) append to the
    previous field, which is how sc.exe prints multiple DEPENDENCIES.
    """
    fields: dict[str, list[str]] = {}
    current: Optional[str] = None
    for line in output.splitlines():
        if not line.strip() or line.lstrip().startswith("[SC]"):
            continue
        match = _SC_FIELD_RE.match(line)
        if not match:
            continue
        key, value = match.group(1), match.group(2).strip()
        if key:
            current = key
            fields.setdefault(current, [])
            if value:
                fields[current].append(value)
        elif current is not None and value:
            fields[current].append(value)
    return fields


def parse_delayed_auto_start(fields: dict[str, list[str]]) -> bool:
    start_type = " ".join(fields.get("START_TYPE", []))
    return "DELAYED" in start_type.upper()


def parse_exit_code(fields: dict[str, list[str]]) -> int:
    """Return the decimal WIN32_EXIT_CODE, or 0 if absent."""
    values = fields.get("WIN32_EXIT_CODE", [])
    if not values:
        return 0
    token = values[0].split()[0]
    return int(token) if token.lstrip("-").isdigit() else 0


def raise_for_sc_failure(returncode: int, output: str) -> None:
    """Map a failed sc.exe invocation to PermissionError / LookupError / ScCommandError."""
    match = _SC_FAILED_RE.search(output)
    if returncode == 0 and not match:
        return
    code = int(match.group(1)) if match else returncode
    if code == SC_ACCESS_DENIED:
        raise PermissionError(f"Access is denied (sc.exe error {code})")
    if code == SC_SERVICE_DOES_NOT_EXIST:
        raise LookupError(f"Service does not exist (sc.exe error {code})")
    raise ScCommandError(code, output)


class PsutilServiceSource:
    """ServiceSource implementation for Windows hosts.

    Name, display name, status and pid come from the handles yielded by
    win_service_iter(), which need only enumeration and status access.
    win_service_get() opens the service for SERVICE_QUERY_CONFIG, so it is
    used for query_config alone.
    """

    def __init__(self, command_timeout_seconds: int = 15):
        self.command_timeout_seconds = command_timeout_seconds
        self._services: Optional[dict[str, "psutil.WindowsService"]] = None

    def list_service_names(self) -> list[str]:
        return [svc.name() for svc in self._enumerate().values()]

    def service_exists(self, name: str) -> bool:
        try:
            self._lookup(name)
        except LookupError:
            return False
        return True

    def query_base(self, name: str) -> BaseInfo:
        svc = self._lookup(name)
        return BaseInfo(name=svc.name(), display_name=svc.display_name(), status=svc.status())

    def query_config(self, name: str) -> ServiceConfig:
        _require_windows()
        svc = psutil.win_service_get(name)
        start_type = svc.start_type()
        account = svc.username()
        path = svc.binpath()
        description = svc.description()

        qc_fields = parse_sc_fields(self._run_sc("qc", name, SC_QC_BUFFER_SIZE))
        query_fields = parse_sc_fields(self._run_sc("query", name))

        return ServiceConfig(
            start_type=start_type.capitalize() if start_type else UNKNOWN,
            account=account or UNKNOWN,
            path=path or UNKNOWN,
            description=description or UNKNOWN,
            last_error_code=parse_exit_code(query_fields),
            delayed_auto_start=parse_delayed_auto_start(qc_fields),
        )

    def query_dependencies(self, name: str) -> list[str]:
        fields = parse_sc_fields(self._run_sc("qc", name, SC_QC_BUFFER_SIZE))
        return fields.get("DEPENDENCIES", [])

    def query_process_id(self, name: str) -> Optional[int]:
        pid = self._lookup(name).pid()
        return pid or None

    def _enumerate(self) -> dict[str, "psutil.WindowsService"]:
        """Enumerate services and cache them by case-folded name."""
        _require_windows()
        self._services = {svc.name().casefold(): svc for svc in psutil.win_service_iter()}
        return self._services

    def _lookup(self, name: str) -> "psutil.WindowsService":
        # Service names are case-insensitive; re-enumerate once on a miss
        key = name.casefold()
        services = self._services
        if services is None or key not in services:
            services = self._enumerate()
        if key not in services:
            raise LookupError(f"Service does not exist: {name}")
        return services[key]

    def _run_sc(self, command: str, name: str, *extra: str) -> str:
        """Run `sc.exe <command> <name> [extra...]` and return stdout; raises on failure."""
        result = subprocess.run(
            ["sc.exe", command, name, *extra],
            capture_output=True,
            timeout=self.command_timeout_seconds,
            check=False,
        )
        output = result.stdout.decode("utf-8", errors="replace")
        raise_for_sc_failure(result.returncode, output)
        return output


def _require_windows() -> None:
    if not psutil.WINDOWS:
        raise OSError("Windows service enumeration is only available on Windows")
