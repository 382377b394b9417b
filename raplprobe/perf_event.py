"""RAPL power events exposed by the perf_events sysfs."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

from raplprobe.domains import RaplDomainType

PERF_MAX_ENERGY = 2**64 - 1
PERF_SYSFS_DIR = "/sys/devices/power"
PMU_TYPE_PATH = "/sys/devices/power/type"
POWER_EVENTS_DIR = "/sys/devices/power/events"

_ADVICE = "Try to set kernel.perf_event_paranoid to 0 or -1, or to adjust file permissions."
_U32_MAX = 2**32 - 1
_UNSIGNED = re.compile(r"\+?[0-9]+")
_HEX = re.compile(r"\+?[0-9a-fA-F]+")

_EVENT_DOMAINS = {
    "cores": RaplDomainType.PP0,
    "gpu": RaplDomainType.PP1,
    "psys": RaplDomainType.PLATFORM,
    "pkg": RaplDomainType.PACKAGE,
    "ram": RaplDomainType.DRAM,
}


@dataclass(frozen=True)
class PowerEvent:
    """A RAPL perf event, as described in the sysfs."""

    name: str
    """Name of the event, which is a RAPL domain name such as "pkg"."""
    domain: RaplDomainType
    code: int
    """Event code, the "config" field for perf_event_open."""
    unit: str
    """Should be "Joules"."""
    scale: float
    """Scale to apply to get joules: ``energy_j = count * scale``."""


def parse_event_name(name: str) -> RaplDomainType | None:
    """Return the RAPL domain of a perf event name, or None if unknown."""
    return _EVENT_DOMAINS.get(name)


def pmu_type(path: str | os.PathLike = PMU_TYPE_PATH) -> int:
    """Return the type of the RAPL PMU in the Linux kernel."""
    try:
        text = Path(path).read_text()
    except OSError as e:
        raise OSError(f"Failed to read {path}: {e}") from e
    value = text.rstrip()
    if not _UNSIGNED.fullmatch(value) or int(value) > _U32_MAX:
        raise ValueError(f"Failed to parse {path}: '{text}'")
    return int(value)


def _read_event_code(path: Path) -> int:
    try:
        text = path.read_text()
    except OSError as e:
        raise OSError(f"Could not read {path}. {_ADVICE} {e}") from e
    stripped = text.rstrip()
    prefix = "event=0x"
    if not stripped.startswith(prefix):
        raise ValueError(f"Failed to strip {path}: '{text}'")
    code_str = stripped[len(prefix):]
    if not _HEX.fullmatch(code_str) or int(code_str, 16) > 0xFF:
        raise ValueError(f"Failed to parse {path}: '{text}'")
    return int(code_str, 16)


def _read_event_unit(main: Path) -> str:
    return main.with_name(main.name + ".unit").read_text().rstrip()


def _read_event_scale(main: Path) -> float:
    path = main.with_name(main.name + ".scale")
    text = path.read_text()
    try:
        return float(text.rstrip())
    except ValueError:
        raise ValueError(f"Failed to parse {path}: '{text}'") from None


def all_power_events(events_dir: str | os.PathLike = POWER_EVENTS_DIR) -> list[PowerEvent]:
    """Return all the RAPL power events found in the sysfs events directory."""
    directory = Path(events_dir)
    try:
        entries = sorted(directory.iterdir())
    except OSError as e:
        raise OSError(f"Could not read {events_dir}. {_ADVICE} {e}") from e
    events = []
    for path in entries:
        # Only the main files: not *.unit nor *.scale.
        if not path.is_file() or "." in path.name or not path.name.startswith("energy-"):
            continue
        name = path.name[len("energy-"):]
        code = _read_event_code(path)
        unit = _read_event_unit(path)
        scale = _read_event_scale(path)
        domain = parse_event_name(name)
        if domain is None:
            raise ValueError(f"Unknown RAPL perf event {name}")
        events.append(PowerEvent(name, domain, code, unit, scale))
    return events