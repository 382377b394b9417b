"""RAPL power zones exposed by the Linux powercap sysfs, and a probe that reads them."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, BinaryIO

from raplprobe.domains import RaplDomainType, Resource

POWERCAP_RAPL_PATH = "/sys/devices/virtual/powercap/intel-rapl"
POWER_ZONE_PREFIX = "intel-rapl"
POWERCAP_ENERGY_UNIT = 0.000_001  # 1 microjoule
PERMISSION_ADVICE = "Try to adjust file permissions."
ENERGY_METRIC = "rapl_consumed_energy"
LOCAL_MACHINE_CONSUMER = "local_machine"

_U32_MAX = 2**32 - 1
_U64_MAX = 2**64 - 1
_UNSIGNED = re.compile(r"\+?[0-9]+")


def _parse_unsigned(text: str, limit: int) -> int:
    if not _UNSIGNED.fullmatch(text):
        raise ValueError(f"invalid number: {text!r}")
    value = int(text)
    if value > limit:
        raise ValueError(f"number too large: {text!r}")
    return value


@dataclass
class PowerZone:
    """A power zone of the powercap framework, such as ``package-0`` or ``core``."""

    name: str
    domain: RaplDomainType
    path: Path
    children: list[PowerZone] = field(default_factory=list)
    socket_id: int | None = None

    def energy_path(self) -> Path:
        """Path of the file holding the energy counter, in microjoules."""
        return self.path / "energy_uj"

    def max_energy_path(self) -> Path:
        """Path of the file holding the maximum value of the energy counter."""
        return self.path / "max_energy_range_uj"

    def _lines(self, level: int):
        indent = "  " * level
        yield f"{indent}- {self.name} ({self.domain.name}) \t\t: {self.path}"
        for child in self.children:
            yield from child._lines(level + 1)

    def __str__(self) -> str:
        return "\n".join(self._lines(0))


@dataclass
class PowerZoneHierarchy:
    """All the power zones, as a flat list and as a tree of top zones."""

    flat: list[PowerZone]
    top: list[PowerZone]


@dataclass(frozen=True)
class CounterUpdate:
    """Result of a counter update: no difference on the first update."""

    difference: int | None
    corrected: bool = False

    @property
    def is_first_time(self) -> bool:
        return self.difference is None


class CounterDiff:
    """Computes the increase of a counter that wraps around at a maximum value."""

    def __init__(self, max_value: int) -> None:
        self.max_value = max_value
        self.previous: int | None = None

    def update(self, value: int) -> CounterUpdate:
        """Record a new counter value and return the increase since the previous one."""
        previous, self.previous = self.previous, value
        if previous is None:
            return CounterUpdate(None)
        if value >= previous:
            return CounterUpdate(value - previous)
        return CounterUpdate(self.max_value - previous + value, corrected=True)


@dataclass(frozen=True)
class Measurement:
    """One measured value."""

    timestamp: Any
    metric: str
    resource: Resource
    consumer: str
    value: float
    attributes: dict[str, Any] = field(default_factory=dict)


def parse_zone_name(name: str) -> RaplDomainType | None:
    """Return the RAPL domain of a powercap zone name, or None if unknown."""
    if name == "psys":
        return RaplDomainType.PLATFORM
    if name == "core":
        return RaplDomainType.PP0
    if name == "uncore":
        return RaplDomainType.PP1
    if name == "dram":
        return RaplDomainType.DRAM
    if name.startswith("package-"):
        return RaplDomainType.PACKAGE
    return None


def _explore(directory: Path, parent_socket: int | None, flat: list[PowerZone]) -> list[PowerZone]:
    zones = []
    for path in sorted(directory.iterdir()):
        if not (path.is_dir() and path.name.startswith(POWER_ZONE_PREFIX)):
            continue
        name = (path / "name").read_text().strip()
        socket_id = parent_socket
        if socket_id is None and name.startswith("package-"):
            id_str = name[len("package-"):]
            try:
                socket_id = _parse_unsigned(id_str, _U32_MAX)
            except ValueError:
                raise ValueError(f"Failed to extract package id from '{name}'") from None
        domain = parse_zone_name(name)
        if domain is None:
            raise ValueError(f"Unknown RAPL powercap zone {name}")
        children = _explore(path, socket_id, flat)
        zone = PowerZone(name, domain, path, children, socket_id)
        zones.append(zone)
        flat.append(zone)
    zones.sort(key=lambda z: str(z.path))
    return zones


def all_power_zones(root: str | os.PathLike = POWERCAP_RAPL_PATH) -> PowerZoneHierarchy:
    """Discover all the RAPL power zones below the given powercap directory."""
    flat: list[PowerZone] = []
    try:
        top = _explore(Path(root), None, flat)
    except OSError as e:
        raise OSError(f"Could not explore {root}. {PERMISSION_ADVICE} {e}") from e
    except ValueError as e:
        raise ValueError(f"Could not explore {root}. {PERMISSION_ADVICE} {e}") from e
    return PowerZoneHierarchy(flat, top)


@dataclass
class _OpenedZone:
    file: BinaryIO
    domain: RaplDomainType
    resource: Resource
    counter: CounterDiff


class PowercapProbe:
    """Reads the energy counters of power zones and reports the consumed energy in joules."""

    def __init__(self, zones: list[PowerZone], metric: str = ENERGY_METRIC) -> None:
        if not zones:
            raise ValueError("At least one power zone is required for PowercapProbe")
        self.metric = metric
        self._zones: list[_OpenedZone] = []
        try:
            for zone in zones:
                self._zones.append(self._open(zone))
        except BaseException:
            self.close()
            raise

    @staticmethod
    def _open(zone: PowerZone) -> _OpenedZone:
        try:
            file = open(zone.energy_path(), "rb", buffering=0)
        except OSError as e:
            raise OSError(f"Could not open {zone.energy_path()}. {PERMISSION_ADVICE} {e}") from e
        try:
            try:
                text = zone.max_energy_path().read_text()
            except OSError as e:
                raise OSError(f"Could not read {zone.max_energy_path()}. {PERMISSION_ADVICE} {e}") from e
            try:
                max_energy = _parse_unsigned(text.rstrip(), _U64_MAX)
            except ValueError:
                raise ValueError(f"parse max_energy_uj: '{text}'") from None
        except BaseException:
            file.close()
            raise
        socket = zone.socket_id if zone.socket_id is not None else 0  # psys goes to socket 0
        return _OpenedZone(file, zone.domain, zone.domain.to_resource(socket), CounterDiff(max_energy))

    def poll(self, timestamp: Any = None) -> list[Measurement]:
        """Read every zone and return the energy consumed since the previous poll."""
        if timestamp is None:
            timestamp = datetime.now(timezone.utc)
        measurements = []
        for zone in self._zones:
            zone.file.seek(0)
            content = zone.file.read().decode("utf-8")
            try:
                counter_value = _parse_unsigned(content.rstrip(), _U64_MAX)
            except ValueError:
                raise ValueError(f"failed to parse {zone.file.name}: '{content}'") from None
            update = zone.counter.update(counter_value)
            if update.difference is not None:
                measurements.append(
                    Measurement(
                        timestamp,
                        self.metric,
                        zone.resource,
                        LOCAL_MACHINE_CONSUMER,
                        update.difference * POWERCAP_ENERGY_UNIT,
                        {"domain": str(zone.domain)},
                    )
                )
        return measurements

    def close(self) -> None:
        """Close the energy files."""
        for zone in self._zones:
            zone.file.close()

    def __enter__(self) -> PowercapProbe:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()