"""Discovery of the CPUs and sockets to monitor."""

from __future__ import annotations

import os
import re
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

PERF_CPUMASK_PATH = "/sys/devices/power/cpumask"
ONLINE_CPUS_PATH = "/sys/devices/system/cpu/online"

_U32_MAX = 2**32 - 1
_NUMBER = re.compile(r"\+?[0-9]+")
_VENDOR = re.compile(r"Vendor ID:\s+(\w+)")


@dataclass(frozen=True)
class CpuId:
    """Cpu id and socket (package) id."""

    cpu: int
    socket: int


class CpuVendor(Enum):
    """Cpu vendor that supports RAPL energy counters."""

    INTEL = "GenuineIntel"
    AMD = "AuthenticAMD"


def _parse_u32(text: str) -> int:
    if not _NUMBER.fullmatch(text):
        raise ValueError(f"invalid number: {text!r}")
    value = int(text)
    if value > _U32_MAX:
        raise ValueError(f"number too large: {text!r}")
    return value


def _parse_cpulist_item(item: str) -> list[int]:
    bounds = [_parse_u32(part) for part in item.split("-")]
    if len(bounds) == 1:
        return bounds
    if len(bounds) == 2:
        start, end = bounds
        return list(range(start, end + 1))
    raise ValueError(f"invalid cpulist: {item}")


def parse_cpu_list(cpulist: str) -> list[int]:
    """Parse a cpu list such as "0,64", "0-1" or "0-1,64-66"."""
    return [cpu for item in cpulist.rstrip().split(",") for cpu in _parse_cpulist_item(item)]


def parse_cpu_and_socket_list(cpulist: str) -> list[CpuId]:
    """Parse a cpu mask that lists one cpu per socket, in socket order."""
    return [CpuId(cpu, socket) for socket, cpu in enumerate(parse_cpu_list(cpulist))]


def _read(path: str | os.PathLike) -> str:
    try:
        return Path(path).read_text()
    except OSError as e:
        raise OSError(f"failed to read {path}: {e}") from e


def cpus_to_monitor_with_perf(path: str | os.PathLike = PERF_CPUMASK_PATH) -> list[CpuId]:
    """Return the CPUs to monitor (one per socket) to read RAPL perf counters."""
    mask = _read(path)
    try:
        return parse_cpu_and_socket_list(mask)
    except ValueError as e:
        raise ValueError(f"failed to parse {path}: {e}") from e


def online_cpus(path: str | os.PathLike = ONLINE_CPUS_PATH) -> list[int]:
    """Return the ids of the online CPUs."""
    return parse_cpu_list(_read(path))


def parse_cpu_vendor(lscpu_output: str) -> CpuVendor:
    """Extract the cpu vendor from the output of lscpu."""
    match = _VENDOR.search(lscpu_output)
    if match is None:
        raise ValueError("vendor id not found in lscpu output")
    vendor = match.group(1).strip()
    try:
        return CpuVendor(vendor)
    except ValueError:
        raise ValueError(f"Unsupported CPU vendor {vendor}") from None


def cpu_vendor() -> CpuVendor:
    """Detect the cpu vendor by running lscpu."""
    env = dict(os.environ, LC_ALL="C")
    try:
        finished = subprocess.run(["lscpu"], env=env, stdout=subprocess.PIPE)
    except OSError as e:
        raise OSError(f"lscpu should be executable: {e}") from e
    return parse_cpu_vendor(finished.stdout.decode("utf-8"))