"""Cross-checks of the RAPL domains reported by perf_events and powercap."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from raplprobe.cpus import CpuVendor, cpu_vendor
from raplprobe.domains import RaplDomainType
from raplprobe.perf_event import PowerEvent
from raplprobe.powercap import PowerZone, PowerZoneHierarchy

log = logging.getLogger(__name__)

_AMD_WARNING = (
    'AMD cpus only support the "pkg" domain (and sometimes "core"), '
    "but their support is buggy on old Linux kernels!\n"
    "- All events are present in the sysfs, but they should not be there. "
    "This seems to have been fixed in Linux 5.17.\n"
    '- The "core" domain does not work in perf_events, it could be added soon, if it is supported.\n'
    "NOTE: It could also be totally unsupported, because it gives erroneous values in powercap "
    "on some bi-socket AMD EPYC processors."
)


def _distinct_sorted(domains: Iterable[RaplDomainType]) -> list[RaplDomainType]:
    return sorted(set(domains), key=str)


@dataclass
class SafeSubset:
    """The RAPL domains, perf events and power zones that can safely be used."""

    domains: list[RaplDomainType] = field(default_factory=list)
    perf_events: list[PowerEvent] = field(default_factory=list)
    power_zones: list[PowerZone] = field(default_factory=list)
    is_whole: bool = True

    @classmethod
    def from_perf_only(cls, perf_events: list[PowerEvent]) -> SafeSubset:
        """Build a subset that relies on perf_events alone."""
        events = list(perf_events)
        return cls(_distinct_sorted(e.domain for e in events), events, [], True)

    @classmethod
    def from_powercap_only(cls, power_zones: PowerZoneHierarchy) -> SafeSubset:
        """Build a subset that relies on powercap alone."""
        zones = list(power_zones.flat)
        return cls(_distinct_sorted(z.domain for z in zones), [], zones, True)


def mkstring(elems: Iterable[object], sep: str) -> str:
    """Convert every element to a string and join them with the separator."""
    return sep.join(str(e) for e in elems)


def _warn_about_vendor() -> None:
    try:
        vendor = cpu_vendor()
    except Exception as e:  # not dramatic, we can proceed
        log.warning("Failed to detect the cpu vendor. %s", e)
        return
    if vendor is CpuVendor.AMD:
        log.warning("%s", _AMD_WARNING)


def check_domains_consistency(
    perf_events: list[PowerEvent], power_zones: PowerZoneHierarchy
) -> SafeSubset:
    """Return the domains available through both perf_events and powercap."""
    perf_domains = _distinct_sorted(e.domain for e in perf_events)
    powercap_domains = _distinct_sorted(z.domain for z in power_zones.flat)

    if perf_domains == powercap_domains:
        return SafeSubset(perf_domains, list(perf_events), list(power_zones.flat), True)

    log.warning(
        "Powercap and perf_events don't report the same RAPL domains. "
        "This may be caused by a bug in powercap or in perf_events."
    )
    log.warning("Upgrading to a newer kernel could fix the problem.")
    log.warning("Perf_events: %s", mkstring(perf_domains, ", "))
    log.warning("Powercap:    %s", mkstring(powercap_domains, ", "))
    _warn_about_vendor()

    domains = [d for d in perf_domains if d in powercap_domains]
    return SafeSubset(
        domains,
        [e for e in perf_events if e.domain in domains],
        [z for z in power_zones.flat if z.domain in domains],
        False,
    )