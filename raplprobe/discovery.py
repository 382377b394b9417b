"""Selection of the RAPL interfaces and domains to measure, and a command to read them."""

from __future__ import annotations

import argparse
import logging
import os
import re
import sys
import time
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Mapping

from raplprobe.consistency import SafeSubset, check_domains_consistency, mkstring
from raplprobe.perf_event import PERF_SYSFS_DIR, PowerEvent, all_power_events
from raplprobe.powercap import POWERCAP_RAPL_PATH, PowercapProbe, PowerZoneHierarchy, all_power_zones

log = logging.getLogger(__name__)

_NS_PER_UNIT = {
    "nsec": 1,
    "ns": 1,
    "usec": 1_000,
    "us": 1_000,
    "msec": 1_000_000,
    "ms": 1_000_000,
    "seconds": 10**9,
    "second": 10**9,
    "sec": 10**9,
    "s": 10**9,
    "minutes": 60 * 10**9,
    "minute": 60 * 10**9,
    "min": 60 * 10**9,
    "m": 60 * 10**9,
    "hours": 3_600 * 10**9,
    "hour": 3_600 * 10**9,
    "hr": 3_600 * 10**9,
    "h": 3_600 * 10**9,
    "days": 86_400 * 10**9,
    "day": 86_400 * 10**9,
    "d": 86_400 * 10**9,
    "weeks": 604_800 * 10**9,
    "week": 604_800 * 10**9,
    "w": 604_800 * 10**9,
    "months": 2_630_016 * 10**9,
    "month": 2_630_016 * 10**9,
    "M": 2_630_016 * 10**9,
    "years": 31_557_600 * 10**9,
    "year": 31_557_600 * 10**9,
    "y": 31_557_600 * 10**9,
}
_DURATION = re.compile(r"(?:\s*[0-9]+\s*[a-zA-Z]+)+\s*")
_DURATION_PART = re.compile(r"([0-9]+)\s*([a-zA-Z]+)")


def _parse_duration(text: str) -> timedelta:
    if not _DURATION.fullmatch(text):
        raise ValueError(f"invalid duration {text!r}")
    total_ns = 0
    for number, unit in _DURATION_PART.findall(text):
        if unit not in _NS_PER_UNIT:
            raise ValueError(f"unknown time unit {unit!r} in {text!r}")
        total_ns += int(number) * _NS_PER_UNIT[unit]
    return timedelta(microseconds=total_ns // 1_000)


def _format_duration(duration: timedelta) -> str:
    micros = duration // timedelta(microseconds=1)
    if micros <= 0:
        return "0s"
    days, micros = divmod(micros, 86_400_000_000)
    parts = []
    if days:
        parts.append(f"{days}day" if days == 1 else f"{days}days")
    for unit, size in (("h", 3_600_000_000), ("m", 60_000_000), ("s", 1_000_000), ("ms", 1_000), ("us", 1)):
        amount, micros = divmod(micros, size)
        if amount:
            parts.append(f"{amount}{unit}")
    return " ".join(parts)


@dataclass
class Config:
    """Settings of the RAPL measurements."""

    poll_interval: timedelta = field(default_factory=lambda: timedelta(seconds=1))
    """Interval between two RAPL measurements."""
    flush_interval: timedelta = field(default_factory=lambda: timedelta(seconds=5))
    """Interval between two flushes of the measurements."""
    no_perf_events: bool = False
    """Disable perf_events and always use the powercap sysfs."""

    @classmethod
    def from_dict(cls, table: Mapping[str, Any]) -> Config:
        """Build a configuration from a table; every field is required."""
        for key in ("poll_interval", "flush_interval", "no_perf_events"):
            if key not in table:
                raise ValueError(f"missing field `{key}`")
        no_perf = table["no_perf_events"]
        if not isinstance(no_perf, bool):
            raise ValueError(f"invalid type for `no_perf_events`: {no_perf!r}, expected a boolean")
        durations = {}
        for key in ("poll_interval", "flush_interval"):
            value = table[key]
            if not isinstance(value, str):
                raise ValueError(f"invalid type for `{key}`: {value!r}, expected a duration string")
            durations[key] = _parse_duration(value)
        return cls(durations["poll_interval"], durations["flush_interval"], no_perf)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the configuration to a table."""
        return {
            "poll_interval": _format_duration(self.poll_interval),
            "flush_interval": _format_duration(self.flush_interval),
            "no_perf_events": self.no_perf_events,
        }


@dataclass
class DomainSelection:
    """The domains to measure and the interfaces to measure them with."""

    subset: SafeSubset
    origin: str
    use_perf: bool
    use_powercap: bool


def select_domains(
    perf_events: list[PowerEvent] | None,
    power_zones: PowerZoneHierarchy | None,
    use_perf: bool,
    check_consistency: bool,
) -> DomainSelection:
    """Choose the RAPL domains to use; None stands for an interface that could not be read."""
    use_powercap = True
    if perf_events is not None and power_zones is not None:
        if not check_consistency:
            return DomainSelection(SafeSubset.from_powercap_only(power_zones), " (from powercap)", use_perf, True)
        subset = check_domains_consistency(perf_events, power_zones)
        origin = ""
        if not subset.is_whole:
            # A smaller set could be empty: fall back to the interface that reports something.
            if not perf_events and power_zones.top:
                log.warning(
                    "perf_events returned an empty list of RAPL domains, "
                    "I will disable perf_events and use powercap instead."
                )
                use_perf = False
                subset = SafeSubset.from_powercap_only(power_zones)
                origin = " (from powercap)"
            elif perf_events and not power_zones.top:
                log.warning(
                    "powercap returned an empty list of RAPL domains, "
                    "I will disable powercap and use perf_events instead."
                )
                use_powercap = False
                subset = SafeSubset.from_perf_only(perf_events)
                origin = " (from perf_events)"
            else:
                origin = ' ("safe subset")'
        return DomainSelection(subset, origin, use_perf, use_powercap)
    if perf_events is not None:
        return DomainSelection(SafeSubset.from_perf_only(perf_events), " (from perf_events)", use_perf, use_powercap)
    if power_zones is not None:
        return DomainSelection(SafeSubset.from_powercap_only(power_zones), " (from powercap)", use_perf, use_powercap)
    raise RuntimeError("Both perf_events and powercap failed, unable to read RAPL counters")


_CONSISTENCY_NOTE = (
    "The consistency of the RAPL domains reported by the different interfaces of the Linux kernel "
    "cannot be checked (this is useful to work around bugs in some kernel versions on some machines)."
)


def discover(
    config: Config | None = None,
    perf_sysfs_dir: str | os.PathLike = PERF_SYSFS_DIR,
    powercap_root: str | os.PathLike = POWERCAP_RAPL_PATH,
) -> DomainSelection:
    """Find the RAPL domains available through perf_events and powercap."""
    config = config or Config()
    use_perf = not config.no_perf_events
    check_consistency = True

    if not Path(perf_sysfs_dir).exists():
        check_consistency = False
        missing = (
            f"{perf_sysfs_dir} does not exist, the Intel RAPL PMU module may not be enabled. "
            "Is your Linux kernel too old?"
        )
        if use_perf:
            log.error("%s", missing)
            log.warning("Because of the previous error, I will disable perf_events and fall back to powercap.")
            use_perf = False
        else:
            log.warning("%s", missing)
            log.warning("I will not use perf_events to check the consistency of the RAPL interfaces.")

    perf_events: list[PowerEvent] | None = None
    power_zones: PowerZoneHierarchy | None = None
    perf_error: Exception | None = None
    powercap_error: Exception | None = None
    try:
        perf_events = all_power_events(Path(perf_sysfs_dir) / "events")
    except (OSError, ValueError) as e:
        perf_error = e
    try:
        power_zones = all_power_zones(powercap_root)
    except (OSError, ValueError) as e:
        powercap_error = e

    if perf_error is not None and powercap_error is not None:
        log.error(
            "I could use neither perf_events nor powercap.\nperf_events error: %s\npowercap error: %s",
            perf_error,
            powercap_error,
        )
        raise RuntimeError(
            "Both perf_events and powercap failed, unable to read RAPL counters: "
            f"{perf_error}\n{powercap_error}"
        ) from powercap_error
    if powercap_error is not None:
        log.error("Cannot read the list of RAPL domains available via the powercap interface: %s.", powercap_error)
        log.warning("%s", _CONSISTENCY_NOTE)
    if perf_error is not None:
        log.warning("Cannot read the list of RAPL domains available via the perf_events interface: %s.", perf_error)
        log.warning("%s", _CONSISTENCY_NOTE)

    selection = select_domains(perf_events, power_zones, use_perf, check_consistency)
    log.info("Available RAPL domains%s: %s", selection.origin, mkstring(selection.subset.domains, ", "))
    if not selection.use_perf and not selection.use_powercap:
        raise RuntimeError("I can use neither perf_events nor powercap: impossible to measure RAPL counters.")
    return selection


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="raplprobe", description="Discover and read RAPL energy counters.")
    parser.add_argument("--no-perf-events", action="store_true", help="never use perf_events")
    parser.add_argument("--poll-interval", type=_parse_duration, default=None, help='e.g. "1s" or "500ms"')
    parser.add_argument("--count", type=int, default=0, help="number of measurements to print (powercap)")
    parser.add_argument("--perf-sysfs-dir", default=PERF_SYSFS_DIR)
    parser.add_argument("--powercap-root", default=POWERCAP_RAPL_PATH)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Print the available RAPL domains and, on request, energy measurements."""
    args = _build_parser().parse_args(argv)
    config = Config(no_perf_events=args.no_perf_events)
    if args.poll_interval is not None:
        config.poll_interval = args.poll_interval
    try:
        selection = discover(config, args.perf_sysfs_dir, args.powercap_root)
        print(f"Available RAPL domains{selection.origin}: {mkstring(selection.subset.domains, ', ')}")
        if args.count > 0:
            with PowercapProbe(selection.subset.power_zones) as probe:
                probe.poll()
                for _ in range(args.count):
                    time.sleep(config.poll_interval.total_seconds())
                    for m in probe.poll():
                        print(f"{m.timestamp.isoformat()} {m.metric} {m.resource} {m.attributes['domain']} = {m.value} J")
    except (OSError, ValueError, RuntimeError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())