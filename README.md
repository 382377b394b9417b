# raplprobe

Find out which RAPL energy domains a Linux machine exposes, and measure
the energy they consume through the powercap sysfs.

The kernel exposes RAPL in two places: the powercap sysfs
(`/sys/devices/virtual/powercap/intel-rapl`) and the RAPL PMU of
perf_events (`/sys/devices/power`). The two do not always report the same
domains. raplprobe reads the domain lists from both, compares them, and
works out a "safe subset" of the domains that both report.

## Installation

```sh
pip install .
```

For the test suite:

```sh
pip install '.[test]'
pytest
```

## Command line

```sh
raplprobe
```

This prints the available RAPL domains and where the list came from
(`(from powercap)`, `(from perf_events)`, `("safe subset")`, or nothing
when both interfaces agree). It exits with status 1 and prints an error
when neither interface can be read.

Options:

- `--no-perf-events`: do not use perf_events.
- `--poll-interval DURATION`: time between two measurements, such as `1s`,
  `500ms` or `1m 30s` (default `1s`).
- `--count N`: after listing the domains, read the powercap energy counters
  and print `N` rounds of measurements, in joules, one line per power zone.
  This needs power zones in the selected subset; otherwise an error is
  reported.
- `--perf-sysfs-dir DIR`: perf_events RAPL directory (default
  `/sys/devices/power`).
- `--powercap-root DIR`: powercap RAPL directory (default
  `/sys/devices/virtual/powercap/intel-rapl`).

On most systems these files can only be read by root, or after the file
permissions of the powercap directory have been changed.

## Library use

```python
from raplprobe.powercap import all_power_zones, PowercapProbe
from raplprobe.perf_event import all_power_events
from raplprobe.consistency import check_domains_consistency

zones = all_power_zones()
events = all_power_events()
subset = check_domains_consistency(events, zones)
print(", ".join(str(d) for d in subset.domains))

with PowercapProbe(subset.power_zones) as probe:
    probe.poll()            # the first poll only records the counters
    for m in probe.poll():  # later polls return the energy used since then
        print(m.resource, m.attributes["domain"], m.value)
```

Modules:

- `raplprobe.domains`: `RaplDomainType` (`PACKAGE`, `PP0`, `PP1`, `DRAM`,
  `PLATFORM`). `RaplDomainType.parse` accepts the names used by both
  interfaces (`pkg`/`package`, `core`/`pp0`, `uncore`/`pp1`, `ram`/`dram`,
  `psys`/`platform`), and `to_resource` gives the `Resource` a domain
  measures.
- `raplprobe.cpus`: `parse_cpu_list` for sysfs CPU lists such as `"0-3,8"`,
  `parse_cpu_and_socket_list`, `cpus_to_monitor_with_perf`, `online_cpus`,
  and `cpu_vendor`, which runs `lscpu` and returns a `CpuVendor`.
- `raplprobe.powercap`: `all_power_zones` returns a `PowerZoneHierarchy`
  (a flat list and a tree of `PowerZone`). `PowercapProbe` reads the
  `energy_uj` counters; `poll(timestamp=None)` returns `Measurement`
  objects. `CounterDiff` computes counter increases and corrects
  wrap-around at the zone's maximum energy.
- `raplprobe.perf_event`: `all_power_events` lists the `PowerEvent`s found
  in the sysfs (name, domain, event code, unit, scale), and `pmu_type`
  reads the PMU type.
- `raplprobe.consistency`: `check_domains_consistency`, `SafeSubset` and
  `mkstring`.
- `raplprobe.discovery`: `Config` (poll interval, flush interval,
  `no_perf_events`, with `from_dict`/`to_dict`), `select_domains`,
  `discover` and the `main` entry point of the command.
- `raplprobe.command`: `parse_command` turns control commands such as
  `rapl:sources trigger every 5s` or `outputs pause` into a
  `ControlCommand`; `parse_duration` parses `5s`, `5.2s`, `100ms` or
  `2min` into a `timedelta`.

## What it does not do

- Energy is only measured through powercap. perf_events is used to list the
  RAPL events and to cross-check the domains, but its counters are never
  opened or read.
- `raplprobe.command` only parses control commands; there is no socket or
  server that receives them and nothing that runs them.
- There is no measurement pipeline, storage or export: the command prints
  measurements to standard output, and the flush interval of `Config` is
  only a setting.