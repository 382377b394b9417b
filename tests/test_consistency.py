from pathlib import Path

from raplprobe.consistency import SafeSubset, check_domains_consistency, mkstring
from raplprobe.domains import RaplDomainType
from raplprobe.perf_event import PowerEvent
from raplprobe.powercap import PowerZone, PowerZoneHierarchy

SCALE = 2.3283064365386962890625e-10


def _event(name, domain, code=1):
    return PowerEvent(name, domain, code, "Joules", SCALE)


def _zone(name, domain, socket=0):
    return PowerZone(name, domain, Path("/fake") / name, [], socket)


def _hierarchy(*zones):
    return PowerZoneHierarchy(list(zones), list(zones))


def _is_sorted_unique(domains):
    names = [str(d) for d in domains]
    return names == sorted(set(names))


def test_consistent_domains_are_whole():
    events = [_event("pkg", RaplDomainType.PACKAGE), _event("ram", RaplDomainType.DRAM)]
    zones = _hierarchy(_zone("package-0", RaplDomainType.PACKAGE), _zone("dram", RaplDomainType.DRAM))
    subset = check_domains_consistency(events, zones)
    assert subset.is_whole is True
    assert set(subset.domains) == {RaplDomainType.PACKAGE, RaplDomainType.DRAM}
    assert _is_sorted_unique(subset.domains)
    assert subset.perf_events == events
    assert subset.power_zones == zones.flat


def test_inconsistent_domains_give_intersection():
    events = [
        _event("pkg", RaplDomainType.PACKAGE),
        _event("ram", RaplDomainType.DRAM),
        _event("cores", RaplDomainType.PP0),
    ]
    zones = _hierarchy(_zone("package-0", RaplDomainType.PACKAGE), _zone("dram", RaplDomainType.DRAM))
    subset = check_domains_consistency(events, zones)
    assert subset.is_whole is False
    assert set(subset.domains) == {RaplDomainType.PACKAGE, RaplDomainType.DRAM}
    assert _is_sorted_unique(subset.domains)
    assert all(e.domain in subset.domains for e in subset.perf_events)
    assert len(subset.perf_events) == 2
    assert subset.power_zones == zones.flat


def test_empty_perf_events_give_empty_subset():
    zones = _hierarchy(_zone("package-0", RaplDomainType.PACKAGE))
    subset = check_domains_consistency([], zones)
    assert subset.is_whole is False
    assert subset.domains == []
    assert subset.perf_events == []
    assert subset.power_zones == []


def test_from_perf_only_deduplicates_domains():
    events = [
        _event("pkg", RaplDomainType.PACKAGE),
        _event("pkg", RaplDomainType.PACKAGE, 2),
        _event("ram", RaplDomainType.DRAM),
    ]
    subset = SafeSubset.from_perf_only(events)
    assert subset.is_whole is True
    assert set(subset.domains) == {RaplDomainType.PACKAGE, RaplDomainType.DRAM}
    assert len(subset.domains) == 2
    assert _is_sorted_unique(subset.domains)
    assert subset.perf_events == events
    assert subset.power_zones == []


def test_from_powercap_only_uses_flat_list():
    child = _zone("dram", RaplDomainType.DRAM)
    top = PowerZone("package-0", RaplDomainType.PACKAGE, Path("/fake/p"), [child], 0)
    zones = PowerZoneHierarchy([child, top], [top])
    subset = SafeSubset.from_powercap_only(zones)
    assert subset.is_whole is True
    assert subset.power_zones == [child, top]
    assert set(subset.domains) == {RaplDomainType.PACKAGE, RaplDomainType.DRAM}
    assert subset.perf_events == []


def test_mkstring_joins_strings():
    assert mkstring([RaplDomainType.PACKAGE, RaplDomainType.DRAM], ", ") == "package, dram"
    assert mkstring([], ", ") == ""
    assert mkstring([1, 2, 3], "-") == "1-2-3"