"""RAPL domains and the resources they measure."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

CPU_PACKAGE_KIND = "cpu_package"
DRAM_KIND = "dram"
LOCAL_MACHINE_KIND = "local_machine"


@dataclass(frozen=True)
class Resource:
    """A measured resource: a kind and an optional numeric id."""

    kind: str
    id: int | None = None

    def __str__(self) -> str:
        return self.kind if self.id is None else f"{self.kind} {self.id}"


class RaplDomainType(Enum):
    """A known RAPL domain."""

    PACKAGE = "package"
    """Entire socket."""
    PP0 = "pp0"
    """Power plane 0: core."""
    PP1 = "pp1"
    """Power plane 1: uncore."""
    DRAM = "dram"
    """DRAM."""
    PLATFORM = "platform"
    """psys, only on recent client platforms such as laptops."""

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, s: str) -> RaplDomainType:
        """Parse a domain name or one of its aliases; raise ValueError if unknown."""
        try:
            return _ALIASES[s]
        except KeyError:
            raise ValueError(s) from None

    def to_resource(self, pkg_id: int) -> Resource:
        """Return the resource measured by this domain on the given package."""
        if self is RaplDomainType.DRAM:
            return Resource(DRAM_KIND, pkg_id)
        if self is RaplDomainType.PLATFORM:
            return Resource(LOCAL_MACHINE_KIND)
        # PP0 and PP1 cover all the cores of a package, not individual cores.
        return Resource(CPU_PACKAGE_KIND, pkg_id)


_ALIASES = {
    "package": RaplDomainType.PACKAGE,
    "pkg": RaplDomainType.PACKAGE,
    "pp0": RaplDomainType.PP0,
    "core": RaplDomainType.PP0,
    "pp1": RaplDomainType.PP1,
    "uncore": RaplDomainType.PP1,
    "dram": RaplDomainType.DRAM,
    "ram": RaplDomainType.DRAM,
    "platform": RaplDomainType.PLATFORM,
    "psys": RaplDomainType.PLATFORM,
}