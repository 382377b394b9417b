import pytest

from raplprobe.domains import RaplDomainType, Resource


@pytest.mark.parametrize(
    "name, expected",
    [
        ("package", RaplDomainType.PACKAGE),
        ("pkg", RaplDomainType.PACKAGE),
        ("pp0", RaplDomainType.PP0),
        ("core", RaplDomainType.PP0),
        ("pp1", RaplDomainType.PP1),
        ("uncore", RaplDomainType.PP1),
        ("dram", RaplDomainType.DRAM),
        ("ram", RaplDomainType.DRAM),
        ("platform", RaplDomainType.PLATFORM),
        ("psys", RaplDomainType.PLATFORM),
    ],
)
def test_parse_aliases(name, expected):
    assert RaplDomainType.parse(name) is expected


@pytest.mark.parametrize("name", ["gpu", "", "Package", "pkg "])
def test_parse_unknown(name):
    with pytest.raises(ValueError) as info:
        RaplDomainType.parse(name)
    assert info.value.args[0] == name


@pytest.mark.parametrize("domain", list(RaplDomainType))
def test_str_round_trip(domain):
    assert RaplDomainType.parse(str(domain)) is domain


@pytest.mark.parametrize(
    "alias, canonical",
    [
        ("pkg", "package"),
        ("core", "pp0"),
        ("uncore", "pp1"),
        ("ram", "dram"),
        ("psys", "platform"),
    ],
)
def test_str_values(alias, canonical):
    assert str(RaplDomainType.parse(alias)) == canonical


@pytest.mark.parametrize("domain", [RaplDomainType.PACKAGE, RaplDomainType.PP0, RaplDomainType.PP1])
def test_package_level_domains(domain):
    assert domain.to_resource(3) == Resource("cpu_package", 3)


def test_dram_resource():
    assert RaplDomainType.DRAM.to_resource(1) == Resource("dram", 1)


def test_platform_resource_ignores_package():
    assert RaplDomainType.PLATFORM.to_resource(5) == RaplDomainType.PLATFORM.to_resource(0)
    assert RaplDomainType.PLATFORM.to_resource(5).id is None
    assert RaplDomainType.PLATFORM.to_resource(5).kind == "local_machine"


def test_resource_str():
    assert str(Resource("cpu_package", 0)) == "cpu_package 0"
    assert str(Resource("local_machine")) == "local_machine"