import subprocess
from unittest import mock

import pytest

from raplprobe.cpus import (
    CpuId,
    CpuVendor,
    cpu_vendor,
    cpus_to_monitor_with_perf,
    online_cpus,
    parse_cpu_and_socket_list,
    parse_cpu_list,
    parse_cpu_vendor,
)


def test_parse_cpumask():
    assert parse_cpu_and_socket_list("0") == [CpuId(cpu=0, socket=0)]
    assert parse_cpu_and_socket_list("0,64") == [CpuId(cpu=0, socket=0), CpuId(cpu=64, socket=1)]
    assert parse_cpu_and_socket_list("0-1") == [CpuId(cpu=0, socket=0), CpuId(cpu=1, socket=1)]
    assert parse_cpu_and_socket_list("1-3,5-6") == [
        CpuId(cpu=1, socket=0),
        CpuId(cpu=2, socket=1),
        CpuId(cpu=3, socket=2),
        CpuId(cpu=5, socket=3),
        CpuId(cpu=6, socket=4),
    ]


def test_parse_cpu_list_trailing_newline():
    assert parse_cpu_list("0-1,64-66\n") == [0, 1, 64, 65, 66]


@pytest.mark.parametrize("bad", ["", "a", "1-2-3", "0,", "-1", "1,x-2", "4294967296"])
def test_parse_cpu_list_errors(bad):
    with pytest.raises(ValueError):
        parse_cpu_list(bad)


def test_cpus_to_monitor_with_perf_reads_file(tmp_path):
    mask = tmp_path / "cpumask"
    mask.write_text("0,64\n")
    assert cpus_to_monitor_with_perf(mask) == [CpuId(0, 0), CpuId(64, 1)]


def test_cpus_to_monitor_with_perf_bad_content(tmp_path):
    mask = tmp_path / "cpumask"
    mask.write_text("garbage\n")
    with pytest.raises(ValueError, match="failed to parse"):
        cpus_to_monitor_with_perf(mask)


def test_cpus_to_monitor_missing_file(tmp_path):
    with pytest.raises(OSError, match="failed to read"):
        cpus_to_monitor_with_perf(tmp_path / "missing")


def test_online_cpus(tmp_path):
    online = tmp_path / "online"
    online.write_text("0-3\n")
    assert online_cpus(online) == [0, 1, 2, 3]


def test_parse_cpu_vendor():
    assert parse_cpu_vendor("Architecture: x86_64\nVendor ID:   GenuineIntel\n") is CpuVendor.INTEL
    assert parse_cpu_vendor("Vendor ID:\tAuthenticAMD\n") is CpuVendor.AMD


def test_parse_cpu_vendor_unsupported():
    with pytest.raises(ValueError, match="Unsupported CPU vendor ARM"):
        parse_cpu_vendor("Vendor ID: ARM\n")


def test_parse_cpu_vendor_missing():
    with pytest.raises(ValueError, match="vendor id not found"):
        parse_cpu_vendor("Architecture: x86_64\n")


def test_cpu_vendor_runs_lscpu():
    completed = subprocess.CompletedProcess(["lscpu"], 0, stdout=b"Vendor ID: AuthenticAMD\n")
    with mock.patch("subprocess.run", return_value=completed) as run:
        assert cpu_vendor() is CpuVendor.AMD
    args, kwargs = run.call_args
    assert args[0] == ["lscpu"]
    assert kwargs["env"]["LC_ALL"] == "C"


def test_cpu_vendor_without_lscpu():
    with mock.patch("subprocess.run", side_effect=FileNotFoundError("lscpu")):
        with pytest.raises(OSError, match="lscpu should be executable"):
            cpu_vendor()