[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "raplprobe"
version = "0.1.0"
description = "Discover and read RAPL energy counters through the Linux powercap and perf_events sysfs interfaces"
requires-python = ">=3.10"
dependencies = []
keywords = ["rapl", "energy", "powercap", "perf_events", "monitoring", "linux"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Science/Research",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
raplprobe = "raplprobe.discovery:main"

[tool.hatch.build.targets.wheel]
packages = ["raplprobe"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
