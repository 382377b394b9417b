"""Discovery of RAPL energy domains on Linux and measurement through the powercap sysfs."""

__version__ = "0.1.0"