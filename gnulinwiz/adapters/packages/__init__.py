"""Package manager adapters, one per supported manager."""

from gnulinwiz.adapters.packages.apt import AptAdapter
from gnulinwiz.adapters.packages.base import (
    AdapterError,
    InstallFailedError,
    PackageManagerAdapter,
    QueryFailedError,
)
from gnulinwiz.adapters.packages.dnf import DnfAdapter
from gnulinwiz.adapters.packages.pacman import PacmanAdapter
from gnulinwiz.adapters.packages.zypper import ZypperAdapter

__all__ = [
    "AdapterError",
    "AptAdapter",
    "DnfAdapter",
    "InstallFailedError",
    "PackageManagerAdapter",
    "PacmanAdapter",
    "QueryFailedError",
    "ZypperAdapter",
]
