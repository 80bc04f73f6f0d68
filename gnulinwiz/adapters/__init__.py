"""Adapters — bindings to package managers, processes and the filesystem.

Public re-exports for convenient access.
"""

from gnulinwiz.adapters.mock import MockCommandRunner, MockConfigWriter, MockPackageAdapter
from gnulinwiz.adapters.packages.base import PackageManagerAdapter
from gnulinwiz.adapters.registry import AdapterRegistry
from gnulinwiz.adapters.shell.command import CommandResult, CommandRunner
from gnulinwiz.adapters.shell.filesystem import ConfigWriter

__all__ = [
    "AdapterRegistry",
    "CommandResult",
    "CommandRunner",
    "ConfigWriter",
    "MockCommandRunner",
    "MockConfigWriter",
    "MockPackageAdapter",
    "PackageManagerAdapter",
]
