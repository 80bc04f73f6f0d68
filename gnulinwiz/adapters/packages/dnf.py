"""
DNF adapter — Fedora, RHEL and rebuilds.
"""

from __future__ import annotations

from gnulinwiz.adapters.packages.base import PackageManagerAdapter
from gnulinwiz.adapters.shell.command import CommandResult
from gnulinwiz.core.models.environment import PackageManagerKind


class DnfAdapter(PackageManagerAdapter):
    """dnf, queried through rpm."""

    kind = PackageManagerKind.DNF

    def _interpret_query(self, package: str, result: CommandResult) -> bool | None:
        # rpm -q exits with the number of packages not installed.
        if result.returncode == 0:
            return True
        if result.returncode == 1 and "is not installed" in result.stdout:
            return False
        return None
