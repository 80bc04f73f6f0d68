"""
Zypper adapter — openSUSE and SLES.
"""

from __future__ import annotations

from gnulinwiz.adapters.packages.base import PackageManagerAdapter
from gnulinwiz.adapters.shell.command import CommandResult
from gnulinwiz.core.models.environment import PackageManagerKind


class ZypperAdapter(PackageManagerAdapter):
    """zypper, queried through rpm."""

    kind = PackageManagerKind.ZYPPER

    def _interpret_query(self, package: str, result: CommandResult) -> bool | None:
        if result.returncode == 0:
            return True
        if result.returncode == 1 and "is not installed" in result.stdout:
            return False
        return None
