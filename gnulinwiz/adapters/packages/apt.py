"""
APT adapter — Debian, Ubuntu and derivatives.

Queries go through ``dpkg-query`` because ``apt`` itself has no
stable scripting interface.
"""

from __future__ import annotations

from gnulinwiz.adapters.packages.base import PackageManagerAdapter
from gnulinwiz.adapters.shell.command import CommandResult
from gnulinwiz.core.models.environment import PackageManagerKind


class AptAdapter(PackageManagerAdapter):
    """apt-get / dpkg."""

    kind = PackageManagerKind.APT

    def _interpret_query(self, package: str, result: CommandResult) -> bool | None:
        if result.returncode == 0:
            # Removed-but-configured packages still have a status line.
            return "install ok installed" in result.stdout
        if result.returncode == 1:
            # dpkg-query: no packages found matching ...
            return False
        return None
