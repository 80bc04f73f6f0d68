"""
Pacman adapter — Arch Linux and derivatives.

``--needed`` keeps re-installs of up-to-date packages a no-op.
"""

from __future__ import annotations

from gnulinwiz.adapters.packages.base import PackageManagerAdapter
from gnulinwiz.adapters.shell.command import CommandResult
from gnulinwiz.core.models.environment import PackageManagerKind


class PacmanAdapter(PackageManagerAdapter):
    kind = PackageManagerKind.PACMAN

    def _interpret_query(self, package: str, result: CommandResult) -> bool | None:
        if result.returncode == 0:
            return True
        if result.returncode == 1 and "was not found" in result.stderr:
            return False
        return None
