"""
Adapter registry — picks the package manager adapter for a run.

The registry is the single point of adapter management: it maps each
``PackageManagerKind`` to its adapter class and handles mock mode.
The engine never instantiates adapters itself.
"""

from __future__ import annotations

import logging

from gnulinwiz.adapters.mock import MockPackageAdapter
from gnulinwiz.adapters.packages.apt import AptAdapter
from gnulinwiz.adapters.packages.base import AdapterError, PackageManagerAdapter
from gnulinwiz.adapters.packages.dnf import DnfAdapter
from gnulinwiz.adapters.packages.pacman import PacmanAdapter
from gnulinwiz.adapters.packages.zypper import ZypperAdapter
from gnulinwiz.adapters.shell.command import CommandRunner
from gnulinwiz.core.models.environment import PackageManagerKind

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Registry of package manager adapter classes.

    Features:
        - Register/unregister adapter classes by kind
        - Mock mode: hand out a MockPackageAdapter instead
        - Query which managers are available on this system
    """

    def __init__(self, mock_mode: bool = False):
        self._adapters: dict[PackageManagerKind, type[PackageManagerAdapter]] = {}
        self._mock_mode = mock_mode
        for adapter_cls in (AptAdapter, DnfAdapter, PacmanAdapter, ZypperAdapter):
            self.register(adapter_cls)

    @property
    def mock_mode(self) -> bool:
        return self._mock_mode

    def register(self, adapter_cls: type[PackageManagerAdapter]) -> None:
        """Register an adapter class under its ``kind``."""
        kind = adapter_cls.kind
        if kind is PackageManagerKind.NONE:
            raise ValueError(f"{adapter_cls.__name__} does not declare a package manager kind")
        if kind in self._adapters:
            logger.warning("Overwriting existing adapter: %s", kind.value)
        self._adapters[kind] = adapter_cls
        logger.debug("Registered adapter: %s", kind.value)

    def unregister(self, kind: PackageManagerKind) -> None:
        self._adapters.pop(kind, None)

    def kinds(self) -> list[PackageManagerKind]:
        return list(self._adapters)

    def for_kind(
        self,
        kind: PackageManagerKind,
        runner: CommandRunner | None = None,
    ) -> PackageManagerAdapter:
        """Build the adapter for a package manager kind.

        Raises:
            AdapterError: If no adapter is registered for ``kind``.
        """
        if self._mock_mode:
            mock_kind = kind if kind is not PackageManagerKind.NONE else PackageManagerKind.APT
            return MockPackageAdapter(kind=mock_kind)

        adapter_cls = self._adapters.get(kind)
        if adapter_cls is None:
            raise AdapterError(f"No adapter registered for '{kind.value}'")
        return adapter_cls(runner=runner)

    def adapter_status(self) -> dict[str, dict]:
        """Availability of every registered manager on this system."""
        status = {}
        for kind, adapter_cls in self._adapters.items():
            adapter = adapter_cls()
            status[kind.value] = {
                "name": kind.value,
                "executable": adapter.spec.executable,
                "available": adapter.is_available(),
                "type": adapter_cls.__name__,
            }
        return status
