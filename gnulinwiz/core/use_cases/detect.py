"""
Detect use case — what system is this?

Thin wrapper around the probe that never raises: the CLI gets a
result with either a profile or an error message and exit code.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from gnulinwiz.adapters.registry import AdapterRegistry
from gnulinwiz.core.engine.report import EXIT_OK, EXIT_UNSUPPORTED_SYSTEM
from gnulinwiz.core.models.environment import SystemProfile
from gnulinwiz.core.services.probe import ProbeError, probe_system

logger = logging.getLogger(__name__)


@dataclass
class DetectResult:
    """Result of probing the system."""

    profile: SystemProfile | None = None
    managers: dict[str, dict] = field(default_factory=dict)
    error: str | None = None
    exit_code: int = EXIT_OK

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error, "exit_code": self.exit_code}
        result = self.profile.to_dict() if self.profile else {}
        result["managers"] = self.managers
        return result


def detect_system(
    root_dir: Path | None = None,
    registry: AdapterRegistry | None = None,
) -> DetectResult:
    """Probe the distribution and list which package managers are present."""
    result = DetectResult()
    registry = registry or AdapterRegistry()
    result.managers = registry.adapter_status()

    try:
        result.profile = probe_system(root_dir)
    except ProbeError as e:
        logger.error("%s", e)
        result.error = str(e)
        result.exit_code = EXIT_UNSUPPORTED_SYSTEM

    return result
