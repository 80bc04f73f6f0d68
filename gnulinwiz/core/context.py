"""
Run context — the single source of truth for "what system are we on."

Built ONCE per run from the probe result and the invoking user's
environment, then passed explicitly to every component that needs it.
It is frozen: nothing re-detects or mutates it mid-run.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from gnulinwiz.core.models.environment import (
    Distribution,
    PackageManagerKind,
    SystemProfile,
)
from gnulinwiz.core.services.probe import ProbeError


class RunContext(BaseModel):
    """Immutable facts about the system and user for one run."""

    model_config = ConfigDict(frozen=True)

    profile: SystemProfile
    user: str
    home: Path
    is_root: bool = False

    @property
    def distribution(self) -> Distribution:
        return self.profile.distribution

    @property
    def package_manager(self) -> PackageManagerKind:
        return self.profile.package_manager

    def template_vars(self) -> dict[str, str]:
        """Built-in variables for task templates."""
        return {
            "user": self.user,
            "home": str(self.home),
            "distro": self.profile.os_id or self.distribution.value,
            "family": self.distribution.value,
            "package_manager": self.package_manager.value,
        }


def build_context(
    profile: SystemProfile,
    environ: Mapping[str, str] | None = None,
    euid: int | None = None,
) -> RunContext:
    """Create the run context from a probe result and the environment.

    Raises:
        ProbeError: If USER or HOME is not set.
    """
    env = os.environ if environ is None else environ
    user = env.get("USER") or env.get("LOGNAME") or ""
    home = env.get("HOME") or ""
    if not user:
        raise ProbeError("Setup cannot continue without the USER environment variable.")
    if not home:
        raise ProbeError("Setup cannot continue without the HOME environment variable.")

    return RunContext(
        profile=profile,
        user=user,
        home=Path(home),
        is_root=(os.geteuid() if euid is None else euid) == 0,
    )
