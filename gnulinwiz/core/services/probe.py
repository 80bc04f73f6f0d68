"""
Environment probe — which distribution and package manager is this?

Read-only: parses os-release (through ``distro``) and looks for known
package-manager executables on PATH. Safe to call repeatedly, but the
CLI calls it once per run and threads the result explicitly.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

import distro

from gnulinwiz.core.models.environment import (
    MANAGER_FAMILY,
    MANAGER_PRIORITY,
    MANAGER_SPECS,
    Distribution,
    PackageManagerKind,
    SystemProfile,
)

logger = logging.getLogger(__name__)


class ProbeError(Exception):
    """Raised when the environment cannot support a run."""


class UnsupportedSystemError(ProbeError):
    """No recognisable distribution / package manager was found."""


# os-release ID (or ID_LIKE entry) → family
_FAMILY_IDS: dict[str, Distribution] = {
    "debian": Distribution.DEBIAN,
    "ubuntu": Distribution.DEBIAN,
    "linuxmint": Distribution.DEBIAN,
    "pop": Distribution.DEBIAN,
    "elementary": Distribution.DEBIAN,
    "zorin": Distribution.DEBIAN,
    "kali": Distribution.DEBIAN,
    "raspbian": Distribution.DEBIAN,
    "fedora": Distribution.REDHAT,
    "rhel": Distribution.REDHAT,
    "centos": Distribution.REDHAT,
    "rocky": Distribution.REDHAT,
    "almalinux": Distribution.REDHAT,
    "ol": Distribution.REDHAT,
    "oracle": Distribution.REDHAT,     # distro normalises "ol"
    "arch": Distribution.ARCH,
    "archarm": Distribution.ARCH,
    "manjaro": Distribution.ARCH,
    "endeavouros": Distribution.ARCH,
    "garuda": Distribution.ARCH,
    "cachyos": Distribution.ARCH,
    "opensuse": Distribution.SUSE,
    "opensuse-leap": Distribution.SUSE,
    "opensuse-tumbleweed": Distribution.SUSE,
    "sles": Distribution.SUSE,
    "suse": Distribution.SUSE,
}


def _classify(os_id: str, id_like: tuple[str, ...]) -> Distribution:
    """Map os-release identifiers to a family. ID wins over ID_LIKE."""
    for candidate in (os_id, *id_like):
        family = _FAMILY_IDS.get(candidate.lower())
        if family is not None:
            return family
    return Distribution.UNKNOWN


def _find_package_manager() -> PackageManagerKind:
    for kind in MANAGER_PRIORITY:
        executable = MANAGER_SPECS[kind].executable
        if shutil.which(executable):
            logger.debug("Found package manager %s (%s)", kind.value, executable)
            return kind
    return PackageManagerKind.NONE


def probe_system(root_dir: Path | None = None) -> SystemProfile:
    """Identify the distribution family and package manager.

    Args:
        root_dir: Read os-release below this directory instead of ``/``.
            Used by tests and when preparing a mounted system.

    Returns:
        SystemProfile for the running system.

    Raises:
        UnsupportedSystemError: If no known package manager is on PATH.
    """
    info = distro.LinuxDistribution(
        include_lsb=False,
        include_uname=False,
        root_dir=str(root_dir) if root_dir is not None else None,
    )
    os_id = info.id()
    id_like = tuple(info.like().split())
    pretty_name = info.name(pretty=True)

    manager = _find_package_manager()
    if manager is PackageManagerKind.NONE:
        raise UnsupportedSystemError(
            f"No supported package manager found "
            f"(looked for: {', '.join(MANAGER_SPECS[k].executable for k in MANAGER_PRIORITY)})"
        )

    family = _classify(os_id, id_like)
    if family is Distribution.UNKNOWN:
        family = MANAGER_FAMILY[manager]
        logger.info(
            "Unrecognised distribution %r, assuming %s family from %s",
            os_id or "(no os-release)", family.value, manager.value,
        )

    profile = SystemProfile(
        distribution=family,
        package_manager=manager,
        os_id=os_id,
        id_like=id_like,
        pretty_name=pretty_name,
    )
    logger.info(
        "Detected %s (%s family) with %s",
        pretty_name or os_id or "unknown", family.value, manager.value,
    )
    return profile


def detect(root_dir: Path | None = None) -> tuple[Distribution, PackageManagerKind]:
    """Return ``(Distribution, PackageManagerKind)`` for this system."""
    return probe_system(root_dir).as_pair()
