"""
Environment models — what kind of system we are configuring.

A ``Distribution`` names the distro family; a ``PackageManagerKind``
names the package manager the engine talks to. Each concrete manager
variant carries a ``ManagerSpec``: the command templates and the
signals that mean "another process holds the package database lock".
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Distribution(str, Enum):
    """Distribution family."""

    DEBIAN = "debian"
    REDHAT = "redhat"
    ARCH = "arch"
    SUSE = "suse"
    UNKNOWN = "unknown"


class PackageManagerKind(str, Enum):
    """Supported package managers."""

    APT = "apt"
    DNF = "dnf"
    PACMAN = "pacman"
    ZYPPER = "zypper"
    NONE = "none"


class ManagerSpec(BaseModel):
    """Static description of one package manager variant.

    Command templates are argv lists; the ``{package}`` token is
    substituted with the package name.
    """

    model_config = ConfigDict(frozen=True)

    executable: str
    install_command: tuple[str, ...]
    query_command: tuple[str, ...]
    requires_root: bool = True
    lock_exit_codes: frozenset[int] = Field(default_factory=frozenset)
    lock_patterns: tuple[str, ...] = ()
    install_env: dict[str, str] = Field(default_factory=dict)


MANAGER_SPECS: dict[PackageManagerKind, ManagerSpec] = {
    PackageManagerKind.APT: ManagerSpec(
        executable="apt-get",
        install_command=("apt-get", "install", "-y", "{package}"),
        query_command=("dpkg-query", "-W", "-f=${Status}", "{package}"),
        lock_patterns=(
            r"Could not get lock",
            r"Unable to acquire the dpkg frontend lock",
        ),
        install_env={"DEBIAN_FRONTEND": "noninteractive"},
    ),
    PackageManagerKind.DNF: ManagerSpec(
        executable="dnf",
        install_command=("dnf", "install", "-y", "{package}"),
        query_command=("rpm", "-q", "{package}"),
        lock_patterns=(
            r"Waiting for process with pid",
            r"Failed to obtain the transaction lock",
            r"another copy is running",
        ),
    ),
    PackageManagerKind.PACMAN: ManagerSpec(
        executable="pacman",
        install_command=("pacman", "-S", "--needed", "--noconfirm", "{package}"),
        query_command=("pacman", "-Q", "{package}"),
        lock_patterns=(
            r"unable to lock database",
            r"could not lock database",
        ),
    ),
    PackageManagerKind.ZYPPER: ManagerSpec(
        executable="zypper",
        install_command=("zypper", "--non-interactive", "install", "{package}"),
        query_command=("rpm", "-q", "{package}"),
        # ZYPPER_EXIT_ZYPP_LOCKED
        lock_exit_codes=frozenset({7}),
        lock_patterns=(
            r"System management is locked",
        ),
    ),
}


# Fixed probe order: first executable found wins.
MANAGER_PRIORITY: tuple[PackageManagerKind, ...] = (
    PackageManagerKind.APT,
    PackageManagerKind.DNF,
    PackageManagerKind.PACMAN,
    PackageManagerKind.ZYPPER,
)


# Family a manager implies when os-release is not recognised.
MANAGER_FAMILY: dict[PackageManagerKind, Distribution] = {
    PackageManagerKind.APT: Distribution.DEBIAN,
    PackageManagerKind.DNF: Distribution.REDHAT,
    PackageManagerKind.PACMAN: Distribution.ARCH,
    PackageManagerKind.ZYPPER: Distribution.SUSE,
}


class SystemProfile(BaseModel):
    """Result of probing the running system."""

    model_config = ConfigDict(frozen=True)

    distribution: Distribution
    package_manager: PackageManagerKind
    os_id: str = ""
    id_like: tuple[str, ...] = ()
    pretty_name: str = ""

    def as_pair(self) -> tuple[Distribution, PackageManagerKind]:
        return self.distribution, self.package_manager

    def to_dict(self) -> dict:
        return {
            "distribution": self.distribution.value,
            "package_manager": self.package_manager.value,
            "os_id": self.os_id,
            "id_like": list(self.id_like),
            "pretty_name": self.pretty_name,
        }
