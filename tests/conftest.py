"""
Shared test fixtures and configuration.
"""

from pathlib import Path

import pytest

from gnulinwiz.adapters.mock import MockCommandRunner, MockPackageAdapter
from gnulinwiz.core.context import RunContext
from gnulinwiz.core.models.environment import Distribution, PackageManagerKind, SystemProfile
from gnulinwiz.core.reliability.retry import RetryPolicy


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def profile() -> SystemProfile:
    return SystemProfile(
        distribution=Distribution.DEBIAN,
        package_manager=PackageManagerKind.APT,
        os_id="ubuntu",
        id_like=("debian",),
        pretty_name="Ubuntu 24.04 LTS",
    )


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """A throwaway home directory."""
    home_dir = tmp_path / "home" / "alice"
    home_dir.mkdir(parents=True)
    return home_dir


@pytest.fixture
def context(profile: SystemProfile, home: Path) -> RunContext:
    return RunContext(profile=profile, user="alice", home=home)


@pytest.fixture
def mock_adapter() -> MockPackageAdapter:
    return MockPackageAdapter()


@pytest.fixture
def mock_runner() -> MockCommandRunner:
    return MockCommandRunner()


@pytest.fixture
def fast_retry() -> RetryPolicy:
    """Retry policy without the delay."""
    return RetryPolicy(max_attempts=3, delay_seconds=0)


@pytest.fixture
def os_release(tmp_path: Path):
    """Write ``<tmp_path>/etc/os-release``; returns the root directory."""
    def write(content: str) -> Path:
        path = tmp_path / "etc" / "os-release"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return tmp_path
    return write
