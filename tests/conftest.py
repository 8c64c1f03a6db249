"""
Pytest configuration and fixtures for blockutils tests.
"""

import sys
import tempfile
from pathlib import Path
from typing import Generator, Mapping, Sequence

import pytest
import structlog

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from blockutils.core.config import BlockUtilsConfig  # noqa: E402
from blockutils.core.errors import DeviceNotFound  # noqa: E402
from blockutils.platform.base import (  # noqa: E402
    CommandResult,
    MountResolver,
    ProcessRunner,
    PropertyReader,
)


class FakePropertyReader(PropertyReader):
    """In-memory property reader keyed by device path."""

    def __init__(
        self,
        devices: Mapping[str, Mapping[str, str]] | None = None,
        signatures: Mapping[str, bytes] | None = None,
        aliases: Mapping[str, str] | None = None,
    ) -> None:
        self.devices = {path: dict(props) for path, props in (devices or {}).items()}
        self.signatures = dict(signatures or {})
        self.aliases = dict(aliases or {})
        self.signature_reads: list[str] = []

    def list_device_paths(self) -> Sequence[str]:
        return list(self.devices)

    def read_properties(self, path: str) -> Mapping[str, str]:
        if path not in self.devices:
            raise DeviceNotFound(path)
        return dict(self.devices[path])

    def read_signature_bytes(self, path: str, offset: int, length: int) -> bytes:
        self.signature_reads.append(path)
        if path not in self.devices:
            raise DeviceNotFound(path)
        return self.signatures.get(path, b"")[offset : offset + length]

    def canonical_path(self, path: str) -> str:
        return self.aliases.get(path, path)


class FakeMountResolver(MountResolver):
    """Mount table from a {device: mountpoint} mapping."""

    def __init__(self, mounts: Mapping[str, str] | None = None) -> None:
        self.mounts = dict(mounts or {})

    def mountpoint_of(self, path: str) -> str | None:
        return self.mounts.get(path)

    def device_at(self, mountpoint: str) -> str | None:
        for device, mounted_on in self.mounts.items():
            if mounted_on == mountpoint:
                return device
        return None


class FakeRunner(ProcessRunner):
    """Records every invocation and returns a canned result."""

    def __init__(
        self,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
        error: Exception | None = None,
    ) -> None:
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.error = error
        self.calls: list[tuple[str, list[str]]] = []

    def run(self, command: str, args: Sequence[str]) -> CommandResult:
        self.calls.append((command, list(args)))
        if self.error is not None:
            raise self.error
        return CommandResult(
            returncode=self.returncode,
            stdout=self.stdout,
            stderr=self.stderr,
            command=[command, *args],
        )


def disk_properties(**overrides: str) -> dict[str, str]:
    """Typical properties of an empty SATA SSD partition."""
    properties = {
        "DEVTYPE": "partition",
        "size": "2048",
        "removable": "0",
        "queue/rotational": "0",
        "partition": "1",
        "holders": "",
        "slaves": "",
    }
    properties.update(overrides)
    return properties


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_config(temp_dir: Path) -> BlockUtilsConfig:
    """Create a sample configuration for testing."""
    config = BlockUtilsConfig()
    config.logging.log_directory = temp_dir / "logs"
    return config


@pytest.fixture(autouse=True, scope="session")
def stdlib_logging() -> None:
    """Send structlog events through stdlib logging so pytest captures them
    instead of them landing on stdout next to CLI output."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.KeyValueRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow running tests")
