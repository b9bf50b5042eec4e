"""Pytest configuration and fixtures."""

import asyncio
from pathlib import Path

import pytest

from backup_scheduler.users import FilesystemUserDirectory

# Configure pytest-asyncio to auto-detect async tests
pytest_plugins = ("pytest_asyncio",)


class StaticUserDirectory:
    """User directory with a fixed user list and optional broken users.

    Resolving the backup directory of a broken user raises OSError, which
    the cleaner reports as a CleanError.
    """

    def __init__(self, root: Path, users: list[str], broken: set[str] | None = None):
        self.root = root
        self.users = users
        self.broken = broken or set()

    def list_all_users(self) -> list[str]:
        return list(self.users)

    def get_user_backup_directory(self, user_id: str) -> Path:
        if user_id in self.broken:
            raise OSError(f"storage for {user_id} is unavailable")
        return self.root / user_id / "backups"


def _write_files(directory: Path, files: dict[str, bytes]) -> None:
    for rel, content in files.items():
        path = directory / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)


async def _wait_until(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


@pytest.fixture
def anyio_backend():
    """Use asyncio as the async backend."""
    return "asyncio"


@pytest.fixture
def write_files():
    """Create files under a directory; relative paths may include sub-directories."""
    return _write_files


@pytest.fixture
def wait_until():
    """Poll a predicate on the running loop until it holds or time runs out."""
    return _wait_until


@pytest.fixture
def data_root(tmp_path: Path) -> Path:
    root = tmp_path / "data"
    root.mkdir()
    return root


@pytest.fixture
def user_directory(data_root: Path) -> FilesystemUserDirectory:
    return FilesystemUserDirectory(data_root)


@pytest.fixture
def static_users(data_root: Path):
    """Factory for StaticUserDirectory rooted at ``data_root``."""

    def factory(users: list[str], broken: set[str] | None = None) -> StaticUserDirectory:
        return StaticUserDirectory(data_root, users, broken)

    return factory


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "config.yaml"
