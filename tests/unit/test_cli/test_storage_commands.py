"""Tests for the storage CLI commands.

Testing approach:
- Uses Click's CliRunner for command invocation
- Replaces the service factory with one bound to a seeded in-memory store
- Tests output, exit codes and the resulting bucket contents
"""

from unittest.mock import patch

from click.testing import CliRunner
import pytest

from bucket_browser.cli.commands.storage import storage
from bucket_browser.cli.main import cli
from bucket_browser.core.settings import TransferSettings
from bucket_browser.features.browser import BucketBrowserService
from bucket_browser.infra.storage.backends import MemoryObjectStore

# =============================================================================
# Test Fixtures
# =============================================================================


@pytest.fixture
def cli_runner():
    """Create Click CLI runner for testing commands."""
    return CliRunner()


@pytest.fixture
def store():
    """Seeded store shared by every service the command creates."""
    return MemoryObjectStore(
        bucket="cli-bucket",
        objects={
            "a.txt": b"hello",
            "docs/b.txt": b"x" * 2048,
            "docs/c.txt": b"y" * 10,
        },
    )


@pytest.fixture
def patched_service(store):
    """Route BucketBrowserService() in the commands to the seeded store."""

    def factory() -> BucketBrowserService:
        return BucketBrowserService(store, transfer_settings=TransferSettings(chunk_size=1024))

    with patch("bucket_browser.cli.commands.storage.BucketBrowserService", side_effect=factory):
        yield


# =============================================================================
# Browsing
# =============================================================================


class TestListCommand:
    """Test the ls command."""

    def test_ls_root(self, cli_runner, patched_service):
        result = cli_runner.invoke(storage, ["ls"])

        assert result.exit_code == 0
        assert "docs/" in result.output
        assert "a.txt" in result.output
        assert "1 folders, 1 objects" in result.output

    def test_ls_recursive(self, cli_runner, patched_service):
        result = cli_runner.invoke(storage, ["ls", "docs/", "-r"])

        assert result.exit_code == 0
        assert "docs/b.txt" in result.output
        assert "2.0 KB" in result.output

    def test_ls_empty(self, cli_runner, patched_service):
        result = cli_runner.invoke(storage, ["ls", "nothing/"])

        assert result.exit_code == 0
        assert "Nothing found" in result.output


class TestUsageCommand:
    """Test the usage command."""

    def test_usage(self, cli_runner, patched_service):
        result = cli_runner.invoke(storage, ["usage", "docs/"])

        assert result.exit_code == 0
        assert "Objects: 2" in result.output
        assert "(2058 bytes)" in result.output


# =============================================================================
# Transfers
# =============================================================================


class TestTransferCommands:
    """Test upload and download."""

    def test_upload(self, cli_runner, patched_service, store, tmp_path):
        source = tmp_path / "new.bin"
        source.write_bytes(b"n" * 3000)

        result = cli_runner.invoke(storage, ["upload", str(source), "up/new.bin"])

        assert result.exit_code == 0, result.output
        assert "Uploaded" in result.output
        assert store.read_object("up/new.bin") == b"n" * 3000

    def test_upload_conflict(self, cli_runner, patched_service, tmp_path):
        source = tmp_path / "a.txt"
        source.write_bytes(b"new")

        result = cli_runner.invoke(storage, ["upload", str(source), "a.txt"])

        assert result.exit_code == 1
        assert "Conflict" in result.output

    def test_download(self, cli_runner, patched_service, tmp_path):
        target = tmp_path / "out" / "b.txt"

        result = cli_runner.invoke(storage, ["download", "docs/b.txt", str(target)])

        assert result.exit_code == 0, result.output
        assert target.read_bytes() == b"x" * 2048

    def test_download_missing(self, cli_runner, patched_service, tmp_path):
        result = cli_runner.invoke(storage, ["download", "missing", str(tmp_path / "m")])

        assert result.exit_code == 1
        assert "Not Found" in result.output


# =============================================================================
# Renames and folders
# =============================================================================


class TestRenameCommands:
    """Test mv and mv-prefix."""

    def test_mv(self, cli_runner, patched_service, store):
        result = cli_runner.invoke(storage, ["mv", "a.txt", "z.txt"])

        assert result.exit_code == 0
        assert store.names() == ["docs/b.txt", "docs/c.txt", "z.txt"]

    def test_mv_prefix(self, cli_runner, patched_service, store):
        result = cli_runner.invoke(storage, ["mv-prefix", "docs", "archive"])

        assert result.exit_code == 0, result.output
        assert "Moved 2 objects" in result.output
        assert store.names() == ["a.txt", "archive/b.txt", "archive/c.txt"]

    def test_mv_prefix_nested(self, cli_runner, patched_service, store):
        result = cli_runner.invoke(storage, ["mv-prefix", "docs", "docs/archive"])

        assert result.exit_code == 1
        assert "Bad Request" in result.output
        assert store.names() == ["a.txt", "docs/b.txt", "docs/c.txt"]

    def test_mv_prefix_same_prefix(self, cli_runner, patched_service):
        result = cli_runner.invoke(storage, ["mv-prefix", "docs", "docs/"])

        assert result.exit_code == 1
        assert "Bad Request" in result.output


class TestFolderCommands:
    """Test rm, mkdir and rmdir."""

    def test_rm(self, cli_runner, patched_service, store):
        result = cli_runner.invoke(storage, ["rm", "a.txt"])

        assert result.exit_code == 0
        assert "a.txt" not in store.names()

    def test_mkdir_twice(self, cli_runner, patched_service, store):
        first = cli_runner.invoke(storage, ["mkdir", "photos"])
        second = cli_runner.invoke(storage, ["mkdir", "photos"])

        assert "Created photos/" in first.output
        assert "already exists" in second.output
        assert "photos/" in store.names()

    def test_rmdir_confirmed(self, cli_runner, patched_service, store):
        result = cli_runner.invoke(storage, ["rmdir", "docs", "--yes"])

        assert result.exit_code == 0
        assert store.names() == ["a.txt"]


class TestMainGroup:
    """Test the top-level group."""

    def test_version(self, cli_runner):
        result = cli_runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "bucket-browser" in result.output

    def test_storage_group_listed(self, cli_runner):
        result = cli_runner.invoke(cli, ["--help"])

        assert "storage" in result.output
