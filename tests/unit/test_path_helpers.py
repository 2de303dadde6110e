"""Unit tests for path helper functions."""

from pathlib import Path

from symmetric_deployments.paths import (
    get_default_config_dir,
    get_default_deployments_dir,
    get_ledger_path,
    get_lock_path,
    get_network_config_path,
)


class TestDefaultDirectories:
    """Test the default directory helpers."""

    def test_deployments_dir_in_working_directory(self, tmp_path: Path, monkeypatch):
        """Test that ledgers live in ./deployments by default."""
        monkeypatch.chdir(tmp_path)

        assert get_default_deployments_dir() == tmp_path / "deployments"

    def test_config_dir_in_working_directory(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        assert get_default_config_dir() == tmp_path / "config" / "networks"

    def test_returns_absolute_path(self):
        """Test that returned paths are absolute."""
        assert get_default_deployments_dir().is_absolute()
        assert get_default_config_dir().is_absolute()


class TestGetLedgerPath:
    """Test the get_ledger_path function."""

    def test_default_location(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        assert get_ledger_path("moksha") == tmp_path / "deployments" / "moksha.json"

    def test_custom_directory_as_string(self, tmp_path: Path):
        """Test that custom directory can be provided as string."""
        path = get_ledger_path("vana", str(tmp_path / "ledgers"))

        assert path == tmp_path / "ledgers" / "vana.json"

    def test_relative_directory_converted_to_absolute(self, tmp_path: Path, monkeypatch):
        """Test that relative directory is converted to absolute path."""
        monkeypatch.chdir(tmp_path)

        path = get_ledger_path("vana", "relative")

        assert path.is_absolute()
        assert path == tmp_path / "relative" / "vana.json"

    def test_lock_file_next_to_ledger(self, tmp_path: Path):
        ledger_path = get_ledger_path("moksha", tmp_path)

        assert get_lock_path(ledger_path) == tmp_path / "moksha.json.lock"


class TestGetNetworkConfigPath:
    """Test the get_network_config_path function."""

    def test_default_location(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        assert get_network_config_path("sepolia") == tmp_path / "config" / "networks" / "sepolia.json"

    def test_custom_directory(self, tmp_path: Path):
        assert get_network_config_path("sepolia", tmp_path) == tmp_path / "sepolia.json"
