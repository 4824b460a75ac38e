"""Tests for CLI commands - configure, logout, sync, status, clear-cache, remote, delete."""

import json
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from mediasync.client.api import (
    AuthExpiredError,
    HTTPClient,
    NotFoundError,
    ReconcileResult,
    RemoteMediaItem,
)
from mediasync.client.cli import cli
from mediasync.client.state import FingerprintStore
from mediasync.client.sync.types import SyncedRecord


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def config_dir(tmp_path: Path):
    """Point the CLI at a temporary config directory."""
    config = tmp_path / ".mediasync"
    with patch("mediasync.client.cli.config.get_config_dir", return_value=config):
        yield config


@pytest.fixture
def media_folder(tmp_path: Path) -> Path:
    folder = tmp_path / "Pictures"
    folder.mkdir()
    (folder / "a.jpg").write_bytes(b"first photo")
    (folder / "b.jpg").write_bytes(b"second photo")
    return folder


@pytest.fixture
def configured(config_dir: Path, media_folder: Path) -> Path:
    """Write a complete config file."""
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "config.json").write_text(
        json.dumps(
            {
                "server_url": "http://media.test",
                "auth_token": "tok",
                "media_folder": str(media_folder),
                "retry_base_delay": 0,
            }
        )
    )
    return config_dir


def read_config(config_dir: Path) -> dict:
    return json.loads((config_dir / "config.json").read_text())


def fake_reconcile(token: str, hashes: dict[str, str]) -> ReconcileResult:
    """A server that has nothing yet."""
    return ReconcileResult(already_synced={}, needs_upload=sorted(hashes))


class TestConfigureCommand:
    """Tests for 'mediasync configure' command."""

    def test_configure_saves_config(
        self, runner: CliRunner, config_dir: Path, media_folder: Path
    ) -> None:
        """Configure should store server, token and folder."""
        with patch.object(HTTPClient, "health_check", return_value=True):
            result = runner.invoke(
                cli,
                [
                    "configure",
                    "--server", "http://media.test/",
                    "--token", "tok",
                    "--folder", str(media_folder),
                    "--auto-upload",
                ],
            )

        assert result.exit_code == 0, result.output
        config = read_config(config_dir)
        assert config["server_url"] == "http://media.test"
        assert config["auth_token"] == "tok"
        assert config["media_folder"] == str(media_folder.resolve())
        assert config["auto_upload"] is True
        assert "Configured server http://media.test" in result.output

    def test_configure_prompts_when_missing(
        self, runner: CliRunner, config_dir: Path
    ) -> None:
        """Configure should prompt for server URL and token."""
        with patch.object(HTTPClient, "health_check", return_value=True):
            result = runner.invoke(cli, ["configure"], input="http://media.test\nsecret\n")

        assert result.exit_code == 0, result.output
        config = read_config(config_dir)
        assert config["server_url"] == "http://media.test"
        assert config["auth_token"] == "secret"

    def test_configure_warns_when_unreachable(
        self, runner: CliRunner, config_dir: Path
    ) -> None:
        """An unreachable server is reported but the config is saved."""
        with patch.object(HTTPClient, "health_check", return_value=False):
            result = runner.invoke(
                cli, ["configure", "--server", "http://down.test", "--token", "tok"]
            )

        assert result.exit_code == 0
        assert "not reachable" in result.output
        assert read_config(config_dir)["server_url"] == "http://down.test"

    def test_configure_keeps_existing_values(
        self, runner: CliRunner, configured: Path
    ) -> None:
        """Options not given keep their current value."""
        with patch.object(HTTPClient, "health_check", return_value=True):
            result = runner.invoke(cli, ["configure", "--no-auto-upload"])

        assert result.exit_code == 0
        config = read_config(configured)
        assert config["auth_token"] == "tok"
        assert config["auto_upload"] is False


class TestLogoutCommand:
    """Tests for 'mediasync logout' command."""

    def test_logout_removes_token(self, runner: CliRunner, configured: Path) -> None:
        """Logout should drop the token and keep the server."""
        result = runner.invoke(cli, ["logout"])

        assert result.exit_code == 0
        assert "Logged out." in result.output
        config = read_config(configured)
        assert "auth_token" not in config
        assert config["server_url"] == "http://media.test"

    def test_logout_when_not_logged_in(self, runner: CliRunner, config_dir: Path) -> None:
        """Logout without a token says so."""
        result = runner.invoke(cli, ["logout"])

        assert result.exit_code == 0
        assert "Not logged in." in result.output


class TestStatusCommand:
    """Tests for 'mediasync status' command."""

    def test_status_not_configured(self, runner: CliRunner, config_dir: Path) -> None:
        """Status should hint at configure."""
        result = runner.invoke(cli, ["status"])

        assert result.exit_code == 0
        assert "Not configured" in result.output

    def test_status_shows_state(
        self, runner: CliRunner, configured: Path, media_folder: Path
    ) -> None:
        """Status should show server, folder and counters."""
        store = FingerprintStore(configured / "state.db")
        store.upsert_synced([SyncedRecord("/a.jpg", "r1", "h", 1.0)])
        store.set_last_failed(["/b.jpg"])
        store.close()

        result = runner.invoke(cli, ["status"])

        assert result.exit_code == 0
        assert "http://media.test" in result.output
        assert "Logged in:    yes" in result.output
        assert str(media_folder.resolve()) in result.output
        assert "Synced items: 1" in result.output
        assert "Last sync:    never" in result.output
        assert "Failed last time: 1" in result.output


class TestClearCacheCommand:
    """Tests for 'mediasync clear-cache' command."""

    def test_clear_cache(self, runner: CliRunner, configured: Path) -> None:
        """clear-cache should empty the store."""
        store = FingerprintStore(configured / "state.db")
        store.upsert_synced([SyncedRecord("/a.jpg", "r1", "h", 1.0)])
        store.close()

        result = runner.invoke(cli, ["clear-cache", "--yes"])

        assert result.exit_code == 0
        assert "Local cache cleared." in result.output
        store = FingerprintStore(configured / "state.db")
        assert store.synced_count() == 0
        store.close()

    def test_clear_cache_aborts_without_confirmation(
        self, runner: CliRunner, configured: Path
    ) -> None:
        """Answering no leaves the store untouched."""
        store = FingerprintStore(configured / "state.db")
        store.upsert_synced([SyncedRecord("/a.jpg", "r1", "h", 1.0)])
        store.close()

        result = runner.invoke(cli, ["clear-cache"], input="n\n")

        assert result.exit_code != 0
        store = FingerprintStore(configured / "state.db")
        assert store.synced_count() == 1
        store.close()


class TestSyncCommand:
    """Tests for 'mediasync sync' command."""

    def test_sync_requires_config(self, runner: CliRunner, config_dir: Path) -> None:
        """Sync should fail when not configured."""
        result = runner.invoke(cli, ["sync", "--no-progress"])

        assert result.exit_code == 1
        assert "Not configured" in result.output

    def test_sync_requires_token(
        self, runner: CliRunner, configured: Path
    ) -> None:
        """Sync should fail when logged out."""
        config = read_config(configured)
        del config["auth_token"]
        (configured / "config.json").write_text(json.dumps(config))

        result = runner.invoke(cli, ["sync", "--no-progress"])

        assert result.exit_code == 1
        assert "Not logged in" in result.output

    def test_sync_without_upload(self, runner: CliRunner, configured: Path) -> None:
        """Sync reports pending items and uploads nothing."""
        with (
            patch.object(HTTPClient, "reconcile", side_effect=fake_reconcile) as reconcile,
            patch.object(HTTPClient, "upload_media") as upload_media,
        ):
            result = runner.invoke(cli, ["sync", "--no-progress", "--no-upload"])

        assert result.exit_code == 0, result.output
        reconcile.assert_called_once()
        upload_media.assert_not_called()
        assert "0 uploaded" in result.output
        assert "2 pending" in result.output

    def test_sync_with_upload(self, runner: CliRunner, configured: Path) -> None:
        """Sync with --upload uploads missing items and records them."""
        with (
            patch.object(HTTPClient, "reconcile", side_effect=fake_reconcile),
            patch.object(HTTPClient, "upload_media", side_effect=["r1", "r2"]) as upload_media,
        ):
            result = runner.invoke(cli, ["sync", "--no-progress", "--upload"])

        assert result.exit_code == 0, result.output
        assert upload_media.call_count == 2
        assert "2 uploaded" in result.output
        store = FingerprintStore(configured / "state.db")
        assert store.synced_count() == 2
        store.close()

    def test_sync_reports_failures(self, runner: CliRunner, configured: Path) -> None:
        """Items that keep failing are listed and remembered."""
        with (
            patch.object(HTTPClient, "reconcile", side_effect=fake_reconcile),
            patch.object(HTTPClient, "upload_media", side_effect=OSError("disk")),
        ):
            result = runner.invoke(cli, ["sync", "--no-progress", "--upload"])

        assert result.exit_code == 0, result.output
        assert "Failed:" in result.output
        assert "--retry-failed" in result.output
        store = FingerprintStore(configured / "state.db")
        assert len(store.get_last_failed()) == 2
        store.close()

    def test_retry_failed_with_nothing_to_retry(
        self, runner: CliRunner, configured: Path
    ) -> None:
        """--retry-failed with no failures exits early."""
        with patch.object(HTTPClient, "reconcile") as reconcile:
            result = runner.invoke(cli, ["sync", "--no-progress", "--retry-failed"])

        assert result.exit_code == 0
        assert "No failed uploads to retry." in result.output
        reconcile.assert_not_called()

    def test_sync_session_expired(self, runner: CliRunner, configured: Path) -> None:
        """A rejected token logs out and exits with an error."""
        with patch.object(
            HTTPClient, "reconcile", side_effect=AuthExpiredError("expired", 401)
        ):
            result = runner.invoke(cli, ["sync", "--no-progress"])

        assert result.exit_code == 1
        assert "Session expired" in result.output
        assert "auth_token" not in read_config(configured)


class TestRemoteCommands:
    """Tests for 'mediasync remote' and 'mediasync delete' commands."""

    def test_remote_lists_items(self, runner: CliRunner, configured: Path) -> None:
        """Remote should list items and mark those from this device."""
        store = FingerprintStore(configured / "state.db")
        store.upsert_synced([SyncedRecord("/a.jpg", "r1", "h", 1.0)])
        store.close()
        items = [
            RemoteMediaItem(
                id="r1",
                original_name="a.jpg",
                type="image",
                size=2048,
                last_modified=datetime(2024, 5, 1),
            ),
            RemoteMediaItem(
                id="r2",
                original_name="other.mp4",
                type="video",
                size=10,
                last_modified=None,
            ),
        ]

        with patch.object(HTTPClient, "list_media", return_value=items):
            result = runner.invoke(cli, ["remote"])

        assert result.exit_code == 0, result.output
        lines = result.output.splitlines()
        assert any(line.startswith("* r1") and "2024-05-01" in line for line in lines)
        assert any(line.startswith("  r2") and "10 B" in line for line in lines)
        assert "2 items" in result.output

    def test_remote_empty(self, runner: CliRunner, configured: Path) -> None:
        """An empty server says so."""
        with patch.object(HTTPClient, "list_media", return_value=[]):
            result = runner.invoke(cli, ["remote"])

        assert result.exit_code == 0
        assert "No media on the server." in result.output

    def test_delete(self, runner: CliRunner, configured: Path) -> None:
        """Delete should call the server and forget the local record."""
        store = FingerprintStore(configured / "state.db")
        store.upsert_synced([SyncedRecord("/a.jpg", "r1", "h", 1.0)])
        store.close()

        with patch.object(HTTPClient, "delete_media") as delete_media:
            result = runner.invoke(cli, ["delete", "r1", "--yes"])

        assert result.exit_code == 0, result.output
        delete_media.assert_called_once_with("tok", "r1")
        assert "Deleted r1." in result.output
        store = FingerprintStore(configured / "state.db")
        assert store.synced_count() == 0
        store.close()

    def test_delete_missing_item(self, runner: CliRunner, configured: Path) -> None:
        """An item already gone on the server counts as deleted."""
        with patch.object(
            HTTPClient, "delete_media", side_effect=NotFoundError("gone", 404)
        ):
            result = runner.invoke(cli, ["delete", "r9", "--yes"])

        assert result.exit_code == 0
        assert "Deleted r9." in result.output

    def test_delete_session_expired(self, runner: CliRunner, configured: Path) -> None:
        """A rejected token exits with an error."""
        with patch.object(
            HTTPClient, "delete_media", side_effect=AuthExpiredError("expired", 401)
        ):
            result = runner.invoke(cli, ["delete", "r1", "--yes"])

        assert result.exit_code == 1
        assert "Session expired" in result.output


class TestHelp:
    def test_help_lists_commands(self, runner: CliRunner) -> None:
        """--help shows every command."""
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in ("configure", "logout", "sync", "status", "clear-cache", "remote", "delete"):
            assert command in result.output


def test_engine_wiring_closes_resources(configured: Path) -> None:
    """open_engine closes the client and the store."""
    from mediasync.client.cli.config import load_config
    from mediasync.client.cli.sync import open_engine

    with patch.object(HTTPClient, "close") as close:
        with open_engine(load_config()) as (engine, store):
            assert engine.synced_count() == 0
        close.assert_called_once()

