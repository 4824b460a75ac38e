"""Tests for core configuration classes and enums."""

from __future__ import annotations

import pytest

from mediasync.core.config import ServerConfig, SyncSettings
from mediasync.core.types import MediaKind, SyncPhase


class TestServerConfig:
    """Tests for ServerConfig class."""

    def test_init_basic(self) -> None:
        """Should initialize with required fields."""
        config = ServerConfig(server_url="https://example.com")
        assert config.server_url == "https://example.com"
        assert config.timeout == 30.0
        assert config.verify_ssl is True

    def test_init_custom_timeout(self) -> None:
        """Should accept custom timeout."""
        config = ServerConfig(server_url="https://example.com", timeout=60.0)
        assert config.timeout == 60.0

    def test_url_trailing_slash_removed(self) -> None:
        """Should strip trailing slash from server URL."""
        config = ServerConfig(server_url="https://example.com/")
        assert config.server_url == "https://example.com"


class TestSyncSettings:
    """Tests for SyncSettings validation."""

    def test_defaults(self) -> None:
        """Defaults match the documented retry and cache policy."""
        settings = SyncSettings()
        assert settings.auto_upload is False
        assert settings.max_upload_attempts == 3
        assert settings.retry_base_delay == 1.0
        assert settings.list_cache_ttl == 30.0
        assert settings.hash_buffer_size == 8192

    def test_rejects_zero_attempts(self) -> None:
        """At least one attempt is required."""
        with pytest.raises(ValueError):
            SyncSettings(max_upload_attempts=0)

    def test_rejects_negative_delay(self) -> None:
        """The backoff base cannot be negative."""
        with pytest.raises(ValueError):
            SyncSettings(retry_base_delay=-1.0)

    def test_rejects_empty_buffer(self) -> None:
        """The read buffer must be positive."""
        with pytest.raises(ValueError):
            SyncSettings(hash_buffer_size=0)


class TestMediaKind:
    """Tests for MediaKind."""

    @pytest.mark.parametrize(
        ("mime_type", "expected"),
        [
            ("video/mp4", MediaKind.VIDEO),
            ("video/quicktime", MediaKind.VIDEO),
            ("image/jpeg", MediaKind.IMAGE),
            ("application/octet-stream", MediaKind.IMAGE),
            (None, MediaKind.IMAGE),
        ],
    )
    def test_from_mime_type(self, mime_type: str | None, expected: MediaKind) -> None:
        """Anything that is not video is an image."""
        assert MediaKind.from_mime_type(mime_type) == expected

    def test_wire_value(self) -> None:
        """Values are the names sent to the server."""
        assert MediaKind.VIDEO.value == "video"


class TestSyncPhase:
    """Tests for SyncPhase."""

    def test_terminal_phases(self) -> None:
        """COMPLETED, CANCELLED and ERROR are terminal."""
        terminal = {p for p in SyncPhase if p.is_terminal}
        assert terminal == {SyncPhase.COMPLETED, SyncPhase.CANCELLED, SyncPhase.ERROR}

    def test_active_phases(self) -> None:
        """Only the working phases are active."""
        assert SyncPhase.UPLOADING.is_active
        assert not SyncPhase.IDLE.is_active
        assert not SyncPhase.COMPLETED.is_active
