"""Shared configuration classes for mediasync.

This module defines the connection settings for the media server and the
tunables of the batch synchronization engine.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ServerConfig:
    """Configuration for connecting to a media server.

    Attributes:
        server_url: Base URL of the server (e.g., "https://media.example.com").
        timeout: Connect/read timeout in seconds for every request.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    server_url: str
    timeout: float = 30.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize server URL."""
        self.server_url = self.server_url.rstrip("/")


@dataclass
class SyncSettings:
    """Tunables for the batch synchronization engine.

    Attributes:
        auto_upload: Upload items the server does not have yet.
        max_upload_attempts: Attempts per item before it counts as failed.
        retry_base_delay: Linear backoff base; the wait after attempt n is
            retry_base_delay * n seconds.
        list_cache_ttl: Validity window of the remote listing cache, in seconds.
        hash_buffer_size: Read size used while hashing content.
    """

    auto_upload: bool = False
    max_upload_attempts: int = 3
    retry_base_delay: float = 1.0
    list_cache_ttl: float = 30.0
    hash_buffer_size: int = 8192

    def __post_init__(self) -> None:
        """Validate numeric settings."""
        if self.max_upload_attempts < 1:
            raise ValueError("max_upload_attempts must be at least 1")
        if self.retry_base_delay < 0:
            raise ValueError("retry_base_delay cannot be negative")
        if self.hash_buffer_size <= 0:
            raise ValueError("hash_buffer_size must be positive")
