"""Core module - Shared configuration and types."""

from mediasync.core.config import ServerConfig, SyncSettings
from mediasync.core.types import MediaKind, SyncPhase

__all__ = [
    # Config
    "ServerConfig",
    "SyncSettings",
    # Types
    "MediaKind",
    "SyncPhase",
]
