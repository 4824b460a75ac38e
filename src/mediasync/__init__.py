"""mediasync - hash-based batch synchronization of local media with a remote store."""

__version__ = "0.1.0"
