"""Client side of mediasync: local state, server API, sync engine and CLI."""
