"""
modsync - keep a modded game server in sync with its package registry.

Resolves the latest compatible release of every tracked mod, replaces stale
archives behind a timestamped backup, and refreshes the server loader binary.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
