"""
modsync Registry Module.

Resolves tracked packages against the external package registry.
"""

__all__ = ["RegistryClient"]

from modsync.registry.client import RegistryClient
