"""
modsync Loader Module.

Acquisition of the server loader binary.
"""

__all__ = ["FabricLoaderAcquirer", "LoaderAcquirer", "LoaderAcquisition"]

from modsync.loader.acquirer import FabricLoaderAcquirer, LoaderAcquirer, LoaderAcquisition
