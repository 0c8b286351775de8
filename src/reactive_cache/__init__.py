"""
reactive_cache – shared reactive data cache for the platform's feature modules.

Import path convention::

    from reactive_cache.runtime import CacheRuntime
    from reactive_cache.cache import CacheStore, FetchCoordinator
    from reactive_cache.kernel.errors import FetchError, MutationError
    from reactive_cache.consumers import CartConsumer
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
