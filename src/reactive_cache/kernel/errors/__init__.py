"""Kernel error hierarchy – public re-export surface.

Hierarchy::

    ReactiveCacheError
    ├── CacheError                 (cache.py)
    │   ├── FetchError
    │   ├── MutationError
    │   └── LoaderNotRegisteredError
    ├── ConsumerError              (consumer.py)
    │   ├── UnauthenticatedError
    │   ├── NotFoundError
    │   ├── ValidationError
    │   └── DuplicateItemError
    └── ConfigError                (reactive_cache.config.errors)
"""

from reactive_cache.kernel.errors.base import ReactiveCacheError
from reactive_cache.kernel.errors.cache import (
    CacheError,
    FetchError,
    LoaderNotRegisteredError,
    MutationError,
)
from reactive_cache.kernel.errors.consumer import (
    ConsumerError,
    DuplicateItemError,
    NotFoundError,
    UnauthenticatedError,
    ValidationError,
)

__all__ = [
    "CacheError",
    "ConsumerError",
    "DuplicateItemError",
    "FetchError",
    "LoaderNotRegisteredError",
    "MutationError",
    "NotFoundError",
    "ReactiveCacheError",
    "UnauthenticatedError",
    "ValidationError",
]
