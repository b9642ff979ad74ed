"""
Async result cache with TTL, request coalescing, and stale-while-revalidate.
"""
from .core import (
    CacheConfig,
    CacheEntry,
    CacheSource,
    ConfigurationError,
    GetOrSetOptions,
)
from .coalescer import RequestCoalescer
from .manager import AsyncResultCache
from .ttl_policies import (
    TTL_CONFIG,
    EndpointCategory,
    create_cache_for_category,
    get_config_for_category,
)
from .producers import is_transient_error, with_retry, with_timeout
from .registry import (
    GLOBAL_SETTINGS_CACHE_KEY,
    CacheRegistry,
    features_list_key,
    features_summaries_key,
)

__all__ = [
    # Core types
    "CacheConfig",
    "CacheEntry",
    "CacheSource",
    "ConfigurationError",
    "GetOrSetOptions",
    # Coalescing
    "RequestCoalescer",
    # Cache
    "AsyncResultCache",
    # TTL policies
    "TTL_CONFIG",
    "EndpointCategory",
    "create_cache_for_category",
    "get_config_for_category",
    # Producer helpers
    "is_transient_error",
    "with_retry",
    "with_timeout",
    # Registry
    "GLOBAL_SETTINGS_CACHE_KEY",
    "CacheRegistry",
    "features_list_key",
    "features_summaries_key",
]
