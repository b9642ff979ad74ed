"""
TTL configuration by endpoint category.
"""
from enum import Enum
from typing import Any, Dict

from .core import CacheConfig
from .manager import AsyncResultCache


class EndpointCategory(Enum):
    """Categories of endpoints with different caching behaviors."""
    HEALTH = "health"       # 15 seconds, no SWR
    MODELS = "models"       # 5 minutes, SWR
    SETTINGS = "settings"   # 30 seconds, SWR, invalidated on save
    FEATURES = "features"   # 10 seconds, no SWR, invalidated on mutation
    USAGE = "usage"         # 2 minutes, no SWR


# TTL Configuration by category (in seconds)
TTL_CONFIG: Dict[EndpointCategory, Dict[str, Any]] = {
    EndpointCategory.HEALTH: {
        "ttl": 15,                # System status can change rapidly
        "swr": False,
        "max_entries": 10,
    },
    EndpointCategory.MODELS: {
        "ttl": 300,               # Available models rarely change
        "swr": True,
        "swr_window": 300,        # Stale for 5 more minutes
        "max_entries": 50,
    },
    EndpointCategory.SETTINGS: {
        "ttl": 30,                # Changes only on explicit save
        "swr": True,
        "swr_window": 30,
        "max_entries": 20,
    },
    EndpointCategory.FEATURES: {
        "ttl": 10,                # Actively modified during work
        "swr": False,
        "max_entries": 200,
    },
    EndpointCategory.USAGE: {
        "ttl": 120,               # Push events cover changes in between
        "swr": False,
        "max_entries": 10,
    },
}


def get_config_for_category(category: EndpointCategory, **overrides: Any) -> CacheConfig:
    """
    Build a cache configuration from a category preset.

    Args:
        category: The endpoint category
        **overrides: CacheConfig fields taking precedence over the preset

    Returns:
        CacheConfig named after the category unless overridden
    """
    preset = TTL_CONFIG[category]
    options: Dict[str, Any] = {
        "default_ttl": preset["ttl"],
        "enable_swr": preset.get("swr", False),
        "max_entries": preset.get("max_entries", 0),
        "name": category.value,
    }
    if "swr_window" in preset:
        options["swr_window"] = preset["swr_window"]
    options.update(overrides)
    return CacheConfig(**options)


def create_cache_for_category(category: EndpointCategory, **overrides: Any) -> AsyncResultCache:
    """Create a cache configured from a category preset."""
    return AsyncResultCache(get_config_for_category(category, **overrides))
