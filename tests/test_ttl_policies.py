"""
Tests for endpoint category presets.
"""
import pytest

from app.cache import AsyncResultCache, EndpointCategory
from app.cache.ttl_policies import (
    TTL_CONFIG,
    create_cache_for_category,
    get_config_for_category,
)


def test_every_category_has_a_preset():
    assert set(TTL_CONFIG) == set(EndpointCategory)


@pytest.mark.parametrize("category,ttl,swr,max_entries", [
    (EndpointCategory.HEALTH, 15, False, 10),
    (EndpointCategory.MODELS, 300, True, 50),
    (EndpointCategory.SETTINGS, 30, True, 20),
    (EndpointCategory.FEATURES, 10, False, 200),
    (EndpointCategory.USAGE, 120, False, 10),
])
def test_category_config(category, ttl, swr, max_entries):
    config = get_config_for_category(category)
    assert config.default_ttl == ttl
    assert config.enable_swr is swr
    assert config.max_entries == max_entries
    assert config.name == category.value


def test_swr_window_matches_ttl_for_models():
    assert get_config_for_category(EndpointCategory.MODELS).swr_window == 300


def test_overrides_win_over_preset():
    config = get_config_for_category(EndpointCategory.FEATURES, default_ttl=2, name="features-test")
    assert config.default_ttl == 2
    assert config.name == "features-test"
    assert config.max_entries == 200


def test_create_cache_for_category():
    cache = create_cache_for_category(EndpointCategory.HEALTH)
    try:
        assert isinstance(cache, AsyncResultCache)
        assert cache.config.default_ttl == 15
    finally:
        cache.dispose()
