"""
Core cache data structures.
"""
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Generic, Optional, Tuple, TypeVar

V = TypeVar("V")


class ConfigurationError(ValueError):
    """Raised for invalid cache construction or call parameters."""


class CacheSource(Enum):
    """How a value was served."""
    FRESH = "fresh"       # Within TTL
    STALE = "stale"       # Past TTL but within SWR window, revalidating
    UPSTREAM = "upstream" # Produced by the caller's producer


@dataclass
class CacheEntry(Generic[V]):
    """
    A stored value with the timestamp and TTL it was stored with.

    Freshness is always evaluated against an explicit clock reading so the
    owning cache decides what "now" means.
    """
    value: V
    cached_at: float
    ttl: float

    def age(self, now: float) -> float:
        """Seconds since the value was stored."""
        return now - self.cached_at

    def is_fresh(self, now: float) -> bool:
        return self.age(now) <= self.ttl

    def is_servable_stale(self, now: float, swr_window: float) -> bool:
        """Stale, but still inside the stale-while-revalidate window."""
        age = self.age(now)
        return self.ttl < age <= self.ttl + swr_window

    def is_expired(self, now: float, swr_window: float = 0.0) -> bool:
        """
        Fully expired and must be refetched.

        Pass swr_window=0 when SWR is disabled, which reduces to age > ttl.
        """
        return self.age(now) > self.ttl + swr_window


def _check_duration(name: str, value: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{name} must be a number of seconds, got {value!r}")
    if value < 0:
        raise ConfigurationError(f"{name} must be >= 0, got {value}")
    return float(value)


@dataclass(frozen=True)
class CacheConfig:
    """
    Immutable cache configuration, validated at construction.

    Attributes:
        default_ttl: Seconds a stored value stays fresh unless overridden
        enable_swr: Serve stale values while refreshing in the background
        swr_window: Extra seconds past TTL during which stale values are servable
            (defaults to default_ttl, so stale data lives for 2x TTL total)
        cleanup_interval: Seconds between background sweeps (0 = disabled)
        max_entries: Capacity bound, oldest-inserted entry evicted first (0 = unlimited)
        name: Label used for logging and stats
        clock: Monotonic time source in seconds
    """
    default_ttl: float = 60.0
    enable_swr: bool = False
    swr_window: Optional[float] = None
    cleanup_interval: float = 0.0
    max_entries: int = 0
    name: str = "default"
    clock: Callable[[], float] = field(default=time.monotonic, compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, "default_ttl", _check_duration("default_ttl", self.default_ttl))
        if self.swr_window is None:
            object.__setattr__(self, "swr_window", self.default_ttl)
        else:
            object.__setattr__(self, "swr_window", _check_duration("swr_window", self.swr_window))
        object.__setattr__(
            self, "cleanup_interval", _check_duration("cleanup_interval", self.cleanup_interval)
        )
        if isinstance(self.max_entries, bool) or not isinstance(self.max_entries, int):
            raise ConfigurationError(f"max_entries must be an integer, got {self.max_entries!r}")
        if self.max_entries < 0:
            raise ConfigurationError(f"max_entries must be >= 0, got {self.max_entries}")
        if not callable(self.clock):
            raise ConfigurationError("clock must be callable")

    @property
    def sweep_window(self) -> float:
        """Grace period past TTL before an entry is swept."""
        return self.swr_window if self.enable_swr else 0.0


@dataclass(frozen=True)
class GetOrSetOptions:
    """
    Per-call overrides for get_or_set.

    Unset fields fall back to the cache's configuration.
    """
    ttl: Optional[float] = None
    force_refresh: bool = False
    swr: Optional[bool] = None

    def resolve(self, config: CacheConfig) -> Tuple[float, bool, bool]:
        """
        Returns:
            (ttl, force_refresh, use_swr)
        """
        ttl = config.default_ttl if self.ttl is None else _check_duration("ttl", self.ttl)
        use_swr = config.enable_swr if self.swr is None else bool(self.swr)
        return ttl, bool(self.force_refresh), use_swr
