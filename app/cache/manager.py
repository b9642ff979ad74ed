"""
Async result cache with TTL, request coalescing and stale-while-revalidate.
"""
import asyncio
import logging
import threading
from typing import Any, Callable, Dict, Generic, Hashable, List, Optional, TypeVar

from .core import CacheConfig, CacheEntry, CacheSource, ConfigurationError, GetOrSetOptions
from .coalescer import RequestCoalescer
from .producers import Producer, call_producer

logger = logging.getLogger("cache.manager")

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

_MISSING = object()


class AsyncResultCache(Generic[K, V]):
    """
    In-memory cache for the results of async producer functions.

    - TTL expiry per entry, evaluated lazily on read and by an optional sweep
    - Request coalescing: at most one producer call in flight per key
    - Stale-while-revalidate: serve stale values while refreshing in background
    - FIFO eviction once max_entries is reached (oldest inserted goes first)
    - Predicate-based bulk invalidation

    Usage:
        cache = AsyncResultCache(default_ttl=30.0, enable_swr=True)
        settings = await cache.get_or_set("global-settings", load_settings)
        cache.invalidate_by(lambda key: key.startswith("list:/projects/demo"))
        cache.dispose()
    """

    def __init__(self, config: Optional[CacheConfig] = None, **options: Any):
        """
        Initialize the cache.

        Args:
            config: Full configuration; mutually exclusive with keyword options
            **options: CacheConfig fields, used when config is not given
        """
        if config is not None and options:
            raise ConfigurationError("Pass either a CacheConfig or keyword options, not both")
        self._config = config if config is not None else CacheConfig(**options)
        self._clock = self._config.clock

        self._store: Dict[K, CacheEntry[V]] = {}
        self._lock = threading.RLock()
        self._coalescer = RequestCoalescer()
        # Bumped by dispose(); fetches started under an older generation are not stored
        self._generation = 0

        self._stats = {
            "hits_fresh": 0,
            "hits_stale": 0,
            "misses": 0,
            "revalidations": 0,
            "revalidation_failures": 0,
            "evictions": 0,
            "swept": 0,
            "sweep_errors": 0,
        }

        # Periodic sweep
        self._sweep_stop: Optional[threading.Event] = None
        self._sweep_thread: Optional[threading.Thread] = None
        if self._config.cleanup_interval > 0:
            self._start_sweeper()

    @property
    def config(self) -> CacheConfig:
        return self._config

    @property
    def name(self) -> str:
        return self._config.name

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_or_set(
        self,
        key: K,
        producer: Producer,
        *,
        ttl: Optional[float] = None,
        force_refresh: bool = False,
        swr: Optional[bool] = None,
    ) -> V:
        """
        Get a value from cache, or produce it if missing or expired.

        Args:
            key: Cache key
            producer: Zero-arg callable returning an awaitable of the value
            ttl: Override the default TTL for the stored entry
            force_refresh: Skip the lookup and go straight to the producer
            swr: Override the cache-level stale-while-revalidate setting

        Returns:
            The cached or freshly produced value

        Raises:
            Exception: Any error from the producer, shared by every caller
                that joined the same in-flight call
        """
        entry_ttl, force_refresh, use_swr = GetOrSetOptions(
            ttl=ttl, force_refresh=force_refresh, swr=swr
        ).resolve(self._config)

        if force_refresh:
            logger.info(f"[{self.name}] FORCE REFRESH: {key}")
            return await self._deduped_fetch(key, producer, entry_ttl)

        with self._lock:
            entry = self._store.get(key)
            now = self._clock()

            if entry is None:
                source = CacheSource.UPSTREAM
                logger.info(f"[{self.name}] CACHE MISS: {key}")
            elif entry.is_fresh(now):
                self._stats["hits_fresh"] += 1
                logger.debug(
                    f"[{self.name}] CACHE HIT (fresh): {key} [age={entry.age(now):.1f}s]"
                )
                return entry.value
            elif use_swr and entry.is_servable_stale(now, self._config.swr_window):
                source = CacheSource.STALE
                self._stats["hits_stale"] += 1
                logger.info(
                    f"[{self.name}] CACHE HIT (stale, revalidating): {key} "
                    f"[age={entry.age(now):.1f}s]"
                )
            else:
                source = CacheSource.UPSTREAM
                logger.info(
                    f"[{self.name}] CACHE EXPIRED: {key} [age={entry.age(now):.1f}s]"
                )

        if source is CacheSource.STALE:
            self._trigger_background_revalidate(key, producer, entry_ttl)
            return entry.value

        return await self._deduped_fetch(key, producer, entry_ttl)

    def get(self, key: K, default: Any = None) -> Optional[V]:
        """
        Get a fresh cached value without producing one.

        An entry past its TTL is removed as a side effect.

        Returns:
            The cached value, or default if absent or expired
        """
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return default
            if not entry.is_fresh(self._clock()):
                del self._store[key]
                return default
            return entry.value

    def set(self, key: K, value: V, ttl: Optional[float] = None) -> None:
        """
        Store a value unconditionally.

        Args:
            key: Cache key
            value: Value to cache
            ttl: TTL in seconds (defaults to the cache's default_ttl)
        """
        entry_ttl, _, _ = GetOrSetOptions(ttl=ttl).resolve(self._config)
        self._store_value(key, value, entry_ttl)

    def has(self, key: K) -> bool:
        """Check whether a key exists and is fresh."""
        return self.get(key, _MISSING) is not _MISSING

    def delete(self, key: K) -> bool:
        """
        Delete a single cache entry. In-flight producers are left running.

        Returns:
            True if an entry was removed
        """
        with self._lock:
            if key in self._store:
                del self._store[key]
                logger.debug(f"[{self.name}] Deleted cache entry: {key}")
                return True
            return False

    def invalidate_by(self, predicate: Callable[[K], bool]) -> int:
        """
        Invalidate all entries whose keys match a predicate.

        Args:
            predicate: Receives each stored key; return True to invalidate

        Returns:
            Number of entries invalidated
        """
        with self._lock:
            to_delete = [k for k in self._store if predicate(k)]
            for key in to_delete:
                del self._store[key]
        if to_delete:
            logger.info(f"[{self.name}] Invalidated {len(to_delete)} cache entries")
        return len(to_delete)

    def clear(self) -> int:
        """
        Clear all entries and in-flight bookkeeping.

        Outstanding producer calls are not cancelled and may repopulate the
        cache when they complete.

        Returns:
            Number of entries cleared
        """
        with self._lock:
            count = len(self._store)
            self._store.clear()
        self._coalescer.clear()
        if count:
            logger.info(f"[{self.name}] Cleared {count} cache entries")
        return count

    def dispose(self) -> None:
        """
        Stop the periodic sweep and release all stored state.

        Safe to call more than once. Results of producers still in flight
        are discarded when they complete; later set and get_or_set calls
        store normally.
        """
        with self._lock:
            self._generation += 1
            stop, thread = self._sweep_stop, self._sweep_thread
            self._sweep_stop = None
            self._sweep_thread = None

        if stop is not None:
            stop.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)
        self.clear()

    def sweep(self) -> int:
        """
        Remove all fully expired entries.

        An entry is fully expired once its age exceeds ttl + swr_window when
        SWR is enabled, or just ttl when it is not.

        Returns:
            Number of entries removed
        """
        window = self._config.sweep_window
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._store.items() if e.is_expired(now, window)]
            for key in expired:
                del self._store[key]
            self._stats["swept"] += len(expired)
        if expired:
            logger.info(f"[{self.name}] Swept {len(expired)} expired cache entries")
        return len(expired)

    def keys(self) -> List[K]:
        """Snapshot of stored keys in insertion order, stale ones included."""
        with self._lock:
            return list(self._store.keys())

    def is_in_flight(self, key: K) -> bool:
        """Check whether a producer call for key is currently running."""
        return self._coalescer.is_in_flight(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            total_hits = self._stats["hits_fresh"] + self._stats["hits_stale"]
            total_requests = total_hits + self._stats["misses"]
            hit_rate = (total_hits / total_requests * 100) if total_requests > 0 else 0

            return {
                "name": self.name,
                "entries": len(self._store),
                "max_entries": self._config.max_entries,
                **self._stats,
                "hit_rate_percent": round(hit_rate, 1),
                "coalescer": self._coalescer.get_stats(),
            }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _deduped_fetch(self, key: K, producer: Producer, ttl: float) -> V:
        """Join the in-flight call for key, or start one."""
        generation = self._generation
        task, started = self._coalescer.join_or_start(
            key, lambda: self._execute_fetch(key, producer, ttl, generation)
        )
        if started:
            with self._lock:
                self._stats["misses"] += 1
        return await self._coalescer.wait(task)

    async def _execute_fetch(self, key: K, producer: Producer, ttl: float, generation: int) -> V:
        """Run the producer once and store its result."""
        value = await call_producer(producer)
        self._store_value(key, value, ttl, generation)
        return value

    def _store_value(self, key: K, value: V, ttl: float, generation: Optional[int] = None) -> None:
        with self._lock:
            if generation is not None and generation != self._generation:
                logger.debug(f"[{self.name}] Discarding result for {key}: started before dispose")
                return
            # Replacing an existing key does not grow the store, so only new keys evict
            if key not in self._store:
                self._evict_if_needed()
            self._store[key] = CacheEntry(value=value, cached_at=self._clock(), ttl=ttl)

    def _evict_if_needed(self) -> None:
        """Evict the oldest-inserted entry when at capacity. Caller holds the lock."""
        max_entries = self._config.max_entries
        if max_entries <= 0 or len(self._store) < max_entries:
            return
        oldest = next(iter(self._store))
        del self._store[oldest]
        self._stats["evictions"] += 1
        logger.debug(f"[{self.name}] Evicted oldest cache entry: {oldest}")

    def _trigger_background_revalidate(self, key: K, producer: Producer, ttl: float) -> None:
        """Refresh key in the background unless a producer call is already running."""
        generation = self._generation
        task, started = self._coalescer.join_or_start(
            key, lambda: self._execute_fetch(key, producer, ttl, generation)
        )
        if not started:
            logger.debug(f"[{self.name}] Already revalidating: {key}")
            return
        logger.debug(f"[{self.name}] Background revalidation started: {key}")
        task.add_done_callback(lambda t: self._on_revalidate_done(key, t))

    def _on_revalidate_done(self, key: K, task: "asyncio.Task[Any]") -> None:
        if task.cancelled():
            logger.debug(f"[{self.name}] Background revalidation cancelled: {key}")
            return
        error = task.exception()
        with self._lock:
            if error is None:
                self._stats["revalidations"] += 1
            else:
                self._stats["revalidation_failures"] += 1
        if error is None:
            logger.debug(f"[{self.name}] Background revalidation complete: {key}")
        else:
            logger.warning(f"[{self.name}] Background revalidation failed: {key} - {error!r}")

    def _start_sweeper(self) -> None:
        self._sweep_stop = threading.Event()
        self._sweep_thread = threading.Thread(
            target=self._sweep_loop,
            args=(self._sweep_stop,),
            name=f"cache-sweep-{self.name}",
            daemon=True,
        )
        self._sweep_thread.start()

    def _sweep_loop(self, stop: threading.Event) -> None:
        interval = self._config.cleanup_interval
        while not stop.wait(interval):
            try:
                self.sweep()
            except Exception as e:
                with self._lock:
                    self._stats["sweep_errors"] += 1
                logger.warning(f"[{self.name}] Sweep failed: {e!r}")
