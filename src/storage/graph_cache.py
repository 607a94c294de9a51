"""Content-addressed cache of built graph handles.

Entries are keyed by a SHA-256 hash of the node set, edge set and directedness,
so the same logical graph hits the same entry whatever order its parts arrive
in. Concurrent requests for an uncached key share one build.
"""

from __future__ import annotations

import hashlib
import json
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from cachetools import Cache, TTLCache
from loguru import logger

from src.utils.config import GraphCacheConfig

GraphBuilder = Callable[[List[int], List[Any], bool], Any]


@dataclass
class CacheEntry:
    """A built graph handle and its bookkeeping."""

    key: str
    graph: Any
    created_at: float
    last_accessed_at: float
    access_count: int = 0
    node_count: int = 0
    edge_count: int = 0


class GraphCache:
    """Capacity and TTL bounded graph cache with single-flight builds.

    Entries live in a ``cachetools.TTLCache``: expired entries are purged on
    every insert and capacity overflow then drops the least recently used
    entry.

    Builds run on the cache's own worker pool. Every caller, including the one
    that triggered the build, waits on the shared future, so a caller that
    gives up never cancels a build other callers are waiting on.

    Args:
        max_size: Maximum number of cached graphs
        ttl_seconds: Entry lifetime measured from creation
        build_workers: Size of the build pool
        clock: Monotonic time source (seconds)
    """

    def __init__(
        self,
        max_size: int = 100,
        ttl_seconds: float = 15 * 60,
        build_workers: int = 4,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: TTLCache = TTLCache(maxsize=max_size, ttl=ttl_seconds, timer=clock)
        self._pending: Dict[str, Future] = {}
        self._generation = 0
        self._hits = 0
        self._misses = 0
        self._executor = ThreadPoolExecutor(
            max_workers=build_workers, thread_name_prefix="graph-cache-build"
        )

        logger.info(
            "Initialized GraphCache",
            max_size=max_size,
            ttl_seconds=ttl_seconds,
            build_workers=build_workers,
        )

    @classmethod
    def from_config(cls, config: GraphCacheConfig) -> "GraphCache":
        return cls(
            max_size=config.max_size,
            ttl_seconds=config.ttl_seconds,
            build_workers=config.build_workers,
        )

    @staticmethod
    def compute_cache_key(nodes: Iterable[int], edges: Iterable[Any], directed: bool) -> str:
        """Hash the logical graph.

        Edges need ``source``, ``target`` and ``link_type`` attributes. For
        undirected graphs the endpoints are ordered before stringifying.
        """
        edge_strings = []
        for edge in edges:
            source, target = edge.source, edge.target
            if not directed and source > target:
                source, target = target, source
            link_type = getattr(edge.link_type, "value", edge.link_type)
            edge_strings.append(f"{source}-{target}-{link_type}")

        payload = json.dumps(
            {
                "nodes": sorted(set(nodes)),
                "edges": sorted(edge_strings),
                "directed": directed,
            },
            separators=(",", ":"),
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def get_or_build(
        self,
        nodes: Sequence[int],
        edges: Sequence[Any],
        directed: bool,
        builder: GraphBuilder,
        timeout: float | None = None,
    ) -> Any:
        """Return the cached graph, building it once if absent.

        Args:
            nodes: Graph nodes
            edges: Graph edges
            directed: Whether the graph is directed
            builder: Called as ``builder(nodes, edges, directed)`` on a miss
            timeout: Seconds to wait for the build (None waits indefinitely)

        Returns:
            The graph handle

        Raises:
            TimeoutError: If the build does not finish within ``timeout``
            Exception: Whatever ``builder`` raised
        """
        return self.get_or_build_future(nodes, edges, directed, builder).result(timeout=timeout)

    def get_or_build_future(
        self,
        nodes: Sequence[int],
        edges: Sequence[Any],
        directed: bool,
        builder: GraphBuilder,
    ) -> Future:
        """Return a future for the graph, scheduling one shared build if absent.

        A hit returns an already completed future. The future is shared with
        every other caller waiting on the same key, so callers must not cancel it.
        """
        key = self.compute_cache_key(nodes, edges, directed)

        with self._lock:
            entry = self._lookup(key)
            if entry is not None:
                self._hits += 1
                done: Future = Future()
                done.set_result(entry.graph)
                return done

            self._misses += 1
            future = self._pending.get(key)
            if future is None:
                future = self._executor.submit(
                    self._build, key, list(nodes), list(edges), directed, builder, self._generation
                )
                self._pending[key] = future
                logger.debug("Scheduled graph build", key=key[:16], nodes=len(nodes))
            else:
                logger.debug("Joining in-flight graph build", key=key[:16])

        return future

    def get(self, nodes: Sequence[int], edges: Sequence[Any], directed: bool) -> Optional[Any]:
        """Return the cached graph or None, never building."""
        key = self.compute_cache_key(nodes, edges, directed)
        with self._lock:
            entry = self._lookup(key)
            if entry is None:
                self._misses += 1
                return None
            self._hits += 1
            return entry.graph

    def invalidate(self) -> None:
        """Drop every cached entry. Builds already running are not cached."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._generation += 1
        logger.info("Graph cache invalidated", entries=count)

    def clear(self) -> None:
        """Drop every entry and reset statistics."""
        self.invalidate()
        with self._lock:
            self._hits = 0
            self._misses = 0

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            now = self._clock()
            total = self._hits + self._misses
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "ttl_seconds": self.ttl_seconds,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / total if total else 0.0,
                "in_flight": len(self._pending),
                "entries": [
                    {
                        "key": f"{entry.key[:16]}...",
                        "age_seconds": now - entry.created_at,
                        "access_count": entry.access_count,
                        "nodes": entry.node_count,
                        "edges": entry.edge_count,
                    }
                    for entry in self._peek_entries()
                ],
            }

    def shutdown(self, wait: bool = True) -> None:
        """Stop the build pool. Queued builds are cancelled."""
        self._executor.shutdown(wait=wait, cancel_futures=True)
        logger.info("Graph cache shut down")

    # Internal helpers (call with self._lock held unless noted)

    def _lookup(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        entry.last_accessed_at = self._clock()
        entry.access_count += 1
        return entry

    def _peek_entries(self) -> List[CacheEntry]:
        """Live entries in insertion order, without touching recency."""
        return [Cache.__getitem__(self._entries, key) for key in self._entries]

    def _build(
        self,
        key: str,
        nodes: List[int],
        edges: List[Any],
        directed: bool,
        builder: GraphBuilder,
        generation: int,
    ) -> Any:
        """Run on the build pool without the lock held."""
        started = time.perf_counter()
        try:
            graph = builder(nodes, edges, directed)
        except BaseException as e:
            with self._lock:
                self._pending.pop(key, None)
            logger.error("Graph build failed", key=key[:16], error=str(e))
            raise

        with self._lock:
            if generation == self._generation:
                now = self._clock()
                self._entries[key] = CacheEntry(
                    key=key,
                    graph=graph,
                    created_at=now,
                    last_accessed_at=now,
                    node_count=len(nodes),
                    edge_count=len(edges),
                )
            self._pending.pop(key, None)

        logger.debug(
            "Built graph",
            key=key[:16],
            nodes=len(nodes),
            edges=len(edges),
            build_ms=(time.perf_counter() - started) * 1000,
        )
        return graph
