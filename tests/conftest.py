"""Shared fixtures."""

from __future__ import annotations

from typing import Iterator

import pytest

from src.network.providers import ProviderInvoker
from src.storage.graph_cache import GraphCache
from src.storage.memory_store import InMemoryEntityStore
from tests.sample_network import sample_codes, sample_entities, sample_links


@pytest.fixture
def sample_store() -> InMemoryEntityStore:
    """In-memory store holding the sample network."""
    return InMemoryEntityStore(sample_entities(), sample_links(), sample_codes())


@pytest.fixture
def invoker() -> Iterator[ProviderInvoker]:
    """Request-scoped provider invoker."""
    with ProviderInvoker(max_workers=4, timeout=5.0) as inv:
        yield inv


@pytest.fixture
def graph_cache() -> Iterator[GraphCache]:
    """Small graph cache, shut down after the test."""
    cache = GraphCache(max_size=10, ttl_seconds=60.0, build_workers=2)
    yield cache
    cache.shutdown()
