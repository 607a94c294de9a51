"""Provider interfaces consumed by the network engine and the invoker that calls them.

Providers are plain synchronous objects (a Neo4j session, an in-memory store, a
networkx adapter). The engine never calls them directly: every call goes through a
``ProviderInvoker``, which runs it on a worker pool with the request's timeout and
cancellation event and converts backend exceptions into the network error types.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from functools import partial
from typing import (
    Any,
    Callable,
    Dict,
    Hashable,
    List,
    Optional,
    Protocol,
    Sequence,
    TypeVar,
    runtime_checkable,
)

from loguru import logger

from src.network.errors import (
    NetworkError,
    ProviderFailureError,
    ProviderTimeoutError,
    RequestCancelledError,
)
from src.network.models import NetworkEdge
from src.storage.graph_cache import GraphCache
from src.storage.schemas import EntityFilter, EntitySummary, LinkType, TypedLink

T = TypeVar("T")


@runtime_checkable
class LinkDiscoveryProvider(Protocol):
    """Typed-link lookups over the entity store."""

    def links_within_group(
        self, ids: Sequence[int], include_kinship: bool, include_association: bool
    ) -> List[TypedLink]:
        """Links whose endpoints are both in ``ids``."""
        ...

    def links_from_group(
        self, ids: Sequence[int], include_kinship: bool, include_association: bool
    ) -> Dict[int, List[TypedLink]]:
        """Links with exactly one endpoint in ``ids``, keyed by that endpoint."""
        ...

    def load_entities(self, ids: Sequence[int]) -> Dict[int, EntitySummary]:
        """Attribute summaries for the entities that exist."""
        ...

    def filter_entities(self, ids: Sequence[int], predicate: EntityFilter) -> List[int]:
        """Subset of ``ids`` whose attributes satisfy ``predicate``."""
        ...


@runtime_checkable
class LabelLookupProvider(Protocol):
    """Code to label resolution for one link type."""

    def labels_for_codes(self, link_type: LinkType, codes: Sequence[int]) -> Dict[int, str]:
        ...


@runtime_checkable
class GraphAlgorithmProvider(Protocol):
    """Graph construction and path primitives over immutable graph handles."""

    def build_graph_handle(
        self, nodes: Sequence[int], edges: Sequence[NetworkEdge], directed: bool
    ) -> Any:
        ...

    def shortest_path(self, handle: Any, source: int, target: int) -> Optional[List[int]]:
        ...

    def all_simple_paths(
        self, handle: Any, source: int, target: int, max_length: int
    ) -> List[List[int]]:
        ...


@runtime_checkable
class GraphMetricsProvider(Protocol):
    """Optional capability: whole-graph metrics for a handle."""

    def graph_metrics(self, handle: Any) -> Dict[str, Any]:
        ...


class ProviderInvoker:
    """Runs provider calls on a per-request worker pool.

    Each call is bounded by ``timeout`` (seconds, None for no limit) and observes
    ``cancel_event``. The invoker owns its executor; ``close`` (or leaving the
    ``with`` block) shuts it down and cancels queued calls.
    """

    def __init__(
        self,
        max_workers: int = 8,
        *,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
        poll_interval: float = 0.05,
        thread_name_prefix: str = "network-provider",
    ):
        self.timeout = timeout
        self.cancel_event = cancel_event
        self.poll_interval = poll_interval
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix=thread_name_prefix
        )

    def __enter__(self) -> "ProviderInvoker":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def check_cancelled(self, operation: str) -> None:
        """Raise ``RequestCancelledError`` if the request has been abandoned."""
        if self.cancelled:
            logger.info("Request cancelled", operation=operation)
            raise RequestCancelledError(operation)

    def call(self, operation: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Invoke one provider function."""
        return self.invoke_many(operation, [partial(fn, *args, **kwargs)])[0]

    def invoke_many(self, operation: str, calls: Sequence[Callable[[], T]]) -> List[T]:
        """Invoke independent provider calls concurrently under one deadline.

        Results are returned in submission order. The first failure cancels the
        remaining calls and is raised for the whole batch.

        Raises:
            ProviderTimeoutError: If the deadline elapses first
            ProviderFailureError: If any call raises
            RequestCancelledError: If the cancel event is set while waiting
        """
        self.check_cancelled(operation)
        if not calls:
            return []

        futures: List[Future] = [self._executor.submit(call) for call in calls]
        return self.wait_for(operation, futures)

    def wait_for(
        self, operation: str, futures: Sequence[Future], *, owned: bool = True
    ) -> List[Any]:
        """Wait on futures in ``poll_interval`` slices under the deadline and cancel event.

        ``owned=False`` marks futures shared with other callers (such as a graph
        cache build): giving up on them stops this request waiting but leaves
        them running.
        """
        deadline = None if self.timeout is None else time.monotonic() + self.timeout
        pending = set(futures)

        try:
            while pending:
                self.check_cancelled(operation)

                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    logger.error(
                        "Provider call timed out", operation=operation, timeout=self.timeout
                    )
                    raise ProviderTimeoutError(operation, self.timeout)

                slice_timeout = self.poll_interval if remaining is None else min(
                    self.poll_interval, remaining
                )
                done, pending = wait(pending, timeout=slice_timeout, return_when=FIRST_EXCEPTION)

                for future in done:
                    error = future.exception()
                    if error is None:
                        continue
                    converted = self._convert(operation, error)
                    if converted is error:
                        raise error
                    raise converted from error
        except BaseException:
            if owned:
                for future in futures:
                    future.cancel()
            raise

        return [future.result() for future in futures]

    def _convert(self, operation: str, error: BaseException) -> NetworkError:
        if isinstance(error, NetworkError):
            return error
        if isinstance(error, TimeoutError):
            logger.error("Provider call timed out", operation=operation, error=str(error))
            return ProviderTimeoutError(operation, self.timeout or 0.0)
        logger.error(
            "Provider call failed",
            operation=operation,
            error_type=type(error).__name__,
            error=str(error),
        )
        return ProviderFailureError(operation, error)


def ordered_unique(items: Sequence[Hashable]) -> List[Any]:
    """Drop duplicates while keeping first-seen order."""
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def cached_graph_handle(
    cache: GraphCache,
    algorithms: GraphAlgorithmProvider,
    nodes: Sequence[int],
    edges: Sequence[NetworkEdge],
    *,
    directed: bool = False,
    timeout: float | None = None,
    invoker: Optional[ProviderInvoker] = None,
) -> Any:
    """Fetch a graph handle through the cache, building it with ``algorithms``.

    With an ``invoker`` the wait follows the request's deadline and cancel event
    instead of ``timeout``. A cancelled request stops waiting without cancelling
    the shared build.

    Raises:
        ProviderTimeoutError: If waiting for the build exceeds the deadline
        ProviderFailureError: If the build raised
        RequestCancelledError: If the invoker's cancel event is set while waiting
    """
    if invoker is not None:
        invoker.check_cancelled("build_graph_handle")
        future = cache.get_or_build_future(nodes, edges, directed, algorithms.build_graph_handle)
        return invoker.wait_for("build_graph_handle", [future], owned=False)[0]

    try:
        return cache.get_or_build(
            nodes, edges, directed, algorithms.build_graph_handle, timeout=timeout
        )
    except NetworkError:
        raise
    except TimeoutError as e:
        logger.error("Graph build wait timed out", nodes=len(nodes), timeout=timeout)
        raise ProviderTimeoutError("build_graph_handle", timeout or 0.0) from e
    except Exception as e:
        raise ProviderFailureError("build_graph_handle", e) from e
