"""Demo script for NetworkOrchestrator.

This script builds relationship networks around the Su brothers from the sample
network file, first in memory and optionally against a Neo4j database loaded
with ``scripts/setup_databases.py --load-sample``.

Usage:
    python examples/network_demo.py [--neo4j]
"""

import argparse
import sys
import threading
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.network import NetworkOrchestrator, NetworkResult, RequestCancelledError
from src.storage.memory_store import InMemoryEntityStore
from src.storage.neo4j_manager import Neo4jManager
from src.storage.schemas import EntityFilter
from src.utils.config import Config
from src.utils.logging_config import setup_logging

SAMPLE_FILE = Path(__file__).parent.parent / "config" / "sample_network.yaml"
CONFIG_FILE = Path(__file__).parent.parent / "config" / "config.yaml"

SU_SHI = 1762
SU_CHE = 1760


def print_result(result: NetworkResult) -> None:
    metrics = result.metrics
    print(f"Query entities: {sorted(result.query_entities)}")
    print(f"Entities: {metrics.total_entities} ({metrics.discovered_entities} discovered)")
    print(f"Edges: {metrics.total_edges}, density {metrics.density:.3f}")
    print(f"Components: {metrics.components}, avg path length {metrics.average_path_length:.2f}")
    print(f"Query time: {result.query_time_ms:.2f}ms")

    print("\nDirect connections:")
    for connection in result.direct_connections:
        labels = ", ".join(r.label for r in connection.relationships)
        print(f"  {connection.entity_a} - {connection.entity_b}: {labels}")

    print("\nBridge nodes:")
    for bridge in result.bridge_nodes:
        name = bridge.entity.display_label if bridge.entity else bridge.entity_id
        print(f"  {name}: score {bridge.bridge_score:.1f} ({bridge.bridge_type.value})")
        for query_id, labels in bridge.connection_types.items():
            print(f"    -> {query_id}: {', '.join(labels)}")

    print("\nPathways:")
    for pathway in result.pathways:
        steps = " -> ".join(str(node) for node in pathway.node_path)
        print(f"  {steps} (length {pathway.length}, {pathway.path_type.value})")


def demo_direct_network(orchestrator: NetworkOrchestrator):
    """Only links among the query entities."""
    print("\n=== Demo 1: Direct Network (max_hops=0) ===\n")
    print_result(orchestrator.build_network([SU_SHI, SU_CHE], max_hops=0))


def demo_bridges(orchestrator: NetworkOrchestrator):
    """One-hop expansion reveals shared relatives and associates."""
    print("\n=== Demo 2: Bridge Discovery (max_hops=1) ===\n")
    print_result(orchestrator.build_network([SU_SHI, SU_CHE], max_hops=1))


def demo_filtered(orchestrator: NetworkOrchestrator):
    """Two-hop expansion restricted to men."""
    print("\n=== Demo 3: Filtered Two-Hop Network ===\n")
    result = orchestrator.build_network(
        [SU_SHI, SU_CHE],
        max_hops=2,
        filters=EntityFilter(include_female=False),
    )
    print_result(result)


def demo_cancellation(orchestrator: NetworkOrchestrator):
    """A request whose cancel event is already set fails fast."""
    print("\n=== Demo 4: Cancellation ===\n")
    cancel = threading.Event()
    cancel.set()
    try:
        orchestrator.build_network([SU_SHI, SU_CHE], cancel_event=cancel)
    except RequestCancelledError as e:
        print(f"Cancelled: {e}")

    stats = orchestrator.cache.get_stats()
    print(f"Graph cache: {stats['size']} entries, hit rate {stats['hit_rate']:.0%}")


def main():
    parser = argparse.ArgumentParser(description="Build sample relationship networks.")
    parser.add_argument("--neo4j", action="store_true", help="Query Neo4j instead of memory")
    args = parser.parse_args()

    config = Config.from_yaml(CONFIG_FILE)
    setup_logging(config.logging.model_copy(update={"level": "WARNING", "file": ""}))

    if args.neo4j:
        neo4j = Neo4jManager(config.database)
        neo4j.connect()
        link_provider = label_provider = neo4j
    else:
        neo4j = None
        link_provider = label_provider = InMemoryEntityStore.from_file(SAMPLE_FILE)

    try:
        with NetworkOrchestrator(link_provider, label_provider, config=config) as orchestrator:
            demo_direct_network(orchestrator)
            demo_bridges(orchestrator)
            demo_filtered(orchestrator)
            demo_cancellation(orchestrator)
    finally:
        if neo4j is not None:
            neo4j.close()


if __name__ == "__main__":
    main()
