#!/usr/bin/env python3
"""Neo4j setup script for the person graph.

Creates the constraints and indexes used by network discovery and can load a
YAML network file. Without ``--reset`` it can be run repeatedly. ``--reset``
deletes every person, link and code row first and asks for confirmation unless
``--force`` is given.

Usage:
    python scripts/setup_databases.py [--load-sample [PATH]]
    python scripts/setup_databases.py --reset [--force] [--drop-schema]

Environment variables:
    NEO4J_URI - Neo4j connection URI (default: bolt://localhost:7687)
    NEO4J_USER - Neo4j username (default: neo4j)
    NEO4J_PASSWORD - Neo4j password (default: network2024)
"""

import argparse
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger
from rich.prompt import Confirm

from src.storage.memory_store import read_network_file
from src.storage.neo4j_manager import Neo4jManager
from src.utils.config import Config, load_config
from src.utils.logging_config import setup_logging

DEFAULT_SAMPLE = Path(__file__).parent.parent / "config" / "sample_network.yaml"
LOG_FILE = "logs/setup_databases.log"


def load_sample(neo4j_manager: Neo4jManager, path: Path) -> None:
    """Upsert people, code rows and links from a network file."""
    entities, links, codes = read_network_file(path)

    for entity in entities:
        neo4j_manager.upsert_person(entity)
    for code in codes:
        neo4j_manager.upsert_link_code(code)
    for link in links:
        neo4j_manager.create_link(link)

    logger.info(
        "Loaded network file",
        path=str(path),
        people=len(entities),
        links=len(links),
        codes=len(codes),
    )


def setup_neo4j(
    config: Config,
    *,
    sample: Path | None = None,
    reset: bool = False,
    drop_schema: bool = False,
) -> bool:
    """Prepare the Neo4j person graph.

    Args:
        config: Application configuration
        sample: Network file to load once the schema exists
        reset: Delete all data before creating the schema
        drop_schema: With ``reset``, also drop constraints and indexes

    Returns:
        True if the database is ready and healthy
    """
    neo4j_manager = Neo4jManager(config.database)
    try:
        neo4j_manager.connect()

        if reset:
            neo4j_manager.clear_database()
            if drop_schema:
                neo4j_manager.drop_schema()
            logger.info("Cleared Neo4j person graph", dropped_schema=drop_schema)

        neo4j_manager.create_schema()

        if sample is not None:
            load_sample(neo4j_manager, sample)

        if not neo4j_manager.health_check():
            logger.error("Neo4j health check failed after setup")
            return False

        stats = neo4j_manager.get_statistics()
        logger.success("Neo4j ready", people=stats["total_people"], links=stats["total_links"])
        return True
    except Exception as e:
        logger.error(f"Neo4j setup failed: {e}")
        return False
    finally:
        neo4j_manager.close()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Initialize (or reset) the Neo4j schema for network discovery.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--load-sample",
        nargs="?",
        const=DEFAULT_SAMPLE,
        default=None,
        type=Path,
        metavar="PATH",
        help="Load a YAML network file after creating the schema.",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Delete ALL people, links and code rows before setup.",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Skip the --reset confirmation prompt.",
    )
    parser.add_argument(
        "--drop-schema",
        action="store_true",
        help="With --reset, drop all constraints and indexes before re-creating them.",
    )
    parser.add_argument(
        "--config",
        default="config/config.yaml",
        help="Path to the YAML configuration file.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        config = load_config(args.config)
    except Exception as e:
        setup_logging()
        logger.error(f"Could not load configuration: {e}")
        return 1
    setup_logging(config.logging.model_copy(update={"file": LOG_FILE}))

    if args.reset and not args.force:
        if not Confirm.ask("Delete ALL data from the Neo4j person graph?"):
            logger.info("Reset aborted by user")
            return 0

    ok = setup_neo4j(
        config, sample=args.load_sample, reset=args.reset, drop_schema=args.drop_schema
    )
    if ok:
        logger.info("You can now build networks with examples/network_demo.py --neo4j")
        return 0
    return 1


if __name__ == "__main__":
    sys.exit(main())
