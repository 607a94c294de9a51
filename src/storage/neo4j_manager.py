"""Neo4j graph database manager for person, link, and code-table storage."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Sequence

from neo4j import GraphDatabase, Session
from neo4j.exceptions import Neo4jError

from src.storage.schemas import (
    EntityFilter,
    EntitySummary,
    LinkCode,
    LinkType,
    TypedLink,
    selected_link_types,
)
from src.utils.config import DatabaseConfig

logger = logging.getLogger(__name__)


class Neo4jManager:
    """Manager for Neo4j graph database operations.

    Stores people as ``(:Person)`` nodes joined by ``[:KINSHIP]`` and
    ``[:ASSOCIATION]`` relationships carrying a ``code`` property, with code
    tables held in ``(:KinshipCode)`` and ``(:AssociationCode)`` nodes. Links are
    stored directed but every lookup treats them as undirected.

    Implements the link discovery and label lookup provider interfaces used by
    the network engine.

    Attributes:
        uri: Neo4j connection URI
        user: Neo4j username
        password: Neo4j password
        database: Neo4j database name
        driver: Neo4j driver instance
    """

    def __init__(self, config: DatabaseConfig):
        """Initialize Neo4j manager with configuration.

        Args:
            config: Database configuration
        """
        self.uri = config.neo4j_uri
        self.user = config.neo4j_user
        self.password = config.neo4j_password
        self.database = config.neo4j_database
        self.max_pool_size = config.neo4j_max_pool_size
        self.driver = None
        self._connected = False

    def connect(self) -> None:
        """Establish connection to Neo4j database.

        Raises:
            Neo4jError: If connection fails
        """
        try:
            self.driver = GraphDatabase.driver(
                self.uri,
                auth=(self.user, self.password),
                max_connection_pool_size=self.max_pool_size,
            )
            self.driver.verify_connectivity()
            self._connected = True
            logger.info(f"Connected to Neo4j at {self.uri}")
        except Neo4jError as e:
            logger.error(f"Failed to connect to Neo4j: {e}")
            raise

    def close(self) -> None:
        """Close connection to Neo4j database."""
        if self.driver:
            self.driver.close()
            self._connected = False
            logger.info("Closed Neo4j connection")

    @contextmanager
    def session(self) -> Session:
        """Context manager for Neo4j session.

        Yields:
            Neo4j session instance

        Raises:
            RuntimeError: If not connected to database
        """
        if not self._connected or not self.driver:
            raise RuntimeError("Not connected to Neo4j. Call connect() first.")

        session = self.driver.session(database=self.database)
        try:
            yield session
        finally:
            session.close()

    # Schema

    def create_schema(self) -> None:
        """Create Neo4j schema with constraints and indexes.

        Creates:
        - Uniqueness constraint on Person.id
        - Uniqueness constraints on KinshipCode.code and AssociationCode.code
        - Indexes on Person.index_year and Person.dynasty used by entity filters
        """
        with self.session() as session:
            try:
                session.run(
                    "CREATE CONSTRAINT person_id_unique IF NOT EXISTS "
                    "FOR (p:Person) REQUIRE p.id IS UNIQUE"
                )
                logger.info("Created uniqueness constraint for Person")
            except Neo4jError as e:
                logger.warning(f"Could not create constraint for Person: {e}")

            for link_type in LinkType:
                label = link_type.code_label
                try:
                    session.run(
                        f"CREATE CONSTRAINT {link_type.value}_code_unique IF NOT EXISTS "
                        f"FOR (c:{label}) REQUIRE c.code IS UNIQUE"
                    )
                    logger.info(f"Created uniqueness constraint for {label}")
                except Neo4jError as e:
                    logger.warning(f"Could not create constraint for {label}: {e}")

            for prop in ("index_year", "dynasty"):
                try:
                    session.run(
                        f"CREATE INDEX person_{prop} IF NOT EXISTS FOR (p:Person) ON (p.{prop})"
                    )
                    logger.info(f"Created {prop} index for Person")
                except Neo4jError as e:
                    logger.warning(f"Could not create {prop} index for Person: {e}")

    def drop_schema(self) -> None:
        """Drop all constraints and indexes (use with caution)."""
        with self.session() as session:
            constraints = session.run("SHOW CONSTRAINTS").data()
            for constraint in constraints:
                try:
                    session.run(f"DROP CONSTRAINT {constraint['name']} IF EXISTS")
                    logger.info(f"Dropped constraint {constraint['name']}")
                except Neo4jError as e:
                    logger.warning(f"Could not drop constraint {constraint['name']}: {e}")

            indexes = session.run("SHOW INDEXES").data()
            for index in indexes:
                try:
                    session.run(f"DROP INDEX {index['name']} IF EXISTS")
                    logger.info(f"Dropped index {index['name']}")
                except Neo4jError as e:
                    logger.warning(f"Could not drop index {index['name']}: {e}")

            logger.info("Neo4j schema dropped")

    # Writes

    def upsert_person(self, person: EntitySummary) -> int:
        """Create or update a person node (idempotent).

        Args:
            person: Person attributes

        Returns:
            Person ID
        """
        with self.session() as session:
            result = session.run(
                """
                MERGE (p:Person {id: $person_id})
                SET p += $props
                RETURN p.id as id
                """,
                person_id=person.id,
                props=person.to_neo4j_dict(),
            )
            person_id = result.single()["id"]
            logger.debug(f"Upserted person {person_id}")
            return person_id

    def create_link(self, link: TypedLink) -> None:
        """Create or update a typed link between two existing people.

        A pair holds at most one stored link per link type.

        Raises:
            ValueError: If either endpoint does not exist
        """
        rel = link.link_type.relationship_label
        with self.session() as session:
            result = session.run(
                f"""
                MATCH (a:Person {{id: $source}}), (b:Person {{id: $target}})
                MERGE (a)-[r:{rel}]->(b)
                SET r.code = $code
                RETURN count(r) as created
                """,
                source=link.source,
                target=link.target,
                code=link.link_code,
            )
            record = result.single()
            if not record or record["created"] == 0:
                raise ValueError(
                    f"Cannot link {link.source} -> {link.target}: person not found"
                )
            logger.debug(f"Linked {link.source} -[{rel}]-> {link.target}")

    def upsert_link_code(self, code: LinkCode) -> None:
        """Create or update a code table row."""
        with self.session() as session:
            session.run(
                f"""
                MERGE (c:{code.link_type.code_label} {{code: $code}})
                SET c.label = $label, c.label_chn = $label_chn
                """,
                code=code.code,
                label=code.label,
                label_chn=code.label_chn,
            )

    # Link discovery

    def links_within_group(
        self, ids: Sequence[int], include_kinship: bool, include_association: bool
    ) -> List[TypedLink]:
        """Return links whose endpoints are both in ``ids``.

        Args:
            ids: Person IDs forming the group
            include_kinship: Include KINSHIP links
            include_association: Include ASSOCIATION links

        Returns:
            Links in stored direction
        """
        rel_types = self._relationship_pattern(include_kinship, include_association)
        if not ids or not rel_types:
            return []

        with self.session() as session:
            result = session.run(
                f"""
                MATCH (a:Person)-[r:{rel_types}]->(b:Person)
                WHERE a.id IN $ids AND b.id IN $ids AND a.id <> b.id
                RETURN a.id as source, b.id as target, type(r) as rel_type, r.code as code
                ORDER BY source, target, rel_type
                """,
                ids=list(ids),
            )
            return [self._record_to_link(record) for record in result]

    def links_from_group(
        self, ids: Sequence[int], include_kinship: bool, include_association: bool
    ) -> Dict[int, List[TypedLink]]:
        """Return links with exactly one endpoint in ``ids``.

        Returns:
            Mapping of group member ID to the links leaving the group from it
        """
        rel_types = self._relationship_pattern(include_kinship, include_association)
        if not ids or not rel_types:
            return {}

        links: Dict[int, List[TypedLink]] = {}
        with self.session() as session:
            result = session.run(
                f"""
                MATCH (m:Person)-[r:{rel_types}]-(o:Person)
                WHERE m.id IN $ids AND NOT o.id IN $ids
                RETURN m.id as member,
                       startNode(r).id as source,
                       endNode(r).id as target,
                       type(r) as rel_type,
                       r.code as code
                ORDER BY member, o.id, rel_type
                """,
                ids=list(ids),
            )
            for record in result:
                links.setdefault(record["member"], []).append(self._record_to_link(record))
        return links

    def load_entities(self, ids: Sequence[int]) -> Dict[int, EntitySummary]:
        """Load attribute summaries for the people that exist."""
        if not ids:
            return {}
        with self.session() as session:
            result = session.run(
                "MATCH (p:Person) WHERE p.id IN $ids RETURN p", ids=list(ids)
            )
            summaries = [EntitySummary(**dict(record["p"])) for record in result]
        return {summary.id: summary for summary in summaries}

    def filter_entities(self, ids: Sequence[int], predicate: EntityFilter) -> List[int]:
        """Return the subset of ``ids`` matching ``predicate``, in input order.

        Unknown attributes fail active constraints, matching
        ``EntityFilter.matches``.
        """
        if not ids:
            return []
        if not predicate.is_active():
            return list(ids)

        clauses = ["p.id IN $ids"]
        params: Dict[str, Any] = {"ids": list(ids)}
        if predicate.index_year_range is not None:
            clauses.append(
                "p.index_year IS NOT NULL AND p.index_year >= $year_low "
                "AND p.index_year <= $year_high"
            )
            params["year_low"], params["year_high"] = predicate.index_year_range
        if predicate.dynasties:
            clauses.append("p.dynasty IN $dynasties")
            params["dynasties"] = list(predicate.dynasties)
        if not predicate.include_male:
            clauses.append("p.female = true")
        if not predicate.include_female:
            clauses.append("p.female = false")

        with self.session() as session:
            result = session.run(
                f"MATCH (p:Person) WHERE {' AND '.join(clauses)} RETURN p.id as id", params
            )
            matched = {record["id"] for record in result}
        return [entity_id for entity_id in ids if entity_id in matched]

    # Label lookup

    def labels_for_codes(self, link_type: LinkType, codes: Sequence[int]) -> Dict[int, str]:
        """Resolve display labels for codes of one link type.

        Codes without a row, or whose row has no label text, are omitted.
        """
        if not codes:
            return {}
        with self.session() as session:
            result = session.run(
                f"""
                MATCH (c:{link_type.code_label})
                WHERE c.code IN $codes
                RETURN c.code as code, c.label as label, c.label_chn as label_chn
                """,
                codes=list(codes),
            )
            labels: Dict[int, str] = {}
            for record in result:
                if not record["label"] and not record["label_chn"]:
                    continue
                code = LinkCode(
                    code=record["code"],
                    link_type=link_type,
                    label=record["label"] or "",
                    label_chn=record["label_chn"] or "",
                )
                labels[code.code] = code.format_label()
            return labels

    # Utility Methods

    @staticmethod
    def _relationship_pattern(include_kinship: bool, include_association: bool) -> str:
        return "|".join(
            link_type.relationship_label
            for link_type in selected_link_types(include_kinship, include_association)
        )

    @staticmethod
    def _record_to_link(record: Any) -> TypedLink:
        return TypedLink(
            source=record["source"],
            target=record["target"],
            link_type=LinkType(record["rel_type"].lower()),
            link_code=record["code"],
        )

    def health_check(self) -> bool:
        """Check if Neo4j connection is healthy.

        Returns:
            True if connection is healthy, False otherwise
        """
        try:
            with self.session() as session:
                result = session.run("RETURN 1")
                return result.single() is not None
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return False

    def get_statistics(self) -> Dict[str, Any]:
        """Get database statistics.

        Returns:
            Dictionary with person, link and code-table counts
        """
        with self.session() as session:
            total_people = session.run("MATCH (p:Person) RETURN count(p) as count").single()[
                "count"
            ]

            links_by_type = {}
            codes_by_type = {}
            for link_type in LinkType:
                result = session.run(
                    f"MATCH ()-[r:{link_type.relationship_label}]->() RETURN count(r) as count"
                )
                links_by_type[link_type.value] = result.single()["count"]
                result = session.run(
                    f"MATCH (c:{link_type.code_label}) RETURN count(c) as count"
                )
                codes_by_type[link_type.value] = result.single()["count"]

            return {
                "total_people": total_people,
                "total_links": sum(links_by_type.values()),
                "links_by_type": links_by_type,
                "codes_by_type": codes_by_type,
            }

    def clear_database(self) -> None:
        """Clear all nodes and relationships from database (use with caution).

        Warning:
            This will delete all data in the database!
        """
        with self.session() as session:
            session.run(
                """
                MATCH (n)
                DETACH DELETE n
                """
            )
            logger.warning("Cleared all data from Neo4j database")
