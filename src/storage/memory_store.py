"""In-memory entity store implementing the link discovery and label lookup providers.

Used by the demo and the tests, and anywhere a Neo4j instance is not available.
Network files (YAML with ``people``, ``links`` and ``codes`` lists) feed both
this store and the Neo4j setup script.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

import yaml
from loguru import logger

from src.storage.schemas import (
    EntityFilter,
    EntitySummary,
    LinkCode,
    LinkType,
    TypedLink,
    selected_link_types,
)

NetworkData = Tuple[List[EntitySummary], List[TypedLink], List[LinkCode]]


def read_network_file(path: str | Path) -> NetworkData:
    """Load people, links and code-table rows from a YAML network file.

    Args:
        path: YAML file with optional ``people``, ``links`` and ``codes`` lists

    Returns:
        Tuple of (entities, links, codes)

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the YAML root is not a mapping
        pydantic.ValidationError: If a record is malformed
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Network file not found: {path}")

    with open(path, encoding="utf-8") as f:
        data: Any = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Network file root must be a mapping/dict: {path}")

    entities = [EntitySummary(**record) for record in data.get("people") or []]
    links = [TypedLink(**record) for record in data.get("links") or []]
    codes = [LinkCode(**record) for record in data.get("codes") or []]

    logger.debug(
        "Read network file",
        path=str(path),
        people=len(entities),
        links=len(links),
        codes=len(codes),
    )
    return entities, links, codes


class InMemoryEntityStore:
    """Dictionary-backed store of entities, typed links and code tables.

    Links are stored in insertion order and treated as undirected by every
    lookup. Writes take a lock so a store can be populated while readers run.
    """

    def __init__(
        self,
        entities: Optional[Iterable[EntitySummary]] = None,
        links: Optional[Iterable[TypedLink]] = None,
        codes: Optional[Iterable[LinkCode]] = None,
    ):
        self._lock = threading.RLock()
        self._entities: Dict[int, EntitySummary] = {}
        self._links: List[TypedLink] = []
        self._adjacency: Dict[int, List[int]] = {}
        self._codes: Dict[Tuple[LinkType, int], LinkCode] = {}

        for entity in entities or []:
            self.add_entity(entity)
        for link in links or []:
            self.add_link(link)
        for code in codes or []:
            self.add_code(code)

    @classmethod
    def from_file(cls, path: str | Path) -> "InMemoryEntityStore":
        """Build a store from a YAML network file."""
        entities, links, codes = read_network_file(path)
        return cls(entities, links, codes)

    # Writes

    def add_entity(self, entity: EntitySummary) -> None:
        with self._lock:
            self._entities[entity.id] = entity

    def add_link(self, link: TypedLink) -> None:
        """Store a link between two known entities.

        Raises:
            ValueError: If an endpoint is unknown or the link is a self-loop
        """
        with self._lock:
            if link.source == link.target:
                raise ValueError(f"Self-loop links are not supported: {link.source}")
            for endpoint in (link.source, link.target):
                if endpoint not in self._entities:
                    raise ValueError(f"Unknown entity {endpoint} in link")
            index = len(self._links)
            self._links.append(link)
            self._adjacency.setdefault(link.source, []).append(index)
            self._adjacency.setdefault(link.target, []).append(index)

    def add_code(self, code: LinkCode) -> None:
        with self._lock:
            self._codes[(code.link_type, code.code)] = code

    @property
    def entity_count(self) -> int:
        return len(self._entities)

    @property
    def link_count(self) -> int:
        return len(self._links)

    # LinkDiscoveryProvider

    def links_within_group(
        self, ids: Sequence[int], include_kinship: bool, include_association: bool
    ) -> List[TypedLink]:
        types = set(selected_link_types(include_kinship, include_association))
        group = set(ids)
        if not group or not types:
            return []

        with self._lock:
            indexes: Set[int] = set()
            for entity_id in group:
                for index in self._adjacency.get(entity_id, []):
                    link = self._links[index]
                    if link.link_type in types and link.other_end(entity_id) in group:
                        indexes.add(index)
            return [self._links[index] for index in sorted(indexes)]

    def links_from_group(
        self, ids: Sequence[int], include_kinship: bool, include_association: bool
    ) -> Dict[int, List[TypedLink]]:
        types = set(selected_link_types(include_kinship, include_association))
        group = set(ids)
        if not group or not types:
            return {}

        result: Dict[int, List[TypedLink]] = {}
        with self._lock:
            for entity_id in ids:
                if entity_id in result:
                    continue
                outgoing = [
                    self._links[index]
                    for index in self._adjacency.get(entity_id, [])
                    if self._links[index].link_type in types
                    and self._links[index].other_end(entity_id) not in group
                ]
                if outgoing:
                    result[entity_id] = outgoing
        return result

    def load_entities(self, ids: Sequence[int]) -> Dict[int, EntitySummary]:
        with self._lock:
            return {
                entity_id: self._entities[entity_id]
                for entity_id in ids
                if entity_id in self._entities
            }

    def filter_entities(self, ids: Sequence[int], predicate: EntityFilter) -> List[int]:
        with self._lock:
            return [
                entity_id
                for entity_id in ids
                if entity_id in self._entities and predicate.matches(self._entities[entity_id])
            ]

    # LabelLookupProvider

    def labels_for_codes(self, link_type: LinkType, codes: Sequence[int]) -> Dict[int, str]:
        labels: Dict[int, str] = {}
        with self._lock:
            for code in codes:
                row = self._codes.get((link_type, code))
                if row is not None and (row.label or row.label_chn):
                    labels[code] = row.format_label()
        logger.debug(
            "Resolved link labels",
            link_type=link_type.value,
            requested=len(codes),
            resolved=len(labels),
        )
        return labels
