"""Tests for Neo4jManager against a mocked driver.

These tests check the Cypher issued and the record mapping; they do not need a
running Neo4j server.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from src.storage.neo4j_manager import Neo4jManager
from src.storage.schemas import EntityFilter, EntitySummary, LinkType, TypedLink
from src.utils.config import DatabaseConfig


@pytest.fixture
def db_config() -> DatabaseConfig:
    """Create test database configuration."""
    return DatabaseConfig(
        neo4j_uri="bolt://localhost:7687",
        neo4j_user="neo4j",
        neo4j_password="test",
        neo4j_database="neo4j",
    )


@pytest.fixture
def session() -> MagicMock:
    return MagicMock(name="session")


@pytest.fixture
def manager(db_config, session):
    """Connected manager whose driver hands out the mocked session."""
    with patch("src.storage.neo4j_manager.GraphDatabase") as graph_database:
        driver = graph_database.driver.return_value
        driver.session.return_value = session
        manager = Neo4jManager(db_config)
        manager.connect()
        yield manager
        manager.close()


def query_of(session: MagicMock, call_index: int = -1) -> str:
    return session.run.call_args_list[call_index].args[0]


def test_session_requires_connection(db_config):
    manager = Neo4jManager(db_config)

    with pytest.raises(RuntimeError, match="Not connected"):
        with manager.session():
            pass


def test_connect_uses_pool_size(db_config):
    with patch("src.storage.neo4j_manager.GraphDatabase") as graph_database:
        Neo4jManager(db_config).connect()

    kwargs = graph_database.driver.call_args.kwargs
    assert kwargs["auth"] == ("neo4j", "test")
    assert kwargs["max_connection_pool_size"] == 50


def test_session_closed_after_use(manager, session):
    with manager.session():
        pass

    session.close.assert_called_once()


class TestLinkLookups:
    def test_links_within_group(self, manager, session):
        session.run.return_value = [
            {"source": 1762, "target": 1760, "rel_type": "KINSHIP", "code": 75},
        ]

        links = manager.links_within_group([1762, 1760], True, True)

        assert links == [
            TypedLink(source=1762, target=1760, link_type=LinkType.KINSHIP, link_code=75)
        ]
        assert "[r:KINSHIP|ASSOCIATION]" in query_of(session)
        assert session.run.call_args.kwargs["ids"] == [1762, 1760]

    def test_single_link_type_pattern(self, manager, session):
        session.run.return_value = []

        manager.links_within_group([1, 2], False, True)

        assert "[r:ASSOCIATION]" in query_of(session)

    def test_no_link_types_skips_query(self, manager, session):
        assert manager.links_within_group([1, 2], False, False) == []
        assert manager.links_from_group([1, 2], False, False) == {}
        session.run.assert_not_called()

    def test_links_from_group_keyed_by_member(self, manager, session):
        session.run.return_value = [
            {"member": 1762, "source": 1762, "target": 1384, "rel_type": "KINSHIP", "code": 1},
            {"member": 1762, "source": 3767, "target": 1762, "rel_type": "ASSOCIATION", "code": 12},
            {"member": 1760, "source": 1760, "target": 1384, "rel_type": "KINSHIP", "code": 1},
        ]

        result = manager.links_from_group([1762, 1760], True, True)

        assert list(result) == [1762, 1760]
        assert [link.other_end(1762) for link in result[1762]] == [1384, 3767]
        assert result[1762][1].link_type is LinkType.ASSOCIATION
        assert "NOT o.id IN $ids" in query_of(session)


class TestEntities:
    def test_load_entities(self, manager, session):
        session.run.return_value = [
            {"p": {"id": 1762, "name": "Su Shi", "dynasty": 15, "female": False}}
        ]

        result = manager.load_entities([1762, 42])

        assert result == {1762: EntitySummary(id=1762, name="Su Shi", dynasty=15, female=False)}

    def test_filter_entities_builds_clauses(self, manager, session):
        session.run.return_value = [{"id": 3}, {"id": 1}]

        result = manager.filter_entities(
            [1, 2, 3],
            EntityFilter(index_year_range=(1000, 1100), dynasties=[15], include_female=False),
        )

        assert result == [1, 3]
        query = query_of(session)
        params = session.run.call_args.args[1]
        assert "p.dynasty IN $dynasties" in query
        assert "p.female = false" in query
        assert (params["year_low"], params["year_high"]) == (1000, 1100)

    def test_inactive_filter_skips_query(self, manager, session):
        assert manager.filter_entities([1, 2], EntityFilter()) == [1, 2]
        session.run.assert_not_called()


class TestLabels:
    def test_labels_for_codes(self, manager, session):
        session.run.return_value = [
            {"code": 75, "label": "Brother", "label_chn": "兄"},
            {"code": 5, "label": None, "label_chn": None},
            {"code": 1, "label": "Father", "label_chn": None},
        ]

        labels = manager.labels_for_codes(LinkType.KINSHIP, [75, 5, 1])

        assert labels == {75: "兄 (Brother)", 1: "Father"}
        assert "(c:KinshipCode)" in query_of(session)

    def test_empty_codes_skip_query(self, manager, session):
        assert manager.labels_for_codes(LinkType.ASSOCIATION, []) == {}
        session.run.assert_not_called()


class TestWrites:
    def test_create_link_missing_person(self, manager, session):
        session.run.return_value.single.return_value = None

        with pytest.raises(ValueError, match="person not found"):
            manager.create_link(TypedLink(source=1, target=2, link_type=LinkType.KINSHIP))

    def test_create_link_uses_relationship_type(self, manager, session):
        session.run.return_value.single.return_value = {"created": 1}

        manager.create_link(
            TypedLink(source=1, target=2, link_type=LinkType.ASSOCIATION, link_code=12)
        )

        assert "MERGE (a)-[r:ASSOCIATION]->(b)" in query_of(session)
        assert session.run.call_args.kwargs["code"] == 12


def test_health_check_reports_failure(manager, session):
    session.run.side_effect = RuntimeError("connection reset")

    assert manager.health_check() is False


def test_get_statistics(manager, session):
    session.run.return_value.single.return_value = {"count": 3}

    stats = manager.get_statistics()

    assert stats["total_people"] == 3
    assert stats["links_by_type"] == {"kinship": 3, "association": 3}
    assert stats["total_links"] == 6
    assert stats["codes_by_type"] == {"kinship": 3, "association": 3}
