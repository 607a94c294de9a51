"""Sample biographical network around two siblings, shared by the tests.

Links (K = kinship, A = association, number = code):

    1762 -K75- 1760     query pair (brothers)
    1762 -K1-  1384     father of both
    1760 -K1-  1384
    1762 -A12- 3767     associate of 1762 only
    1384 -K6-  9001     second hop through the father
    3767 -A9-  9002     second hop through the associate
    9002 -A12- 9001     link between second-hop entities

Codes 6 and 9 have no code-table row.
"""

from __future__ import annotations

from src.storage.schemas import EntitySummary, LinkCode, LinkType, TypedLink

SU_SHI = 1762
SU_CHE = 1760
SU_XUN = 1384
FRIEND = 3767
GRANDCHILD = 9001
FRIEND_OF_FRIEND = 9002


def sample_entities() -> list[EntitySummary]:
    return [
        EntitySummary(
            id=SU_SHI,
            name="Su Shi",
            name_chn="蘇軾",
            index_year=1037,
            dynasty=15,
            female=False,
            birth_year=1037,
            death_year=1101,
        ),
        EntitySummary(
            id=SU_CHE,
            name="Su Che",
            name_chn="蘇轍",
            index_year=1039,
            dynasty=15,
            female=False,
            birth_year=1039,
            death_year=1112,
        ),
        EntitySummary(
            id=SU_XUN, name="Su Xun", name_chn="蘇洵", index_year=1009, dynasty=15, female=False
        ),
        EntitySummary(id=FRIEND, name="Huang Tingjian", index_year=1045, dynasty=15, female=False),
        EntitySummary(id=GRANDCHILD, name_chn="蘇氏", index_year=1060, dynasty=15, female=True),
        EntitySummary(id=FRIEND_OF_FRIEND, name="Qin Guan", dynasty=16, female=False),
    ]


def sample_links() -> list[TypedLink]:
    return [
        TypedLink(source=SU_SHI, target=SU_CHE, link_type=LinkType.KINSHIP, link_code=75),
        TypedLink(source=SU_SHI, target=SU_XUN, link_type=LinkType.KINSHIP, link_code=1),
        TypedLink(source=SU_CHE, target=SU_XUN, link_type=LinkType.KINSHIP, link_code=1),
        TypedLink(source=SU_SHI, target=FRIEND, link_type=LinkType.ASSOCIATION, link_code=12),
        TypedLink(source=SU_XUN, target=GRANDCHILD, link_type=LinkType.KINSHIP, link_code=6),
        TypedLink(
            source=FRIEND, target=FRIEND_OF_FRIEND, link_type=LinkType.ASSOCIATION, link_code=9
        ),
        TypedLink(
            source=FRIEND_OF_FRIEND,
            target=GRANDCHILD,
            link_type=LinkType.ASSOCIATION,
            link_code=12,
        ),
    ]


def sample_codes() -> list[LinkCode]:
    return [
        LinkCode(code=75, link_type=LinkType.KINSHIP, label="Brother", label_chn="兄"),
        LinkCode(code=1, link_type=LinkType.KINSHIP, label="Father", label_chn="父"),
        LinkCode(code=12, link_type=LinkType.ASSOCIATION, label="Friend"),
    ]


