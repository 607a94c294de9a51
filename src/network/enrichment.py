"""Edge labelling and normalization."""

from __future__ import annotations

from functools import partial
from typing import Any, Dict, List, Sequence, Tuple

from loguru import logger

from src.network.models import NetworkEdge
from src.network.providers import LabelLookupProvider, ProviderInvoker
from src.storage.schemas import LinkType


def default_label(link_type: LinkType, code: int) -> str:
    """Generated label for a code the lookup could not resolve."""
    return f"{link_type.display_name} {code}"


def information_score(edge: NetworkEdge) -> int:
    """How much an edge tells us: label +2, code +1, +1 per metadata key."""
    score = 2 if edge.label else 0
    if edge.link_code is not None:
        score += 1
    return score + len(edge.metadata)


class EdgeEnricher:
    """Resolves link-code labels and canonicalizes edge lists.

    Args:
        label_provider: Code to label lookups
    """

    def __init__(self, label_provider: LabelLookupProvider):
        self.label_provider = label_provider

    def enrich(self, edges: Sequence[NetworkEdge], invoker: ProviderInvoker) -> List[NetworkEdge]:
        """Attach a label to every coded edge.

        Distinct codes are looked up once per link type. Codes the provider does
        not know fall back to ``default_label``; edges without a code keep
        their existing label.

        Raises:
            ProviderFailureError: If the label provider fails
        """
        codes_by_type: Dict[LinkType, List[int]] = {}
        for edge in edges:
            if edge.link_code is None:
                continue
            codes = codes_by_type.setdefault(edge.link_type, [])
            if edge.link_code not in codes:
                codes.append(edge.link_code)

        if not codes_by_type:
            return list(edges)

        link_types = [lt for lt in LinkType if lt in codes_by_type]
        calls = [
            partial(
                self.label_provider.labels_for_codes, link_type, sorted(codes_by_type[link_type])
            )
            for link_type in link_types
        ]
        resolved = dict(zip(link_types, invoker.invoke_many("labels_for_codes", calls)))

        enriched = []
        fallbacks = 0
        for edge in edges:
            if edge.link_code is None:
                enriched.append(edge)
                continue
            label = resolved[edge.link_type].get(edge.link_code)
            if not label:
                label = default_label(edge.link_type, edge.link_code)
                fallbacks += 1
            enriched.append(edge.model_copy(update={"label": label}))

        logger.debug(
            "Enriched edge labels",
            edges=len(enriched),
            codes={lt.value: len(codes) for lt, codes in codes_by_type.items()},
            fallbacks=fallbacks,
        )
        return enriched

    def deduplicate(self, edges: Sequence[NetworkEdge]) -> List[NetworkEdge]:
        """Keep one edge per unordered endpoint pair.

        The edge with the higher information score wins; ties keep the earlier
        edge. Output follows first-seen pair order.
        """
        best: Dict[Tuple[int, int], NetworkEdge] = {}
        for edge in edges:
            current = best.get(edge.pair_key)
            if current is None or information_score(edge) > information_score(current):
                best[edge.pair_key] = edge
        return list(best.values())

    def normalize_direction(self, edges: Sequence[NetworkEdge]) -> List[NetworkEdge]:
        """Orient every edge source < target, marking swapped edges."""
        normalized = []
        for edge in edges:
            if edge.source > edge.target:
                edge = edge.model_copy(
                    update={
                        "source": edge.target,
                        "target": edge.source,
                        "metadata": {**edge.metadata, "reversed": True},
                    }
                )
            normalized.append(edge)
        return normalized

    def group_by_type(self, edges: Sequence[NetworkEdge]) -> Dict[LinkType, List[NetworkEdge]]:
        groups: Dict[LinkType, List[NetworkEdge]] = {link_type: [] for link_type in LinkType}
        for edge in edges:
            groups[edge.link_type].append(edge)
        return groups

    def enrich_metadata(self, edges: Sequence[NetworkEdge], **values: Any) -> List[NetworkEdge]:
        """Merge ``values`` into every edge's metadata."""
        if not values:
            return list(edges)
        return [edge.model_copy(update={"metadata": {**edge.metadata, **values}}) for edge in edges]
