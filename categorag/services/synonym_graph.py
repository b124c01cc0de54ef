"""Static keyword association graph used as a scoring signal by the matcher."""

import json
import logging
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Set, Tuple, Union

from categorag.config import settings
from categorag.services.text_service import canonical_term

logger = logging.getLogger(__name__)


class SynonymGraph:
    """
    Immutable, versioned mapping of term -> related terms.

    Entries are canonicalized (normalized and singularized) on load so they
    line up with tokenizer output. The graph is directed as stored, but
    lookups through ``pair_count`` consult both directions.
    """

    def __init__(self, entries: Mapping[str, Iterable[str]], version: str = "unversioned"):
        merged: Dict[str, Set[str]] = {}
        for key, values in entries.items():
            canonical_key = canonical_term(key)
            if not canonical_key:
                continue
            related = merged.setdefault(canonical_key, set())
            for value in values:
                canonical_value = canonical_term(value)
                if canonical_value and canonical_value != canonical_key:
                    related.add(canonical_value)

        self._entries = MappingProxyType({k: frozenset(v) for k, v in merged.items()})
        self.version = version

    @classmethod
    def from_mapping(cls, entries: Mapping[str, Iterable[str]], version: str = "unversioned") -> "SynonymGraph":
        return cls(entries, version=version)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "SynonymGraph":
        """Load a graph from a JSON file shaped like ``{"version": ..., "synonyms": {...}}``."""
        with open(path, encoding="utf-8") as f:
            data = json.load(f)

        graph = cls(data.get("synonyms", {}), version=str(data.get("version", "unversioned")))
        logger.info("Loaded synonym graph %s with %d entries from %s", graph.version, len(graph), path)
        return graph

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, term: str) -> bool:
        return term in self._entries

    def related(self, term: str) -> frozenset:
        return self._entries.get(term, frozenset())

    def are_related(self, left: str, right: str) -> bool:
        return right in self.related(left)

    def matched_pairs(self, query_tokens: List[str], doc_tokens: List[str]) -> List[Tuple[str, str]]:
        """
        Every (query, doc) token pair linked by the graph, once per direction.

        A pair related both ways appears twice, so it counts double.
        """
        pairs = []
        for q in query_tokens:
            for d in doc_tokens:
                if self.are_related(q, d):
                    pairs.append((q, d))
                if self.are_related(d, q):
                    pairs.append((q, d))
        return pairs

    def pair_count(self, query_tokens: List[str], doc_tokens: List[str]) -> int:
        return len(self.matched_pairs(query_tokens, doc_tokens))


@lru_cache(maxsize=1)
def load_default_graph() -> SynonymGraph:
    """Graph loaded from ``settings.synonyms_path``, read once per process."""
    return SynonymGraph.from_file(settings.synonyms_path)
