"""
Ranks a user's categories against a free-text transaction description.

Score per candidate record (additive, unbounded):

    bm25(query, category + subcategory)
        x boost_exact_match   if the normalized texts are equal
        x boost_starts_with   elif the category text starts with the query
    + graph pairs over category tokens    x category_synonym_weight
    + graph pairs over subcategory tokens x subcategory_synonym_weight
    + personal_synonym_boost x confidence of the first applicable learned synonym
"""

import logging
import time
from typing import List, Optional

from categorag.config import settings
from categorag.models.search_log import SearchMode
from categorag.models.synonym import UserSynonym
from categorag.schemas.category import UserCategory
from categorag.schemas.match import CategoryMatch, MatchOptions
from categorag.services.category_index import CategoryIndex
from categorag.services.search_log_service import SearchLogger
from categorag.services.synonym_graph import SynonymGraph
from categorag.services.synonym_service import SynonymService
from categorag.services.text_service import normalize, tokenize

logger = logging.getLogger(__name__)

BM25_K1 = 1.2
BM25_B = 0.75
BM25_AVG_DOC_LENGTH = 3


def bm25_score(query_tokens: List[str], doc_tokens: List[str]) -> float:
    """Simplified BM25 with IDF fixed at 1. Not divided by query length."""
    score = 0.0
    doc_length = len(doc_tokens)
    for token in query_tokens:
        tf = doc_tokens.count(token)
        if tf > 0:
            numerator = tf * (BM25_K1 + 1)
            denominator = tf + BM25_K1 * (1 - BM25_B + BM25_B * doc_length / BM25_AVG_DOC_LENGTH)
            score += numerator / denominator
    return score


def synonym_applies(synonym: UserSynonym, record: UserCategory) -> bool:
    """
    Whether a learned synonym points at this record.

    User synonyms are matched by id; global ones (and any without a category
    id) by normalized name, since ids differ between users.
    """
    if synonym.user_id is not None and synonym.category_id:
        if synonym.category_id != record.id:
            return False
        if synonym.sub_category_id:
            return record.sub_category is not None and record.sub_category.id == synonym.sub_category_id
        return True

    if normalize(synonym.category_name) != normalize(record.name):
        return False
    if synonym.sub_category_name and record.sub_category:
        return normalize(synonym.sub_category_name) == normalize(record.sub_category.name)
    return True


class CategoryMatcher:
    """Scores indexed categories for a query and hands the attempt to the search logger."""

    def __init__(
        self,
        index: CategoryIndex,
        synonyms: SynonymService,
        graph: SynonymGraph,
        search_logger: Optional[SearchLogger] = None,
    ):
        self.index = index
        self.synonyms = synonyms
        self.graph = graph
        self.search_logger = search_logger

    def match(
        self,
        query: str,
        user_id: str,
        options: Optional[MatchOptions] = None,
    ) -> List[CategoryMatch]:
        options = options or MatchOptions()
        started = time.perf_counter()

        categories = self.index.get(user_id)
        if not categories:
            logger.warning("No categories indexed for user %s", user_id)
            return []

        if options.transaction_type is not None:
            categories = [c for c in categories if c.type == options.transaction_type]
            if not categories:
                logger.warning(
                    "No %s categories indexed for user %s",
                    options.transaction_type.value, user_id
                )
                return []

        normalized_query = normalize(query)
        query_tokens = tokenize(normalized_query)
        personal = self.synonyms.find_for_tokens(user_id, query_tokens)
        if personal:
            logger.info("Found %d learned synonyms for %r", len(personal), query)

        results = []
        for record in categories:
            match = self._score(record, normalized_query, query_tokens, personal, options)
            if match.score >= options.min_score:
                results.append(match)

        # sorted() is stable, so ties keep index order
        results = sorted(results, key=lambda m: m.score, reverse=True)[:options.max_results]

        if not options.skip_logging and self.search_logger is not None:
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            self.search_logger.dispatch(
                user_id=user_id,
                query=query,
                matches=results,
                success=bool(results) and results[0].score >= options.min_score,
                threshold=options.min_score,
                mode=SearchMode.BM25,
                response_time_ms=elapsed_ms,
            )

        logger.debug(
            "Matched %r for user %s: %s",
            query, user_id, [(m.category_name, m.sub_category_name, round(m.score, 3)) for m in results]
        )
        return results

    def _score(
        self,
        record: UserCategory,
        normalized_query: str,
        query_tokens: List[str],
        personal: List[UserSynonym],
        options: MatchOptions,
    ) -> CategoryMatch:
        sub_name = record.sub_category.name if record.sub_category else ""
        category_text = normalize(f"{record.name} {sub_name}")
        category_tokens = tokenize(category_text)
        sub_tokens = tokenize(sub_name)

        score = bm25_score(query_tokens, category_tokens)

        if normalized_query and normalized_query == category_text:
            score *= options.boost_exact_match
        elif normalized_query and category_text.startswith(normalized_query):
            score *= options.boost_starts_with

        category_pairs = self.graph.matched_pairs(query_tokens, category_tokens)
        sub_pairs = self.graph.matched_pairs(query_tokens, sub_tokens)
        score += len(category_pairs) * settings.category_synonym_weight
        score += len(sub_pairs) * settings.subcategory_synonym_weight

        matched_terms = []
        for token in query_tokens:
            if token in category_tokens and token not in matched_terms:
                matched_terms.append(token)
        for q, d in category_pairs + sub_pairs:
            pair = f"{q}→{d}"
            if pair not in matched_terms:
                matched_terms.append(pair)

        synonym = next((s for s in personal if synonym_applies(s, record)), None)
        if synonym is not None:
            boost = settings.personal_synonym_boost * synonym.confidence
            score += boost
            matched_terms.append(synonym.keyword)
            logger.info(
                "%s synonym %r boosts %s by %.2f",
                "Global" if synonym.is_global else "User", synonym.keyword, record.label, boost
            )

        return CategoryMatch(
            category_id=record.id,
            category_name=record.name,
            sub_category_id=record.sub_category.id if record.sub_category else None,
            sub_category_name=sub_name or None,
            score=score,
            matched_terms=matched_terms,
        )
