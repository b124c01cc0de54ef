"""Decides whether a transaction description contains a term worth asking the user about."""

import logging
from typing import Optional

from categorag.config import settings
from categorag.schemas.learning import AIHint, Detection
from categorag.schemas.match import MatchOptions
from categorag.services.matching_service import CategoryMatcher
from categorag.services.synonym_service import SynonymService
from categorag.services.text_service import (
    extract_main_term,
    is_generic_name,
    normalize,
)

logger = logging.getLogger(__name__)


def _is_generic_hint(hint: AIHint) -> bool:
    return (
        is_generic_name(hint.category)
        or not hint.sub_category
        or is_generic_name(hint.sub_category)
    )


class UnknownTermDetector:
    """
    Flags descriptions whose best category match is weak or generic.

    Returns None whenever there is nothing to ask: a confident match, a
    subcategory named in the text, no usable term, or a term the user (or
    everybody) already has a synonym for.
    """

    def __init__(self, matcher: CategoryMatcher, synonyms: SynonymService):
        self.matcher = matcher
        self.synonyms = synonyms

    def detect(self, text: str, user_id: str, ai_hint: Optional[AIHint] = None) -> Optional[Detection]:
        options = MatchOptions(
            min_score=settings.detector_min_score,
            max_results=3,
            skip_logging=True,
        )
        matches = self.matcher.match(text, user_id, options)

        if not matches:
            if ai_hint is None or not _is_generic_hint(ai_hint):
                return None
            return self._from_hint(text, user_id, ai_hint)

        best = matches[0]
        term = extract_main_term(text)

        if best.sub_category_name and term:
            normalized_sub = normalize(best.sub_category_name)
            if term in normalized_sub or normalized_sub in term:
                logger.debug("Term %r names subcategory %r, not asking", term, best.sub_category_name)
                return None

        explicitly_generic = (
            is_generic_name(best.category_name)
            or is_generic_name(best.sub_category_name)
        )
        if best.score >= settings.normal_threshold and not explicitly_generic:
            return None

        if not term:
            return None

        if self.synonyms.has_synonym(user_id, term):
            logger.debug("Term %r already learned for user %s", term, user_id)
            return None

        if explicitly_generic:
            reason = f'"{term}" matched the generic category {best.category_name}'
        else:
            reason = f'"{term}" matched {best.category_name} with low score {best.score:.2f}'

        logger.info("Unknown term %r detected for user %s: %s", term, user_id, reason)
        return Detection(
            detected_term=term,
            suggested_category_id=best.category_id,
            suggested_category=best.category_name,
            suggested_subcategory_id=best.sub_category_id,
            suggested_subcategory=best.sub_category_name,
            confidence=best.score,
            reason=reason,
            has_outros_category=True,
        )

    def _from_hint(self, text: str, user_id: str, hint: AIHint) -> Optional[Detection]:
        term = extract_main_term(text)
        if not term:
            return None

        if self.synonyms.has_synonym(user_id, term):
            return None

        logger.info("Unknown term %r detected for user %s from a generic AI category", term, user_id)
        return Detection(
            detected_term=term,
            suggested_category_id=hint.category_id,
            suggested_category=hint.category or settings.generic_category_names[0],
            suggested_subcategory_id=hint.sub_category_id,
            suggested_subcategory=hint.sub_category,
            confidence=hint.confidence if hint.confidence is not None else 0.5,
            reason=f'"{term}" has no matching category and the AI chose a generic one',
            has_outros_category=hint.category_id is not None,
        )
