"""Single entry point for indexing, matching, synonym management and learning."""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from categorag.models.search_log import SearchMode
from categorag.models.synonym import UserSynonym
from categorag.schemas.category import UserCategory
from categorag.schemas.learning import (
    AIHint,
    ConfirmationPrompt,
    CorrectionResult,
    ResponseResult,
)
from categorag.schemas.match import CategoryMatch, MatchOptions
from categorag.schemas.search_log import SearchTracking
from categorag.schemas.synonym import SynonymCreate
from categorag.services.cache import CacheStore
from categorag.services.category_index import CategoryIndex
from categorag.services.detection_service import UnknownTermDetector
from categorag.services.learning_service import LearningStateMachine
from categorag.services.matching_service import CategoryMatcher
from categorag.services.search_log_service import SearchLogger
from categorag.services.synonym_graph import SynonymGraph
from categorag.services.synonym_service import SynonymService

logger = logging.getLogger(__name__)


class CategorizationService:
    """
    Wires the category index, matcher, detector and learning dialogue
    around one database session and one cache store.
    """

    def __init__(
        self,
        db: Session,
        store: CacheStore,
        graph: SynonymGraph,
        search_logger: Optional[SearchLogger] = None,
    ):
        self.db = db
        self.index = CategoryIndex(store)
        self.synonyms = SynonymService(db)
        self.search_logger = search_logger
        self.matcher = CategoryMatcher(self.index, self.synonyms, graph, search_logger)
        self.detector = UnknownTermDetector(self.matcher, self.synonyms)
        self.learning = LearningStateMachine(store, self.synonyms, self.index)

    # Category index

    def index_user_categories(self, user_id: str, categories: List[UserCategory]) -> None:
        self.index.index(user_id, categories)

    def get_cached_categories(self, user_id: str) -> List[UserCategory]:
        return self.index.get(user_id)

    def invalidate_index(self, user_id: Optional[str] = None) -> int:
        return self.index.invalidate(user_id)

    # Matching

    def find_similar_categories(
        self,
        query: str,
        user_id: str,
        options: Optional[MatchOptions] = None,
    ) -> List[CategoryMatch]:
        return self.matcher.match(query, user_id, options)

    def log_search_with_context(
        self,
        user_id: str,
        query: str,
        matches: List[CategoryMatch],
        success: bool,
        threshold: float,
        tracking: SearchTracking,
        mode: SearchMode = SearchMode.BM25,
        response_time_ms: int = 0,
    ) -> Optional[str]:
        """
        Record an attempt that is one step of a longer flow (e.g. AI fallback).

        Written synchronously so the caller gets the log id back.
        """
        if self.search_logger is None:
            return None
        return self.search_logger.record(
            user_id=user_id,
            query=query,
            matches=matches,
            success=success,
            threshold=threshold,
            mode=mode,
            response_time_ms=response_time_ms,
            tracking=tracking,
        )

    # Synonyms

    def add_synonym(self, params: SynonymCreate) -> UserSynonym:
        return self.synonyms.add_synonym(params)

    # Learning

    def detect_and_prepare_confirmation(
        self,
        text: str,
        user_id: str,
        phone_id: str,
        ai_hint: Optional[AIHint] = None,
    ) -> ConfirmationPrompt:
        detection = self.detector.detect(text, user_id, ai_hint)
        if detection is None:
            return ConfirmationPrompt(needs_confirmation=False)
        return self.learning.prepare(detection, text, phone_id)

    def process_response(self, phone_id: str, reply: str, user_id: str) -> ResponseResult:
        return self.learning.process_response(phone_id, reply, user_id)

    def process_correction(
        self,
        phone_id: str,
        text: str,
        user_id: str,
        categories: Optional[List[UserCategory]] = None,
    ) -> CorrectionResult:
        return self.learning.process_correction(phone_id, text, user_id, categories)
