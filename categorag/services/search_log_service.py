"""Recording and querying of category search attempts."""

import logging
from concurrent.futures import Executor
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from categorag.models.search_log import SearchLog, SearchMode
from categorag.schemas.match import CategoryMatch
from categorag.schemas.search_log import SearchTracking
from categorag.services.text_service import normalize

logger = logging.getLogger(__name__)


class SearchLogger:
    """
    Persists SearchLog rows.

    Each write opens its own session from ``session_factory`` so it can run
    on a worker thread. Writes never raise; failures are logged.
    """

    def __init__(self, session_factory: sessionmaker, executor: Optional[Executor] = None):
        self.session_factory = session_factory
        self.executor = executor

    def record(
        self,
        user_id: str,
        query: str,
        matches: List[CategoryMatch],
        success: bool,
        threshold: float,
        mode: SearchMode = SearchMode.BM25,
        response_time_ms: int = 0,
        tracking: Optional[SearchTracking] = None,
    ) -> Optional[str]:
        """Write one attempt and return its id, or None if it could not be stored."""
        best = matches[0] if matches else None
        tracking = tracking or SearchTracking()
        fields = tracking.model_dump()
        if best is not None and fields["final_category_id"] is None and fields["final_category_name"] is None:
            fields["final_category_id"] = best.category_id
            fields["final_category_name"] = best.category_name

        log = SearchLog(
            user_id=user_id,
            query=query,
            query_normalized=normalize(query),
            matches=[m.model_dump() for m in matches],
            best_match=best.category_name if best else None,
            best_score=best.score if best else None,
            threshold=threshold,
            success=success,
            mode=mode,
            response_time_ms=response_time_ms,
            rag_initial_score=best.score if best else None,
            rag_final_score=best.score if best else None,
            **fields,
        )

        db = self.session_factory()
        try:
            db.add(log)
            db.commit()
            return log.id
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to record search attempt for user %s: %s", user_id, e)
            return None
        finally:
            db.close()

    def dispatch(self, *args, **kwargs) -> None:
        """Record off the caller's path when an executor is configured."""
        if self.executor is None:
            self.record(*args, **kwargs)
            return

        try:
            self.executor.submit(self.record, *args, **kwargs)
        except RuntimeError as e:
            # Executor already shut down
            logger.warning("Search log executor unavailable, recording inline: %s", e)
            self.record(*args, **kwargs)

    def get_search_attempts(
        self,
        user_id: Optional[str] = None,
        failed_only: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[SearchLog], int]:
        """Logged attempts, newest first, with the unpaginated total."""
        db = self.session_factory()
        try:
            query = db.query(SearchLog)
            if user_id:
                query = query.filter(SearchLog.user_id == user_id)
            if failed_only:
                query = query.filter(SearchLog.success == False)

            total = query.count()
            logs = query.order_by(
                SearchLog.created_at.desc()
            ).offset(offset).limit(limit).all()
            db.expunge_all()
            return logs, total
        finally:
            db.close()

    def delete_search_logs(self, ids: List[str]) -> int:
        if not ids:
            return 0

        db = self.session_factory()
        try:
            deleted = db.query(SearchLog).filter(
                SearchLog.id.in_(ids)
            ).delete(synchronize_session=False)
            db.commit()
            logger.info("Deleted %d search logs", deleted)
            return deleted
        finally:
            db.close()
