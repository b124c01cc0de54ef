"""Service for personalized (per-user and global) keyword -> category synonyms."""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import case, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from categorag.config import settings
from categorag.models.synonym import UserSynonym, SynonymSource
from categorag.schemas.synonym import SynonymCreate
from categorag.services.text_service import normalize, is_generic_target, tokenize

logger = logging.getLogger(__name__)


class SynonymService:
    """
    Reads and writes learned synonyms.

    Keywords are always stored normalized. A NULL user_id marks a global
    synonym shared by every user; a user's own entry shadows the global one.
    """

    def __init__(self, db: Session):
        self.db = db

    def _owner_filter(self, user_id: Optional[str]):
        if user_id is None:
            return UserSynonym.user_id.is_(None)
        return UserSynonym.user_id == user_id

    def find_for_tokens(self, user_id: str, tokens: List[str]) -> List[UserSynonym]:
        """
        Synonyms whose keyword shares a whole token with the query, user's
        own first, then by confidence. Bumps usage on every returned row.

        Storage failures degrade to an empty list.
        """
        if not tokens:
            return []

        try:
            synonyms = self.db.query(UserSynonym).filter(
                or_(UserSynonym.user_id == user_id, UserSynonym.user_id.is_(None)),
                or_(*[UserSynonym.keyword.contains(token, autoescape=True) for token in tokens])
            ).order_by(
                case((UserSynonym.user_id.is_(None), 1), else_=0),
                UserSynonym.confidence.desc(),
            ).all()
            wanted = set(tokens)
            # LIKE only narrows the rows; "com" must not pull in "comida"
            synonyms = [s for s in synonyms if wanted & set(tokenize(s.keyword))]

            if synonyms:
                now = datetime.utcnow()
                for synonym in synonyms:
                    synonym.usage_count = (synonym.usage_count or 0) + 1
                    synonym.last_used_at = now
                self.db.commit()

            return synonyms
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("Synonym lookup failed for user %s: %s", user_id, e)
            return []

    def get_synonym(self, user_id: Optional[str], keyword: str) -> Optional[UserSynonym]:
        """Exact keyword lookup for one owner (no fallback to global)."""
        return self.db.query(UserSynonym).filter(
            self._owner_filter(user_id),
            UserSynonym.keyword == normalize(keyword)
        ).first()

    def has_synonym(self, user_id: str, keyword: str) -> bool:
        """Whether the user, or the global set, already maps this keyword."""
        try:
            return (
                self.get_synonym(user_id, keyword) is not None
                or self.get_synonym(None, keyword) is not None
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("Synonym check failed for user %s: %s", user_id, e)
            return False

    def add_synonym(self, params: SynonymCreate) -> UserSynonym:
        """Insert or update the (user_id, keyword) entry."""
        keyword = normalize(params.keyword)
        values = dict(
            category_id=params.category_id,
            category_name=params.category_name,
            sub_category_id=params.sub_category_id,
            sub_category_name=params.sub_category_name,
            confidence=params.confidence,
            source=params.source,
        )

        synonym = self.get_synonym(params.user_id, keyword)
        if synonym is None:
            synonym = UserSynonym(user_id=params.user_id, keyword=keyword, **values)
            self.db.add(synonym)
            try:
                self.db.commit()
            except IntegrityError:
                # Another request inserted the same key first
                self.db.rollback()
                synonym = self.get_synonym(params.user_id, keyword)
                for field, value in values.items():
                    setattr(synonym, field, value)
                self.db.commit()
        else:
            for field, value in values.items():
                setattr(synonym, field, value)
            self.db.commit()

        self.db.refresh(synonym)
        logger.info(
            "Saved synonym %r -> %s%s for %s",
            keyword,
            params.category_name,
            f" > {params.sub_category_name}" if params.sub_category_name else "",
            params.user_id or "all users",
        )
        return synonym

    def list_synonyms(self, user_id: Optional[str]) -> List[UserSynonym]:
        """Owner's synonyms, most used first, then most confident."""
        return self.db.query(UserSynonym).filter(
            self._owner_filter(user_id)
        ).order_by(
            UserSynonym.usage_count.desc(),
            UserSynonym.confidence.desc()
        ).all()

    def remove_synonym(self, user_id: Optional[str], keyword: str) -> bool:
        synonym = self.get_synonym(user_id, keyword)
        if synonym is None:
            return False

        self.db.delete(synonym)
        self.db.commit()
        logger.info("Removed synonym %r for %s", synonym.keyword, user_id or "all users")
        return True

    def confirm_and_learn(
        self,
        user_id: str,
        term: str,
        category_id: Optional[str],
        category_name: str,
        sub_category_id: Optional[str] = None,
        sub_category_name: Optional[str] = None,
    ) -> UserSynonym:
        """Learn a suggestion the user accepted, at full confidence."""
        return self.add_synonym(SynonymCreate(
            user_id=user_id,
            keyword=term,
            category_id=category_id,
            category_name=category_name,
            sub_category_id=sub_category_id,
            sub_category_name=sub_category_name,
            confidence=1.0,
            source=SynonymSource.USER_CONFIRMED,
        ))

    def reject_and_correct(
        self,
        user_id: str,
        term: str,
        category_id: Optional[str],
        category_name: str,
        sub_category_id: Optional[str] = None,
        sub_category_name: Optional[str] = None,
        rejected_category_name: Optional[str] = None,
    ) -> Optional[UserSynonym]:
        """
        Learn the category the user picked instead of the suggestion.

        Corrections onto a generic target are not learned; returns None then.
        """
        if is_generic_target(category_name, sub_category_name):
            logger.info("Correction of %r points to a generic category, not learning it", term)
            return None

        synonym = self.add_synonym(SynonymCreate(
            user_id=user_id,
            keyword=term,
            category_id=category_id,
            category_name=category_name,
            sub_category_id=sub_category_id,
            sub_category_name=sub_category_name,
            confidence=settings.correction_confidence,
            source=SynonymSource.USER_CONFIRMED,
        ))
        logger.info(
            "Learned correction %r -> %s (rejected: %s)",
            synonym.keyword,
            category_name if not sub_category_name else f"{category_name} > {sub_category_name}",
            rejected_category_name or "N/A",
        )
        return synonym
