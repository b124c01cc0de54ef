"""Tests for the personalized synonym store."""

import pytest
from conftest import USER_ID
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from categorag.models.synonym import UserSynonym, SynonymSource
from categorag.schemas.synonym import SynonymCreate
from categorag.services.synonym_service import SynonymService


def delivery_synonym(keyword="marmita", user_id=USER_ID, **overrides):
    values = dict(
        user_id=user_id,
        keyword=keyword,
        category_id="cat-food",
        category_name="Alimentação",
        sub_category_id="sub-delivery",
        sub_category_name="Delivery",
    )
    values.update(overrides)
    return SynonymCreate(**values)


class TestAddSynonym:
    """Tests for upserting synonyms."""

    def test_keyword_is_normalized(self, synonym_service):
        synonym = synonym_service.add_synonym(delivery_synonym(keyword="  Marmitão "))

        assert synonym.keyword == "marmitao"
        assert synonym.source == SynonymSource.USER_CONFIRMED
        assert synonym.usage_count == 0

    def test_upsert_keeps_one_row(self, synonym_service, db_session):
        synonym_service.add_synonym(delivery_synonym(confidence=0.5))
        synonym_service.add_synonym(delivery_synonym(
            keyword="MARMITA",
            confidence=0.9,
            sub_category_id="sub-restaurant",
            sub_category_name="Restaurante",
        ))

        rows = db_session.query(UserSynonym).all()
        assert len(rows) == 1
        assert rows[0].confidence == 0.9
        assert rows[0].sub_category_name == "Restaurante"

    def test_global_and_user_are_separate(self, synonym_service, db_session):
        synonym_service.add_synonym(delivery_synonym(user_id=None))
        synonym_service.add_synonym(delivery_synonym(user_id=None))
        synonym_service.add_synonym(delivery_synonym())

        assert db_session.query(UserSynonym).count() == 2
        assert synonym_service.get_synonym(None, "marmita").is_global

    def test_duplicate_global_rows_rejected(self, db_session):
        for _ in range(2):
            db_session.add(UserSynonym(user_id=None, keyword="marmita", category_name="Alimentação"))

        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()


class TestFindForTokens:
    """Tests for retrieval during matching."""

    def test_user_first_then_confidence(self, synonym_service):
        synonym_service.add_synonym(delivery_synonym(keyword="marmita", user_id=None, confidence=1.0))
        synonym_service.add_synonym(delivery_synonym(keyword="marmitas", confidence=0.6))
        synonym_service.add_synonym(delivery_synonym(keyword="marmita grande", confidence=0.9))

        found = synonym_service.find_for_tokens(USER_ID, ["marmita"])

        assert [s.keyword for s in found] == ["marmita grande", "marmitas", "marmita"]

    def test_usage_is_bumped(self, synonym_service):
        synonym_service.add_synonym(delivery_synonym())

        synonym_service.find_for_tokens(USER_ID, ["marmita"])
        found = synonym_service.find_for_tokens(USER_ID, ["marmita"])

        assert found[0].usage_count == 2
        assert found[0].last_used_at is not None

    def test_substring_of_keyword_is_not_enough(self, synonym_service):
        synonym_service.add_synonym(delivery_synonym(keyword="comida"))
        synonym_service.add_synonym(delivery_synonym(keyword="comida caseira"))

        assert synonym_service.find_for_tokens(USER_ID, ["com"]) == []
        assert [s.keyword for s in synonym_service.find_for_tokens(USER_ID, ["caseira"])] == ["comida caseira"]

    def test_other_users_excluded(self, synonym_service):
        synonym_service.add_synonym(delivery_synonym(user_id="user-2"))

        assert synonym_service.find_for_tokens(USER_ID, ["marmita"]) == []

    def test_no_tokens(self, synonym_service):
        synonym_service.add_synonym(delivery_synonym())

        assert synonym_service.find_for_tokens(USER_ID, []) == []

    def test_like_wildcards_are_literal(self, synonym_service):
        synonym_service.add_synonym(delivery_synonym(keyword="marmita"))

        assert synonym_service.find_for_tokens(USER_ID, ["m_rmita"]) == []

    def test_storage_failure_degrades_to_empty(self):
        engine = create_engine(
            "sqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        db = sessionmaker(bind=engine)()
        try:
            assert SynonymService(db).find_for_tokens(USER_ID, ["marmita"]) == []
            assert SynonymService(db).has_synonym(USER_ID, "marmita") is False
        finally:
            db.close()
            engine.dispose()


class TestLookupAndRemove:
    """Tests for exact lookups, listing and removal."""

    def test_has_synonym_checks_user_then_global(self, synonym_service):
        assert not synonym_service.has_synonym(USER_ID, "marmita")

        synonym_service.add_synonym(delivery_synonym(user_id=None))
        assert synonym_service.has_synonym(USER_ID, "Marmita")

        synonym_service.add_synonym(delivery_synonym(keyword="quentinha"))
        assert synonym_service.has_synonym(USER_ID, "quentinha")
        assert not synonym_service.has_synonym("user-2", "quentinha")

    def test_get_synonym_does_not_fall_back(self, synonym_service):
        synonym_service.add_synonym(delivery_synonym(user_id=None))

        assert synonym_service.get_synonym(USER_ID, "marmita") is None
        assert synonym_service.get_synonym(None, "marmita") is not None

    def test_list_ordered_by_usage_then_confidence(self, synonym_service):
        synonym_service.add_synonym(delivery_synonym(keyword="marmita", confidence=0.7))
        synonym_service.add_synonym(delivery_synonym(keyword="quentinha", confidence=0.9))
        synonym_service.add_synonym(delivery_synonym(keyword="ifood", confidence=0.5))
        synonym_service.find_for_tokens(USER_ID, ["ifood"])

        listed = synonym_service.list_synonyms(USER_ID)

        assert [s.keyword for s in listed] == ["ifood", "quentinha", "marmita"]

    def test_remove(self, synonym_service):
        synonym_service.add_synonym(delivery_synonym())

        assert synonym_service.remove_synonym(USER_ID, "Marmita") is True
        assert synonym_service.remove_synonym(USER_ID, "marmita") is False
        assert synonym_service.list_synonyms(USER_ID) == []


class TestLearning:
    """Tests for confirm/correct helpers."""

    def test_confirm_and_learn(self, synonym_service):
        synonym = synonym_service.confirm_and_learn(
            user_id=USER_ID,
            term="marmita",
            category_id="cat-food",
            category_name="Alimentação",
            sub_category_id="sub-delivery",
            sub_category_name="Delivery",
        )

        assert synonym.confidence == 1.0
        assert synonym.source == SynonymSource.USER_CONFIRMED

    def test_reject_and_correct(self, synonym_service):
        synonym = synonym_service.reject_and_correct(
            user_id=USER_ID,
            term="marmita",
            category_id="cat-food",
            category_name="Alimentação",
            sub_category_id="sub-delivery",
            sub_category_name="Delivery",
            rejected_category_name="Outros",
        )

        assert synonym.confidence == pytest.approx(0.95)

    @pytest.mark.parametrize("category,sub", [
        ("Outros", "Diversos"),
        ("Alimentação", "Geral"),
        ("Alimentação", None),
    ])
    def test_generic_corrections_not_learned(self, synonym_service, db_session, category, sub):
        result = synonym_service.reject_and_correct(
            user_id=USER_ID,
            term="marmita",
            category_id="cat-x",
            category_name=category,
            sub_category_name=sub,
        )

        assert result is None
        assert db_session.query(UserSynonym).count() == 0
