"""Tests for the synonym learning dialogue."""

import threading
import time

import pytest
from conftest import make_category, USER_ID, PHONE_ID
from categorag.models.synonym import UserSynonym
from categorag.schemas.learning import Detection, LearningAction, LearningState
from categorag.services.learning_service import KeyedLock, find_correction_matches


ORIGINAL_TEXT = "gastei 30 com marmita"


def marmita_detection(**overrides):
    values = dict(
        detected_term="marmita",
        suggested_category_id="cat-food",
        suggested_category="Alimentação",
        suggested_subcategory_id="sub-restaurant",
        suggested_subcategory="Restaurante",
        confidence=0.4,
        reason="low score",
        has_outros_category=True,
    )
    values.update(overrides)
    return Detection(**values)


@pytest.fixture
def learning(service):
    return service.learning


@pytest.fixture
def pending(learning):
    """A dialogue waiting for the user's answer."""
    return learning.prepare(marmita_detection(), ORIGINAL_TEXT, PHONE_ID)


@pytest.fixture
def correcting(learning, pending):
    """A dialogue waiting for the correct category."""
    learning.process_response(PHONE_ID, "2", USER_ID)
    return learning.get_context(PHONE_ID)


def synonyms(db_session):
    return db_session.query(UserSynonym).all()


class TestPrepare:
    """Tests for opening a dialogue."""

    def test_three_options(self, pending, learning):
        assert pending.needs_confirmation is True
        assert "1, 2 ou 3" in pending.message
        assert "Alimentação > Restaurante" in pending.message

        context = learning.get_context(PHONE_ID)
        assert context.state == LearningState.AWAITING_CONFIRMATION
        assert context.original_text == ORIGINAL_TEXT

    def test_two_options_without_outros(self, learning):
        prompt = learning.prepare(marmita_detection(has_outros_category=False), ORIGINAL_TEXT, PHONE_ID)

        assert "1 ou 2" in prompt.message
        assert "Confirmar" not in prompt.message

    def test_context_expires(self, pending, learning, clock):
        clock.advance(299)
        assert learning.has_pending_context(PHONE_ID)

        clock.advance(1)
        assert not learning.has_pending_context(PHONE_ID)

    def test_clear_context(self, pending, learning):
        learning.clear_context(PHONE_ID)

        assert learning.get_context(PHONE_ID) is None


class TestProcessResponse:
    """Tests for the confirm / correct / cancel answer."""

    def test_no_context(self, learning):
        result = learning.process_response(PHONE_ID, "1", USER_ID)

        assert result.processed is False
        assert result.action is None

    @pytest.mark.parametrize("reply", ["1", "sim", "Confirmo", "isso mesmo"])
    def test_confirm_learns_synonym(self, pending, learning, db_session, reply):
        result = learning.process_response(PHONE_ID, reply, USER_ID)

        assert result.processed is True
        assert result.action == LearningAction.confirmed
        assert result.should_continue is True
        assert result.original_text == ORIGINAL_TEXT
        assert "Aprendido" in result.message
        assert not learning.has_pending_context(PHONE_ID)

        rows = synonyms(db_session)
        assert len(rows) == 1
        assert rows[0].keyword == "marmita"
        assert rows[0].user_id == USER_ID
        assert rows[0].sub_category_id == "sub-restaurant"
        assert rows[0].confidence == 1.0

    def test_confirm_twice_keeps_one_row(self, learning, db_session):
        for _ in range(2):
            learning.prepare(marmita_detection(), ORIGINAL_TEXT, PHONE_ID)
            learning.process_response(PHONE_ID, "1", USER_ID)

        assert len(synonyms(db_session)) == 1

    def test_confirm_generic_does_not_learn(self, learning, db_session):
        learning.prepare(
            marmita_detection(
                suggested_category_id="cat-other",
                suggested_category="Outros",
                suggested_subcategory=None,
                suggested_subcategory_id=None,
            ),
            ORIGINAL_TEXT,
            PHONE_ID,
        )

        result = learning.process_response(PHONE_ID, "1", USER_ID)

        assert result.action == LearningAction.confirmed
        assert result.should_continue is True
        assert synonyms(db_session) == []

    @pytest.mark.parametrize("reply", ["2", "não", "quero corrigir"])
    def test_reject(self, pending, learning, reply):
        result = learning.process_response(PHONE_ID, reply, USER_ID)

        assert result.processed is True
        assert result.action == LearningAction.rejected
        assert "Vamos corrigir" in result.message
        assert learning.get_context(PHONE_ID).state == LearningState.AWAITING_CORRECTION

    def test_reject_refreshes_ttl(self, pending, learning, clock):
        clock.advance(200)
        learning.process_response(PHONE_ID, "2", USER_ID)
        clock.advance(200)

        assert learning.has_pending_context(PHONE_ID)

    @pytest.mark.parametrize("reply", ["3", "cancelar", "Desistir"])
    def test_cancel(self, pending, learning, db_session, reply):
        result = learning.process_response(PHONE_ID, reply, USER_ID)

        assert result.action == LearningAction.cancelled
        assert result.should_continue is False
        assert not learning.has_pending_context(PHONE_ID)
        assert synonyms(db_session) == []

    def test_two_option_numbering(self, learning):
        learning.prepare(marmita_detection(has_outros_category=False), ORIGINAL_TEXT, PHONE_ID)

        rejected = learning.process_response(PHONE_ID, "1", USER_ID)
        assert rejected.action == LearningAction.rejected

        learning.prepare(marmita_detection(has_outros_category=False), ORIGINAL_TEXT, PHONE_ID)
        cancelled = learning.process_response(PHONE_ID, "2", USER_ID)
        assert cancelled.action == LearningAction.cancelled

    def test_unrecognized_reply(self, pending, learning):
        result = learning.process_response(PHONE_ID, "talvez amanhã", USER_ID)

        assert result.processed is False
        assert learning.get_context(PHONE_ID).state == LearningState.AWAITING_CONFIRMATION

    def test_reply_while_correcting(self, correcting, learning):
        result = learning.process_response(PHONE_ID, "Alimentação > Delivery", USER_ID)

        assert result.processed is False
        assert result.action == LearningAction.awaiting_correction
        assert learning.has_pending_context(PHONE_ID)

    def test_cancel_while_correcting(self, correcting, learning):
        result = learning.process_response(PHONE_ID, "cancelar", USER_ID)

        assert result.action == LearningAction.cancelled
        assert not learning.has_pending_context(PHONE_ID)


class TestProcessCorrection:
    """Tests for resolving the category the user typed."""

    def test_expired(self, learning, indexed):
        result = learning.process_correction(PHONE_ID, "Alimentação > Delivery", USER_ID)

        assert result.success is False
        assert "expirou" in result.message

    def test_single_match(self, correcting, learning, indexed, db_session):
        result = learning.process_correction(PHONE_ID, "Alimentação > Delivery", USER_ID, indexed)

        assert result.success is True
        assert result.should_continue is True
        assert result.original_text == ORIGINAL_TEXT
        assert not learning.has_pending_context(PHONE_ID)

        rows = synonyms(db_session)
        assert len(rows) == 1
        assert rows[0].keyword == "marmita"
        assert rows[0].sub_category_id == "sub-delivery"
        assert rows[0].confidence == pytest.approx(0.95)

    def test_falls_back_to_indexed_categories(self, correcting, learning, indexed, db_session):
        result = learning.process_correction(PHONE_ID, "alimentacao > delivry", USER_ID, [])

        assert result.success is True
        assert synonyms(db_session)[0].sub_category_id == "sub-delivery"

    def test_several_matches_need_selection(self, correcting, learning, indexed, db_session):
        result = learning.process_correction(PHONE_ID, "eletro", USER_ID, indexed)

        assert result.success is False
        assert result.needs_selection is True
        assert [m.sub_category_name for m in result.pending_matches] == [
            "Eletrodomésticos", "Eletroportáteis", "Eletrônicos"
        ]
        assert "2. Casa > Eletroportáteis" in result.message
        assert learning.get_context(PHONE_ID).state == LearningState.AWAITING_SELECTION

        picked = learning.process_correction(PHONE_ID, "2", USER_ID, indexed)

        assert picked.success is True
        assert picked.original_text == ORIGINAL_TEXT
        assert synonyms(db_session)[0].sub_category_id == "sub-portable"
        assert not learning.has_pending_context(PHONE_ID)

    def test_selection_out_of_range(self, correcting, learning, indexed):
        learning.process_correction(PHONE_ID, "eletro", USER_ID, indexed)

        result = learning.process_correction(PHONE_ID, "7", USER_ID, indexed)

        assert result.success is False
        assert result.needs_selection is True
        assert learning.get_context(PHONE_ID).state == LearningState.AWAITING_SELECTION

    def test_pending_matches_capped(self, correcting, learning):
        categories = [make_category("cat-pet", "Pet", f"s{i}", f"Pet Shop {i}") for i in range(8)]

        result = learning.process_correction(PHONE_ID, "pet", USER_ID, categories)

        assert result.needs_selection is True
        assert len(result.pending_matches) == 5

    def test_one_exact_among_several(self, correcting, learning, db_session):
        categories = [
            make_category("cat-fun", "Lazer", "sub-cinemark", "Cinemark"),
            make_category("cat-fun", "Lazer", "sub-cinema", "Cinema"),
        ]

        result = learning.process_correction(PHONE_ID, "cinema", USER_ID, categories)

        assert result.success is True
        assert synonyms(db_session)[0].sub_category_id == "sub-cinema"

    def test_no_match(self, correcting, learning, indexed):
        result = learning.process_correction(PHONE_ID, "xyzabc", USER_ID, indexed)

        assert result.success is False
        assert "Transporte" in result.message
        assert learning.get_context(PHONE_ID).state == LearningState.AWAITING_CORRECTION

    def test_no_categories(self, correcting, learning):
        result = learning.process_correction(PHONE_ID, "Alimentação", USER_ID, [])

        assert result.success is False
        assert learning.has_pending_context(PHONE_ID)

    def test_generic_correction_not_learned(self, correcting, learning, indexed, db_session):
        result = learning.process_correction(PHONE_ID, "Outros > Geral", USER_ID, indexed)

        assert result.success is True
        assert result.should_continue is True
        assert synonyms(db_session) == []

    def test_cancel(self, correcting, learning, indexed, db_session):
        result = learning.process_correction(PHONE_ID, "cancelar", USER_ID, indexed)

        assert result.cancelled is True
        assert result.success is False
        assert not learning.has_pending_context(PHONE_ID)
        assert synonyms(db_session) == []


class TestFindCorrectionMatches:
    """Tests for fuzzy correction parsing."""

    def test_both_parts_must_pass(self, sample_categories):
        matches = find_correction_matches("Alimentação > Cinema", sample_categories)

        assert matches == []

    def test_single_part_uses_best_name(self, sample_categories):
        matches = find_correction_matches("restaurante", sample_categories)

        assert len(matches) == 1
        assert matches[0].sub_category_id == "sub-restaurant"
        assert matches[0].score == 1.0

    def test_empty_text(self, sample_categories):
        assert find_correction_matches(" > ", sample_categories) == []


class TestKeyedLock:
    """Tests for per-key serialization."""

    def test_same_key_is_serialized(self):
        locks = KeyedLock()
        active = []
        overlaps = []

        def worker():
            with locks.hold("phone"):
                active.append(1)
                if len(active) > 1:
                    overlaps.append(True)
                time.sleep(0.01)
                active.pop()

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert overlaps == []
        assert len(locks) == 0

    def test_different_keys_do_not_block(self):
        locks = KeyedLock()

        with locks.hold("a"):
            acquired = threading.Event()

            def other():
                with locks.hold("b"):
                    acquired.set()

            t = threading.Thread(target=other)
            t.start()
            assert acquired.wait(timeout=1)
            t.join()
