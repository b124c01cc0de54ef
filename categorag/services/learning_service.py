"""
Confirmation dialogue that turns unknown terms into learned synonyms.

One pending LearningContext per phone/platform id, kept in the cache with
a short TTL:

    AWAITING_CONFIRMATION -> confirm -> CONFIRMED (synonym learned)
                          -> reject  -> AWAITING_CORRECTION
                          -> cancel  -> CANCELLED
    AWAITING_CORRECTION   -> one match   -> CONFIRMED (correction learned)
                          -> many        -> AWAITING_SELECTION -> pick -> CONFIRMED
                          -> cancel      -> CANCELLED

Terminal states delete the context.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple

from pydantic import ValidationError

from categorag.config import settings
from categorag.schemas.category import UserCategory
from categorag.schemas.learning import (
    ConfirmationPrompt,
    CorrectionResult,
    Detection,
    LearningAction,
    LearningContext,
    LearningState,
    PendingMatch,
    ResponseResult,
)
from categorag.services.cache import CacheError, CacheStore
from categorag.services.category_index import CategoryIndex
from categorag.services.synonym_service import SynonymService
from categorag.services.text_service import is_generic_target, is_numeric, normalize, similarity

logger = logging.getLogger(__name__)

CONTEXT_KEY_PREFIX = "learning:"

CANCEL_WORDS = frozenset({"cancelar", "cancela", "cancelo", "cancel", "desistir", "desisto"})
CONFIRM_WORDS = frozenset({"sim", "confirmar", "confirma", "confirmo", "correto", "isso", "ok"})
REJECT_WORDS = frozenset({"nao", "corrigir", "corrige", "corrijo", "errado", "outra"})

EXPIRED_MESSAGE = "⚠️ O tempo para correção expirou. Por favor, envie a transação novamente."
CANCELLED_MESSAGE = "❌ Operação cancelada. Pode enviar uma nova transação quando quiser!"
CORRECTION_PROMPT = (
    "🔄 *Vamos corrigir!*\n\n"
    "Me diga qual é a categoria correta.\n\n"
    "Exemplos:\n"
    "• \"Alimentação > Delivery\"\n"
    "• \"Restaurante\"\n\n"
    "Ou digite *\"cancelar\"* para desistir."
)


class KeyedLock:
    """
    One mutex per key, created on demand and dropped when nobody holds it.

    Serializes work for the same key inside this process only.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, Tuple[threading.Lock, int]] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock, waiters = self._locks.get(key, (threading.Lock(), 0))
            self._locks[key] = (lock, waiters + 1)

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                lock, waiters = self._locks[key]
                if waiters <= 1:
                    del self._locks[key]
                else:
                    self._locks[key] = (lock, waiters - 1)

    def __len__(self) -> int:
        return len(self._locks)


# Shared by every state machine in the process
context_locks = KeyedLock()


def _words(text: str) -> set:
    return set(normalize(text).split())


def _match_label(category: str, sub_category: Optional[str]) -> str:
    return f"{category} > {sub_category}" if sub_category else category


def confirmation_message(detection: Detection) -> str:
    suggestion = _match_label(detection.suggested_category or "", detection.suggested_subcategory)

    if detection.has_outros_category:
        return (
            f"🤔 *Termo desconhecido*\n\n"
            f"Identifiquei \"{detection.detected_term}\" mas não tenho certeza da categoria.\n"
            f"Sugestão: {suggestion}\n\n"
            f"*O que você quer fazer?*\n\n"
            f"1️⃣ *Confirmar* - Usar a categoria sugerida\n"
            f"2️⃣ *Corrigir* - Escolher outra categoria\n"
            f"3️⃣ *Cancelar* - Não registrar\n\n"
            f"Digite o número da opção (1, 2 ou 3)"
        )

    return (
        f"🤔 *Termo desconhecido*\n\n"
        f"Identifiquei \"{detection.detected_term}\" mas não tenho certeza da categoria.\n"
        f"Como você não tem a categoria \"Outros\", preciso que escolha uma categoria específica.\n\n"
        f"*O que você quer fazer?*\n\n"
        f"1️⃣ *Corrigir* - Escolher a categoria correta\n"
        f"2️⃣ *Cancelar* - Não registrar esta transação\n\n"
        f"Digite o número da opção (1 ou 2)"
    )


class LearningStateMachine:
    """Drives the confirmation dialogue. Every operation holds the per-key lock."""

    def __init__(
        self,
        store: CacheStore,
        synonyms: SynonymService,
        index: CategoryIndex,
        locks: KeyedLock = context_locks,
        ttl_seconds: Optional[int] = None,
    ):
        self.store = store
        self.synonyms = synonyms
        self.index = index
        self.locks = locks
        self.ttl_seconds = ttl_seconds or settings.learning_context_ttl

    # Context persistence

    @staticmethod
    def context_key(phone_id: str) -> str:
        return f"{CONTEXT_KEY_PREFIX}{phone_id}"

    def get_context(self, phone_id: str) -> Optional[LearningContext]:
        try:
            raw = self.store.get(self.context_key(phone_id))
        except CacheError as e:
            logger.warning("Learning context unavailable for %s: %s", phone_id, e)
            return None

        if raw is None:
            return None

        try:
            return LearningContext.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Discarding unreadable learning context for %s: %s", phone_id, e)
            return None

    def save_context(self, phone_id: str, context: LearningContext) -> None:
        self.store.set(self.context_key(phone_id), context.model_dump_json(), self.ttl_seconds)

    def clear_context(self, phone_id: str) -> None:
        self.store.delete(self.context_key(phone_id))

    def has_pending_context(self, phone_id: str) -> bool:
        return self.get_context(phone_id) is not None

    # Dialogue

    def prepare(self, detection: Detection, text: str, phone_id: str) -> ConfirmationPrompt:
        """Store a new context for the detection and build the question to send."""
        context = LearningContext(
            state=LearningState.AWAITING_CONFIRMATION,
            detected_term=detection.detected_term,
            suggested_category_id=detection.suggested_category_id,
            suggested_category=detection.suggested_category,
            suggested_subcategory_id=detection.suggested_subcategory_id,
            suggested_subcategory=detection.suggested_subcategory,
            original_text=text,
            confidence=detection.confidence,
            has_outros_category=detection.has_outros_category,
        )

        with self.locks.hold(phone_id):
            self.save_context(phone_id, context)

        logger.info("Asking %s to confirm %r", phone_id, detection.detected_term)
        return ConfirmationPrompt(
            needs_confirmation=True,
            message=confirmation_message(detection),
            context=context,
        )

    def process_response(self, phone_id: str, reply: str, user_id: str) -> ResponseResult:
        """Handle the answer to the confirm / correct / cancel question."""
        with self.locks.hold(phone_id):
            context = self.get_context(phone_id)
            if context is None:
                return ResponseResult(processed=False)

            answer = reply.strip()
            words = _words(answer)

            if words & CANCEL_WORDS:
                return self._cancel(phone_id)

            if context.state in (LearningState.AWAITING_CORRECTION, LearningState.AWAITING_SELECTION):
                return ResponseResult(processed=False, action=LearningAction.awaiting_correction)

            if context.has_outros_category:
                confirm_option, reject_option, cancel_option = "1", "2", "3"
            else:
                confirm_option, reject_option, cancel_option = None, "1", "2"

            wants_confirm = answer == confirm_option or (
                context.has_outros_category and words & CONFIRM_WORDS and not words & REJECT_WORDS
            )
            if wants_confirm:
                return self._confirm(phone_id, context, user_id)

            if answer == reject_option or words & REJECT_WORDS:
                context.state = LearningState.AWAITING_CORRECTION
                self.save_context(phone_id, context)
                logger.info("%s rejected suggestion for %r", phone_id, context.detected_term)
                return ResponseResult(
                    processed=True,
                    action=LearningAction.rejected,
                    message=CORRECTION_PROMPT,
                )

            if answer == cancel_option:
                return self._cancel(phone_id)

            return ResponseResult(processed=False)

    def process_correction(
        self,
        phone_id: str,
        text: str,
        user_id: str,
        categories: Optional[List[UserCategory]] = None,
    ) -> CorrectionResult:
        """Resolve the category the user typed (or picked from a numbered list)."""
        with self.locks.hold(phone_id):
            context = self.get_context(phone_id)
            if context is None:
                return CorrectionResult(success=False, message=EXPIRED_MESSAGE)

            answer = text.strip()
            if _words(answer) & CANCEL_WORDS:
                self.clear_context(phone_id)
                logger.info("%s cancelled correction of %r", phone_id, context.detected_term)
                return CorrectionResult(success=False, cancelled=True, message=CANCELLED_MESSAGE)

            if context.pending_matches and is_numeric(answer):
                choice = int(answer)
                if not 1 <= choice <= len(context.pending_matches):
                    return CorrectionResult(
                        success=False,
                        message=f"Opção inválida. Digite um número de 1 a {len(context.pending_matches)} ou \"cancelar\".",
                        needs_selection=True,
                        pending_matches=context.pending_matches,
                    )
                return self._resolve(phone_id, context, context.pending_matches[choice - 1], user_id)

            categories = categories or self.index.get(user_id)
            if not categories:
                return CorrectionResult(
                    success=False,
                    message="Não encontrei suas categorias. Tente novamente em instantes ou digite \"cancelar\".",
                )

            matches = find_correction_matches(answer, categories)

            if not matches:
                names = sorted({c.name for c in categories})
                return CorrectionResult(
                    success=False,
                    message=(
                        f"❌ Não encontrei a categoria \"{answer}\".\n\n"
                        f"Suas categorias: {', '.join(names)}\n\n"
                        f"Use o formato \"Categoria > Subcategoria\" ou digite \"cancelar\"."
                    ),
                )

            exact = [m for m in matches if m.score >= 1.0]
            if len(matches) == 1 or len(exact) == 1:
                chosen = matches[0] if len(matches) == 1 else exact[0]
                return self._resolve(phone_id, context, chosen, user_id)

            pending = matches[:settings.max_pending_matches]
            context.state = LearningState.AWAITING_SELECTION
            context.pending_matches = pending
            self.save_context(phone_id, context)

            options = "\n".join(f"{i}. {m.label}" for i, m in enumerate(pending, start=1))
            return CorrectionResult(
                success=False,
                needs_selection=True,
                pending_matches=pending,
                message=(
                    f"🔎 Encontrei mais de uma categoria para \"{answer}\":\n\n"
                    f"{options}\n\n"
                    f"Digite o número da opção ou \"cancelar\"."
                ),
            )

    # Terminal transitions

    def _cancel(self, phone_id: str) -> ResponseResult:
        self.clear_context(phone_id)
        logger.info("%s cancelled learning dialogue", phone_id)
        return ResponseResult(
            processed=True,
            action=LearningAction.cancelled,
            message=CANCELLED_MESSAGE,
        )

    def _confirm(self, phone_id: str, context: LearningContext, user_id: str) -> ResponseResult:
        if is_generic_target(context.suggested_category, context.suggested_subcategory):
            logger.info("Generic category confirmed for %r, not learning it", context.detected_term)
            message = (
                f"✅ *Ok!*\n\n"
                f"Vou usar a categoria \"{context.suggested_category}\" para esta transação.\n\n"
                f"💡 Se quiser que eu aprenda uma categoria específica para \"{context.detected_term}\", "
                f"escolha a opção \"Corrigir\" na próxima vez."
            )
        else:
            self.synonyms.confirm_and_learn(
                user_id=user_id,
                term=context.detected_term,
                category_id=context.suggested_category_id,
                category_name=context.suggested_category,
                sub_category_id=context.suggested_subcategory_id,
                sub_category_name=context.suggested_subcategory,
            )
            message = (
                f"✅ *Aprendido!*\n\n"
                f"Da próxima vez que você mencionar \"{context.detected_term}\", "
                f"vou categorizar como:\n"
                f"📂 {_match_label(context.suggested_category, context.suggested_subcategory)}"
            )

        self.clear_context(phone_id)
        return ResponseResult(
            processed=True,
            action=LearningAction.confirmed,
            message=message,
            should_continue=True,
            original_text=context.original_text,
        )

    def _resolve(
        self,
        phone_id: str,
        context: LearningContext,
        match: PendingMatch,
        user_id: str,
    ) -> CorrectionResult:
        learned = self.synonyms.reject_and_correct(
            user_id=user_id,
            term=context.detected_term,
            category_id=match.category_id,
            category_name=match.category_name,
            sub_category_id=match.sub_category_id,
            sub_category_name=match.sub_category_name,
            rejected_category_name=context.suggested_category,
        )
        self.clear_context(phone_id)

        if learned is not None:
            message = (
                f"✅ *Corrigido e aprendido!*\n\n"
                f"\"{context.detected_term}\" agora é {match.label}."
            )
        else:
            message = f"✅ *Ok!* Vou usar {match.label} para esta transação."

        return CorrectionResult(
            success=True,
            message=message,
            should_continue=True,
            original_text=context.original_text,
        )


def find_correction_matches(text: str, categories: List[UserCategory]) -> List[PendingMatch]:
    """
    Fuzzy-match a typed correction against category records.

    ``"Categoria > Subcategoria"`` needs both names to pass the threshold
    and scores their mean. A single name scores the better of the record's
    category and subcategory similarity. Best first.
    """
    threshold = settings.correction_similarity_threshold
    parts = [p.strip() for p in text.split(">") if p.strip()]
    if not parts:
        return []

    matches = []
    for record in categories:
        sub = record.sub_category

        if len(parts) >= 2:
            if sub is None:
                continue
            category_score = similarity(parts[0], record.name)
            sub_score = similarity(parts[1], sub.name)
            if category_score < threshold or sub_score < threshold:
                continue
            score = (category_score + sub_score) / 2
        else:
            score = similarity(parts[0], record.name)
            if sub is not None:
                score = max(score, similarity(parts[0], sub.name))
            if score < threshold:
                continue

        matches.append(PendingMatch(
            category_id=record.id,
            category_name=record.name,
            sub_category_id=sub.id if sub else None,
            sub_category_name=sub.name if sub else None,
            score=score,
        ))

    return sorted(matches, key=lambda m: m.score, reverse=True)
