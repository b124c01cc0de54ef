"""Text normalization, tokenization and fuzzy similarity for Portuguese descriptions."""

import re
import unicodedata
from typing import List, Optional

from rapidfuzz.distance import Levenshtein

from categorag.config import settings


_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
_NUMERIC = re.compile(r"^\d+$")

MIN_TOKEN_LENGTH = 3

# Singular forms that must keep their trailing "s" ("mais", "pais", "tras", "tenis"...)
PLURAL_EXCEPTIONS = frozenset({
    "pai", "ma", "mai", "tra", "tre", "de", "ve", "me", "ono",
    "onibu", "lapi", "teni", "viru", "gra",
})

TEMPORAL_WORDS = (
    "ontem", "hoje", "amanha", "anteontem", "agora", "semana",
    "mes", "ano", "dia", "hora", "minuto",
)

TRANSACTION_VERBS = (
    "gastei", "comprei", "paguei", "recebi", "ganhei", "transferi",
    "depositei", "saquei", "enviei", "fui", "fiz", "tomei", "pedi",
)

STOP_WORDS = (
    "com", "para", "por", "pelo", "pela", "uma", "uns", "umas", "aos",
    "das", "dos", "nas", "nos", "sem", "sobre", "reais", "real", "que",
    "meu", "minha", "seu", "sua", "esse", "essa", "isso",
)

GENERIC_WORDS = (
    "outro", "outra", "outros", "outras", "coisa", "coisas",
    "negocio", "item", "produto", "geral",
)


def normalize(text: Optional[str]) -> str:
    """Lowercase, strip accents, replace punctuation with spaces and collapse whitespace."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text.lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WHITESPACE.sub(" ", _NON_WORD.sub(" ", stripped)).strip()


def singularize(token: str) -> str:
    """Drop a simple plural "s" ("financiamentos" -> "financiamento")."""
    if len(token) > 3 and token.endswith("s") and token[:-1] not in PLURAL_EXCEPTIONS:
        return token[:-1]
    return token


def tokenize(text: Optional[str]) -> List[str]:
    """
    Split text into comparable tokens.

    Normalizes first, ignores tokens shorter than three characters and
    singularizes the rest. Never fails; empty input gives an empty list.
    """
    return [
        singularize(token)
        for token in normalize(text).split()
        if len(token) >= MIN_TOKEN_LENGTH
    ]


def canonical_term(term: str) -> str:
    """Normalize a dictionary term so it lines up with tokenizer output."""
    normalized = normalize(term)
    if " " in normalized:
        return normalized
    return singularize(normalized)


def _term_set(*groups) -> frozenset:
    terms = set()
    for group in groups:
        for word in group:
            terms.add(word)
            terms.add(canonical_term(word))
    return frozenset(terms)


FILTER_WORDS = _term_set(TEMPORAL_WORDS, TRANSACTION_VERBS, STOP_WORDS, GENERIC_WORDS)


def is_numeric(token: str) -> bool:
    return bool(_NUMERIC.match(token))


def extract_main_term(text: str) -> Optional[str]:
    """
    Pick the word a description is about.

    Drops temporal words, transaction verbs, stop words, generic words and
    numbers, then returns the first remaining normalized word.

    Example: "gastei 40 com marmita ontem" -> "marmita"
    """
    for word in normalize(text).split():
        if len(word) < MIN_TOKEN_LENGTH or is_numeric(word):
            continue
        if word in FILTER_WORDS or singularize(word) in FILTER_WORDS:
            continue
        return word
    return None


def similarity(a: str, b: str) -> float:
    """
    Similarity in [0, 1] between two names.

    1.0 for equal normalized strings, 0.9 when one contains the other,
    otherwise 1 - levenshtein / max_len.
    """
    left, right = normalize(a), normalize(b)
    if not left or not right:
        return 0.0
    if left == right:
        return 1.0
    if left in right or right in left:
        return 0.9
    distance = Levenshtein.distance(left, right)
    return 1.0 - distance / max(len(left), len(right))


def is_generic_name(name: Optional[str]) -> bool:
    """True for catch-all names such as "Outros" or "Geral"."""
    if not name:
        return False
    return normalize(name) in {normalize(n) for n in settings.generic_category_names}


def is_generic_target(category_name: Optional[str], sub_category_name: Optional[str]) -> bool:
    """A category/subcategory pair too vague to learn a synonym for."""
    return (
        is_generic_name(category_name)
        or not sub_category_name
        or is_generic_name(sub_category_name)
    )
