"""Deterministic mapping from raw message text to a closed set of command variants.

Classification happens before any state is consulted; the dialogue controller
decides what each variant means for the current session state.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable, Optional

from .utils import normalize_text


class CommandKind(str, Enum):
    CANCEL = "cancel"
    BACK = "back"
    SHOW_ALL = "show_all"
    SHOW_FIRST = "show_first"
    AFFIRM = "affirm"
    GREETING = "greeting"
    TEXT = "text"


def _normalized(terms: Iterable[str]) -> FrozenSet[str]:
    return frozenset(normalize_text(term) for term in terms if normalize_text(term))


DEFAULT_CANCEL_TERMS = _normalized(
    ["cancelar", "cancel", "não", "nao", "no", "nova busca", "new search", "sair", "exit"]
)
DEFAULT_BACK_TERMS = _normalized(["voltar", "back"])
DEFAULT_SHOW_ALL_TERMS = _normalized(
    ["todos", "todas", "tudo", "mostrar tudo", "lista completa", "ver todos", "all", "show everything", "full list"]
)
DEFAULT_AFFIRM_TERMS = _normalized(["sim", "yes", "1"])
DEFAULT_GREETING_TERMS = _normalized(
    ["oi", "olá", "ola", "bom dia", "boa tarde", "boa noite", "oi bom dia", "oi boa tarde", "oi boa noite",
     "olá bom dia", "olá boa tarde", "olá boa noite", "e aí", "tudo bem", "hello", "hi"]
)

SHOW_FIRST_PATTERNS = [
    re.compile(
        r"^(?:quero ver|mostra|mostre|mostrar|ver|show)(?: me)?(?: os| as| the)?"
        r"(?: primeir[oa]s| first)? (\d{1,3})(?: primeir[oa]s| first)?$"
    ),
    re.compile(r"^(?:os |as |the )?(\d{1,3}) (?:primeir[oa]s|first)$"),
]


@dataclass(frozen=True)
class CommandVocabulary:
    """Configurable phrase sets; entries are compared after normalize_text."""
    cancel: FrozenSet[str] = field(default=DEFAULT_CANCEL_TERMS)
    back: FrozenSet[str] = field(default=DEFAULT_BACK_TERMS)
    show_all: FrozenSet[str] = field(default=DEFAULT_SHOW_ALL_TERMS)
    affirm: FrozenSet[str] = field(default=DEFAULT_AFFIRM_TERMS)
    greeting: FrozenSet[str] = field(default=DEFAULT_GREETING_TERMS)

    @classmethod
    def build(
        cls,
        cancel: Optional[Iterable[str]] = None,
        back: Optional[Iterable[str]] = None,
        show_all: Optional[Iterable[str]] = None,
        affirm: Optional[Iterable[str]] = None,
        greeting: Optional[Iterable[str]] = None,
    ) -> "CommandVocabulary":
        """Build a vocabulary from raw phrases, keeping defaults for omitted sets."""
        defaults = cls()
        return cls(
            cancel=_normalized(cancel) if cancel is not None else defaults.cancel,
            back=_normalized(back) if back is not None else defaults.back,
            show_all=_normalized(show_all) if show_all is not None else defaults.show_all,
            affirm=_normalized(affirm) if affirm is not None else defaults.affirm,
            greeting=_normalized(greeting) if greeting is not None else defaults.greeting,
        )


@dataclass(frozen=True)
class Command:
    """Tagged command variant; text keeps the original message for refinement/classification."""
    kind: CommandKind
    text: str
    normalized: str
    count: Optional[int] = None


def match_show_first(normalized: str) -> Optional[int]:
    for pattern in SHOW_FIRST_PATTERNS:
        match = pattern.match(normalized)
        if match:
            count = int(match.group(1))
            return count if count > 0 else None
    return None


def classify_command(text: str, vocabulary: Optional[CommandVocabulary] = None) -> Command:
    """Purpose: Map a raw message to exactly one CommandKind.
    Inputs/Outputs: Inputs are the raw text and an optional vocabulary; output is a Command.
    Side Effects / State: None; pure function.
    Dependencies: normalize_text, CommandVocabulary, SHOW_FIRST_PATTERNS.
    Failure Modes: Anything not in a vocabulary is CommandKind.TEXT. Matching is exact
        on the whole message after normalize_text, so case, accents, and punctuation
        are ignored ("Não!!" and "back." are commands) but extra words are not.
    If Removed: The controller falls back to ad hoc string comparisons.
    Testing Notes: "Cancelar" -> CANCEL; "Não" -> CANCEL; "quero ver 3" -> SHOW_FIRST(3);
        "50mm" -> TEXT.
    """
    vocab = vocabulary or CommandVocabulary()
    stripped = (text or "").strip()
    normalized = normalize_text(stripped)

    if normalized in vocab.cancel:
        return Command(CommandKind.CANCEL, stripped, normalized)
    if normalized in vocab.back:
        return Command(CommandKind.BACK, stripped, normalized)
    if normalized in vocab.show_all:
        return Command(CommandKind.SHOW_ALL, stripped, normalized)
    count = match_show_first(normalized)
    if count is not None:
        return Command(CommandKind.SHOW_FIRST, stripped, normalized, count=count)
    if normalized in vocab.affirm:
        return Command(CommandKind.AFFIRM, stripped, normalized)
    if normalized in vocab.greeting:
        return Command(CommandKind.GREETING, stripped, normalized)
    return Command(CommandKind.TEXT, stripped, normalized)
