"""Closed-vocabulary normalization of participant output."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Vocabulary:
    """Recognized leading tokens for a role, plus the fallback for noncompliant output."""

    tokens: tuple[str, ...]
    fallback: str

    def __post_init__(self) -> None:
        if not self.tokens:
            raise ValueError("Vocabulary needs at least one recognized token")
        if any(not t for t in self.tokens):
            raise ValueError("Recognized tokens must be non-empty")
        if len(set(self.tokens)) != len(self.tokens):
            raise ValueError(f"Duplicate recognized tokens: {self.tokens}")
        if self.fallback not in self.tokens:
            raise ValueError(
                f"Fallback {self.fallback!r} is not one of the recognized tokens {self.tokens}"
            )

    def match(self, text: str | None) -> str | None:
        """Return the token ``text`` starts with, or None.

        Longer tokens are tried first so that a token which is a prefix of
        another never shadows it. Equal lengths keep declaration order.
        """
        if not text:
            return None
        ordered = sorted(self.tokens, key=len, reverse=True)
        for token in ordered:
            if text.startswith(token):
                return token
        return None


class VocabularyGuard:
    """Maps each constrained role to its Vocabulary. Roles without one are free-form."""

    def __init__(self, vocabularies: Mapping[str, Vocabulary] | None = None) -> None:
        self._vocabularies: dict[str, Vocabulary] = dict(vocabularies or {})

    def vocabulary_for(self, role: str) -> Vocabulary | None:
        return self._vocabularies.get(role)

    def leading_token(self, role: str, text: str | None) -> str | None:
        vocabulary = self._vocabularies.get(role)
        if vocabulary is None:
            return None
        return vocabulary.match(text)

    def normalize(self, role: str, raw_text: str | None) -> str:
        """Return text whose leading token is guaranteed to be in the role's vocabulary.

        Free-form roles get their text back unchanged. Constrained roles get the
        raw text when it starts with a recognized token, otherwise the fallback.
        """
        vocabulary = self._vocabularies.get(role)
        if vocabulary is None:
            return raw_text or ""

        if vocabulary.match(raw_text) is not None:
            return raw_text  # type: ignore[return-value]

        logger.warning(
            "Role %s produced unrecognized output %r, substituting %r",
            role,
            (raw_text or "")[:60],
            vocabulary.fallback,
        )
        return vocabulary.fallback
