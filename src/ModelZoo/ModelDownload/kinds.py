"""Closed set of pretrained model kinds published on the model index."""

from __future__ import annotations

from enum import Enum

__all__ = ["ModelKind"]


class ModelKind(str, Enum):
    """Kind of pretrained model, valued by its canonical filename fragment."""

    TOKENIZER = "token"
    SENTENCE_DETECTOR = "sent"
    PART_OF_SPEECH = "pos-perceptron"
    NAME_FINDER = "ner"
    CHUNKER = "chunker"
    PARSER = "parser-chunking"

    @property
    def identifier(self) -> str:
        """Return the short filename fragment associated with this kind."""

        return self.value

    @classmethod
    def parse(cls, text: str) -> "ModelKind":
        """Resolve ``text`` given either as a member name or an identifier.

        Member names are matched case-insensitively with ``-`` and ``_``
        treated alike, so ``sentence-detector``, ``SENTENCE_DETECTOR`` and
        ``sent`` all resolve to :attr:`SENTENCE_DETECTOR`.
        """

        candidate = text.strip()
        normalized = candidate.upper().replace("-", "_")
        if normalized in cls.__members__:
            return cls.__members__[normalized]
        for member in cls:
            if member.value == candidate.lower():
                return member
        valid = ", ".join(member.name.lower() for member in cls)
        raise ValueError(f"unknown model kind '{text}' (expected one of: {valid})")

    def __str__(self) -> str:
        return self.name
