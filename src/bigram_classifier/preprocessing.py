"""Message cleaning, stemming, and tokenization.

A message is turned into vocabulary ids in four steps:

1. every match of the cleaning pattern is replaced with a space
   (default ``[^a-z0-9 ']+``, case-insensitive, so punctuation and
   non-ASCII letters are dropped),
2. the result is split on whitespace,
3. each fragment is passed through the stemmer (case-folding by default),
4. each stemmed word is mapped to its vocabulary id; unknown words are
   dropped.

Adjacent id pairs ("bigrams") are the features the classifier learns.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Optional, Protocol

from .config import DEFAULT_CLEAN_PATTERN

if TYPE_CHECKING:
    from .vocabulary import Vocabulary

Bigram = tuple[int, int]


class Stemmer(Protocol):
    """Any callable reducing a word to its stem."""

    def __call__(self, word: str) -> str: ...


def casefold_stemmer(word: str) -> str:
    """Default stemmer: case folding only."""
    return word.casefold()


class Tokenizer:
    """Split messages into stemmed words and vocabulary ids.

    Example::

        tokenizer = Tokenizer()
        tokenizer.words("Hello, World!")   # ["hello", "world"]

    Args:
        clean_pattern: Compiled regex or pattern string. Strings are compiled
            case-insensitively.
        stemmer: Injected ``str -> str`` stemming function.
    """

    def __init__(
        self,
        clean_pattern: Optional[re.Pattern | str] = None,
        stemmer: Optional[Stemmer] = None,
    ) -> None:
        if clean_pattern is None:
            clean_pattern = DEFAULT_CLEAN_PATTERN
        if isinstance(clean_pattern, str):
            clean_pattern = re.compile(clean_pattern, re.IGNORECASE)
        self.clean_pattern = clean_pattern
        self.stemmer = stemmer or casefold_stemmer

    def clean(self, text: str) -> str:
        return self.clean_pattern.sub(" ", text)

    def words(self, text: str) -> list[str]:
        """Return the stemmed, non-empty words of a message, in order."""
        result: list[str] = []
        for fragment in self.clean(text).split():
            word = self.stemmer(fragment)
            if word:
                result.append(word)
        return result

    def tokenize(self, text: str, vocabulary: "Vocabulary") -> list[int]:
        """Map a message to vocabulary ids, dropping unknown words."""
        ids: list[int] = []
        for word in self.words(text):
            word_id = vocabulary.id_of(word)
            if word_id is not None:
                ids.append(word_id)
        return ids


def bigrams(token_ids: list[int] | tuple[int, ...]) -> list[Bigram]:
    """Adjacent ordered pairs of a token sequence."""
    return list(zip(token_ids, token_ids[1:]))
