"""
Letter n-gram statistics (n = 1, 2, 3) over the corpus names.

Each name is padded with two start-of-word and two end-of-word sentinels:

    "zell" -> $ $ z e l l # #

letters:  z e l l                       (len)
bigrams:  $z ze el ll l#                (len + 1, "##" is skipped)
trigrams: $$z $ze zel ell ll# l##       (len + 2)

The model is built once and is read-only afterwards. Lookups for n-grams that
never occurred raise UnknownNGramError; there is no smoothing.
"""

from __future__ import annotations

import logging
from collections import Counter
from types import MappingProxyType
from typing import Iterable, Mapping

from toponym_clusters.errors import UnknownNGramError

logger = logging.getLogger(__name__)

SOW = "$"  # start of word
EOW = "#"  # end of word


class NGramModel:
    def __init__(
        self,
        letters: Mapping[str, int],
        bigrams: Mapping[str, int],
        trigrams: Mapping[str, int],
        letter_tokens: int,
        bigram_tokens: int,
        trigram_tokens: int,
    ):
        self._letters = MappingProxyType(dict(letters))
        self._bigrams = MappingProxyType(dict(bigrams))
        self._trigrams = MappingProxyType(dict(trigrams))
        self._letter_tokens = letter_tokens
        self._bigram_tokens = bigram_tokens
        self._trigram_tokens = trigram_tokens

    @classmethod
    def build(cls, names: Iterable[str]) -> "NGramModel":
        letters: Counter[str] = Counter()
        bigrams: Counter[str] = Counter()
        trigrams: Counter[str] = Counter()
        letter_tokens = bigram_tokens = trigram_tokens = 0
        count_names = 0

        for name in names:
            padded = SOW + SOW + name + EOW + EOW
            end = len(padded)
            for i in range(2, end):
                if i < end - 2:
                    letters[padded[i]] += 1
                if i < end - 1:
                    bigrams[padded[i - 1:i + 1]] += 1
                trigrams[padded[i - 2:i + 1]] += 1

            letter_tokens += len(name)
            bigram_tokens += len(name) + 1
            trigram_tokens += len(name) + 2
            count_names += 1

        logger.info("N-gram model over %d names: %d letter, %d bigram, %d trigram tokens",
                    count_names, letter_tokens, bigram_tokens, trigram_tokens)
        return cls(letters, bigrams, trigrams, letter_tokens, bigram_tokens, trigram_tokens)

    # ── Totals ────────────────────────────────────────────────────────

    @property
    def letter_tokens(self) -> int:
        return self._letter_tokens

    @property
    def bigram_tokens(self) -> int:
        return self._bigram_tokens

    @property
    def trigram_tokens(self) -> int:
        return self._trigram_tokens

    @property
    def letter_types(self) -> int:
        return len(self._letters)

    @property
    def bigram_types(self) -> int:
        return len(self._bigrams)

    @property
    def trigram_types(self) -> int:
        return len(self._trigrams)

    # ── Tables ────────────────────────────────────────────────────────

    @property
    def letters(self) -> Mapping[str, int]:
        return self._letters

    @property
    def bigrams(self) -> Mapping[str, int]:
        return self._bigrams

    @property
    def trigrams(self) -> Mapping[str, int]:
        return self._trigrams

    def letter_count(self, letter: str) -> int:
        return _lookup(self._letters, letter, "letter")

    def bigram_count(self, bigram: str) -> int:
        return _lookup(self._bigrams, bigram, "bigram")

    def trigram_count(self, trigram: str) -> int:
        return _lookup(self._trigrams, trigram, "trigram")

    # ── Probabilities (relative frequencies over the global token totals) ──

    def letter_probability(self, letter: str) -> float:
        return self.letter_count(letter) / self._letter_tokens

    def bigram_probability(self, bigram: str) -> float:
        return self.bigram_count(bigram) / self._bigram_tokens

    def trigram_probability(self, trigram: str) -> float:
        return self.trigram_count(trigram) / self._trigram_tokens

    # ── Sorted views for export ───────────────────────────────────────

    def sorted_letter_distribution(self) -> dict[str, int]:
        return _sort_by_count(self._letters)

    def sorted_bigram_distribution(self) -> dict[str, int]:
        return _sort_by_count(self._bigrams)

    def sorted_trigram_distribution(self) -> dict[str, int]:
        return _sort_by_count(self._trigrams)


def _lookup(table: Mapping[str, int], key: str, kind: str) -> int:
    try:
        return table[key]
    except KeyError:
        raise UnknownNGramError(f"{kind} {key!r} does not occur in the corpus", phase="ngrams") from None


def _sort_by_count(table: Mapping[str, int]) -> dict[str, int]:
    """Descending by count, ties broken by key."""
    return dict(sorted(table.items(), key=lambda kv: (-kv[1], kv[0])))
