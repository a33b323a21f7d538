"""
Candidate Index - lookup structures for enrichment candidates.

The matcher never loops over a retailer's records directly. It asks an index
for the candidates that could match a name and then applies the match rule.
An index may return extra candidates but must never drop one that would
match, and must keep the original record order so "first match wins" stays
stable.

- ScanIndex: returns every record (linear scan)
- NgramIndex: trigram lookup built once, returns a superset of containment hits
"""

from abc import ABC, abstractmethod
from collections import Counter
from typing import Iterable, Sequence, TypeVar

T = TypeVar("T")

NGRAM_SIZE = 3


def normalize_name(value) -> str:
    """Casefold and trim a name for comparison. None becomes ""."""
    if value is None:
        return ""
    return " ".join(str(value).split()).casefold()


class CandidateIndex(ABC):
    """Abstract lookup of candidate records by name."""

    @abstractmethod
    def candidates_for(self, name: str) -> Sequence:
        """Records that may match name, in original order."""
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass


class ScanIndex(CandidateIndex):
    """Linear index: every record is a candidate for every name."""

    def __init__(self, records: Iterable = ()):
        self._records = list(records)

    def candidates_for(self, name: str) -> Sequence:
        if not normalize_name(name):
            return []
        return self._records

    def __len__(self) -> int:
        return len(self._records)


def _ngrams(text: str) -> set[str]:
    return {text[i:i + NGRAM_SIZE] for i in range(len(text) - NGRAM_SIZE + 1)}


class NgramIndex(CandidateIndex):
    """
    Trigram index over normalized record names.

    For a query q and a record name c (both normalized):
    - q in c implies c contains q's first trigram
    - c in q implies every trigram of c is a trigram of q
    Names shorter than a trigram are always returned.
    """

    def __init__(self, records: Iterable = ()):
        self._records = list(records)
        self._by_gram: dict[str, set[int]] = {}
        self._gram_counts: list[int] = []
        self._short: list[int] = []

        for pos, record in enumerate(self._records):
            key = normalize_name(getattr(record, "name", ""))
            grams = _ngrams(key)
            self._gram_counts.append(len(grams))
            if not key:
                continue
            if len(key) < NGRAM_SIZE:
                self._short.append(pos)
            for gram in grams:
                self._by_gram.setdefault(gram, set()).add(pos)

    def candidates_for(self, name: str) -> Sequence:
        key = normalize_name(name)
        if not key:
            return []
        if len(key) < NGRAM_SIZE:
            # Too short to prefilter "key in name"
            return self._records

        hits = set(self._by_gram.get(key[:NGRAM_SIZE], ()))

        counts: Counter = Counter()
        for gram in _ngrams(key):
            for pos in self._by_gram.get(gram, ()):
                counts[pos] += 1
        hits.update(pos for pos, count in counts.items() if count == self._gram_counts[pos])
        hits.update(self._short)

        return [self._records[pos] for pos in sorted(hits)]

    def __len__(self) -> int:
        return len(self._records)


INDEX_TYPES = {
    "scan": ScanIndex,
    "ngram": NgramIndex,
}


def build_index(records: Iterable, kind: str = "scan") -> CandidateIndex:
    """
    Build a candidate index.

    Args:
        records: Candidate records (anything with a .name)
        kind: "scan" or "ngram"

    Returns:
        CandidateIndex over the records
    """
    try:
        index_cls = INDEX_TYPES[kind]
    except KeyError:
        raise ValueError(f"Unknown candidate index '{kind}', expected one of {sorted(INDEX_TYPES)}")
    return index_cls(records)


def as_index(candidates) -> CandidateIndex:
    """Wrap a plain iterable in a ScanIndex; pass indexes through."""
    if isinstance(candidates, CandidateIndex):
        return candidates
    return ScanIndex(candidates or ())
