"""
Match Engine - enrich a draft from the retailer's existing records.

Match rule: a candidate matches when, case-insensitively, its name contains
the query or the query contains its name. An empty query or an empty
candidate name never matches.

Merge rule (fill-if-empty): a candidate value is copied into the draft only
when the draft field is empty. Anything the user or the extraction step
already filled in is left alone.

| Target    | Candidates used                 | Fields filled                   |
|-----------|---------------------------------|---------------------------------|
| Customer  | one, chosen by a MatchStrategy  | phone, email, address           |
| Line item | every matching candidate, folded| brand, category, unit, sku      |
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import replace
from difflib import SequenceMatcher
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from .index import as_index, normalize_name
from .models import CustomerInfo, LineItem

logger = logging.getLogger(__name__)

CUSTOMER_FIELDS = ("phone", "email", "address")
INVENTORY_FIELDS = ("brand", "category", "unit", "sku")


def names_match(query, candidate_name) -> bool:
    """Bidirectional, case-insensitive substring test with an empty guard."""
    q = normalize_name(query)
    c = normalize_name(candidate_name)
    if not q or not c:
        return False
    return q in c or c in q


def is_empty(value: Any) -> bool:
    """Empty means None, falsy, or a whitespace-only string."""
    if isinstance(value, str):
        return not value.strip()
    return not value


def _get(source, field_name: str):
    if isinstance(source, Mapping):
        return source.get(field_name)
    return getattr(source, field_name, None)


def fill_if_empty(target, source, fields: Iterable[str]):
    """
    Copy fields from source into a copy of target where target is empty.

    Args:
        target: Dataclass instance to enrich (never mutated)
        source: Record or mapping supplying values
        fields: Field names to consider

    Returns:
        (new target, list of field names that were filled)
    """
    changes = {}
    for field_name in fields:
        if not is_empty(getattr(target, field_name)):
            continue
        value = _get(source, field_name)
        if is_empty(value):
            continue
        changes[field_name] = value
    return replace(target, **changes), list(changes)


# ---------------------------------------------------------------------------
# Customer selection strategies
# ---------------------------------------------------------------------------

class MatchStrategy(ABC):
    """Chooses at most one candidate for a query."""

    @abstractmethod
    def select(self, query: str, candidates: Sequence) -> Optional[Any]:
        pass


class FirstMatchStrategy(MatchStrategy):
    """First matching candidate in iteration order wins."""

    def select(self, query: str, candidates: Sequence) -> Optional[Any]:
        for candidate in candidates:
            if names_match(query, candidate.name):
                return candidate
        return None


def _words(text: str) -> set:
    text = re.sub(r"[^\w\s]", " ", normalize_name(text))
    return set(text.split())


def similarity_score(query: str, candidate_name: str) -> tuple[float, float]:
    """
    Score how closely a candidate name fits a query.

    Primary: Jaccard similarity of word sets. Secondary: SequenceMatcher
    ratio on the normalized strings, which separates candidates sharing
    the same words.
    """
    words1 = _words(query)
    words2 = _words(candidate_name)
    union = words1 | words2
    jaccard = len(words1 & words2) / len(union) if union else 0.0
    ratio = SequenceMatcher(None, normalize_name(query), normalize_name(candidate_name)).ratio()
    return jaccard, ratio


class RankedMatchStrategy(MatchStrategy):
    """
    Best-scoring matching candidate wins; earlier candidates win exact ties.

    Only candidates that pass the substring rule are scored, so this changes
    which candidate is picked, never whether one is.
    """

    def __init__(self, scorer: Callable[[str, str], Any] = similarity_score):
        self.scorer = scorer

    def select(self, query: str, candidates: Sequence) -> Optional[Any]:
        best = None
        best_score = None
        for candidate in candidates:
            if not names_match(query, candidate.name):
                continue
            score = self.scorer(query, candidate.name)
            if best is None or score > best_score:
                best, best_score = candidate, score
        return best


STRATEGIES = {
    "first": FirstMatchStrategy,
    "ranked": RankedMatchStrategy,
}


def get_strategy(name: str = "first") -> MatchStrategy:
    """Build a customer match strategy by config name."""
    try:
        return STRATEGIES[name]()
    except KeyError:
        raise ValueError(f"Unknown match strategy '{name}', expected one of {sorted(STRATEGIES)}")


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------

def match_customer(query: str, candidates, strategy: Optional[MatchStrategy] = None) -> dict:
    """
    Find the customer record matching query and return its contact fields.

    Args:
        query: Customer name from the draft
        candidates: CustomerRecords (iterable or CandidateIndex)
        strategy: Selection strategy (defaults to first match)

    Returns:
        Dict with the non-empty phone/email/address of the chosen candidate,
        or {} when nothing matches
    """
    if not normalize_name(query):
        return {}

    index = as_index(candidates)
    chosen = (strategy or FirstMatchStrategy()).select(query, index.candidates_for(query))
    if chosen is None:
        return {}
    logger.debug(f"Customer '{query}' matched record '{chosen.name}'")

    fields = {}
    for field_name in CUSTOMER_FIELDS:
        value = _get(chosen, field_name)
        if not is_empty(value):
            fields[field_name] = value
    return fields


def enrich_customer(
    customer: CustomerInfo,
    candidates,
    strategy: Optional[MatchStrategy] = None,
) -> tuple[CustomerInfo, list[str]]:
    """Apply match_customer to a customer block with fill-if-empty."""
    found = match_customer(customer.name, candidates, strategy)
    if not found:
        return replace(customer), []
    return fill_if_empty(customer, found, CUSTOMER_FIELDS)


def match_inventory(line_items: Iterable[LineItem], candidates) -> list[LineItem]:
    """
    Enrich line items from inventory records.

    Every item is compared against every candidate; each matching candidate
    can fill whatever fields are still empty on that item.

    Args:
        line_items: Draft line items (not mutated)
        candidates: InventoryRecords (iterable or CandidateIndex)

    Returns:
        New list of new LineItem objects, same order as the input
    """
    index = as_index(candidates)
    enriched = []

    for item in line_items:
        updated = replace(item)
        for candidate in index.candidates_for(item.name):
            if names_match(item.name, candidate.name):
                updated, _ = fill_if_empty(updated, candidate, INVENTORY_FIELDS)
        enriched.append(updated)

    return enriched
