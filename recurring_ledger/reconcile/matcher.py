"""
Scores a real ledger transaction against projected recurring instances.

A candidate is eligible only when its date offset and amount variance are
inside the supplied tolerances. Eligible candidates get a bounded 0..1
confidence from weighted description, amount and date closeness.
"""
import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Iterable, List, Optional

from ..ledger.transactions import LedgerTransaction
from ..matching.fuzzy import FuzzyTextMatcher
from ..recurring.projector import ProjectedInstance
from .tolerances import MatchingTolerances

log = logging.getLogger(__name__)

DESCRIPTION_WEIGHT = 0.50
AMOUNT_WEIGHT = 0.30
DATE_WEIGHT = 0.20

HIGH_CONFIDENCE = 0.85
MEDIUM_CONFIDENCE = 0.60

class ConfidenceLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

def confidence_level(score: float) -> ConfidenceLevel:
    if score >= HIGH_CONFIDENCE:
        return ConfidenceLevel.HIGH
    if score >= MEDIUM_CONFIDENCE:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW

@dataclass(frozen=True)
class MatchResult:
    transaction_id: str
    recurring_transaction_id: str
    instance_date: date
    confidence_score: float
    confidence_level: ConfidenceLevel
    amount_variance: float
    date_offset_days: int
    description_similarity: float
    candidate: ProjectedInstance

    def is_auto_match(self, tolerances: MatchingTolerances) -> bool:
        return self.confidence_score >= tolerances.auto_match_threshold

class TransactionMatcher:

    def __init__(self, text_matcher: Optional[FuzzyTextMatcher] = None):
        self.text = text_matcher or FuzzyTextMatcher()

    def calculate_match(self, transaction: LedgerTransaction, candidate: ProjectedInstance,
                        tolerances: MatchingTolerances) -> Optional[MatchResult]:
        """Score one candidate; None when it falls outside the tolerances."""
        offset = (transaction.date - candidate.occurrence_date).days
        if abs(offset) > tolerances.date_tolerance_days:
            return None

        actual, expected = transaction.amount, candidate.amount
        # money in never matches money out
        if actual * expected < 0:
            return None
        variance = round(abs(actual - expected), 2)
        if not amount_within_tolerance(actual, expected, tolerances):
            return None

        similarity = self.text.similarity(transaction.description, candidate.description)
        if similarity < tolerances.description_similarity_threshold:
            return None

        score = (
            similarity * DESCRIPTION_WEIGHT
            + amount_score(actual, expected, tolerances) * AMOUNT_WEIGHT
            + date_score(offset, tolerances.date_tolerance_days) * DATE_WEIGHT
        )
        score = round(max(0.0, min(1.0, score)), 4)
        return MatchResult(
            transaction_id=transaction.id,
            recurring_transaction_id=candidate.schedule_id,
            instance_date=candidate.instance_date,
            confidence_score=score,
            confidence_level=confidence_level(score),
            amount_variance=variance,
            date_offset_days=offset,
            description_similarity=round(similarity, 4),
            candidate=candidate,
        )

    def find_matches(self, transaction: LedgerTransaction, candidates: Iterable[ProjectedInstance],
                     tolerances: MatchingTolerances) -> List[MatchResult]:
        """Eligible candidates, best first; ties go to the earliest scheduled date."""
        results = [r for r in (self.calculate_match(transaction, c, tolerances) for c in candidates) if r]
        results.sort(key=lambda r: (-r.confidence_score, r.candidate.occurrence_date, r.instance_date))
        return results

    def find_best_match(self, transaction: LedgerTransaction, candidates: Iterable[ProjectedInstance],
                        tolerances: MatchingTolerances) -> Optional[MatchResult]:
        matches = self.find_matches(transaction, candidates, tolerances)
        if not matches:
            log.debug("no eligible candidate for transaction %s", transaction.id)
            return None
        return matches[0]

def amount_within_tolerance(actual: float, expected: float, tolerances: MatchingTolerances) -> bool:
    difference = round(abs(actual - expected), 2)
    if difference <= tolerances.amount_tolerance_absolute:
        return True
    if expected != 0:
        return difference / abs(expected) <= tolerances.amount_tolerance_percent
    return actual == 0

def date_score(offset_days: int, tolerance_days: int) -> float:
    if tolerance_days == 0:
        return 1.0 if offset_days == 0 else 0.0
    return max(0.0, 1.0 - abs(offset_days) / tolerance_days)

def amount_score(actual: float, expected: float, tolerances: MatchingTolerances) -> float:
    difference = round(abs(actual - expected), 2)
    if difference == 0:
        return 1.0
    absolute = (1.0 - min(1.0, difference / tolerances.amount_tolerance_absolute)
                if tolerances.amount_tolerance_absolute > 0 else 0.0)
    if expected == 0:
        return absolute
    percent = (1.0 - min(1.0, (difference / abs(expected)) / tolerances.amount_tolerance_percent)
               if tolerances.amount_tolerance_percent > 0 else 0.0)
    return max(percent, absolute)
