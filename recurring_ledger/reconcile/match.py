import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional

from .matcher import ConfidenceLevel, MatchResult, confidence_level

class MatchStatus(str, Enum):
    SUGGESTED = "suggested"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"

class MatchAlreadyResolvedError(ValueError):
    pass

@dataclass
class ReconciliationMatch:
    """A suggested or decided link between a real transaction and one recurring instance."""
    id: str
    transaction_id: str
    recurring_transaction_id: str
    instance_date: date
    confidence_score: float
    amount_variance: float = 0.0
    date_offset_days: int = 0
    is_transfer: bool = False
    status: MatchStatus = MatchStatus.SUGGESTED
    auto_matched: bool = False
    created_at: datetime = field(default_factory=datetime.utcnow)
    resolved_at: Optional[datetime] = None

    @property
    def confidence_level(self) -> ConfidenceLevel:
        return confidence_level(self.confidence_score)

    @property
    def is_pending(self) -> bool:
        return self.status == MatchStatus.SUGGESTED

    @property
    def key(self):
        return (self.transaction_id, self.recurring_transaction_id, self.instance_date)

    @classmethod
    def create(cls, transaction_id: str, recurring_transaction_id: str, instance_date: date,
               confidence_score: float, amount_variance: float = 0.0, date_offset_days: int = 0,
               is_transfer: bool = False) -> "ReconciliationMatch":
        if not 0 <= confidence_score <= 1:
            raise ValueError("Confidence score must be between 0 and 1.")
        return cls(
            id=str(uuid.uuid4()),
            transaction_id=transaction_id,
            recurring_transaction_id=recurring_transaction_id,
            instance_date=instance_date,
            confidence_score=confidence_score,
            amount_variance=amount_variance,
            date_offset_days=date_offset_days,
            is_transfer=is_transfer,
        )

    @classmethod
    def from_result(cls, result: MatchResult) -> "ReconciliationMatch":
        return cls.create(
            transaction_id=result.transaction_id,
            recurring_transaction_id=result.recurring_transaction_id,
            instance_date=result.instance_date,
            confidence_score=result.confidence_score,
            amount_variance=result.amount_variance,
            date_offset_days=result.date_offset_days,
            is_transfer=result.candidate.is_transfer,
        )

    def _resolve(self, status: MatchStatus):
        if self.status != MatchStatus.SUGGESTED:
            raise MatchAlreadyResolvedError(f"Match {self.id} is already {self.status.value}.")
        self.status = status
        self.resolved_at = datetime.utcnow()

    def auto_match(self):
        self._resolve(MatchStatus.CONFIRMED)
        self.auto_matched = True

    def accept(self):
        self._resolve(MatchStatus.CONFIRMED)

    def reject(self):
        self._resolve(MatchStatus.REJECTED)
