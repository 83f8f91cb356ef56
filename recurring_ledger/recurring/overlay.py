"""
Per-occurrence exceptions (skip or modify) layered over a schedule's default
projection. Exceptions are always addressed by the originally scheduled date.
"""
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

class ExceptionType(str, Enum):
    SKIP = "skip"
    MODIFY = "modify"

class InvalidExceptionError(ValueError):
    pass

@dataclass
class OccurrenceException:
    id: str
    schedule_id: str
    original_date: date
    exception_type: ExceptionType
    modified_amount: Optional[float] = None
    modified_description: Optional[str] = None
    modified_date: Optional[date] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def key(self) -> Tuple[str, date]:
        return (self.schedule_id, self.original_date)

    @property
    def effective_date(self) -> date:
        return self.modified_date or self.original_date

    @classmethod
    def skip(cls, schedule_id: str, original_date: date) -> "OccurrenceException":
        if not schedule_id:
            raise InvalidExceptionError("Schedule ID is required.")
        return cls(str(uuid.uuid4()), schedule_id, original_date, ExceptionType.SKIP)

    @classmethod
    def modify(cls, schedule_id: str, original_date: date, amount: Optional[float] = None,
               description: Optional[str] = None, new_date: Optional[date] = None) -> "OccurrenceException":
        if not schedule_id:
            raise InvalidExceptionError("Schedule ID is required.")
        exc = cls(str(uuid.uuid4()), schedule_id, original_date, ExceptionType.MODIFY)
        exc.update(amount, description, new_date)
        return exc

    def update(self, amount: Optional[float], description: Optional[str], new_date: Optional[date]):
        description = description.strip() if description else None
        if amount is None and not description and new_date is None:
            raise InvalidExceptionError("At least one modification is required (amount, description, or date).")
        self.modified_amount = amount
        self.modified_description = description or None
        self.modified_date = new_date
        self.updated_at = datetime.utcnow()

@dataclass(frozen=True)
class Occurrence:
    """One raw schedule date after the overlay has been applied."""
    original_date: date
    date: date
    amount: float
    description: str
    is_modified: bool = False
    exception_id: Optional[str] = None

class ExceptionOverlay:
    """Exceptions keyed by (schedule_id, original_date)."""

    def __init__(self, exceptions: Iterable[OccurrenceException] = ()):
        self._by_key: Dict[Tuple[str, date], OccurrenceException] = {}
        for exc in exceptions:
            self.put(exc)

    def __len__(self):
        return len(self._by_key)

    def put(self, exc: OccurrenceException):
        """Insert or replace the exception for its original date."""
        self._by_key[exc.key] = exc

    def get(self, schedule_id: str, original_date: date) -> Optional[OccurrenceException]:
        return self._by_key.get((schedule_id, original_date))

    def remove(self, schedule_id: str, original_date: date) -> Optional[OccurrenceException]:
        return self._by_key.pop((schedule_id, original_date), None)

    def in_range(self, schedule_id: str, from_date: date, to_date: date) -> List[OccurrenceException]:
        return sorted(
            (e for (sid, d), e in self._by_key.items() if sid == schedule_id and from_date <= d <= to_date),
            key=lambda e: e.original_date,
        )

    def remove_from(self, schedule_id: str, cutoff: date) -> int:
        """Drop every exception of the schedule on or after cutoff."""
        doomed = [k for k in self._by_key if k[0] == schedule_id and k[1] >= cutoff]
        for k in doomed:
            del self._by_key[k]
        return len(doomed)

    def apply(self, schedule, dates: Iterable[date]) -> List[Occurrence]:
        """Resolve raw dates of `schedule` against its exceptions.

        Skipped dates disappear; modified dates carry the replacement values
        but stay addressed by their original date. Repeated input dates are
        resolved once.
        """
        result = []
        for original in dict.fromkeys(dates):
            exc = self.get(schedule.id, original)
            if exc is None:
                result.append(Occurrence(original, original, schedule.amount, schedule.description))
                continue
            if exc.exception_type == ExceptionType.SKIP:
                continue
            result.append(Occurrence(
                original_date=original,
                date=exc.effective_date,
                amount=schedule.amount if exc.modified_amount is None else exc.modified_amount,
                description=exc.modified_description or schedule.description,
                is_modified=True,
                exception_id=exc.id,
            ))
        return result
