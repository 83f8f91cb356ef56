"""
Recurring transactions and transfers.

Each schedule keeps a live cursor (`next_occurrence`) that realization moves
forward, and separately answers range queries (`get_occurrences_between`)
that never touch the cursor.
"""
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional

from .pattern import RecurrencePattern

class InvalidScheduleError(ValueError):
    pass

@dataclass
class RecurringSchedule:
    id: str
    description: str
    amount: float
    pattern: RecurrencePattern
    start_date: date
    end_date: Optional[date] = None
    category_id: Optional[str] = None
    next_occurrence: Optional[date] = None
    is_active: bool = True
    last_generated_date: Optional[date] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def __post_init__(self):
        if not self.description or not self.description.strip():
            raise InvalidScheduleError("Description is required.")
        if self.pattern is None:
            raise InvalidScheduleError("Recurrence pattern is required.")
        if self.end_date is not None and self.end_date < self.start_date:
            raise InvalidScheduleError("End date must be on or after start date.")
        self._check_amount(self.amount)
        self.description = self.description.strip()
        if self.next_occurrence is None:
            self.next_occurrence = self.start_date

    def update(self, description: str, amount: float, pattern: RecurrencePattern,
               end_date: Optional[date], category_id: Optional[str] = None):
        if not description or not description.strip():
            raise InvalidScheduleError("Description is required.")
        if pattern is None:
            raise InvalidScheduleError("Recurrence pattern is required.")
        if end_date is not None and end_date < self.start_date:
            raise InvalidScheduleError("End date must be on or after start date.")
        self._check_amount(amount)
        self.description = description.strip()
        self.amount = amount
        self.pattern = pattern
        self.end_date = end_date
        self.category_id = category_id
        self.updated_at = datetime.utcnow()

    def _check_amount(self, amount: float):
        if amount is None:
            raise InvalidScheduleError("Amount is required.")

    def pause(self):
        self.is_active = False
        self.updated_at = datetime.utcnow()

    def resume(self):
        self.is_active = True
        self.updated_at = datetime.utcnow()

    def advance_next_occurrence(self) -> date:
        """Move the cursor one step; deactivates once it passes the end date."""
        self.last_generated_date = self.next_occurrence
        self.next_occurrence = self.pattern.calculate_next_occurrence(self.next_occurrence)
        self.updated_at = datetime.utcnow()
        if self.end_date is not None and self.next_occurrence > self.end_date:
            self.is_active = False
        return self.next_occurrence

    def record_realized(self, instance_date: date):
        """Move the cursor past an instance that became a ledger transaction."""
        while self.next_occurrence is not None and self.next_occurrence <= instance_date and self.is_active:
            self.advance_next_occurrence()
        if self.last_generated_date is None or self.last_generated_date < instance_date:
            self.last_generated_date = instance_date

    def overlaps(self, from_date: date, to_date: date) -> bool:
        if self.start_date > to_date:
            return False
        return self.end_date is None or self.end_date >= from_date

    def get_occurrences_between(self, from_date: date, to_date: date) -> List[date]:
        """All scheduled dates in [from_date, to_date], walked from start_date."""
        dates = []
        if from_date > to_date or not self.overlaps(from_date, to_date):
            return dates
        last = to_date if self.end_date is None else min(to_date, self.end_date)
        current = self.start_date
        while current <= last:
            if current >= from_date:
                dates.append(current)
            current = self.pattern.calculate_next_occurrence(current)
        return dates

@dataclass
class RecurringTransaction(RecurringSchedule):
    account_id: str = ""

    def __post_init__(self):
        if not self.account_id:
            raise InvalidScheduleError("Account ID is required.")
        super().__post_init__()

    @classmethod
    def create(cls, account_id: str, description: str, amount: float, pattern: RecurrencePattern,
               start_date: date, end_date: Optional[date] = None,
               category_id: Optional[str] = None) -> "RecurringTransaction":
        return cls(
            id=str(uuid.uuid4()),
            account_id=account_id,
            description=description,
            amount=amount,
            pattern=pattern,
            start_date=start_date,
            end_date=end_date,
            category_id=category_id,
        )

@dataclass
class RecurringTransfer(RecurringSchedule):
    source_account_id: str = ""
    destination_account_id: str = ""

    def __post_init__(self):
        if not self.source_account_id or not self.destination_account_id:
            raise InvalidScheduleError("Source and destination accounts are required.")
        if self.source_account_id == self.destination_account_id:
            raise InvalidScheduleError("Source and destination accounts must differ.")
        super().__post_init__()

    def _check_amount(self, amount: float):
        if amount is None or amount <= 0:
            raise InvalidScheduleError("Transfer amount must be positive.")

    @classmethod
    def create(cls, source_account_id: str, destination_account_id: str, description: str,
               amount: float, pattern: RecurrencePattern, start_date: date,
               end_date: Optional[date] = None) -> "RecurringTransfer":
        return cls(
            id=str(uuid.uuid4()),
            source_account_id=source_account_id,
            destination_account_id=destination_account_id,
            description=description,
            amount=amount,
            pattern=pattern,
            start_date=start_date,
            end_date=end_date,
        )
