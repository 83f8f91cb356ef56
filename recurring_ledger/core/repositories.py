"""
Storage interfaces the projection and reconciliation code depends on.
Concrete SQLAlchemy implementations live in recurring_ledger.db.repositories.
"""
from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional, Set

from ..ledger.transactions import LedgerTransaction
from ..recurring.overlay import OccurrenceException
from ..recurring.schedule import RecurringSchedule, RecurringTransaction, RecurringTransfer

class ScheduleStore(ABC):
    """Recurring schedules, their exceptions and realized-instance lookups."""

    @abstractmethod
    def get_active_transactions(self, account_id: Optional[str] = None) -> List[RecurringTransaction]:
        pass

    @abstractmethod
    def get_active_transfers(self, account_id: Optional[str] = None) -> List[RecurringTransfer]:
        pass

    @abstractmethod
    def get_schedule(self, schedule_id: str) -> Optional[RecurringSchedule]:
        pass

    @abstractmethod
    def save_schedule(self, schedule: RecurringSchedule) -> None:
        pass

    @abstractmethod
    def get_exceptions_between(self, schedule_id: str, from_date: date, to_date: date) -> List[OccurrenceException]:
        pass

    @abstractmethod
    def get_exception(self, schedule_id: str, original_date: date) -> Optional[OccurrenceException]:
        pass

    @abstractmethod
    def save_exception(self, exc: OccurrenceException) -> None:
        """Insert or replace the exception for (schedule_id, original_date)."""
        pass

    @abstractmethod
    def remove_exceptions_from(self, schedule_id: str, cutoff: date) -> int:
        pass

    @abstractmethod
    def get_realized_dates(self, schedule_id: str, from_date: date, to_date: date,
                           account_id: Optional[str] = None) -> Set[date]:
        """Instance dates in range already linked to a real transaction (on account_id if given)."""
        pass

    @abstractmethod
    def find_realized(self, schedule_id: str, instance_date: date,
                      account_id: Optional[str] = None) -> Optional[LedgerTransaction]:
        pass

class TransactionStore(ABC):

    @abstractmethod
    def get(self, transaction_id: str) -> Optional[LedgerTransaction]:
        pass

    @abstractmethod
    def get_between(self, from_date: date, to_date: date, account_id: Optional[str] = None) -> List[LedgerTransaction]:
        pass

    @abstractmethod
    def find_duplicates(self, on_date: date, amount: float, description: str,
                        account_id: Optional[str] = None) -> List[LedgerTransaction]:
        """Transactions with the same date, amount and (case-insensitive) description."""
        pass

    @abstractmethod
    def add(self, transaction: LedgerTransaction) -> None:
        pass

    @abstractmethod
    def save(self, transaction: LedgerTransaction) -> None:
        pass

    @abstractmethod
    def commit(self) -> None:
        pass

class MatchStore(ABC):
    """Persisted reconciliation suggestions."""

    @abstractmethod
    def exists(self, transaction_id: str, recurring_transaction_id: str, instance_date: date) -> bool:
        pass

    @abstractmethod
    def add(self, match) -> None:
        pass

    @abstractmethod
    def save(self, match) -> None:
        pass

    @abstractmethod
    def get(self, match_id: str):
        pass

    @abstractmethod
    def find(self, transaction_id: str, recurring_transaction_id: str, instance_date: date):
        pass

    @abstractmethod
    def get_pending(self) -> list:
        pass

    @abstractmethod
    def get_between(self, from_date: date, to_date: date) -> list:
        """Matches whose instance date falls in [from_date, to_date]."""
        pass

    @abstractmethod
    def commit(self) -> None:
        pass
