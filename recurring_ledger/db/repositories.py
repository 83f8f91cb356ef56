"""
SQLAlchemy implementations of the store interfaces. Each store maps ORM rows
to the plain domain objects and back; callers never see ORM instances.
"""
from datetime import date
from typing import List, Optional, Set

from sqlalchemy import func, select, or_

from ..core.repositories import MatchStore, ScheduleStore, TransactionStore
from ..ledger.transactions import LedgerTransaction
from ..reconcile.match import MatchStatus, ReconciliationMatch
from ..recurring.overlay import ExceptionType, OccurrenceException
from ..recurring.pattern import RecurrencePattern
from ..recurring.schedule import RecurringSchedule, RecurringTransaction, RecurringTransfer
from .models import (
    RecurringExceptionRow, RecurringTransactionRow, RecurringTransferRow, ReconciliationMatchRow, TransactionRow
)

def _transaction_schedule(row: RecurringTransactionRow) -> RecurringTransaction:
    return RecurringTransaction(
        id=row.id, account_id=row.account_id, description=row.description, amount=row.amount,
        pattern=RecurrencePattern.from_dict(row.pattern), start_date=row.start_date, end_date=row.end_date,
        category_id=row.category_id, next_occurrence=row.next_occurrence, is_active=row.is_active,
        last_generated_date=row.last_generated_date, created_at=row.created_at, updated_at=row.updated_at,
    )

def _transfer_schedule(row: RecurringTransferRow) -> RecurringTransfer:
    return RecurringTransfer(
        id=row.id, source_account_id=row.source_account_id, destination_account_id=row.destination_account_id,
        description=row.description, amount=row.amount, pattern=RecurrencePattern.from_dict(row.pattern),
        start_date=row.start_date, end_date=row.end_date, next_occurrence=row.next_occurrence,
        is_active=row.is_active, last_generated_date=row.last_generated_date,
        created_at=row.created_at, updated_at=row.updated_at,
    )

def _exception(row: RecurringExceptionRow) -> OccurrenceException:
    return OccurrenceException(
        id=row.id, schedule_id=row.schedule_id, original_date=row.original_date,
        exception_type=ExceptionType(row.exception_type), modified_amount=row.modified_amount,
        modified_description=row.modified_description, modified_date=row.modified_date,
        created_at=row.created_at, updated_at=row.updated_at,
    )

def _transaction(row: TransactionRow) -> LedgerTransaction:
    return LedgerTransaction(
        id=row.id, account_id=row.account_id, date=row.date, amount=row.amount, description=row.description,
        category_id=row.category_id, reference=row.reference, import_batch_id=row.import_batch_id,
        recurring_transaction_id=row.recurring_transaction_id, recurring_transfer_id=row.recurring_transfer_id,
        recurring_instance_date=row.recurring_instance_date, created_at=row.created_at,
    )

def _transaction_values(txn: LedgerTransaction) -> dict:
    return dict(
        id=txn.id, account_id=txn.account_id, date=txn.date, amount=txn.amount, description=txn.description,
        category_id=txn.category_id, reference=txn.reference, import_batch_id=txn.import_batch_id,
        recurring_transaction_id=txn.recurring_transaction_id, recurring_transfer_id=txn.recurring_transfer_id,
        recurring_instance_date=txn.recurring_instance_date, created_at=txn.created_at,
    )

def _match(row: ReconciliationMatchRow) -> ReconciliationMatch:
    return ReconciliationMatch(
        id=row.id, transaction_id=row.transaction_id, recurring_transaction_id=row.recurring_transaction_id,
        instance_date=row.instance_date, confidence_score=row.confidence_score,
        amount_variance=row.amount_variance or 0.0, date_offset_days=row.date_offset_days or 0,
        is_transfer=bool(row.is_transfer), status=MatchStatus(row.status), auto_matched=bool(row.auto_matched),
        created_at=row.created_at, resolved_at=row.resolved_at,
    )

def _match_values(match: ReconciliationMatch) -> dict:
    return dict(
        id=match.id, transaction_id=match.transaction_id, recurring_transaction_id=match.recurring_transaction_id,
        instance_date=match.instance_date, confidence_score=match.confidence_score,
        amount_variance=match.amount_variance, date_offset_days=match.date_offset_days,
        is_transfer=match.is_transfer, status=match.status.value, auto_matched=match.auto_matched,
        created_at=match.created_at, resolved_at=match.resolved_at,
    )

class SqlScheduleStore(ScheduleStore):

    def __init__(self, session):
        self.session = session

    def get_active_transactions(self, account_id: Optional[str] = None) -> List[RecurringTransaction]:
        stmt = select(RecurringTransactionRow).where(RecurringTransactionRow.is_active.is_(True))
        if account_id is not None:
            stmt = stmt.where(RecurringTransactionRow.account_id == account_id)
        return [_transaction_schedule(r) for r in self.session.scalars(stmt.order_by(RecurringTransactionRow.start_date))]

    def get_active_transfers(self, account_id: Optional[str] = None) -> List[RecurringTransfer]:
        stmt = select(RecurringTransferRow).where(RecurringTransferRow.is_active.is_(True))
        if account_id is not None:
            stmt = stmt.where(or_(RecurringTransferRow.source_account_id == account_id,
                                  RecurringTransferRow.destination_account_id == account_id))
        return [_transfer_schedule(r) for r in self.session.scalars(stmt.order_by(RecurringTransferRow.start_date))]

    def get_schedule(self, schedule_id: str) -> Optional[RecurringSchedule]:
        row = self.session.get(RecurringTransactionRow, schedule_id)
        if row is not None:
            return _transaction_schedule(row)
        row = self.session.get(RecurringTransferRow, schedule_id)
        return _transfer_schedule(row) if row is not None else None

    def save_schedule(self, schedule: RecurringSchedule) -> None:
        values = dict(
            id=schedule.id, description=schedule.description, amount=schedule.amount,
            pattern=schedule.pattern.to_dict(), start_date=schedule.start_date, end_date=schedule.end_date,
            next_occurrence=schedule.next_occurrence, last_generated_date=schedule.last_generated_date,
            is_active=schedule.is_active, created_at=schedule.created_at, updated_at=schedule.updated_at,
        )
        if isinstance(schedule, RecurringTransfer):
            row = RecurringTransferRow(source_account_id=schedule.source_account_id,
                                       destination_account_id=schedule.destination_account_id, **values)
        elif isinstance(schedule, RecurringTransaction):
            row = RecurringTransactionRow(account_id=schedule.account_id, category_id=schedule.category_id, **values)
        else:
            raise TypeError(f"Unsupported schedule type: {type(schedule).__name__}")
        self.session.merge(row)
        self.session.commit()

    def get_exceptions_between(self, schedule_id: str, from_date: date, to_date: date) -> List[OccurrenceException]:
        stmt = (select(RecurringExceptionRow)
                .where(RecurringExceptionRow.schedule_id == schedule_id,
                       RecurringExceptionRow.original_date >= from_date,
                       RecurringExceptionRow.original_date <= to_date)
                .order_by(RecurringExceptionRow.original_date))
        return [_exception(r) for r in self.session.scalars(stmt)]

    def _exception_row(self, schedule_id: str, original_date: date) -> Optional[RecurringExceptionRow]:
        stmt = select(RecurringExceptionRow).where(RecurringExceptionRow.schedule_id == schedule_id,
                                                   RecurringExceptionRow.original_date == original_date)
        return self.session.scalars(stmt).first()

    def get_exception(self, schedule_id: str, original_date: date) -> Optional[OccurrenceException]:
        row = self._exception_row(schedule_id, original_date)
        return _exception(row) if row is not None else None

    def save_exception(self, exc: OccurrenceException) -> None:
        if self.get_schedule(exc.schedule_id) is None:
            raise KeyError(f"schedule not found: {exc.schedule_id}")
        row = self._exception_row(exc.schedule_id, exc.original_date)
        if row is None:
            row = RecurringExceptionRow(id=exc.id, schedule_id=exc.schedule_id, original_date=exc.original_date,
                                        created_at=exc.created_at)
            self.session.add(row)
        row.exception_type = exc.exception_type.value
        row.modified_amount = exc.modified_amount
        row.modified_description = exc.modified_description
        row.modified_date = exc.modified_date
        row.updated_at = exc.updated_at
        self.session.commit()

    def remove_exceptions_from(self, schedule_id: str, cutoff: date) -> int:
        rows = self.session.scalars(select(RecurringExceptionRow).where(
            RecurringExceptionRow.schedule_id == schedule_id, RecurringExceptionRow.original_date >= cutoff)).all()
        for row in rows:
            self.session.delete(row)
        self.session.commit()
        return len(rows)

    def _realized_stmt(self, schedule_id: str, account_id: Optional[str]):
        stmt = select(TransactionRow).where(
            or_(TransactionRow.recurring_transaction_id == schedule_id,
                TransactionRow.recurring_transfer_id == schedule_id),
            TransactionRow.recurring_instance_date.is_not(None))
        if account_id is not None:
            stmt = stmt.where(TransactionRow.account_id == account_id)
        return stmt

    def get_realized_dates(self, schedule_id: str, from_date: date, to_date: date,
                           account_id: Optional[str] = None) -> Set[date]:
        stmt = self._realized_stmt(schedule_id, account_id).where(
            TransactionRow.recurring_instance_date >= from_date,
            TransactionRow.recurring_instance_date <= to_date)
        return {r.recurring_instance_date for r in self.session.scalars(stmt)}

    def find_realized(self, schedule_id: str, instance_date: date,
                      account_id: Optional[str] = None) -> Optional[LedgerTransaction]:
        stmt = self._realized_stmt(schedule_id, account_id).where(
            TransactionRow.recurring_instance_date == instance_date)
        row = self.session.scalars(stmt).first()
        return _transaction(row) if row is not None else None

class SqlTransactionStore(TransactionStore):

    def __init__(self, session):
        self.session = session

    def get(self, transaction_id: str) -> Optional[LedgerTransaction]:
        row = self.session.get(TransactionRow, transaction_id)
        return _transaction(row) if row is not None else None

    def get_between(self, from_date: date, to_date: date, account_id: Optional[str] = None) -> List[LedgerTransaction]:
        stmt = select(TransactionRow).where(TransactionRow.date >= from_date, TransactionRow.date <= to_date)
        if account_id is not None:
            stmt = stmt.where(TransactionRow.account_id == account_id)
        return [_transaction(r) for r in self.session.scalars(stmt.order_by(TransactionRow.date))]

    def find_duplicates(self, on_date: date, amount: float, description: str,
                        account_id: Optional[str] = None) -> List[LedgerTransaction]:
        stmt = select(TransactionRow).where(
            TransactionRow.date == on_date,
            func.round(TransactionRow.amount, 2) == round(amount, 2),
            func.lower(TransactionRow.description) == (description or "").strip().lower())
        if account_id is not None:
            stmt = stmt.where(TransactionRow.account_id == account_id)
        return [_transaction(r) for r in self.session.scalars(stmt)]

    def add(self, transaction: LedgerTransaction) -> None:
        self.session.add(TransactionRow(**_transaction_values(transaction)))
        self.session.flush()

    def save(self, transaction: LedgerTransaction) -> None:
        self.session.merge(TransactionRow(**_transaction_values(transaction)))
        self.session.flush()

    def commit(self) -> None:
        self.session.commit()

class SqlMatchStore(MatchStore):

    def __init__(self, session):
        self.session = session

    def _triple(self, transaction_id: str, recurring_transaction_id: str, instance_date: date):
        return select(ReconciliationMatchRow).where(
            ReconciliationMatchRow.transaction_id == transaction_id,
            ReconciliationMatchRow.recurring_transaction_id == recurring_transaction_id,
            ReconciliationMatchRow.instance_date == instance_date)

    def exists(self, transaction_id: str, recurring_transaction_id: str, instance_date: date) -> bool:
        return self.session.scalars(self._triple(transaction_id, recurring_transaction_id, instance_date)).first() is not None

    def add(self, match: ReconciliationMatch) -> None:
        self.session.add(ReconciliationMatchRow(**_match_values(match)))
        self.session.flush()

    def save(self, match: ReconciliationMatch) -> None:
        self.session.merge(ReconciliationMatchRow(**_match_values(match)))
        self.session.flush()

    def get(self, match_id: str) -> Optional[ReconciliationMatch]:
        row = self.session.get(ReconciliationMatchRow, match_id)
        return _match(row) if row is not None else None

    def find(self, transaction_id: str, recurring_transaction_id: str, instance_date: date) -> Optional[ReconciliationMatch]:
        row = self.session.scalars(self._triple(transaction_id, recurring_transaction_id, instance_date)).first()
        return _match(row) if row is not None else None

    def get_pending(self) -> List[ReconciliationMatch]:
        stmt = select(ReconciliationMatchRow).where(ReconciliationMatchRow.status == MatchStatus.SUGGESTED.value)
        return [_match(r) for r in self.session.scalars(stmt.order_by(ReconciliationMatchRow.instance_date))]

    def get_between(self, from_date: date, to_date: date) -> List[ReconciliationMatch]:
        stmt = select(ReconciliationMatchRow).where(ReconciliationMatchRow.instance_date >= from_date,
                                                    ReconciliationMatchRow.instance_date <= to_date)
        return [_match(r) for r in self.session.scalars(stmt.order_by(ReconciliationMatchRow.instance_date))]

    def commit(self) -> None:
        self.session.commit()
