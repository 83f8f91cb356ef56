from datetime import date

import pytest
from sqlalchemy.exc import IntegrityError

from recurring_ledger.db.models import RecurringExceptionRow
from recurring_ledger.ledger.transactions import LedgerTransaction
from recurring_ledger.reconcile.match import MatchStatus, ReconciliationMatch
from recurring_ledger.recurring.overlay import ExceptionType, OccurrenceException
from recurring_ledger.recurring.pattern import Frequency, RecurrencePattern
from recurring_ledger.recurring.schedule import RecurringTransaction, RecurringTransfer

def _rent():
    return RecurringTransaction.create("acct-1", "Rent", -1200.0, RecurrencePattern.monthly(31),
                                       date(2026, 1, 31), category_id="housing")

def test_schedules_round_trip(schedule_store):
    rent = _rent()
    transfer = RecurringTransfer.create("acct-1", "acct-2", "Savings", 200.0,
                                        RecurrencePattern.weekly(4, interval=2), date(2026, 1, 2))
    schedule_store.save_schedule(rent)
    schedule_store.save_schedule(transfer)

    loaded = schedule_store.get_schedule(rent.id)
    assert isinstance(loaded, RecurringTransaction)
    assert (loaded.amount, loaded.category_id, loaded.pattern) == (-1200.0, "housing", rent.pattern)
    moved = schedule_store.get_schedule(transfer.id)
    assert isinstance(moved, RecurringTransfer)
    assert moved.pattern.frequency == Frequency.WEEKLY and moved.pattern.interval == 2
    assert schedule_store.get_schedule("missing") is None

def test_active_schedules_filtered_by_account(schedule_store):
    rent = _rent()
    paused = RecurringTransaction.create("acct-1", "Gym", -40.0, RecurrencePattern.monthly(2), date(2026, 1, 2))
    paused.pause()
    transfer = RecurringTransfer.create("acct-1", "acct-2", "Savings", 200.0,
                                        RecurrencePattern.monthly(1), date(2026, 1, 1))
    for s in (rent, paused, transfer):
        schedule_store.save_schedule(s)
    assert [s.id for s in schedule_store.get_active_transactions()] == [rent.id]
    assert schedule_store.get_active_transactions("acct-2") == []
    assert [s.id for s in schedule_store.get_active_transfers("acct-2")] == [transfer.id]
    assert schedule_store.get_active_transfers("acct-9") == []

def test_save_exception_upserts(schedule_store):
    rent = _rent()
    schedule_store.save_schedule(rent)
    schedule_store.save_exception(OccurrenceException.skip(rent.id, date(2026, 2, 28)))
    schedule_store.save_exception(OccurrenceException.modify(rent.id, date(2026, 2, 28), amount=-1250.0))
    exc = schedule_store.get_exception(rent.id, date(2026, 2, 28))
    assert exc.exception_type == ExceptionType.MODIFY and exc.modified_amount == -1250.0
    assert len(schedule_store.get_exceptions_between(rent.id, date(2026, 1, 1), date(2026, 12, 31))) == 1

def test_save_exception_for_unknown_schedule(schedule_store):
    with pytest.raises(KeyError):
        schedule_store.save_exception(OccurrenceException.skip("nope", date(2026, 2, 28)))

def test_remove_exceptions_from_cutoff(schedule_store):
    rent = _rent()
    schedule_store.save_schedule(rent)
    for d in (date(2026, 2, 28), date(2026, 3, 31), date(2026, 4, 30)):
        schedule_store.save_exception(OccurrenceException.skip(rent.id, d))
    assert schedule_store.remove_exceptions_from(rent.id, date(2026, 3, 31)) == 2
    remaining = schedule_store.get_exceptions_between(rent.id, date(2026, 1, 1), date(2026, 12, 31))
    assert [e.original_date for e in remaining] == [date(2026, 2, 28)]

def test_exception_unique_per_schedule_date(session):
    for i in range(2):
        session.add(RecurringExceptionRow(id=f"exc-{i}", schedule_id="s-1", original_date=date(2026, 1, 1),
                                          exception_type="skip"))
    with pytest.raises(IntegrityError):
        session.flush()
    session.rollback()

def test_match_triple_unique(session, transaction_store, match_store):
    txn = LedgerTransaction.create("acct-1", date(2026, 1, 16), -15.99, "NETFLIX.COM")
    transaction_store.add(txn)
    match_store.add(ReconciliationMatch.create(txn.id, "s-1", date(2026, 1, 15), 0.7))
    assert match_store.exists(txn.id, "s-1", date(2026, 1, 15))
    assert match_store.find(txn.id, "s-1", date(2026, 1, 16)) is None
    with pytest.raises(IntegrityError):
        match_store.add(ReconciliationMatch.create(txn.id, "s-1", date(2026, 1, 15), 0.9))
    session.rollback()

def test_match_status_persisted(transaction_store, match_store):
    txn = LedgerTransaction.create("acct-1", date(2026, 1, 16), -15.99, "NETFLIX.COM")
    transaction_store.add(txn)
    match = ReconciliationMatch.create(txn.id, "s-1", date(2026, 1, 15), 0.7, amount_variance=0.5)
    match_store.add(match)
    assert [m.id for m in match_store.get_pending()] == [match.id]
    match.reject()
    match_store.save(match)
    match_store.commit()
    loaded = match_store.get(match.id)
    assert loaded.status == MatchStatus.REJECTED and loaded.resolved_at is not None
    assert loaded.amount_variance == 0.5
    assert match_store.get_pending() == []

def test_transaction_duplicates_and_realized(schedule_store, transaction_store):
    rent = _rent()
    schedule_store.save_schedule(rent)
    txn = LedgerTransaction.create("acct-1", date(2026, 1, 31), -1200.0, "Rent Payment")
    txn.link_to_recurring_instance(rent.id, date(2026, 1, 31))
    transaction_store.add(txn)
    transaction_store.commit()

    assert [t.id for t in transaction_store.find_duplicates(date(2026, 1, 31), -1200.004, " rent payment ")] == [txn.id]
    assert transaction_store.find_duplicates(date(2026, 1, 31), -1200.0, "Rent Payment", "acct-2") == []
    assert schedule_store.get_realized_dates(rent.id, date(2026, 1, 1), date(2026, 2, 28)) == {date(2026, 1, 31)}
    assert schedule_store.find_realized(rent.id, date(2026, 1, 31)).id == txn.id
    assert schedule_store.find_realized(rent.id, date(2026, 1, 31), "acct-2") is None
