import json
from datetime import date

import pytest

from recurring_ledger.core.config import settings
from recurring_ledger.reconcile.engine import InstanceAlreadyRealizedError
from recurring_ledger.recurring.overlay import OccurrenceException
from recurring_ledger.recurring.pattern import RecurrencePattern
from recurring_ledger.recurring.schedule import RecurringTransaction, RecurringTransfer

@pytest.fixture
def netflix(schedule_store):
    s = RecurringTransaction.create("acct-1", "Netflix Subscription", -15.99, RecurrencePattern.monthly(15),
                                    date(2025, 12, 15), category_id="entertainment")
    schedule_store.save_schedule(s)
    return s

@pytest.fixture
def gym(schedule_store):
    s = RecurringTransaction.create("acct-1", "Gym Membership", -40.0, RecurrencePattern.monthly(2),
                                    date(2026, 1, 2))
    schedule_store.save_schedule(s)
    return s

def test_realize_uses_exception_values_and_advances_cursor(reconciler, netflix, schedule_store,
                                                           transaction_store, audit):
    schedule_store.save_exception(OccurrenceException.modify(netflix.id, date(2026, 1, 15), amount=-17.99,
                                                             description="Netflix Premium"))
    [txn] = reconciler.realize_instance(netflix.id, date(2026, 1, 15), user_id="u-1")

    stored = transaction_store.get(txn.id)
    assert (stored.date, stored.amount, stored.description) == (date(2026, 1, 15), -17.99, "Netflix Premium")
    assert stored.category_id == "entertainment"
    assert stored.recurring_transaction_id == netflix.id
    assert stored.recurring_instance_date == date(2026, 1, 15)
    assert date(2026, 1, 15) not in reconciler.project_instances(date(2026, 1, 1), date(2026, 1, 31))

    schedule = schedule_store.get_schedule(netflix.id)
    assert schedule.next_occurrence == date(2026, 2, 15)
    assert schedule.last_generated_date == date(2026, 1, 15)

    entries = [json.loads(line) for line in audit.realizations_log.read_text().splitlines()]
    assert entries[0]["transaction_ids"] == [txn.id]
    assert entries[0]["instance_date"] == "2026-01-15"
    assert entries[0]["user_id"] == "u-1"

def test_explicit_values_win_over_schedule(reconciler, netflix, transaction_store):
    [txn] = reconciler.realize_instance(netflix.id, date(2026, 2, 15), on_date=date(2026, 2, 17),
                                        amount=-20.0, description="NETFLIX 4K")
    stored = transaction_store.get(txn.id)
    assert (stored.date, stored.amount, stored.description) == (date(2026, 2, 17), -20.0, "NETFLIX 4K")
    assert stored.recurring_instance_date == date(2026, 2, 15)

def test_realize_refuses_realized_skipped_and_unscheduled(reconciler, netflix, schedule_store):
    reconciler.realize_instance(netflix.id, date(2026, 1, 15))
    with pytest.raises(InstanceAlreadyRealizedError):
        reconciler.realize_instance(netflix.id, date(2026, 1, 15))

    schedule_store.save_exception(OccurrenceException.skip(netflix.id, date(2026, 3, 15)))
    with pytest.raises(ValueError, match="skipped"):
        reconciler.realize_instance(netflix.id, date(2026, 3, 15))
    with pytest.raises(ValueError, match="not a scheduled instance"):
        reconciler.realize_instance(netflix.id, date(2026, 1, 14))
    with pytest.raises(KeyError):
        reconciler.realize_instance("no-such-schedule", date(2026, 1, 15))

def test_realize_transfer_creates_both_legs(reconciler, schedule_store, transaction_store):
    sweep = RecurringTransfer.create("acct-1", "acct-2", "Savings sweep", 200.0, RecurrencePattern.monthly(1),
                                     date(2026, 1, 1))
    schedule_store.save_schedule(sweep)
    created = reconciler.realize_instance(sweep.id, date(2026, 1, 1), amount=250.0)

    legs = {t.account_id: transaction_store.get(t.id) for t in created}
    assert legs["acct-1"].amount == -250.0
    assert legs["acct-2"].amount == 250.0
    assert legs["acct-1"].description == "Transfer to Savings: Savings sweep"
    assert all(t.recurring_transfer_id == sweep.id for t in legs.values())
    with pytest.raises(InstanceAlreadyRealizedError):
        reconciler.realize_instance(sweep.id, date(2026, 1, 1))

def test_realize_one_transfer_leg(reconciler, schedule_store):
    sweep = RecurringTransfer.create("acct-1", "acct-2", "Savings sweep", 200.0, RecurrencePattern.monthly(1),
                                     date(2026, 1, 1))
    schedule_store.save_schedule(sweep)
    [out] = reconciler.realize_instance(sweep.id, date(2026, 1, 1), account_id="acct-1")
    assert out.amount == -200.0
    [into] = reconciler.realize_instance(sweep.id, date(2026, 1, 1))
    assert into.account_id == "acct-2"

def test_past_due_instances(reconciler, netflix, gym):
    today = date(2026, 1, 20)
    due = reconciler.past_due_instances(today)
    assert [(d.instance.schedule_id, d.instance.instance_date, d.days_past_due) for d in due] == [
        (gym.id, date(2026, 1, 2), 18),
        (netflix.id, date(2026, 1, 15), 5),
    ]
    assert reconciler.past_due_instances(today, account_id="acct-2") == []
    assert reconciler.past_due_instances(today, lookback_days=0) == []
    assert len(reconciler.past_due_instances(today, lookback_days=40)) == 3

    reconciler.realize_instance(netflix.id, date(2026, 1, 15))
    assert [d.instance.schedule_id for d in reconciler.past_due_instances(today)] == [gym.id]

def test_auto_realize_is_off_by_default(reconciler, netflix, gym, monkeypatch):
    today = date(2026, 1, 20)
    assert reconciler.auto_realize_past_due(today) == []
    assert len(reconciler.past_due_instances(today)) == 2

    monkeypatch.setattr(settings, "AUTO_REALIZE_PAST_DUE", True)
    created = reconciler.auto_realize_past_due(today)
    assert sorted(t.recurring_transaction_id for t in created) == sorted([gym.id, netflix.id])
    assert reconciler.past_due_instances(today) == []
