"""
Expands recurring schedules into concrete, dated instances for a window.

Projection is read-only: schedules are walked from their start date, never
from their live cursor, so projecting the same window twice gives the same
answer. Instances already realized as ledger transactions are left out.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, asdict, replace
from datetime import date
from enum import Enum
from typing import Dict, Iterable, List, Optional

from .overlay import ExceptionOverlay, ExceptionType
from .schedule import RecurringSchedule, RecurringTransaction, RecurringTransfer

log = logging.getLogger(__name__)

class TransferDirection(str, Enum):
    SOURCE = "source"
    DESTINATION = "destination"

@dataclass(frozen=True)
class ProjectedInstance:
    schedule_id: str
    instance_date: date       # originally scheduled date, identity of the instance
    occurrence_date: date     # date after any exception moved it
    account_id: str
    account_name: str
    description: str
    amount: float
    category_id: Optional[str] = None
    is_modified: bool = False
    is_skipped: bool = False
    direction: Optional[TransferDirection] = None

    @property
    def is_transfer(self) -> bool:
        return self.direction is not None

    def to_dict(self):
        d = asdict(self)
        d["direction"] = self.direction.value if self.direction else None
        return d

class InstanceProjector:
    """
    Projects recurring transactions and transfers into instances keyed by date.

    `store` is a ScheduleStore used for exceptions and realized-instance
    lookups; without one, schedules project with no exceptions and nothing
    counts as realized.
    """

    def __init__(self, store=None, account_names: Optional[Dict[str, str]] = None):
        self.store = store
        self.account_names = account_names or {}

    def _account_name(self, account_id: str) -> str:
        return self.account_names.get(account_id, "")

    def _overlay(self, schedule: RecurringSchedule, from_date: date, to_date: date) -> ExceptionOverlay:
        if self.store is None:
            return ExceptionOverlay()
        return ExceptionOverlay(self.store.get_exceptions_between(schedule.id, from_date, to_date))

    def _realized(self, schedule: RecurringSchedule, from_date: date, to_date: date,
                  account_id: Optional[str] = None):
        if self.store is None:
            return set()
        return self.store.get_realized_dates(schedule.id, from_date, to_date, account_id)

    def _occurrences(self, schedule: RecurringSchedule, from_date: date, to_date: date,
                     include_realized: bool = False):
        raw = schedule.get_occurrences_between(from_date, to_date)
        if not raw:
            return []
        occurrences = self._overlay(schedule, from_date, to_date).apply(schedule, raw)
        if include_realized:
            return occurrences
        realized = self._realized(schedule, from_date, to_date)
        kept = [o for o in occurrences if o.original_date not in realized]
        if len(kept) != len(occurrences):
            log.debug("schedule %s: %d realized instance(s) suppressed", schedule.id, len(occurrences) - len(kept))
        return kept

    def project(
        self,
        schedules: Iterable[RecurringSchedule],
        from_date: date,
        to_date: date,
        account_id: Optional[str] = None,
        include_realized: bool = False,
    ) -> Dict[date, List[ProjectedInstance]]:
        """Instances of all active schedules whose original date is in [from_date, to_date].

        Transfers emit both legs unless account_id picks the one leg touching
        that account. Recurring transactions on other accounts are dropped when
        account_id is given. Realized instances are left out unless
        include_realized is set.
        """
        result: Dict[date, List[ProjectedInstance]] = defaultdict(list)
        for schedule in schedules:
            if not schedule.is_active or not schedule.overlaps(from_date, to_date):
                continue
            if isinstance(schedule, RecurringTransfer):
                instances = self._transfer_instances(schedule, from_date, to_date, account_id, include_realized)
            elif isinstance(schedule, RecurringTransaction):
                if account_id is not None and schedule.account_id != account_id:
                    continue
                instances = self._transaction_instances(schedule, from_date, to_date, include_realized)
            else:
                raise TypeError(f"Unsupported schedule type: {type(schedule).__name__}")
            for inst in instances:
                result[inst.occurrence_date].append(inst)
        log.debug("projected %d instance(s) between %s and %s",
                  sum(len(v) for v in result.values()), from_date, to_date)
        return dict(sorted(result.items()))

    def project_flat(self, schedules, from_date: date, to_date: date, account_id: Optional[str] = None,
                     include_realized: bool = False) -> List[ProjectedInstance]:
        by_date = self.project(schedules, from_date, to_date, account_id, include_realized)
        return [inst for d in by_date for inst in by_date[d]]

    def _transaction_instance(self, schedule: RecurringTransaction, occ) -> ProjectedInstance:
        return ProjectedInstance(
            schedule_id=schedule.id,
            instance_date=occ.original_date,
            occurrence_date=occ.date,
            account_id=schedule.account_id,
            account_name=self._account_name(schedule.account_id),
            description=occ.description,
            amount=occ.amount,
            category_id=schedule.category_id,
            is_modified=occ.is_modified,
        )

    def _transfer_legs(self, transfer: RecurringTransfer, occ, account_id: Optional[str] = None):
        source_name = self._account_name(transfer.source_account_id)
        dest_name = self._account_name(transfer.destination_account_id)
        legs = []
        if account_id is None or account_id == transfer.source_account_id:
            legs.append((TransferDirection.SOURCE, transfer.source_account_id, source_name,
                         f"Transfer to {dest_name}: {occ.description}", -abs(occ.amount)))
        if account_id is None or account_id == transfer.destination_account_id:
            legs.append((TransferDirection.DESTINATION, transfer.destination_account_id, dest_name,
                         f"Transfer from {source_name}: {occ.description}", abs(occ.amount)))
        for direction, acct, name, desc, amount in legs:
            yield ProjectedInstance(
                schedule_id=transfer.id,
                instance_date=occ.original_date,
                occurrence_date=occ.date,
                account_id=acct,
                account_name=name,
                description=desc,
                amount=amount,
                is_modified=occ.is_modified,
                direction=direction,
            )

    def _transaction_instances(self, schedule: RecurringTransaction, from_date: date, to_date: date,
                               include_realized: bool = False):
        for occ in self._occurrences(schedule, from_date, to_date, include_realized):
            yield self._transaction_instance(schedule, occ)

    def _transfer_instances(self, transfer: RecurringTransfer, from_date: date, to_date: date,
                            account_id: Optional[str] = None, include_realized: bool = False):
        # each leg is realized on its own account
        realized = {} if include_realized else {
            acct: self._realized(transfer, from_date, to_date, acct)
            for acct in (transfer.source_account_id, transfer.destination_account_id)
        }
        for occ in self._occurrences(transfer, from_date, to_date, include_realized=True):
            for leg in self._transfer_legs(transfer, occ, account_id):
                if leg.instance_date not in realized.get(leg.account_id, ()):
                    yield leg

    def instances_for_date(self, schedules: Iterable[RecurringSchedule], on_date: date,
                           account_id: Optional[str] = None) -> List[ProjectedInstance]:
        """Instances originally scheduled on one day, skipped ones included and flagged."""
        result = []
        for schedule in schedules:
            if not schedule.is_active or not schedule.get_occurrences_between(on_date, on_date):
                continue
            exc = self.store.get_exception(schedule.id, on_date) if self.store is not None else None
            skipped = exc is not None and exc.exception_type == ExceptionType.SKIP
            overlay = ExceptionOverlay([exc] if exc is not None and not skipped else [])
            occ = overlay.apply(schedule, [on_date])[0]
            if isinstance(schedule, RecurringTransfer):
                instances = list(self._transfer_legs(schedule, occ, account_id))
            elif account_id is None or schedule.account_id == account_id:
                instances = [self._transaction_instance(schedule, occ)]
            else:
                continue
            result.extend(replace(i, is_skipped=True) if skipped else i for i in instances)
        return result
