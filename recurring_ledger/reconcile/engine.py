"""
Matches newly imported ledger transactions against projected recurring
instances and records the outcome as reconciliation matches.

A run fetches everything it needs up front (active schedules, their
exceptions and realized instances for the window), then scores in memory,
then persists. Winning scores at or above the auto-match threshold are
confirmed and linked immediately; the rest wait for review.
"""
import calendar
import threading
import uuid
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional

from ..core.audit import AuditLogger
from ..core.config import settings
from ..core.repositories import MatchStore, ScheduleStore, TransactionStore
from ..core.utils import setup_logging
from ..ledger.transactions import LedgerTransaction
from ..recurring.projector import InstanceProjector, ProjectedInstance
from ..recurring.schedule import RecurringTransfer
from .match import MatchStatus, ReconciliationMatch
from .matcher import MatchResult, TransactionMatcher
from .tolerances import MatchingTolerances

class ReconciliationCancelled(RuntimeError):
    pass

class InstanceAlreadyRealizedError(ValueError):
    pass

@dataclass
class ReconciliationReport:
    run_id: str
    window_start: date
    window_end: date
    auto_matched: List[ReconciliationMatch] = field(default_factory=list)
    pending: List[ReconciliationMatch] = field(default_factory=list)
    unmatched: List[str] = field(default_factory=list)
    already_suggested: int = 0

    @property
    def total_matches(self) -> int:
        return len(self.auto_matched) + len(self.pending)

    def to_dict(self):
        return {
            "run_id": self.run_id,
            "window_start": self.window_start.isoformat(),
            "window_end": self.window_end.isoformat(),
            "auto_matched": [m.id for m in self.auto_matched],
            "pending": [m.id for m in self.pending],
            "unmatched": list(self.unmatched),
            "already_suggested": self.already_suggested,
        }

class InstanceStatus:
    MATCHED = "matched"
    PENDING = "pending"
    MISSING = "missing"

@dataclass(frozen=True)
class MonthlyInstanceStatus:
    instance: ProjectedInstance
    status: str
    transaction_id: Optional[str] = None
    match_id: Optional[str] = None

@dataclass(frozen=True)
class PastDueInstance:
    instance: ProjectedInstance
    days_past_due: int

class ReconciliationEngine:

    def __init__(
        self,
        schedule_store: ScheduleStore,
        transaction_store: TransactionStore,
        match_store: MatchStore,
        matcher: Optional[TransactionMatcher] = None,
        tolerances: Optional[MatchingTolerances] = None,
        audit: Optional[AuditLogger] = None,
        account_names: Optional[Dict[str, str]] = None,
    ):
        self.schedules = schedule_store
        self.transactions = transaction_store
        self.matches = match_store
        self.matcher = matcher or TransactionMatcher()
        self.tolerances = tolerances or MatchingTolerances.from_settings()
        self.audit = audit or AuditLogger()
        self.projector = InstanceProjector(schedule_store, account_names)
        self.log = setup_logging("reconcile")

    def _active_schedules(self, account_id: Optional[str] = None):
        return [*self.schedules.get_active_transactions(account_id),
                *self.schedules.get_active_transfers(account_id)]

    def project_instances(self, from_date: date, to_date: date,
                          account_id: Optional[str] = None) -> Dict[date, List[ProjectedInstance]]:
        return self.projector.project(self._active_schedules(account_id), from_date, to_date, account_id)

    @staticmethod
    def nearby(transaction: LedgerTransaction, instances: Iterable[ProjectedInstance],
               tolerances: MatchingTolerances) -> List[ProjectedInstance]:
        """Instances on the transaction's account within the date tolerance."""
        return [
            i for i in instances
            if i.account_id == transaction.account_id
            and abs((transaction.date - i.occurrence_date).days) <= tolerances.date_tolerance_days
        ]

    def find_best_match(self, transaction: LedgerTransaction, candidates: Iterable[ProjectedInstance],
                        tolerances: Optional[MatchingTolerances] = None) -> Optional[MatchResult]:
        return self.matcher.find_best_match(transaction, candidates, tolerances or self.tolerances)

    def reconcile(
        self,
        new_transactions: Iterable[LedgerTransaction],
        window_start: date,
        window_end: date,
        cancel_event: Optional[threading.Event] = None,
        tolerances: Optional[MatchingTolerances] = None,
    ) -> ReconciliationReport:
        """Score every new transaction against nearby instances and record the winners."""
        if window_end < window_start:
            raise ValueError("Window end must not be before window start.")
        tol = tolerances or self.tolerances
        report = ReconciliationReport(run_id=str(uuid.uuid4()), window_start=window_start, window_end=window_end)
        candidates_txns = [t for t in new_transactions if not t.is_realized]

        # fetch: instances whose dates can still fall within tolerance of the window edges
        slack = timedelta(days=tol.date_tolerance_days)
        instances = self.projector.project_flat(self._active_schedules(), window_start - slack, window_end + slack)
        self.log.info("reconcile %s: %d transaction(s), %d instance(s) in %s..%s",
                      report.run_id, len(candidates_txns), len(instances), window_start, window_end)

        if cancel_event is not None and cancel_event.is_set():
            self.log.info("reconcile %s cancelled before scoring", report.run_id)
            raise ReconciliationCancelled(f"Reconciliation {report.run_id} cancelled")

        # compute
        winners: List[MatchResult] = []
        by_id = {t.id: t for t in candidates_txns}
        for txn in candidates_txns:
            ranked = self.matcher.find_matches(txn, self.nearby(txn, instances, tol), tol)
            if not ranked:
                report.unmatched.append(txn.id)
                continue
            # a rejected pairing gives way to the runner-up
            best, decided = None, False
            for result in ranked:
                existing = self.matches.find(result.transaction_id, result.recurring_transaction_id,
                                             result.instance_date)
                if existing is None:
                    best = result
                    break
                if existing.status != MatchStatus.REJECTED:
                    decided = True
                    break
            if best is not None:
                winners.append(best)
            elif decided:
                report.already_suggested += 1
            else:
                report.unmatched.append(txn.id)

        # persist, strongest first so an instance is auto-linked to its best transaction
        claimed = set()
        winners.sort(key=lambda r: (-r.confidence_score, r.instance_date))
        for result in winners:
            match = ReconciliationMatch.from_result(result)
            instance_key = (result.recurring_transaction_id, result.instance_date, result.candidate.account_id)
            if result.is_auto_match(tol) and instance_key not in claimed:
                match.auto_match()
                claimed.add(instance_key)
                self._link(by_id[result.transaction_id], match)
                report.auto_matched.append(match)
                operation = "auto_match"
            else:
                report.pending.append(match)
                operation = "suggest"
            self.matches.add(match)
            self.audit.log_match_change(match.id, operation, match.transaction_id,
                                        match.recurring_transaction_id, match.instance_date,
                                        match.confidence_score)
        self.matches.commit()

        self.audit.log_run(report.run_id, window_start, window_end, len(candidates_txns), len(instances),
                           len(report.auto_matched), len(report.pending), tol.to_dict())
        self.log.info("reconcile %s: %d auto-matched, %d pending, %d unmatched, %d already suggested",
                      report.run_id, len(report.auto_matched), len(report.pending),
                      len(report.unmatched), report.already_suggested)
        return report

    def _ensure_unrealized(self, schedule_id: str, instance_date: date, transaction: LedgerTransaction):
        existing = self.schedules.find_realized(schedule_id, instance_date, transaction.account_id)
        if existing is not None and existing.id != transaction.id:
            raise InstanceAlreadyRealizedError(
                f"Instance {instance_date} of {schedule_id} has already been realized by {existing.id}.")

    def _get_schedule(self, schedule_id: str):
        schedule = self.schedules.get_schedule(schedule_id)
        if schedule is None:
            raise KeyError(f"schedule not found: {schedule_id}")
        return schedule

    def _link(self, transaction: LedgerTransaction, match: ReconciliationMatch):
        if match.is_transfer:
            transaction.link_to_transfer_instance(match.recurring_transaction_id, match.instance_date)
        else:
            transaction.link_to_recurring_instance(match.recurring_transaction_id, match.instance_date)
        self.transactions.save(transaction)

    def _get_match(self, match_id: str) -> ReconciliationMatch:
        match = self.matches.get(match_id)
        if match is None:
            raise KeyError(f"match not found: {match_id}")
        return match

    def accept_match(self, match_id: str, user_id: Optional[str] = None) -> ReconciliationMatch:
        match = self._get_match(match_id)
        txn = self.transactions.get(match.transaction_id)
        if txn is None:
            raise KeyError(f"transaction not found: {match.transaction_id}")
        self._ensure_unrealized(match.recurring_transaction_id, match.instance_date, txn)
        match.accept()
        self._link(txn, match)
        self.matches.save(match)
        self.matches.commit()
        self.audit.log_match_change(match.id, "accept", match.transaction_id, match.recurring_transaction_id,
                                    match.instance_date, match.confidence_score, user_id)
        self.log.info("match %s accepted", match.id)
        return match

    def reject_match(self, match_id: str, user_id: Optional[str] = None) -> ReconciliationMatch:
        match = self._get_match(match_id)
        match.reject()
        self.matches.save(match)
        self.matches.commit()
        self.audit.log_match_change(match.id, "reject", match.transaction_id, match.recurring_transaction_id,
                                    match.instance_date, match.confidence_score, user_id)
        self.log.info("match %s rejected", match.id)
        return match

    def bulk_accept(self, match_ids: Iterable[str], user_id: Optional[str] = None) -> int:
        """Accept every still-pending match in match_ids; returns how many were accepted."""
        accepted = 0
        for match_id in match_ids:
            match = self.matches.get(match_id)
            if match is None or not match.is_pending:
                continue
            try:
                self.accept_match(match_id, user_id)
            except InstanceAlreadyRealizedError as e:
                self.log.warning("match %s not accepted: %s", match_id, e)
                continue
            accepted += 1
        return accepted

    def create_manual_match(self, transaction_id: str, schedule_id: str, instance_date: date,
                            user_id: Optional[str] = None) -> ReconciliationMatch:
        """Confirm a link the user picked by hand, scored 1.0."""
        txn = self.transactions.get(transaction_id)
        if txn is None:
            raise KeyError(f"transaction not found: {transaction_id}")
        schedule = self._get_schedule(schedule_id)
        self._ensure_unrealized(schedule_id, instance_date, txn)
        if self.matches.exists(transaction_id, schedule_id, instance_date):
            raise ValueError("A match for this transaction and instance already exists.")
        match = ReconciliationMatch.create(
            transaction_id, schedule_id, instance_date, 1.0,
            date_offset_days=(txn.date - instance_date).days,
            is_transfer=isinstance(schedule, RecurringTransfer),
        )
        match.accept()
        self._link(txn, match)
        self.matches.add(match)
        self.matches.commit()
        self.audit.log_match_change(match.id, "manual", transaction_id, schedule_id, instance_date, 1.0, user_id)
        return match

    def realize_instance(
        self,
        schedule_id: str,
        instance_date: date,
        on_date: Optional[date] = None,
        amount: Optional[float] = None,
        description: Optional[str] = None,
        account_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> List[LedgerTransaction]:
        """Record a scheduled instance as ledger transaction(s) without waiting for a bank line.

        Values come from the explicit overrides, then from the instance's
        modify exception, then from the schedule. A transfer realizes every
        leg not yet realized, each on its own account, or only the leg on
        account_id when one is given.
        """
        schedule = self._get_schedule(schedule_id)
        legs = self.projector.instances_for_date([schedule], instance_date, account_id)
        if not legs:
            raise ValueError(f"{instance_date} is not a scheduled instance of active schedule {schedule_id}.")
        if legs[0].is_skipped:
            raise ValueError(f"Instance {instance_date} of {schedule_id} is skipped.")
        open_legs = [leg for leg in legs
                     if self.schedules.find_realized(schedule_id, instance_date, leg.account_id) is None]
        if not open_legs:
            raise InstanceAlreadyRealizedError(f"Instance {instance_date} of {schedule_id} has already been realized.")

        created = []
        for leg in open_legs:
            value = leg.amount if amount is None else amount
            if leg.is_transfer:
                # each leg keeps its direction
                value = abs(value) if leg.amount > 0 else -abs(value)
            txn = LedgerTransaction.create(leg.account_id, on_date or leg.occurrence_date, value,
                                           description or leg.description, category_id=leg.category_id)
            if leg.is_transfer:
                txn.link_to_transfer_instance(schedule_id, instance_date)
            else:
                txn.link_to_recurring_instance(schedule_id, instance_date)
            self.transactions.add(txn)
            created.append(txn)
        self.transactions.commit()

        schedule.record_realized(instance_date)
        self.schedules.save_schedule(schedule)
        self.audit.log_realization(schedule_id, instance_date, [t.id for t in created], user_id)
        self.log.info("instance %s of %s realized as %d transaction(s)", instance_date, schedule_id, len(created))
        return created

    def past_due_instances(self, today: date, account_id: Optional[str] = None,
                           lookback_days: Optional[int] = None) -> List[PastDueInstance]:
        """Unrealized, unskipped instances scheduled before today, oldest first."""
        lookback = settings.PAST_DUE_LOOKBACK_DAYS if lookback_days is None else lookback_days
        if lookback <= 0:
            return []
        start, end = today - timedelta(days=lookback), today - timedelta(days=1)
        instances = self.projector.project_flat(self._active_schedules(account_id), start, end, account_id)
        return [PastDueInstance(inst, (today - inst.occurrence_date).days)
                for inst in sorted(instances, key=lambda i: (i.instance_date, i.schedule_id))
                if inst.occurrence_date < today]

    def auto_realize_past_due(self, today: date, account_id: Optional[str] = None) -> List[LedgerTransaction]:
        """Realize every past-due instance when AUTO_REALIZE_PAST_DUE is on."""
        if not settings.AUTO_REALIZE_PAST_DUE:
            return []
        created = []
        seen = set()
        for item in self.past_due_instances(today, account_id):
            key = (item.instance.schedule_id, item.instance.instance_date)
            if key in seen:
                continue
            seen.add(key)
            created.extend(self.realize_instance(*key, account_id=account_id, user_id="auto-realize"))
        self.log.info("auto-realized %d transaction(s) due before %s", len(created), today)
        return created

    def pending_matches(self) -> List[ReconciliationMatch]:
        return sorted(self.matches.get_pending(), key=lambda m: (-m.confidence_score, m.instance_date))

    def status_for_month(self, year: int, month: int,
                         account_id: Optional[str] = None) -> List[MonthlyInstanceStatus]:
        """Every instance scheduled in the month, classified Matched / Pending / Missing."""
        start = date(year, month, 1)
        end = date(year, month, calendar.monthrange(year, month)[1])
        schedules = self._active_schedules(account_id)
        instances = self.projector.project_flat(schedules, start, end, account_id, include_realized=True)

        matches = self.matches.get_between(start, end)
        confirmed = {((m.recurring_transaction_id, m.instance_date), m.transaction_id): m for m in matches
                     if m.status == MatchStatus.CONFIRMED}
        pending = {(m.recurring_transaction_id, m.instance_date): m for m in matches if m.is_pending}

        result = []
        for inst in instances:
            key = (inst.schedule_id, inst.instance_date)
            txn = self.schedules.find_realized(inst.schedule_id, inst.instance_date, inst.account_id)
            if txn is not None:
                m = confirmed.get((key, txn.id))
                result.append(MonthlyInstanceStatus(inst, InstanceStatus.MATCHED, txn.id, m.id if m else None))
            elif key in pending:
                m = pending[key]
                result.append(MonthlyInstanceStatus(inst, InstanceStatus.PENDING, m.transaction_id, m.id))
            else:
                result.append(MonthlyInstanceStatus(inst, InstanceStatus.MISSING))
        return result
