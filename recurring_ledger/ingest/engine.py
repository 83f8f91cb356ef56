"""
Bank statement import: parse, drop duplicates, suggest recurring links, persist.

`preview` is side-effect free; `execute` writes the surviving rows as ledger
transactions and hands them to the reconciliation engine.
"""
import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence, Union

from ..core.audit import AuditLogger
from ..core.config import settings
from ..core.repositories import TransactionStore
from ..core.utils import setup_logging
from ..ledger.transactions import LedgerTransaction
from ..matching.fuzzy import FuzzyTextMatcher
from ..reconcile.engine import ReconciliationEngine, ReconciliationReport
from ..reconcile.matcher import MatchResult
from .parser import BankStatementParser, ImportedRow

class RowStatus(str, Enum):
    VALID = "valid"
    DUPLICATE = "duplicate"
    ERROR = "error"

@dataclass
class PreviewRow:
    row: ImportedRow
    status: RowStatus
    message: Optional[str] = None
    duplicate_of: Optional[str] = None
    suggestion: Optional[MatchResult] = None

    @property
    def is_selected(self) -> bool:
        return self.status == RowStatus.VALID

@dataclass
class ImportPreview:
    rows: List[PreviewRow] = field(default_factory=list)

    def _with(self, status: RowStatus) -> List[PreviewRow]:
        return [r for r in self.rows if r.status == status]

    @property
    def valid(self) -> List[PreviewRow]:
        return self._with(RowStatus.VALID)

    @property
    def duplicates(self) -> List[PreviewRow]:
        return self._with(RowStatus.DUPLICATE)

    @property
    def errors(self) -> List[PreviewRow]:
        return self._with(RowStatus.ERROR)

    @property
    def total_amount(self) -> float:
        return round(sum(r.row.amount for r in self.valid), 2)

@dataclass
class ImportResult:
    batch_id: str
    total_rows: int
    imported: List[LedgerTransaction] = field(default_factory=list)
    duplicates: List[PreviewRow] = field(default_factory=list)
    errors: List[PreviewRow] = field(default_factory=list)
    reconciliation: Optional[ReconciliationReport] = None

class ImportEngine:

    def __init__(
        self,
        transaction_store: TransactionStore,
        reconciler: ReconciliationEngine,
        parser: Optional[BankStatementParser] = None,
        text_matcher: Optional[FuzzyTextMatcher] = None,
        audit: Optional[AuditLogger] = None,
        dedup_window_days: Optional[int] = None,
        preview_window_days: Optional[int] = None,
    ):
        self.transactions = transaction_store
        self.reconciler = reconciler
        self.parser = parser or BankStatementParser()
        self.text = text_matcher or FuzzyTextMatcher()
        self.audit = audit or reconciler.audit
        self.dedup_window_days = settings.DEDUP_DATE_WINDOW_DAYS if dedup_window_days is None else dedup_window_days
        self.preview_window_days = (settings.IMPORT_PREVIEW_WINDOW_DAYS
                                    if preview_window_days is None else preview_window_days)
        self.log = setup_logging("import")

    def _rows(self, source: Union[str, Path, Sequence[ImportedRow]]) -> List[ImportedRow]:
        if isinstance(source, (str, Path)):
            return self.parser.parse_file(source)
        return list(source)

    def find_duplicate(self, row: ImportedRow, account_id: str) -> Optional[str]:
        """Id of an existing transaction this row repeats, exact first then fuzzy."""
        exact = self.transactions.find_duplicates(row.date, row.amount, row.description, account_id)
        if exact:
            return exact[0].id
        window = timedelta(days=self.dedup_window_days)
        nearby = self.transactions.get_between(row.date - window, row.date + window, account_id)
        for txn in nearby:
            # same direction and same amount, then a description match on either measure
            if round(txn.amount, 2) != round(row.amount, 2):
                continue
            if self.text.is_match(row.description, txn.description):
                return txn.id
        return None

    def preview(self, source: Union[str, Path, Sequence[ImportedRow]], account_id: str) -> ImportPreview:
        rows = self._rows(source)
        preview = ImportPreview()
        valid_dates = [r.date for r in rows if r.is_valid]
        candidates = []
        tolerances = replace(self.reconciler.tolerances, date_tolerance_days=self.preview_window_days)
        if valid_dates:
            slack = timedelta(days=self.preview_window_days)
            by_date = self.reconciler.project_instances(min(valid_dates) - slack, max(valid_dates) + slack, account_id)
            candidates = [inst for d in by_date for inst in by_date[d]]

        for row in rows:
            if not row.is_valid:
                preview.rows.append(PreviewRow(row, RowStatus.ERROR, "; ".join(row.errors)))
                continue
            duplicate_of = self.find_duplicate(row, account_id)
            if duplicate_of:
                preview.rows.append(PreviewRow(row, RowStatus.DUPLICATE,
                                               "Possible duplicate of existing transaction", duplicate_of))
                continue
            as_txn = LedgerTransaction(id=f"row-{row.row_number}", account_id=account_id, date=row.date,
                                       amount=row.amount, description=row.description)
            suggestion = self.reconciler.find_best_match(as_txn, candidates, tolerances)
            preview.rows.append(PreviewRow(row, RowStatus.VALID, suggestion=suggestion))
        return preview

    def execute(
        self,
        source: Union[str, Path, Sequence[ImportedRow]],
        account_id: str,
        filename: Optional[str] = None,
        reconcile: bool = True,
        cancel_event: Optional[threading.Event] = None,
    ) -> ImportResult:
        """Import the valid, non-duplicate rows and reconcile them."""
        if isinstance(source, (str, Path)) and filename is None:
            filename = Path(source).name
        rows = self._rows(source)
        preview = self.preview(rows, account_id)
        batch_id = str(uuid.uuid4())
        result = ImportResult(batch_id=batch_id, total_rows=len(rows),
                              duplicates=preview.duplicates, errors=preview.errors)

        for p in preview.valid:
            txn = LedgerTransaction.create(account_id, p.row.date, p.row.amount, p.row.description,
                                           reference=p.row.reference, import_batch_id=batch_id)
            self.transactions.add(txn)
            result.imported.append(txn)
        self.transactions.commit()

        self.log.info("import %s (%s): %d row(s), %d imported, %d duplicate(s), %d error(s)",
                      batch_id, filename, len(rows), len(result.imported), len(result.duplicates), len(result.errors))
        self.audit.log_import(batch_id, filename, len(rows), len(result.imported),
                              len(result.duplicates), len(result.errors))

        if reconcile and result.imported:
            dates = [t.date for t in result.imported]
            result.reconciliation = self.reconciler.reconcile(result.imported, min(dates), max(dates),
                                                              cancel_event=cancel_event)
        return result
