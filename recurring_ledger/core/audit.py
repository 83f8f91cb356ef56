"""
Audit trail for reconciliation runs, CSV imports and match decisions.
Every entry is one JSON line; files live under the configured audit path.
"""
import json
from pathlib import Path
from typing import Dict, List, Any, Optional
from datetime import datetime

from .config import settings
from .utils import to_jsonable

class AuditLogger:
    """Append-only JSONL audit logger."""

    def __init__(self, audit_dir: Optional[str] = None):
        self.audit_dir = Path(audit_dir or settings.AUDIT_LOG_PATH)
        self.audit_dir.mkdir(parents=True, exist_ok=True)

        self.runs_log = self.audit_dir / "reconciliation_runs.jsonl"
        self.matches_log = self.audit_dir / "match_changes.jsonl"
        self.imports_log = self.audit_dir / "imports.jsonl"
        self.realizations_log = self.audit_dir / "realizations.jsonl"

    def _append(self, path: Path, entry: Dict[str, Any]):
        entry = {'timestamp': datetime.now().isoformat(), **entry}
        with open(path, 'a', encoding='utf-8') as f:
            f.write(json.dumps(entry, default=to_jsonable) + '\n')

    def log_run(
        self,
        run_id: str,
        window_start: Any,
        window_end: Any,
        transactions: int,
        candidates: int,
        auto_matched: int,
        pending: int,
        tolerances: Dict[str, Any]
    ):
        """Log one reconciliation pass with its counts."""
        self._append(self.runs_log, {
            'run_id': run_id,
            'window_start': window_start,
            'window_end': window_end,
            'transactions': transactions,
            'candidates': candidates,
            'auto_matched': auto_matched,
            'pending': pending,
            'tolerances': tolerances,
        })

    def log_match_change(
        self,
        match_id: str,
        operation: str,  # 'suggest', 'auto_match', 'accept', 'reject', 'manual'
        transaction_id: str,
        recurring_transaction_id: str,
        instance_date: Any,
        confidence_score: float,
        user_id: Optional[str] = None
    ):
        self._append(self.matches_log, {
            'match_id': match_id,
            'operation': operation,
            'transaction_id': transaction_id,
            'recurring_transaction_id': recurring_transaction_id,
            'instance_date': instance_date,
            'confidence_score': confidence_score,
            'user_id': user_id,
        })

    def log_import(self, batch_id: str, filename: Optional[str], total_rows: int,
                   imported: int, duplicates: int, error_rows: int):
        self._append(self.imports_log, {
            'batch_id': batch_id,
            'filename': filename,
            'total_rows': total_rows,
            'imported': imported,
            'duplicates': duplicates,
            'error_rows': error_rows,
        })

    def log_realization(self, schedule_id: str, instance_date: Any, transaction_ids: List[str],
                        user_id: Optional[str] = None):
        """Log an instance turned into ledger transactions without a bank match."""
        self._append(self.realizations_log, {
            'schedule_id': schedule_id,
            'instance_date': instance_date,
            'transaction_ids': transaction_ids,
            'user_id': user_id,
        })

    def _read(self, path: Path) -> List[Dict[str, Any]]:
        if not path.exists():
            return []
        entries = []
        with open(path, 'r', encoding='utf-8') as f:
            for line in f:
                try:
                    entries.append(json.loads(line.strip()))
                except json.JSONDecodeError:
                    continue
        return entries

    def get_match_history(self, match_id: str) -> List[Dict[str, Any]]:
        """Get status changes for one match, newest first."""
        history = [e for e in self._read(self.matches_log) if e.get('match_id') == match_id]
        history.sort(key=lambda x: x['timestamp'], reverse=True)
        return history

    def get_run_history(self, limit: int = 20) -> List[Dict[str, Any]]:
        runs = self._read(self.runs_log)
        runs.sort(key=lambda x: x['timestamp'], reverse=True)
        return runs[:limit]
