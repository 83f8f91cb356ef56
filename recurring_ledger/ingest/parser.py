import io
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, List, Optional, Union

import pandas as pd

DATE_FORMATS = ["%m/%d/%Y", "%m/%d/%y", "%Y-%m-%d", "%m-%d-%Y", "%b %d, %Y", "%d %b %Y", "%B %d, %Y"]

# header keywords, checked in this order per column
SKIP_KEYS = ["balance", "bal.", "running"]
DATE_KEYS = ["date"]
DEBIT_KEYS = ["debit", "withdrawal"]
CREDIT_KEYS = ["credit", "deposit"]
AMOUNT_KEYS = ["amount", "amt"]
DESCRIPTION_KEYS = ["desc", "payee", "memo", "narration", "particulars", "name"]
CATEGORY_KEYS = ["category"]
REFERENCE_KEYS = ["ref", "check", "cheque", "transaction id", "id"]

# statement lines that report a balance or a total rather than a transaction
BALANCE_LINE_RE = re.compile(
    r"\b(?:beginning|ending|opening|closing|available|ledger|previous|new)\s+balance\b|^\s*total\s+(?:credits|debits)\b",
    re.IGNORECASE,
)

@dataclass
class ImportedRow:
    """One bank statement line (amount signed: money out is negative)."""
    row_number: int
    date: Optional[date] = None
    amount: Optional[float] = None
    description: str = ""
    reference: Optional[str] = None
    category: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

class BankStatementParser:
    """Reads bank CSV/Excel exports into ImportedRows, guessing columns from headers."""

    def _normalize_date(self, val: Any) -> Optional[date]:
        if val is None or (not isinstance(val, str) and pd.isna(val)):
            return None
        if isinstance(val, datetime):
            return val.date()
        if isinstance(val, date):
            return val
        s = str(val).strip()
        if not s:
            return None
        for fmt in DATE_FORMATS:
            try:
                return datetime.strptime(s, fmt).date()
            except ValueError:
                continue
        parsed = pd.to_datetime(s, errors="coerce")
        return None if pd.isna(parsed) else parsed.date()

    def _normalize_amount(self, val: Any) -> Optional[float]:
        if val is None or (not isinstance(val, str) and pd.isna(val)):
            return None
        s = str(val).strip().replace('"', "").replace("$", "").replace(",", "").replace("USD", "").strip()
        if not s:
            return None
        negative = s.startswith("(") and s.endswith(")")
        if negative:
            s = s[1:-1]
        try:
            amount = float(s)
        except ValueError:
            return None
        return -amount if negative else amount

    @staticmethod
    def _text(val: Any) -> Optional[str]:
        if val is None or (not isinstance(val, str) and pd.isna(val)):
            return None
        s = str(val).strip()
        return s or None

    @staticmethod
    def _classify(column: str) -> Optional[str]:
        col = column.lower().strip()
        for kind, keys in (("skip", SKIP_KEYS), ("date", DATE_KEYS), ("debit", DEBIT_KEYS),
                           ("credit", CREDIT_KEYS), ("amount", AMOUNT_KEYS), ("description", DESCRIPTION_KEYS),
                           ("category", CATEGORY_KEYS), ("reference", REFERENCE_KEYS)):
            if any(k in col for k in keys):
                return None if kind == "skip" else kind
        return None

    @classmethod
    def _is_balance_line(cls, record, columns: dict) -> bool:
        if "description" not in columns:
            return False
        description = cls._text(record[columns["description"]])
        return bool(description and BALANCE_LINE_RE.search(description))

    @staticmethod
    def _header_offset(text: str) -> int:
        """Index of the data header line; some banks put a summary block above it."""
        for i, line in enumerate(text.splitlines()):
            cells = [c.strip().strip('"').lower() for c in line.split(",")]
            if any(c.endswith("date") for c in cells) and any(
                    any(k in c for k in AMOUNT_KEYS + DEBIT_KEYS + CREDIT_KEYS) for c in cells):
                return i
        return 0

    def read_frame(self, source: Union[str, Path]) -> pd.DataFrame:
        ext = Path(source).suffix.lower()
        if ext == ".csv":
            text = Path(source).read_text(encoding="utf-8-sig")
            return self.read_csv_text(text)
        if ext in [".xls", ".xlsx"]:
            return pd.read_excel(source, dtype=str)
        raise ValueError(f"Unsupported file type: {ext}")

    def read_csv_text(self, text: str) -> pd.DataFrame:
        lines = text.splitlines()[self._header_offset(text):]
        return pd.read_csv(io.StringIO("\n".join(lines)), dtype=str, skip_blank_lines=True)

    def parse_file(self, source: Union[str, Path]) -> List[ImportedRow]:
        return self.parse_frame(self.read_frame(source))

    def parse_text(self, text: str) -> List[ImportedRow]:
        return self.parse_frame(self.read_csv_text(text))

    def parse_frame(self, df: pd.DataFrame) -> List[ImportedRow]:
        columns = {}
        for col in df.columns:
            kind = self._classify(str(col))
            # first matching column wins, e.g. transaction date over posted date
            if kind and kind not in columns:
                columns[kind] = col

        rows = []
        for i, (_, record) in enumerate(df.iterrows()):
            row = ImportedRow(row_number=i + 1)
            raw_date = record[columns["date"]] if "date" in columns else None
            row.date = self._normalize_date(raw_date)
            if row.date is None:
                row.errors.append(f"Could not parse date: '{raw_date}'" if self._text(raw_date) else "Date is required")

            if "amount" in columns and self._text(record[columns["amount"]]):
                row.amount = self._normalize_amount(record[columns["amount"]])
                if row.amount is None:
                    row.errors.append(f"Could not parse amount: '{record[columns['amount']]}'")
            else:
                debit = self._normalize_amount(record[columns["debit"]]) if "debit" in columns else None
                credit = self._normalize_amount(record[columns["credit"]]) if "credit" in columns else None
                if debit:
                    row.amount = -abs(debit)
                elif credit:
                    row.amount = abs(credit)
                elif self._is_balance_line(record, columns):
                    continue
                else:
                    row.errors.append("Amount is required")

            row.description = self._text(record[columns["description"]]) if "description" in columns else None
            if not row.description:
                row.description = ""
                row.errors.append("Description is required")
            if "reference" in columns:
                row.reference = self._text(record[columns["reference"]])
            if "category" in columns:
                row.category = self._text(record[columns["category"]])
            rows.append(row)
        return rows
