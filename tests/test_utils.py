import json
from datetime import date

from recurring_ledger.core.utils import atomic_write_json, setup_logging, to_jsonable
from recurring_ledger.reconcile.match import MatchStatus

def test_setup_logging_is_idempotent(log_dir):
    first = setup_logging("utils-test")
    second = setup_logging("utils-test", log_level="debug")
    assert first is second
    assert len(first.handlers) == 1
    assert first.name == "RecurringLedger.utils-test"
    assert not first.propagate
    first.info("hello")
    first.handlers[0].flush()
    assert "hello" in (log_dir / "utils-test.log").read_text()

def test_setup_logging_explicit_directory(tmp_path):
    logger = setup_logging("utils-dir-test", log_dir=str(tmp_path / "elsewhere"))
    logger.warning("moved")
    logger.handlers[0].flush()
    assert "moved" in (tmp_path / "elsewhere" / "utils-dir-test.log").read_text()

def test_atomic_write_json(tmp_path):
    path = tmp_path / "nested" / "out.json"
    atomic_write_json(str(path), {"when": date(2026, 1, 15), "status": MatchStatus.CONFIRMED, "count": 2})
    assert json.loads(path.read_text()) == {"when": "2026-01-15", "status": "confirmed", "count": 2}
    assert not path.with_suffix(".tmp").exists()

def test_to_jsonable():
    assert to_jsonable({"b", "a"}) == ["a", "b"]
    assert to_jsonable(date(2026, 2, 1)) == "2026-02-01"
