from datetime import date

from recurring_ledger.core.audit import AuditLogger

def test_run_history_limit_and_fields(tmp_path):
    audit = AuditLogger(str(tmp_path))
    for i in range(3):
        audit.log_run(f"run-{i}", date(2026, 1, 1), date(2026, 1, 31), 5, 4, 1, 2, {"date_tolerance_days": 7})
    runs = audit.get_run_history(limit=2)
    assert len(runs) == 2
    assert {r["run_id"] for r in audit.get_run_history()} == {"run-0", "run-1", "run-2"}
    assert runs[0]["window_start"] == "2026-01-01"
    assert runs[0]["tolerances"] == {"date_tolerance_days": 7}

def test_match_history_filters_and_skips_bad_lines(tmp_path):
    audit = AuditLogger(str(tmp_path))
    audit.log_match_change("m-1", "suggest", "t-1", "s-1", date(2026, 1, 15), 0.7)
    audit.log_match_change("m-2", "suggest", "t-2", "s-1", date(2026, 1, 15), 0.6)
    with open(audit.matches_log, "a", encoding="utf-8") as f:
        f.write("not json\n")
    audit.log_match_change("m-1", "accept", "t-1", "s-1", date(2026, 1, 15), 0.7, user_id="u-1")
    history = audit.get_match_history("m-1")
    assert sorted(e["operation"] for e in history) == ["accept", "suggest"]
    assert audit.get_match_history("m-3") == []

def test_missing_logs_read_empty(tmp_path):
    audit = AuditLogger(str(tmp_path / "fresh"))
    assert audit.get_run_history() == []
    assert (tmp_path / "fresh").is_dir()
