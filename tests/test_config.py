from recurring_ledger.core.config import Settings

def test_defaults():
    s = Settings()
    assert s.DATE_TOLERANCE_DAYS == 7
    assert s.AMOUNT_TOLERANCE_PERCENT == 0.10
    assert s.AMOUNT_TOLERANCE_ABSOLUTE == 10.0
    assert s.AUTO_MATCH_THRESHOLD == 0.85
    assert s.DEDUP_DATE_WINDOW_DAYS == 3
    assert s.NOISE_VOCABULARY_PATH is None

def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("DATE_TOLERANCE_DAYS", "3")
    monkeypatch.setenv("AUTO_MATCH_THRESHOLD", "0.9")
    s = Settings()
    assert s.DATE_TOLERANCE_DAYS == 3
    assert s.AUTO_MATCH_THRESHOLD == 0.9
