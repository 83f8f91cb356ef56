import pytest
from sqlalchemy.orm import sessionmaker

from recurring_ledger.core.audit import AuditLogger
from recurring_ledger.core.config import settings
from recurring_ledger.db.repositories import SqlMatchStore, SqlScheduleStore, SqlTransactionStore
from recurring_ledger.db.session import init_db, make_engine
from recurring_ledger.reconcile.engine import ReconciliationEngine
from recurring_ledger.reconcile.tolerances import MatchingTolerances

@pytest.fixture(autouse=True)
def log_dir(tmp_path, monkeypatch):
    path = tmp_path / "logs"
    monkeypatch.setattr(settings, "AUDIT_LOG_PATH", str(path))
    return path

@pytest.fixture
def session():
    engine = make_engine("sqlite://")
    init_db(engine)
    db = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    yield db
    db.close()
    engine.dispose()

@pytest.fixture
def schedule_store(session):
    return SqlScheduleStore(session)

@pytest.fixture
def transaction_store(session):
    return SqlTransactionStore(session)

@pytest.fixture
def match_store(session):
    return SqlMatchStore(session)

@pytest.fixture
def audit(tmp_path):
    return AuditLogger(str(tmp_path / "audit"))

@pytest.fixture
def reconciler(schedule_store, transaction_store, match_store, audit):
    return ReconciliationEngine(schedule_store, transaction_store, match_store,
                                tolerances=MatchingTolerances(), audit=audit,
                                account_names={"acct-1": "Checking", "acct-2": "Savings"})
