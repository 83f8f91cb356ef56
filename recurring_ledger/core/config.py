from pydantic import Field
from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    APP_NAME: str = Field("RecurringLedger", description="Logger namespace and audit prefix")
    DB_URL: str = Field("sqlite:///./data/recurring_ledger.db", description="Database URL")
    LOG_LEVEL: str = Field("INFO", description="Root level for application loggers")
    AUDIT_LOG_PATH: str = Field("./data/logs", description="Directory for rotating logs and audit trails")

    # Reconciliation tolerances (import preview and explicit reconcile requests)
    DATE_TOLERANCE_DAYS: int = 7
    AMOUNT_TOLERANCE_PERCENT: float = 0.10
    AMOUNT_TOLERANCE_ABSOLUTE: float = 10.00
    DESCRIPTION_SIMILARITY_THRESHOLD: float = 0.0
    AUTO_MATCH_THRESHOLD: float = 0.85

    # CSV import near-duplicate suppression
    DEDUP_DATE_WINDOW_DAYS: int = 3
    DEDUP_MAX_LEVENSHTEIN: int = 3
    DEDUP_MIN_JACCARD: float = 0.6
    IMPORT_PREVIEW_WINDOW_DAYS: int = 7

    # Unmatched instances older than today
    PAST_DUE_LOOKBACK_DAYS: int = 30
    AUTO_REALIZE_PAST_DUE: bool = False

    # JSON file replacing the packaged noise vocabulary
    NOISE_VOCABULARY_PATH: Optional[str] = None

settings = Settings()
