from sqlalchemy import (
    Column, String, Integer, Float, ForeignKey, Date, DateTime, Boolean, JSON, UniqueConstraint
)
from datetime import datetime
from .session import Base

class RecurringTransactionRow(Base):
    __tablename__ = "recurring_transactions"
    id = Column(String, primary_key=True)
    account_id = Column(String, nullable=False, index=True)
    description = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    pattern = Column(JSON, nullable=False)  # RecurrencePattern.to_dict()
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    category_id = Column(String, nullable=True)
    next_occurrence = Column(Date, nullable=True)
    last_generated_date = Column(Date, nullable=True)
    is_active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

class RecurringTransferRow(Base):
    __tablename__ = "recurring_transfers"
    id = Column(String, primary_key=True)
    source_account_id = Column(String, nullable=False, index=True)
    destination_account_id = Column(String, nullable=False, index=True)
    description = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    pattern = Column(JSON, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    next_occurrence = Column(Date, nullable=True)
    last_generated_date = Column(Date, nullable=True)
    is_active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

class RecurringExceptionRow(Base):
    """Skip/modify override; schedule_id points at either schedule table."""
    __tablename__ = "recurring_exceptions"
    __table_args__ = (UniqueConstraint("schedule_id", "original_date", name="uq_exception_schedule_date"),)
    id = Column(String, primary_key=True)
    schedule_id = Column(String, nullable=False, index=True)
    original_date = Column(Date, nullable=False)
    exception_type = Column(String, nullable=False)  # 'skip' / 'modify'
    modified_amount = Column(Float, nullable=True)
    modified_description = Column(String, nullable=True)
    modified_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

class TransactionRow(Base):
    __tablename__ = "transactions"
    id = Column(String, primary_key=True)
    account_id = Column(String, nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    amount = Column(Float, nullable=False)
    description = Column(String, nullable=False, default="")
    category_id = Column(String, nullable=True)
    reference = Column(String, nullable=True)
    import_batch_id = Column(String, nullable=True, index=True)
    recurring_transaction_id = Column(String, ForeignKey("recurring_transactions.id"), nullable=True, index=True)
    recurring_transfer_id = Column(String, ForeignKey("recurring_transfers.id"), nullable=True, index=True)
    recurring_instance_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

class ReconciliationMatchRow(Base):
    __tablename__ = "reconciliation_matches"
    __table_args__ = (
        UniqueConstraint("transaction_id", "recurring_transaction_id", "instance_date", name="uq_match_triple"),
    )
    id = Column(String, primary_key=True)
    transaction_id = Column(String, ForeignKey("transactions.id"), nullable=False, index=True)
    recurring_transaction_id = Column(String, nullable=False, index=True)
    instance_date = Column(Date, nullable=False, index=True)
    confidence_score = Column(Float, nullable=False)
    amount_variance = Column(Float, default=0.0)
    date_offset_days = Column(Integer, default=0)
    is_transfer = Column(Boolean, default=False)
    status = Column(String, nullable=False, default="suggested", index=True)
    auto_matched = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    resolved_at = Column(DateTime, nullable=True)
