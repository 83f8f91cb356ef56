import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

@dataclass
class LedgerTransaction:
    """A real money movement on one account (signed: expenses are negative)."""
    id: str
    account_id: str
    date: date
    amount: float
    description: str
    category_id: Optional[str] = None
    reference: Optional[str] = None
    import_batch_id: Optional[str] = None
    recurring_transaction_id: Optional[str] = None
    recurring_transfer_id: Optional[str] = None
    recurring_instance_date: Optional[date] = None
    created_at: datetime = field(default_factory=datetime.utcnow)

    @classmethod
    def create(cls, account_id: str, date: date, amount: float, description: str, **extra) -> "LedgerTransaction":
        if not account_id:
            raise ValueError("Account ID is required.")
        if amount is None:
            raise ValueError("Amount is required.")
        return cls(id=str(uuid.uuid4()), account_id=account_id, date=date, amount=amount,
                   description=(description or "").strip(), **extra)

    @property
    def is_realized(self) -> bool:
        return self.recurring_instance_date is not None

    def link_to_recurring_instance(self, recurring_transaction_id: str, instance_date: date):
        self.recurring_transaction_id = recurring_transaction_id
        self.recurring_transfer_id = None
        self.recurring_instance_date = instance_date

    def link_to_transfer_instance(self, recurring_transfer_id: str, instance_date: date):
        self.recurring_transfer_id = recurring_transfer_id
        self.recurring_transaction_id = None
        self.recurring_instance_date = instance_date
