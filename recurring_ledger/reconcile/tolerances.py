from dataclasses import dataclass, asdict

from ..core.config import settings

@dataclass(frozen=True)
class MatchingTolerances:
    """Search window and gates for one matching call site."""
    date_tolerance_days: int = 7
    amount_tolerance_percent: float = 0.10
    amount_tolerance_absolute: float = 10.00
    description_similarity_threshold: float = 0.0
    auto_match_threshold: float = 0.85

    def __post_init__(self):
        if self.date_tolerance_days < 0:
            raise ValueError("Date tolerance days cannot be negative.")
        if not 0 <= self.amount_tolerance_percent <= 1:
            raise ValueError("Amount tolerance percent must be between 0 and 1.")
        if self.amount_tolerance_absolute < 0:
            raise ValueError("Amount tolerance absolute cannot be negative.")
        if not 0 <= self.description_similarity_threshold <= 1:
            raise ValueError("Description similarity threshold must be between 0 and 1.")
        if not 0 <= self.auto_match_threshold <= 1:
            raise ValueError("Auto match threshold must be between 0 and 1.")

    @classmethod
    def from_settings(cls, **overrides) -> "MatchingTolerances":
        values = dict(
            date_tolerance_days=settings.DATE_TOLERANCE_DAYS,
            amount_tolerance_percent=settings.AMOUNT_TOLERANCE_PERCENT,
            amount_tolerance_absolute=settings.AMOUNT_TOLERANCE_ABSOLUTE,
            description_similarity_threshold=settings.DESCRIPTION_SIMILARITY_THRESHOLD,
            auto_match_threshold=settings.AUTO_MATCH_THRESHOLD,
        )
        values.update(overrides)
        return cls(**values)

    def to_dict(self):
        return asdict(self)
