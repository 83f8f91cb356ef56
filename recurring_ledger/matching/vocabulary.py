"""
Data-driven vocabulary for description cleanup: bank boilerplate phrases,
website suffixes and a table of known merchants (pattern -> category/icon).

The packaged table can be replaced by pointing NOISE_VOCABULARY_PATH at a
JSON file with the same shape, or extended at runtime.
"""
import json
import re
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Iterable, List, Optional

from ..core.config import settings
from ..core.utils import atomic_write_json

PACKAGED_VOCABULARY = Path(__file__).resolve().with_name("noise_vocabulary.json")

def _fold(text: str) -> str:
    """Uppercase, drop punctuation, collapse whitespace."""
    cleaned = "".join(ch if ch.isalnum() else (" " if ch.isspace() or ch in "-_/" else "") for ch in text.upper())
    return " ".join(cleaned.split())

@dataclass(frozen=True)
class MerchantEntry:
    pattern: str
    merchant: str
    category: Optional[str] = None
    icon: Optional[str] = None

class NoiseVocabulary:
    def __init__(self, boilerplate: Iterable[str] = (), domain_suffixes: Iterable[str] = (),
                 merchants: Iterable[MerchantEntry] = ()):
        self.boilerplate: List[str] = list(dict.fromkeys(b.strip() for b in boilerplate if b and b.strip()))
        self.domain_suffixes: List[str] = list(dict.fromkeys(s.strip(".").lower() for s in domain_suffixes if s))
        self.merchants: List[MerchantEntry] = list(merchants)
        self._compile()

    @classmethod
    def from_dict(cls, data: dict) -> "NoiseVocabulary":
        return cls(
            boilerplate=data.get("boilerplate", []),
            domain_suffixes=data.get("domain_suffixes", []),
            merchants=[MerchantEntry(**m) for m in data.get("merchants", [])],
        )

    @classmethod
    def load(cls, path: Optional[str] = None) -> "NoiseVocabulary":
        """Load from path, else NOISE_VOCABULARY_PATH, else the packaged table."""
        source = Path(path or settings.NOISE_VOCABULARY_PATH or PACKAGED_VOCABULARY)
        with open(source, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))

    def to_dict(self) -> dict:
        return {
            "boilerplate": list(self.boilerplate),
            "domain_suffixes": list(self.domain_suffixes),
            "merchants": [asdict(m) for m in self.merchants],
        }

    def save(self, path: str):
        atomic_write_json(path, self.to_dict())

    def extend(self, boilerplate: Iterable[str] = (), merchants: Iterable[MerchantEntry] = ()):
        self.boilerplate = list(dict.fromkeys([*self.boilerplate, *(b.strip() for b in boilerplate if b)]))
        self.merchants = [*self.merchants, *merchants]
        self._compile()

    def _compile(self):
        # longest phrases first so "PMNT SENT" wins over "PMNT"
        phrases = sorted(self.boilerplate, key=len, reverse=True)
        self.boilerplate_re = (
            re.compile(r"\b(?:" + "|".join(re.escape(p).replace(r"\ ", r"\s+") for p in phrases) + r")\b", re.IGNORECASE)
            if phrases else None
        )
        self.domain_re = (
            re.compile(r"\b(?:www\.)?([A-Za-z0-9-]+)\.(?:" + "|".join(map(re.escape, self.domain_suffixes)) + r")\b",
                       re.IGNORECASE)
            if self.domain_suffixes else None
        )
        self._merchant_res = [
            (re.compile(r"\b" + re.escape(_fold(m.pattern))), m)
            for m in sorted(self.merchants, key=lambda m: len(m.pattern), reverse=True)
            if _fold(m.pattern)
        ]

    def merchant_for(self, text: str) -> Optional[MerchantEntry]:
        """Known merchant mentioned in text (longest pattern wins)."""
        if not text:
            return None
        folded = _fold(text)
        for rx, entry in self._merchant_res:
            if rx.search(folded):
                return entry
        return None

_default: Optional[NoiseVocabulary] = None
_default_source: Optional[str] = None

def default_vocabulary() -> NoiseVocabulary:
    """Shared read-only vocabulary, reloaded when NOISE_VOCABULARY_PATH changes.

    Callers that extend a vocabulary should load their own copy.
    """
    global _default, _default_source
    source = settings.NOISE_VOCABULARY_PATH or str(PACKAGED_VOCABULARY)
    if _default is None or source != _default_source:
        _default = NoiseVocabulary.load(source)
        _default_source = source
    return _default
