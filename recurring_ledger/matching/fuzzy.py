"""
Fuzzy matching of bank descriptions.

Bank exports decorate the same merchant with dates, reference numbers,
card masks, phone numbers and boilerplate that differs by bank and by
statement. `normalize_description` strips those noise classes in a fixed
order; two independent measures then compare the remainders:

* Levenshtein edit distance over the normalized strings
* Jaccard similarity over their keyword sets (tokens of 3+ characters)

Either measure passing its threshold declares a match.
"""
import re
from dataclasses import dataclass
from typing import Optional, Set

from fuzzywuzzy import fuzz

from ..core.config import settings
from .vocabulary import NoiseVocabulary, MerchantEntry, default_vocabulary

LABELLED_DATE_RE = re.compile(r"\bDate\s*:?\s*\d{1,2}/\d{1,2}(?:/\d{2,4})?\b", re.IGNORECASE)
DATE_RE = re.compile(r"\b\d{1,2}/\d{1,2}(?:/\d{2,4})?\b")
REFERENCE_RES = [
    re.compile(r"\bConf(?:irmation)?\s*(?:#|No\.?|:)\s*[A-Z0-9]+\b", re.IGNORECASE),
    re.compile(r"\b(?:ID|Ref(?:erence)?)\s*(?:#|:)\s*[A-Z0-9]+\b", re.IGNORECASE),
    re.compile(r"\b(?:Tracer|Card|Check)\s*#?\s*\d+\b", re.IGNORECASE),
    re.compile(r"#\s*\d{10,}"),
    re.compile(r"\b\d{10,}\b"),
]
PHONE_RES = [
    re.compile(r"\(\d{3}\)\s*\d{3}[-.\s]\d{4}\b"),
    re.compile(r"\b\d{3}[-.]\d{3}[-.]\d{4}\b"),
]
MASK_RES = [
    re.compile(r"\bXXX-XX\d*\b", re.IGNORECASE),
    re.compile(r"\bX{3,}\d*\b", re.IGNORECASE),
]
STATE_CODE_RE = re.compile(r"\b[A-Z]{2}\b")
TOKEN_SPLIT_RE = re.compile(r"[\s,.\-*/\\()\[\]{}]+")

def normalize_description(description: str, vocabulary: Optional[NoiseVocabulary] = None) -> str:
    """Strip bank noise and return an uppercase, merchant-centric remainder."""
    if not description or not description.strip():
        return ""
    vocab = vocabulary or default_vocabulary()
    text = description
    text = LABELLED_DATE_RE.sub(" ", text)
    text = DATE_RE.sub(" ", text)
    for rx in REFERENCE_RES:
        text = rx.sub(" ", text)
    if vocab.boilerplate_re is not None:
        text = vocab.boilerplate_re.sub(" ", text)
    for rx in PHONE_RES:
        text = rx.sub(" ", text)
    for rx in MASK_RES:
        text = rx.sub(" ", text)
    if vocab.domain_re is not None:
        text = vocab.domain_re.sub(" ", text)
    text = STATE_CODE_RE.sub(" ", text)
    chars = [ch if ch.isalnum() else (" " if ch.isspace() else "") for ch in text.upper()]
    return " ".join("".join(chars).split())

def extract_keywords(text: str) -> Set[str]:
    """Uppercase tokens of at least 3 characters."""
    if not text:
        return set()
    return {t.upper() for t in TOKEN_SPLIT_RE.split(text) if len(t) >= 3}

def levenshtein_distance(s: str, t: str) -> int:
    if s == t:
        return 0
    if not s:
        return len(t)
    if not t:
        return len(s)
    prev = list(range(len(t) + 1))
    for i in range(1, len(s) + 1):
        cur = [i] + [0] * len(t)
        for j in range(1, len(t) + 1):
            cost = 0 if s[i - 1] == t[j - 1] else 1
            cur[j] = min(prev[j] + 1, cur[j - 1] + 1, prev[j - 1] + cost)
        prev = cur
    return prev[len(t)]

def jaccard_similarity(a: Set[str], b: Set[str]) -> float:
    a = {x.upper() for x in a}
    b = {x.upper() for x in b}
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)

@dataclass(frozen=True)
class DescriptionComparison:
    left: str
    right: str
    distance: int
    jaccard: float
    matched: bool

class FuzzyTextMatcher:
    """
    Declares two descriptions the same when their normalized edit distance
    is at most `max_levenshtein` OR their keyword Jaccard similarity is at
    least `min_jaccard`. The OR is intentionally permissive: callers gate on
    date and amount before trusting a match.
    """

    def __init__(self, max_levenshtein: Optional[int] = None, min_jaccard: Optional[float] = None,
                 vocabulary: Optional[NoiseVocabulary] = None):
        self.max_levenshtein = settings.DEDUP_MAX_LEVENSHTEIN if max_levenshtein is None else max_levenshtein
        self.min_jaccard = settings.DEDUP_MIN_JACCARD if min_jaccard is None else min_jaccard
        # own copy: extend() on one matcher must not leak into others
        self.vocabulary = vocabulary or NoiseVocabulary.load()

    def normalize(self, description: str) -> str:
        return normalize_description(description, self.vocabulary)

    def keywords(self, description: str) -> Set[str]:
        return extract_keywords(self.normalize(description))

    def compare(self, a: str, b: str) -> DescriptionComparison:
        left, right = self.normalize(a), self.normalize(b)
        if not left or not right:
            # nothing but noise on one side: compare what the bank actually printed
            left, right = " ".join((a or "").upper().split()), " ".join((b or "").upper().split())
        distance = levenshtein_distance(left, right)
        jaccard = jaccard_similarity(extract_keywords(left), extract_keywords(right))
        matched = distance <= self.max_levenshtein or jaccard >= self.min_jaccard
        return DescriptionComparison(left, right, distance, jaccard, matched)

    def is_match(self, a: str, b: str) -> bool:
        return self.compare(a, b).matched

    def merchant_for(self, description: str) -> Optional[MerchantEntry]:
        return self.vocabulary.merchant_for(description)

    def similarity(self, a: str, b: str) -> float:
        """Continuous 0..1 description similarity used for scoring.

        Best of: same known merchant, containment ratio, edit similarity,
        keyword Jaccard and fuzzywuzzy's token-set ratio.
        """
        if not a or not a.strip() or not b or not b.strip():
            return 0.0
        # checked on the raw text: a bare "NETFLIX.COM" normalizes to nothing
        m1, m2 = self.merchant_for(a), self.merchant_for(b)
        if m1 is not None and m2 is not None and m1.merchant == m2.merchant:
            return 1.0
        left, right = self.normalize(a), self.normalize(b)
        if not left or not right:
            return 0.0
        if left == right:
            return 1.0
        longest = max(len(left), len(right))
        scores = [
            1.0 - levenshtein_distance(left, right) / longest,
            jaccard_similarity(extract_keywords(left), extract_keywords(right)),
            fuzz.token_set_ratio(left, right) / 100.0,
        ]
        if left in right or right in left:
            scores.append(min(len(left), len(right)) / longest)
        return max(0.0, min(1.0, max(scores)))
