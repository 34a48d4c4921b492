"""
Memo exposure: personal data or descriptive text written into transaction memos.

Memos are stored on-chain forever and are trivially searchable. Contact
details and identifiers are the top band; long or keyword-dense free text is
the lower band. A short generic word such as "Payment" is not flagged.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from solana_privacy_scanner.analysis_engine.models import (
    Evidence,
    RiskSignal,
    ScanContext,
    Severity,
)
from solana_privacy_scanner.heuristics.base import Detector, short_address

EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
PHONE_RE = re.compile(r"(?<![\d-])(?:\+\d{1,3}[\s.-]?)?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4}(?![\d-])")
SSN_RE = re.compile(r"(?<!\d)\d{3}-\d{2}-\d{4}(?!\d)")
CARD_RE = re.compile(r"(?<!\d)(?:\d[ -]?){12,18}\d(?!\d)")
URL_RE = re.compile(r"https?://\S+|www\.\S+", re.IGNORECASE)
NAME_RE = re.compile(r"\b([A-Z][a-z]{1,20})\s+([A-Z][a-z]{1,20})\b")
WORD_RE = re.compile(r"[A-Za-z0-9']+")

# Capitalized words that commonly start memos and are not personal names.
NAME_STOPWORDS = frozenset({
    "Payment", "Invoice", "Order", "Thanks", "Thank", "Monthly", "Weekly", "Daily",
    "Rent", "Salary", "Refund", "Happy", "Birthday", "Merry", "Christmas", "New",
    "Year", "Good", "Luck", "Solana", "Sol", "Transfer", "Deposit", "Withdrawal",
    "Gift", "Tip", "Loan", "The", "For", "From", "To", "Hello", "Hi", "Dear",
})

DESCRIPTIVE_KEYWORDS = frozenset({
    "invoice", "payment", "order", "salary", "rent", "refund", "loan", "purchase",
    "subscription", "donation", "bill", "ref", "reference", "tuition", "wages",
    "deposit", "withdrawal", "customer", "client", "account", "contract", "fee",
})


def _luhn_valid(digits: str) -> bool:
    total = 0
    for i, ch in enumerate(reversed(digits)):
        d = int(ch)
        if i % 2 == 1:
            d *= 2
            if d > 9:
                d -= 9
        total += d
    return total % 10 == 0


def find_pii(text: str) -> list[str]:
    """Return the PII pattern kinds found in text, in a fixed order."""
    kinds: list[str] = []
    if EMAIL_RE.search(text):
        kinds.append("email address")
    if SSN_RE.search(text):
        kinds.append("SSN-like identifier")
    if any(_luhn_valid(re.sub(r"\D", "", m.group())) for m in CARD_RE.finditer(text)):
        kinds.append("credit card number")
    elif PHONE_RE.search(text):
        kinds.append("phone number")
    for first, last in NAME_RE.findall(text):
        if first not in NAME_STOPWORDS and last not in NAME_STOPWORDS:
            kinds.append("personal name")
            break
    return kinds


@dataclass
class MemoExposureConfig:
    # Memos longer than this are descriptive.
    descriptive_min_length: int = 50
    # Keyword density: at least this many distinct keywords in a memo of min_words.
    descriptive_min_keywords: int = 2
    descriptive_min_words: int = 3
    keywords: frozenset[str] = field(default_factory=lambda: DESCRIPTIVE_KEYWORDS)


def descriptive_reasons(text: str, cfg: MemoExposureConfig) -> list[str]:
    reasons: list[str] = []
    if URL_RE.search(text):
        reasons.append("URL")
    if len(text.strip()) > cfg.descriptive_min_length:
        reasons.append(f"long text ({len(text.strip())} characters)")
    words = [w.lower() for w in WORD_RE.findall(text)]
    hits = sorted(set(words) & cfg.keywords)
    if len(words) >= cfg.descriptive_min_words and len(hits) >= cfg.descriptive_min_keywords:
        reasons.append(f"keywords: {', '.join(hits)}")
    return reasons


def _preview(text: str, limit: int = 80) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


class MemoExposureDetector(Detector):
    """Flags memos that contain PII patterns or descriptive free text."""

    detector_id = "memo-exposure"
    name = "Memo Exposure"
    category = "exposure"

    def __init__(self, config: MemoExposureConfig | None = None) -> None:
        self.config = config or MemoExposureConfig()

    def detect(self, context: ScanContext) -> list[RiskSignal]:
        pii: list[Evidence] = []
        descriptive: list[Evidence] = []
        for tx in context.transactions:
            memo = (tx.memo or "").strip()
            if not memo:
                continue
            kinds = find_pii(memo)
            if kinds:
                pii.append(
                    Evidence(
                        description=(
                            f"Memo in transaction {short_address(tx.signature)} contains "
                            f"{' and '.join(k + ' pattern' for k in kinds)}"
                        ),
                        type="memo",
                        reference=tx.signature,
                        data={"patterns": kinds, "memo": _preview(memo)},
                    )
                )
                continue
            reasons = descriptive_reasons(memo, self.config)
            if reasons:
                descriptive.append(
                    Evidence(
                        description=(
                            f"Memo in transaction {short_address(tx.signature)} is descriptive "
                            f"({'; '.join(reasons)})"
                        ),
                        type="memo",
                        reference=tx.signature,
                        data={"reasons": reasons, "memo": _preview(memo)},
                    )
                )

        signals: list[RiskSignal] = []
        if pii:
            signals.append(
                self.signal(
                    id="memo-pii-exposure",
                    name="Personal Information in Memo",
                    severity=Severity.HIGH,
                    reason=f"{len(pii)} memo(s) contain personal information patterns.",
                    impact=(
                        "Memos are public and permanent. Contact details or identifiers tie the "
                        "wallet directly to a real-world identity."
                    ),
                    mitigation=(
                        "Never put emails, phone numbers, names, or ID numbers in memos; share "
                        "payment references through a private channel."
                    ),
                    confidence=0.9,
                    evidence=pii,
                )
            )
        if descriptive:
            signals.append(
                self.signal(
                    id="memo-descriptive-content",
                    name="Descriptive Memo Content",
                    severity=Severity.MEDIUM,
                    reason=f"{len(descriptive)} memo(s) contain descriptive text, links, or payment references.",
                    impact="Descriptive memos reveal the purpose of payments and help correlate them with off-chain records.",
                    mitigation="Keep memos empty or use opaque identifiers that reveal nothing on their own.",
                    confidence=0.7,
                    evidence=descriptive,
                )
            )
        return signals
