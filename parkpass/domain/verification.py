import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Tuple

from parkpass.domain.exceptions import VerificationInconclusive

# "1,500.00" is one amount; a lone comma is a decimal separator ("45,00")
AMOUNT_PATTERN = re.compile(r"\$?\s*(\d{1,3}(?:,\d{3})+\.\d{2}|\d+[.,]\d{2})")
CONFIRMATION_KEYWORDS = ("payment", "successful", "completed", "confirmed", "paid", "transaction")
AMOUNT_TOLERANCE = 0.01

MATCHED_CONFIDENCE = 0.8
STRONG_MATCH_CONFIDENCE = 0.95
MISMATCH_CONFIDENCE = 0.3
NO_AMOUNT_CONFIDENCE = 0.1
KEYWORD_BOOST = 0.2
KEYWORD_BOOST_CAP = 0.5
# More keywords than this counts as a strong textual signal
KEYWORD_THRESHOLD = 2

OCR_FAILED_NOTE = "OCR failed to extract text from the image."


@dataclass(frozen=True)
class VerificationVerdict:
    verified: bool
    confidence: float
    notes: str
    amounts: Tuple[float, ...] = field(default_factory=tuple)
    keywords: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self):
        return {"verified": self.verified, "confidence": self.confidence, "notes": self.notes}

    def raise_if_inconclusive(self):
        if not self.verified:
            raise VerificationInconclusive(self.notes, self.confidence)


def _parse_amount(raw: str) -> float:
    if "." in raw:
        return float(raw.replace(",", ""))
    return float(raw.replace(",", "."))


def extract_amounts(text: str) -> List[float]:
    return [_parse_amount(match) for match in AMOUNT_PATTERN.findall(text)]


def extract_keywords(text: str) -> List[str]:
    lowered = text.lower()
    return [keyword for keyword in CONFIRMATION_KEYWORDS if keyword in lowered]


def _format_amount(amount: float) -> str:
    return f"{amount:g}"


def verify_payment_text(ocr_text: str, expected_amount) -> VerificationVerdict:
    """Judge a payment slip from its OCR text.

    Only an amount equal to the expected cost verifies the slip. Keywords alone
    never verify; they only raise the confidence of a pending verdict so the
    slip is reviewed first.
    """
    if not ocr_text or not ocr_text.strip():
        return VerificationVerdict(verified=False, confidence=0.0, notes=OCR_FAILED_NOTE)

    expected = float(Decimal(expected_amount))
    amounts = extract_amounts(ocr_text.lower())
    keywords = extract_keywords(ocr_text)

    verified = False
    if amounts:
        match = next((a for a in amounts if abs(a - expected) < AMOUNT_TOLERANCE), None)
        if match is not None:
            verified = True
            confidence = STRONG_MATCH_CONFIDENCE if len(keywords) > KEYWORD_THRESHOLD else MATCHED_CONFIDENCE
            notes = f"Payment of ${match:.2f} verified by OCR."
        else:
            confidence = MISMATCH_CONFIDENCE
            found = ", ".join(_format_amount(a) for a in amounts)
            notes = f"Found amounts ({found}) do not match expected amount (${expected:.2f})."
    else:
        confidence = NO_AMOUNT_CONFIDENCE
        notes = "No payment amount found in the image."

    if not verified and len(keywords) > KEYWORD_THRESHOLD:
        confidence = min(KEYWORD_BOOST_CAP, confidence + KEYWORD_BOOST)
        notes += f" Found payment keywords: {', '.join(keywords)}."

    return VerificationVerdict(
        verified=verified,
        confidence=round(confidence, 2),
        notes=notes,
        amounts=tuple(amounts),
        keywords=tuple(keywords),
    )
