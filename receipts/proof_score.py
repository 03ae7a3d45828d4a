"""
RECEIPTS App - Receipt Proof-Scoring Engine for OTW

Pure function: OCR extraction + what we expected to buy in, verdict out.
Never raises and never touches the database.

Composite score (weights renormalised over the factors that are present):
    confidence  0.4   OCR confidence, 0-100
    vendor      0.2   merchant name vs expected vendor
    total       0.2   extracted total vs expected total (banded)
    image       0.1   image quality
    tamper      0.1   tamper-detection signal (only when supplied)

Verdict:
    >= 80 APPROVED, >= 60 FLAGGED, else REJECTED
    item match < 50 downgrades APPROVED to FLAGGED
    locked = APPROVED/FLAGGED with item match >= 50
"""

from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import List, Optional

from core.numbers import clamp, round_half_up_int, to_decimal
from core.text import dice_coefficient, normalize_name
from receipts.models import ReceiptStatus


# ============================================
# SCORING CONFIGURATION
# ============================================

WEIGHTS = {
    'confidence': Decimal('0.4'),
    'vendor': Decimal('0.2'),
    'total': Decimal('0.2'),
    'image': Decimal('0.1'),
    'tamper': Decimal('0.1'),
}

# (max absolute difference in dollars, score)
TOTAL_MATCH_BANDS = (
    (Decimal('1.00'), 100),
    (Decimal('5.00'), 75),
    (Decimal('10.00'), 50),
)
TOTAL_MATCH_FLOOR = 25

ITEM_NAME_EXACT_POINTS = 30
ITEM_NAME_FUZZY_POINTS = 20
ITEM_NAME_FUZZY_THRESHOLD = 0.7
ITEM_QUANTITY_POINTS = 20
ITEM_PRICE_POINTS = 20
ITEM_PRICE_TOLERANCE = Decimal('1.00')

APPROVE_THRESHOLD = 80
FLAG_THRESHOLD = 60
ITEM_MATCH_THRESHOLD = 50


@dataclass(frozen=True)
class ProofScoreResult:
    proof_score: int
    item_match_score: int
    vendor_match_score: int
    image_quality: int
    tamper_score: Optional[int]
    extracted_total: Optional[Decimal]
    vendor_name: Optional[str]
    status: str
    locked: bool

    def to_dict(self) -> dict:
        data = asdict(self)
        if self.extracted_total is not None:
            data['extracted_total'] = str(self.extracted_total)
        return data


def normalize_confidence(confidence) -> Decimal:
    """Accept a 0-1 or 0-100 confidence and return it on the 0-100 scale."""
    number = to_decimal(confidence)
    if number is None or number < 0:
        return Decimal(0)
    if number <= 1:
        return number * 100
    if number <= 100:
        return number
    return Decimal(0)


def image_quality_from_confidence(confidence) -> int:
    return clamp(round_half_up_int(normalize_confidence(confidence)))


def vendor_match_score(merchant_name, expected_vendor) -> int:
    """100 for the same normalised name, else bigram similarity scaled to 0-100."""
    merchant = normalize_name(merchant_name)
    expected = normalize_name(expected_vendor)
    if not merchant or not expected:
        return 0
    if merchant == expected:
        return 100
    similarity = Decimal(str(dice_coefficient(merchant, expected)))
    return clamp(round_half_up_int(similarity * 100))


def total_match_score(extracted_total, expected_total) -> Optional[int]:
    """Banded score for the receipt total, or None when either side is missing."""
    extracted = to_decimal(extracted_total)
    expected = to_decimal(expected_total)
    if extracted is None or expected is None:
        return None

    difference = abs(extracted - expected)
    for limit, score in TOTAL_MATCH_BANDS:
        if difference <= limit:
            return score
    return TOTAL_MATCH_FLOOR


def _quantity(value) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return None
    number = to_decimal(value)
    return int(number) if number is not None and number == number.to_integral_value() else None


def _parse_items(items) -> List[dict]:
    """Keep named items, coercing quantity/price to int/Decimal (or None)."""
    if not isinstance(items, (list, tuple)):
        return []

    parsed = []
    for item in items:
        if isinstance(item, dict):
            name = str(item.get('name') or '')
            quantity = _quantity(item.get('quantity'))
            price = to_decimal(item.get('price'))
        else:
            name, quantity, price = str(item or ''), None, None
        if name:
            parsed.append({'name': name, 'quantity': quantity, 'price': price})
    return parsed


def _item_points(expected: dict, extracted: dict) -> int:
    points = 0

    expected_name = normalize_name(expected['name'])
    extracted_name = normalize_name(extracted['name'])
    if expected_name == extracted_name:
        points += ITEM_NAME_EXACT_POINTS
    elif dice_coefficient(expected_name, extracted_name) > ITEM_NAME_FUZZY_THRESHOLD:
        points += ITEM_NAME_FUZZY_POINTS

    if expected['quantity'] is not None and extracted['quantity'] == expected['quantity']:
        points += ITEM_QUANTITY_POINTS

    if expected['price'] is not None and extracted['price'] is not None:
        if abs(extracted['price'] - expected['price']) <= ITEM_PRICE_TOLERANCE:
            points += ITEM_PRICE_POINTS

    return points


def _possible_points(expected: dict) -> int:
    possible = ITEM_NAME_EXACT_POINTS
    if expected['quantity'] is not None:
        possible += ITEM_QUANTITY_POINTS
    if expected['price'] is not None:
        possible += ITEM_PRICE_POINTS
    return possible


def item_match_score(extracted_items, expected_items) -> int:
    """
    How well the receipt lines cover the expected items, 0-100.

    Each expected item takes its best-matching receipt line, scored out of
    the points that item can earn and rescaled to 100. The sum is then
    normalised by ``len(expected) * 100``.
    """
    expected = _parse_items(expected_items)
    extracted = _parse_items(extracted_items)
    if not expected or not extracted:
        return 0

    total = Decimal(0)
    for wanted in expected:
        best = max(_item_points(wanted, line) for line in extracted)
        total += Decimal(best * 100) / _possible_points(wanted)

    return clamp(round_half_up_int(total / (len(expected) * 100) * 100))


def _decide_status(proof_score: int) -> str:
    if proof_score >= APPROVE_THRESHOLD:
        return ReceiptStatus.APPROVED
    if proof_score >= FLAG_THRESHOLD:
        return ReceiptStatus.FLAGGED
    return ReceiptStatus.REJECTED


def compute_proof_score(
    merchant_name=None,
    total_amount=None,
    confidence_score=None,
    items=None,
    expected_vendor=None,
    expected_total=None,
    expected_items=None,
    image_quality=None,
    tamper_score=None,
) -> ProofScoreResult:
    """
    Score an extracted receipt against the order it should prove.

    Args:
        merchant_name: Merchant as read from the receipt
        total_amount: Receipt total in dollars
        confidence_score: OCR confidence (0-1 or 0-100)
        items: Receipt lines [{name, quantity, price}]
        expected_vendor: Vendor the order was placed with
        expected_total: Expected total in dollars
        expected_items: Ordered items [{name, quantity?, price?}]
        image_quality: Explicit image quality (defaults to confidence)
        tamper_score: Tamper-detection signal 0-100 (omitted when None)

    Returns:
        ProofScoreResult
    """
    factors = []

    if to_decimal(confidence_score) is not None:
        factors.append((normalize_confidence(confidence_score), WEIGHTS['confidence']))

    vendor_score = vendor_match_score(merchant_name, expected_vendor)
    if expected_vendor:
        factors.append((Decimal(vendor_score), WEIGHTS['vendor']))

    total_score = total_match_score(total_amount, expected_total)
    if total_score is not None:
        factors.append((Decimal(total_score), WEIGHTS['total']))

    explicit_quality = to_decimal(image_quality)
    if explicit_quality is not None:
        quality = clamp(round_half_up_int(explicit_quality))
        factors.append((Decimal(quality), WEIGHTS['image']))
    elif to_decimal(confidence_score) is not None:
        quality = image_quality_from_confidence(confidence_score)
        factors.append((Decimal(quality), WEIGHTS['image']))
    else:
        quality = 0

    tamper = to_decimal(tamper_score)
    if tamper is not None:
        tamper = clamp(round_half_up_int(tamper))
        factors.append((Decimal(tamper), WEIGHTS['tamper']))

    weight = sum((w for _, w in factors), Decimal(0))
    if weight:
        proof_score = clamp(round_half_up_int(sum(s * w for s, w in factors) / weight))
    else:
        proof_score = 0

    items_score = item_match_score(items, expected_items)

    status = _decide_status(proof_score)
    locked = status in (ReceiptStatus.APPROVED, ReceiptStatus.FLAGGED) and items_score >= ITEM_MATCH_THRESHOLD
    if status == ReceiptStatus.APPROVED and items_score < ITEM_MATCH_THRESHOLD:
        status = ReceiptStatus.FLAGGED

    return ProofScoreResult(
        proof_score=proof_score,
        item_match_score=items_score,
        vendor_match_score=vendor_score,
        image_quality=quality,
        tamper_score=tamper,
        extracted_total=to_decimal(total_amount),
        vendor_name=merchant_name or None,
        status=str(status),
        locked=locked,
    )
