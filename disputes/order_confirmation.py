"""
DISPUTES App - Items snapshot & dispute validation for OTW

Pure functions, no database access:
- build_items_snapshot: arbitrary item dicts -> normalised snapshot items
- validate_disputed_items_against_snapshot: every claim must resolve to one
  snapshot item and not exceed its quantity (all problems collected)
- requires_evidence_for_dispute / should_mark_needs_info_for_dispute
"""

import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from core.numbers import round_half_up, to_decimal
from core.text import dice_coefficient, normalize_key, normalize_name
from disputes.models import DisputeReason

NAME_KEYS = ('name', 'itemName', 'description', 'title', 'item', 'productName')
QTY_KEYS = ('qty', 'quantity', 'count')
PRICE_KEYS = ('unit_price', 'unitPrice', 'price', 'amount')
NOTES_KEYS = ('notes', 'note', 'details')
ITEM_KEY_KEYS = ('item_key', 'itemKey', 'id')

FUZZY_NAME_THRESHOLD = 0.85

EVIDENCE_REASONS = (DisputeReason.MISSING, DisputeReason.WRONG_ITEM)


@dataclass
class DisputeValidation:
    valid: bool
    normalized: List[dict] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


def _pick(item: dict, keys):
    for key in keys:
        if item.get(key) is not None:
            return item[key]
    return None


def _positive_int(value, fallback: int = 1) -> int:
    number = to_decimal(value)
    if number is None or number <= 0:
        return fallback
    return max(1, int(round_half_up(number)))


def _optional_price(value) -> Optional[float]:
    number = to_decimal(value)
    if number is None or number < 0:
        return None
    return float(round_half_up(number, '0.01'))


def default_item_key(name: str, index: int) -> str:
    """``"Chips & Guac"`` at index 1 -> ``"chips-guac-2"``."""
    base = re.sub(r'[^a-z0-9 ]', '', normalize_key(name))
    base = re.sub(r'\s+', '-', base.strip())
    return f"{base or 'item'}-{index + 1}"


def build_items_snapshot(raw_items) -> List[dict]:
    """
    Normalise whatever item list we have (receipt lines, client payload,
    stored snapshot) into snapshot items.

    Each item becomes ``{item_key, name, qty[, unit_price][, notes]}``.
    Items without a usable name are dropped; the index used for default
    keys is the position in the original list.
    """
    if not isinstance(raw_items, (list, tuple)):
        return []

    snapshot = []
    for index, item in enumerate(raw_items):
        if not isinstance(item, dict):
            continue
        name = _pick(item, NAME_KEYS)
        name = name.strip() if isinstance(name, str) else ''
        if not name:
            continue

        raw_key = _pick(item, ITEM_KEY_KEYS)
        item_key = raw_key.strip() if isinstance(raw_key, str) else ''

        entry = {
            'item_key': item_key or default_item_key(name, index),
            'name': name,
            'qty': _positive_int(_pick(item, QTY_KEYS)),
        }

        unit_price = _optional_price(_pick(item, PRICE_KEYS))
        if unit_price is not None:
            entry['unit_price'] = unit_price

        notes = _pick(item, NOTES_KEYS)
        if isinstance(notes, str) and notes.strip():
            entry['notes'] = notes.strip()

        snapshot.append(entry)

    return snapshot


def snapshot_total(snapshot) -> Optional[Decimal]:
    """Sum of unit_price * qty over priced items, or None if nothing is priced."""
    priced = [item for item in snapshot if item.get('unit_price') is not None]
    if not priced:
        return None
    total = sum((Decimal(str(item['unit_price'])) * item['qty'] for item in priced), Decimal('0'))
    return total.quantize(Decimal('0.01'))


def _resolve(lookup: str, by_key: dict, by_name: dict, snapshot) -> Optional[dict]:
    key = normalize_key(lookup)
    if not key:
        return None
    match = by_key.get(key) or by_name.get(key)
    if match is not None:
        return match

    wanted = normalize_name(lookup)
    candidates = [
        item for item in snapshot
        if dice_coefficient(wanted, normalize_name(item['name'])) >= FUZZY_NAME_THRESHOLD
    ]
    return candidates[0] if len(candidates) == 1 else None


def validate_disputed_items_against_snapshot(snapshot, disputed_items) -> DisputeValidation:
    """
    Check each claim ``{item_id_or_name, qty_disputed, reason, details?}``
    against the snapshot.

    Resolution order: exact item key, exact name (both normalised), then a
    fuzzy name match accepted only when exactly one item qualifies. Claims
    resolving to the same item may not together exceed its quantity.

    Returns:
        DisputeValidation(valid, normalized, errors). ``normalized`` holds
        ``{item_key, name, qty_disputed, reason[, details]}`` for every
        claim that passed.
    """
    by_key = {}
    by_name = {}
    for item in snapshot or []:
        by_key.setdefault(normalize_key(item.get('item_key')), item)
        by_name.setdefault(normalize_key(item.get('name')), item)

    errors = []
    normalized = []
    claimed = {}  # item_key -> qty already disputed by earlier claims

    for index, claim in enumerate(disputed_items or []):
        prefix = f"disputed_items[{index}]"
        if not isinstance(claim, dict):
            errors.append(f"{prefix} is not an object")
            continue

        lookup = str(claim.get('item_id_or_name') or '')
        match = _resolve(lookup, by_key, by_name, snapshot or [])
        if match is None:
            errors.append(f'{prefix} "{lookup}" does not match any confirmed item')
            continue

        qty = claim.get('qty_disputed')
        if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
            errors.append(f"{prefix} qty_disputed must be a positive integer")
            continue
        if claimed.get(match['item_key'], 0) + qty > match['qty']:
            errors.append(f"{prefix} qty_disputed exceeds confirmed quantity")
            continue

        reason = claim.get('reason')
        if reason not in DisputeReason.values:
            errors.append(f"{prefix} reason must be one of {', '.join(DisputeReason.values)}")
            continue

        claimed[match['item_key']] = claimed.get(match['item_key'], 0) + qty

        entry = {
            'item_key': match['item_key'],
            'name': match['name'],
            'qty_disputed': qty,
            'reason': str(reason),
        }
        details = claim.get('details')
        if isinstance(details, str) and details.strip():
            entry['details'] = details.strip()
        normalized.append(entry)

    return DisputeValidation(valid=not errors, normalized=normalized, errors=errors)


def requires_evidence_for_dispute(disputed_items) -> bool:
    """MISSING and WRONG_ITEM claims cannot be judged without evidence."""
    return any(item.get('reason') in EVIDENCE_REASONS for item in disputed_items or [])


def should_mark_needs_info_for_dispute(customer_confirmed: bool, disputed_items, evidence_urls) -> bool:
    """
    True when the dispute cannot be adjudicated yet: the customer never
    confirmed receipt, or evidence is required and none was given.
    """
    if not customer_confirmed:
        return True
    return requires_evidence_for_dispute(disputed_items) and not evidence_urls
