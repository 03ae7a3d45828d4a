"""
RECEIPTS App - Receipt text parser for OTW

Turns raw OCR text into vendor, location, item lines and total using
line-pattern heuristics. Anything it cannot read is simply left out.
"""

import re
from decimal import Decimal, InvalidOperation

ITEM_LINE = re.compile(
    r"^(?P<qty>\d+)?\s*(?P<name>[A-Za-z0-9][A-Za-z0-9\s.'/#&-]{2,}?)\s+\$?(?P<price>\d{1,3}\.\d{2})$"
)
TOTAL_LINE = re.compile(r'(subtotal|total|tax|change|cash|visa|mastercard|amex|debit)', re.IGNORECASE)
GRAND_TOTAL_LINE = re.compile(r'^(?:grand\s+)?total\b\D*(?P<amount>\d{1,6}\.\d{2})', re.IGNORECASE)
PHONE_LINE = re.compile(r'(tel|phone)', re.IGNORECASE)
ADDRESS_LINE = re.compile(
    r'\d{1,5}\s+.+\s+(?:street|st|avenue|ave|road|rd|boulevard|blvd|lane|ln|drive|dr|pike|trail|trl|way|court|ct)\b',
    re.IGNORECASE,
)
CITY_STATE_ZIP = re.compile(r'[A-Z]{2}\s+\d{5}(?:-\d{4})?')
NOT_A_VENDOR = re.compile(r'receipt|thank|visit|welcome', re.IGNORECASE)
VENDOR_CHARS = re.compile(r"[^A-Za-z0-9\s.'&-]")


def _clean_lines(text: str):
    lines = []
    for line in (text or '').split('\n'):
        line = re.sub(r'\s+', ' ', line).strip()
        if line:
            lines.append(line)
    return lines


def _vendor_candidate(line: str) -> str:
    if TOTAL_LINE.search(line) or PHONE_LINE.search(line):
        return ''
    candidate = VENDOR_CHARS.sub('', line).strip()
    if len(candidate) < 3 or NOT_A_VENDOR.search(candidate):
        return ''
    return candidate


def parse_receipt_text(text: str) -> dict:
    """
    Parse OCR text of a receipt.

    Returns:
        {
            'vendor_name': first plausible header line,
            'location': street address (joined with the city line when split),
            'items': [{'name', 'quantity', 'price'}],
            'total': Decimal or None (last TOTAL line, never SUBTOTAL),
        }

    Example:
        >>> parse_receipt_text("CHIPOTLE\\n2 Burrito Bowl 21.50\\nTOTAL 23.12")['items']
        [{'name': 'Burrito Bowl', 'quantity': 2, 'price': Decimal('21.50')}]
    """
    lines = _clean_lines(text)

    vendor_name = ''
    location = ''
    total = None
    items = []

    for index, line in enumerate(lines):
        if not vendor_name:
            vendor_name = _vendor_candidate(line)

        if not location and (ADDRESS_LINE.search(line) or CITY_STATE_ZIP.search(line)):
            next_line = lines[index + 1] if index + 1 < len(lines) else ''
            if CITY_STATE_ZIP.search(line) or not CITY_STATE_ZIP.search(next_line):
                location = line
            else:
                location = f"{line}, {next_line}"

        if TOTAL_LINE.search(line):
            total_match = GRAND_TOTAL_LINE.search(line)
            if total_match:
                total = Decimal(total_match.group('amount'))
            continue

        match = ITEM_LINE.match(line)
        if not match:
            continue
        try:
            price = Decimal(match.group('price'))
        except InvalidOperation:
            continue
        quantity = int(match.group('qty')) if match.group('qty') else 1
        items.append({
            'name': match.group('name').strip(),
            'quantity': quantity if quantity > 0 else 1,
            'price': price,
        })

    return {
        'vendor_name': vendor_name,
        'location': location,
        'items': items,
        'total': total,
    }
