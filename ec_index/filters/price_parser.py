# ec_index/filters/price_parser.py

"""Locale-aware price text normalisation."""

import re

# First run of digits with optional grouping / decimal separators
_NUMBER_RE = re.compile(r"\d(?:[\d.,']|\s(?=\d{3}(?!\d)))*")


def _normalise_number(raw: str) -> str | None:
    """Turn a localised number into a dot-decimal string.

    The rightmost separator is treated as the decimal mark when it is
    followed by one or two digits; every other separator is a
    thousands separator.
    """
    digits = re.sub(r"[\s']", "", raw).strip(".,")
    if not digits:
        return None

    last_sep = max(digits.rfind(","), digits.rfind("."))
    if last_sep == -1:
        return digits

    head, tail = digits[:last_sep], digits[last_sep + 1:]
    head = re.sub(r"[.,]", "", head)
    if 1 <= len(tail) <= 2:
        return f"{head}.{tail}"
    # "1.234" / "1,234": three trailing digits mean grouping
    return f"{head}{tail}"


def parse_price(text: str | None) -> float | None:
    """Extract a positive price from text like ``'ab 1.234,50 €'``.

    Handles German (``1.234,50``), English (``1,234.50``) and plain
    (``1234``) forms along with currency symbols and prefixes.
    Returns ``None`` when nothing parseable or nothing positive is found.
    """
    if not text:
        return None
    match = _NUMBER_RE.search(text)
    if not match:
        return None
    normalised = _normalise_number(match.group(0))
    if normalised is None:
        return None
    try:
        value = float(normalised)
    except ValueError:
        return None
    return value if value > 0 else None


def parse_count(text: str | None) -> int | None:
    """Parse an integer count such as ``'1.234'`` or ``'(2,345)'``."""
    if not text:
        return None
    digits = re.sub(r"\D", "", text)
    return int(digits) if digits else None
