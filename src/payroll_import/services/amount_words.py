from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from num2words import num2words

"""Indian currency formatting for salary slips.

format_inr groups digits the Indian way (12,34,567.50); amount_in_words spells
an amount in the Indian scale (crore, lakh, thousand) via num2words, e.g.

    >>> amount_in_words(24800)
    'Twenty Four Thousand Eight Hundred Rupees Only'
    >>> amount_in_words(0.5)
    'Fifty Paise Only'
"""

__all__ = [
    "amount_in_words",
    "format_inr",
]

_CRORE = 10_000_000
_SPLIT_AT = 1_000 * _CRORE

_CENT = Decimal("0.01")


def _to_paise(amount: float | int | Decimal) -> int:
    """Amount in paise, rounded half-up to 2 decimals."""
    return int((Decimal(str(amount)).quantize(_CENT, rounding=ROUND_HALF_UP) * 100).to_integral_value())


def format_inr(amount: float | int | Decimal) -> str:
    """Format with Indian digit grouping and two decimals."""
    paise = _to_paise(amount)
    sign = "-" if paise < 0 else ""
    rupees, fraction = divmod(abs(paise), 100)
    digits = str(rupees)
    if len(digits) > 3:
        head, tail = digits[:-3], digits[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        digits = ",".join(groups + [tail])
    return f"{sign}{digits}.{fraction:02d}"


def _indian_words(n: int) -> str:
    """Title-case Indian-system words for a non-negative integer."""
    if n >= _SPLIT_AT:
        # num2words' en_IN scale tops out below 1000 crore
        crore, rest = divmod(n, _CRORE)
        words = f"{_indian_words(crore)} Crore"
        return f"{words} {_indian_words(rest)}" if rest else words
    text = num2words(n, lang="en_IN").replace("-", " ").replace(",", "")
    return " ".join(w.capitalize() for w in text.split() if w != "and")


def amount_in_words(amount: float | int | Decimal) -> str:
    """Spell a rupee amount for the 'Amount in words' line of a slip."""
    paise_total = _to_paise(amount)
    if paise_total < 0:
        return f"Minus {amount_in_words(Decimal(-paise_total) / 100)}"
    rupees, paise = divmod(paise_total, 100)
    if rupees == 0 and paise == 0:
        return "Zero Rupees Only"

    result = f"{_indian_words(rupees)} Rupees" if rupees else ""
    if paise:
        if rupees:
            result += " and "
        result += f"{_indian_words(paise)} Paise"
    return f"{result} Only"
