"""Conversion between decimal amounts and processor minor units"""

from decimal import Decimal, ROUND_HALF_UP

ZERO_DECIMAL_CURRENCIES = frozenset({
    "BIF", "CLP", "DJF", "GNF", "JPY", "KMF", "KRW", "MGA",
    "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF",
})

THREE_DECIMAL_CURRENCIES = frozenset({"BHD", "JOD", "KWD", "OMR", "TND"})


def minor_unit_exponent(currency: str) -> int:
    code = currency.upper()
    if code in ZERO_DECIMAL_CURRENCIES:
        return 0
    if code in THREE_DECIMAL_CURRENCIES:
        return 3
    return 2


def to_minor_units(amount: Decimal, currency: str) -> int:
    """
    Convert a decimal amount to the processor's integer minor units

    Args:
        amount: Amount in major units (e.g. 115.00 CAD)
        currency: ISO 4217 code

    Returns:
        Integer amount (e.g. 11500)
    """
    factor = Decimal(10) ** minor_unit_exponent(currency)
    return int((Decimal(amount) * factor).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int, currency: str) -> Decimal:
    """Convert processor minor units back to a decimal amount"""
    exponent = minor_unit_exponent(currency)
    factor = Decimal(10) ** exponent
    return (Decimal(int(amount)) / factor).quantize(Decimal(1).scaleb(-exponent))
