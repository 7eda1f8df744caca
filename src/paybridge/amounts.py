"""Exact conversion between provider decimal strings and integer minor units.

Amounts never go through floats. A provider amount such as ``"123.456"`` at
precision 2 decodes to ``12345``: the fractional part is truncated, never
rounded, so the codec is deterministic across providers.
"""

from collections.abc import Mapping

from .errors import MalformedAmountError, UnsupportedCurrencyError

# ISO 4217 minor-unit precisions for the currencies connectors commonly report.
ISO4217_CURRENCIES: dict[str, int] = {
    "AED": 2,
    "ARS": 2,
    "AUD": 2,
    "BGN": 2,
    "BHD": 3,
    "BRL": 2,
    "CAD": 2,
    "CHF": 2,
    "CLP": 0,
    "CNY": 2,
    "COP": 2,
    "CZK": 2,
    "DKK": 2,
    "EGP": 2,
    "EUR": 2,
    "GBP": 2,
    "HKD": 2,
    "HUF": 2,
    "IDR": 2,
    "ILS": 2,
    "INR": 2,
    "ISK": 0,
    "JOD": 3,
    "JPY": 0,
    "KRW": 0,
    "KWD": 3,
    "MAD": 2,
    "MXN": 2,
    "MYR": 2,
    "NOK": 2,
    "NZD": 2,
    "OMR": 3,
    "PHP": 2,
    "PLN": 2,
    "QAR": 2,
    "RON": 2,
    "SAR": 2,
    "SEK": 2,
    "SGD": 2,
    "THB": 2,
    "TND": 3,
    "TRY": 2,
    "TWD": 2,
    "UAH": 2,
    "USD": 2,
    "VND": 0,
    "XAF": 0,
    "XOF": 0,
    "ZAR": 2,
}


def _check_precision(precision: int) -> None:
    if precision < 0:
        raise ValueError(f"Precision must be non-negative, got {precision}")


def decode(amount: str, precision: int) -> int:
    """Convert a decimal amount string to an integer in minor units.

    Args:
        amount: Decimal string as reported by the provider (e.g. "-12.3456")
        precision: Number of fractional digits of the minor unit

    Returns:
        int: The amount in minor units, fractional excess truncated

    Raises:
        MalformedAmountError: If the string is not a plain decimal number
    """
    _check_precision(precision)
    text = amount.strip()

    sign = ""
    if text[:1] in ("-", "+"):
        sign = "-" if text[0] == "-" else ""
        text = text[1:]

    parts = text.split(".")
    if len(parts) > 2:
        raise MalformedAmountError(f"Invalid amount: {amount!r}", context=amount)

    integer_part = parts[0]
    fraction = parts[1] if len(parts) == 2 else ""
    if not integer_part and not fraction:
        raise MalformedAmountError(f"Invalid amount: {amount!r}", context=amount)

    fraction = fraction[:precision].ljust(precision, "0")
    digits = (integer_part + fraction).lstrip("0") or "0"

    # str.isdigit() accepts non-ASCII digits, which int() would then parse
    if not (digits.isascii() and digits.isdigit()):
        raise MalformedAmountError(f"Invalid amount: {amount!r}", context=amount)

    return int(sign + digits)


def encode(value: int, precision: int) -> str:
    """Format an integer minor-unit amount as a decimal string.

    Args:
        value: Amount in minor units
        precision: Number of fractional digits of the minor unit

    Returns:
        str: Decimal representation, e.g. ``encode(5, 2) == "0.05"``
    """
    _check_precision(precision)
    sign = "-" if value < 0 else ""
    digits = str(abs(value))

    if precision == 0:
        return sign + digits

    digits = digits.rjust(precision + 1, "0")
    return f"{sign}{digits[:-precision]}.{digits[-precision:]}"


def normalize(amount: str, precision: int) -> str:
    """Return the canonical zero-padded, truncated form of an amount string."""
    return encode(decode(amount, precision), precision)


def get_currency_precision(currencies: Mapping[str, int], code: str) -> int:
    """Look up the minor-unit precision of a currency.

    Raises:
        UnsupportedCurrencyError: If the currency is not in the table
    """
    try:
        return currencies[code.upper()]
    except KeyError:
        raise UnsupportedCurrencyError(
            f"Unsupported currency: {code}", context=code
        ) from None


def format_asset(currencies: Mapping[str, int], code: str) -> str:
    """Build the asset code (e.g. ``"USD/2"``) for a currency."""
    precision = get_currency_precision(currencies, code)
    return f"{code.upper()}/{precision}"
