"""
Money helpers.

Toute l'arithmétique monétaire passe par Decimal ou par des unités mineures
entières (cents). Jamais de float binaire dans un total.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP


@dataclass(frozen=True)
class CurrencyInfo:
    code: str
    symbol: str
    exponent: int


CURRENCIES: dict[str, CurrencyInfo] = {
    "USD": CurrencyInfo("USD", "$", 2),
    "EUR": CurrencyInfo("EUR", "€", 2),
    "GBP": CurrencyInfo("GBP", "£", 2),
    "CAD": CurrencyInfo("CAD", "CA$", 2),
    "AUD": CurrencyInfo("AUD", "A$", 2),
    "JPY": CurrencyInfo("JPY", "¥", 0),
}

DEFAULT_EXPONENT = 2
TWO_PLACES = Decimal("0.01")


def is_supported_currency(code: str) -> bool:
    return code.upper() in CURRENCIES


def currency_exponent(currency: str) -> int:
    info = CURRENCIES.get(currency.upper())
    return info.exponent if info else DEFAULT_EXPONENT


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Not a monetary amount: {value!r}")
    if isinstance(value, float):
        # str() keeps the shortest repr, so 0.1 stays 0.1
        value = str(value)
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Not a monetary amount: {value!r}") from exc


def _quantum(exponent: int) -> Decimal:
    return Decimal(1).scaleb(-exponent)


def round_money(value, currency: str = "USD") -> Decimal:
    return to_decimal(value).quantize(_quantum(currency_exponent(currency)), rounding=ROUND_HALF_UP)


def round2(value) -> Decimal:
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def round_half_up(value) -> int:
    return int(to_decimal(value).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def to_minor_units(amount, currency: str = "USD") -> int:
    return int(round_money(amount, currency).scaleb(currency_exponent(currency)))


def from_minor_units(units: int, currency: str = "USD") -> Decimal:
    exponent = currency_exponent(currency)
    return (Decimal(int(units)).scaleb(-exponent)).quantize(_quantum(exponent))


def format_currency(amount, currency: str = "USD") -> str:
    """
    Rendu en-US : ``$1,234.50``, ``-€5.00``, ``¥1,235``.
    Code inconnu : ``XYZ 1,234.50``.
    """
    code = currency.upper()
    exponent = currency_exponent(code)
    value = round_money(amount, code)

    sign = "-" if value < 0 else ""
    digits = f"{abs(value):,.{exponent}f}"

    info = CURRENCIES.get(code)
    if info is None:
        return f"{sign}{code} {digits}"
    return f"{sign}{info.symbol}{digits}"
