"""
Currency and Money value objects.

An invoice amount is a ``Money``: a ``Decimal`` bound to an ISO 4217
``Currency``.  The engine never does arithmetic on amounts; it hands them to
the payment provider untouched.  The provider compares ``Money.currency``
with the customer's currency to detect mismatches.

Failure modes:
    - ValueError for an unknown currency code, a float amount or an amount
      that is not a number.
    - TypeError when the currency is neither a Currency nor a str.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from billing_kernel.domain.currency import CurrencyRegistry


@dataclass(frozen=True, slots=True)
class Currency:
    """A registered ISO 4217 code, stored upper-case."""

    code: str

    def __post_init__(self) -> None:
        code = (self.code or "").strip().upper()
        if not CurrencyRegistry.is_valid(code):
            raise ValueError(f"Invalid ISO 4217 currency code: {self.code}")
        object.__setattr__(self, "code", code)

    @property
    def decimal_places(self) -> int:
        return CurrencyRegistry.get_decimal_places(self.code)

    @property
    def name(self) -> str:
        return CurrencyRegistry.get_info(self.code).name

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Currency({self.code!r})"


def _to_decimal(amount: object) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    if isinstance(amount, float):
        raise ValueError(f"Float amounts are not allowed: {amount!r}")
    try:
        return Decimal(str(amount))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {amount}") from e


def _to_currency(currency: object) -> Currency:
    if isinstance(currency, Currency):
        return currency
    if isinstance(currency, str):
        return Currency(currency)
    raise TypeError(f"currency must be Currency or str, got {type(currency)}")


@dataclass(frozen=True, slots=True)
class Money:
    """Invoice amount.  Immutable and hashable.

    ``amount`` accepts Decimal, int or numeric str; ``currency`` accepts a
    Currency or its code.
    """

    amount: Decimal
    currency: Currency

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", _to_decimal(self.amount))
        object.__setattr__(self, "currency", _to_currency(self.currency))

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str | Currency) -> Money:
        return cls(amount, currency)

    @property
    def is_positive(self) -> bool:
        return self.amount > 0

    def round(self, rounding: str = ROUND_HALF_UP) -> Money:
        """Quantize to the currency's minor unit."""
        quantum = Decimal(1).scaleb(-self.currency.decimal_places)
        return Money(self.amount.quantize(quantum, rounding=rounding), self.currency)

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency.code!r})"
