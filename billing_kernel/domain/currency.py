"""ISO 4217 currencies the engine can bill in, with their minor-unit precision."""

from dataclasses import dataclass
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    code: str
    decimal_places: int
    name: str


def _info(code: str, name: str, decimal_places: int = 2) -> tuple[str, CurrencyInfo]:
    return code, CurrencyInfo(code, decimal_places, name)


class CurrencyRegistry:
    """Lookup of billable currencies.  Codes must already be upper-case."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = dict([
        # customer currencies
        _info("EUR", "Euro"),
        _info("USD", "US Dollar"),
        _info("DKK", "Danish Krone"),
        _info("SEK", "Swedish Krona"),
        _info("GBP", "Pound Sterling"),
        # other European
        _info("NOK", "Norwegian Krone"),
        _info("CHF", "Swiss Franc"),
        _info("PLN", "Polish Zloty"),
        _info("CZK", "Czech Koruna"),
        _info("HUF", "Hungarian Forint"),
        _info("ISK", "Icelandic Krona", 0),
        # rest of world
        _info("CAD", "Canadian Dollar"),
        _info("AUD", "Australian Dollar"),
        _info("NZD", "New Zealand Dollar"),
        _info("JPY", "Japanese Yen", 0),
        _info("KWD", "Kuwaiti Dinar", 3),
    ])

    @classmethod
    def is_valid(cls, code: str) -> bool:
        return code in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        return cls._CURRENCIES.get(code)

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        """
        Raises:
            ValueError: If the code is not registered.
        """
        try:
            return cls._CURRENCIES[code].decimal_places
        except KeyError:
            raise ValueError(f"Unknown currency code: {code}") from None

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        return frozenset(cls._CURRENCIES)
