"""Currency conversion through a shared USD cross-rate table"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Mapping, Optional

from pledge_ledger.domain.exceptions import UnsupportedCurrencyError
from pledge_ledger.domain.models import SUPPORTED_CURRENCIES
from pledge_ledger.domain.money import to_decimal
from pledge_ledger.domain.results import Result

BASE_CURRENCY = "USD"


@dataclass
class Conversion:
    """Unrounded conversion result; degraded when a default rate of 1 was used"""

    amount: Decimal
    from_currency: str
    to_currency: str
    degraded: bool = False
    missing_rates: List[str] = field(default_factory=list)


def is_supported_currency(currency: str) -> bool:
    return currency in SUPPORTED_CURRENCIES


def lookup_rate(rates: Mapping[str, str], currency: str) -> Optional[Decimal]:
    """Rate for a currency per the table, or None if absent, unparsable or zero"""
    if currency == BASE_CURRENCY:
        return Decimal(1)
    raw = rates.get(currency)
    if raw is None:
        return None
    try:
        rate = to_decimal(raw)
    except ValueError:
        return None
    return rate if rate > 0 else None


def convert(
    amount,
    from_currency: str,
    to_currency: str,
    rates: Optional[Mapping[str, str]],
) -> Result[Conversion]:
    """
    Convert an amount between currencies via USD.

    The amount is multiplied by the source currency's rate to reach USD,
    then divided by the target currency's rate. Missing rates default to 1
    and mark the result as degraded instead of failing.

    Returns:
        Result holding a Conversion, or an UnsupportedCurrencyError
    """
    for currency, field_name in ((from_currency, "from_currency"), (to_currency, "to_currency")):
        if not is_supported_currency(currency):
            return Result.failure(UnsupportedCurrencyError(currency, field_name))

    value = to_decimal(amount)

    if from_currency == to_currency:
        return Result.success(Conversion(value, from_currency, to_currency))

    if not rates:
        logging.warning(
            "Exchange rates unavailable, amount left unconverted",
            extra={"step": "currency_conversion", "from_currency": from_currency, "to_currency": to_currency},
        )
        return Result.success(
            Conversion(value, from_currency, to_currency, degraded=True, missing_rates=[from_currency, to_currency]),
            warnings=["Exchange rates unavailable; amount was not converted"],
        )

    missing = []
    from_rate = lookup_rate(rates, from_currency)
    if from_rate is None:
        missing.append(from_currency)
        from_rate = Decimal(1)
    to_rate = lookup_rate(rates, to_currency)
    if to_rate is None:
        missing.append(to_currency)
        to_rate = Decimal(1)

    converted = (value * from_rate) / to_rate

    warnings = []
    if missing:
        logging.warning(
            "Missing exchange rate, defaulted to 1",
            extra={"step": "currency_conversion", "missing_rates": missing},
        )
        warnings.append(f"No exchange rate for {', '.join(missing)}; a rate of 1 was used")

    return Result.success(
        Conversion(converted, from_currency, to_currency, degraded=bool(missing), missing_rates=missing),
        warnings=warnings,
    )
