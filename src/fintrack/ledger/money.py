"""Currency normalization helper shared by the ledger services."""

from decimal import Decimal

from fintrack.conversion.service import CurrencyConversionService, format_amount


async def convert_money(
    converter: CurrencyConversionService,
    amount: Decimal,
    from_currency: str,
    to_currency: str,
) -> Decimal:
    """
    Express ``amount`` in ``to_currency``.

    Same-currency amounts never reach the converter, so ledgers that stay in
    one currency need no provider or cache at all.
    """
    if from_currency == to_currency:
        return Decimal(format_amount(amount))
    return Decimal(await converter.convert(amount, from_currency, to_currency))
