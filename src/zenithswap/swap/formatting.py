"""Pure helpers turning raw resolver quotes into display-ready ``Quote`` objects."""

from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Union

from zenithswap.chains import resolve_token
from zenithswap.resolver.contracts import QuoteParams, RawQuoteResponse
from zenithswap.swap.state import Quote

MAX_DISPLAY_PLACES = 8


def to_decimal_units(raw: Union[str, int], decimals: int) -> Decimal:
    """Convert an amount in smallest units to a Decimal in whole units."""
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        raise ValueError(f"Not an integer amount: {raw!r}") from None
    if not value.is_finite():
        raise ValueError(f"Not a finite amount: {raw!r}")
    return value / (Decimal(10) ** decimals)


def format_units(raw: Union[str, int], decimals: int) -> str:
    """Format an amount in smallest units as a fixed-point string.

    >>> format_units("1000000000000000", 18)
    '0.00100000'
    """
    places = min(decimals, MAX_DISPLAY_PLACES)
    value = to_decimal_units(raw, decimals)
    quantum = Decimal(1).scaleb(-places)
    try:
        return format(value.quantize(quantum, rounding=ROUND_DOWN), "f")
    except InvalidOperation:
        raise ValueError(f"Amount out of range: {raw!r}") from None


def to_base_units(amount: Union[str, Decimal], decimals: int) -> str:
    """Convert a human amount ("0.5") to a smallest-unit integer string."""
    value = Decimal(str(amount)) * (Decimal(10) ** decimals)
    return str(int(value.to_integral_value(rounding=ROUND_DOWN)))


def humanize_duration(seconds: int) -> str:
    """Render an estimated duration like "~5 minutes"."""
    if seconds <= 0:
        return "Unknown"
    if seconds < 60:
        return f"~{seconds} second{'s' if seconds != 1 else ''}"

    minutes = round(seconds / 60)
    if minutes < 60:
        return f"~{minutes} minute{'s' if minutes != 1 else ''}"

    hours, minutes = divmod(minutes, 60)
    text = f"~{hours} hour{'s' if hours != 1 else ''}"
    if minutes:
        text += f" {minutes} minute{'s' if minutes != 1 else ''}"
    return text


def amount_in_units(params: QuoteParams) -> Decimal:
    """The request amount in whole source-token units."""
    source = resolve_token(params.from_chain_id, params.from_token_address)
    return to_decimal_units(params.amount, source.decimals)


def format_quote(params: QuoteParams, raw: RawQuoteResponse) -> Quote:
    """Build a display ``Quote`` from the request and the raw response.

    The fee is charged in the source token.

    Raises:
        ValueError: An amount is not a number or too large to display
    """
    source = resolve_token(params.from_chain_id, params.from_token_address)
    target = resolve_token(params.to_chain_id, params.to_token_address)

    from_value = to_decimal_units(params.amount, source.decimals)
    to_value = to_decimal_units(raw.to_token_amount, target.decimals)

    if from_value > 0:
        try:
            rate = (to_value / from_value).quantize(Decimal("0.00000001"), rounding=ROUND_DOWN)
        except InvalidOperation:
            raise ValueError(f"Rate out of range for {raw.to_token_amount!r}") from None
    else:
        rate = Decimal("0")

    return Quote(
        quote_id=raw.quote_id,
        from_token=source.symbol,
        to_token=target.symbol,
        from_amount=format_units(params.amount, source.decimals),
        to_amount=format_units(raw.to_token_amount, target.decimals),
        rate=format(rate, "f"),
        fee=format_units(raw.fee, source.decimals),
        fee_token=source.symbol,
        estimated_time=humanize_duration(raw.estimated_time),
    )
