"""Exchange-rate lookup between the settlement and local currency."""

import logging
from decimal import Decimal, InvalidOperation

import httpx

from checkout_gateway.config import Settings
from checkout_gateway.errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)


def get_rate(currency: str, config: Settings) -> Decimal:
    """Return how many local-currency units one unit of ``currency`` buys.

    Raises:
        UpstreamUnavailableError: When the rate service times out, errors,
            or answers without a usable rate.
    """
    base = currency.upper()
    symbol = config.local_currency.upper()
    if base == symbol:
        return Decimal("1")

    try:
        response = httpx.get(
            config.exchange_rate_url,
            params={"symbols": symbol, "base": base},
            timeout=config.exchange_rate_timeout,
        )
        response.raise_for_status()
        rate = Decimal(str(response.json()["rates"][symbol]))
    except httpx.HTTPError as e:
        logger.error(f"Exchange rate lookup {base}->{symbol} failed: {e}")
        raise UpstreamUnavailableError("Exchange rate service is unavailable")
    except (KeyError, TypeError, ValueError, InvalidOperation):
        logger.error(f"Exchange rate response for {base}->{symbol} has no rate")
        raise UpstreamUnavailableError("Exchange rate service returned no rate")

    if rate <= 0:
        raise UpstreamUnavailableError("Exchange rate service returned no rate")
    return rate
