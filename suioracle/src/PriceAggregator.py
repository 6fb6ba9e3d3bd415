"""PriceAggregator: Mean aggregation of per-source price samples.

Algorithm:
    1. Drop samples whose price is None (failed or missing fetch)
    2. Return None if nothing remains
    3. Otherwise return the arithmetic mean of the remaining prices

.. code-block:: python

    >>> aggregate_prices([100.0, None, 102.0])
    101.0
    >>> aggregate_prices([None, None]) is None
    True
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass


@dataclass(frozen=True)
class PriceSample:
    """Price reported by one source for one asset in one cycle.

    :ivar source_id: Source name (e.g., "binance").
    :ivar asset_symbol: Canonical asset symbol (e.g., "BTC/USD").
    :ivar price: Reported price, or None if the fetch failed.
    """

    source_id: str
    asset_symbol: str
    price: float | None


@dataclass(frozen=True)
class AggregatedPrice:
    """Consensus value for one asset.

    :ivar asset_symbol: Canonical asset symbol.
    :ivar value: Mean of the present samples.
    :ivar contributing_count: Number of samples that had a price.
    """

    asset_symbol: str
    value: float
    contributing_count: int


def aggregate_prices(prices: Sequence[float | None]) -> float | None:
    """Average the present values of a sequence of optional prices.

    :param prices: Optional prices, one per source.
    :returns: Arithmetic mean, or None if every entry is absent or the
        sequence is empty.
    """
    valid = [p for p in prices if p is not None]
    if not valid:
        return None
    # fsum keeps the result independent of input order
    return math.fsum(valid) / len(valid)


class PriceAggregator:
    """Reduces the samples of one asset to an :class:`AggregatedPrice`.

    .. code-block:: python

        >>> agg = PriceAggregator()
        >>> result = agg.aggregate("BTC/USD", [
        ...     PriceSample("binance", "BTC/USD", 100.0),
        ...     PriceSample("coinbase", "BTC/USD", None),
        ... ])
        >>> result.value, result.contributing_count
        (100.0, 1)
    """

    def aggregate(
        self, asset_symbol: str, samples: Iterable[PriceSample]
    ) -> AggregatedPrice | None:
        """Aggregate the samples reported for ``asset_symbol``.

        Samples for other symbols are ignored.

        :param asset_symbol: Asset to aggregate.
        :param samples: Samples collected during the cycle.
        :returns: AggregatedPrice, or None when no sample has a price.
        """
        prices = [s.price for s in samples if s.asset_symbol == asset_symbol]
        value = aggregate_prices(prices)
        if value is None:
            return None
        return AggregatedPrice(
            asset_symbol=asset_symbol,
            value=value,
            contributing_count=sum(1 for p in prices if p is not None),
        )
