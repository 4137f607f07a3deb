from __future__ import annotations

from .market_data import MarketDataFeed, MarketDataRequirements, ParRatesId, QuoteId
from .nodes import CurveConfig, CurveGroupConfig


def curve_group_requirements(
    config: CurveGroupConfig,
    feed: MarketDataFeed = MarketDataFeed.NONE,
) -> MarketDataRequirements:
    """
    Market data needed before `config` can be calibrated.

    A curve whose nodes all carry fixed rates needs nothing. A curve with at
    least one market-quote node needs one bundle of par rates,
    ParRatesId(group, curve, feed); resolving the individual quotes into
    that bundle is left to whoever supplies it.

    Raises InvalidConfigurationError for a malformed configuration.
    """
    config.validate()
    non_observables = frozenset(
        ParRatesId(config.name, curve.name, feed)
        for curve in config.curves
        if curve.requires_market_data
    )
    return MarketDataRequirements(observables=frozenset(), non_observables=non_observables)


def par_rates_requirements(
    curve: CurveConfig,
    feed: MarketDataFeed = MarketDataFeed.NONE,
) -> MarketDataRequirements:
    """Observable quotes a par rates bundle for `curve` has to be built from."""
    curve.validate()
    return MarketDataRequirements(observables=frozenset(QuoteId(k, feed) for k in curve.quote_keys()))
