"""
Market data identifiers and the snapshot calibration reads from.

Every id class declares the Python type of the value it keys, so a lookup
either returns a value of that type or fails loudly at the lookup site.
"""
from __future__ import annotations

import pandas as pd
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, ClassVar, Dict, Mapping

from .errors import InvalidConfigurationError, InvalidMarketDataError, MissingMarketDataError


@dataclass(frozen=True)
class MarketDataFeed:
    """Source of market data, e.g. a vendor. NONE means no particular feed."""
    name: str

    def __str__(self) -> str:
        return self.name


MarketDataFeed.NONE = MarketDataFeed("None")


@dataclass(frozen=True)
class QuoteKey:
    """Feed-independent key of a market quote, e.g. QuoteKey("OG-Ticker", "USD-FRA3x6")."""
    scheme: str
    value: str

    def to_id(self, feed: MarketDataFeed = MarketDataFeed.NONE) -> "QuoteId":
        return QuoteId(self, feed)

    def __str__(self) -> str:
        return f"{self.scheme}~{self.value}"


class MarketDataId:
    """Base for typed market data ids."""
    value_type: ClassVar[type] = object
    observable: ClassVar[bool] = False


@dataclass(frozen=True)
class QuoteId(MarketDataId):
    """Observable quote of a key from a feed."""
    key: QuoteKey
    feed: MarketDataFeed = MarketDataFeed.NONE

    value_type: ClassVar[type] = float
    observable: ClassVar[bool] = True


@dataclass(frozen=True)
class ParRates:
    """Resolved par rates for the market-quote nodes of one curve."""
    rates: Mapping[QuoteKey, float]

    def __post_init__(self):
        object.__setattr__(self, "rates", MappingProxyType({k: float(v) for k, v in dict(self.rates).items()}))

    @classmethod
    def of(cls, rates: Mapping[Any, float]) -> "ParRates":
        """Accepts QuoteKey or QuoteId keys."""
        return cls({(k.key if isinstance(k, QuoteId) else k): v for k, v in rates.items()})


@dataclass(frozen=True)
class ParRatesId(MarketDataId):
    """Non-observable bundle of par rates for (group, curve, feed)."""
    group_name: str
    curve_name: str
    feed: MarketDataFeed = MarketDataFeed.NONE

    value_type: ClassVar[type] = ParRates


@dataclass(frozen=True)
class CurveGroupId(MarketDataId):
    """Calibrated curve group built from a named configuration and feed."""
    name: str
    feed: MarketDataFeed = MarketDataFeed.NONE

    @property
    def value_type(self) -> type:  # type: ignore[override]
        from .curve_group import CurveGroup
        return CurveGroup


@dataclass(frozen=True)
class IndexRateId(MarketDataId):
    """Fixing time series of a rate index."""
    index_name: str
    feed: MarketDataFeed = MarketDataFeed.NONE

    value_type: ClassVar[type] = pd.Series
    observable: ClassVar[bool] = True


@dataclass(frozen=True)
class MarketDataRequirements:
    observables: frozenset = frozenset()
    non_observables: frozenset = frozenset()

    @property
    def is_empty(self) -> bool:
        return not self.observables and not self.non_observables

    def union(self, other: "MarketDataRequirements") -> "MarketDataRequirements":
        return MarketDataRequirements(
            self.observables | other.observables,
            self.non_observables | other.non_observables,
        )


@dataclass(frozen=True)
class MarketDataSnapshot:
    """
    Market data as of one valuation date.

    values: id -> value (quotes, par rate bundles, ...).
    time_series: index name -> pd.Series of fixings indexed by date.
    """
    valuation_date: pd.Timestamp
    values: Mapping[MarketDataId, Any] = field(default_factory=dict)
    time_series: Mapping[str, pd.Series] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "valuation_date", pd.Timestamp(self.valuation_date).normalize())
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))
        object.__setattr__(self, "time_series", MappingProxyType(dict(self.time_series)))

    @classmethod
    def empty(cls, valuation_date: pd.Timestamp) -> "MarketDataSnapshot":
        return cls(valuation_date)

    def contains(self, market_data_id: MarketDataId) -> bool:
        if isinstance(market_data_id, IndexRateId):
            return market_data_id.index_name in self.time_series
        return market_data_id in self.values

    def get_value(self, market_data_id: MarketDataId) -> Any:
        if isinstance(market_data_id, IndexRateId):
            return self.get_time_series(market_data_id.index_name)
        try:
            value = self.values[market_data_id]
        except KeyError:
            raise MissingMarketDataError(f"No market data for {market_data_id}") from None
        expected = market_data_id.value_type
        if not isinstance(value, expected):
            raise InvalidMarketDataError(
                f"Market data for {market_data_id} has type {type(value).__name__}, expected {expected.__name__}"
            )
        return value

    def get_time_series(self, index_name: str) -> pd.Series:
        try:
            return self.time_series[index_name]
        except KeyError:
            raise MissingMarketDataError(f"No time series for {index_name}") from None

    def with_value(self, market_data_id: MarketDataId, value: Any) -> "MarketDataSnapshot":
        values = dict(self.values)
        values[market_data_id] = value
        return MarketDataSnapshot(self.valuation_date, values, self.time_series)


@dataclass(frozen=True)
class MarketDataConfig:
    """Registry of named curve group configurations."""
    curve_groups: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "curve_groups", MappingProxyType(dict(self.curve_groups)))

    @classmethod
    def of(cls, *group_configs) -> "MarketDataConfig":
        return cls({g.name: g for g in group_configs})

    def curve_group(self, name: str):
        try:
            return self.curve_groups[name]
        except KeyError:
            raise InvalidConfigurationError(f"No curve group configuration named '{name}'") from None


def quotes_from(snapshot: MarketDataSnapshot, par_rates_id: ParRatesId) -> Dict[QuoteKey, float]:
    """Quote map of a curve's par rates bundle (missing bundle -> MissingMarketDataError)."""
    bundle: ParRates = snapshot.get_value(par_rates_id)
    return dict(bundle.rates)

