"""
Curve nodes and curve group configuration.

A node pairs an instrument template with where its rate comes from: a
literal rate baked into the configuration, or a market quote looked up by
key. Each node contributes one calibration residual and one curve parameter.
"""
from __future__ import annotations

import pandas as pd
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple, Union

from .errors import InvalidConfigurationError, MissingMarketDataError
from .instruments import FixedIborSwapTemplate, FraTemplate, IborIndex
from .market_data import QuoteKey
from .transforms import NullTransform, ParameterLimitsTransform


@dataclass(frozen=True)
class FixedRate:
    """Node rate fixed in the configuration; needs no market data."""
    rate: float

    def quote_keys(self) -> frozenset:
        return frozenset()

    def resolve(self, quotes: Mapping[QuoteKey, float]) -> float:
        return float(self.rate)


@dataclass(frozen=True)
class MarketQuote:
    """Node rate taken from the market quote with this key."""
    key: QuoteKey

    def quote_keys(self) -> frozenset:
        return frozenset([self.key])

    def resolve(self, quotes: Mapping[QuoteKey, float]) -> float:
        try:
            return float(quotes[self.key])
        except KeyError:
            raise MissingMarketDataError(f"No quote for {self.key}") from None


NodeValue = Union[FixedRate, MarketQuote]
Template = Union[FraTemplate, FixedIborSwapTemplate]


@dataclass(frozen=True)
class CurveNode:
    template: Template
    value: NodeValue
    transform: ParameterLimitsTransform = field(default_factory=NullTransform)
    label: Optional[str] = None

    @classmethod
    def fixed(cls, template: Template, rate: float, **kwargs) -> "CurveNode":
        return cls(template, FixedRate(rate), **kwargs)

    @classmethod
    def quoted(cls, template: Template, key: QuoteKey, **kwargs) -> "CurveNode":
        return cls(template, MarketQuote(key), **kwargs)

    @property
    def name(self) -> str:
        return self.label or self.template.label

    @property
    def requires_market_data(self) -> bool:
        return bool(self.value.quote_keys())

    def node_date(self, valuation_date: pd.Timestamp) -> pd.Timestamp:
        return self.template.node_date(valuation_date)

    def rate(self, quotes: Mapping[QuoteKey, float]) -> float:
        return self.value.resolve(quotes)

    def build_trade(self, valuation_date: pd.Timestamp, quotes: Mapping[QuoteKey, float]):
        return self.template.to_trade(valuation_date, self.rate(quotes))


@dataclass(frozen=True)
class CurveConfig:
    """
    Interpolated curve definition. Node order is the parameter order and is
    preserved through calibration.
    """
    name: str
    nodes: Tuple[CurveNode, ...]
    interpolator: str = "LINEAR"
    left_extrapolator: str = "FLAT"
    right_extrapolator: str = "FLAT"

    def __post_init__(self):
        object.__setattr__(self, "nodes", tuple(self.nodes))

    @property
    def requires_market_data(self) -> bool:
        return any(n.requires_market_data for n in self.nodes)

    def quote_keys(self) -> frozenset:
        keys = frozenset()
        for n in self.nodes:
            keys = keys | n.value.quote_keys()
        return keys

    def validate(self) -> None:
        if not self.name:
            raise InvalidConfigurationError("Curve name must not be empty.")
        if len(self.nodes) == 0:
            raise InvalidConfigurationError(f"Curve '{self.name}' has no nodes.")


@dataclass(frozen=True)
class CurveGroupEntry:
    curve: CurveConfig
    currencies: frozenset = frozenset()
    indices: frozenset = frozenset()


@dataclass(frozen=True)
class CurveGroupConfig:
    """
    Named, ordered set of curves, each mapped to the currencies it discounts
    and the indices it projects.

    Example:
        >>> group = CurveGroupConfig("USD group").with_curve(curve, "USD", USD_LIBOR_3M)
    """
    name: str
    entries: Tuple[CurveGroupEntry, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "entries", tuple(self.entries))

    def with_curve(self, curve: CurveConfig, currency: Optional[str] = None, *indices: IborIndex) -> "CurveGroupConfig":
        entry = CurveGroupEntry(
            curve=curve,
            currencies=frozenset([currency]) if currency else frozenset(),
            indices=frozenset(i.name for i in indices),
        )
        return CurveGroupConfig(self.name, self.entries + (entry,))

    @property
    def curves(self) -> Tuple[CurveConfig, ...]:
        return tuple(e.curve for e in self.entries)

    def validate(self) -> None:
        """Raise InvalidConfigurationError if the group is malformed."""
        if not self.name:
            raise InvalidConfigurationError("Curve group name must not be empty.")
        if not self.entries:
            raise InvalidConfigurationError(f"Curve group '{self.name}' has no curves.")

        names = [e.curve.name for e in self.entries]
        if len(set(names)) != len(names):
            raise InvalidConfigurationError(f"Curve group '{self.name}' has duplicate curve names: {names}")

        seen_ccy, seen_idx = set(), set()
        for e in self.entries:
            e.curve.validate()
            if not e.currencies and not e.indices:
                raise InvalidConfigurationError(f"Curve '{e.curve.name}' provides no currency or index.")
            if seen_ccy & e.currencies or seen_idx & e.indices:
                raise InvalidConfigurationError(
                    f"Curve '{e.curve.name}' provides a currency or index already provided in '{self.name}'."
                )
            seen_ccy |= e.currencies
            seen_idx |= e.indices

        # every node has to be priceable against the group's own curves
        for e in self.entries:
            for node in e.curve.nodes:
                if node.template.currency not in seen_ccy:
                    raise InvalidConfigurationError(
                        f"Node '{node.name}' of curve '{e.curve.name}' needs a {node.template.currency} "
                        f"discount curve, which '{self.name}' does not provide."
                    )
                if node.template.index.name not in seen_idx:
                    raise InvalidConfigurationError(
                        f"Node '{node.name}' of curve '{e.curve.name}' needs a forward curve for "
                        f"{node.template.index.name}, which '{self.name}' does not provide."
                    )
