from __future__ import annotations

import pandas as pd
from typing import Mapping, Optional

from .market_data import QuoteKey
from .nodes import CurveNode
from .pricers import TradePricers
from .rates import RatesProvider


class CalibrationInstrumentAdapter:
    """
    Turns a curve node into its calibration residual: the present value of
    the unit-notional trade the node describes, priced against a candidate
    set of curves.
    """

    def __init__(self, pricers: Optional[TradePricers] = None):
        self.pricers = pricers or TradePricers.standard()

    def build_trade(self, node: CurveNode, valuation_date: pd.Timestamp, quotes: Mapping[QuoteKey, float]):
        """Raises MissingMarketDataError when a market-quote node has no quote."""
        return node.build_trade(valuation_date, quotes)

    def build_residual(
        self,
        node: CurveNode,
        valuation_date: pd.Timestamp,
        quotes: Mapping[QuoteKey, float],
        provider: RatesProvider,
    ) -> float:
        trade = self.build_trade(node, valuation_date, quotes)
        return self.residual(trade, provider)

    def residual(self, trade, provider: RatesProvider) -> float:
        return self.pricers.present_value(trade, provider).amount
