from __future__ import annotations

import numpy as np
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from .errors import InvalidConfigurationError
from .instruments import FixedRatePeriod, FraTrade, IborRatePeriod, SwapLeg, SwapTrade
from .rates import RatesProvider


@dataclass(frozen=True)
class CurrencyAmount:
    currency: str
    amount: float


class DiscountingFraPricer:
    """
    FRA present value with ISDA discounting, paid at the start date:

        PV = N * yf * (F - K) / (1 + yf * F) * D(start)
    """

    def forward_rate(self, trade: FraTrade, provider: RatesProvider) -> float:
        return provider.ibor_rate(trade.observation)

    def par_rate(self, trade: FraTrade, provider: RatesProvider) -> float:
        return self.forward_rate(trade, provider)

    def present_value(self, trade: FraTrade, provider: RatesProvider) -> CurrencyAmount:
        yf = trade.year_fraction
        fwd = self.forward_rate(trade, provider)
        df = provider.discount_factor(trade.currency, trade.payment_date)
        pv = trade.notional * yf * (fwd - trade.fixed_rate) / (1.0 + yf * fwd) * df
        return CurrencyAmount(trade.currency, float(pv))


class DiscountingSwapPricer:
    """Sum of discounted period cashflows over both legs, in the fixed leg currency."""

    def _period_rate(self, period, provider: RatesProvider) -> float:
        if isinstance(period, FixedRatePeriod):
            return period.rate
        if isinstance(period, IborRatePeriod):
            return provider.ibor_rate(period.observation)
        raise TypeError(f"Unsupported swap period: {type(period).__name__}")

    def leg_present_value(self, leg: SwapLeg, provider: RatesProvider) -> float:
        pay_dates = [p.payment_date for p in leg.periods]
        dfs = provider.discount_factors(leg.currency, pay_dates)
        cfs = np.array(
            [p.notional * p.year_fraction * self._period_rate(p, provider) for p in leg.periods],
            dtype=float,
        )
        return float(np.sum(cfs * dfs))

    def present_value(self, trade: SwapTrade, provider: RatesProvider) -> CurrencyAmount:
        if trade.fixed_leg.currency != trade.floating_leg.currency:
            raise InvalidConfigurationError("Cross-currency swaps are not supported.")
        pv = self.leg_present_value(trade.fixed_leg, provider) + self.leg_present_value(trade.floating_leg, provider)
        return CurrencyAmount(trade.currency, pv)

    def par_rate(self, trade: SwapTrade, provider: RatesProvider) -> float:
        """Fixed rate that sets PV to zero: floating PV over fixed leg annuity."""
        fixed = trade.fixed_leg
        dfs = provider.discount_factors(fixed.currency, [p.payment_date for p in fixed.periods])
        annuity = float(np.sum(np.array([-p.notional * p.year_fraction for p in fixed.periods]) * dfs))
        if annuity == 0.0:
            raise ValueError("Zero fixed leg annuity.")
        return self.leg_present_value(trade.floating_leg, provider) / annuity


class TradePricers:
    """
    Pricers by trade type. Passed explicitly to whatever needs to price,
    so tests and callers can substitute their own.
    """

    def __init__(self, pricers: Optional[Mapping[type, Any]] = None):
        self._pricers: Mapping[type, Any] = MappingProxyType(dict(pricers or {}))

    @classmethod
    def standard(cls) -> "TradePricers":
        return cls({FraTrade: DiscountingFraPricer(), SwapTrade: DiscountingSwapPricer()})

    def with_pricer(self, trade_type: type, pricer) -> "TradePricers":
        pricers: Dict[type, Any] = dict(self._pricers)
        pricers[trade_type] = pricer
        return TradePricers(pricers)

    def pricer_for(self, trade):
        try:
            return self._pricers[type(trade)]
        except KeyError:
            raise InvalidConfigurationError(f"No pricer registered for {type(trade).__name__}") from None

    def present_value(self, trade, provider: RatesProvider) -> CurrencyAmount:
        return self.pricer_for(trade).present_value(trade, provider)

    def par_rate(self, trade, provider: RatesProvider) -> float:
        return self.pricer_for(trade).par_rate(trade, provider)
