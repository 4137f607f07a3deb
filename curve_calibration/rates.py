from __future__ import annotations

import numpy as np
import pandas as pd
from types import MappingProxyType
from typing import TYPE_CHECKING, Iterable, Mapping, Optional

from .errors import MissingMarketDataError

if TYPE_CHECKING:
    from .curves import ZeroCurve
    from .instruments import IborRateObservation


class RatesProvider:
    """
    Read-only view over a set of curves for pricing.

    discount_curves: currency -> curve used for discounting.
    forward_curves: index name -> curve used to project that index.
    time_series: index name -> fixings (pd.Series indexed by date).

    Fixings before the valuation date must come from the time series. On the
    valuation date a fixing is used when present, otherwise the rate is
    projected from the forward curve.
    """

    def __init__(
        self,
        valuation_date: pd.Timestamp,
        discount_curves: Mapping[str, "ZeroCurve"],
        forward_curves: Mapping[str, "ZeroCurve"],
        time_series: Optional[Mapping[str, pd.Series]] = None,
    ):
        self.valuation_date = pd.Timestamp(valuation_date).normalize()
        self.discount_curves = MappingProxyType(dict(discount_curves))
        self.forward_curves = MappingProxyType(dict(forward_curves))
        self.time_series = MappingProxyType(dict(time_series or {}))

    def _discount_curve(self, currency: str) -> "ZeroCurve":
        try:
            return self.discount_curves[currency]
        except KeyError:
            raise MissingMarketDataError(f"No discount curve for {currency}") from None

    def _forward_curve(self, index_name: str) -> "ZeroCurve":
        try:
            return self.forward_curves[index_name]
        except KeyError:
            raise MissingMarketDataError(f"No forward curve for {index_name}") from None

    def discount_factors(self, currency: str, dates: Iterable[pd.Timestamp]) -> np.ndarray:
        return self._discount_curve(currency).df(list(dates))

    def discount_factor(self, currency: str, date: pd.Timestamp) -> float:
        return float(self.discount_factors(currency, [date])[0])

    def _fixing(self, index_name: str, fixing_date: pd.Timestamp) -> Optional[float]:
        series = self.time_series.get(index_name)
        if series is None or len(series) == 0:
            return None
        value = series.get(pd.Timestamp(fixing_date))
        return None if value is None or pd.isna(value) else float(value)

    def is_fixed(self, observation: "IborRateObservation") -> bool:
        """True when the observed rate comes from a fixing rather than a forward curve."""
        fixing_date = pd.Timestamp(observation.fixing_date)
        if fixing_date < self.valuation_date:
            return True
        if fixing_date == self.valuation_date:
            return self._fixing(observation.index.name, fixing_date) is not None
        return False

    def ibor_rate(self, observation: "IborRateObservation") -> float:
        index = observation.index
        fixing_date = pd.Timestamp(observation.fixing_date)

        if fixing_date < self.valuation_date:
            fixing = self._fixing(index.name, fixing_date)
            if fixing is None:
                raise MissingMarketDataError(f"No fixing for {index.name} on {fixing_date.date()}")
            return fixing

        if fixing_date == self.valuation_date:
            fixing = self._fixing(index.name, fixing_date)
            if fixing is not None:
                return fixing

        curve = self._forward_curve(index.name)
        df_start, df_end = curve.df([observation.effective_date, observation.maturity_date])
        return float((df_start / df_end - 1.0) / observation.year_fraction)
