"""
Rate indices, FRA and fixed-for-Ibor swap templates, and the trades they
expand to on a valuation date.

Dates are pandas Timestamps. Business days exclude weekends only.
"""
from __future__ import annotations

import pandas as pd
from dataclasses import dataclass
from typing import Optional, Tuple

from .utils import (
    add_business_days,
    add_months,
    adjust_business_day,
    cached_schedule,
    yearfrac,
)


@dataclass(frozen=True)
class IborIndex:
    name: str
    currency: str
    tenor_months: int
    day_count: str = "ACT/360"
    fixing_lag_days: int = 2        # business days from fixing to effective date
    roll_convention: str = "MODIFIED_FOLLOWING"

    def fixing_date(self, effective_date: pd.Timestamp) -> pd.Timestamp:
        return add_business_days(effective_date, -self.fixing_lag_days)

    def observation(self, effective_date: pd.Timestamp) -> "IborRateObservation":
        fixing = self.fixing_date(effective_date)
        effective = add_business_days(fixing, self.fixing_lag_days)
        maturity = adjust_business_day(add_months(effective, self.tenor_months), self.roll_convention)
        return IborRateObservation(
            index=self,
            fixing_date=fixing,
            effective_date=effective,
            maturity_date=maturity,
            year_fraction=yearfrac(effective, maturity, self.day_count),
        )


USD_LIBOR_3M = IborIndex("USD-LIBOR-3M", "USD", 3, "ACT/360", 2)
GBP_LIBOR_3M = IborIndex("GBP-LIBOR-3M", "GBP", 3, "ACT/365F", 0)
EUR_EURIBOR_6M = IborIndex("EUR-EURIBOR-6M", "EUR", 6, "ACT/360", 2)


@dataclass(frozen=True)
class IborRateObservation:
    """One fixing of an index and the deposit period it refers to."""
    index: IborIndex
    fixing_date: pd.Timestamp
    effective_date: pd.Timestamp
    maturity_date: pd.Timestamp
    year_fraction: float


# ---------- Trades ----------

@dataclass(frozen=True)
class FraTrade:
    """
    Forward rate agreement. Positive notional = buy (pay fixed, receive index).
    Settled at the start date with ISDA discounting.
    """
    index: IborIndex
    start_date: pd.Timestamp
    end_date: pd.Timestamp
    fixed_rate: float
    notional: float
    day_count: str
    observation: IborRateObservation

    @property
    def currency(self) -> str:
        return self.index.currency

    @property
    def payment_date(self) -> pd.Timestamp:
        return self.start_date

    @property
    def year_fraction(self) -> float:
        return yearfrac(self.start_date, self.end_date, self.day_count)


@dataclass(frozen=True)
class FixedRatePeriod:
    start_date: pd.Timestamp
    end_date: pd.Timestamp
    payment_date: pd.Timestamp
    year_fraction: float
    rate: float
    notional: float


@dataclass(frozen=True)
class IborRatePeriod:
    start_date: pd.Timestamp
    end_date: pd.Timestamp
    payment_date: pd.Timestamp
    year_fraction: float
    observation: IborRateObservation
    notional: float


@dataclass(frozen=True)
class SwapLeg:
    """Notional sign gives direction: positive = receive, negative = pay."""
    currency: str
    periods: Tuple

    @property
    def end_date(self) -> pd.Timestamp:
        return self.periods[-1].end_date


@dataclass(frozen=True)
class SwapTrade:
    fixed_leg: SwapLeg
    floating_leg: SwapLeg

    @property
    def currency(self) -> str:
        return self.fixed_leg.currency

    @property
    def end_date(self) -> pd.Timestamp:
        return max(self.fixed_leg.end_date, self.floating_leg.end_date)


# ---------- Templates ----------

@dataclass(frozen=True)
class FraTemplate:
    """
    FRA starting `months_to_start` after spot and ending `months_to_end`
    after spot (default: start + index tenor), e.g. 3x6 on a 3M index.
    """
    months_to_start: int
    index: IborIndex
    months_to_end: Optional[int] = None
    spot_lag_days: int = 2
    roll_convention: str = "MODIFIED_FOLLOWING"

    def __post_init__(self):
        if self.months_to_start < 0:
            raise ValueError("months_to_start must be non-negative")
        if self.months_to_end is None:
            object.__setattr__(self, "months_to_end", self.months_to_start + self.index.tenor_months)
        if self.months_to_end <= self.months_to_start:
            raise ValueError("months_to_end must be after months_to_start")

    @property
    def currency(self) -> str:
        return self.index.currency

    @property
    def label(self) -> str:
        return f"{self.index.name} FRA {self.months_to_start}x{self.months_to_end}"

    def dates(self, valuation_date: pd.Timestamp) -> Tuple[pd.Timestamp, pd.Timestamp]:
        spot = add_business_days(valuation_date, self.spot_lag_days)
        start = adjust_business_day(add_months(spot, self.months_to_start), self.roll_convention)
        end = adjust_business_day(add_months(spot, self.months_to_end), self.roll_convention)
        return start, end

    def node_date(self, valuation_date: pd.Timestamp) -> pd.Timestamp:
        return self.dates(valuation_date)[1]

    def to_trade(self, valuation_date: pd.Timestamp, fixed_rate: float, notional: float = 1.0) -> FraTrade:
        start, end = self.dates(valuation_date)
        return FraTrade(
            index=self.index,
            start_date=start,
            end_date=end,
            fixed_rate=float(fixed_rate),
            notional=float(notional),
            day_count=self.index.day_count,
            observation=self.index.observation(start),
        )


@dataclass(frozen=True)
class FixedRateSwapLegConvention:
    currency: str
    day_count: str
    period_months: int
    roll_convention: str = "MODIFIED_FOLLOWING"


@dataclass(frozen=True)
class FixedIborSwapConvention:
    fixed_leg: FixedRateSwapLegConvention
    index: IborIndex
    spot_lag_days: int = 2

    @property
    def floating_period_months(self) -> int:
        return self.index.tenor_months


USD_FIXED_6M_LIBOR_3M = FixedIborSwapConvention(
    FixedRateSwapLegConvention("USD", "ACT/360", 6),
    USD_LIBOR_3M,
)


@dataclass(frozen=True)
class FixedIborSwapTemplate:
    """Swap starting `months_to_start` after spot, running `tenor_years`."""
    months_to_start: int
    tenor_years: int
    convention: FixedIborSwapConvention

    def __post_init__(self):
        if self.months_to_start < 0:
            raise ValueError("months_to_start must be non-negative")
        if self.tenor_years <= 0:
            raise ValueError("tenor_years must be positive")

    @property
    def currency(self) -> str:
        return self.convention.fixed_leg.currency

    @property
    def index(self) -> IborIndex:
        return self.convention.index

    @property
    def label(self) -> str:
        return f"{self.convention.index.name} swap {self.tenor_years}Y"

    def _unadjusted_dates(self, valuation_date: pd.Timestamp) -> Tuple[pd.Timestamp, pd.Timestamp]:
        spot = add_business_days(valuation_date, self.convention.spot_lag_days)
        start = add_months(spot, self.months_to_start)
        return start, add_months(start, 12 * self.tenor_years)

    def node_date(self, valuation_date: pd.Timestamp) -> pd.Timestamp:
        _, end = self._unadjusted_dates(valuation_date)
        return adjust_business_day(end, self.convention.fixed_leg.roll_convention)

    def to_trade(self, valuation_date: pd.Timestamp, fixed_rate: float, notional: float = 1.0) -> SwapTrade:
        """Buy = pay fixed, receive floating."""
        start, end = self._unadjusted_dates(valuation_date)
        fixed_conv = self.convention.fixed_leg
        index = self.convention.index

        fixed_dates = cached_schedule(start, end, fixed_conv.period_months, fixed_conv.roll_convention)
        fixed_periods = tuple(
            FixedRatePeriod(
                start_date=s,
                end_date=e,
                payment_date=e,
                year_fraction=yearfrac(s, e, fixed_conv.day_count),
                rate=float(fixed_rate),
                notional=-float(notional),
            )
            for s, e in zip(fixed_dates[:-1], fixed_dates[1:])
        )

        float_dates = cached_schedule(start, end, self.convention.floating_period_months, index.roll_convention)
        float_periods = tuple(
            IborRatePeriod(
                start_date=s,
                end_date=e,
                payment_date=e,
                year_fraction=yearfrac(s, e, index.day_count),
                observation=index.observation(s),
                notional=float(notional),
            )
            for s, e in zip(float_dates[:-1], float_dates[1:])
        )

        return SwapTrade(
            fixed_leg=SwapLeg(fixed_conv.currency, fixed_periods),
            floating_leg=SwapLeg(index.currency, float_periods),
        )
