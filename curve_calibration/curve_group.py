"""
Curve group calibration.

Builds every curve of a group at once: one model parameter (zero rate at
the node date) and one residual (PV of the node's trade) per node, solved
simultaneously with a Newton root finder.

Architecture:
    config + market data -> requirements check -> quotes -> trades
        -> residual(params) = PVs against curves(params)
        -> parameter transforms -> Newton -> CurveGroup
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional

import numpy as np
import pandas as pd

from .calibration_instruments import CalibrationInstrumentAdapter
from .config import RootFinderConfig
from .curves import ZeroCurve, build_curve
from .differentiation import VectorFieldFirstOrderDifferentiator
from .errors import CalibrationError, InvalidConfigurationError, MissingMarketDataError
from .instruments import FraTrade
from .market_data import (
    CurveGroupId,
    MarketDataConfig,
    MarketDataFeed,
    MarketDataRequirements,
    MarketDataSnapshot,
    ParRatesId,
    quotes_from,
)
from .nodes import CurveGroupConfig
from .pricers import TradePricers
from .rates import RatesProvider
from .requirements import curve_group_requirements
from .result import Result
from .root_finding import CancellationToken, NewtonVectorRootFinder
from .transforms import NonLinearTransformFunction, UncoupledParameterTransforms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurveGroup:
    """Calibrated curves of a group, by discount currency and by index name."""
    name: str
    discount_curves: Mapping[str, ZeroCurve]
    forward_curves: Mapping[str, ZeroCurve]

    def __post_init__(self):
        object.__setattr__(self, "discount_curves", MappingProxyType(dict(self.discount_curves)))
        object.__setattr__(self, "forward_curves", MappingProxyType(dict(self.forward_curves)))

    @property
    def curves(self) -> Dict[str, ZeroCurve]:
        """Distinct curves by curve name."""
        out: Dict[str, ZeroCurve] = {}
        for c in list(self.discount_curves.values()) + list(self.forward_curves.values()):
            out[c.name] = c
        return out

    def discount_curve(self, currency: str) -> Optional[ZeroCurve]:
        return self.discount_curves.get(currency)

    def forward_curve(self, index_name: str) -> Optional[ZeroCurve]:
        return self.forward_curves.get(index_name)

    def rates_provider(
        self,
        valuation_date: pd.Timestamp,
        time_series: Optional[Mapping[str, pd.Series]] = None,
    ) -> RatesProvider:
        return RatesProvider(valuation_date, self.discount_curves, self.forward_curves, time_series)


CurveFactory = Callable[..., ZeroCurve]


class CurveGroupMarketDataFunction:
    """
    Declares the market data a curve group needs and calibrates it.

    Example:
        >>> function = CurveGroupMarketDataFunction(RootFinderConfig.defaults())
        >>> result = function.build_curve_group(group_config, market_data, MarketDataFeed.NONE)
        >>> if result.is_success:
        ...     provider = result.value.rates_provider(market_data.valuation_date)
    """

    def __init__(
        self,
        root_finder_config: Optional[RootFinderConfig] = None,
        pricers: Optional[TradePricers] = None,
        curve_factory: CurveFactory = build_curve,
        differentiator: Optional[VectorFieldFirstOrderDifferentiator] = None,
    ):
        self.root_finder_config = root_finder_config or RootFinderConfig.defaults()
        self.adapter = CalibrationInstrumentAdapter(pricers or TradePricers.standard())
        self.curve_factory = curve_factory
        self.differentiator = differentiator or VectorFieldFirstOrderDifferentiator()
        self.root_finder = NewtonVectorRootFinder(self.root_finder_config, self.differentiator)

    # ---- requirements ----

    def requirements(self, curve_group_id: CurveGroupId, market_data_config: MarketDataConfig) -> MarketDataRequirements:
        """Raises InvalidConfigurationError for unknown or malformed groups."""
        config = market_data_config.curve_group(curve_group_id.name)
        return curve_group_requirements(config, curve_group_id.feed)

    # ---- building ----

    def build(
        self,
        curve_group_id: CurveGroupId,
        market_data: MarketDataSnapshot,
        market_data_config: MarketDataConfig,
        cancellation: Optional[CancellationToken] = None,
    ) -> Result[CurveGroup]:
        try:
            config = market_data_config.curve_group(curve_group_id.name)
        except InvalidConfigurationError as e:
            return Result.from_error(e)
        return self.build_curve_group(config, market_data, curve_group_id.feed, cancellation)

    def build_curve_group(
        self,
        config: CurveGroupConfig,
        market_data: MarketDataSnapshot,
        feed: MarketDataFeed = MarketDataFeed.NONE,
        cancellation: Optional[CancellationToken] = None,
    ) -> Result[CurveGroup]:
        """
        Calibrate all curves of `config` against `market_data`.

        Expected failures (missing data, bad configuration, singular or
        non-converging solve, cancellation) come back as failure results.
        """
        t0 = time.perf_counter()
        logger.info("Calibrating curve group '%s' on %s", config.name, market_data.valuation_date.date())
        try:
            result = self._build(config, market_data, feed, cancellation)
        except CalibrationError as e:
            result = Result.from_error(e)

        elapsed_ms = (time.perf_counter() - t0) * 1000.0
        if result.is_success:
            logger.info("Calibrated curve group '%s' in %.1f ms", config.name, elapsed_ms)
        else:
            logger.warning("Calibration of curve group '%s' failed: %s", config.name, result.failure)
        return result

    def _build(
        self,
        config: CurveGroupConfig,
        market_data: MarketDataSnapshot,
        feed: MarketDataFeed,
        cancellation: Optional[CancellationToken],
    ) -> Result[CurveGroup]:
        val_date = market_data.valuation_date

        # STEP 1: requirements present
        requirements = curve_group_requirements(config, feed)
        missing = [
            r for r in sorted(requirements.observables | requirements.non_observables, key=str)
            if not market_data.contains(r)
        ]
        if missing:
            raise MissingMarketDataError(
                f"Market data missing for curve group '{config.name}': " + ", ".join(str(m) for m in missing)
            )

        # STEP 2: quotes, trades and initial guess in declared node order
        entries = config.entries
        nodes = []
        trades = []
        guess: List[float] = []
        node_dates: List[List[pd.Timestamp]] = []
        for entry in entries:
            curve = entry.curve
            quotes = quotes_from(market_data, ParRatesId(config.name, curve.name, feed)) if curve.requires_market_data else {}
            dates = []
            for node in curve.nodes:
                nodes.append(node)
                trades.append(self.adapter.build_trade(node, val_date, quotes))
                guess.append(node.rate(quotes))
                dates.append(node.node_date(val_date))
            node_dates.append(dates)

        sizes = [len(e.curve.nodes) for e in entries]
        offsets = np.cumsum([0] + sizes)

        def curves_for(params: np.ndarray) -> List[ZeroCurve]:
            return [
                self.curve_factory(
                    val_date,
                    e.curve.name,
                    node_dates[k],
                    params[offsets[k]:offsets[k + 1]],
                    e.curve.interpolator,
                    e.curve.left_extrapolator,
                    e.curve.right_extrapolator,
                )
                for k, e in enumerate(entries)
            ]

        def group_for(params: np.ndarray) -> CurveGroup:
            curves = curves_for(params)
            discount: Dict[str, ZeroCurve] = {}
            forward: Dict[str, ZeroCurve] = {}
            for e, c in zip(entries, curves):
                for ccy in e.currencies:
                    discount[ccy] = c
                for idx in e.indices:
                    forward[idx] = c
            return CurveGroup(config.name, discount, forward)

        def residuals(params: np.ndarray) -> np.ndarray:
            provider = group_for(np.asarray(params, dtype=float)).rates_provider(val_date, market_data.time_series)
            return np.array([self.adapter.residual(t, provider) for t in trades], dtype=float)

        start_model = np.array(guess, dtype=float)
        # surfaces bad interpolators / duplicate node dates before solving
        start_provider = group_for(start_model).rates_provider(val_date, market_data.time_series)
        for node, trade in zip(nodes, trades):
            if isinstance(trade, FraTrade) and start_provider.is_fixed(trade.observation):
                raise InvalidConfigurationError(
                    f"Node '{node.name}' in curve group '{config.name}' is set by the "
                    f"{trade.index.name} fixing on {trade.observation.fixing_date.date()} "
                    "and carries no curve information."
                )

        # STEP 3: reparametrise
        transforms = UncoupledParameterTransforms(start_model, [n.transform for n in nodes])
        try:
            start = transforms.transform(start_model)
        except ValueError as e:
            raise InvalidConfigurationError(f"Initial guess outside a node's parameter limits: {e}") from e

        function = NonLinearTransformFunction(residuals, self.differentiator.differentiate(residuals), transforms)

        # STEP 4: solve
        solved = self.root_finder.solve(function.fitting_function, function.fitting_jacobian, start, cancellation)
        if solved.is_failure:
            return solved

        group = group_for(transforms.inverse_transform(solved.value))
        self._log_repricing(config, nodes, trades, group, market_data)
        return Result.success(group)

    def _log_repricing(self, config, nodes, trades, group: CurveGroup, market_data: MarketDataSnapshot) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        provider = group.rates_provider(market_data.valuation_date, market_data.time_series)
        for node, trade in zip(nodes, trades):
            logger.debug("%s / %s: PV %.3e", config.name, node.name, self.adapter.residual(trade, provider))
