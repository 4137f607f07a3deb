import numpy as np
import pandas as pd
import pytest

from curve_calibration.calibration_instruments import CalibrationInstrumentAdapter
from curve_calibration.config import RootFinderConfig
from curve_calibration.curve_group import CurveGroup, CurveGroupMarketDataFunction
from curve_calibration.errors import FailureReason, InvalidMarketDataError, MissingMarketDataError
from curve_calibration.instruments import (
    GBP_LIBOR_3M,
    USD_FIXED_6M_LIBOR_3M,
    USD_LIBOR_3M,
    FixedIborSwapTemplate,
    FraTemplate,
)
from curve_calibration.market_data import (
    CurveGroupId,
    IndexRateId,
    MarketDataConfig,
    MarketDataFeed,
    MarketDataSnapshot,
    ParRates,
    ParRatesId,
    QuoteId,
    QuoteKey,
)
from curve_calibration.nodes import CurveConfig, CurveGroupConfig, CurveNode
from curve_calibration.root_finding import CancellationToken
from curve_calibration.transforms import LimitType, SingleRangeLimitTransform


TOLERANCE_PV = 5e-10
FEED = MarketDataFeed("TestFeed")

FRA_TENORS = [1, 2, 3, 6, 9, 12, 18]
FRA_RATES = [0.003, 0.0033, 0.0037, 0.0054, 0.007, 0.0091, 0.0134]


@pytest.fixture(scope="module")
def val_date():
    return pd.Timestamp("2011-03-08")


@pytest.fixture(scope="module")
def function():
    return CurveGroupMarketDataFunction()


def key(name):
    return QuoteKey("Ticker", name)


def fra_curve(name="FRA Curve", index=USD_LIBOR_3M, rates=None, **kwargs):
    rates = rates or [r / 100 for r in FRA_RATES]
    nodes = [CurveNode.fixed(FraTemplate(m, index), r, **kwargs) for m, r in zip(FRA_TENORS, rates)]
    return CurveConfig(name, nodes, "DOUBLE_QUADRATIC", "FLAT", "FLAT")


def assert_reprices(group, config, market_data, quotes=None):
    provider = group.rates_provider(market_data.valuation_date, market_data.time_series)
    adapter = CalibrationInstrumentAdapter()
    for curve in config.curves:
        for node in curve.nodes:
            pv = adapter.build_residual(node, market_data.valuation_date, quotes or {}, provider)
            assert abs(pv) < TOLERANCE_PV, f"{node.name} does not reprice: PV {pv:.3e}"


# ---- Scenario: fixed-rate FRA curve ----

@pytest.fixture(scope="module")
def fra_group():
    return CurveGroupConfig("Curve Group").with_curve(fra_curve(), "USD", USD_LIBOR_3M)


def test_fixed_fra_curve_reprices(function, fra_group, val_date):
    market_data = MarketDataSnapshot.empty(val_date)
    result = function.build_curve_group(fra_group, market_data, MarketDataFeed.NONE)

    assert result.is_success, result.failure
    group = result.value
    assert isinstance(group, CurveGroup)
    assert group.discount_curve("USD") is group.forward_curve(USD_LIBOR_3M.name)
    assert list(group.curves) == ["FRA Curve"]
    assert len(group.discount_curve("USD").knot_dates) == len(FRA_TENORS)
    assert_reprices(group, fra_group, market_data)


def test_calibration_is_deterministic(function, fra_group, val_date):
    market_data = MarketDataSnapshot.empty(val_date)
    a = function.build_curve_group(fra_group, market_data).value.discount_curve("USD")
    b = function.build_curve_group(fra_group, market_data).value.discount_curve("USD")
    assert np.array_equal(a.knot_zero_rates, b.knot_zero_rates)


def test_node_declaration_order_does_not_matter(function, val_date):
    rates = [r / 100 for r in FRA_RATES]
    shuffled = [6, 2, 0, 5, 3, 1, 4]
    nodes = [CurveNode.fixed(FraTemplate(FRA_TENORS[i], USD_LIBOR_3M), rates[i]) for i in shuffled]
    config = CurveGroupConfig("Shuffled").with_curve(CurveConfig("FRA Curve", nodes, "DOUBLE_QUADRATIC"), "USD", USD_LIBOR_3M)
    market_data = MarketDataSnapshot.empty(val_date)

    result = function.build_curve_group(config, market_data)
    assert result.is_success, result.failure
    assert_reprices(result.value, config, market_data)

    knot_dates = pd.to_datetime(result.value.discount_curve("USD").knot_dates)
    assert knot_dates.is_monotonic_increasing


def test_bounded_parameters_calibrate(function, val_date):
    positive = SingleRangeLimitTransform(0.0, LimitType.GREATER_THAN)
    config = CurveGroupConfig("Bounded").with_curve(
        fra_curve(rates=FRA_RATES, transform=positive), "USD", USD_LIBOR_3M
    )
    market_data = MarketDataSnapshot.empty(val_date)

    result = function.build_curve_group(config, market_data)
    assert result.is_success, result.failure
    assert np.all(result.value.discount_curve("USD").knot_zero_rates > 0.0)
    assert_reprices(result.value, config, market_data)


def test_two_independent_curves(function, val_date):
    config = (
        CurveGroupConfig("Two Currencies")
        .with_curve(fra_curve("USD Curve", USD_LIBOR_3M, FRA_RATES), "USD", USD_LIBOR_3M)
        .with_curve(fra_curve("GBP Curve", GBP_LIBOR_3M, [r + 0.002 for r in FRA_RATES]), "GBP", GBP_LIBOR_3M)
    )
    market_data = MarketDataSnapshot.empty(val_date)

    result = function.build_curve_group(config, market_data)
    assert result.is_success, result.failure
    group = result.value
    assert group.discount_curve("USD").name == "USD Curve"
    assert group.forward_curve(GBP_LIBOR_3M.name).name == "GBP Curve"
    assert_reprices(group, config, market_data)


# ---- Scenario: FRAs and swaps from market quotes ----

QUOTES = {
    key("fra3x6"): 0.0037,
    key("fra6x9"): 0.0054,
    key("swap1y"): 0.005,
    key("swap2y"): 0.0087,
    key("swap3y"): 0.012,
}


@pytest.fixture(scope="module")
def swap_group():
    nodes = [
        CurveNode.quoted(FraTemplate(3, USD_LIBOR_3M), key("fra3x6")),
        CurveNode.quoted(FraTemplate(6, USD_LIBOR_3M), key("fra6x9")),
        CurveNode.quoted(FixedIborSwapTemplate(0, 1, USD_FIXED_6M_LIBOR_3M), key("swap1y")),
        CurveNode.quoted(FixedIborSwapTemplate(0, 2, USD_FIXED_6M_LIBOR_3M), key("swap2y")),
        CurveNode.quoted(FixedIborSwapTemplate(0, 3, USD_FIXED_6M_LIBOR_3M), key("swap3y")),
    ]
    curve = CurveConfig("FRA and Fixed-Float Swap Curve", nodes, "DOUBLE_QUADRATIC", "FLAT", "FLAT")
    return CurveGroupConfig("Curve Group").with_curve(curve, "USD", USD_LIBOR_3M)


@pytest.fixture(scope="module")
def swap_market_data(val_date):
    par_rates_id = ParRatesId("Curve Group", "FRA and Fixed-Float Swap Curve", FEED)
    return MarketDataSnapshot(val_date, {par_rates_id: ParRates.of({QuoteId(k, FEED): v for k, v in QUOTES.items()})})


def test_fra_and_swap_curve_reprices(function, swap_group, swap_market_data):
    result = function.build_curve_group(swap_group, swap_market_data, FEED)
    assert result.is_success, result.failure
    assert_reprices(result.value, swap_group, swap_market_data, QUOTES)


def test_build_through_market_data_config(function, swap_group, swap_market_data):
    config = MarketDataConfig.of(swap_group)
    result = function.build(CurveGroupId("Curve Group", FEED), swap_market_data, config)
    assert result.is_success, result.failure

    with_group = swap_market_data.with_value(CurveGroupId("Curve Group", FEED), result.value)
    assert with_group.get_value(CurveGroupId("Curve Group", FEED)) is result.value

    unknown = function.build(CurveGroupId("Other Group", FEED), swap_market_data, config)
    assert unknown.failure.reason is FailureReason.INVALID_CONFIGURATION


def test_missing_par_rates_is_missing_data(function, swap_group, val_date):
    result = function.build_curve_group(swap_group, MarketDataSnapshot.empty(val_date), FEED)
    assert result.is_failure
    assert result.failure.reason is FailureReason.MISSING_DATA
    assert "FRA and Fixed-Float Swap Curve" in result.failure.message


def test_wrong_feed_is_missing_data(function, swap_group, swap_market_data):
    result = function.build_curve_group(swap_group, swap_market_data, MarketDataFeed.NONE)
    assert result.failure.reason is FailureReason.MISSING_DATA


def test_missing_quote_in_bundle_is_missing_data(function, swap_group, val_date):
    partial = {k: v for k, v in QUOTES.items() if k != key("swap2y")}
    par_rates_id = ParRatesId("Curve Group", "FRA and Fixed-Float Swap Curve", FEED)
    market_data = MarketDataSnapshot(val_date, {par_rates_id: ParRates.of(partial)})

    result = function.build_curve_group(swap_group, market_data, FEED)
    assert result.failure.reason is FailureReason.MISSING_DATA
    assert "swap2y" in result.failure.message


def test_iteration_budget_is_convergence_failure(swap_group, swap_market_data):
    function = CurveGroupMarketDataFunction(RootFinderConfig(absolute_tolerance=1e-16, max_steps=1))
    result = function.build_curve_group(swap_group, swap_market_data, FEED)
    assert result.failure.reason is FailureReason.CONVERGENCE_FAILURE


def test_cancelled_calibration(function, swap_group, swap_market_data):
    token = CancellationToken()
    token.cancel()
    result = function.build_curve_group(swap_group, swap_market_data, FEED, cancellation=token)
    assert result.failure.reason is FailureReason.CANCELLED


# ---- malformed configurations ----

def test_curve_without_nodes_is_invalid(function, val_date):
    config = CurveGroupConfig("Empty").with_curve(CurveConfig("Empty Curve", []), "USD", USD_LIBOR_3M)
    result = function.build_curve_group(config, MarketDataSnapshot.empty(val_date))
    assert result.failure.reason is FailureReason.INVALID_CONFIGURATION


def test_duplicate_node_dates_are_invalid(function, val_date):
    nodes = [
        CurveNode.fixed(FraTemplate(3, USD_LIBOR_3M), 0.004, label="first"),
        CurveNode.fixed(FraTemplate(3, USD_LIBOR_3M), 0.005, label="second"),
    ]
    config = CurveGroupConfig("Duplicates").with_curve(CurveConfig("Curve", nodes), "USD", USD_LIBOR_3M)
    result = function.build_curve_group(config, MarketDataSnapshot.empty(val_date))
    assert result.failure.reason is FailureReason.INVALID_CONFIGURATION


def test_guess_outside_parameter_limits_is_invalid(function, val_date):
    positive = SingleRangeLimitTransform(0.0, LimitType.GREATER_THAN)
    config = CurveGroupConfig("Negative").with_curve(
        fra_curve(rates=[-r for r in FRA_RATES], transform=positive), "USD", USD_LIBOR_3M
    )
    result = function.build_curve_group(config, MarketDataSnapshot.empty(val_date))
    assert result.failure.reason is FailureReason.INVALID_CONFIGURATION


def test_node_set_by_todays_fixing_is_invalid(function, val_date):
    spot_fra = CurveNode.fixed(FraTemplate(0, USD_LIBOR_3M), 0.00002)
    curve = fra_curve()
    config = CurveGroupConfig("Spot FRA").with_curve(
        CurveConfig(curve.name, (spot_fra,) + curve.nodes, curve.interpolator), "USD", USD_LIBOR_3M
    )

    projected = MarketDataSnapshot.empty(val_date)
    result = function.build_curve_group(config, projected)
    assert result.is_success, result.failure
    assert_reprices(result.value, config, projected)

    fixed_today = MarketDataSnapshot(val_date, time_series={USD_LIBOR_3M.name: pd.Series([0.003], index=[val_date])})
    result = function.build_curve_group(config, fixed_today)
    assert result.failure.reason is FailureReason.INVALID_CONFIGURATION
    assert "fixing" in result.failure.message


def test_group_without_discount_curve_is_invalid(function, val_date):
    config = CurveGroupConfig("Forward Only").with_curve(fra_curve(), None, USD_LIBOR_3M)
    result = function.build_curve_group(config, MarketDataSnapshot.empty(val_date))
    assert result.failure.reason is FailureReason.INVALID_CONFIGURATION
    assert "USD discount curve" in result.failure.message


def test_mistyped_par_rates_is_failure_result(function, swap_group, val_date):
    par_rates_id = ParRatesId("Curve Group", "FRA and Fixed-Float Swap Curve", FEED)
    market_data = MarketDataSnapshot(val_date, {par_rates_id: {"not": "par rates"}})

    result = function.build_curve_group(swap_group, market_data, FEED)
    assert result.is_failure
    assert result.failure.reason is FailureReason.MISSING_DATA
    assert "expected ParRates" in result.failure.message


def test_calibrated_group_is_read_only(function, fra_group, val_date):
    group = function.build_curve_group(fra_group, MarketDataSnapshot.empty(val_date)).value
    curve = group.discount_curve("USD")
    before = curve.knot_zero_rates.copy()

    with pytest.raises(ValueError):
        curve.knot_zero_rates[0] = 0.5
    with pytest.raises(TypeError):
        group.discount_curves["GBP"] = curve
    np.testing.assert_array_equal(group.discount_curve("USD").knot_zero_rates, before)


# ---- snapshot lookups ----

def test_snapshot_lookups_are_typed(val_date):
    quote_id = QuoteId(key("fra3x6"), FEED)
    fixings = pd.Series([0.0031], index=[pd.Timestamp("2011-03-07")])
    market_data = MarketDataSnapshot(val_date, {quote_id: 0.0037}, {USD_LIBOR_3M.name: fixings})

    assert market_data.get_value(quote_id) == 0.0037
    assert market_data.get_value(IndexRateId(USD_LIBOR_3M.name)) is fixings
    assert market_data.contains(IndexRateId(USD_LIBOR_3M.name))

    with pytest.raises(MissingMarketDataError):
        market_data.get_value(QuoteId(key("fra6x9"), FEED))
    with pytest.raises(MissingMarketDataError):
        market_data.get_time_series(GBP_LIBOR_3M.name)

    mistyped = market_data.with_value(ParRatesId("Curve Group", "Curve", FEED), 0.5)
    with pytest.raises(InvalidMarketDataError):
        mistyped.get_value(ParRatesId("Curve Group", "Curve", FEED))
