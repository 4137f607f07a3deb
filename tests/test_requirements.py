import pytest

from curve_calibration.curve_group import CurveGroupMarketDataFunction
from curve_calibration.errors import InvalidConfigurationError
from curve_calibration.instruments import GBP_LIBOR_3M, USD_LIBOR_3M, FraTemplate
from curve_calibration.market_data import (
    CurveGroupId,
    MarketDataConfig,
    MarketDataFeed,
    ParRatesId,
    QuoteId,
    QuoteKey,
)
from curve_calibration.nodes import CurveConfig, CurveGroupConfig, CurveNode
from curve_calibration.requirements import curve_group_requirements, par_rates_requirements


FEED = MarketDataFeed("TestFeed")


def quoted_curve(name="FRA Curve"):
    return CurveConfig(name, [CurveNode.quoted(FraTemplate(1, USD_LIBOR_3M), QuoteKey("Ticker", "USD-FRA1x4"))])


def fixed_curve(name="Fixed Curve"):
    return CurveConfig(name, [CurveNode.fixed(FraTemplate(1, USD_LIBOR_3M), 0.003)])


def test_market_quote_node_needs_par_rates_bundle():
    group = CurveGroupConfig("Curve Group").with_curve(quoted_curve(), "USD", USD_LIBOR_3M)
    requirements = curve_group_requirements(group, FEED)

    assert requirements.non_observables == {ParRatesId("Curve Group", "FRA Curve", FEED)}
    assert requirements.observables == frozenset()


def test_fixed_nodes_need_nothing():
    group = CurveGroupConfig("Curve Group").with_curve(fixed_curve(), "USD", USD_LIBOR_3M)
    requirements = curve_group_requirements(group, FEED)

    assert requirements.observables == frozenset()
    assert requirements.non_observables == frozenset()
    assert requirements.is_empty


def test_only_quoted_curves_are_required():
    group = (
        CurveGroupConfig("Two Curves")
        .with_curve(fixed_curve("USD Curve"), "USD", USD_LIBOR_3M)
        .with_curve(quoted_curve("GBP Curve"), "GBP", GBP_LIBOR_3M)
    )
    requirements = curve_group_requirements(group)
    assert requirements.non_observables == {ParRatesId("Two Curves", "GBP Curve", MarketDataFeed.NONE)}


def test_requirements_by_curve_group_id():
    group = CurveGroupConfig("Curve Group").with_curve(quoted_curve(), "USD", USD_LIBOR_3M)
    function = CurveGroupMarketDataFunction()
    requirements = function.requirements(CurveGroupId("Curve Group", FEED), MarketDataConfig.of(group))
    assert requirements.non_observables == {ParRatesId("Curve Group", "FRA Curve", FEED)}


def test_unknown_group_raises():
    with pytest.raises(InvalidConfigurationError):
        CurveGroupMarketDataFunction().requirements(CurveGroupId("Nope"), MarketDataConfig())


@pytest.mark.parametrize(
    "group",
    [
        CurveGroupConfig("No Curves"),
        CurveGroupConfig("Empty Curve").with_curve(CurveConfig("Empty", []), "USD"),
        CurveGroupConfig("Provides Nothing").with_curve(fixed_curve()),
        CurveGroupConfig("Duplicate Names").with_curve(fixed_curve("A"), "USD").with_curve(fixed_curve("A"), "GBP"),
        CurveGroupConfig("Duplicate Currency").with_curve(fixed_curve("A"), "USD").with_curve(fixed_curve("B"), "USD"),
    ],
)
def test_malformed_groups_raise(group):
    with pytest.raises(InvalidConfigurationError):
        curve_group_requirements(group)


@pytest.mark.parametrize(
    "group, missing",
    [
        (CurveGroupConfig("Forward Only").with_curve(fixed_curve(), None, USD_LIBOR_3M), "USD discount curve"),
        (CurveGroupConfig("Discount Only").with_curve(fixed_curve(), "USD"), "forward curve for USD-LIBOR-3M"),
        (
            CurveGroupConfig("Wrong Index").with_curve(fixed_curve(), "USD", GBP_LIBOR_3M),
            "forward curve for USD-LIBOR-3M",
        ),
    ],
)
def test_nodes_must_be_priceable_within_group(group, missing):
    with pytest.raises(InvalidConfigurationError, match=missing):
        group.validate()


def test_par_rates_requirements_lists_quotes():
    key_a = QuoteKey("Ticker", "A")
    key_b = QuoteKey("Ticker", "B")
    curve = CurveConfig(
        "Mixed",
        [
            CurveNode.quoted(FraTemplate(1, USD_LIBOR_3M), key_a),
            CurveNode.fixed(FraTemplate(2, USD_LIBOR_3M), 0.004),
            CurveNode.quoted(FraTemplate(3, USD_LIBOR_3M), key_b),
        ],
    )
    requirements = par_rates_requirements(curve, FEED)
    assert requirements.observables == {QuoteId(key_a, FEED), QuoteId(key_b, FEED)}
    assert requirements.non_observables == frozenset()
