"""
Curve Calibration Engine

Modules:
- curve_group: curve group calibration (CurveGroupMarketDataFunction) + CurveGroup
- requirements: market data a curve group configuration needs
- calibration_instruments: curve node -> calibration residual (PV)
- root_finding: Newton root finder + cooperative cancellation
- transforms: constrained <-> unconstrained parameter transforms
- differentiation: finite-difference Jacobians
- nodes: curve nodes, curve and curve group configuration
- instruments: indices, FRA / swap templates and trades
- pricers: discounting FRA / swap pricers
- curves: zero curve construction + interpolation
- rates: rates provider view over a curve set
- market_data: typed market data ids + snapshot
- config, errors, result, utils
"""
