"""Core calculation modules for loan risk analysis.

This subpackage contains the core implementation:
- lgd_models: Time-dependent, guaranteed and collateralized LGD
- collateral: Collateral valuation and portfolio risk aggregation
- metrics: Loan profitability and risk metrics
- portfolio: Portfolio aggregation and scenario simulation
- cashflows: Contractual, forecast and stress cash-flow schedules
"""

from .lgd_models import (
    LGDModel,
    LGDModelParameters,
    LinearLGDModel,
    ExponentialLGDModel,
    LogarithmicLGDModel,
    PolynomialLGDModel,
    create_lgd_model,
    VariableLGDConfig,
    GuaranteedLGDConfig,
    calculate_variable_lgd,
    calculate_guaranteed_lgd,
    LGDCurve,
    LGDCurvePoint,
    generate_lgd_curve,
    LGDMode,
    ConstantLGD,
    VariableLGD,
    GuaranteedLGD,
    CollateralizedLGD,
    create_lgd_mode,
    calculate_effective_lgd,
    recommended_model,
    recommended_guarantee_params,
)
from .collateral import (
    CollateralCategory,
    ValuationModel,
    CollateralItem,
    CollateralPortfolio,
    PortfolioRiskMetrics,
    StressTestResult,
    RegulatoryCompliance,
    calculate_collateral_value,
    calculate_diversification_score,
    calculate_concentration_risk,
    calculate_correlation_matrix,
    calculate_value_at_risk,
    calculate_expected_shortfall,
    calculate_portfolio_beta,
    calculate_portfolio_risk_metrics,
    validate_regulatory_compliance,
    calculate_effective_lgd_with_collateral,
    recommended_valuation_params,
)
from .metrics import (
    calculate_expected_loss,
    calculate_rwa,
    calculate_roe,
    calculate_raroc,
    calculate_eva_intrinsic,
    calculate_eva_sale,
    calculate_loan_metrics,
    create_loan_metrics_report,
)
from .portfolio import (
    calculate_portfolio_metrics,
    simulate_scenario,
    run_stress_scenarios,
    ScenarioResult,
    SimulationResult,
    create_scenario_report,
)
from .cashflows import (
    StressScenarioType,
    StressOptions,
    generate_contractual_cash_flows,
    generate_forecast_cash_flows,
    generate_stress_cash_flows,
    generate_cash_flows,
    summarize_cash_flows,
)

__all__ = [
    # LGD models
    "LGDModel",
    "LGDModelParameters",
    "LinearLGDModel",
    "ExponentialLGDModel",
    "LogarithmicLGDModel",
    "PolynomialLGDModel",
    "create_lgd_model",
    "VariableLGDConfig",
    "GuaranteedLGDConfig",
    "calculate_variable_lgd",
    "calculate_guaranteed_lgd",
    "LGDCurve",
    "LGDCurvePoint",
    "generate_lgd_curve",
    "LGDMode",
    "ConstantLGD",
    "VariableLGD",
    "GuaranteedLGD",
    "CollateralizedLGD",
    "create_lgd_mode",
    "calculate_effective_lgd",
    "recommended_model",
    "recommended_guarantee_params",
    # Collateral
    "CollateralCategory",
    "ValuationModel",
    "CollateralItem",
    "CollateralPortfolio",
    "PortfolioRiskMetrics",
    "StressTestResult",
    "RegulatoryCompliance",
    "calculate_collateral_value",
    "calculate_diversification_score",
    "calculate_concentration_risk",
    "calculate_correlation_matrix",
    "calculate_value_at_risk",
    "calculate_expected_shortfall",
    "calculate_portfolio_beta",
    "calculate_portfolio_risk_metrics",
    "validate_regulatory_compliance",
    "calculate_effective_lgd_with_collateral",
    "recommended_valuation_params",
    # Loan metrics
    "calculate_expected_loss",
    "calculate_rwa",
    "calculate_roe",
    "calculate_raroc",
    "calculate_eva_intrinsic",
    "calculate_eva_sale",
    "calculate_loan_metrics",
    "create_loan_metrics_report",
    # Portfolio
    "calculate_portfolio_metrics",
    "simulate_scenario",
    "run_stress_scenarios",
    "ScenarioResult",
    "SimulationResult",
    "create_scenario_report",
    # Cash flows
    "StressScenarioType",
    "StressOptions",
    "generate_contractual_cash_flows",
    "generate_forecast_cash_flows",
    "generate_stress_cash_flows",
    "generate_cash_flows",
    "summarize_cash_flows",
]
