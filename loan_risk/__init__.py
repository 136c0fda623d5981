"""Credit risk and profitability engine for corporate loan books.

This package computes loss given default, collateral risk, loan and
portfolio metrics (EL, RWA, ROE, RAROC, EVA) and cash-flow schedules.

Main components:
- loan: Loan, cash-flow and metrics records
- parameters: Calculation parameters and stress scenario definitions
- lib.lgd_models: LGD models and LGD modes
- lib.collateral: Collateral valuation and risk aggregation
- lib.metrics: Loan metrics
- lib.portfolio: Portfolio aggregation and scenario simulation
- lib.cashflows: Contractual, forecast and stress schedules
"""

from .loan import Fees, Loan, CashFlow, CashFlowType, LoanMetrics, PortfolioMetrics
from .parameters import CalculationParameters, StressScenario
from .lib.lgd_models import (
    VariableLGDConfig,
    GuaranteedLGDConfig,
    LGDModelParameters,
    ConstantLGD,
    VariableLGD,
    GuaranteedLGD,
    CollateralizedLGD,
    create_lgd_mode,
    calculate_effective_lgd,
)
from .lib.collateral import CollateralCategory, CollateralItem, CollateralPortfolio, ValuationModel
from .lib.metrics import calculate_loan_metrics, create_loan_metrics_report
from .lib.portfolio import (
    calculate_portfolio_metrics,
    simulate_scenario,
    run_stress_scenarios,
    create_scenario_report,
)
from .lib.cashflows import StressScenarioType, StressOptions, generate_cash_flows, summarize_cash_flows

__version__ = "1.0.0"

__all__ = [
    # Records
    "Fees",
    "Loan",
    "CashFlow",
    "CashFlowType",
    "LoanMetrics",
    "PortfolioMetrics",
    # Parameters
    "CalculationParameters",
    "StressScenario",
    # LGD
    "VariableLGDConfig",
    "GuaranteedLGDConfig",
    "LGDModelParameters",
    "ConstantLGD",
    "VariableLGD",
    "GuaranteedLGD",
    "CollateralizedLGD",
    "create_lgd_mode",
    "calculate_effective_lgd",
    # Collateral
    "CollateralCategory",
    "CollateralItem",
    "CollateralPortfolio",
    "ValuationModel",
    # Metrics
    "calculate_loan_metrics",
    "create_loan_metrics_report",
    # Portfolio
    "calculate_portfolio_metrics",
    "simulate_scenario",
    "run_stress_scenarios",
    "create_scenario_report",
    # Cash flows
    "StressScenarioType",
    "StressOptions",
    "generate_cash_flows",
    "summarize_cash_flows",
]
