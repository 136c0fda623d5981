"""Portfolio aggregation and scenario simulation over a loan book."""

from dataclasses import dataclass, field, replace
from datetime import date
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from ..dates import DateLike, to_date
from ..loan import Loan, PortfolioMetrics
from ..parameters import CalculationParameters, StressScenario
from .lgd_models import calculate_effective_lgd
from .metrics import (
    calculate_annual_costs,
    calculate_annual_income,
    calculate_eva_intrinsic,
    calculate_eva_sale,
    calculate_expected_loss,
    calculate_rwa,
)

# Flat share of total expected loss reported as diversification benefit,
# pending a correlation-based model
DIVERSIFICATION_BENEFIT_RATIO = 0.2


def calculate_portfolio_metrics(loans: Sequence[Loan], params: CalculationParameters,
                                as_of: Optional[DateLike] = None) -> PortfolioMetrics:
    """Aggregate metrics of a loan book.

    Loans with a non-positive original amount are ignored. ROE and RAROC
    are computed from aggregate profit over aggregate required capital
    rather than averaged per loan.

    Args:
        loans: Loans in the book
        params: Calculation parameters
        as_of: Valuation date for time-dependent LGD (today by default)

    Returns:
        PortfolioMetrics
    """
    as_of = to_date(as_of) if as_of is not None else date.today()
    included = [loan for loan in loans if loan.original_amount > 0]
    if not included:
        return PortfolioMetrics()

    exposures = np.array([loan.original_amount for loan in included])
    pds = np.array([loan.pd for loan in included])
    lgds = np.array([calculate_effective_lgd(loan, as_of, params) for loan in included])
    expected_losses = np.array([calculate_expected_loss(loan, params, as_of) for loan in included])
    rwas = np.array([calculate_rwa(loan, params) for loan in included])

    total_exposure = float(exposures.sum())
    total_expected_loss = float(expected_losses.sum())
    total_rwa = float(rwas.sum())
    total_capital = total_rwa * params.capital_ratio

    total_income = sum(calculate_annual_income(loan) for loan in included)
    total_costs = sum(calculate_annual_costs(loan, params) for loan in included)
    profit_before_tax = total_income - total_costs - total_expected_loss
    profit_after_tax = profit_before_tax * (1 - params.corporate_tax_rate)

    return PortfolioMetrics(
        total_exposure=total_exposure,
        total_drawn=float(sum(loan.drawn_amount for loan in included)),
        total_undrawn=float(sum(loan.undrawn_amount for loan in included)),
        weighted_average_pd=float(np.dot(pds, exposures) / total_exposure),
        weighted_average_lgd=float(np.dot(lgds, exposures) / total_exposure),
        total_expected_loss=total_expected_loss,
        total_rwa=total_rwa,
        portfolio_roe=profit_after_tax / total_capital if total_capital > 0 else 0.0,
        portfolio_raroc=profit_before_tax / total_capital if total_capital > 0 else 0.0,
        eva_sum_intrinsic=sum(calculate_eva_intrinsic(loan, params, as_of) for loan in included),
        eva_sum_sale=sum(calculate_eva_sale(loan, params, as_of=as_of) for loan in included),
        diversification_benefit=total_expected_loss * DIVERSIFICATION_BENEFIT_RATIO,
        loan_count=len(included),
    )


def shock_loan(loan: Loan, params: CalculationParameters, as_of: date,
               pd_multiplier: float = 1.0, lgd_multiplier: float = 1.0,
               rate_shift: float = 0.0, spread_shift: float = 0.0) -> Loan:
    """Return a shocked copy of a loan.

    PD and LGD are multiplied and kept within [0, 1]. A loan with a
    variable, guaranteed or collateralized LGD is converted to a constant
    LGD equal to its shocked effective LGD at ``as_of``.
    """
    lgd = calculate_effective_lgd(loan, as_of, params)
    return replace(
        loan,
        pd=min(1.0, max(0.0, loan.pd * pd_multiplier)),
        lgd=min(1.0, max(0.0, lgd * lgd_multiplier)),
        lgd_mode=None,
        margin=loan.margin + spread_shift,
        reference_rate=loan.reference_rate + rate_shift,
        metrics=None,
    )


def simulate_scenario(loans: Sequence[Loan], params: CalculationParameters,
                      pd_multiplier: float = 1.0, lgd_multiplier: float = 1.0,
                      rate_shift: float = 0.0, spread_shift: float = 0.0,
                      as_of: Optional[DateLike] = None) -> PortfolioMetrics:
    """Portfolio metrics after shocking copies of the loans.

    The input loans are left untouched.

    Args:
        loans: Loans in the book
        params: Calculation parameters
        pd_multiplier: Multiplicative PD shock
        lgd_multiplier: Multiplicative LGD shock
        rate_shift: Additive reference rate shift
        spread_shift: Additive margin shift
        as_of: Valuation date

    Returns:
        PortfolioMetrics of the shocked book
    """
    as_of = to_date(as_of) if as_of is not None else date.today()
    shocked = [
        shock_loan(loan, params, as_of, pd_multiplier, lgd_multiplier, rate_shift, spread_shift)
        for loan in loans
    ]
    return calculate_portfolio_metrics(shocked, params, as_of)


@dataclass
class ScenarioResult:
    """Portfolio metrics under one stress scenario.

    Attributes:
        scenario: The applied scenario
        metrics: Stressed portfolio metrics
        base: Unstressed portfolio metrics
    """
    scenario: StressScenario
    metrics: PortfolioMetrics
    base: PortfolioMetrics

    @property
    def delta_expected_loss(self) -> float:
        return self.metrics.total_expected_loss - self.base.total_expected_loss

    @property
    def delta_rwa(self) -> float:
        return self.metrics.total_rwa - self.base.total_rwa

    @property
    def delta_roe(self) -> float:
        return self.metrics.portfolio_roe - self.base.portfolio_roe


@dataclass
class SimulationResult:
    """Base case and every stress scenario of a loan book."""
    base_case: PortfolioMetrics
    scenarios: List[ScenarioResult] = field(default_factory=list)


def run_stress_scenarios(loans: Sequence[Loan], params: CalculationParameters,
                         scenarios: Optional[Sequence[StressScenario]] = None,
                         as_of: Optional[DateLike] = None) -> SimulationResult:
    """Evaluate the book under each stress scenario.

    Args:
        loans: Loans in the book
        params: Calculation parameters
        scenarios: Scenarios to run (defaults to ``params.stress_scenarios``)
        as_of: Valuation date

    Returns:
        SimulationResult with deltas to the base case
    """
    as_of = to_date(as_of) if as_of is not None else date.today()
    if scenarios is None:
        scenarios = params.stress_scenarios

    base = calculate_portfolio_metrics(loans, params, as_of)
    results = []
    for scenario in scenarios:
        stressed = simulate_scenario(
            loans, params,
            pd_multiplier=scenario.pd_multiplier,
            lgd_multiplier=scenario.lgd_multiplier,
            rate_shift=scenario.rate_shift,
            spread_shift=scenario.spread_shift,
            as_of=as_of,
        )
        results.append(ScenarioResult(scenario=scenario, metrics=stressed, base=base))
    return SimulationResult(base_case=base, scenarios=results)


def create_scenario_report(result: SimulationResult) -> pd.DataFrame:
    """Create a DataFrame report of stress scenario results.

    Args:
        result: Output of run_stress_scenarios

    Returns:
        DataFrame with one row per scenario, sorted by expected loss increase
    """
    data = []
    for scenario_result in result.scenarios:
        metrics = scenario_result.metrics
        data.append({
            'Scenario': scenario_result.scenario.name,
            'Expected_Loss': metrics.total_expected_loss,
            'RWA': metrics.total_rwa,
            'ROE': metrics.portfolio_roe,
            'RAROC': metrics.portfolio_raroc,
            'EVA_Intrinsic': metrics.eva_sum_intrinsic,
            'Delta_EL': scenario_result.delta_expected_loss,
            'Delta_RWA': scenario_result.delta_rwa,
            'Delta_ROE': scenario_result.delta_roe,
        })

    df = pd.DataFrame(data, columns=[
        'Scenario', 'Expected_Loss', 'RWA', 'ROE', 'RAROC', 'EVA_Intrinsic',
        'Delta_EL', 'Delta_RWA', 'Delta_ROE',
    ])
    df = df.sort_values('Delta_EL', ascending=False)
    return df
