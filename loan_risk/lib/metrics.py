"""Loan profitability and risk metrics.

Every metric is a pure function of the loan, the calculation parameters and
the valuation date (which only matters for time-dependent LGD modes).
"""

from datetime import date
from typing import List, Optional, Sequence

import pandas as pd

from ..dates import DateLike, to_date
from ..loan import Loan, LoanMetrics
from ..parameters import CalculationParameters
from .lgd_models import calculate_effective_lgd


def _as_of(as_of: Optional[DateLike]) -> date:
    return to_date(as_of) if as_of is not None else date.today()


def calculate_expected_loss(loan: Loan, params: Optional[CalculationParameters] = None,
                            as_of: Optional[DateLike] = None) -> float:
    """EL = PD x LGD x EAD, with the loan's effective LGD."""
    lgd = calculate_effective_lgd(loan, _as_of(as_of), params)
    return loan.pd * lgd * loan.ead


def calculate_rwa(loan: Loan, params: CalculationParameters) -> float:
    """RWA = EAD x risk weight of the internal rating (BB- if unrecognized)."""
    return loan.ead * params.risk_weight(loan.internal_rating)


def calculate_capital_required(loan: Loan, params: CalculationParameters) -> float:
    return calculate_rwa(loan, params) * params.capital_ratio


def one_off_fees_per_year(loan: Loan) -> float:
    """Upfront, agency and other fees spread over the term, floored at one year."""
    return loan.fees.one_off_total / max(loan.duration_years, 1.0)


def calculate_annual_income(loan: Loan) -> float:
    """Interest on drawn, commitment fee on undrawn and amortised one-off fees."""
    return (loan.all_in_rate * loan.drawn_amount
            + loan.fees.commitment * loan.undrawn_amount
            + one_off_fees_per_year(loan))


def calculate_annual_costs(loan: Loan, params: CalculationParameters) -> float:
    """Funding cost on drawn plus operating cost on the original amount."""
    return (params.funding_cost * loan.drawn_amount
            + params.operational_cost_ratio * loan.original_amount)


def calculate_pre_tax_profit(loan: Loan, params: CalculationParameters,
                             as_of: Optional[DateLike] = None) -> float:
    return (calculate_annual_income(loan)
            - calculate_annual_costs(loan, params)
            - calculate_expected_loss(loan, params, as_of))


def calculate_roe(loan: Loan, params: CalculationParameters,
                  as_of: Optional[DateLike] = None) -> float:
    """After-tax profit over required capital; 0 when no capital is required."""
    capital = calculate_capital_required(loan, params)
    if capital <= 0:
        return 0.0
    profit = calculate_pre_tax_profit(loan, params, as_of) * (1 - params.corporate_tax_rate)
    return profit / capital


def calculate_raroc(loan: Loan, params: CalculationParameters,
                    as_of: Optional[DateLike] = None) -> float:
    """Pre-tax profit over required capital; 0 when no capital is required."""
    capital = calculate_capital_required(loan, params)
    if capital <= 0:
        return 0.0
    return calculate_pre_tax_profit(loan, params, as_of) / capital


def calculate_eva_intrinsic(loan: Loan, params: CalculationParameters,
                            as_of: Optional[DateLike] = None) -> float:
    """EVA = (ROE - target ROE) x required capital."""
    capital = calculate_capital_required(loan, params)
    return (calculate_roe(loan, params, as_of) - params.target_roe) * capital


def calculate_eva_sale(loan: Loan, params: CalculationParameters,
                       sale_price: Optional[float] = None,
                       as_of: Optional[DateLike] = None) -> float:
    """Intrinsic EVA plus the after-tax gain on selling the drawn amount.

    Args:
        loan: Loan to value
        params: Calculation parameters
        sale_price: Disposal price; defaults to ``params.default_sale_price``
        as_of: Valuation date

    Returns:
        EVA including the disposal
    """
    if sale_price is None:
        sale_price = params.default_sale_price
    disposal = (sale_price - loan.drawn_amount) * (1 - params.corporate_tax_rate)
    return calculate_eva_intrinsic(loan, params, as_of) + disposal


def calculate_cost_of_risk(loan: Loan, params: Optional[CalculationParameters] = None,
                           as_of: Optional[DateLike] = None) -> float:
    return calculate_expected_loss(loan, params, as_of) / max(loan.drawn_amount, 1.0)


def calculate_net_margin(loan: Loan, params: CalculationParameters,
                         as_of: Optional[DateLike] = None) -> float:
    cost_of_risk = calculate_cost_of_risk(loan, params, as_of)
    return loan.margin - (params.funding_cost + params.operational_cost_ratio + cost_of_risk)


def calculate_effective_yield(loan: Loan) -> float:
    return loan.all_in_rate + one_off_fees_per_year(loan) / max(loan.drawn_amount, 1.0)


def calculate_loan_metrics(loan: Loan, params: CalculationParameters,
                           as_of: Optional[DateLike] = None) -> LoanMetrics:
    """Compute the full metrics record of a loan.

    Args:
        loan: Loan to evaluate
        params: Calculation parameters
        as_of: Valuation date for time-dependent LGD (today by default)

    Returns:
        LoanMetrics with every field populated
    """
    as_of = _as_of(as_of)
    return LoanMetrics(
        eva_intrinsic=calculate_eva_intrinsic(loan, params, as_of),
        eva_sale=calculate_eva_sale(loan, params, as_of=as_of),
        expected_loss=calculate_expected_loss(loan, params, as_of),
        rwa=calculate_rwa(loan, params),
        roe=calculate_roe(loan, params, as_of),
        raroc=calculate_raroc(loan, params, as_of),
        cost_of_risk=calculate_cost_of_risk(loan, params, as_of),
        capital_consumption=calculate_capital_required(loan, params),
        net_margin=calculate_net_margin(loan, params, as_of),
        effective_yield=calculate_effective_yield(loan),
    )


REPORT_COLUMNS = [
    'Loan', 'Client', 'Rating', 'Sector', 'LGD_Type', 'EAD', 'PD', 'LGD',
    'Expected_Loss', 'RWA', 'Capital', 'ROE', 'RAROC', 'EVA_Intrinsic', 'EVA_Sale',
    'Net_Margin', 'Effective_Yield',
]


def create_loan_metrics_report(loans: Sequence[Loan], params: CalculationParameters,
                               as_of: Optional[DateLike] = None) -> pd.DataFrame:
    """Create a DataFrame report of loan metrics.

    Args:
        loans: Loans to report on
        params: Calculation parameters
        as_of: Valuation date

    Returns:
        DataFrame with one row per loan, sorted by intrinsic EVA (best first)
    """
    as_of = _as_of(as_of)
    data: List[dict] = []
    for loan in loans:
        metrics = calculate_loan_metrics(loan, params, as_of)
        data.append({
            'Loan': loan.id,
            'Client': loan.client_name,
            'Rating': loan.internal_rating,
            'Sector': loan.sector,
            'LGD_Type': loan.lgd_type,
            'EAD': loan.ead,
            'PD': loan.pd,
            'LGD': calculate_effective_lgd(loan, as_of, params),
            'Expected_Loss': metrics.expected_loss,
            'RWA': metrics.rwa,
            'Capital': metrics.capital_consumption,
            'ROE': metrics.roe,
            'RAROC': metrics.raroc,
            'EVA_Intrinsic': metrics.eva_intrinsic,
            'EVA_Sale': metrics.eva_sale,
            'Net_Margin': metrics.net_margin,
            'Effective_Yield': metrics.effective_yield,
        })

    df = pd.DataFrame(data, columns=REPORT_COLUMNS)
    df = df.sort_values('EVA_Intrinsic', ascending=False)
    return df
