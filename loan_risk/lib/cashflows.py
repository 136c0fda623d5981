"""Cash-flow schedule generation for term loans.

Three schedules can be produced for a loan:
- Contractual: drawdown, one-off fees, interest and principal per period
- Forecast: the contractual schedule with repayments shown as prepayments
- Stress: the contractual schedule with a stress scenario layered on top
  (default, liquidity crisis or interest rate shock)

Generation never raises. A failure is returned as a single sentinel flow
with id ``error-main`` whose description carries the error message;
callers check ``flows[0].is_error``.
"""

from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from functools import wraps
from typing import Dict, List, Optional, Sequence
import logging

import pandas as pd

from ..dates import add_months, iso, period_months, to_date, year_fraction
from ..loan import CashFlow, CashFlowType, Loan

logger = logging.getLogger(__name__)

ERROR_FLOW_ID = "error-main"


class StressScenarioType(str, Enum):
    DEFAULT = "DEFAULT"
    LIQUIDITY_CRISIS = "LIQUIDITY_CRISIS"
    INTEREST_SHOCK = "INTEREST_SHOCK"


@dataclass
class StressOptions:
    """Overrides for the stress schedules.

    Attributes:
        pd: Probability of default used for the default amount
        lgd: Loss given default used for recovery and net loss
        outstanding: Exposure at default; falls back to the loan's
            outstanding amount, then its original amount
        utilization_rate: Share of the undrawn amount drawn under stress
        scheduled_outflows: Outflows due in the crisis; defaults to the
            original amount
        available_liquidity: Liquidity available; defaults to the drawn amount
        rate_shock: Additive shock on the all-in rate (0.01 = 100bp)
    """
    pd: float = 0.01
    lgd: float = 0.45
    outstanding: Optional[float] = None
    utilization_rate: float = 0.7
    scheduled_outflows: Optional[float] = None
    available_liquidity: Optional[float] = None
    rate_shock: float = 0.01


def error_flow(message: str) -> CashFlow:
    return CashFlow(
        id=ERROR_FLOW_ID,
        date="",
        type=CashFlowType.FEE,
        amount=0.0,
        is_manual=False,
        description=f"Error: {message}",
    )


def _sentinel_on_error(func):
    @wraps(func)
    def wrapper(*args, **kwargs) -> List[CashFlow]:
        try:
            return func(*args, **kwargs)
        except Exception as exc:
            logger.exception("Error generating cash flows")
            return [error_flow(str(exc))]
    return wrapper


# =============================================================================
# Contractual schedule
# =============================================================================


def build_period_dates(start_date: date, end_date: date, frequency: str) -> List[date]:
    """Period dates from ``start_date`` to ``end_date`` at the given frequency.

    Period 0 is the start date itself; grace periods and period ids count
    from it. Each later date is stepped from the start date so month-end
    days do not drift. The last period always ends exactly on ``end_date``.

    Raises:
        ValueError: If the end date is not after the start date, or the
            frequency is unknown
    """
    if end_date <= start_date:
        raise ValueError(f"End date {end_date} must be after start date {start_date}")
    step = period_months(frequency)

    periods = [start_date]
    k = 1
    due = add_months(start_date, step)
    while due < end_date:
        periods.append(due)
        k += 1
        due = add_months(start_date, k * step)
    periods.append(end_date)
    return periods


def build_principal_schedule(amount: float, num_periods: int, grace_periods: int,
                             amortization_type: str, periodic_rate: float) -> List[float]:
    """Principal repaid in each period.

    The last installment settles the exact remaining balance, so the
    schedule always sums to ``amount``.

    Raises:
        ValueError: If the amortization type is unknown
    """
    schedule = [0.0] * num_periods
    first = min(grace_periods, num_periods - 1)
    n = num_periods - first

    if amortization_type == "inFine":
        schedule[-1] = amount
        return schedule

    if amortization_type == "constant" or (amortization_type == "annuity" and periodic_rate == 0):
        installment = amount / n
        for i in range(first, num_periods):
            schedule[i] = installment
    elif amortization_type == "annuity":
        payment = amount * periodic_rate / (1 - (1 + periodic_rate) ** -n)
        balance = amount
        for i in range(first, num_periods):
            principal = payment - balance * periodic_rate
            schedule[i] = principal
            balance -= principal
    else:
        raise ValueError(f"Unknown amortization type: {amortization_type}")

    schedule[-1] = amount - sum(schedule[:-1])
    return schedule


def _contractual_flows(loan: Loan) -> List[CashFlow]:
    start_date = to_date(loan.start_date)
    end_date = to_date(loan.end_date)
    frequency = loan.repayment_frequency
    periods = build_period_dates(start_date, end_date, frequency)
    fraction = year_fraction(frequency)
    rate = loan.all_in_rate
    amount = loan.drawn_amount if loan.drawn_amount > 0 else loan.original_amount

    start = iso(start_date)
    flows = [CashFlow("drawdown-1", start, CashFlowType.DRAWDOWN, amount,
                      description="Initial drawdown")]
    for fee_id, fee_amount, label in (("fee-upfront", loan.fees.upfront, "Upfront fee"),
                                      ("fee-agency", loan.fees.agency, "Agency fee"),
                                      ("fee-other", loan.fees.other, "Other fee")):
        if fee_amount:
            flows.append(CashFlow(fee_id, start, CashFlowType.FEE, fee_amount, description=label))

    principal = build_principal_schedule(amount, len(periods), loan.grace_periods,
                                         loan.amortization_type, rate * fraction)
    outstanding = amount
    for i, due in enumerate(periods):
        due_date = iso(due)
        if i >= loan.grace_periods:
            flows.append(CashFlow(f"interest-{i + 1}", due_date, CashFlowType.INTEREST,
                                  outstanding * rate * fraction,
                                  description="Interest payment"))
        if principal[i] > 0:
            flows.append(CashFlow(f"repayment-{i + 1}", due_date, CashFlowType.REPAYMENT,
                                  principal[i], description="Principal repayment"))
            outstanding -= principal[i]
    return flows


@_sentinel_on_error
def generate_contractual_cash_flows(loan: Loan) -> List[CashFlow]:
    """Contractual schedule of a term loan.

    Drawdown and one-off fees on the start date; interest on the
    outstanding balance every period from the grace period onward;
    principal according to the amortization type ('inFine', 'constant'
    or 'annuity').
    """
    return _contractual_flows(loan)


def _forecast_flows(loan: Loan) -> List[CashFlow]:
    return [
        replace(
            flow,
            type=CashFlowType.PREPAYMENT if flow.type == CashFlowType.REPAYMENT else flow.type,
            description=f"{flow.description} (forecast)",
        )
        for flow in _contractual_flows(loan)
    ]


@_sentinel_on_error
def generate_forecast_cash_flows(loan: Loan) -> List[CashFlow]:
    """Contractual schedule relabelled as a forecast (repayments become prepayments)."""
    return _forecast_flows(loan)


# =============================================================================
# Stress schedules
# =============================================================================


def _default_flows(loan: Loan, base: List[CashFlow], options: StressOptions) -> List[CashFlow]:
    outstanding = options.outstanding
    if outstanding is None:
        outstanding = loan.outstanding_amount or loan.original_amount
    default_date = max(flow.date for flow in base)

    default_amount = options.pd * outstanding
    recovery = default_amount * (1 - options.lgd)
    net_loss = default_amount * options.lgd
    return [
        CashFlow("default-1", default_date, CashFlowType.DEFAULT, default_amount,
                 description=f"Expected default (PD {options.pd:.2%})"),
        CashFlow("recovery-1", default_date, CashFlowType.RECOVERY, recovery,
                 description=f"Recovery (LGD {options.lgd:.2%})"),
        CashFlow("netloss-1", default_date, CashFlowType.NET_LOSS, net_loss,
                 description="Net loss after recovery"),
    ]


def _liquidity_flows(loan: Loan, base: List[CashFlow], options: StressOptions) -> List[CashFlow]:
    scheduled_outflows = options.scheduled_outflows
    if scheduled_outflows is None:
        scheduled_outflows = loan.original_amount
    available_liquidity = options.available_liquidity
    if available_liquidity is None:
        available_liquidity = loan.drawn_amount
    crisis_date = min(flow.date for flow in base)

    return [
        CashFlow("liquidity-drawdown", crisis_date, CashFlowType.DRAWDOWN,
                 loan.undrawn_amount * options.utilization_rate,
                 description=f"Stressed drawdown ({options.utilization_rate:.0%} utilization)"),
        CashFlow("liquidity-gap", crisis_date, CashFlowType.LIQUIDITY_CRISIS,
                 scheduled_outflows - available_liquidity,
                 description="Liquidity gap"),
    ]


def _shock_interest(loan: Loan, base: List[CashFlow], options: StressOptions) -> List[CashFlow]:
    rate = loan.all_in_rate
    if rate == 0:
        logger.warning("Loan %s has a zero all-in rate, interest shock not applied", loan.id)
        return base
    factor = 1 + options.rate_shock / rate
    return [
        replace(flow, amount=flow.amount * factor,
                description=f"{flow.description} (rate shock)")
        if flow.type == CashFlowType.INTEREST else flow
        for flow in base
    ]


@_sentinel_on_error
def generate_stress_cash_flows(loan: Loan,
                               scenario: StressScenarioType = StressScenarioType.DEFAULT,
                               options: Optional[StressOptions] = None) -> List[CashFlow]:
    """Contractual schedule under a stress scenario.

    DEFAULT adds default, recovery and net loss events on the last flow
    date. LIQUIDITY_CRISIS adds a stressed drawdown and a liquidity gap on
    the first flow date. INTEREST_SHOCK rescales every interest flow by
    ``1 + rate_shock / all_in_rate`` and leaves other flows untouched.

    Args:
        loan: Loan to stress
        scenario: Stress scenario
        options: Scenario overrides

    Returns:
        Flows sorted by date, then by type
    """
    scenario = StressScenarioType(scenario)
    options = options or StressOptions()
    base = _contractual_flows(loan)

    if scenario == StressScenarioType.DEFAULT:
        flows = base + _default_flows(loan, base, options)
    elif scenario == StressScenarioType.LIQUIDITY_CRISIS:
        flows = base + _liquidity_flows(loan, base, options)
    else:
        flows = _shock_interest(loan, base, options)

    return sorted(flows, key=lambda flow: (flow.date, flow.type.value))


def generate_cash_flows(loan: Loan, kind: str = "contractual",
                        scenario: StressScenarioType = StressScenarioType.DEFAULT,
                        options: Optional[StressOptions] = None) -> List[CashFlow]:
    """Generate the schedule of the given kind.

    Args:
        loan: Loan to schedule
        kind: 'contractual', 'forecast' or 'stress'
        scenario: Stress scenario (stress schedules only)
        options: Stress overrides (stress schedules only)

    Returns:
        List of CashFlow; empty for an unknown kind
    """
    if kind == "contractual":
        return generate_contractual_cash_flows(loan)
    if kind == "forecast":
        return generate_forecast_cash_flows(loan)
    if kind == "stress":
        return generate_stress_cash_flows(loan, scenario, options)
    logger.warning("Unknown cash-flow schedule %r", kind)
    return []


# =============================================================================
# Summary
# =============================================================================


SUMMARY_COLUMNS = ["date", "interest", "principal", "outstanding"]


def summarize_cash_flows(flows: Sequence[CashFlow],
                         opening_balance: Optional[float] = None) -> pd.DataFrame:
    """Aggregate a schedule by date.

    Args:
        flows: Cash flows (error sentinels are ignored)
        opening_balance: Balance before the first repayment; defaults to
            the sum of drawdowns in the schedule

    Returns:
        DataFrame with date, interest, principal and outstanding columns,
        one row per date in chronological order
    """
    flows = [flow for flow in flows if not flow.is_error]
    if opening_balance is None:
        opening_balance = sum(flow.amount for flow in flows if flow.type == CashFlowType.DRAWDOWN)

    rows: List[Dict] = [{
        "date": flow.date,
        "interest": flow.amount if flow.type == CashFlowType.INTEREST else 0.0,
        "principal": flow.amount if flow.type in (CashFlowType.REPAYMENT,
                                                  CashFlowType.PREPAYMENT) else 0.0,
    } for flow in flows]
    if not rows:
        return pd.DataFrame(columns=SUMMARY_COLUMNS)

    df = pd.DataFrame(rows).groupby("date", sort=True)[["interest", "principal"]].sum().reset_index()
    df["outstanding"] = (opening_balance - df["principal"].cumsum()).clip(lower=0)
    return df[SUMMARY_COLUMNS]
