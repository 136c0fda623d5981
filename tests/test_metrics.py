"""Tests for metrics.py - loan profitability and risk metrics."""

from dataclasses import replace
from datetime import date

import pandas as pd
import pytest

from loan_risk import CalculationParameters, Loan
from loan_risk.lib.metrics import (
    calculate_annual_income,
    calculate_capital_required,
    calculate_cost_of_risk,
    calculate_effective_yield,
    calculate_eva_intrinsic,
    calculate_eva_sale,
    calculate_expected_loss,
    calculate_loan_metrics,
    calculate_net_margin,
    calculate_pre_tax_profit,
    calculate_raroc,
    calculate_roe,
    calculate_rwa,
    create_loan_metrics_report,
)

TERM_YEARS = 1827 / 365
FEES_PER_YEAR = 10_000 / TERM_YEARS
INCOME = 0.05 * 1_000_000 + FEES_PER_YEAR
PRE_TAX = INCOME - 20_000 - 10_000 - 9_000
CAPITAL = 80_000


class TestExpectedLoss:
    """Tests for expected loss."""

    def test_expected_loss(self):
        """Test EL = PD x LGD x EAD."""
        loan = Loan(id="x", start_date="2024-01-01", end_date="2025-01-01",
                    original_amount=1_000_000, pd=0.02, lgd=0.45, ead=1_000_000)
        assert calculate_expected_loss(loan) == pytest.approx(9_000)

    def test_uses_effective_lgd(self, revolving_loan, params, as_of):
        """Test that a guaranteed loan uses its blended LGD."""
        assert calculate_expected_loss(revolving_loan, params, as_of) == pytest.approx(0.01 * 0.4 * 1_500_000)

    def test_default_lgd(self, term_loan):
        loan = replace(term_loan, lgd=None)
        assert calculate_expected_loss(loan) == pytest.approx(0.02 * 0.45 * 1_000_000)


class TestRWA:
    """Tests for risk-weighted assets."""

    def test_rating_weight(self, term_loan, params):
        assert calculate_rwa(term_loan, params) == pytest.approx(1_000_000)
        assert calculate_rwa(replace(term_loan, internal_rating="A"), params) == pytest.approx(500_000)
        assert calculate_rwa(replace(term_loan, internal_rating="B"), params) == pytest.approx(1_500_000)

    def test_unknown_rating_uses_bb_minus(self, term_loan, params):
        loan = replace(term_loan, internal_rating="NR")
        assert calculate_rwa(loan, params) == pytest.approx(1_000_000 * params.risk_weight("BB-"))

    def test_capital_required(self, term_loan, params):
        assert calculate_capital_required(term_loan, params) == pytest.approx(CAPITAL)


class TestReturns:
    """Tests for ROE, RAROC and EVA."""

    def test_income(self, term_loan):
        assert calculate_annual_income(term_loan) == pytest.approx(INCOME)

    def test_commitment_fee_on_undrawn(self, revolving_loan):
        fees_per_year = 7_000 / (1095 / 365)
        expected = 0.045 * 1_200_000 + 0.004 * 800_000 + fees_per_year
        assert calculate_annual_income(revolving_loan) == pytest.approx(expected)

    def test_pre_tax_profit(self, term_loan, params, as_of):
        assert calculate_pre_tax_profit(term_loan, params, as_of) == pytest.approx(PRE_TAX)

    def test_roe(self, term_loan, params, as_of):
        assert calculate_roe(term_loan, params, as_of) == pytest.approx(PRE_TAX * 0.75 / CAPITAL)

    def test_raroc(self, term_loan, params, as_of):
        assert calculate_raroc(term_loan, params, as_of) == pytest.approx(PRE_TAX / CAPITAL)

    def test_zero_capital(self, term_loan, params, as_of):
        """Test that returns are 0 when no capital is required."""
        loan = replace(term_loan, ead=0)
        assert calculate_roe(loan, params, as_of) == 0.0
        assert calculate_raroc(loan, params, as_of) == 0.0

    def test_short_loan_fees_floored_at_one_year(self, term_loan):
        loan = replace(term_loan, end_date=date(2024, 3, 1))
        assert calculate_annual_income(loan) == pytest.approx(50_000 + 10_000)

    def test_eva_intrinsic(self, term_loan, params, as_of):
        expected = (PRE_TAX * 0.75 / CAPITAL - 0.15) * CAPITAL
        assert calculate_eva_intrinsic(term_loan, params, as_of) == pytest.approx(expected)

    def test_eva_sale_default_price(self, term_loan, params, as_of):
        intrinsic = calculate_eva_intrinsic(term_loan, params, as_of)
        expected = intrinsic + (1 - 1_000_000) * 0.75
        assert calculate_eva_sale(term_loan, params, as_of=as_of) == pytest.approx(expected)

    def test_eva_sale_price(self, term_loan, params, as_of):
        intrinsic = calculate_eva_intrinsic(term_loan, params, as_of)
        result = calculate_eva_sale(term_loan, params, sale_price=1_010_000, as_of=as_of)
        assert result == pytest.approx(intrinsic + 10_000 * 0.75)

    def test_eva_sale_configured_price(self, term_loan, as_of):
        params = CalculationParameters(default_sale_price=1_000_000)
        intrinsic = calculate_eva_intrinsic(term_loan, params, as_of)
        assert calculate_eva_sale(term_loan, params, as_of=as_of) == pytest.approx(intrinsic)


class TestMarginsAndYield:
    """Tests for cost of risk, net margin and effective yield."""

    def test_cost_of_risk(self, term_loan, params, as_of):
        assert calculate_cost_of_risk(term_loan, params, as_of) == pytest.approx(0.009)

    def test_cost_of_risk_undrawn(self, term_loan, params, as_of):
        loan = replace(term_loan, drawn_amount=0)
        assert calculate_cost_of_risk(loan, params, as_of) == pytest.approx(9_000)

    def test_net_margin(self, term_loan, params, as_of):
        assert calculate_net_margin(term_loan, params, as_of) == pytest.approx(0.02 - 0.039)

    def test_effective_yield(self, term_loan):
        assert calculate_effective_yield(term_loan) == pytest.approx(0.05 + FEES_PER_YEAR / 1_000_000)


class TestLoanMetrics:
    """Tests for the full metrics record."""

    def test_all_fields(self, term_loan, params, as_of):
        metrics = calculate_loan_metrics(term_loan, params, as_of)
        assert metrics.expected_loss == pytest.approx(9_000)
        assert metrics.rwa == pytest.approx(1_000_000)
        assert metrics.capital_consumption == pytest.approx(CAPITAL)
        assert metrics.roe == pytest.approx(PRE_TAX * 0.75 / CAPITAL)
        assert metrics.raroc == pytest.approx(PRE_TAX / CAPITAL)
        assert metrics.eva_intrinsic == pytest.approx(calculate_eva_intrinsic(term_loan, params, as_of))
        assert metrics.eva_sale == pytest.approx(calculate_eva_sale(term_loan, params, as_of=as_of))
        assert metrics.cost_of_risk == pytest.approx(0.009)
        assert metrics.net_margin == pytest.approx(-0.019)
        assert metrics.effective_yield == pytest.approx(calculate_effective_yield(term_loan))

    def test_deterministic(self, loan_book, params, as_of):
        for loan in loan_book:
            assert calculate_loan_metrics(loan, params, as_of) == calculate_loan_metrics(loan, params, as_of)

    def test_variable_lgd_depends_on_date(self, variable_lgd_loan, params):
        early = calculate_loan_metrics(variable_lgd_loan, params, date(2023, 6, 1))
        late = calculate_loan_metrics(variable_lgd_loan, params, date(2027, 6, 1))
        assert late.expected_loss > early.expected_loss


class TestReport:
    """Tests for the loan metrics report."""

    def test_report(self, loan_book, params, as_of):
        df = create_loan_metrics_report(loan_book, params, as_of)
        assert isinstance(df, pd.DataFrame)
        assert len(df) == 3
        assert set(df['Loan']) == {"TL-1", "RCF-1", "VAR-1"}
        assert df['EVA_Intrinsic'].is_monotonic_decreasing

    def test_report_lgd_column(self, loan_book, params, as_of):
        df = create_loan_metrics_report(loan_book, params, as_of).set_index('Loan')
        assert df.loc["RCF-1", 'LGD'] == pytest.approx(0.4)
        assert df.loc["RCF-1", 'LGD_Type'] == "guaranteed"

    def test_empty_report(self, params):
        df = create_loan_metrics_report([], params)
        assert df.empty
        assert 'EVA_Intrinsic' in df.columns
