"""Pytest fixtures for loan risk engine tests."""

import pytest
import sys
import os
from datetime import date

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from loan_risk import (
    CalculationParameters,
    CollateralCategory,
    CollateralItem,
    CollateralPortfolio,
    Fees,
    GuaranteedLGD,
    GuaranteedLGDConfig,
    LGDModelParameters,
    Loan,
    VariableLGD,
    VariableLGDConfig,
)


@pytest.fixture
def params():
    """Default calculation parameters."""
    return CalculationParameters.default()


@pytest.fixture
def as_of():
    """Fixed valuation date."""
    return date(2025, 1, 1)


@pytest.fixture
def term_loan():
    """Create a 5-year in fine term loan of 1,000,000."""
    return Loan(
        id="TL-1",
        name="Term loan",
        client_name="TechCorp",
        start_date=date(2024, 1, 1),
        end_date=date(2029, 1, 1),
        original_amount=1_000_000,
        outstanding_amount=1_000_000,
        drawn_amount=1_000_000,
        undrawn_amount=0,
        pd=0.02,
        lgd=0.45,
        ead=1_000_000,
        margin=0.02,
        reference_rate=0.03,
        fees=Fees(upfront=10_000, commitment=0.005),
        internal_rating="BBB",
        sector="Technology",
        country="France",
    )


@pytest.fixture
def revolving_loan():
    """Create a partly drawn facility with a guaranteed LGD."""
    return Loan(
        id="RCF-1",
        name="Revolving facility",
        client_name="Retail Group",
        start_date=date(2024, 6, 1),
        end_date=date(2027, 6, 1),
        original_amount=2_000_000,
        outstanding_amount=1_200_000,
        drawn_amount=1_200_000,
        undrawn_amount=800_000,
        pd=0.01,
        lgd=0.6,
        ead=1_500_000,
        margin=0.015,
        reference_rate=0.03,
        fees=Fees(upfront=5_000, commitment=0.004, agency=2_000),
        internal_rating="A",
        sector="Retail",
        repayment_frequency="quarterly",
        lgd_mode=GuaranteedLGD(GuaranteedLGDConfig(base_lgd=0.6, guarantee_type="corporate",
                                                   coverage=0.5, guarantor_lgd=0.2)),
    )


@pytest.fixture
def variable_lgd_loan():
    """Create a loan whose LGD grows linearly over time."""
    return Loan(
        id="VAR-1",
        start_date=date(2023, 1, 1),
        end_date=date(2028, 1, 1),
        original_amount=500_000,
        drawn_amount=500_000,
        pd=0.03,
        ead=500_000,
        margin=0.03,
        reference_rate=0.02,
        internal_rating="BB",
        lgd_mode=VariableLGD(VariableLGDConfig(
            collateral_type="equipment", model="linear", initial_value=0.3,
            parameters=LGDModelParameters(rate=0.05),
        )),
    )


@pytest.fixture
def loan_book(term_loan, revolving_loan, variable_lgd_loan):
    """Create a small loan book."""
    return [term_loan, revolving_loan, variable_lgd_loan]


@pytest.fixture
def collateral_portfolio():
    """Create a diversified collateral portfolio."""
    return CollateralPortfolio([
        CollateralItem(
            id="RE-1", name="Warehouse", category=CollateralCategory.REAL_ESTATE,
            current_value=600_000, valuation_date=date(2024, 1, 1),
            volatility=0.15, correlation_with_loan=0.3, location="Lyon",
        ),
        CollateralItem(
            id="SEC-1", name="Bond portfolio", category=CollateralCategory.SECURITIES,
            current_value=300_000, valuation_date=date(2024, 1, 1),
            volatility=0.2, correlation_with_loan=0.1, issuer="France", credit_rating="AA",
        ),
        CollateralItem(
            id="CASH-1", name="Deposit", category=CollateralCategory.CASH,
            current_value=100_000, valuation_date=date(2024, 1, 1),
            volatility=0.0, correlation_with_loan=0.0, issuer="centralBank",
        ),
    ], name="TestCollateral")
