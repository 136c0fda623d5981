#!/usr/bin/env python3
"""Example usage of the loan risk engine.

This script demonstrates:
1. Building a loan book from records and calculation parameters
2. Loan metrics (EL, RWA, ROE, RAROC, EVA)
3. Variable, guaranteed and collateralized LGD
4. Collateral risk aggregation
5. Portfolio metrics and stress scenarios
6. Contractual, forecast and stress cash-flow schedules
"""

from datetime import date
from typing import List
import logging

from loan_risk import (
    CalculationParameters,
    CollateralCategory,
    CollateralItem,
    CollateralPortfolio,
    Loan,
    StressScenarioType,
    ValuationModel,
    calculate_effective_lgd,
    calculate_portfolio_metrics,
    create_loan_metrics_report,
    create_scenario_report,
    generate_cash_flows,
    run_stress_scenarios,
    summarize_cash_flows,
)
from loan_risk.lib.lgd_models import LGDCurve

AS_OF = date(2025, 6, 30)


def create_sample_collateral() -> CollateralPortfolio:
    """Create a sample collateral pool backing a real estate loan."""
    return CollateralPortfolio([
        CollateralItem(
            id="office-paris", name="Paris office building",
            category=CollateralCategory.REAL_ESTATE, current_value=6_000_000,
            valuation_date=date(2024, 1, 1),
            valuation_model=ValuationModel("exponential", rate=0.03),
            volatility=0.15, correlation_with_loan=0.3, location="Paris",
        ),
        CollateralItem(
            id="gov-bonds", name="Government bond portfolio",
            category=CollateralCategory.SECURITIES, current_value=2_000_000,
            valuation_date=date(2024, 1, 1), volatility=0.05,
            correlation_with_loan=0.1, issuer="France", credit_rating="AA",
        ),
        CollateralItem(
            id="cash-deposit", name="Cash deposit",
            category=CollateralCategory.CASH, current_value=500_000,
            valuation_date=date(2024, 1, 1), volatility=0.0,
            issuer="centralBank",
        ),
    ], name="Real estate collateral")


def create_sample_loans(params: CalculationParameters) -> List[Loan]:
    """Create a sample loan book with one loan per LGD mode."""
    records = [
        {"id": "L001", "name": "Term loan", "clientName": "TechCorp",
         "startDate": "2024-01-15", "endDate": "2029-01-15",
         "originalAmount": 10_000_000, "outstandingAmount": 10_000_000,
         "drawnAmount": 8_000_000, "undrawnAmount": 2_000_000,
         "ead": 9_000_000, "margin": 0.025, "referenceRate": 0.03,
         "fees": {"upfront": 100_000, "commitment": 0.005},
         "internalRating": "BBB", "sector": "Technology", "country": "France"},

        {"id": "L002", "name": "Equipment financing", "clientName": "Manufacturing SA",
         "startDate": "2023-07-01", "endDate": "2028-07-01",
         "originalAmount": 5_000_000, "outstandingAmount": 4_000_000,
         "drawnAmount": 5_000_000, "ead": 4_000_000,
         "margin": 0.03, "referenceRate": 0.03, "internalRating": "BB",
         "sector": "Manufacturing", "repaymentFrequency": "quarterly",
         "amortizationType": "annuity",
         "lgdType": "variable",
         "lgdConfig": {"type": "equipment", "model": "exponential", "initialValue": 0.4,
                       "parameters": {"appreciationRate": 0.1}}},

        {"id": "L003", "name": "Guaranteed facility", "clientName": "Retail Group",
         "startDate": "2024-03-01", "endDate": "2027-03-01",
         "originalAmount": 3_000_000, "drawnAmount": 3_000_000, "ead": 3_000_000,
         "margin": 0.02, "referenceRate": 0.03, "internalRating": "A",
         "sector": "Retail", "amortizationType": "constant",
         "lgdType": "guaranteed",
         "lgdConfig": {"baseLGD": 0.6, "guaranteeType": "government",
                       "coverage": 0.8, "guarantorLGD": 0.0}},
    ]
    loans = [Loan.from_dict(record, params) for record in records]

    loans.append(Loan.from_dict(
        {"id": "L004", "name": "Real estate loan", "clientName": "Property Co",
         "startDate": "2024-01-01", "endDate": "2034-01-01",
         "originalAmount": 12_000_000, "drawnAmount": 12_000_000, "ead": 12_000_000,
         "margin": 0.018, "referenceRate": 0.03, "internalRating": "BBB+",
         "sector": "Real Estate", "repaymentFrequency": "semiannual",
         "amortizationType": "constant", "lgdType": "collateralized"},
        params,
        collateral=create_sample_collateral(),
    ))
    return loans


def main():
    """Run the example."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print("=" * 70)
    print("LOAN RISK ENGINE - EXAMPLE")
    print("=" * 70)

    params = CalculationParameters.default()

    print("\n1. Creating sample loan book...")
    loans = create_sample_loans(params)
    print(f"   Number of loans: {len(loans)}")
    for loan in loans:
        print(f"   {loan.id} {loan.name:<22} {loan.lgd_type:<15} "
              f"LGD {calculate_effective_lgd(loan, AS_OF, params):.2%}")

    print("\n2. Loan metrics (sorted by intrinsic EVA)...")
    report = create_loan_metrics_report(loans, params, AS_OF)
    display_cols = ['Loan', 'Rating', 'Expected_Loss', 'RWA', 'ROE', 'RAROC', 'EVA_Intrinsic']
    print(report[display_cols].to_string(index=False))

    print("\n3. Variable LGD curve (L002)...")
    curve = LGDCurve(loans[1].lgd_mode.config, loans[1].start_date, loans[1].end_date,
                     interval_months=12)
    print(curve.to_frame().to_string(index=False))

    print("\n4. Collateral risk (L004)...")
    collateral = loans[3].lgd_mode.portfolio.revalue(AS_OF)
    risk = collateral.risk_metrics
    compliance = collateral.regulatory_compliance
    print(f"   Total value: {collateral.total_value:,.0f}")
    print(f"   Diversification score: {collateral.diversification_score:.2f}")
    print(f"   Concentration risk: {collateral.concentration_risk:.2f}")
    print(f"   VaR (95%): {risk.total_value_at_risk:,.0f}")
    print(f"   Expected shortfall: {risk.expected_shortfall:,.0f}")
    print(f"   Beta: {risk.portfolio_beta:.2f}")
    print(f"   HQLA category: {compliance.hqla_category} (ratio {compliance.hqla_ratio:.2%})")

    print("\n5. Portfolio metrics...")
    metrics = calculate_portfolio_metrics(loans, params, AS_OF)
    print(f"   Total exposure: {metrics.total_exposure:,.0f}")
    print(f"   Weighted PD: {metrics.weighted_average_pd:.4f}")
    print(f"   Weighted LGD: {metrics.weighted_average_lgd:.4f}")
    print(f"   Expected loss: {metrics.total_expected_loss:,.0f}")
    print(f"   RWA: {metrics.total_rwa:,.0f}")
    print(f"   ROE: {metrics.portfolio_roe:.2%}  RAROC: {metrics.portfolio_raroc:.2%}")
    print(f"   EVA (intrinsic): {metrics.eva_sum_intrinsic:,.0f}")

    print("\n6. Stress scenarios...")
    scenarios = run_stress_scenarios(loans, params, as_of=AS_OF)
    print(create_scenario_report(scenarios).to_string(index=False))

    print("\n7. Cash-flow schedules (L003)...")
    for kind in ("contractual", "forecast"):
        flows = generate_cash_flows(loans[2], kind)
        print(f"\n   {kind.capitalize()} schedule:")
        print(summarize_cash_flows(flows).to_string(index=False))

    flows = generate_cash_flows(loans[2], "stress", StressScenarioType.DEFAULT)
    print("\n   Default stress events:")
    for flow in flows:
        if flow.type.value in ("default", "recovery", "netloss"):
            print(f"   {flow.date} {flow.type.value:<10} {flow.amount:>14,.2f}  {flow.description}")

    print("\n" + "=" * 70)
    print("EXAMPLE COMPLETE")
    print("=" * 70)


if __name__ == "__main__":
    main()
