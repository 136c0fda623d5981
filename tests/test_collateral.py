"""Tests for collateral.py - collateral valuation and risk aggregation."""

import math
from datetime import date

import numpy as np
import pytest

from loan_risk.lib.collateral import (
    CollateralCategory,
    CollateralItem,
    CollateralPortfolio,
    ValuationModel,
    calculate_collateral_value,
    calculate_concentration_risk,
    calculate_correlation_matrix,
    calculate_diversification_score,
    calculate_effective_lgd_with_collateral,
    calculate_expected_shortfall,
    calculate_portfolio_beta,
    calculate_stress_test_results,
    calculate_value_at_risk,
    category_correlation,
    correlation_effect,
    pairwise_correlation,
    recommended_valuation_params,
    validate_regulatory_compliance,
    z_score,
)


def make_item(item_id, category=CollateralCategory.OTHER, value=100.0, **kwargs):
    return CollateralItem(id=item_id, name=item_id, category=category,
                          current_value=value, valuation_date=date(2024, 1, 1), **kwargs)


class TestCollateralItem:
    """Tests for CollateralItem validation."""

    def test_negative_value(self):
        with pytest.raises(ValueError, match="non-negative"):
            make_item("x", value=-1)

    def test_encumbrance_range(self):
        with pytest.raises(ValueError, match="between 0 and 1"):
            make_item("x", encumbrance_level=1.5)

    def test_category_from_string(self):
        item = make_item("x", category="realEstate")
        assert item.category == CollateralCategory.REAL_ESTATE

    def test_valuation_date_from_string(self):
        item = CollateralItem(id="x", name="x", category=None, current_value=1,
                              valuation_date="2024-03-01")
        assert item.valuation_date == date(2024, 3, 1)


class TestCollateralValue:
    """Tests for time-adjusted item valuation."""

    # 1461 days = 4 years of 365.25 days
    AS_OF = date(2028, 1, 1)

    @pytest.mark.parametrize("model,expected", [
        (ValuationModel("linear", rate=0.05), 120.0),
        (ValuationModel("exponential", rate=0.1), 146.41),
        (ValuationModel("logarithmic", rate=0.1), 100 * (1 + 0.1 * math.log(5))),
        (ValuationModel("polynomial", coefficients=(1.0, 0.1)), 140.0),
        (ValuationModel("polynomial"), 100.0),
        (ValuationModel("custom"), 80.0),
        (ValuationModel("appraisal", rate=0.5), 100.0),
    ])
    def test_models(self, model, expected):
        item = make_item("x", valuation_model=model)
        assert calculate_collateral_value(item, self.AS_OF) == pytest.approx(expected)

    def test_never_negative(self):
        item = make_item("x", valuation_model=ValuationModel("linear", rate=-0.5))
        assert calculate_collateral_value(item, self.AS_OF) == 0.0

    def test_at_valuation_date(self):
        item = make_item("x", valuation_model=ValuationModel("exponential", rate=0.3))
        assert calculate_collateral_value(item, date(2024, 1, 1)) == pytest.approx(100.0)

    def test_revalue(self, collateral_portfolio):
        for item in collateral_portfolio:
            item.valuation_model = ValuationModel("linear", rate=0.05)
        revalued = collateral_portfolio.revalue(self.AS_OF)
        assert revalued.total_value == pytest.approx(1_200_000)
        assert all(item.valuation_date == self.AS_OF for item in revalued)
        assert collateral_portfolio.total_value == pytest.approx(1_000_000)


class TestCollateralPortfolio:
    """Tests for the collateral container."""

    def test_total_value(self, collateral_portfolio):
        assert len(collateral_portfolio) == 3
        assert collateral_portfolio.total_value == pytest.approx(1_000_000)

    def test_duplicate_item(self, collateral_portfolio):
        with pytest.raises(ValueError, match="already exists"):
            collateral_portfolio.add_item(make_item("RE-1"))

    def test_remove_item(self, collateral_portfolio):
        item = collateral_portfolio.remove_item("CASH-1")
        assert item.id == "CASH-1"
        assert "CASH-1" not in collateral_portfolio
        assert collateral_portfolio.total_value == pytest.approx(900_000)

    def test_missing_item(self, collateral_portfolio):
        with pytest.raises(KeyError):
            collateral_portfolio.get_item("nope")
        with pytest.raises(KeyError):
            collateral_portfolio.remove_item("nope")

    def test_aggregates_follow_items(self, collateral_portfolio):
        """Test that aggregates are recomputed after the items change."""
        before = collateral_portfolio.diversification_score
        collateral_portfolio.add_item(make_item("EQ-1", CollateralCategory.EQUIPMENT, 400_000))
        assert collateral_portfolio.total_value == pytest.approx(1_400_000)
        assert collateral_portfolio.diversification_score != before

    def test_repr(self, collateral_portfolio):
        assert "TestCollateral" in repr(collateral_portfolio)


class TestDiversification:
    """Tests for the HHI based diversification score."""

    def test_three_items(self, collateral_portfolio):
        # HHI = 0.46 for items and categories alike
        assert calculate_diversification_score(collateral_portfolio) == pytest.approx(0.54 / (2 / 3))

    def test_single_item(self):
        portfolio = CollateralPortfolio([make_item("a", value=1_000)])
        assert calculate_diversification_score(portfolio) == 0.0

    def test_empty(self):
        assert calculate_diversification_score(CollateralPortfolio()) == 0.0

    def test_zero_value(self):
        portfolio = CollateralPortfolio([make_item("a", value=0), make_item("b", value=0)])
        assert calculate_diversification_score(portfolio) == 0.0

    def test_same_category_penalized(self):
        """Test that items in one category score below the same items spread across categories."""
        same = CollateralPortfolio([make_item(f"i{k}", CollateralCategory.VEHICLE) for k in range(4)])
        spread = CollateralPortfolio([
            make_item("a", CollateralCategory.VEHICLE),
            make_item("b", CollateralCategory.CASH),
            make_item("c", CollateralCategory.SECURITIES),
            make_item("d", CollateralCategory.INVENTORY),
        ])
        assert calculate_diversification_score(same) == pytest.approx(0.5)
        assert calculate_diversification_score(spread) == pytest.approx(1.0)

    @pytest.mark.parametrize("n", [2, 10, 50])
    def test_uncategorized_equal_values(self, n):
        """Test that equal-value uncategorized items are fully diversified."""
        portfolio = CollateralPortfolio([make_item(f"i{k}", category=None) for k in range(n)])
        assert calculate_diversification_score(portfolio) == pytest.approx(1.0)

    def test_score_in_unit_interval(self):
        portfolio = CollateralPortfolio([
            make_item("a", value=1_000_000), make_item("b", value=1), make_item("c", value=1),
        ])
        assert 0.0 <= calculate_diversification_score(portfolio) <= 1.0


class TestConcentration:
    """Tests for concentration risk."""

    def test_empty(self):
        assert calculate_concentration_risk(CollateralPortfolio()) == 1.0

    def test_weighted_blend(self, collateral_portfolio):
        # Largest item, category and location are all the 60% warehouse
        assert calculate_concentration_risk(collateral_portfolio) == pytest.approx(0.6)

    def test_without_locations(self):
        portfolio = CollateralPortfolio([
            make_item("a", CollateralCategory.CASH, 50),
            make_item("b", CollateralCategory.CASH, 50),
        ])
        assert calculate_concentration_risk(portfolio) == pytest.approx(0.4 * 0.5 + 0.4 * 1.0)

    def test_single_item(self):
        portfolio = CollateralPortfolio([make_item("a", location="Paris")])
        assert calculate_concentration_risk(portfolio) == pytest.approx(1.0)


class TestCorrelation:
    """Tests for the heuristic correlation matrix."""

    def test_rules(self):
        a = make_item("a", CollateralCategory.REAL_ESTATE)
        b = make_item("b", CollateralCategory.EQUIPMENT)
        c = make_item("c", CollateralCategory.REAL_ESTATE)
        d = make_item("d", CollateralCategory.CASH)
        assert pairwise_correlation(a, c) == pytest.approx(0.7)
        assert pairwise_correlation(a, b) == pytest.approx(0.4)
        assert pairwise_correlation(a, d) == pytest.approx(0.1)

    def test_location_and_issuer(self):
        a = make_item("a", CollateralCategory.SECURITIES, issuer="ACME", location="NY")
        b = make_item("b", CollateralCategory.INVENTORY, issuer="ACME")
        c = make_item("c", CollateralCategory.SECURITIES, issuer="ACME", location="NY")
        assert pairwise_correlation(a, b) == pytest.approx(0.4)
        assert pairwise_correlation(a, c) == pytest.approx(0.9)

    def test_matrix(self, collateral_portfolio):
        matrix = calculate_correlation_matrix(collateral_portfolio.items)
        assert matrix.shape == (3, 3)
        assert np.allclose(np.diag(matrix), 1.0)
        assert np.allclose(matrix, matrix.T)
        assert matrix[1, 2] == pytest.approx(0.4)
        assert matrix[0, 1] == pytest.approx(0.1)

    def test_correlation_effect(self, collateral_portfolio):
        assert correlation_effect(collateral_portfolio.items) == pytest.approx(1 + 0.2 * 2 / 3)
        assert correlation_effect([]) == 1.0

    def test_correlation_effect_ignores_shared_location(self):
        """Test that the VaR correlation effect uses category correlation only."""
        building = make_item("a", CollateralCategory.REAL_ESTATE, location="Lyon")
        invoices = make_item("b", CollateralCategory.RECEIVABLES, location="Lyon")
        assert pairwise_correlation(building, invoices) == pytest.approx(0.3)
        assert calculate_correlation_matrix([building, invoices])[0, 1] == pytest.approx(0.3)
        assert category_correlation(building, invoices) == pytest.approx(0.1)
        assert correlation_effect([building, invoices]) == pytest.approx(1.05)

    def test_value_at_risk_ignores_shared_issuer(self):
        shared = CollateralPortfolio([
            make_item("a", CollateralCategory.SECURITIES, 100, volatility=0.2, issuer="ACME"),
            make_item("b", CollateralCategory.SECURITIES, 100, volatility=0.2, issuer="ACME"),
        ])
        distinct = CollateralPortfolio([
            make_item("a", CollateralCategory.SECURITIES, 100, volatility=0.2, issuer="ACME"),
            make_item("b", CollateralCategory.SECURITIES, 100, volatility=0.2, issuer="Other"),
        ])
        assert calculate_value_at_risk(shared) == pytest.approx(calculate_value_at_risk(distinct))


class TestRiskMetrics:
    """Tests for VaR, expected shortfall, beta and stress tests."""

    def test_z_scores(self):
        assert z_score(0.95) == 1.645
        assert z_score(0.99) == 2.326
        assert z_score(0.975) == pytest.approx(1.959964, abs=1e-6)
        with pytest.raises(ValueError):
            z_score(1.5)

    def test_value_at_risk(self, collateral_portfolio):
        expected = 1_000_000 * 0.15 * math.sqrt(1 + 0.2 * 2 / 3) * 1.645
        assert calculate_value_at_risk(collateral_portfolio) == pytest.approx(expected)

    def test_expected_shortfall(self, collateral_portfolio):
        var_95 = calculate_value_at_risk(collateral_portfolio, 0.95)
        var_99 = calculate_value_at_risk(collateral_portfolio, 0.99)
        assert calculate_expected_shortfall(collateral_portfolio) == pytest.approx((var_95 + var_99) / 2)
        assert var_99 > var_95

    def test_beta(self, collateral_portfolio):
        assert calculate_portfolio_beta(collateral_portfolio) == pytest.approx(0.78)

    def test_stress_tests(self, collateral_portfolio):
        results = calculate_stress_test_results(collateral_portfolio)
        assert len(results) == 8
        crash = results[0]
        assert crash.scenario == "Market Crash"
        assert crash.portfolio_value == pytest.approx(700_000)
        assert crash.loss_amount == pytest.approx(300_000)
        assert crash.impact_percentage == pytest.approx(-30)
        liquidity = next(r for r in results if r.scenario == "Liquidity Crisis")
        assert liquidity.loss_amount == pytest.approx(400_000)

    def test_risk_metrics_record(self, collateral_portfolio):
        metrics = collateral_portfolio.risk_metrics
        assert metrics.weighted_average_volatility == pytest.approx(0.15)
        assert metrics.correlation_matrix.shape == (3, 3)
        assert len(metrics.stress_test_results) == 8

    def test_empty_portfolio(self):
        portfolio = CollateralPortfolio()
        assert calculate_value_at_risk(portfolio) == 0.0
        assert calculate_expected_shortfall(portfolio) == 0.0
        assert calculate_portfolio_beta(portfolio) == 0.0
        assert portfolio.risk_metrics.correlation_matrix.shape == (0, 0)


class TestRegulatoryCompliance:
    """Tests for HQLA classification and compliance issues."""

    def test_hqla_tiers(self, collateral_portfolio):
        compliance = validate_regulatory_compliance(collateral_portfolio)
        assert compliance.hqla_category == "level1"
        assert compliance.lcr_eligible
        assert compliance.basel_compliant
        assert compliance.issues == []
        # 100,000 central bank cash + 300,000 AA securities at 85%
        assert compliance.hqla_ratio == pytest.approx(0.355)
        assert compliance.lcr_ratio == pytest.approx(0.355)
        assert compliance.nsf_ratio == pytest.approx(0.8)

    def test_level_2b(self):
        portfolio = CollateralPortfolio([
            make_item("bond", CollateralCategory.SECURITIES, 100, credit_rating="BBB"),
            make_item("plant", CollateralCategory.EQUIPMENT, 100),
        ])
        compliance = portfolio.regulatory_compliance
        assert compliance.hqla_category == "level2b"
        assert compliance.hqla_ratio == pytest.approx(0.25)

    def test_best_tier_regardless_of_order(self):
        """Test that the reported tier is the best one present, not the first one met."""
        portfolio = CollateralPortfolio([
            make_item("bbb", CollateralCategory.SECURITIES, 100, credit_rating="BBB"),
            make_item("aa", CollateralCategory.SECURITIES, 100, credit_rating="AA"),
        ])
        compliance = portfolio.regulatory_compliance
        assert compliance.hqla_category == "level2a"
        assert compliance.hqla_ratio == pytest.approx((50 + 85) / 200)

    def test_ineligible(self):
        portfolio = CollateralPortfolio([make_item("plant", CollateralCategory.EQUIPMENT)])
        compliance = portfolio.regulatory_compliance
        assert compliance.hqla_category == "ineligible"
        assert not compliance.lcr_eligible
        assert compliance.hqla_ratio == 0.0

    def test_issues(self):
        portfolio = CollateralPortfolio([
            make_item("a", legal_status="unregistered"),
            make_item("b", encumbrance_level=0.9),
            make_item("c", volatility=0.6),
            make_item("d", estimated_liquidation_time=18),
        ])
        compliance = portfolio.regulatory_compliance
        assert not compliance.basel_compliant
        assert len(compliance.issues) == 4
        assert "not legally registered" in compliance.issues[0]
        assert "90.0%" in compliance.issues[1]

    def test_encumbrance_alone_keeps_compliance(self):
        portfolio = CollateralPortfolio([make_item("b", encumbrance_level=0.9)])
        assert portfolio.regulatory_compliance.basel_compliant

    def test_empty(self):
        compliance = validate_regulatory_compliance(CollateralPortfolio())
        assert compliance.hqla_category == "ineligible"
        assert compliance.hqla_ratio == 0.0


class TestEffectiveLGDWithCollateral:
    """Tests for LGD net of collateral."""

    def test_formula(self, collateral_portfolio):
        result = calculate_effective_lgd_with_collateral(0.45, collateral_portfolio, 10_000_000)
        assert result == pytest.approx(0.45 - 1_000_000 * 0.75 * 0.79 / 10_000_000)

    def test_floor_at_zero(self, collateral_portfolio):
        assert calculate_effective_lgd_with_collateral(0.45, collateral_portfolio, 100_000) == 0.0

    def test_capped_at_one(self):
        assert calculate_effective_lgd_with_collateral(1.3, CollateralPortfolio(), 1_000) == 1.0

    def test_no_loan_amount(self, collateral_portfolio):
        assert calculate_effective_lgd_with_collateral(0.45, collateral_portfolio, 0) == 0.45


class TestRecommendations:
    """Tests for recommended valuation parameters."""

    def test_real_estate(self):
        params = recommended_valuation_params(CollateralCategory.REAL_ESTATE)
        assert params.volatility == 0.15
        assert params.correlation_with_loan == 0.3
        assert params.monitoring_frequency == "quarterly"
        assert params.haircut_percentage == 0.25
        assert params.valuation_model == "exponential"

    def test_cash_by_name(self):
        params = recommended_valuation_params("cash")
        assert params.monitoring_frequency == "daily"
        assert params.haircut_percentage == 0.05

    def test_unknown_category(self):
        with pytest.raises(ValueError):
            recommended_valuation_params("artwork")
