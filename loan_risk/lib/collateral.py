"""Collateral valuation and portfolio risk aggregation.

Given a pool of pledged assets this module computes:
- Time-adjusted item values from each item's valuation model
- Diversification (HHI based) and concentration risk
- A heuristic correlation matrix between items
- Parametric Value-at-Risk and a simplified Expected Shortfall
- Portfolio beta and fixed stress scenario losses
- Basel/LCR high quality liquid asset classification
- The effective LGD of a loan secured by the pool

All aggregates are pure functions of the items; ``CollateralPortfolio``
recomputes them on every access.
"""

from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence
import logging
import math

import numpy as np
from scipy.stats import norm

from ..dates import DateLike, to_date

logger = logging.getLogger(__name__)

DAYS_PER_YEAR_ACTUAL = 365.25


class CollateralCategory(str, Enum):
    REAL_ESTATE = "realEstate"
    EQUIPMENT = "equipment"
    VEHICLE = "vehicle"
    CASH = "cash"
    SECURITIES = "securities"
    INVENTORY = "inventory"
    RECEIVABLES = "receivables"
    INTELLECTUAL_PROPERTY = "intellectualProperty"
    COMMODITIES = "commodities"
    OTHER = "other"


C = CollateralCategory

RELATED_CATEGORY_GROUPS = (
    frozenset({C.REAL_ESTATE, C.EQUIPMENT}),
    frozenset({C.SECURITIES, C.CASH}),
    frozenset({C.INVENTORY, C.RECEIVABLES}),
    frozenset({C.VEHICLE, C.EQUIPMENT}),
    frozenset({C.INTELLECTUAL_PROPERTY, C.SECURITIES}),
    frozenset({C.COMMODITIES, C.INVENTORY}),
)

CATEGORY_BETAS: Dict[CollateralCategory, float] = {
    C.REAL_ESTATE: 0.8,
    C.EQUIPMENT: 1.2,
    C.VEHICLE: 1.5,
    C.CASH: 0.0,
    C.SECURITIES: 1.0,
    C.INVENTORY: 1.3,
    C.RECEIVABLES: 1.1,
    C.INTELLECTUAL_PROPERTY: 1.4,
    C.COMMODITIES: 0.9,
    C.OTHER: 1.0,
}

# (name, uniform value shock)
STRESS_SCENARIOS = (
    ("Market Crash", -0.30),
    ("Economic Recession", -0.20),
    ("Interest Rate Shock", -0.15),
    ("Currency Crisis", -0.25),
    ("Sector-Specific Crisis", -0.35),
    ("Liquidity Crisis", -0.40),
    ("Geopolitical Risk", -0.20),
    ("Climate Risk", -0.15),
)

Z_SCORES = {0.95: 1.645, 0.99: 2.326}

BASE_CORRELATION = 0.1
SAME_CATEGORY_CORRELATION = 0.7
RELATED_CATEGORY_CORRELATION = 0.4
SAME_LOCATION_BONUS = 0.2
SAME_ISSUER_BONUS = 0.3
MAX_CORRELATION = 0.9

LEVEL_2A_RATINGS = frozenset({"AAA", "AA+", "AA", "AA-"})
LEVEL_2B_RATINGS = frozenset({"A+", "A", "A-", "BBB+", "BBB", "BBB-"})
LEVEL_2A_HAIRCUT = 0.15
LEVEL_2B_HAIRCUT = 0.50
# Net stable funding is not modelled; a fixed proxy is reported
NSF_RATIO_PROXY = 0.8

HIGH_ENCUMBRANCE = 0.8
HIGH_VOLATILITY = 0.5
LONG_LIQUIDATION_MONTHS = 12


@dataclass(frozen=True)
class ValuationModel:
    """Time-value function of a collateral item.

    Attributes:
        type: 'linear', 'exponential', 'logarithmic', 'polynomial' or 'custom'
        rate: Signed annual growth rate (negative for depreciation)
        coefficients: Polynomial coefficients, index i multiplies t^i
    """
    type: str = "linear"
    rate: float = 0.0
    coefficients: Sequence[float] = (1.0, 0.0)


@dataclass
class CollateralItem:
    """A pledged asset.

    Attributes:
        id: Unique identifier within a portfolio
        name: Display name
        category: Asset category, or None when uncategorized
        current_value: Value at the valuation date
        valuation_date: Date of the last valuation
        valuation_model: Function projecting the value over time
        volatility: Annualised value volatility
        correlation_with_loan: Correlation between the asset and the borrower
        risk_level: 'low', 'medium', 'high' or 'veryHigh'
        legal_status: 'registered', 'pending' or 'unregistered'
        encumbrance_level: Share of the asset already pledged elsewhere
        estimated_liquidation_time: Months needed to liquidate
        location: Optional location (real assets)
        issuer: Optional issuer (securities, cash)
        credit_rating: Optional issuer rating (securities)
    """
    id: str
    name: str
    category: Optional[CollateralCategory]
    current_value: float
    valuation_date: date = field(default_factory=date.today)
    valuation_model: ValuationModel = field(default_factory=ValuationModel)
    volatility: float = 0.0
    correlation_with_loan: float = 0.0
    risk_level: str = "medium"
    legal_status: str = "registered"
    encumbrance_level: float = 0.0
    estimated_liquidation_time: float = 0.0
    location: Optional[str] = None
    issuer: Optional[str] = None
    credit_rating: Optional[str] = None

    def __post_init__(self):
        if self.category is not None:
            self.category = CollateralCategory(self.category)
        self.valuation_date = to_date(self.valuation_date)
        if self.current_value < 0:
            raise ValueError(f"Collateral value must be non-negative, got {self.current_value}")
        if self.volatility < 0:
            raise ValueError(f"Volatility must be non-negative, got {self.volatility}")
        if not 0 <= self.encumbrance_level <= 1:
            raise ValueError(
                f"Encumbrance level must be between 0 and 1, got {self.encumbrance_level}"
            )


@dataclass
class StressTestResult:
    scenario: str
    portfolio_value: float
    loss_amount: float
    impact_percentage: float


@dataclass
class PortfolioRiskMetrics:
    """Risk metrics of a collateral pool.

    Attributes:
        total_value_at_risk: 95% parametric VaR
        weighted_average_volatility: Value-weighted item volatility
        correlation_matrix: Pairwise item correlations
        stress_test_results: Losses under the fixed stress scenarios
        expected_shortfall: Average of the 95% and 99% VaR
        portfolio_beta: Value-weighted category beta
    """
    total_value_at_risk: float
    weighted_average_volatility: float
    correlation_matrix: np.ndarray
    stress_test_results: List[StressTestResult]
    expected_shortfall: float
    portfolio_beta: float


@dataclass
class RegulatoryCompliance:
    """Basel/LCR classification of a collateral pool.

    Ratios are simplified proxies: HQLA value over total value.
    """
    basel_compliant: bool
    lcr_eligible: bool
    hqla_category: str
    issues: List[str]
    lcr_ratio: float
    nsf_ratio: float
    hqla_ratio: float


class CollateralPortfolio:
    """Ordered collection of collateral items.

    Aggregates (total value, diversification, concentration, risk metrics,
    regulatory compliance) are derived from the items each time they are
    read.
    """

    def __init__(self, items: Optional[Sequence[CollateralItem]] = None,
                 name: str = "Collateral"):
        self.name = name
        self._items: Dict[str, CollateralItem] = {}
        for item in items or []:
            self.add_item(item)

    def add_item(self, item: CollateralItem) -> None:
        """Add an item to the portfolio."""
        if item.id in self._items:
            raise ValueError(f"Collateral item '{item.id}' already exists in portfolio")
        self._items[item.id] = item

    def remove_item(self, item_id: str) -> CollateralItem:
        """Remove and return an item from the portfolio."""
        if item_id not in self._items:
            raise KeyError(f"Collateral item '{item_id}' not found in portfolio")
        return self._items.pop(item_id)

    def get_item(self, item_id: str) -> CollateralItem:
        if item_id not in self._items:
            raise KeyError(f"Collateral item '{item_id}' not found in portfolio")
        return self._items[item_id]

    @property
    def items(self) -> List[CollateralItem]:
        return list(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[CollateralItem]:
        return iter(self._items.values())

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._items

    @property
    def total_value(self) -> float:
        return float(sum(item.current_value for item in self._items.values()))

    @property
    def diversification_score(self) -> float:
        return calculate_diversification_score(self)

    @property
    def concentration_risk(self) -> float:
        return calculate_concentration_risk(self)

    @property
    def risk_metrics(self) -> PortfolioRiskMetrics:
        return calculate_portfolio_risk_metrics(self)

    @property
    def regulatory_compliance(self) -> RegulatoryCompliance:
        return validate_regulatory_compliance(self)

    def revalue(self, as_of: Optional[DateLike] = None) -> "CollateralPortfolio":
        """Return a copy with every item valued at ``as_of``."""
        as_of = to_date(as_of) if as_of is not None else date.today()
        return CollateralPortfolio(
            [replace(item, current_value=calculate_collateral_value(item, as_of),
                     valuation_date=as_of)
             for item in self._items.values()],
            name=self.name,
        )

    def __repr__(self) -> str:
        return f"CollateralPortfolio(name={self.name!r}, items={len(self)}, total_value={self.total_value:,.2f})"


# =============================================================================
# Item valuation
# =============================================================================


def calculate_collateral_value(item: CollateralItem, as_of: Optional[DateLike] = None) -> float:
    """Project an item's value to ``as_of`` with its valuation model.

    Unknown model types leave the value unchanged. Results are never negative.
    """
    as_of = to_date(as_of) if as_of is not None else date.today()
    t = (as_of - item.valuation_date).days / DAYS_PER_YEAR_ACTUAL
    value = item.current_value
    model = item.valuation_model
    rate = model.rate

    if model.type == "linear":
        projected = value * (1 + rate * t)
    elif model.type == "exponential":
        projected = value * max(0.0, 1 + rate) ** t if t >= 0 or rate > -1 else 0.0
    elif model.type == "logarithmic":
        projected = value * (1 + rate * math.log1p(t)) if t > -1 else value
    elif model.type == "polynomial":
        projected = value * sum(c * t ** i for i, c in enumerate(model.coefficients))
    elif model.type == "custom":
        projected = value * (1 - 0.05 * t)
    else:
        logger.warning("Unknown valuation model %r for collateral %s, keeping current value",
                       model.type, item.id)
        projected = value

    return max(0.0, projected)


# =============================================================================
# Diversification and concentration
# =============================================================================


def _values(items: Sequence[CollateralItem]) -> np.ndarray:
    return np.array([item.current_value for item in items], dtype=float)


def _grouped_shares(items: Sequence[CollateralItem], shares: np.ndarray, key) -> Dict:
    grouped: Dict = {}
    for item, share in zip(items, shares):
        group = key(item)
        if group is None:
            continue
        grouped[group] = grouped.get(group, 0.0) + share
    return grouped


def calculate_diversification_score(portfolio: CollateralPortfolio) -> float:
    """Diversification score in [0, 1] from individual and category HHI.

    score = (1 - combined_hhi) / (1 - 1/n), with combined_hhi the average
    of the item HHI and the category HHI. Uncategorized items do not enter
    the category HHI. Portfolios with at most one item
    (or no value) score 0.
    """
    items = portfolio.items
    total_value = portfolio.total_value
    if len(items) <= 1 or total_value <= 0:
        return 0.0

    shares = _values(items) / total_value
    hhi = float(np.sum(shares ** 2))
    category_shares = np.array(list(_grouped_shares(items, shares, lambda i: i.category).values()),
                               dtype=float)
    category_hhi = float(np.sum(category_shares ** 2))

    combined_hhi = (hhi + category_hhi) / 2
    perfect_diversification_hhi = 1 / len(items)
    score = (1 - combined_hhi) / (1 - perfect_diversification_hhi)
    return max(0.0, min(1.0, score))


def calculate_concentration_risk(portfolio: CollateralPortfolio) -> float:
    """Weighted blend of the largest item, category and location shares.

    0.4 * max item share + 0.4 * max category share + 0.2 * max location
    share (0 without location data). An empty portfolio has risk 1.
    """
    items = portfolio.items
    total_value = portfolio.total_value
    if not items or total_value <= 0:
        return 1.0

    shares = _values(items) / total_value
    max_share = float(np.max(shares))
    category_shares = _grouped_shares(items, shares, lambda i: i.category)
    max_category_share = max(category_shares.values()) if category_shares else 0.0
    location_shares = _grouped_shares(items, shares, lambda i: i.location or None)
    max_location_share = max(location_shares.values()) if location_shares else 0.0

    return 0.4 * max_share + 0.4 * max_category_share + 0.2 * max_location_share


# =============================================================================
# Correlation, VaR and expected shortfall
# =============================================================================


def categories_related(first: CollateralCategory, second: CollateralCategory) -> bool:
    return any(first in group and second in group for group in RELATED_CATEGORY_GROUPS)


def category_correlation(first: CollateralItem, second: CollateralItem) -> float:
    """Correlation between two distinct items from their categories alone."""
    if first.category is not None and first.category == second.category:
        return SAME_CATEGORY_CORRELATION
    if categories_related(first.category, second.category):
        return RELATED_CATEGORY_CORRELATION
    return BASE_CORRELATION


def pairwise_correlation(first: CollateralItem, second: CollateralItem) -> float:
    """Heuristic correlation between two distinct items, capped at 0.9.

    Adds the shared location and shared issuer bonuses to the category
    correlation.
    """
    correlation = category_correlation(first, second)
    if first.location and first.location == second.location:
        correlation += SAME_LOCATION_BONUS
    if first.issuer and first.issuer == second.issuer:
        correlation += SAME_ISSUER_BONUS

    return min(MAX_CORRELATION, correlation)


def calculate_correlation_matrix(items: Sequence[CollateralItem]) -> np.ndarray:
    """Symmetric item correlation matrix with a unit diagonal."""
    n = len(items)
    matrix = np.eye(n)
    for i in range(n):
        for j in range(i + 1, n):
            corr = pairwise_correlation(items[i], items[j])
            matrix[i, j] = corr
            matrix[j, i] = corr
    return matrix


def correlation_effect(items: Sequence[CollateralItem]) -> float:
    """1 + average category correlation * (n - 1) / n; 1 for n <= 1.

    Location and issuer bonuses only enter the reported correlation matrix.
    """
    n = len(items)
    if n <= 1:
        return 1.0
    average_correlation = float(np.mean([
        category_correlation(items[i], items[j])
        for i in range(n) for j in range(i + 1, n)
    ]))
    return 1 + average_correlation * (n - 1) / n


def weighted_volatility(portfolio: CollateralPortfolio) -> float:
    total_value = portfolio.total_value
    if total_value <= 0:
        return 0.0
    items = portfolio.items
    weights = _values(items) / total_value
    return float(np.dot(weights, [item.volatility for item in items]))


def z_score(confidence: float) -> float:
    """One-sided normal quantile, using the customary rounded values at 95% and 99%."""
    if confidence in Z_SCORES:
        return Z_SCORES[confidence]
    if not 0 < confidence < 1:
        raise ValueError(f"Confidence must be between 0 and 1, got {confidence}")
    return float(norm.ppf(confidence))


def calculate_value_at_risk(portfolio: CollateralPortfolio, confidence: float = 0.95) -> float:
    """Parametric VaR: total * volatility * sqrt(correlation effect) * z."""
    total_value = portfolio.total_value
    if total_value <= 0:
        return 0.0
    adjusted_volatility = weighted_volatility(portfolio) * math.sqrt(correlation_effect(portfolio.items))
    return total_value * adjusted_volatility * z_score(confidence)


def calculate_expected_shortfall(portfolio: CollateralPortfolio) -> float:
    """Average of the 95% and 99% VaR.

    This is a proxy for the tail expectation, not a tail integral.
    """
    var_95 = calculate_value_at_risk(portfolio, 0.95)
    var_99 = calculate_value_at_risk(portfolio, 0.99)
    return (var_95 + var_99) / 2


def calculate_portfolio_beta(portfolio: CollateralPortfolio) -> float:
    total_value = portfolio.total_value
    if total_value <= 0:
        return 0.0
    return float(sum(
        item.current_value / total_value * CATEGORY_BETAS.get(item.category, 1.0)
        for item in portfolio
    ))


def calculate_stress_test_results(portfolio: CollateralPortfolio) -> List[StressTestResult]:
    """Apply each fixed stress shock uniformly to the portfolio value."""
    total_value = portfolio.total_value
    results = []
    for name, impact in STRESS_SCENARIOS:
        stressed_value = total_value * (1 + impact)
        results.append(StressTestResult(
            scenario=name,
            portfolio_value=stressed_value,
            loss_amount=total_value - stressed_value,
            impact_percentage=impact * 100,
        ))
    return results


def calculate_portfolio_risk_metrics(portfolio: CollateralPortfolio) -> PortfolioRiskMetrics:
    """Compute all risk metrics of a collateral portfolio."""
    return PortfolioRiskMetrics(
        total_value_at_risk=calculate_value_at_risk(portfolio, 0.95),
        weighted_average_volatility=weighted_volatility(portfolio),
        correlation_matrix=calculate_correlation_matrix(portfolio.items),
        stress_test_results=calculate_stress_test_results(portfolio),
        expected_shortfall=calculate_expected_shortfall(portfolio),
        portfolio_beta=calculate_portfolio_beta(portfolio),
    )


# =============================================================================
# Regulatory classification
# =============================================================================


def validate_regulatory_compliance(portfolio: CollateralPortfolio) -> RegulatoryCompliance:
    """Classify the pool into HQLA tiers and list compliance issues.

    Level 1: cash held at a central bank. Level 2A: AA- or better
    securities at a 15% haircut. Level 2B: A+ to BBB- securities at a 50%
    haircut. The reported category is the best tier present.
    """
    level1 = level2a = level2b = 0.0
    issues: List[str] = []
    basel_compliant = True

    for item in portfolio:
        if item.category == C.CASH and item.issuer == "centralBank":
            level1 += item.current_value
        elif item.category == C.SECURITIES and item.credit_rating in LEVEL_2A_RATINGS:
            level2a += item.current_value * (1 - LEVEL_2A_HAIRCUT)
        elif item.category == C.SECURITIES and item.credit_rating in LEVEL_2B_RATINGS:
            level2b += item.current_value * (1 - LEVEL_2B_HAIRCUT)

        if item.legal_status == "unregistered":
            issues.append(f"Collateral {item.name} is not legally registered")
            basel_compliant = False
        if item.encumbrance_level > HIGH_ENCUMBRANCE:
            issues.append(f"Collateral {item.name} is highly encumbered "
                          f"({item.encumbrance_level * 100:.1f}%)")
        if item.volatility > HIGH_VOLATILITY:
            issues.append(f"Collateral {item.name} has high volatility "
                          f"({item.volatility * 100:.1f}%)")
        if item.estimated_liquidation_time > LONG_LIQUIDATION_MONTHS:
            issues.append(f"Collateral {item.name} has long liquidation time "
                          f"({item.estimated_liquidation_time:g} months)")

    if level1 > 0:
        hqla_category = "level1"
    elif level2a > 0:
        hqla_category = "level2a"
    elif level2b > 0:
        hqla_category = "level2b"
    else:
        hqla_category = "ineligible"

    total_value = portfolio.total_value
    hqla_ratio = (level1 + level2a + level2b) / total_value if total_value > 0 else 0.0

    return RegulatoryCompliance(
        basel_compliant=basel_compliant,
        lcr_eligible=hqla_category != "ineligible",
        hqla_category=hqla_category,
        issues=issues,
        lcr_ratio=hqla_ratio,
        nsf_ratio=NSF_RATIO_PROXY,
        hqla_ratio=hqla_ratio,
    )


# =============================================================================
# Effective LGD
# =============================================================================


def calculate_correlation_adjustment(portfolio: CollateralPortfolio) -> float:
    """Value-weighted average of the items' correlation with the loan."""
    total_value = portfolio.total_value
    if not len(portfolio) or total_value <= 0:
        return 0.0
    weighted = sum(item.current_value / total_value * item.correlation_with_loan
                   for item in portfolio)
    return max(0.0, weighted)


def calculate_effective_lgd_with_collateral(base_lgd: float, portfolio: CollateralPortfolio,
                                            loan_amount: float,
                                            haircut_percentage: float = 0.25) -> float:
    """LGD net of collateral.

    LGD_eff = max(0, LGD_base - V * (1 - haircut) * (1 - rho) / loan_amount),
    capped at 1, where rho is the value-weighted correlation with the loan.
    A non-positive loan amount leaves the base LGD unchanged.
    """
    if loan_amount <= 0:
        return max(0.0, min(1.0, base_lgd))
    haircut_value = portfolio.total_value * (1 - haircut_percentage)
    adjusted_value = haircut_value * (1 - calculate_correlation_adjustment(portfolio))
    return min(1.0, max(0.0, base_lgd - adjusted_value / loan_amount))


# =============================================================================
# Recommendations
# =============================================================================


@dataclass(frozen=True)
class ValuationRecommendation:
    volatility: float
    correlation_with_loan: float
    monitoring_frequency: str
    haircut_percentage: float
    valuation_method: str
    valuation_model: str


CATEGORY_RECOMMENDATIONS: Dict[CollateralCategory, ValuationRecommendation] = {
    C.REAL_ESTATE: ValuationRecommendation(0.15, 0.3, "quarterly", 0.25, "marketValue", "exponential"),
    C.EQUIPMENT: ValuationRecommendation(0.25, 0.5, "monthly", 0.35, "replacementCost", "linear"),
    C.VEHICLE: ValuationRecommendation(0.30, 0.6, "monthly", 0.40, "marketValue", "exponential"),
    C.CASH: ValuationRecommendation(0.02, 0.1, "daily", 0.05, "marketValue", "linear"),
    C.SECURITIES: ValuationRecommendation(0.20, 0.4, "daily", 0.15, "marketValue", "linear"),
    C.INVENTORY: ValuationRecommendation(0.35, 0.7, "weekly", 0.45, "bookValue", "linear"),
    C.RECEIVABLES: ValuationRecommendation(0.25, 0.8, "monthly", 0.30, "bookValue", "linear"),
    C.INTELLECTUAL_PROPERTY: ValuationRecommendation(
        0.40, 0.2, "quarterly", 0.50, "incomeApproach", "exponential"),
    C.COMMODITIES: ValuationRecommendation(0.30, 0.3, "daily", 0.20, "marketValue", "linear"),
    C.OTHER: ValuationRecommendation(0.25, 0.5, "monthly", 0.35, "marketValue", "linear"),
}


def recommended_valuation_params(category) -> ValuationRecommendation:
    """Recommended risk and valuation settings for a collateral category.

    Raises:
        ValueError: If the category is unknown
    """
    return CATEGORY_RECOMMENDATIONS[CollateralCategory(category)]
