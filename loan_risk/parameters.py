"""Calculation parameters shared by every metrics computation.

The parameters are immutable for the duration of a calculation. Use
``CalculationParameters.default()`` for the standard assumptions or
``CalculationParameters.from_dict()`` to overlay a partial set of values
(for example one loaded by a parameter store) onto the defaults.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional, Tuple
import logging
import re

logger = logging.getLogger(__name__)


# Rating used when a loan's internal rating is not in the risk weight table
FALLBACK_RATING = "BB-"

DEFAULT_PD_CURVE: Dict[str, float] = {
    "AAA": 0.0001,
    "AA+": 0.0002,
    "AA": 0.0003,
    "AA-": 0.0005,
    "A+": 0.0008,
    "A": 0.0012,
    "A-": 0.0018,
    "BBB+": 0.0025,
    "BBB": 0.0035,
    "BBB-": 0.0050,
    "BB+": 0.0075,
    "BB": 0.0125,
    "BB-": 0.0200,
    "B+": 0.0350,
    "B": 0.0600,
    "B-": 0.1000,
    "CCC+": 0.1500,
    "CCC": 0.2500,
    "CCC-": 0.4000,
    "CC": 0.6000,
    "C": 0.8000,
    "D": 1.0000,
}

DEFAULT_LGD_ASSUMPTIONS: Dict[str, float] = {
    "Banking": 0.45,
    "Technology": 0.55,
    "Retail": 0.60,
    "Manufacturing": 0.50,
    "Energy": 0.40,
    "Healthcare": 0.35,
    "Real Estate": 0.30,
    "Telecom": 0.55,
    "Automotive": 0.65,
    "Agriculture": 0.45,
}

# Standardised corporate risk weights by rating bucket
DEFAULT_RISK_WEIGHTS: Dict[str, float] = {
    "AAA": 0.20, "AA+": 0.20, "AA": 0.20, "AA-": 0.20,
    "A+": 0.50, "A": 0.50, "A-": 0.50,
    "BBB+": 1.00, "BBB": 1.00, "BBB-": 1.00,
    "BB+": 1.00, "BB": 1.00, "BB-": 1.00,
    "B+": 1.50, "B": 1.50, "B-": 1.50,
    "CCC+": 1.50, "CCC": 1.50, "CCC-": 1.50,
    "CC": 1.50, "C": 1.50, "D": 1.50,
}


@dataclass(frozen=True)
class StressScenario:
    """Named macro shock applied to a loan book.

    Attributes:
        name: Scenario label
        pd_multiplier: Multiplicative shock on PD
        lgd_multiplier: Multiplicative shock on LGD
        rate_shift: Additive shift on the reference rate
        spread_shift: Additive shift on the margin
    """
    name: str
    pd_multiplier: float = 1.0
    lgd_multiplier: float = 1.0
    rate_shift: float = 0.0
    spread_shift: float = 0.0


DEFAULT_STRESS_SCENARIOS: Tuple[StressScenario, ...] = (
    StressScenario("Mild Recession", 1.5, 1.2, 0.001, 0.002),
    StressScenario("Severe Recession", 2.5, 1.5, 0.002, 0.005),
    StressScenario("Financial Crisis", 4.0, 2.0, 0.01, 0.02),
    StressScenario("Rate Hike", 1.2, 1.0, 0.02, 0.005),
)


@dataclass(frozen=True)
class CalculationParameters:
    """Global assumptions for loan and portfolio metrics.

    Attributes:
        target_roe: Hurdle return on equity used by EVA
        corporate_tax_rate: Tax rate applied to pre-tax profit
        capital_ratio: Capital held per unit of RWA
        funding_cost: Annual funding cost on drawn amounts
        operational_cost_ratio: Annual operating cost on original amounts
        pd_curve: PD by rating
        lgd_assumptions: LGD by sector
        stress_scenarios: Portfolio stress scenario definitions
        risk_weights: Risk weight by rating
        default_sale_price: Sale price assumed by EVA sale when none is given
        collateral_haircut: Haircut applied to collateral in effective LGD
    """
    target_roe: float = 0.15
    corporate_tax_rate: float = 0.25
    capital_ratio: float = 0.08
    funding_cost: float = 0.02
    operational_cost_ratio: float = 0.01
    pd_curve: Mapping[str, float] = field(default_factory=lambda: dict(DEFAULT_PD_CURVE))
    lgd_assumptions: Mapping[str, float] = field(
        default_factory=lambda: dict(DEFAULT_LGD_ASSUMPTIONS)
    )
    stress_scenarios: Tuple[StressScenario, ...] = DEFAULT_STRESS_SCENARIOS
    risk_weights: Mapping[str, float] = field(
        default_factory=lambda: dict(DEFAULT_RISK_WEIGHTS)
    )
    default_sale_price: float = 1.0
    collateral_haircut: float = 0.25

    def __post_init__(self):
        if not 0 <= self.corporate_tax_rate <= 1:
            raise ValueError(
                f"Tax rate must be between 0 and 1, got {self.corporate_tax_rate}"
            )
        if self.capital_ratio < 0:
            raise ValueError(f"Capital ratio must be non-negative, got {self.capital_ratio}")
        if not 0 <= self.collateral_haircut <= 1:
            raise ValueError(
                f"Collateral haircut must be between 0 and 1, got {self.collateral_haircut}"
            )

    @classmethod
    def default(cls) -> "CalculationParameters":
        """Standard assumptions."""
        return cls()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CalculationParameters":
        """Overlay a partial mapping onto the default parameters.

        Keys may be snake_case or camelCase. ``pdCurve`` and
        ``lgdAssumptions`` accept either a mapping or a list of
        ``{"rating": ..., "pd": ...}`` / ``{"sector": ..., "lgd": ...}``
        records. Unknown keys are ignored.

        Args:
            data: Partial parameter values

        Returns:
            CalculationParameters with the defaults filled in
        """
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}

        for key, value in data.items():
            name = _ALIASES.get(key, _snake_case(key))
            if name not in known:
                logger.debug("Ignoring unknown calculation parameter %r", key)
                continue
            values[name] = value

        if "pd_curve" in values:
            curve = dict(DEFAULT_PD_CURVE)
            curve.update(_as_mapping(values["pd_curve"], "rating", "pd"))
            values["pd_curve"] = curve
        if "lgd_assumptions" in values:
            assumptions = dict(DEFAULT_LGD_ASSUMPTIONS)
            assumptions.update(_as_mapping(values["lgd_assumptions"], "sector", "lgd"))
            values["lgd_assumptions"] = assumptions
        if "risk_weights" in values:
            weights = dict(DEFAULT_RISK_WEIGHTS)
            weights.update(values["risk_weights"])
            values["risk_weights"] = weights
        if "stress_scenarios" in values:
            values["stress_scenarios"] = tuple(
                s if isinstance(s, StressScenario) else _scenario_from_dict(s)
                for s in values["stress_scenarios"]
            )

        return cls(**values)

    def risk_weight(self, rating: Optional[str]) -> float:
        """Risk weight for a rating, falling back to the BB- weight."""
        if rating is not None and rating in self.risk_weights:
            return self.risk_weights[rating]
        return self.risk_weights.get(FALLBACK_RATING, DEFAULT_RISK_WEIGHTS[FALLBACK_RATING])

    def pd_for_rating(self, rating: Optional[str]) -> Optional[float]:
        """PD from the rating curve, or None if the rating is unknown."""
        if rating is None:
            return None
        return self.pd_curve.get(rating)

    def lgd_for_sector(self, sector: Optional[str]) -> Optional[float]:
        """LGD assumption for a sector, or None if the sector is unknown."""
        if sector is None:
            return None
        return self.lgd_assumptions.get(sector)


_ALIASES = {
    "targetROE": "target_roe",
    "corporateTaxRate": "corporate_tax_rate",
    "taxRate": "corporate_tax_rate",
}


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _as_mapping(value: Any, key_field: str, value_field: str) -> Dict[str, float]:
    if isinstance(value, Mapping):
        return dict(value)
    return {entry[key_field]: entry[value_field] for entry in value}


def _scenario_from_dict(data: Mapping[str, Any]) -> StressScenario:
    return StressScenario(
        name=data["name"],
        pd_multiplier=data.get("pdMultiplier", data.get("pd_multiplier", 1.0)),
        lgd_multiplier=data.get("lgdMultiplier", data.get("lgd_multiplier", 1.0)),
        rate_shift=data.get("rateShift", data.get("rate_shift", 0.0)),
        spread_shift=data.get("spreadShift", data.get("spread_shift", 0.0)),
    )
