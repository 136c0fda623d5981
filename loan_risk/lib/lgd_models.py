"""Loss Given Default models.

Supports the LGD modes a loan can carry:
- Constant: the loan's flat LGD
- Variable: LGD evolving over time with the collateral value
  (linear, exponential, logarithmic or polynomial model)
- Guaranteed: blend of the unsecured and guarantor LGDs
- Collateralized: base LGD reduced by a pledged collateral pool

Every model output is clamped to [0, 1].
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Mapping, NamedTuple, Optional, Sequence
import logging
import math

import pandas as pd

from .collateral import CollateralPortfolio, calculate_effective_lgd_with_collateral
from ..dates import DAYS_PER_MONTH_APPROX, DateLike, iso, to_date, years_between

if TYPE_CHECKING:
    from ..loan import Loan
    from ..parameters import CalculationParameters

logger = logging.getLogger(__name__)

DEFAULT_LGD = 0.45
DEFAULT_COLLATERAL_HAIRCUT = 0.25
DEFAULT_LOGARITHMIC_RATE = 0.1


def clamp(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    return max(lower, min(upper, value))


@dataclass
class LGDModelParameters:
    """Parameters of a time-dependent LGD model.

    Attributes:
        rate: Annual drift for the linear and logarithmic models
        appreciation_rate: Annual appreciation (exponential model)
        depreciation_rate: Annual depreciation (exponential model; linear
            fallback when ``rate`` is not set)
        half_life: Half-life in years (exponential model)
        coefficients: Polynomial coefficients, index i multiplies t^(i+1)
    """
    rate: Optional[float] = None
    appreciation_rate: Optional[float] = None
    depreciation_rate: Optional[float] = None
    half_life: Optional[float] = None
    coefficients: Sequence[float] = ()


class LGDModel(ABC):
    """Abstract base class for time-dependent LGD models."""

    name: str = ""

    @abstractmethod
    def evaluate(self, initial_value: float, time_in_years: float,
                 parameters: LGDModelParameters) -> float:
        """Return the LGD after ``time_in_years``.

        Args:
            initial_value: LGD at time zero
            time_in_years: Elapsed time in years
            parameters: Model parameters

        Returns:
            LGD clamped to [0, 1]
        """
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class LinearLGDModel(LGDModel):
    """LGD = v0 + rate * t.

    Used for cash and other assets with a steady drift.
    """

    name = "linear"

    def evaluate(self, initial_value: float, time_in_years: float,
                 parameters: LGDModelParameters) -> float:
        rate = parameters.rate
        if rate is None:
            rate = parameters.depreciation_rate or 0.0
        return clamp(initial_value + rate * time_in_years)


class ExponentialLGDModel(LGDModel):
    """LGD = v0 * (1 +/- r)^t, or half-life decay.

    Only one parameter form is honored, checked in this order:
    appreciation rate, depreciation rate, half-life. Zero values are
    treated as absent.
    """

    name = "exponential"

    def evaluate(self, initial_value: float, time_in_years: float,
                 parameters: LGDModelParameters) -> float:
        if parameters.appreciation_rate:
            return _compound(initial_value, 1 + parameters.appreciation_rate, time_in_years)
        if parameters.depreciation_rate:
            return _compound(initial_value, 1 - parameters.depreciation_rate, time_in_years)
        if parameters.half_life:
            return _compound(initial_value, 0.5, time_in_years / parameters.half_life)
        return clamp(initial_value)


def _compound(initial_value: float, base: float, exponent: float) -> float:
    # A negative growth factor would give a complex power; the asset is worthless
    base = max(0.0, base)
    try:
        return clamp(initial_value * base ** exponent)
    except (OverflowError, ZeroDivisionError):
        return clamp(math.copysign(math.inf, initial_value)) if initial_value else 0.0


class LogarithmicLGDModel(LGDModel):
    """LGD = v0 + rate * ln(1 + t).

    Rapid initial movement that stabilises over time.
    """

    name = "logarithmic"

    def evaluate(self, initial_value: float, time_in_years: float,
                 parameters: LGDModelParameters) -> float:
        rate = parameters.rate
        if rate is None:
            rate = parameters.depreciation_rate or DEFAULT_LOGARITHMIC_RATE
        return clamp(initial_value + rate * math.log1p(time_in_years))


class PolynomialLGDModel(LGDModel):
    """LGD = v0 + sum(c_i * t^(i+1)).

    There is no constant term beyond v0.
    """

    name = "polynomial"

    def evaluate(self, initial_value: float, time_in_years: float,
                 parameters: LGDModelParameters) -> float:
        result = initial_value
        for i, coefficient in enumerate(parameters.coefficients):
            try:
                result += coefficient * time_in_years ** (i + 1)
            except OverflowError:
                result += math.copysign(math.inf, coefficient) if coefficient else 0.0
        return clamp(result)


_MODELS: Dict[str, LGDModel] = {
    model.name: model
    for model in (LinearLGDModel(), ExponentialLGDModel(),
                  LogarithmicLGDModel(), PolynomialLGDModel())
}


def create_lgd_model(model: str) -> LGDModel:
    """Look up an LGD model by name (case insensitive).

    Raises:
        ValueError: If the model name is unknown
    """
    try:
        return _MODELS[model.lower()]
    except KeyError:
        raise ValueError(f"Unknown LGD model: {model}. "
                         f"Choose from: {', '.join(repr(m) for m in _MODELS)}")


def calculate_linear_lgd(initial_value: float, time_in_years: float,
                         parameters: LGDModelParameters) -> float:
    return _MODELS["linear"].evaluate(initial_value, time_in_years, parameters)


def calculate_exponential_lgd(initial_value: float, time_in_years: float,
                              parameters: LGDModelParameters) -> float:
    return _MODELS["exponential"].evaluate(initial_value, time_in_years, parameters)


def calculate_logarithmic_lgd(initial_value: float, time_in_years: float,
                              parameters: LGDModelParameters) -> float:
    return _MODELS["logarithmic"].evaluate(initial_value, time_in_years, parameters)


def calculate_polynomial_lgd(initial_value: float, time_in_years: float,
                             parameters: LGDModelParameters) -> float:
    return _MODELS["polynomial"].evaluate(initial_value, time_in_years, parameters)


@dataclass
class VariableLGDConfig:
    """Configuration of a time-dependent LGD.

    Attributes:
        collateral_type: Kind of asset backing the loan
        model: Model name ('linear', 'exponential', 'logarithmic', 'polynomial')
        initial_value: LGD at the loan start date
        parameters: Model parameters
    """
    collateral_type: str = "other"
    model: str = "linear"
    initial_value: float = DEFAULT_LGD
    parameters: LGDModelParameters = field(default_factory=LGDModelParameters)


@dataclass
class GuaranteedLGDConfig:
    """Configuration of a guaranteed LGD.

    Attributes:
        base_lgd: Unsecured LGD
        guarantee_type: 'government', 'corporate', 'personal', 'collateral' or 'other'
        coverage: Share of the exposure covered by the guarantee
        guarantor_lgd: LGD on the guaranteed part
    """
    base_lgd: float
    guarantee_type: str = "other"
    coverage: float = 0.0
    guarantor_lgd: float = 0.0


def calculate_variable_lgd(config: VariableLGDConfig, time_in_years: float) -> float:
    """Evaluate a variable LGD configuration at a point in time.

    An unknown model name leaves the initial value unchanged (clamped).
    """
    model = _MODELS.get(config.model.lower())
    if model is None:
        logger.warning("Unknown LGD model %r, using initial value", config.model)
        return clamp(config.initial_value)
    return model.evaluate(config.initial_value, time_in_years, config.parameters)


def calculate_guaranteed_lgd(config: GuaranteedLGDConfig) -> float:
    """LGD_final = LGD_base * (1 - coverage) + LGD_guarantor * coverage."""
    coverage = clamp(config.coverage)
    final_lgd = config.base_lgd * (1 - coverage) + config.guarantor_lgd * coverage
    return clamp(final_lgd)


class LGDCurvePoint(NamedTuple):
    date: str
    lgd: float
    time_in_years: float


class LGDCurve:
    """Sampled LGD curve between two dates.

    Points are spaced ``interval_months`` apart using a 30-day month, so
    point dates drift from calendar month boundaries over long horizons.
    The curve can be iterated any number of times.
    """

    def __init__(self, config: VariableLGDConfig, start_date: DateLike,
                 end_date: DateLike, interval_months: int = 1):
        if interval_months < 1:
            raise ValueError(f"Interval must be at least 1 month, got {interval_months}")
        self.config = config
        self.start_date = to_date(start_date)
        self.end_date = to_date(end_date)
        self.interval_months = interval_months

    @property
    def total_months(self) -> int:
        days = (self.end_date - self.start_date).days
        return max(0, math.ceil(days / DAYS_PER_MONTH_APPROX))

    def __iter__(self) -> Iterator[LGDCurvePoint]:
        for month in range(0, self.total_months + 1, self.interval_months):
            point_date = self.start_date + timedelta(days=month * DAYS_PER_MONTH_APPROX)
            time_in_years = month / 12
            yield LGDCurvePoint(
                date=iso(point_date),
                lgd=calculate_variable_lgd(self.config, time_in_years),
                time_in_years=time_in_years,
            )

    def __len__(self) -> int:
        return self.total_months // self.interval_months + 1

    def to_frame(self) -> pd.DataFrame:
        """Curve points as a DataFrame with date, lgd and time_in_years columns."""
        return pd.DataFrame(list(self), columns=list(LGDCurvePoint._fields))

    def __repr__(self) -> str:
        return (f"LGDCurve(model={self.config.model!r}, start={self.start_date}, "
                f"end={self.end_date}, interval_months={self.interval_months})")


def generate_lgd_curve(config: VariableLGDConfig, start_date: DateLike,
                       end_date: DateLike, interval_months: int = 1) -> List[LGDCurvePoint]:
    """Materialise an LGD curve as a list of points."""
    return list(LGDCurve(config, start_date, end_date, interval_months))


# =============================================================================
# LGD modes
# =============================================================================


class LGDMode(ABC):
    """Abstract base class for the LGD mode attached to a loan."""

    lgd_type: str = ""

    @abstractmethod
    def effective_lgd(self, loan: "Loan", as_of: date,
                      params: Optional["CalculationParameters"] = None) -> float:
        """Return the loan's LGD at ``as_of``."""
        pass


@dataclass
class ConstantLGD(LGDMode):
    """The loan's flat LGD, or 0.45 when the loan carries none."""

    lgd_type = "constant"

    def effective_lgd(self, loan, as_of, params=None):
        return _base_lgd(loan)


@dataclass
class VariableLGD(LGDMode):
    """LGD driven by a time-dependent model since the loan start date."""

    config: VariableLGDConfig
    lgd_type = "variable"

    def effective_lgd(self, loan, as_of, params=None):
        time_in_years = max(0.0, years_between(loan.start_date, as_of))
        return calculate_variable_lgd(self.config, time_in_years)


@dataclass
class GuaranteedLGD(LGDMode):
    """LGD blended with a guarantor's LGD."""

    config: GuaranteedLGDConfig
    lgd_type = "guaranteed"

    def effective_lgd(self, loan, as_of, params=None):
        return calculate_guaranteed_lgd(self.config)


@dataclass
class CollateralizedLGD(LGDMode):
    """Base LGD reduced by a collateral pool.

    Attributes:
        portfolio: Pledged collateral
        haircut: Haircut override; defaults to the calculation parameters'
            collateral haircut, then 25%
    """

    portfolio: CollateralPortfolio
    haircut: Optional[float] = None
    lgd_type = "collateralized"

    def effective_lgd(self, loan, as_of, params=None):
        haircut = self.haircut
        if haircut is None:
            haircut = params.collateral_haircut if params is not None else DEFAULT_COLLATERAL_HAIRCUT
        loan_amount = loan.ead if loan.ead > 0 else loan.original_amount
        return calculate_effective_lgd_with_collateral(
            _base_lgd(loan), self.portfolio, loan_amount, haircut
        )


def _base_lgd(loan: "Loan") -> float:
    return loan.lgd if loan.lgd is not None else DEFAULT_LGD


def create_lgd_mode(lgd_type: Optional[str], **kwargs) -> LGDMode:
    """Factory function to create LGD modes.

    Args:
        lgd_type: Mode tag ('constant', 'variable', 'guaranteed', 'collateralized')
        **kwargs: ``config`` for variable/guaranteed, ``portfolio`` and
            optional ``haircut`` for collateralized

    Returns:
        LGDMode instance. An unknown tag, or a tag whose configuration is
        missing, falls back to ConstantLGD.

    Examples:
        >>> create_lgd_mode('guaranteed', config=GuaranteedLGDConfig(base_lgd=0.5, coverage=0.5))
        >>> create_lgd_mode('variable', config=VariableLGDConfig(model='exponential'))
    """
    tag = (lgd_type or "constant").lower()

    if tag == "variable" and kwargs.get("config") is not None:
        return VariableLGD(config=kwargs["config"])
    if tag == "guaranteed" and kwargs.get("config") is not None:
        return GuaranteedLGD(config=kwargs["config"])
    if tag == "collateralized" and kwargs.get("portfolio") is not None:
        return CollateralizedLGD(portfolio=kwargs["portfolio"], haircut=kwargs.get("haircut"))
    if tag != "constant":
        logger.warning("LGD type %r has no usable configuration, using constant LGD", lgd_type)
    return ConstantLGD()


def lgd_config_from_dict(lgd_type: str, data: Mapping[str, Any]):
    """Build a variable or guaranteed LGD configuration from a camelCase mapping.

    Returns None for other LGD types.
    """
    tag = lgd_type.lower()
    if tag == "variable":
        parameters = data.get("parameters") or {}
        return VariableLGDConfig(
            collateral_type=data.get("type", data.get("collateral_type", "other")),
            model=data.get("model", "linear"),
            initial_value=data.get("initialValue", data.get("initial_value", DEFAULT_LGD)),
            parameters=LGDModelParameters(
                rate=parameters.get("rate"),
                appreciation_rate=parameters.get("appreciationRate", parameters.get("appreciation_rate")),
                depreciation_rate=parameters.get("depreciationRate", parameters.get("depreciation_rate")),
                half_life=parameters.get("halfLife", parameters.get("half_life")),
                coefficients=tuple(parameters.get("polynomialCoefficients",
                                                  parameters.get("coefficients", ()))),
            ),
        )
    if tag == "guaranteed":
        return GuaranteedLGDConfig(
            base_lgd=data.get("baseLGD", data.get("base_lgd", DEFAULT_LGD)),
            guarantee_type=data.get("guaranteeType", data.get("guarantee_type", "other")),
            coverage=data.get("coverage", 0.0),
            guarantor_lgd=data.get("guarantorLGD", data.get("guarantor_lgd", 0.0)),
        )
    return None


def calculate_effective_lgd(loan: "Loan", as_of: Optional[DateLike] = None,
                            params: Optional["CalculationParameters"] = None) -> float:
    """LGD of a loan at ``as_of`` (today by default) according to its LGD mode."""
    as_of = to_date(as_of) if as_of is not None else date.today()
    mode = loan.lgd_mode if loan.lgd_mode is not None else ConstantLGD()
    return mode.effective_lgd(loan, as_of, params)


# =============================================================================
# Recommended parameters
# =============================================================================

RECOMMENDED_LGD_MODELS: Dict[str, VariableLGDConfig] = {
    "realEstate": VariableLGDConfig(
        "realEstate", "exponential", DEFAULT_LGD, LGDModelParameters(appreciation_rate=0.03)),
    "equipment": VariableLGDConfig(
        "equipment", "exponential", DEFAULT_LGD, LGDModelParameters(depreciation_rate=0.15)),
    "vehicle": VariableLGDConfig(
        "vehicle", "exponential", DEFAULT_LGD, LGDModelParameters(depreciation_rate=0.20)),
    "cash": VariableLGDConfig(
        "cash", "linear", DEFAULT_LGD, LGDModelParameters(depreciation_rate=0.02)),
    "other": VariableLGDConfig(
        "other", "linear", DEFAULT_LGD, LGDModelParameters(depreciation_rate=0.10)),
}

# guarantee type -> (coverage, guarantor LGD)
DEFAULT_GUARANTEE_PARAMETERS: Dict[str, tuple] = {
    "government": (0.80, 0.00),
    "corporate": (0.60, 0.20),
    "personal": (0.50, 0.30),
    "collateral": (0.70, 0.10),
    "other": (0.40, 0.25),
}


def recommended_model(collateral_type: str, initial_value: float = DEFAULT_LGD) -> VariableLGDConfig:
    """Recommended variable LGD configuration for a collateral type.

    Unknown types get a linear model with 10% annual drift.
    """
    template = RECOMMENDED_LGD_MODELS.get(collateral_type)
    if template is None:
        return VariableLGDConfig(collateral_type, "linear", initial_value,
                                 LGDModelParameters(depreciation_rate=0.10))
    return VariableLGDConfig(template.collateral_type, template.model, initial_value,
                             LGDModelParameters(**vars(template.parameters)))


def recommended_guarantee_params(guarantee_type: str, base_lgd: float = DEFAULT_LGD) -> GuaranteedLGDConfig:
    """Default coverage and guarantor LGD for a guarantee type."""
    coverage, guarantor_lgd = DEFAULT_GUARANTEE_PARAMETERS.get(
        guarantee_type, DEFAULT_GUARANTEE_PARAMETERS["other"]
    )
    return GuaranteedLGDConfig(base_lgd=base_lgd, guarantee_type=guarantee_type,
                               coverage=coverage, guarantor_lgd=guarantor_lgd)
