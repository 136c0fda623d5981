"""Loan, cash-flow and metrics records."""

from dataclasses import asdict, dataclass, field, replace
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional
import logging

from .dates import DAYS_PER_YEAR, DateLike, to_date
from .parameters import CalculationParameters

if TYPE_CHECKING:
    from .lib.collateral import CollateralPortfolio
    from .lib.lgd_models import LGDMode

logger = logging.getLogger(__name__)

ERROR_FLOW_PREFIX = "error-"


@dataclass
class Fees:
    """Fee schedule of a loan.

    Attributes:
        upfront: One-off arrangement fee
        commitment: Annual fee rate on the undrawn amount
        agency: One-off agency fee
        other: Other one-off fees
    """
    upfront: float = 0.0
    commitment: float = 0.0
    agency: float = 0.0
    other: float = 0.0

    @property
    def one_off_total(self) -> float:
        return self.upfront + self.agency + self.other


class CashFlowType(str, Enum):
    DRAWDOWN = "drawdown"
    REPAYMENT = "repayment"
    INTEREST = "interest"
    FEE = "fee"
    PREPAYMENT = "prepayment"
    DEFAULT = "default"
    RECOVERY = "recovery"
    NET_LOSS = "netloss"
    LIQUIDITY_CRISIS = "liquidity_crisis"


@dataclass
class CashFlow:
    """A scheduled, forecast or stressed cash-flow event.

    Attributes:
        id: Identifier, unique within a schedule
        date: ISO date of the event
        type: Kind of event
        amount: Amount in the loan currency
        is_manual: True for flows entered by hand rather than generated
        description: Free text
    """
    id: str
    date: str
    type: CashFlowType
    amount: float
    is_manual: bool = False
    description: str = ""

    def __post_init__(self):
        self.type = CashFlowType(self.type)

    @property
    def is_error(self) -> bool:
        """True for the sentinel flow produced when generation fails."""
        return self.id.startswith(ERROR_FLOW_PREFIX)


@dataclass
class LoanMetrics:
    """Profitability and risk metrics of a single loan.

    Attributes:
        eva_intrinsic: Economic value added on a hold basis
        eva_sale: Economic value added including a disposal at the sale price
        expected_loss: PD x LGD x EAD
        rwa: Risk-weighted assets
        roe: After-tax return on required capital
        raroc: Pre-tax return on required capital
        cost_of_risk: Expected loss per unit drawn
        capital_consumption: Capital required (RWA x capital ratio)
        net_margin: Margin net of funding, operating and risk costs
        effective_yield: All-in yield including amortised one-off fees
    """
    eva_intrinsic: float = 0.0
    eva_sale: float = 0.0
    expected_loss: float = 0.0
    rwa: float = 0.0
    roe: float = 0.0
    raroc: float = 0.0
    cost_of_risk: float = 0.0
    capital_consumption: float = 0.0
    net_margin: float = 0.0
    effective_yield: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass
class PortfolioMetrics:
    """Aggregate metrics of a loan book.

    Attributes:
        total_exposure: Sum of original amounts
        total_drawn: Sum of drawn amounts
        total_undrawn: Sum of undrawn amounts
        weighted_average_pd: Exposure-weighted PD
        weighted_average_lgd: Exposure-weighted effective LGD
        total_expected_loss: Sum of loan expected losses
        total_rwa: Sum of loan RWA
        portfolio_roe: Aggregate after-tax profit over aggregate capital
        portfolio_raroc: Aggregate pre-tax profit over aggregate capital
        eva_sum_intrinsic: Sum of loan intrinsic EVA
        eva_sum_sale: Sum of loan sale EVA
        diversification_benefit: Flat 20% of total expected loss
        loan_count: Number of loans included in the aggregates
    """
    total_exposure: float = 0.0
    total_drawn: float = 0.0
    total_undrawn: float = 0.0
    weighted_average_pd: float = 0.0
    weighted_average_lgd: float = 0.0
    total_expected_loss: float = 0.0
    total_rwa: float = 0.0
    portfolio_roe: float = 0.0
    portfolio_raroc: float = 0.0
    eva_sum_intrinsic: float = 0.0
    eva_sum_sale: float = 0.0
    diversification_benefit: float = 0.0
    loan_count: int = 0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass
class Loan:
    """A credit exposure.

    Attributes:
        id: Unique identifier
        start_date: First drawdown date
        end_date: Final maturity
        original_amount: Committed amount
        outstanding_amount: Amount currently owed
        drawn_amount: Amount drawn
        undrawn_amount: Amount available but not drawn
        pd: Probability of default (annualized)
        lgd: Flat loss given default, None to use the 45% default
        ead: Exposure at default
        margin: Spread over the reference rate
        reference_rate: Base rate
        fees: Fee schedule
        internal_rating: Rating used for the risk weight (e.g. 'BBB')
        repayment_frequency: 'monthly', 'quarterly', 'semiannual' or 'annual'
        amortization_type: 'inFine', 'constant' or 'annuity'
        grace_periods: Leading repayment periods without interest or principal
        lgd_mode: LGD mode; None means constant
        cash_flows: Manually entered cash flows
        metrics: Last computed metrics, if any
    """
    id: str
    start_date: date
    end_date: date
    original_amount: float
    name: str = ""
    client_name: str = ""
    loan_type: str = "term"
    status: str = "active"
    currency: str = "EUR"
    outstanding_amount: float = 0.0
    drawn_amount: float = 0.0
    undrawn_amount: float = 0.0
    pd: float = 0.0
    lgd: Optional[float] = None
    ead: float = 0.0
    margin: float = 0.0
    reference_rate: float = 0.0
    fees: Fees = field(default_factory=Fees)
    internal_rating: Optional[str] = None
    sector: Optional[str] = None
    country: Optional[str] = None
    repayment_frequency: str = "annual"
    amortization_type: str = "inFine"
    grace_periods: int = 0
    lgd_mode: Optional["LGDMode"] = None
    cash_flows: List[CashFlow] = field(default_factory=list)
    metrics: Optional[LoanMetrics] = None

    def __post_init__(self):
        self.start_date = to_date(self.start_date)
        self.end_date = to_date(self.end_date)
        if not 0 <= self.pd <= 1:
            raise ValueError(f"PD must be between 0 and 1, got {self.pd}")
        if self.lgd is not None and not 0 <= self.lgd <= 1:
            raise ValueError(f"LGD must be between 0 and 1, got {self.lgd}")
        if self.grace_periods < 0:
            raise ValueError(f"Grace periods must be non-negative, got {self.grace_periods}")

    @property
    def duration_years(self) -> float:
        """Term in years on a 365-day year."""
        return (self.end_date - self.start_date).days / DAYS_PER_YEAR

    @property
    def all_in_rate(self) -> float:
        return self.margin + self.reference_rate

    @property
    def lgd_type(self) -> str:
        if self.lgd_mode is None:
            return "constant"
        return self.lgd_mode.lgd_type

    def with_metrics(self, params: Optional[CalculationParameters] = None,
                     as_of: Optional[DateLike] = None) -> "Loan":
        """Return a copy of the loan carrying freshly computed metrics."""
        from .lib.metrics import calculate_loan_metrics

        params = params or CalculationParameters.default()
        return replace(self, metrics=calculate_loan_metrics(self, params, as_of=as_of))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any],
                  params: Optional[CalculationParameters] = None,
                  collateral: Optional["CollateralPortfolio"] = None) -> "Loan":
        """Build a loan from a camelCase or snake_case mapping.

        A missing PD is taken from the PD curve for the loan's rating and a
        missing LGD from the sector assumptions. ``lgdType`` selects the LGD
        mode; its configuration is read from ``lgdConfig`` (variable and
        guaranteed modes) or from ``collateral`` (collateralized mode).

        Args:
            data: Loan record
            params: Parameters used to fill in PD and LGD
            collateral: Collateral pool for a collateralized loan

        Returns:
            Loan instance
        """
        from .lib.lgd_models import create_lgd_mode, lgd_config_from_dict

        params = params or CalculationParameters.default()
        values = {_FIELD_ALIASES.get(key, key): value for key, value in data.items()}

        rating = values.get("internal_rating")
        sector = values.get("sector")
        pd = values.get("pd")
        if pd is None:
            pd = params.pd_for_rating(rating) or 0.0
        lgd = values.get("lgd")
        if lgd is None:
            lgd = params.lgd_for_sector(sector)

        fees = values.get("fees") or {}
        if not isinstance(fees, Fees):
            fees = Fees(**{key: fees.get(key, 0.0) for key in ("upfront", "commitment", "agency", "other")})

        lgd_type = values.get("lgd_type")
        lgd_mode = None
        if lgd_type is not None:
            config = values.get("lgd_config")
            if isinstance(config, Mapping):
                config = lgd_config_from_dict(lgd_type, config)
            lgd_mode = create_lgd_mode(lgd_type, config=config, portfolio=collateral)

        cash_flows = [
            flow if isinstance(flow, CashFlow) else CashFlow(
                id=flow["id"],
                date=flow["date"],
                type=flow["type"],
                amount=flow["amount"],
                is_manual=flow.get("isManual", flow.get("is_manual", False)),
                description=flow.get("description", ""),
            )
            for flow in values.get("cash_flows", [])
        ]

        return cls(
            id=values["id"],
            start_date=values["start_date"],
            end_date=values["end_date"],
            original_amount=values.get("original_amount", 0.0),
            name=values.get("name", ""),
            client_name=values.get("client_name", ""),
            loan_type=values.get("loan_type", "term"),
            status=values.get("status", "active"),
            currency=values.get("currency", "EUR"),
            outstanding_amount=values.get("outstanding_amount", 0.0),
            drawn_amount=values.get("drawn_amount", 0.0),
            undrawn_amount=values.get("undrawn_amount", 0.0),
            pd=pd,
            lgd=lgd,
            ead=values.get("ead", 0.0),
            margin=values.get("margin", 0.0),
            reference_rate=values.get("reference_rate", 0.0),
            fees=fees,
            internal_rating=rating,
            sector=sector,
            country=values.get("country"),
            repayment_frequency=values.get("repayment_frequency", "annual"),
            amortization_type=values.get("amortization_type", "inFine"),
            grace_periods=values.get("grace_periods", 0),
            lgd_mode=lgd_mode,
            cash_flows=cash_flows,
        )


_FIELD_ALIASES = {
    "clientName": "client_name",
    "type": "loan_type",
    "startDate": "start_date",
    "endDate": "end_date",
    "originalAmount": "original_amount",
    "outstandingAmount": "outstanding_amount",
    "drawnAmount": "drawn_amount",
    "undrawnAmount": "undrawn_amount",
    "referenceRate": "reference_rate",
    "internalRating": "internal_rating",
    "repaymentFrequency": "repayment_frequency",
    "amortizationType": "amortization_type",
    "gracePeriod": "grace_periods",
    "gracePeriods": "grace_periods",
    "lgdType": "lgd_type",
    "lgdConfig": "lgd_config",
    "cashFlows": "cash_flows",
}
