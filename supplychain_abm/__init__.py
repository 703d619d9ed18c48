"""Public API for the supply chain ABM package.

Agent-based simulation of a three-tier supply chain (final, intermediate and
raw producers) serving a hidden consumer population, with cascading order
escalation, a gap-driven price controller and stochastic innovation.
"""

__version__ = "1.0.0"

from .cli import run_cli
from .config import (
    ConfigurationError,
    ScenarioProfile,
    SupplyChainConfig,
    apply_profile,
    get_profile,
    list_profiles,
    load_profile,
)
from .demand import DemandModel, DemandParseError, evaluate_curve, ols_line, parse_demand_equation
from .firms import FirmTiers
from .innovation import InnovationScheduler
from .ledger import OrderLedger
from .metrics import EventLog, MetricsRecorder, SessionSummary
from .models import (
    Consumer,
    DemandCurve,
    DemandFamily,
    Firm,
    FirmTier,
    Innovation,
    MetricsPoint,
    Order,
    OrderRoute,
    OrderStatus,
    PriceMode,
    SimulationEvent,
    SurveyEstimate,
)
from .pricing import PriceController
from .random_source import RandomSource
from .simulation import SupplyChainSimulation, initialize, survey_sample, tick
from .utils import safe_mean, safe_ratio

__all__ = [
    "__version__",
    "run_cli",
    "ConfigurationError",
    "ScenarioProfile",
    "SupplyChainConfig",
    "apply_profile",
    "get_profile",
    "list_profiles",
    "load_profile",
    "DemandModel",
    "DemandParseError",
    "evaluate_curve",
    "ols_line",
    "parse_demand_equation",
    "FirmTiers",
    "InnovationScheduler",
    "OrderLedger",
    "EventLog",
    "MetricsRecorder",
    "SessionSummary",
    "Consumer",
    "DemandCurve",
    "DemandFamily",
    "Firm",
    "FirmTier",
    "Innovation",
    "MetricsPoint",
    "Order",
    "OrderRoute",
    "OrderStatus",
    "PriceMode",
    "SimulationEvent",
    "SurveyEstimate",
    "PriceController",
    "RandomSource",
    "SupplyChainSimulation",
    "initialize",
    "tick",
    "survey_sample",
    "safe_mean",
    "safe_ratio",
]
