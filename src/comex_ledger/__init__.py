"""COMEX Ledger - bookkeeping core for an import/export (COMEX) service business."""

__version__ = "0.1.0"

from comex_ledger.actions import ActionExecutor, Notification, NotificationLevel
from comex_ledger.config import configure_logging, get_settings
from comex_ledger.dashboard import DashboardAggregator, DashboardMetrics, MonthlyTrend
from comex_ledger.errors import (
    ComexError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from comex_ledger.ledger import BalanceLedger
from comex_ledger.models import ProcessStatus, TransactionType
from comex_ledger.reference import (
    find_client_by_reference,
    format_reference,
    validate_reference,
)
from comex_ledger.services import Services, build_services
from comex_ledger.store import StoreClient

__all__ = [
    # Version
    "__version__",
    # Store
    "StoreClient",
    # Services
    "Services",
    "build_services",
    "BalanceLedger",
    "ActionExecutor",
    "Notification",
    "NotificationLevel",
    # Dashboard
    "DashboardAggregator",
    "DashboardMetrics",
    "MonthlyTrend",
    # References
    "validate_reference",
    "format_reference",
    "find_client_by_reference",
    # Models
    "ProcessStatus",
    "TransactionType",
    # Errors
    "ComexError",
    "ValidationError",
    "InvalidTransitionError",
    "NotFoundError",
    "ConflictError",
    "StoreError",
    # Config
    "get_settings",
    "configure_logging",
]
