from .orchestrator import Orchestrator
from .unified_balance import AccountSnapshot, BalanceAggregator, NativeBalance, UnifiedBalance

__all__ = [
    "Orchestrator",
    "AccountSnapshot",
    "BalanceAggregator",
    "NativeBalance",
    "UnifiedBalance",
]
