"""Exchange — оркестрация сделок issue/buy/sell.

Quote → Fund → Carve → Apply, всё-или-ничего.
"""

from .operations import (
    BuyShares,
    LedgerOperation,
    MergeUnits,
    SellShares,
    SplitUnit,
    TradePlan,
)
from .orchestrator import OrchestratorConfig, TradeOrchestrator, TradeReceipt

__all__ = [
    "TradeOrchestrator",
    "OrchestratorConfig",
    "TradeReceipt",
    "TradePlan",
    "LedgerOperation",
    "MergeUnits",
    "SplitUnit",
    "BuyShares",
    "SellShares",
]
