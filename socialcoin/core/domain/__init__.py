"""
Domain models and value objects.

Contains fundamental domain entities like Identity, SubjectState,
FundingUnit, TradeRequest, PriceQuote, GlobalConfig.
"""

from socialcoin.core.domain.funding import FundingPage, FundingUnit, total_value
from socialcoin.core.domain.global_state import (
    DEFAULT_PROTOCOL_FEE_RATE,
    DEFAULT_SUBJECT_FEE_RATE,
    FEE_RATE_DENOMINATOR,
    GlobalConfig,
)
from socialcoin.core.domain.identity import (
    IDENTITY_LENGTH_BYTES,
    Identity,
    identity_bytes,
    normalize_identity,
)
from socialcoin.core.domain.subject import SubjectState, SubjectStatus
from socialcoin.core.domain.trade import (
    PriceQuote,
    TradeDirection,
    TradeEvent,
    TradeRequest,
)

__all__ = [
    # Identity
    "IDENTITY_LENGTH_BYTES",
    "Identity",
    "identity_bytes",
    "normalize_identity",
    # Subject
    "SubjectState",
    "SubjectStatus",
    # Funding
    "FundingUnit",
    "FundingPage",
    "total_value",
    # Global
    "FEE_RATE_DENOMINATOR",
    "DEFAULT_PROTOCOL_FEE_RATE",
    "DEFAULT_SUBJECT_FEE_RATE",
    "GlobalConfig",
    # Trade
    "TradeDirection",
    "TradeRequest",
    "PriceQuote",
    "TradeEvent",
]
