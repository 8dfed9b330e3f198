"""
Contract Validation Module

Модуль для валидации JSON контрактов socialcoin.
"""

from .validators import (
    ContractValidator,
    GlobalConfigValidator,
    PriceQuoteValidator,
    SchemaLoader,
    SubjectStateValidator,
    TradeEventValidator,
    TradeRequestValidator,
    load_global_config,
    validate_global_config,
    validate_price_quote,
    validate_subject_state,
    validate_trade_event,
    validate_trade_request,
)

__all__ = [
    # Classes
    "SchemaLoader",
    "ContractValidator",
    "TradeRequestValidator",
    "PriceQuoteValidator",
    "SubjectStateValidator",
    "TradeEventValidator",
    "GlobalConfigValidator",
    # Functions
    "validate_trade_request",
    "validate_price_quote",
    "validate_subject_state",
    "validate_trade_event",
    "validate_global_config",
    "load_global_config",
]
