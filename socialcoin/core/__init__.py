"""
Core domain models, arithmetic primitives, and contracts.

This module contains the foundational building blocks that are independent
of external systems (RPC nodes, object stores, wallets).
"""
