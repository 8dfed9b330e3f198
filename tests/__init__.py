"""
Test suite for socialcoin

Contains:
- tests/unit/          : Unit tests for individual modules and trade scenarios
"""
