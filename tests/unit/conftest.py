"""
Unit Test Layer Configuration

Structure:
    tests/unit/
    ├── pricing/        Rate table and settlement resolver (pure functions)
    ├── booking/        State machine, identifiers, repository key conflicts
    └── custom_quote/   Storage client

Usage:
    pytest tests/unit -v
    pytest tests/unit -m unit -v
"""
import os
import sys

import pytest

# Add project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from tests.contracts.booking.data_contract import ShippingTestDataFactory


@pytest.fixture
def standard_policy():
    """Standard track: 260 / 240 / 220 per drum, 50/kg, minimum 95"""
    return ShippingTestDataFactory.make_policy()


@pytest.fixture
def legacy_policy():
    """Legacy track: 280 / 260 / 240 per drum"""
    return ShippingTestDataFactory.make_policy(name="legacy", track="legacy")
