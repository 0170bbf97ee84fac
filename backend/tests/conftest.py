"""
Pytest configuration and fixtures for the P&L tree test suite

Markers:
    - unit: Fast unit tests
    - property: Property-based tests (Hypothesis)
    - metamorphic: Metamorphic relation tests
    - integration: API tests through the FastAPI app
"""

import pytest
import sys
import os
from datetime import date

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from financial_models import Blueprint, LineComputation, LineNature
from blueprint_defaults import create_default_blueprint
from pnl_builders import make_line, make_initiative


# ═══════════════════════════════════════════════════════════════════════════════
# PYTEST CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════════

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "property: Property-based tests (Hypothesis)")
    config.addinivalue_line("markers", "metamorphic: Metamorphic relation tests")
    config.addinivalue_line("markers", "integration: API tests through the FastAPI app")


# ═══════════════════════════════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.fixture
def gross_margin_blueprint():
    """Revenue and COGS closed off by a Gross Margin subtotal"""
    return Blueprint(lines=[
        make_line("revenue", code="REVENUE", months={"2024-01": 100, "2024-02": 120}),
        make_line("cogs", code="COGS", nature="cost", months={"2024-01": -40, "2024-02": -50}),
        make_line("gross-margin", code="GROSS_MARGIN", computation="cumulative", nature="summary"),
    ])


@pytest.fixture
def revenue_initiative():
    return make_initiative("init-1", [("Revenue", {"2024-01": 10})])


@pytest.fixture
def populated_default_blueprint():
    """Stock blueprint with two years of manual values on every leaf"""
    blueprint = create_default_blueprint(today=date(2024, 1, 15))
    for index, line in enumerate(blueprint.lines):
        if line.computation != LineComputation.MANUAL:
            continue
        sign = -1 if line.nature == LineNature.COST else 1
        line.months = {
            "2024-01": sign * (100 + index),
            "2024-02": sign * (110 + index),
            "2025-01": sign * (120 + index),
        }
    return blueprint


@pytest.fixture
def today():
    return date(2024, 6, 1)
