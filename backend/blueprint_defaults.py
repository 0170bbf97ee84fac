"""
Default P&L blueprint used when none has been configured.
"""

import copy
from datetime import date
from typing import Optional, List

from financial_models import Blueprint, LineItem, LineComputation, LineNature
from pnl_settings import DEFAULT_MONTH_COUNT


def _line(id, code, name, indent=0, computation=LineComputation.MANUAL, nature=None):
    if nature is None:
        nature = LineNature.REVENUE if computation == LineComputation.MANUAL else LineNature.SUMMARY
    return LineItem(
        id=id, code=code, name=name, indent=indent,
        nature=nature, computation=computation, months={},
    )


C = LineComputation
N = LineNature

DEFAULT_LINES: List[LineItem] = [
    _line("rev-total", "REV_TOTAL", "Total revenue", computation=C.CHILDREN),
    _line("rev-subscription", "REV_SUBSCRIPTION", "Subscription / recurring revenue", indent=1),
    _line("rev-services", "REV_SERVICES", "Services & implementation", indent=1),
    _line("rev-oneoff", "REV_ONEOFF", "One-off / project revenue", indent=1),
    _line("cogs-total", "COGS_TOTAL", "Cost of goods sold", computation=C.CHILDREN),
    _line("cogs-personnel", "COGS_PERSONNEL", "Delivery personnel", indent=1, nature=N.COST),
    _line("cogs-other", "COGS_OTHER", "Vendors & other delivery costs", indent=1, nature=N.COST),
    _line("gross-profit", "GROSS_PROFIT", "Gross profit", computation=C.CUMULATIVE),
    _line("opex-total", "OPEX_TOTAL", "Operating expenses", computation=C.CHILDREN),
    _line("opex-personnel", "OPEX_PERSONNEL", "Personnel costs", indent=1, computation=C.CHILDREN),
    _line("opex-people-sales", "OPEX_PEOPLE_SALES", "Commercial & sales teams", indent=2, nature=N.COST),
    _line("opex-people-tech", "OPEX_PEOPLE_TECH", "Product & engineering", indent=2, nature=N.COST),
    _line("opex-people-ga", "OPEX_PEOPLE_GA", "G&A / corporate", indent=2, nature=N.COST),
    _line("opex-rent", "OPEX_RENT", "Rent & infrastructure", indent=1, nature=N.COST),
    _line("opex-marketing", "OPEX_MARKETING", "Marketing programs", indent=1, nature=N.COST),
    _line("opex-it", "OPEX_IT", "IT & tooling", indent=1, nature=N.COST),
    _line("ebitda", "EBITDA", "EBITDA", computation=C.CUMULATIVE),
    _line("depreciation", "DEPRECIATION", "Depreciation & amortization", nature=N.COST),
    _line("ebit", "EBIT", "EBIT", computation=C.CUMULATIVE),
    _line("interest", "INTEREST_TAXES", "Interest & taxes", nature=N.COST),
    _line("net-income", "NET_PROFIT", "Net profit", computation=C.CUMULATIVE),
]


def default_lines() -> List[LineItem]:
    return copy.deepcopy(DEFAULT_LINES)


def create_default_blueprint(today: Optional[date] = None) -> Blueprint:
    """A fresh copy of the stock blueprint starting at the current month."""
    today = today or date.today()
    return Blueprint(
        lines=default_lines(),
        start_month=f"{today.year}-{today.month:02d}",
        month_count=DEFAULT_MONTH_COUNT,
    )
