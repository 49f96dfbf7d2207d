"""Electricity bill and investment cost tables."""

from .bill import BILL_COLUMNS, calculate_electricity_bill
from .investment import INVESTMENT_COLUMNS, calculate_investment_costs

__all__ = [
    "BILL_COLUMNS",
    "INVESTMENT_COLUMNS",
    "calculate_electricity_bill",
    "calculate_investment_costs",
]
