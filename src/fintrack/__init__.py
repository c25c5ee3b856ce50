"""
FINTRACK - Personal Finance Tracking API

Transactions, budgets and savings goals normalized into a base currency
through a cached, retrying exchange-rate lookup.
"""

__version__ = "1.0.0"
