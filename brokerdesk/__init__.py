"""Brokerage back office: transactions and commission splits."""

__version__ = "1.0.0"
