"""BalanceFlow: recurring task engine and reminder scheduler."""

__version__ = "0.1.0"
