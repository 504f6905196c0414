"""External integrations for BalanceFlow."""
