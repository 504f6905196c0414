"""HTTP API for BalanceFlow."""
