"""Persistence for BalanceFlow."""
