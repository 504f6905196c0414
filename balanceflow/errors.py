"""Exception types for BalanceFlow."""


class BalanceFlowError(Exception):
    """Base class for all BalanceFlow errors."""


class BackupFormatError(BalanceFlowError, ValueError):
    """Backup document is malformed; nothing was restored."""


class HolidayTaskError(BalanceFlowError):
    """Holiday tasks are generated and cannot be changed by the user."""


class RebalanceRejected(BalanceFlowError):
    """Rebalancing collaborator returned an unusable schedule."""


class AssistantUnavailableError(BalanceFlowError):
    """AI assistant is not configured (missing API key)."""


class AssistantResponseError(BalanceFlowError):
    """AI assistant failed or returned an invalid response."""
