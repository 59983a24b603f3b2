"""Exceptions raised by the gamma analysis."""


class ConfigurationError(ValueError):
    """Invalid parameters or inputs, detected before any grid work starts."""


class UndefinedStatisticsError(ValueError):
    """No defined samples: every planned dose value was zero."""
