"""
Exception types raised by the SDK.

Usage errors flag a broken integration (calling the SDK before it is
initialized, passing invalid arguments). The error boundary never swallows
them.
"""


class StatsigError(Exception):
    pass


class StatsigUninitializedError(StatsigError):
    def __init__(self, message: str = "Call initialize() first.") -> None:
        super().__init__(message)


class StatsigInvalidArgumentError(StatsigError):
    pass


USAGE_ERRORS = (StatsigUninitializedError, StatsigInvalidArgumentError)

__all__ = [
    "StatsigError",
    "StatsigUninitializedError",
    "StatsigInvalidArgumentError",
    "USAGE_ERRORS",
]
