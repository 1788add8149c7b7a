"""
Federation errors.
Everything a coordinator call can raise derives from CoordinatorError.
"""

from typing import Optional


class CoordinatorError(Exception):
    """Base error for coordinator interactions."""

    def __init__(self, short_alias: Optional[str], message: str):
        self.short_alias = short_alias
        super().__init__(f"[{short_alias}] {message}" if short_alias else message)


class UnknownCoordinator(CoordinatorError):
    """The alias is not part of the federation."""

    def __init__(self, short_alias: Optional[str]):
        super().__init__(short_alias, "Coordinator not found in federation")


class CoordinatorUnavailable(CoordinatorError):
    """Network failure, timeout, server error or unparsable response."""


class RequestRejected(CoordinatorError):
    """The coordinator answered but refused the request (bad_request)."""

    def __init__(self, short_alias: Optional[str], reason: str):
        self.reason = reason
        super().__init__(short_alias, f"Rejected: {reason}")
