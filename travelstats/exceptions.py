"""Exceptions raised while computing statistics.

Every error derives from StatisticsError so the HTTP layer can map the
whole family in one place. InvalidParameter subclasses are client errors;
the rest are server-side failures.
"""


class StatisticsError(Exception):
    """Base exception for all statistics errors."""

    status_code = 500


class InvalidParameter(StatisticsError, ValueError):
    """Raised when a request parameter is malformed or out of range."""

    status_code = 400


class InvalidRange(InvalidParameter):
    """Raised when a day range bound is unparseable or from > to."""


class InvalidDate(InvalidParameter):
    """Raised when a single date is unparseable or does not exist."""


class InvalidYear(InvalidParameter):
    """Raised when a year is not a plausible 4-digit year."""


class InvalidLimit(InvalidParameter):
    """Raised when a ranking limit is not a non-negative integer."""


class SourceUnavailable(StatisticsError):
    """Raised when the data store fails to answer a query.

    No zero-filled series is ever produced in place of a failed fetch.
    """

    status_code = 503


class DuplicateBucket(StatisticsError):
    """Raised when the data store returns the same bucket key twice."""

    def __init__(self, key):
        super().__init__(f"Duplicate bucket returned by source: {key!r}")
        self.key = key


class AuthenticationError(StatisticsError):
    """Raised when the request carries no valid session token."""

    status_code = 401


class AuthorizationError(StatisticsError):
    """Raised when the authenticated principal lacks the required role."""

    status_code = 403
