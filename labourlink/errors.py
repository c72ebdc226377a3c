"""Exception hierarchy for the LabourLink client"""
from typing import Optional


class MarketplaceError(Exception):
    """Base class for every failure raised by this package"""


class ApiUnreachableError(MarketplaceError):
    """The HTTP request itself failed (DNS, refused connection, timeout)"""

    def __init__(self, base_url: str, reason: str):
        self.base_url = base_url
        self.reason = reason
        super().__init__(
            f"Cannot reach the API: {reason}. Is the backend running at {base_url}?"
        )


class ApiResponseError(MarketplaceError):
    """The backend answered with a non-2xx status"""

    def __init__(self, status_code: int, body: str = "", message: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message or body or f"HTTP {status_code}")


class DecodeError(MarketplaceError):
    """A response body did not match the expected schema"""


class NotAuthorizedError(MarketplaceError):
    """The active session may not perform the requested action"""


class InvalidTransitionError(MarketplaceError):
    """The job or offer is not in a state that allows the requested action"""


class EstimatorError(MarketplaceError):
    """The price estimator API failed or returned nothing usable"""
