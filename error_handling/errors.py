"""Exception hierarchy for the stake history API.

Each error carries the HTTP status the API layer answers with, so handlers
never need to map exception types to status codes themselves.
"""


class StakeApiError(Exception):
    """Base application error."""

    http_status = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidParameterError(StakeApiError):
    """A page, page size or address supplied by the caller is unusable."""

    http_status = 400


class UpstreamFailureError(StakeApiError):
    """The ledger query failed, so no result could be produced."""

    http_status = 502


class UpstreamCancelledError(UpstreamFailureError):
    """The caller's deadline passed or the call was cancelled mid-fetch."""

    http_status = 504


class PaymentLinkError(StakeApiError):
    """The payment provider rejected or failed a payment link request."""

    http_status = 502
