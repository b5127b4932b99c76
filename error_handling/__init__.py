"""Error types and failure containment for the stake history API."""

from .circuit_breaker import CircuitBreaker
from .errors import (
    InvalidParameterError,
    PaymentLinkError,
    StakeApiError,
    UpstreamCancelledError,
    UpstreamFailureError,
)

__all__ = [
    'CircuitBreaker',
    'InvalidParameterError',
    'PaymentLinkError',
    'StakeApiError',
    'UpstreamCancelledError',
    'UpstreamFailureError',
]
