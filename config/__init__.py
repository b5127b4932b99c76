"""Settings and logging setup for the stake history API."""

from .logging import configure_logging, log_error
from .settings import Settings

__all__ = ['Settings', 'configure_logging', 'log_error']
