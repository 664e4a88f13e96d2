"""Request ID helper for endpoints.

Relies on the observability middleware binding the request id into the
logging context.
"""

from __future__ import annotations

from pawsafety.obs import logging as obs_logging


def get_request_id(default: str = "unknown") -> str:
    """Return the current request id if bound, else a default."""
    return obs_logging.current_request_id() or default
