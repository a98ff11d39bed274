"""Error taxonomy for the routing pipeline."""

from __future__ import annotations


class RouterError(Exception):
    """Base class for every error raised by the router pipeline."""


class ValidationError(RouterError):
    """Malformed caller input. Surfaced to the caller as HTTP 400."""

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field


class UpstreamError(RouterError):
    """A backend call failed: timeout, non-success status, network, or unconfigured."""

    def __init__(
        self,
        backend: str,
        kind: str,
        detail: str = "",
        *,
        status_code: int | None = None,
    ):
        self.backend = backend
        self.kind = kind
        self.detail = detail
        self.status_code = status_code
        message = f"{backend} {kind}"
        if status_code is not None:
            message += f" ({status_code})"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class ParseError(RouterError):
    """A backend answered but the payload did not have the expected shape."""

    def __init__(self, backend: str, detail: str):
        self.backend = backend
        self.detail = detail
        super().__init__(f"{backend} malformed response: {detail}")


class PersistenceError(RouterError):
    """An audit write failed. Never leaves the audit logger."""


# Failures the fallback controller absorbs.
BACKEND_FAILURES = (UpstreamError, ParseError)
