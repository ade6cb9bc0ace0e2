"""Error taxonomy for freeze operations.

ValidationError and NotFoundError are raised synchronously by the lifecycle
engine and never leave partial state behind. GatewayError covers any remote
API failure. StoreError wraps persistence failures and is always surfaced.
"""


class FreezeBotError(Exception):
    """Base class for all freezebot errors."""

    pass


class ValidationError(FreezeBotError):
    """Raised when a request is malformed (bad interval, bad repository name)."""

    pass


class OverlapError(ValidationError):
    """Raised when a new freeze overlaps an existing one on the same repository."""

    def __init__(self, repository: str, conflicting_id: str | None = None) -> None:
        self.repository = repository
        self.conflicting_id = conflicting_id
        msg = f"A freeze already exists for {repository} in this time period"
        if conflicting_id:
            msg += f" (freeze {conflicting_id})"
        super().__init__(msg)


class TransitionError(ValidationError):
    """Raised on an illegal freeze status change (e.g. Ended -> Active)."""

    pass


class NotFoundError(FreezeBotError):
    """Raised when the requested freeze or record does not exist."""

    pass


class GatewayError(FreezeBotError):
    """Raised when a remote API call fails (auth, rate limit, network, 4xx/5xx)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class StoreError(FreezeBotError):
    """Raised when the freeze store cannot read or write."""

    pass
