"""Error taxonomy for provisioning runs.

Provider adapters translate transport failures (Gmail HttpError, Graph
HTTP status codes, timeouts) into the ProviderError subclasses below.
The sync engine decides what to do with each class:

- RateLimited, TransientError: retried with backoff, never surfaced
  unless retries are exhausted.
- CapabilityViolation: fatal for the affected subtree only.
- NotFound: the remote node vanished, recreate it.
- Conflict: the node already exists remotely, reuse it.
- AuthExpired, PermissionDenied: fatal for the whole run.
"""


class LabelforgeError(Exception):
    """Base class for all labelforge errors."""


class CompositionError(LabelforgeError):
    """The taxonomy could not be composed from template and extension."""


class RunInProgress(LabelforgeError):
    """Another provisioning run holds the lock for this user."""


class ProviderError(LabelforgeError):
    """Base class for errors raised by provider adapters.

    Attributes:
        status: HTTP status code from the provider, if there was one.
    """

    kind = "provider_error"

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class AuthExpired(ProviderError):
    """Access token is invalid or expired. Requires re-authentication."""

    kind = "auth_expired"


class PermissionDenied(ProviderError):
    """Provider requires consent the user has not granted."""

    kind = "permission_denied"


class RateLimited(ProviderError):
    """Provider throttled the request.

    Attributes:
        retry_after: Seconds the provider asked us to wait, if given.
    """

    kind = "rate_limited"

    def __init__(
        self,
        message: str,
        status: int | None = 429,
        retry_after: float | None = None,
    ):
        super().__init__(message, status)
        self.retry_after = retry_after


class TransientError(ProviderError):
    """Timeout, connection reset or 5xx response."""

    kind = "transient"


class CapabilityViolation(ProviderError):
    """Name or depth is not allowed by the provider."""

    kind = "capability_violation"


class NotFound(ProviderError):
    """The referenced node no longer exists remotely."""

    kind = "not_found"


class Conflict(ProviderError):
    """A node with the same name already exists at that position."""

    kind = "conflict"


# Errors that abort the whole run rather than a single subtree
FATAL_ERRORS = (AuthExpired, PermissionDenied)

# Errors the retry policy is allowed to retry
RETRYABLE_ERRORS = (RateLimited, TransientError)
