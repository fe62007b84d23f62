"""Error taxonomy for credential acquisition and refresh."""


class AuthError(Exception):
    """Base class for credential lifecycle errors.

    ``retryable`` tells the caller whether repeating the same request later may
    succeed without the user signing in again.
    """

    retryable = False


class DecodeError(AuthError):
    """Access credential is not a decodable JWT. Non-fatal: callers degrade to a sentinel identity."""


class AuthRequired(AuthError):
    """No usable credential and no refresh path; the user must authenticate."""


class RefreshFailed(AuthError):
    """The token endpoint rejected a refresh credential (invalid, expired or revoked)."""

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        self.error_code = error_code


class StoreIOError(AuthError):
    """Persisting the credential store failed. The in-memory state is still current."""


class ServiceCredentialError(AuthError):
    """The client-credentials exchange was rejected."""

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        self.error_code = error_code


class TokenEndpointTimeout(AuthError):
    """A token endpoint call exceeded its timeout."""

    retryable = True


class TokenEndpointUnavailable(AuthError):
    """A token endpoint call failed before producing a response."""

    retryable = True
