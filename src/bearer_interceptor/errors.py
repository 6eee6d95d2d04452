"""
Error types raised by the interceptor and its identity providers.

Every auth failure carries a stable ``error_code`` so callers can branch on it
without parsing messages:

- InteractionTypeError: the interceptor was configured with an interaction
  type it cannot fall back to (anything other than popup or redirect)
- ProviderError: the identity provider rejected a token request
- InteractiveAcquisitionError: the interactive step finished without a token
- ResourceMapError: the protected-resource table is malformed
"""


class AuthError(Exception):
    """
    Base class for token acquisition failures.

    Attributes:
        error_code: Short machine-readable code (e.g. "invalid_interaction_type")
        error_message: Human-readable description
    """

    def __init__(self, error_code: str, error_message: str = ""):
        self.error_code = error_code
        self.error_message = error_message
        super().__init__(f"{error_code}: {error_message}" if error_message else error_code)


class InteractionTypeError(AuthError):
    """Raised when the configured interaction type is neither popup nor redirect."""

    ERROR_CODE = "invalid_interaction_type"
    ERROR_MESSAGE = (
        "Invalid interaction type provided to the bearer interceptor. "
        "InteractionType.Popup, InteractionType.Redirect must be provided "
        "in the interceptor configuration"
    )

    def __init__(self):
        super().__init__(self.ERROR_CODE, self.ERROR_MESSAGE)


class ProviderError(AuthError):
    """An identity provider refused or failed a token request."""


class InteractiveAcquisitionError(AuthError):
    """Interactive acquisition completed but produced no access token."""


class ResourceMapError(ValueError):
    """A protected-resource table entry has an unsupported shape."""
