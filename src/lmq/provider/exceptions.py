"""Exceptions raised by provider clients.

Every failure of the external transcription or summarization API surfaces
as a ProviderError subclass. The ``transient`` flag records whether a later
attempt could plausibly succeed; the queue does not retry automatically,
so it is informational only.
"""


class ProviderError(Exception):
    """Base exception for provider failures."""

    transient = False


class ProviderConnectionError(ProviderError):
    """Raised when the provider cannot be reached or times out."""

    transient = True


class ProviderHTTPError(ProviderError):
    """Raised when the provider answers with a non-2xx status.

    Attributes:
        status_code: HTTP status returned by the provider.
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        super().__init__(f"provider returned HTTP {status_code}: {message}")

    @property
    def transient(self) -> bool:  # type: ignore[override]
        return self.status_code >= 500 or self.status_code == 429


class ProviderAuthError(ProviderHTTPError):
    """Raised when the provider rejects the API key (401/403)."""


class ProviderResponseError(ProviderError):
    """Raised when a 2xx response body doesn't match the expected shape."""
