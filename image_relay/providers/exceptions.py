class ProviderError(Exception):
    """Raised when a single upload attempt against a provider fails."""


class ProviderTimeoutError(ProviderError):
    """Raised when a provider does not answer within the configured timeout."""


class ProviderResponseError(ProviderError):
    """Raised when a provider answers with an error status or an unusable body."""
