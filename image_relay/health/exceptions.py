class HealthStoreError(Exception):
    """Raised when the provider health store cannot be read or written."""
