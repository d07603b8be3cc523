"""Exception types shared by providers, workflows and the CLI."""


class EnvhubError(Exception):
    """Base class for all envhub errors."""
    pass


class ConfigError(EnvhubError):
    """Configuration error exception."""
    pass


class SecretNotFoundError(EnvhubError):
    """The secret does not exist on the remote backend."""

    def __init__(self, secret_name: str, message: str = None):
        self.secret_name = secret_name
        super().__init__(message or f"Secret '{secret_name}' not found.")


class MalformedPayloadError(EnvhubError):
    """The secret exists but its payload is not an envhub envelope."""

    def __init__(self, secret_name: str, message: str):
        self.secret_name = secret_name
        super().__init__(message)


class SecretNameError(EnvhubError):
    """A secret name violates a backend naming constraint."""
    pass


class UnsupportedOperationError(EnvhubError):
    """The selected backend has no equivalent for the requested operation."""
    pass


class ProviderError(EnvhubError):
    """A backend call failed for a reason other than not-found."""

    def __init__(self, provider: str, operation: str, secret_name: str = None, cause: Exception = None):
        self.provider = provider
        self.operation = operation
        self.secret_name = secret_name
        target = f" for '{secret_name}'" if secret_name else ""
        detail = f": {cause}" if cause else ""
        super().__init__(f"{provider} {operation} failed{target}{detail}")
