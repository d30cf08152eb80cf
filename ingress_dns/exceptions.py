"""Custom exceptions for the ingress DNS controller."""


class IngressDNSError(Exception):
    """Base exception for all controller errors."""

    def __init__(self, message: str, details: str = None):
        """Initialize the exception.

        Args:
            message: Main error message
            details: Additional details or suggestions
        """
        self.message = message
        self.details = details
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format the complete error message.

        Returns:
            Formatted error message with details
        """
        if self.details:
            return f"{self.message}\n\nDetails: {self.details}"
        return self.message


class ConfigurationError(IngressDNSError):
    """Exception raised for configuration errors."""

    pass


class NomadError(IngressDNSError):
    """Exception raised for Nomad API errors."""

    pass


class EventStreamError(NomadError):
    """Exception raised when the Nomad event stream cannot be established or terminates."""

    pass


class CloudflareError(IngressDNSError):
    """Exception raised for Cloudflare API errors."""

    def __init__(self, message: str, details: str = None, errors: list | None = None):
        self.errors = errors or []
        super().__init__(message, details)
