from typing import List, Optional


class ReviewProxyError(Exception):
    """Base class for every error raised by the review proxy."""


class ConfigurationError(ReviewProxyError):
    pass


class ValidationError(ReviewProxyError):
    """Malformed or out-of-range input. Maps to HTTP 400."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or [message]


class RemoteValidationError(ReviewProxyError):
    """Shopify rejected a mutation through its userErrors list."""

    def __init__(self, messages: List[str]):
        self.messages = messages
        super().__init__(f"Shopify API Error: {', '.join(messages)}")


class RemoteTransportError(ReviewProxyError):
    """Network failure, non-2xx status or top-level GraphQL errors."""

    def __init__(self, message: str, status_code: Optional[int] = None, transient: bool = False,
                 request_sent: bool = True):
        super().__init__(message)
        self.status_code = status_code
        self.transient = transient
        # False only when the connection was never established
        self.request_sent = request_sent

    @property
    def is_transient(self) -> bool:
        return self.transient


class MediaUploadError(ReviewProxyError):
    """A phase of the staged upload pipeline failed."""

    def __init__(self, phase: str, message: str):
        self.phase = phase
        super().__init__(f"Media upload failed during {phase}: {message}")
