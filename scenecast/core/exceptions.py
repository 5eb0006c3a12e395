"""
SceneCast Custom Exceptions

Exception hierarchy shared by the scene stream, segmentation, provider
clients and blob store.
"""


class SceneCastError(Exception):
    """Base exception for all SceneCast errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class ConfigurationError(SceneCastError):
    """Raised when there's an issue with configuration."""
    pass


class MissingConfigError(ConfigurationError):
    """Raised when a required setting (usually an API key) is missing."""

    def __init__(self, setting: str, hint: str = None):
        message = f"Missing configuration: {setting}"
        details = {"setting": setting}
        if hint:
            details["hint"] = hint
        super().__init__(message, details)
        self.setting = setting


class InvalidConfigError(ConfigurationError):
    """Raised when a configuration value is invalid."""
    pass


# =============================================================================
# REQUEST ERRORS
# =============================================================================

class InvalidRequestError(SceneCastError):
    """Raised when a client request fails validation."""

    def __init__(self, message: str, field: str = None):
        details = {"field": field} if field else {}
        super().__init__(message, details)
        self.field = field


# =============================================================================
# LLM ERRORS
# =============================================================================

class LLMError(SceneCastError):
    """Base exception for text generation errors."""
    pass


class LLMProviderError(LLMError):
    """Raised when a text provider call fails."""

    def __init__(self, provider: str, reason: str, status_code: int = None):
        message = f"LLM provider '{provider}' error: {reason}"
        details = {"provider": provider, "reason": reason}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, details)
        self.provider = provider
        self.reason = reason
        self.status_code = status_code


class RateLimitError(LLMProviderError):
    """Raised when a provider rejects a call with HTTP 429."""

    def __init__(self, provider: str, retry_after: float = None):
        super().__init__(provider, "rate limit exceeded", status_code=429)
        self.retry_after = retry_after
        if retry_after is not None:
            self.details["retry_after"] = retry_after


class ContentBlockedError(LLMProviderError):
    """Raised when a provider refuses the prompt on safety grounds."""

    def __init__(self, provider: str, block_reason: str):
        super().__init__(provider, f"content blocked ({block_reason})")
        self.block_reason = block_reason


class LLMResponseError(LLMError):
    """Raised when a provider response has an unexpected shape."""
    pass


# =============================================================================
# SEGMENTATION ERRORS
# =============================================================================

class SegmentationError(SceneCastError):
    """Base exception for story segmentation errors."""
    pass


class SegmentParseError(SegmentationError):
    """Raised when a sectioning response cannot be turned into segments."""

    def __init__(self, reason: str, raw_excerpt: str = None):
        details = {"reason": reason}
        if raw_excerpt:
            details["raw_excerpt"] = raw_excerpt[:200]
        super().__init__(f"Could not parse segments: {reason}", details)


# =============================================================================
# IMAGE ERRORS
# =============================================================================

class ImageGenerationError(SceneCastError):
    """Raised when an image provider fails to return an image."""

    def __init__(self, provider: str, reason: str, status_code: int = None):
        details = {"provider": provider}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(reason, details)
        self.provider = provider
        self.status_code = status_code


class TemplateNotFoundError(SceneCastError):
    """Raised when an unknown style template id is requested."""

    def __init__(self, template_id: str):
        super().__init__(f"Unknown template: '{template_id}'", {"template_id": template_id})
        self.template_id = template_id


# =============================================================================
# STORAGE ERRORS
# =============================================================================

class StorageError(SceneCastError):
    """Raised when a blob store operation fails."""
    pass


class BlobNotFoundError(StorageError):
    """Raised when a blob key does not exist."""

    def __init__(self, key: str):
        super().__init__(f"Blob not found: '{key}'", {"key": key})
        self.key = key


class BlobExistsError(StorageError):
    """Raised when writing a key that already exists without overwrite."""

    def __init__(self, key: str):
        super().__init__(f"Blob already exists: '{key}'", {"key": key})
        self.key = key


class InvalidBlobKeyError(StorageError):
    """Raised when a blob key is empty or escapes the store root."""

    def __init__(self, key: str):
        super().__init__(f"Invalid blob key: '{key}'", {"key": key})
        self.key = key
