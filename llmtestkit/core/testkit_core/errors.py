"""Error taxonomy for LLM Test Kit."""

from typing import Optional


class TestKitError(Exception):
    """Base exception for all LLM Test Kit errors."""
    __test__ = False


class ConfigurationError(TestKitError):
    """Startup-time configuration problem (missing primary provider, bad credentials)."""
    pass


class LLMError(TestKitError):
    """Base exception for LLM-related errors."""
    pass


class ProviderUnavailableError(LLMError):
    """A provider failed its health check or a completion call errored out."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


class LLMRateLimitError(ProviderUnavailableError):
    """Rate limit exceeded error."""
    pass


class LLMAuthenticationError(ProviderUnavailableError):
    """Authentication error."""
    pass


class ResponseParseError(LLMError):
    """Model output could not be recovered as JSON."""

    def __init__(self, message: str, raw_response: str):
        super().__init__(f"{message}\nRaw response: {raw_response}")
        self.reason = message
        self.raw_response = raw_response


class CommandValidationError(TestKitError):
    """A well-formed command is missing a field its type requires."""

    def __init__(
        self,
        message: str,
        command_type: Optional[str] = None,
        field: Optional[str] = None,
        index: Optional[int] = None,
    ):
        super().__init__(message)
        self.command_type = command_type
        self.field = field
        self.index = index


class CommandExecutionError(TestKitError):
    """The browser engine failed while executing a command."""

    def __init__(self, index: int, command_type: str, cause: Exception):
        super().__init__(f"Command {index + 1} ({command_type}) failed: {cause}")
        self.index = index
        self.command_type = command_type
        self.cause = cause
