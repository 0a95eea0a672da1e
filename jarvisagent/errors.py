from __future__ import annotations


GENERIC_USER_MESSAGE = "Sorry, I encountered an error processing your request. Please try again."


class JarvisError(Exception):
    """Base exception for everything the assistant raises on purpose."""

    def __init__(self, message: str, user_message: str | None = None) -> None:
        super().__init__(message)
        self.user_message = user_message or GENERIC_USER_MESSAGE


class IntegrationError(JarvisError):
    """A single tool call failed; recovered into a tool-result turn."""


class UnknownFunction(IntegrationError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Function '{name}' is not registered.")
        self.name = name


class MissingParameter(IntegrationError):
    def __init__(self, field_name: str, function_name: str) -> None:
        super().__init__(
            f"Function '{function_name}' is missing required parameter '{field_name}'."
        )
        self.field_name = field_name
        self.function_name = function_name


class InvalidParameter(IntegrationError):
    def __init__(self, field_name: str, function_name: str, reason: str) -> None:
        super().__init__(
            f"Function '{function_name}' parameter '{field_name}' is invalid: {reason}"
        )
        self.field_name = field_name
        self.function_name = function_name
        self.reason = reason


class ExternalCallFailed(IntegrationError):
    def __init__(self, service: str, cause: str, status_code: int | None = None) -> None:
        detail = f" ({status_code})" if status_code is not None else ""
        super().__init__(f"{service} request failed{detail}: {cause}")
        self.service = service
        self.cause = cause
        self.status_code = status_code


class ReauthRequired(JarvisError):
    """Stored Google credentials are expired and cannot be refreshed."""

    def __init__(self, reason: str) -> None:
        super().__init__(
            reason,
            user_message=(
                "Your Google connection has expired. Please sign in with Google again, "
                "then retry your request."
            ),
        )
        self.reason = reason


class LLMCallFailed(JarvisError):
    def __init__(self, reason: str) -> None:
        super().__init__(f"LLM completion failed: {reason}")
        self.reason = reason


class MalformedToolArguments(JarvisError):
    """Tool-call arguments could not be parsed; callers fall back to ``{}``."""

    def __init__(self, raw_arguments: str) -> None:
        super().__init__(f"Could not parse tool arguments: {raw_arguments[:200]!r}")
        self.raw_arguments = raw_arguments
