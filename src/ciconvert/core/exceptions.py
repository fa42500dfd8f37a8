"""
Conversion Exception Classes

Custom exceptions raised while parsing, converting and serializing pipelines.
"""

from typing import Any


class ConversionError(Exception):
    """Base exception for all pipeline conversion errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.context = context or {}

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.error_code:
            base_msg = f"[{self.error_code}] {base_msg}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg = f"{base_msg} (Context: {context_str})"
        return base_msg


class ParseError(ConversionError):
    """Raised when the input is not valid structured data for the source format."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        source: str | None = None,
        error_code: str = "PARSE_ERROR",
        context: dict[str, Any] | None = None,
    ) -> None:
        context = dict(context or {})
        if provider:
            context["provider"] = provider
        if source:
            context["source"] = source
        super().__init__(message, error_code, context)

    def get_recovery_hint(self) -> str:
        """Provide a helpful hint for fixing the parse error."""
        if "provider" in self.context:
            provider = self.context["provider"]
            return f"Check that the document is a valid {provider} pipeline file"
        return "Check the document for YAML syntax errors"


class DecodeError(ParseError):
    """Raised when a field matches none of the shapes it accepts."""

    def __init__(
        self,
        message: str,
        field_name: str | None = None,
        provider: str | None = None,
    ) -> None:
        context = {}
        if field_name:
            context["field_name"] = field_name
        super().__init__(
            message, provider=provider, error_code="DECODE_ERROR", context=context
        )
        self.field_name = field_name

    def get_recovery_hint(self) -> str:
        """Provide a helpful hint for fixing the decode error."""
        if self.field_name:
            return f"Check the value of '{self.field_name}' in the source document"
        return super().get_recovery_hint()


class ExternalServiceError(ConversionError):
    """Raised when the chat-completion service fails or returns unusable text."""

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        status_code: int | None = None,
    ) -> None:
        context: dict[str, Any] = {}
        if endpoint:
            context["endpoint"] = endpoint
        if status_code is not None:
            context["status_code"] = status_code
        super().__init__(message, "EXTERNAL_SERVICE_ERROR", context)

    def get_recovery_hint(self) -> str:
        """Provide a helpful hint for external service failures."""
        status = self.context.get("status_code")
        if status in (401, 403):
            return "Check the API token passed with --token or OPENAI_API_KEY"
        return "Retry the conversion or run with --debug to inspect the response"


class SerializationError(ConversionError):
    """Raised when the converted pipeline cannot be serialized."""

    def __init__(self, message: str, document: str | None = None) -> None:
        context = {}
        if document:
            context["document"] = document
        super().__init__(message, "SERIALIZATION_ERROR", context)


class UnsupportedProviderError(ConversionError):
    """Raised for unknown providers or providers without a converter."""

    def __init__(self, message: str, provider: str | None = None) -> None:
        context = {}
        if provider:
            context["provider"] = provider
        super().__init__(message, "UNSUPPORTED_PROVIDER", context)
