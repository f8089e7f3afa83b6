"""
Custom exceptions for AUTHTABLES.

Every error is a ``RuntimeError`` carrying a ``context`` dict. Discovery
absorbs ``DiscoveryError`` and ``TemplateRenderError``; generation and the
table guard let ``GenerationError`` and ``ConfigurationError`` reach the
caller.
"""

from typing import Any, Dict, List, Optional


def _merge_context(context: Optional[Dict[str, Any]], **details: Any) -> Dict[str, Any]:
    """Copy of ``context`` with every detail that is set (not None or empty)."""
    merged = dict(context or {})
    merged.update({key: value for key, value in details.items() if value not in (None, "")})
    return merged


class AuthTablesError(RuntimeError):
    """
    Base exception for AUTHTABLES errors.

    ``str()`` appends the context as ``key=value`` pairs, so a bare error
    reads exactly as its message.
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})

    def __str__(self) -> str:
        if not self.context:
            return self.message
        pairs = ", ".join(f"{key}={value}" for key, value in self.context.items())
        return f"{self.message} (context: {pairs})"


class DiscoveryError(AuthTablesError):
    """A single table accessor could not be resolved; the scan skips it."""

    def __init__(
        self,
        message: str,
        accessor: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, _merge_context(context, accessor=accessor))
        self.accessor = accessor


class TemplateRenderError(AuthTablesError):
    """
    A DDL template could not be loaded or rendered.

    Attributes:
        feature: Feature whose template failed
        template: Template file name
    """

    def __init__(
        self,
        message: str,
        feature: Optional[str] = None,
        template: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, _merge_context(context, feature=feature, template=template))
        self.feature = feature
        self.template = template


class ConfigurationError(AuthTablesError):
    """
    Invalid configuration, or the table guard refusing to boot.

    Guard failures carry ``missing_tables`` but no context, so their
    message is exactly the guard (or custom handler) message.

    Attributes:
        config_key: Offending configuration key
        config_value: Offending configuration value
        missing_tables: Missing table names behind a guard failure
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        missing_tables: Optional[List[str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message, _merge_context(context, config_key=config_key, config_value=config_value)
        )
        self.config_key = config_key
        self.config_value = config_value
        self.missing_tables = list(missing_tables or [])


class GenerationError(AuthTablesError):
    """
    DDL synthesis or execution failed; always raised ``from`` the cause.

    The failing ``statement`` is kept as an attribute only, it is too long
    for the context.
    """

    def __init__(
        self,
        message: str,
        feature: Optional[str] = None,
        template: Optional[str] = None,
        statement: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, _merge_context(context, feature=feature, template=template))
        self.feature = feature
        self.template = template
        self.statement = statement
