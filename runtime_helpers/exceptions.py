"""
Custom exceptions for the runtime helpers package.

This module defines specific exception types for the error conditions
raised by the strict helpers (table marshalling, conversion, serialization).
The lenient helpers (XML extraction, expression inspection) catch these
internally and report empty or absent results instead.
"""

from typing import Any, Optional


class RuntimeHelpersError(Exception):
    """Base exception for all runtime helper errors."""
    pass


class InvalidArgumentError(RuntimeHelpersError, ValueError):
    """Exception raised when a required argument is missing or malformed."""

    def __init__(self, message: str, param_name: Optional[str] = None):
        """
        Initialize invalid argument error.

        Args:
            message: Error description
            param_name: Name of the offending parameter
        """
        if param_name:
            message = f"{message} (Parameter '{param_name}')"
        super().__init__(message)
        self.param_name = param_name


class ConversionError(RuntimeHelpersError, TypeError):
    """Exception raised when a value cannot be coerced to a target type."""

    def __init__(self, message: str, value: Any = None, target_type: Any = None,
                 field_name: Optional[str] = None):
        """
        Initialize conversion error.

        Args:
            message: Error description
            value: Original value that failed conversion
            target_type: Target type of the conversion
            field_name: Optional column or property name being converted
        """
        super().__init__(message)
        self.value = value
        self.source_type = type(value)
        self.target_type = target_type
        self.field_name = field_name


class XMLQueryError(RuntimeHelpersError):
    """Exception raised when XML text cannot be parsed or serialized."""

    def __init__(self, message: str, xml_content: Optional[str] = None):
        """
        Initialize XML query error.

        Args:
            message: Error description
            xml_content: Optional XML content that failed (truncated for logging)
        """
        super().__init__(message)
        self.xml_content = xml_content[:500] + "..." if xml_content and len(xml_content) > 500 else xml_content


class ExpressionError(RuntimeHelpersError):
    """Exception raised when an expression cannot be parsed or resolved."""
    pass


class ConfigurationError(RuntimeHelpersError):
    """Exception raised when configuration is invalid or missing."""
    pass
