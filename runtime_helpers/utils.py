"""
Utility functions for common patterns across the runtime helpers package.
"""

from typing import Any

from .exceptions import InvalidArgumentError


class StringUtils:
    """Utility methods for string validation and processing."""

    @staticmethod
    def safe_string_check(value: Any) -> bool:
        """
        Standardized string validation.

        Args:
            value: Value to check

        Returns:
            True if value is a non-empty string after stripping whitespace
        """
        return value is not None and str(value).strip() != ''

    @staticmethod
    def truncate(value: Any, max_length: int = 80) -> str:
        """
        Shorten a value for log output.

        Args:
            value: Input value
            max_length: Maximum length of the returned text

        Returns:
            String no longer than max_length, ending in '...' when shortened
        """
        if value is None:
            return ''
        text = str(value)
        if len(text) <= max_length:
            return text
        return text[:max(max_length - 3, 0)] + '...'


class ValidationUtils:
    """Argument checks shared by the strict helpers."""

    @staticmethod
    def require(value: Any, param_name: str, description: str = None) -> Any:
        """
        Ensure a required argument was supplied.

        Raises:
            InvalidArgumentError: If value is None
        """
        if value is None:
            raise InvalidArgumentError(description or f"{param_name} is required", param_name)
        return value

    @staticmethod
    def require_text(value: Any, param_name: str, description: str = None) -> str:
        """
        Ensure a required string argument is non-empty and not only whitespace.

        Raises:
            InvalidArgumentError: If value is None, empty or whitespace
        """
        if not StringUtils.safe_string_check(value):
            raise InvalidArgumentError(description or f"{param_name} cannot be null or whitespace", param_name)
        return value
