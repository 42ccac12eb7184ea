"""
Typed conversion registry used as the default value coercion of the table marshaller.

Conversions are looked up in a closed registry of (source type, target type)
pairs. Anything outside the registry raises ConversionError instead of being
guessed at.
"""

import logging
import typing
from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple
from uuid import UUID

from .member_cache import strip_optional
from ..exceptions import ConversionError
from ..models import DB_NULL


ConverterFunc = Callable[[Any], Any]

_TRUE_STRINGS = {"true", "1", "y", "yes"}
_FALSE_STRINGS = {"false", "0", "n", "no"}


def _str_to_int(value: str) -> int:
    text = value.strip()
    if not text.isdigit() and not (text[:1] in "+-" and text[1:].isdigit()):
        raise ValueError(f"invalid integer literal '{value}'")
    return int(text)


def _number_to_int(value: Any) -> int:
    # Round half up rather than Python's banker's rounding
    # to_integral_value is not bounded by the decimal context precision
    return int(Decimal(str(value)).to_integral_value(rounding=ROUND_HALF_UP))


def _str_to_decimal(value: str) -> Decimal:
    try:
        return Decimal(value.strip())
    except InvalidOperation:
        raise ValueError(f"invalid decimal literal '{value}'")


def _str_to_bool(value: str) -> bool:
    text = value.strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ValueError(f"invalid boolean literal '{value}'")


def _str_to_datetime(value: str) -> datetime:
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _to_str(value: Any) -> str:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    return str(value)


def _default_registry() -> Dict[Tuple[type, type], ConverterFunc]:
    registry: Dict[Tuple[type, type], ConverterFunc] = {
        # numeric widening / narrowing
        (int, float): float,
        (int, Decimal): Decimal,
        (int, bool): bool,
        (float, int): _number_to_int,
        (float, Decimal): lambda v: Decimal(str(v)),
        (float, bool): bool,
        (Decimal, int): _number_to_int,
        (Decimal, float): float,
        (Decimal, bool): bool,
        (bool, int): int,
        (bool, float): float,
        (bool, Decimal): lambda v: Decimal(int(v)),
        # string -> scalar
        (str, int): _str_to_int,
        (str, float): lambda v: float(v.strip()),
        (str, Decimal): _str_to_decimal,
        (str, bool): _str_to_bool,
        (str, datetime): _str_to_datetime,
        (str, date): lambda v: date.fromisoformat(v.strip()),
        (str, time): lambda v: time.fromisoformat(v.strip()),
        (str, UUID): lambda v: UUID(v.strip()),
        (str, bytes): lambda v: v.encode("utf-8"),
        # date / time
        (datetime, date): lambda v: v.date(),
        (datetime, time): lambda v: v.time(),
        (date, datetime): lambda v: datetime.combine(v, time.min),
    }
    for source in (int, float, complex, Decimal, bool, datetime, date, time, timedelta, UUID, bytes, bytearray, Enum):
        registry[(source, str)] = _to_str
    return registry


class TypeConverter:
    """
    Converts values to a target type through an explicit registry of supported pairs.

    Lookup order for change_type(value, target):
    1. None / DB_NULL -> None
    2. exact (type(value), target) registry entry
    3. value already an instance of target -> returned unchanged
    4. registry entry for a base class of type(value)
    5. Enum targets: by value, then by member name for strings
    6. otherwise ConversionError
    """

    def __init__(self, logger=None):
        self.logger = logger or logging.getLogger(__name__)
        self._registry = _default_registry()

    def register(self, source_type: type, target_type: type, func: ConverterFunc) -> None:
        """Add or replace the conversion for a (source, target) pair."""
        self._registry[(source_type, target_type)] = func

    def supports(self, source_type: type, target_type: type) -> bool:
        target_type = strip_optional(target_type)
        if target_type in (Any, object) or source_type is target_type:
            return True
        if isinstance(target_type, type) and issubclass(source_type, target_type):
            return True
        if (source_type, target_type) in self._registry:
            return True
        return self._find(source_type, target_type) is not None

    def change_type(self, value: Any, target_type: Any, field_name: Optional[str] = None) -> Any:
        """
        Convert a value to the target type.

        Args:
            value: Source value
            target_type: Target type (Optional[...] is unwrapped)
            field_name: Optional column/property name for error reporting

        Returns:
            Converted value, or None for None / DB_NULL input

        Raises:
            ConversionError: If the pair is not supported or the value is malformed
        """
        if value is None or value is DB_NULL:
            return None

        target_type = strip_optional(target_type)
        if target_type in (Any, object, None):
            return value

        source_type = type(value)
        func = self._registry.get((source_type, target_type))
        if func is None:
            # Generic aliases such as List[str] are checked against their origin
            check_type = typing.get_origin(target_type) or target_type
            if isinstance(check_type, type) and isinstance(value, check_type):
                return value
            func = self._find(source_type, target_type)

        if func is None and isinstance(target_type, type) and issubclass(target_type, Enum):
            func = lambda v: self._to_enum(v, target_type)

        if func is None:
            raise ConversionError(
                f"Conversion from {source_type.__name__} to {getattr(target_type, '__name__', target_type)} "
                f"is not supported",
                value=value, target_type=target_type, field_name=field_name)

        try:
            return func(value)
        except (ValueError, TypeError, ArithmeticError, KeyError) as e:
            if self.logger.isEnabledFor(logging.DEBUG):
                self.logger.debug(f"Type conversion failed for value '{value}' to type '{target_type}': {e}")
            raise ConversionError(
                f"Cannot convert value '{value}' to {getattr(target_type, '__name__', target_type)}: {e}",
                value=value, target_type=target_type, field_name=field_name) from e

    def _find(self, source_type: type, target_type: Any) -> Optional[ConverterFunc]:
        for base in source_type.__mro__[1:]:
            func = self._registry.get((base, target_type))
            if func is not None:
                return func
        return None

    @staticmethod
    def _to_enum(value: Any, enum_type: type) -> Enum:
        try:
            return enum_type(value)
        except ValueError:
            if isinstance(value, str):
                return enum_type[value.strip()]
            raise


_global_type_converter: Optional[TypeConverter] = None


def get_type_converter() -> TypeConverter:
    """Get the shared type converter instance."""
    global _global_type_converter

    if _global_type_converter is None:
        _global_type_converter = TypeConverter()

    return _global_type_converter


def reset_type_converter() -> None:
    """Reset the shared type converter instance."""
    global _global_type_converter
    _global_type_converter = None
