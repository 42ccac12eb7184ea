"""
Abstract interfaces for the runtime helpers package.

This module defines the contracts of the three helper surfaces so callers can
depend on the interface and inject alternative implementations.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from .models import DataColumn, DataRow, DataTable


TagSelector = Union[str, Callable[[str], bool]]
ContentFilter = Callable[[str], bool]


class TableMarshallerInterface(ABC):
    """Abstract interface for mapping between DataTables and object collections."""

    @abstractmethod
    def add_column(self, table: DataTable, column_name: str, column_type: Optional[type] = None,
                   is_primary_key: bool = False) -> DataColumn:
        """
        Add a typed column to a table.

        Args:
            table: Target table
            column_name: Unique, non-blank column name
            column_type: Column data type (defaults to str)
            is_primary_key: Whether the column joins the primary key

        Returns:
            The created column

        Raises:
            InvalidArgumentError: For a missing table, blank or duplicate name
        """
        pass

    @abstractmethod
    def add_row(self, table: DataTable, values: Iterable[Any]) -> DataRow:
        """
        Append a row from values given in column order.

        Raises:
            InvalidArgumentError: If the value count differs from the column count
        """
        pass

    @abstractmethod
    def add_items(self, table: DataTable, items: Iterable[Any], add_missing_columns: Optional[bool] = None,
                  property_to_column: Optional[Mapping[str, str]] = None,
                  value_converter: Optional[Callable[[Any, type], Any]] = None,
                  item_type: Optional[type] = None) -> DataTable:
        """Append one row per item, mapping item properties onto columns."""
        pass

    @abstractmethod
    def contains_row(self, table: DataTable, row: Any) -> bool:
        """Check whether a row (or row view) is attached to exactly this table."""
        pass

    @abstractmethod
    def to_table(self, items: Iterable[Any], table_name: Optional[str] = None, *property_selectors: Any,
                 item_type: Optional[type] = None) -> DataTable:
        """Build a new table from a typed object sequence."""
        pass

    @abstractmethod
    def to_column_list(self, table: DataTable, column_name: str, target_type: Optional[type] = None,
                       value_converter: Optional[Callable[[Any], Any]] = None) -> List[Any]:
        """Extract the non-null values of one column."""
        pass

    @abstractmethod
    def to_list(self, table: DataTable, item_type: type,
                column_to_property: Optional[Mapping[str, str]] = None,
                value_converter: Optional[Callable[[Any, type], Any]] = None) -> List[Any]:
        """Materialize one object of item_type per row."""
        pass


class XmlQueryInterface(ABC):
    """Abstract interface for lenient XML extraction by local tag name."""

    @abstractmethod
    def get_values(self, xml_content: str, tag: TagSelector) -> List[str]:
        """
        Get the text content of every matching element.

        Returns:
            Text values in document order, empty on invalid input or parse failure
        """
        pass

    @abstractmethod
    def get_contents(self, xml_content: str, tag: TagSelector,
                     content_filter: Optional[ContentFilter] = None) -> List[str]:
        """Get the serialized XML of every matching element, optionally filtered."""
        pass

    @abstractmethod
    def get_attributes(self, xml_content: str, tag: TagSelector) -> List[Dict[str, str]]:
        """Get the attribute map of every matching element."""
        pass


class ExpressionInspectorInterface(ABC):
    """Abstract interface for member resolution and evaluation over expression trees."""

    @abstractmethod
    def get_member_info(self, expression: Any, owner_type: Optional[type] = None) -> Any:
        """
        Resolve the member referenced by an expression.

        Returns:
            Member information, or None when nothing can be resolved
        """
        pass

    @abstractmethod
    def get_property_name(self, expression: Any, owner_type: Optional[type] = None) -> Optional[str]:
        """Resolve the name of the property referenced by an expression."""
        pass

    @abstractmethod
    def get_value(self, expression: Any, namespace: Optional[Mapping[str, Any]] = None,
                  owner_type: Optional[type] = None) -> Any:
        """Best-effort evaluation of an expression node; never raises."""
        pass
