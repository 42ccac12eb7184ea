"""
Mapping between DataTables and typed object collections.

This module creates columns and rows, appends objects as rows by mapping their
public properties onto columns, and materializes rows back into objects or
single-column value lists.

All operations are strict: a missing table, a blank or unknown column name, a
duplicate column or a row of the wrong width raises InvalidArgumentError
immediately, and a value that cannot be coerced raises ConversionError.

Example:
    marshaller = TableMarshaller()
    table = marshaller.to_table(products)
    restored = marshaller.to_list(table, Product)
    prices = marshaller.to_column_list(table, "price", Decimal)
"""

import collections.abc
import itertools
import logging
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple

from .member_cache import MemberCache, MemberDescriptor, TypeDescriptor, get_member_cache, strip_optional
from .type_converter import TypeConverter, get_type_converter
from ..config.settings import HelperSettings, get_settings
from ..exceptions import InvalidArgumentError
from ..expressions.expression_inspector import ExpressionInspector
from ..interfaces import TableMarshallerInterface
from ..models import DB_NULL, DataColumn, DataRow, DataRowView, DataTable, RowState
from ..utils import ValidationUtils


ValueConverter = Callable[[Any, Any], Any]

_MISSING = object()


class TableMarshaller(TableMarshallerInterface):
    """
    Converts between DataTables and collections of typed objects.

    Property discovery goes through a MemberCache (one reflection pass per type)
    and value coercion through a TypeConverter unless the caller passes its own
    value_converter. Both collaborators are injectable; by default the shared
    instances are used.
    """

    def __init__(self, member_cache: Optional[MemberCache] = None, converter: Optional[TypeConverter] = None,
                 expression_inspector: Optional[ExpressionInspector] = None,
                 settings: Optional[HelperSettings] = None, logger=None):
        self.logger = logger or logging.getLogger(__name__)
        self.settings = settings or get_settings()
        self.member_cache = member_cache or get_member_cache()
        self.converter = converter or get_type_converter()
        self.expression_inspector = expression_inspector or ExpressionInspector(member_cache=self.member_cache)

    # ------------------------------------------------------------------
    # Columns and rows
    # ------------------------------------------------------------------

    def add_column(self, table: DataTable, column_name: str, column_type: Optional[type] = None,
                   is_primary_key: bool = False) -> DataColumn:
        """
        Add a column to a table.

        Args:
            table: Table to add the column to
            column_name: Name of the new column
            column_type: Data type of the column, str when omitted
            is_primary_key: Append the column to the table's primary key

        Returns:
            The created DataColumn

        Raises:
            InvalidArgumentError: If table is None, the name is blank or already exists, or
                                  a key column is requested on a table that already has rows
        """
        ValidationUtils.require(table, "table", "Table is required")
        ValidationUtils.require_text(column_name, "column_name", "Column name is required")
        if column_type is None:
            column_type = str
        if table.columns.contains(column_name):
            raise InvalidArgumentError(f"Column '{column_name}' already exists", "column_name")
        if is_primary_key and len(table.rows) > 0:
            # Existing rows would get DB_NULL in the new key column
            raise InvalidArgumentError(
                f"Cannot add primary key column '{column_name}' to table '{table.table_name}' "
                f"which already has {len(table.rows)} row(s)", "is_primary_key")

        column = table.columns.add(DataColumn(column_name, column_type, allow_null=not is_primary_key))
        if is_primary_key:
            # Reassign the whole key so it is recomputed in column order
            keys = list(table.primary_key)
            keys.append(column)
            table.primary_key = keys

        self.logger.debug(f"Added column '{column_name}' ({getattr(column_type, '__name__', column_type)}) "
                          f"to table '{table.table_name}'{' as primary key' if is_primary_key else ''}")
        return column

    def add_row(self, table: DataTable, values: Iterable[Any]) -> DataRow:
        """
        Append a row built from values given in column order.

        None values are stored as DB_NULL.

        Raises:
            InvalidArgumentError: If table or values is None, or the value count
                                  does not match the column count
        """
        ValidationUtils.require(table, "table", "Table is required")
        ValidationUtils.require(values, "values", "Row data is required")
        if isinstance(values, (str, bytes)) or not isinstance(values, collections.abc.Iterable):
            raise InvalidArgumentError("Row data must be a sequence of values", "values")

        values = list(values)
        if len(values) != len(table.columns):
            raise InvalidArgumentError(
                f"Row data length ({len(values)}) does not match table columns count ({len(table.columns)})",
                "values")

        row = table.new_row()
        for index, value in enumerate(values):
            row[index] = value
        return table.rows.add(row)

    def contains_row(self, table: DataTable, row: Any) -> bool:
        """
        Check whether a row belongs to exactly this table and is attached.

        Args:
            table: Table instance
            row: DataRow or DataRowView

        Returns:
            False for detached rows, rows of other tables and non-row objects
        """
        if isinstance(row, DataRowView):
            row = row.row
        if not isinstance(row, DataRow) or table is None:
            return False
        return row.table is table and row.row_state is not RowState.DETACHED

    # ------------------------------------------------------------------
    # Objects -> rows
    # ------------------------------------------------------------------

    def add_item(self, table: DataTable, item: Any, add_missing_columns: Optional[bool] = None,
                 property_to_column: Optional[Mapping[str, str]] = None,
                 value_converter: Optional[ValueConverter] = None) -> DataTable:
        """Append a single object as a row. See add_items."""
        ValidationUtils.require(table, "table", "Table is required")
        ValidationUtils.require(item, "item", "Item is required")
        return self.add_items(table, [item], add_missing_columns, property_to_column, value_converter)

    def add_items(self, table: DataTable, items: Iterable[Any], add_missing_columns: Optional[bool] = None,
                  property_to_column: Optional[Mapping[str, str]] = None,
                  value_converter: Optional[ValueConverter] = None,
                  item_type: Optional[type] = None) -> DataTable:
        """
        Append one row per item.

        Scalar items (str, numbers, dates, enums, ...) are coerced to the first
        column's type and written as one-column rows. Objects are mapped property
        by property: collection-typed properties are skipped, the column is found
        through property_to_column or the property's column name, and missing
        columns are created when add_missing_columns is set (otherwise the
        property is ignored). A value that converts to None leaves the cell DB_NULL.

        Args:
            table: Target table
            items: Items to append, consumed in a single pass
            add_missing_columns: Create columns for unmapped properties (settings default)
            property_to_column: Property name -> column name overrides
            value_converter: Callable(value, column_type) replacing the default coercion
            item_type: Item type; taken from the first item when omitted

        Returns:
            The table

        Raises:
            InvalidArgumentError: If table or items is None
            ConversionError: If a value cannot be coerced to its column type
        """
        ValidationUtils.require(table, "table", "Table is required")
        ValidationUtils.require(items, "items", "Items are required")
        if add_missing_columns is None:
            add_missing_columns = self.settings.add_missing_columns

        iterator = iter(items)
        if item_type is None:
            first = next(iterator, _MISSING)
            if first is _MISSING:
                return table
            item_type = type(first)
            iterator = itertools.chain([first], iterator)

        descriptor = self.member_cache.describe(item_type)
        if descriptor.is_basic:
            added = self._add_basic_items(table, iterator, descriptor, value_converter)
        else:
            added = self._add_object_items(
                table, iterator, descriptor, add_missing_columns, property_to_column or {}, value_converter)

        self.logger.debug(f"Appended {added} {descriptor.name} row(s) to table '{table.table_name}'")
        return table

    def _add_basic_items(self, table: DataTable, items: Iterable[Any], descriptor: TypeDescriptor,
                         value_converter: Optional[ValueConverter]) -> int:
        if len(table.columns) == 0:
            self.add_column(table, self.settings.basic_value_column, descriptor.type)
        target_column = table.columns[0]

        added = 0
        for item in items:
            # A fresh row per item: appended rows never share value storage
            row = table.new_row()
            row[target_column] = self._convert(item, target_column.data_type, value_converter,
                                               target_column.column_name)
            table.rows.add(row)
            added += 1
        return added

    def _add_object_items(self, table: DataTable, items: Iterable[Any], descriptor: TypeDescriptor,
                          add_missing_columns: bool, property_to_column: Mapping[str, str],
                          value_converter: Optional[ValueConverter]) -> int:
        props_map: List[Tuple[MemberDescriptor, DataColumn]] = []
        for prop in descriptor.non_collection_properties():
            if not prop.can_read:
                continue
            column_name = property_to_column.get(prop.name) or prop.column_name
            if table.columns.contains(column_name):
                column = table.columns[column_name]
            elif add_missing_columns:
                column = self.add_column(table, column_name, self._column_type(prop))
            else:
                self.logger.debug(f"Skipping property '{prop.name}': no column '{column_name}' "
                                  f"in table '{table.table_name}'")
                continue
            props_map.append((prop, column))

        added = 0
        for item in items:
            row = table.new_row()
            for prop, column in props_map:
                value = self._convert(prop.get_value(item), column.data_type, value_converter, column.column_name)
                if value is None:
                    continue
                row[column] = value
            table.rows.add(row)
            added += 1
        return added

    # ------------------------------------------------------------------
    # Objects -> new table
    # ------------------------------------------------------------------

    def to_table(self, items: Iterable[Any], table_name: Optional[str] = None, *property_selectors: Any,
                 item_type: Optional[type] = None) -> DataTable:
        """
        Build a new table with one row per item.

        Without selectors every public property becomes a column in declaration
        order. Selectors restrict and order the columns; each selector is a
        property name, an expression ("lambda x: x.name" or an ast node) or a
        (selector, column_name) tuple overriding the column name.

        Column types are the property types with Optional stripped, primary-key
        properties form the table's primary key, and None values are written as
        DB_NULL.

        Args:
            items: Source objects
            table_name: Table name, the item type's name when omitted
            property_selectors: Optional column selection
            item_type: Item type; taken from the first item when omitted. Needed to
                       lay out columns for an empty sequence.

        Returns:
            The new DataTable

        Raises:
            InvalidArgumentError: If items is None or a selector does not name a property
        """
        ValidationUtils.require(items, "items", "Items are required")

        iterator = iter(items)
        if item_type is None:
            first = next(iterator, _MISSING)
            if first is _MISSING:
                self.logger.debug("to_table: empty sequence without item_type, returning an empty table")
                return DataTable(table_name or "")
            item_type = type(first)
            iterator = itertools.chain([first], iterator)

        table = DataTable(table_name or getattr(item_type, "__name__", ""))
        columns = self._resolve_selectors(item_type, property_selectors)

        primary_keys: List[DataColumn] = []
        mapped: List[Tuple[MemberDescriptor, DataColumn]] = []
        for prop, column_name in columns:
            column = self.add_column(table, column_name, self._column_type(prop))
            if prop.is_primary_key:
                primary_keys.append(column)
            mapped.append((prop, column))
        table.primary_key = primary_keys

        for item in iterator:
            row = table.new_row()
            for prop, column in mapped:
                row[column] = prop.get_value(item)
            table.rows.add(row)

        self.logger.debug(f"Built table '{table.table_name}' with {len(table.columns)} column(s) "
                          f"and {len(table.rows)} row(s)")
        return table

    def _resolve_selectors(self, item_type: type, selectors: Tuple[Any, ...]) -> List[Tuple[MemberDescriptor, str]]:
        descriptor = self.member_cache.describe(item_type)
        if not selectors:
            return [(prop, prop.column_name) for prop in descriptor.properties if prop.can_read]

        resolved = []
        for selector in selectors:
            column_name = None
            if isinstance(selector, tuple):
                selector, column_name = selector
            prop = self._resolve_selector(descriptor, selector)
            resolved.append((prop, column_name or prop.column_name))
        return resolved

    def _resolve_selector(self, descriptor: TypeDescriptor, selector: Any) -> MemberDescriptor:
        if isinstance(selector, MemberDescriptor):
            prop = selector
        elif isinstance(selector, str) and selector.isidentifier():
            prop = descriptor.get(selector)
        else:
            prop = self.expression_inspector.get_member_descriptor(selector, descriptor.type)
        if prop is None:
            raise InvalidArgumentError(
                f"Selector {selector!r} does not identify a property of {descriptor.name}", "property_selectors")
        return prop

    # ------------------------------------------------------------------
    # Rows -> values / objects
    # ------------------------------------------------------------------

    def to_column_list(self, table: DataTable, column_name: str, target_type: Optional[type] = None,
                       value_converter: Optional[Callable[[Any], Any]] = None) -> List[Any]:
        """
        Extract the values of one column in row order, skipping DB_NULL cells.

        Args:
            table: Source table
            column_name: Column to read
            target_type: Type to coerce values to (Optional stripped); values are
                         returned as stored when omitted
            value_converter: Callable(value) replacing the default coercion

        Raises:
            InvalidArgumentError: If table is None, the name is blank or unknown
            ConversionError: If a value cannot be coerced to target_type
        """
        ValidationUtils.require(table, "table", "Table is required")
        ValidationUtils.require_text(column_name, "column_name", "Column name cannot be null or whitespace")
        if not table.columns.contains(column_name):
            raise InvalidArgumentError(f"Column '{column_name}' not found", "column_name")

        target_type = strip_optional(target_type) if target_type is not None else None
        result = []
        for row in table.rows:
            value = row[column_name]
            if value is DB_NULL:
                continue
            if value_converter is not None:
                result.append(value_converter(value))
            elif target_type is None:
                result.append(value)
            else:
                result.append(self.converter.change_type(value, target_type, column_name))
        return result

    def to_list(self, table: DataTable, item_type: type, column_to_property: Optional[Mapping[str, str]] = None,
                value_converter: Optional[ValueConverter] = None) -> List[Any]:
        """
        Create one item_type instance per row.

        Each column maps to the property named by column_to_property, or to the
        property of the same name (falling back to a case-insensitive or
        column-name match). Columns without a writable property are ignored and
        DB_NULL cells leave the property at its default.

        Args:
            table: Source table
            item_type: Class with a no-argument constructor
            column_to_property: Column name -> property name overrides
            value_converter: Callable(value, property_type) replacing the default coercion

        Raises:
            InvalidArgumentError: If table or item_type is None
            ConversionError: If a value cannot be coerced to its property type
        """
        ValidationUtils.require(table, "table", "Table is required")
        ValidationUtils.require(item_type, "item_type", "Item type is required")
        column_to_property = column_to_property or {}

        descriptor = self.member_cache.describe(item_type)
        props_map: List[Tuple[DataColumn, MemberDescriptor]] = []
        for column in table.columns:
            prop = descriptor.find(column_to_property.get(column.column_name) or column.column_name)
            if prop is None or not prop.can_write:
                if self.logger.isEnabledFor(logging.DEBUG):
                    self.logger.debug(f"Column '{column.column_name}' has no writable property on {descriptor.name}")
                continue
            props_map.append((column, prop))

        result = []
        for row in table.rows:
            item = item_type()
            for column, prop in props_map:
                value = row[column]
                if value is DB_NULL:
                    continue
                prop.set_value(item, self._convert(value, prop.property_type, value_converter, prop.name))
            result.append(item)
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _convert(self, value: Any, target_type: Any, value_converter: Optional[ValueConverter],
                 field_name: str) -> Any:
        if value_converter is not None:
            return value_converter(value, target_type)
        return self.converter.change_type(value, target_type, field_name)

    @staticmethod
    def _column_type(prop: MemberDescriptor) -> type:
        column_type = prop.underlying_type
        return column_type if isinstance(column_type, type) else object
