"""
Core data models for the runtime helpers package.

This module defines the in-memory tabular structure the table marshaller works
against: typed columns, column-aligned rows, an optional primary key and the
DB_NULL marker used for empty cells.
"""

from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from .exceptions import InvalidArgumentError


class DBNull:
    """
    Null-marker for table cells.

    A single instance (``DB_NULL``) exists. It is falsy and distinct from
    ``None``, ``0`` and ``''`` so an empty cell can never be confused with a
    typed zero or empty value.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "DBNull"

    def __reduce__(self):
        return (DBNull, ())


DB_NULL = DBNull()


class RowState(Enum):
    """Lifecycle state of a DataRow."""
    DETACHED = "detached"
    ADDED = "added"


class DataColumn:
    """
    Named, typed column of a DataTable.

    Attributes:
        column_name: Column name, unique (case-sensitive) within its table
        data_type: Python type of the values stored in the column
        allow_null: Whether cells may hold DB_NULL
        table: Owning table, None until the column is added
    """

    def __init__(self, column_name: str, data_type: type = str, allow_null: bool = True):
        if column_name is None or not str(column_name).strip():
            raise InvalidArgumentError("Column name is required", "column_name")
        self.column_name = column_name
        self.data_type = data_type if data_type is not None else str
        self.allow_null = allow_null
        self.default_value = DB_NULL
        self.table: Optional["DataTable"] = None

    @property
    def ordinal(self) -> int:
        """Position of the column in its table, or -1 when not attached."""
        if self.table is None:
            return -1
        return self.table.columns.index_of(self.column_name)

    def __repr__(self) -> str:
        type_name = getattr(self.data_type, "__name__", str(self.data_type))
        return f"DataColumn({self.column_name!r}, {type_name})"


class DataColumnCollection:
    """Ordered collection of the columns of one table."""

    def __init__(self, table: "DataTable"):
        self._table = table
        self._columns: List[DataColumn] = []
        self._index: Dict[str, int] = {}

    def add(self, column: DataColumn) -> DataColumn:
        """
        Append a column to the table.

        Rows that already exist are extended with DB_NULL for the new column.

        Raises:
            InvalidArgumentError: If the name is taken or the column belongs to another table
        """
        if column.table is not None:
            raise InvalidArgumentError(
                f"Column '{column.column_name}' already belongs to a table", "column")
        if column.column_name in self._index:
            raise InvalidArgumentError(f"Column '{column.column_name}' already exists", "column_name")

        self._index[column.column_name] = len(self._columns)
        self._columns.append(column)
        column.table = self._table
        for row in self._table.rows:
            row._values.append(DB_NULL)
        return column

    def contains(self, column_name: str) -> bool:
        return column_name in self._index

    def index_of(self, column_name: str) -> int:
        return self._index.get(column_name, -1)

    def names(self) -> List[str]:
        return [column.column_name for column in self._columns]

    def __contains__(self, item) -> bool:
        if isinstance(item, DataColumn):
            return item.table is self._table
        return item in self._index

    def __getitem__(self, key: Union[int, str]) -> DataColumn:
        if isinstance(key, str):
            if key not in self._index:
                raise KeyError(f"Column '{key}' does not belong to table '{self._table.table_name}'")
            return self._columns[self._index[key]]
        return self._columns[key]

    def __iter__(self) -> Iterator[DataColumn]:
        return iter(self._columns)

    def __len__(self) -> int:
        return len(self._columns)

    def __repr__(self) -> str:
        return f"DataColumnCollection({self.names()!r})"


class DataRow:
    """
    One row of a DataTable, holding one value per column in column order.

    Rows are created detached through ``DataTable.new_row()`` and become part of
    the table when added to ``DataTable.rows``.
    """

    def __init__(self, table: "DataTable"):
        self._table = table
        self._values: List[Any] = [DB_NULL] * len(table.columns)
        self._state = RowState.DETACHED

    @property
    def table(self) -> "DataTable":
        return self._table

    @property
    def row_state(self) -> RowState:
        return self._state

    @property
    def item_array(self) -> Tuple[Any, ...]:
        """Snapshot of the row values in column order."""
        self._ensure_width()
        return tuple(self._values)

    def is_null(self, key: Union[int, str, DataColumn]) -> bool:
        return self[key] is DB_NULL

    def to_dict(self) -> Dict[str, Any]:
        """Row values keyed by column name, DB_NULL cells as None."""
        return {
            column.column_name: (None if value is DB_NULL else value)
            for column, value in zip(self._table.columns, self.item_array)
        }

    def _ensure_width(self) -> None:
        # Detached rows created before a column was added are padded lazily.
        missing = len(self._table.columns) - len(self._values)
        if missing > 0:
            self._values.extend([DB_NULL] * missing)

    def _resolve(self, key: Union[int, str, DataColumn]) -> int:
        if isinstance(key, DataColumn):
            if key.table is not self._table:
                raise KeyError(f"Column '{key.column_name}' does not belong to table '{self._table.table_name}'")
            key = key.column_name
        if isinstance(key, str):
            index = self._table.columns.index_of(key)
            if index < 0:
                raise KeyError(f"Column '{key}' does not belong to table '{self._table.table_name}'")
            return index
        if not 0 <= key < len(self._table.columns):
            raise IndexError(f"Cannot find column {key}")
        return key

    def __getitem__(self, key: Union[int, str, DataColumn]) -> Any:
        index = self._resolve(key)
        self._ensure_width()
        return self._values[index]

    def __setitem__(self, key: Union[int, str, DataColumn], value: Any) -> None:
        index = self._resolve(key)
        self._ensure_width()
        self._values[index] = DB_NULL if value is None else value

    def __repr__(self) -> str:
        return f"DataRow({self.item_array!r}, state={self._state.value})"


class DataRowView:
    """Read-only view wrapping a single DataRow."""

    def __init__(self, row: DataRow):
        self.row = row

    def __getitem__(self, key: Union[int, str, DataColumn]) -> Any:
        return self.row[key]

    def __repr__(self) -> str:
        return f"DataRowView({self.row!r})"


class DataRowCollection:
    """Append-only, ordered collection of the rows of one table."""

    def __init__(self, table: "DataTable"):
        self._table = table
        self._rows: List[DataRow] = []
        self._key_index: set = set()

    def add(self, row: DataRow) -> DataRow:
        """
        Append a detached row created by this table.

        Raises:
            InvalidArgumentError: If the row belongs to another table, was already added,
                                  has DB_NULL in a non-nullable column or repeats a primary key
        """
        if row is None:
            raise InvalidArgumentError("Row is required", "row")
        if row.table is not self._table:
            raise InvalidArgumentError("This row already belongs to another table", "row")
        if row.row_state is not RowState.DETACHED:
            raise InvalidArgumentError("This row already belongs to this table", "row")

        row._ensure_width()
        for column, value in zip(self._table.columns, row._values):
            if value is DB_NULL and not column.allow_null:
                raise InvalidArgumentError(f"Column '{column.column_name}' does not allow nulls", "row")

        key = self._table._key_of(row)
        if key is not None:
            if key in self._key_index:
                raise InvalidArgumentError(
                    f"Column(s) {self._table._key_names()} are constrained to be unique. "
                    f"Value {key!r} is already present", "row")
            self._key_index.add(key)

        row._state = RowState.ADDED
        self._rows.append(row)
        return row

    def _rebuild_key_index(self) -> None:
        keys = set()
        for row in self._rows:
            key = self._table._key_of(row)
            if key is None:
                continue
            if key in keys:
                raise InvalidArgumentError(
                    f"Column(s) {self._table._key_names()} contain non-unique values", "primary_key")
            keys.add(key)
        self._key_index = keys

    def __getitem__(self, index: int) -> DataRow:
        return self._rows[index]

    def __iter__(self) -> Iterator[DataRow]:
        return iter(self._rows)

    def __len__(self) -> int:
        return len(self._rows)


class DataTable:
    """
    In-memory table of typed columns and ordered rows.

    Attributes:
        table_name: Name of the table
        columns: Ordered column collection
        rows: Ordered, append-only row collection
        primary_key: Ordered tuple of key columns (empty when the table has no key)
    """

    def __init__(self, table_name: str = ""):
        self.table_name = table_name or ""
        self.columns = DataColumnCollection(self)
        self.rows = DataRowCollection(self)
        self._primary_key: Tuple[DataColumn, ...] = ()

    @property
    def primary_key(self) -> Tuple[DataColumn, ...]:
        return self._primary_key

    @primary_key.setter
    def primary_key(self, columns: Optional[Sequence[DataColumn]]) -> None:
        columns = tuple(columns or ())
        for column in columns:
            if column.table is not self:
                raise InvalidArgumentError(
                    f"Column '{column.column_name}' does not belong to table '{self.table_name}'", "primary_key")
            if any(row.is_null(column) for row in self.rows):
                raise InvalidArgumentError(
                    f"Column '{column.column_name}' holds nulls and cannot be part of the primary key "
                    f"of table '{self.table_name}'", "primary_key")
        previous = self._primary_key
        self._primary_key = columns
        try:
            self.rows._rebuild_key_index()
        except InvalidArgumentError:
            self._primary_key = previous
            raise
        for column in columns:
            column.allow_null = False

    def new_row(self) -> DataRow:
        """Create a detached row with the table's layout."""
        return DataRow(self)

    def column_names(self) -> List[str]:
        return self.columns.names()

    def _key_of(self, row: DataRow) -> Optional[Tuple[Any, ...]]:
        if not self._primary_key:
            return None
        return tuple(row[column] for column in self._primary_key)

    def _key_names(self) -> str:
        return ", ".join(f"'{column.column_name}'" for column in self._primary_key)

    def __repr__(self) -> str:
        return f"DataTable({self.table_name!r}, columns={len(self.columns)}, rows={len(self.rows)})"
