"""
Tests for the in-memory table model: columns, rows, primary keys and DB_NULL.
"""

import pickle

import pytest

from runtime_helpers.exceptions import InvalidArgumentError
from runtime_helpers.models import DB_NULL, DBNull, DataColumn, DataRowView, DataTable, RowState


class TestDBNull:

    def test_single_instance(self):
        assert DBNull() is DB_NULL

    def test_is_falsy_and_distinct_from_empty_values(self):
        assert not DB_NULL
        assert DB_NULL is not None
        assert DB_NULL != 0
        assert DB_NULL != ""

    def test_pickle_preserves_identity(self):
        assert pickle.loads(pickle.dumps(DB_NULL)) is DB_NULL


class TestDataTable:
    """Test suite for DataTable columns and rows."""

    @pytest.fixture
    def table(self):
        table = DataTable("people")
        table.columns.add(DataColumn("id", int))
        table.columns.add(DataColumn("name", str))
        return table

    def test_column_ordinals_follow_insertion_order(self, table):
        assert table.column_names() == ["id", "name"]
        assert table.columns["name"].ordinal == 1
        assert DataColumn("loose").ordinal == -1

    def test_duplicate_column_name_raises(self, table):
        with pytest.raises(InvalidArgumentError):
            table.columns.add(DataColumn("id", int))

    def test_column_names_are_case_sensitive(self, table):
        table.columns.add(DataColumn("Name", str))
        assert table.column_names() == ["id", "name", "Name"]

    def test_blank_column_name_raises(self):
        with pytest.raises(InvalidArgumentError):
            DataColumn("  ")

    def test_new_row_is_detached_and_null(self, table):
        row = table.new_row()
        assert row.row_state is RowState.DETACHED
        assert row.item_array == (DB_NULL, DB_NULL)
        assert len(table.rows) == 0

    def test_none_is_stored_as_db_null(self, table):
        row = table.new_row()
        row["name"] = None
        assert row["name"] is DB_NULL
        assert row.is_null("name")

    def test_row_indexing_by_name_ordinal_and_column(self, table):
        row = table.new_row()
        row["id"] = 7
        row[1] = "Ada"
        assert row[table.columns["id"]] == 7
        assert row["name"] == "Ada"
        assert row.to_dict() == {"id": 7, "name": "Ada"}

    def test_unknown_column_raises_key_error(self, table):
        row = table.new_row()
        with pytest.raises(KeyError):
            row["missing"]

    def test_adding_column_extends_existing_rows(self, table):
        row = table.new_row()
        row["id"] = 1
        table.rows.add(row)

        table.columns.add(DataColumn("email", str))

        assert row.item_array == (1, DB_NULL, DB_NULL)

    def test_row_added_twice_raises(self, table):
        row = table.rows.add(table.new_row())
        assert row.row_state is RowState.ADDED
        with pytest.raises(InvalidArgumentError):
            table.rows.add(row)

    def test_row_of_other_table_raises(self, table):
        other = DataTable("other")
        with pytest.raises(InvalidArgumentError):
            table.rows.add(other.new_row())

    def test_row_view_wraps_row(self, table):
        row = table.new_row()
        row["id"] = 3
        view = DataRowView(row)
        assert view.row is row
        assert view["id"] == 3


class TestPrimaryKey:

    @pytest.fixture
    def table(self):
        table = DataTable("keys")
        table.columns.add(DataColumn("id", int))
        table.columns.add(DataColumn("value", str))
        return table

    def test_key_columns_become_non_nullable(self, table):
        table.primary_key = [table.columns["id"]]
        assert table.primary_key == (table.columns["id"],)
        assert table.columns["id"].allow_null is False

        with pytest.raises(InvalidArgumentError):
            table.rows.add(table.new_row())

    def test_duplicate_key_raises(self, table):
        table.primary_key = [table.columns["id"]]
        first = table.new_row()
        first["id"] = 1
        table.rows.add(first)

        second = table.new_row()
        second["id"] = 1
        with pytest.raises(InvalidArgumentError):
            table.rows.add(second)
        assert len(table.rows) == 1

    def test_key_over_duplicate_rows_is_rejected_and_rolled_back(self, table):
        for _ in range(2):
            row = table.new_row()
            row["id"] = 5
            table.rows.add(row)

        with pytest.raises(InvalidArgumentError):
            table.primary_key = [table.columns["id"]]
        assert table.primary_key == ()

    def test_key_over_null_cells_is_rejected(self, table):
        row = table.new_row()
        row["value"] = "no id"
        table.rows.add(row)

        with pytest.raises(InvalidArgumentError):
            table.primary_key = [table.columns["id"]]
        assert table.primary_key == ()
        assert table.columns["id"].allow_null is True

    def test_key_column_of_other_table_raises(self, table):
        other = DataTable("other")
        column = other.columns.add(DataColumn("id", int))
        with pytest.raises(InvalidArgumentError):
            table.primary_key = [column]
