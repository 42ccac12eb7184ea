"""
Runtime Helpers

Stateless helpers for moving data between in-memory tables and typed objects,
extracting values from loosely structured XML and inspecting expression trees
used as property selectors.
"""

__version__ = "1.0.0"
__author__ = "Runtime Helpers Team"

# Import core models and interfaces for easy access
from .models import (
    DB_NULL,
    DBNull,
    DataColumn,
    DataRow,
    DataRowView,
    DataTable,
    RowState
)

from .interfaces import (
    TableMarshallerInterface,
    XmlQueryInterface,
    ExpressionInspectorInterface
)

from .exceptions import (
    RuntimeHelpersError,
    InvalidArgumentError,
    ConversionError,
    XMLQueryError,
    ExpressionError,
    ConfigurationError
)

from .mapping import TableMarshaller, MemberCache, TypeConverter, column
from .parsing import XmlQuery
from .expressions import ExpressionInspector, MemberInfo, MemberKind

__all__ = [
    # Core models
    "DB_NULL",
    "DBNull",
    "DataColumn",
    "DataRow",
    "DataRowView",
    "DataTable",
    "RowState",

    # Helpers
    "TableMarshaller",
    "MemberCache",
    "TypeConverter",
    "column",
    "XmlQuery",
    "ExpressionInspector",
    "MemberInfo",
    "MemberKind",

    # Interfaces
    "TableMarshallerInterface",
    "XmlQueryInterface",
    "ExpressionInspectorInterface",

    # Exceptions
    "RuntimeHelpersError",
    "InvalidArgumentError",
    "ConversionError",
    "XMLQueryError",
    "ExpressionError",
    "ConfigurationError"
]
