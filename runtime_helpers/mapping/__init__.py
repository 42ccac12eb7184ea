"""
Mapping module for the runtime helpers.

This module provides the table marshaller together with the member descriptor
cache and type conversion registry it is built on.
"""

from .member_cache import MemberCache, MemberDescriptor, TypeDescriptor, column, get_member_cache, reset_member_cache
from .type_converter import TypeConverter, get_type_converter, reset_type_converter
from .table_marshaller import TableMarshaller

__all__ = [
    'MemberCache',
    'MemberDescriptor',
    'TypeDescriptor',
    'column',
    'get_member_cache',
    'reset_member_cache',
    'TypeConverter',
    'get_type_converter',
    'reset_type_converter',
    'TableMarshaller'
]
