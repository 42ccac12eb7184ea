"""XML extraction components."""

from .xml_query import XmlQuery

__all__ = ['XmlQuery']
