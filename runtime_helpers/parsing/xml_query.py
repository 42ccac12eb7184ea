"""
Lenient XML extraction by local tag name.

This module pulls text values, serialized fragments and attribute maps out of
XML documents using lxml. Extraction never raises: blank input, a missing tag
selector or a document that fails to parse all yield an empty list, so callers
can query loosely structured or untrusted payloads without guarding every call.

Two-stage lookups first cut the document into fragments (optionally filtered on
their serialized text) and then query inside each fragment, which scopes a
lookup to a region of the document:

    query.get_scoped_values(xml, "status", "response", lambda text: "/webdav/" in text)
"""

import logging
from typing import Any, Callable, Dict, Iterator, List, Optional

from lxml import etree

from ..config.settings import HelperSettings, get_settings
from ..exceptions import InvalidArgumentError, XMLQueryError
from ..interfaces import ContentFilter, TagSelector, XmlQueryInterface
from ..mapping.member_cache import MemberCache, get_member_cache, is_basic_type, is_collection_type
from ..mapping.type_converter import TypeConverter, get_type_converter
from ..utils import StringUtils


XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"
XSD_NAMESPACE = "http://www.w3.org/2001/XMLSchema"


class XmlQuery(XmlQueryInterface):
    """
    Extracts values, fragments and attributes from XML text by element local name.

    Matching:
    - a string selector matches the element local name exactly (case-sensitive,
      namespace ignored)
    - a callable selector receives the local name and returns True to match
    - every element of the document is considered, root included, in document order
    """

    def __init__(self, settings: Optional[HelperSettings] = None, member_cache: Optional[MemberCache] = None,
                 converter: Optional[TypeConverter] = None, logger=None):
        self.settings = settings or get_settings()
        self.member_cache = member_cache or get_member_cache()
        self.converter = converter or get_type_converter()
        self.logger = logger or logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse(self, xml_content: str):
        """
        Parse XML text into an lxml element tree root.

        Raises:
            XMLQueryError: If the content is empty or cannot be parsed
        """
        if not StringUtils.safe_string_check(xml_content):
            raise XMLQueryError("XML content is empty or None")

        parser = etree.XMLParser(
            recover=self.settings.xml_recover,
            huge_tree=self.settings.xml_huge_tree,
            resolve_entities=False,  # Security: don't resolve external entities
            no_network=True,  # Security: disable network access
            encoding="utf-8",  # Text is already decoded: override any declared encoding
        )
        try:
            # Encode first so documents carrying an encoding declaration are accepted
            root = etree.fromstring(xml_content.encode("utf-8"), parser)
        except (etree.XMLSyntaxError, ValueError) as e:
            raise XMLQueryError(f"XML syntax error: {e}", xml_content) from e
        if root is None:
            raise XMLQueryError("XML content has no root element", xml_content)
        return root

    def _matching_elements(self, xml_content: str, tag: TagSelector) -> Iterator[Any]:
        matches = self._selector(tag)
        root = self.parse(xml_content)
        for element in root.iter(etree.Element):
            if matches(etree.QName(element).localname):
                yield element

    @staticmethod
    def _selector(tag: TagSelector) -> Callable[[str], bool]:
        if callable(tag):
            return tag
        return lambda local_name: local_name == tag

    def _is_valid_request(self, xml_content: str, tag: TagSelector) -> bool:
        if not StringUtils.safe_string_check(xml_content):
            return False
        if tag is None:
            return False
        return callable(tag) or StringUtils.safe_string_check(tag)

    def _collect(self, operation: str, xml_content: str, tag: TagSelector,
                 project: Callable[[Any], Any]) -> List[Any]:
        if not self._is_valid_request(xml_content, tag):
            self.logger.debug(f"{operation}: empty document or tag selector, returning no results")
            return []
        try:
            results = [project(element) for element in self._matching_elements(xml_content, tag)]
        except XMLQueryError as e:
            self.logger.debug(f"{operation}: {e} ({StringUtils.truncate(xml_content)})")
            return []
        except Exception as e:
            self.logger.warning(f"{operation}: extraction failed for tag {tag!r}: {e}")
            return []
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug(f"{operation}: {len(results)} match(es) for tag {tag!r}")
        return results

    # ------------------------------------------------------------------
    # Single-stage extraction
    # ------------------------------------------------------------------

    def get_values(self, xml_content: str, tag: TagSelector) -> List[str]:
        """
        Get the text content of every matching element.

        The text content is the concatenation of all descendant text nodes
        (comments and processing instructions excluded).
        """
        return self._collect("get_values", xml_content, tag, self._text_of)

    def get_contents(self, xml_content: str, tag: TagSelector,
                     content_filter: Optional[ContentFilter] = None) -> List[str]:
        """
        Get the serialized XML (opening through closing tag) of every matching element.

        Args:
            xml_content: XML document text
            tag: Local name or local-name predicate
            content_filter: Optional predicate over the serialized element text

        Returns:
            Serialized elements in document order
        """
        fragments = self._collect("get_contents", xml_content, tag, self._serialize_element)
        if content_filter is None:
            return fragments
        try:
            return [fragment for fragment in fragments if content_filter(fragment)]
        except Exception as e:
            self.logger.warning(f"get_contents: content filter failed for tag {tag!r}: {e}")
            return []

    def get_attributes(self, xml_content: str, tag: TagSelector) -> List[Dict[str, str]]:
        """
        Get the attributes of every matching element.

        Returns:
            One dict per element mapping attribute local name to value in
            declaration order; elements without attributes give an empty dict
        """
        return self._collect("get_attributes", xml_content, tag, self._attributes_of)

    # ------------------------------------------------------------------
    # Two-stage extraction
    # ------------------------------------------------------------------

    def _scoped(self, xml_content: str, content_tag: TagSelector, content_filter: Optional[ContentFilter],
                extract: Callable[[str], List[Any]]) -> List[Any]:
        results: List[Any] = []
        for fragment in self.get_contents(xml_content, content_tag, content_filter):
            results.extend(extract(fragment))
        return results

    def get_scoped_values(self, xml_content: str, value_tag: TagSelector, content_tag: TagSelector,
                          content_filter: Optional[ContentFilter] = None) -> List[str]:
        """Get values of value_tag elements found inside filtered content_tag fragments."""
        return self._scoped(xml_content, content_tag, content_filter,
                            lambda fragment: self.get_values(fragment, value_tag))

    def get_scoped_contents(self, xml_content: str, contents_tag: TagSelector, content_tag: TagSelector,
                            content_filter: Optional[ContentFilter] = None,
                            inner_filter: Optional[ContentFilter] = None) -> List[str]:
        """
        Get serialized contents_tag elements found inside filtered content_tag fragments.

        Args:
            xml_content: XML document text
            contents_tag: Local name or predicate of the elements to return
            content_tag: Local name or predicate of the scoping elements
            content_filter: Optional predicate over each serialized scoping element
            inner_filter: Optional predicate over each returned element
        """
        return self._scoped(xml_content, content_tag, content_filter,
                            lambda fragment: self.get_contents(fragment, contents_tag, inner_filter))

    def get_scoped_attributes(self, xml_content: str, attributes_tag: TagSelector, content_tag: TagSelector,
                              content_filter: Optional[ContentFilter] = None) -> List[Dict[str, str]]:
        """Get attributes of attributes_tag elements found inside filtered content_tag fragments."""
        return self._scoped(xml_content, content_tag, content_filter,
                            lambda fragment: self.get_attributes(fragment, attributes_tag))

    # ------------------------------------------------------------------
    # Element projections
    # ------------------------------------------------------------------

    @staticmethod
    def _text_of(element) -> str:
        return str(element.xpath("string()"))

    @staticmethod
    def _serialize_element(element) -> str:
        return etree.tostring(element, encoding="unicode", with_tail=False)

    @staticmethod
    def _attributes_of(element) -> Dict[str, str]:
        return {etree.QName(name).localname: value for name, value in element.attrib.items()}

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def serialize(self, obj: Any, include_namespace: bool = False, properties_as_attributes: bool = True,
                  write_indent: Optional[bool] = None) -> str:
        """
        Serialize an object's public properties to XML.

        The root element is named after the object's type. Scalar properties are
        written as attributes (or as child elements when properties_as_attributes
        is False), nested objects as child elements and collections as a wrapper
        element holding one child per item. None values are omitted.

        Args:
            obj: Object to serialize
            include_namespace: Declare the xsi/xsd namespaces on the root element
            properties_as_attributes: Write scalar properties as attributes
            write_indent: Pretty print; defaults to the xml_indent setting

        Returns:
            XML text

        Raises:
            InvalidArgumentError: If obj is None
            XMLQueryError: If a value cannot be written as XML
        """
        if obj is None:
            raise InvalidArgumentError("Object to serialize is required", "obj")
        if write_indent is None:
            write_indent = self.settings.xml_indent

        nsmap = {"xsi": XSI_NAMESPACE, "xsd": XSD_NAMESPACE} if include_namespace else None
        root = etree.Element(type(obj).__name__, nsmap=nsmap)
        try:
            self._write_object(root, obj, properties_as_attributes, set())
        except ValueError as e:
            raise XMLQueryError(f"Cannot serialize {type(obj).__name__}: {e}") from e
        return etree.tostring(root, encoding="unicode", pretty_print=write_indent).rstrip("\n")

    def _write_object(self, element, obj: Any, properties_as_attributes: bool, visiting: set) -> None:
        if id(obj) in visiting:
            raise XMLQueryError(f"Circular reference detected while serializing {type(obj).__name__}")
        visiting.add(id(obj))

        if is_basic_type(type(obj)):
            element.text = self._scalar_text(obj)
            visiting.discard(id(obj))
            return

        for prop in self.member_cache.describe(type(obj)):
            if not prop.can_read:
                continue
            value = prop.get_value(obj)
            if value is None:
                continue
            if is_basic_type(type(value)):
                if properties_as_attributes:
                    element.set(prop.name, self._scalar_text(value))
                else:
                    etree.SubElement(element, prop.name).text = self._scalar_text(value)
            elif is_collection_type(type(value)):
                container = etree.SubElement(element, prop.name)
                items = value.values() if isinstance(value, dict) else value
                for item in items:
                    if item is None:
                        continue
                    child = etree.SubElement(container, self._item_tag(item))
                    self._write_object(child, item, properties_as_attributes, visiting)
            else:
                child = etree.SubElement(element, prop.name)
                self._write_object(child, value, properties_as_attributes, visiting)

        visiting.discard(id(obj))

    def _scalar_text(self, value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        return self.converter.change_type(value, str)

    @staticmethod
    def _item_tag(item: Any) -> str:
        type_name = type(item).__name__
        return {"str": "string", "int": "int", "float": "double", "bool": "boolean"}.get(type_name, type_name)
