"""
Tests for lenient XML extraction by local tag name and object serialization.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

import pytest

from runtime_helpers.config.settings import HelperSettings
from runtime_helpers.exceptions import InvalidArgumentError, XMLQueryError
from runtime_helpers.mapping.member_cache import MemberCache
from runtime_helpers.parsing.xml_query import XSI_NAMESPACE, XmlQuery


MULTISTATUS = """<?xml version="1.0" encoding="utf-8"?>
<d:multistatus xmlns:d="DAV:">
  <d:response>
    <d:href>/webdav/docs/</d:href>
    <d:propstat>
      <d:prop><d:displayname>docs</d:displayname></d:prop>
      <d:status>HTTP/1.1 200 OK</d:status>
    </d:propstat>
  </d:response>
  <d:response>
    <d:href>/other/file.txt</d:href>
    <d:propstat>
      <d:prop><d:displayname>file.txt</d:displayname></d:prop>
      <d:status>HTTP/1.1 404 Not Found</d:status>
    </d:propstat>
  </d:response>
</d:multistatus>"""


@pytest.fixture
def query():
    return XmlQuery(settings=HelperSettings(), member_cache=MemberCache())


class TestGetValues:
    """Test suite for get_values."""

    def test_values_in_document_order(self, query):
        assert query.get_values("<a><b>1</b><b>2</b></a>", "b") == ["1", "2"]

    def test_text_content_concatenates_descendants(self, query):
        xml = "<a><b>x<c>y</c><!-- note -->z</b></a>"
        assert query.get_values(xml, "b") == ["xyz"]

    def test_root_element_matches(self, query):
        assert query.get_values("<a>top</a>", "a") == ["top"]

    def test_nested_matches(self, query):
        assert query.get_values("<b>1<b>2</b></b>", "b") == ["12", "2"]

    def test_namespaces_are_ignored(self, query):
        assert query.get_values(MULTISTATUS, "href") == ["/webdav/docs/", "/other/file.txt"]

    def test_match_is_case_sensitive(self, query):
        assert query.get_values("<a><B>1</B></a>", "b") == []

    def test_callable_selector(self, query):
        xml = "<a><first>1</first><second>2</second><third>3</third></a>"
        assert query.get_values(xml, lambda name: name.endswith("d")) == ["2", "3"]

    def test_declared_latin1_encoding_is_ignored(self, query):
        xml = '<?xml version="1.0" encoding="ISO-8859-1"?><a><b>café</b></a>'
        assert query.get_values(xml, "b") == ["café"]

    def test_declared_utf16_encoding_is_ignored(self, query):
        xml = '<?xml version="1.0" encoding="utf-16"?><a><b>1</b></a>'
        assert query.get_values(xml, "b") == ["1"]

    def test_empty_element_gives_empty_string(self, query):
        assert query.get_values("<a><b/></a>", "b") == [""]

    @pytest.mark.parametrize("xml", ["", "   ", None, "not xml", "<a><b>1</a>"])
    def test_invalid_documents_give_empty_list(self, query, xml):
        assert query.get_values(xml, "b") == []

    @pytest.mark.parametrize("tag", ["", "  ", None])
    def test_blank_tag_gives_empty_list(self, query, tag):
        assert query.get_values("<a><b>1</b></a>", tag) == []

    def test_failing_selector_gives_empty_list(self, query):
        def explode(name):
            raise RuntimeError("boom")

        assert query.get_values("<a><b>1</b></a>", explode) == []

    def test_recover_setting_reads_malformed_documents(self):
        query = XmlQuery(settings=HelperSettings(xml_recover=True), member_cache=MemberCache())
        assert query.get_values("<a><b>1</b><b>2</a>", "b")[0] == "1"


class TestGetContents:
    """Test suite for get_contents."""

    def test_serialized_elements(self, query):
        xml = "<a><b x=\"1\">one</b>tail<b>two</b></a>"
        assert query.get_contents(xml, "b") == ['<b x="1">one</b>', "<b>two</b>"]

    def test_content_filter(self, query):
        fragments = query.get_contents(MULTISTATUS, "response", lambda text: "/webdav/" in text)
        assert len(fragments) == 1
        assert "/webdav/docs/" in fragments[0]
        assert "/other/" not in fragments[0]

    def test_fragments_are_standalone_documents(self, query):
        fragment = query.get_contents(MULTISTATUS, "response")[1]
        assert query.get_values(fragment, "status") == ["HTTP/1.1 404 Not Found"]

    def test_invalid_document_gives_empty_list(self, query):
        assert query.get_contents("<broken", "b") == []

    def test_failing_filter_gives_empty_list(self, query):
        assert query.get_contents("<a><b/></a>", "b", lambda text: 1 / 0) == []


class TestGetAttributes:
    """Test suite for get_attributes."""

    def test_attributes_in_declaration_order(self, query):
        result = query.get_attributes('<a><b x="1" y="2"/></a>', "b")
        assert result == [{"x": "1", "y": "2"}]
        assert list(result[0]) == ["x", "y"]

    def test_element_without_attributes(self, query):
        assert query.get_attributes("<a><b/><b k='v'/></a>", "b") == [{}, {"k": "v"}]

    def test_namespaced_attributes_use_local_names(self, query):
        xml = '<a xmlns:p="urn:p"><b p:id="7" plain="x"/></a>'
        assert query.get_attributes(xml, "b") == [{"id": "7", "plain": "x"}]

    def test_invalid_document_gives_empty_list(self, query):
        assert query.get_attributes("", "b") == []


class TestScopedLookups:
    """Test suite for the two-stage lookups."""

    def test_scoped_values(self, query):
        result = query.get_scoped_values(MULTISTATUS, "status", "response", lambda text: "/webdav/" in text)
        assert result == ["HTTP/1.1 200 OK"]

    def test_scoped_values_without_filter(self, query):
        result = query.get_scoped_values(MULTISTATUS, "displayname", "response")
        assert result == ["docs", "file.txt"]

    def test_scoped_attributes(self, query):
        xml = """<root>
            <group name="keep"><item id="1"/><item id="2"/></group>
            <group name="drop"><item id="3"/></group>
        </root>"""
        result = query.get_scoped_attributes(xml, "item", "group", lambda text: 'name="keep"' in text)
        assert result == [{"id": "1"}, {"id": "2"}]

    def test_scoped_contents(self, query):
        result = query.get_scoped_contents(MULTISTATUS, "status", "response", lambda text: "/other/" in text)
        assert len(result) == 1
        assert result[0].endswith(">HTTP/1.1 404 Not Found</d:status>")

    def test_scoped_contents_with_inner_filter(self, query):
        xml = """<root>
            <group name="keep"><item>red</item><item>blue</item></group>
            <group name="drop"><item>red</item></group>
        </root>"""
        result = query.get_scoped_contents(xml, "item", "group", lambda text: 'name="keep"' in text,
                                           lambda text: "red" in text)
        assert result == ["<item>red</item>"]

    def test_scoped_lookup_on_invalid_document(self, query):
        assert query.get_scoped_values("oops", "status", "response") == []
        assert query.get_scoped_attributes(None, "item", "group") == []
        assert query.get_scoped_contents("", "item", "group") == []


class TestParse:

    def test_parse_returns_root(self, query):
        assert query.parse("<a><b/></a>").tag == "a"

    def test_parse_raises_on_invalid_input(self, query):
        with pytest.raises(XMLQueryError):
            query.parse("<a>")
        with pytest.raises(XMLQueryError):
            query.parse("")

    def test_external_entities_are_not_resolved(self, query):
        xml = """<?xml version="1.0"?>
<!DOCTYPE a [<!ENTITY secret SYSTEM "file:///etc/passwd">]>
<a><b>&secret;</b></a>"""
        values = query.get_values(xml, "b")
        assert all("root:" not in value for value in values)


@dataclass
class Address:
    city: str = ""
    zip_code: Optional[str] = None


@dataclass
class Order:
    number: int = 0
    total: Decimal = Decimal("0")
    paid: bool = False
    address: Optional[Address] = None
    lines: List[str] = field(default_factory=list)
    note: Optional[str] = None


class Node:
    def __init__(self):
        self.child = None

    child: Optional["Node"]


class TestSerialize:
    """Test suite for serialize."""

    @pytest.fixture
    def order(self):
        return Order(7, Decimal("19.90"), True, Address("Oslo"), ["pen", "ink"])

    def test_properties_as_attributes(self, query, order):
        xml = query.serialize(order, write_indent=False)
        assert xml == ('<Order number="7" total="19.90" paid="true">'
                       '<address city="Oslo"/>'
                       '<lines><string>pen</string><string>ink</string></lines>'
                       '</Order>')

    def test_properties_as_elements(self, query, order):
        xml = query.serialize(order, properties_as_attributes=False, write_indent=False)
        assert xml.startswith("<Order><number>7</number><total>19.90</total><paid>true</paid>")
        assert "<address><city>Oslo</city></address>" in xml

    def test_serialized_output_can_be_queried(self, query, order):
        xml = query.serialize(order)
        assert query.get_attributes(xml, "Order") == [{"number": "7", "total": "19.90", "paid": "true"}]
        assert query.get_values(xml, "string") == ["pen", "ink"]

    def test_namespace_declarations(self, query, order):
        xml = query.serialize(order, include_namespace=True, write_indent=False)
        assert f'xmlns:xsi="{XSI_NAMESPACE}"' in xml

    def test_none_object_raises(self, query):
        with pytest.raises(InvalidArgumentError):
            query.serialize(None)

    def test_circular_reference_raises(self, query):
        node = Node()
        node.child = node
        with pytest.raises(XMLQueryError):
            query.serialize(node)
