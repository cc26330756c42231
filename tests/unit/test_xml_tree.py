"""
Unit tests for XML tree parsing, identifier extraction and JSON conversion
"""

import json

import pytest

from conftest import sample_xml
from core.exceptions import ParseError
from ingestion.transformers.xml_tree import (
    XmlAttribute,
    XmlElement,
    XmlText,
    collect_identifiers,
    parse_xml_tree,
    to_structured,
    transform_xml,
)


class TestParseXmlTree:
    """Test conversion into tagged nodes"""

    def test_builds_tagged_nodes(self):
        tree = parse_xml_tree('<SAMPLE accession="S1"><TITLE> gut </TITLE></SAMPLE>')

        assert tree == XmlElement(
            tag="SAMPLE",
            attributes=(XmlAttribute("accession", "S1"),),
            children=(XmlElement(tag="TITLE", children=(XmlText("gut"),)),),
        )

    def test_keeps_namespace_prefixes(self):
        tree = parse_xml_tree(
            '<ns:ROOT xmlns:ns="urn:x" xmlns:xsi="urn:y" xsi:type="t"><ns:CHILD/></ns:ROOT>'
        )

        assert tree.tag == "ns:ROOT"
        assert tree.attributes == (
            XmlAttribute("xmlns:ns", "urn:x"),
            XmlAttribute("xmlns:xsi", "urn:y"),
            XmlAttribute("xsi:type", "t"),
        )
        assert tree.elements[0].tag == "ns:CHILD"

    def test_default_namespace_and_nested_scopes(self):
        tree = parse_xml_tree(
            '<ROOT xmlns="urn:d" xml:lang="en"><A xmlns:p="urn:p"><p:B/></A><C p:x="1" xmlns:p="urn:q"/></ROOT>'
        )

        assert tree.tag == "ROOT"
        assert tree.attributes == (XmlAttribute("xmlns", "urn:d"), XmlAttribute("xml:lang", "en"))
        assert tree.elements[0].elements[0].tag == "p:B"
        assert tree.elements[1].attributes[-1] == XmlAttribute("p:x", "1")

    def test_accepts_bytes_with_declaration(self):
        tree = parse_xml_tree(sample_xml("S1").encode("utf-8"))

        assert tree.tag == "SAMPLE_SET"

    @pytest.mark.parametrize("payload", ["<SAMPLE>", "", "not xml", "<A></B>"])
    def test_malformed_documents(self, payload):
        with pytest.raises(ParseError):
            parse_xml_tree(payload)


class TestCollectIdentifiers:
    """Test the identifier visitor"""

    def test_elements_in_document_order(self):
        tree = parse_xml_tree(sample_xml("S1", ["9606", "10090", "9606"]))

        assert collect_identifiers(tree) == ["9606", "10090", "9606"]

    def test_attributes_and_case_insensitive_match(self):
        tree = parse_xml_tree('<ROOT Taxon_Id="1"><X><taxon_id>2</taxon_id></X></ROOT>')

        assert collect_identifiers(tree, "TAXON_ID") == ["1", "2"]

    def test_no_match(self):
        tree = parse_xml_tree("<ROOT><TITLE>none</TITLE></ROOT>")

        assert collect_identifiers(tree) == []

    def test_custom_key(self):
        tree = parse_xml_tree(sample_xml("S1"))

        assert collect_identifiers(tree, "primary_id") == ["S1"]


class TestToStructured:
    """Test the JSON visitor"""

    def test_sample_document_shape(self):
        structured = to_structured(parse_xml_tree(sample_xml("S1", ["9606"])))

        assert structured == {
            "sample_set": [{
                "sample": {
                    "alias": "S1_alias",
                    "accession": "S1",
                    "identifiers": {
                        "primary_id": "S1",
                        "external_id": [{"namespace": "BioSample", "id": "SAMN00000001"}],
                    },
                    "title": "Human gut metagenome",
                    "sample_name": {"taxon_id": "9606", "scientific_name": "Homo sapiens"},
                }
            }]
        }

    def test_repeated_children_become_lists(self):
        structured = to_structured(parse_xml_tree("<ROOT><A>1</A><B>x</B><A>2</A><A>3</A></ROOT>"))

        assert structured == {"root": {"a": ["1", "2", "3"], "b": "x"}}

    def test_text_with_attributes_uses_text_key(self):
        structured = to_structured(parse_xml_tree('<ROOT><TAG k="v">text</TAG></ROOT>'))

        assert structured == {"root": {"tag": {"k": "v", "id": "text"}}}

    def test_empty_leaf_is_empty_string(self):
        assert to_structured(parse_xml_tree("<ROOT><EMPTY/></ROOT>")) == {"root": {"empty": ""}}

    def test_schema_location_attribute_kept(self):
        structured = to_structured(parse_xml_tree(
            '<SAMPLE_SET xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" '
            'xsi:noNamespaceSchemaLocation="SRA.sample.xsd"><SAMPLE accession="S1"/></SAMPLE_SET>'
        ))

        assert structured == {
            "sample_set": [{
                "xmlns:xsi": "http://www.w3.org/2001/XMLSchema-instance",
                "xsi:noNamespaceSchemaLocation": "SRA.sample.xsd",
                "sample": {"accession": "S1"},
            }]
        }


class TestTransformXml:
    """Test the worker entry point"""

    def test_result_is_json_serializable(self):
        result = transform_xml(sample_xml("S1", ["9606"]))

        assert result["extracted_ids"] == ["9606"]
        assert json.loads(json.dumps(result)) == result

    def test_parse_error_propagates(self):
        with pytest.raises(ParseError):
            transform_xml("<SAMPLE_SET><SAMPLE></SAMPLE_SET>")
