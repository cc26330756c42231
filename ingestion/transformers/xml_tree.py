"""
Parse SRA XML documents into a small tagged tree and derive structured JSON.

The parser's own element objects never leave this module: documents are
converted into XmlElement / XmlAttribute / XmlText nodes, and both the
identifier extraction and the JSON conversion are recursive visitors over
those nodes.

JSON conventions:
    - tag names are lower-cased, namespace prefixes kept as written
      (xsi:type stays xsi:type)
    - attributes become plain keys, xmlns declarations included
    - element text is the value itself for bare leaves, otherwise stored
      under TEXT_KEY
    - repeated child tags become lists; ALWAYS_ARRAY_PATHS are lists even
      with a single element so consumers see a stable schema
    - values are trimmed strings, the XML declaration is dropped
"""

import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Tuple, Union

from core.exceptions import ParseError

TEXT_KEY = "id"
DEFAULT_IDENTIFIER_KEY = "taxon_id"
ALWAYS_ARRAY_PATHS = (
    "sample_set",
    "sample_set.sample.identifiers.external_id",
)
XML_NAMESPACE = "http://www.w3.org/XML/1998/namespace"


# ============================================================================
# Tree
# ============================================================================

@dataclass(frozen=True)
class XmlText:
    value: str


@dataclass(frozen=True)
class XmlAttribute:
    name: str
    value: str


@dataclass(frozen=True)
class XmlElement:
    tag: str
    attributes: Tuple[XmlAttribute, ...] = ()
    children: Tuple[Union["XmlElement", XmlText], ...] = ()

    @property
    def elements(self) -> List["XmlElement"]:
        return [child for child in self.children if isinstance(child, XmlElement)]

    @property
    def text(self) -> str:
        return " ".join(child.value for child in self.children if isinstance(child, XmlText))


XmlNode = Union[XmlElement, XmlAttribute, XmlText]

# Qualified tag and attributes of one parsed element
Names = Tuple[str, Tuple[XmlAttribute, ...]]


def _qualified(name: str, prefixes: Dict[str, str]) -> str:
    # ElementTree spells namespaced names as {uri}local; put the prefix back
    if not name.startswith("{"):
        return name
    uri, local = name[1:].split("}", 1)
    prefix = prefixes.get(uri, "")
    return f"{prefix}:{local}" if prefix else local


def _resolve_names(events: Iterable[Tuple[str, Any]]) -> Tuple[ET.Element, Dict[int, Names]]:
    """
    Walk pull-parser events and resolve each element's names against the
    namespace declarations in scope where it starts.

    Returns the root element and a map from id(element) to its names.
    """
    root = None
    names: Dict[int, Names] = {}
    scopes = [{XML_NAMESPACE: "xml"}]
    declared: List[Tuple[str, str]] = []

    for event, item in events:
        if event == "start-ns":
            declared.append(item)
        elif event == "start":
            prefixes = dict(scopes[-1])
            prefixes.update((uri, prefix) for prefix, uri in declared)
            scopes.append(prefixes)

            attributes = [
                XmlAttribute(f"xmlns:{prefix}" if prefix else "xmlns", uri)
                for prefix, uri in declared
            ]
            attributes.extend(
                XmlAttribute(_qualified(name, prefixes), value.strip())
                for name, value in item.attrib.items()
            )
            names[id(item)] = (_qualified(item.tag, prefixes), tuple(attributes))
            declared = []
            if root is None:
                root = item
        else:
            scopes.pop()

    return root, names


def _from_etree(element: ET.Element, names: Dict[int, Names]) -> XmlElement:
    children: List[Union[XmlElement, XmlText]] = []
    if element.text and element.text.strip():
        children.append(XmlText(element.text.strip()))
    for child in element:
        children.append(_from_etree(child, names))
        if child.tail and child.tail.strip():
            children.append(XmlText(child.tail.strip()))

    tag, attributes = names[id(element)]
    return XmlElement(tag=tag, attributes=attributes, children=tuple(children))


def parse_xml_tree(text: Union[str, bytes]) -> XmlElement:
    """
    Parse an XML document into the tagged tree.

    Raises:
        ParseError: If the document is not well-formed
    """
    parser = ET.XMLPullParser(events=("start-ns", "start", "end"))
    try:
        parser.feed(text)
        parser.close()
        root, names = _resolve_names(parser.read_events())
    except ET.ParseError as e:
        raise ParseError(
            "Malformed XML document",
            context={"line": e.position[0], "column": e.position[1]},
            original_exception=e
        )
    return _from_etree(root, names)


# ============================================================================
# Visitors
# ============================================================================

def collect_identifiers(node: XmlNode, key: str = DEFAULT_IDENTIFIER_KEY) -> List[str]:
    """
    Collect every element or attribute named `key` (case-insensitive).

    Results are in document order with duplicates kept. A matching element
    contributes its text and is not descended into.
    """
    found: List[str] = []
    _collect(node, key.lower(), found)
    return found


def _collect(node: XmlNode, target: str, found: List[str]):
    if isinstance(node, XmlAttribute):
        if node.name.lower() == target:
            found.append(node.value)
    elif isinstance(node, XmlElement):
        if node.tag.lower() == target:
            found.append(node.text)
            return
        for attribute in node.attributes:
            _collect(attribute, target, found)
        for child in node.children:
            _collect(child, target, found)


def to_structured(
    root: XmlElement,
    always_array: Iterable[str] = ALWAYS_ARRAY_PATHS,
    text_key: str = TEXT_KEY
) -> Dict[str, Any]:
    """Convert the tree into a JSON-serializable dict keyed by the root tag"""
    array_paths = frozenset(path.lower() for path in always_array)
    tag = root.tag.lower()
    value = _element_value(root, tag, array_paths, text_key)
    return {tag: [value] if tag in array_paths else value}


def _element_value(element: XmlElement, path: str, array_paths: frozenset, text_key: str) -> Any:
    elements = element.elements
    text = element.text
    if not element.attributes and not elements:
        return text

    result: Dict[str, Any] = {}
    list_keys = set()
    for attribute in element.attributes:
        result[attribute.name] = attribute.value

    for child in elements:
        name = child.tag.lower()
        child_path = f"{path}.{name}"
        value = _element_value(child, child_path, array_paths, text_key)

        if name in list_keys:
            result[name].append(value)
        elif child_path in array_paths:
            result[name] = [result[name], value] if name in result else [value]
            list_keys.add(name)
        elif name in result:
            result[name] = [result[name], value]
            list_keys.add(name)
        else:
            result[name] = value

    if text:
        result[text_key] = text
    return result


# ============================================================================
# Worker entry point
# ============================================================================

def transform_xml(
    payload: Union[str, bytes],
    identifier_key: str = DEFAULT_IDENTIFIER_KEY,
    always_array: Iterable[str] = ALWAYS_ARRAY_PATHS
) -> Dict[str, Any]:
    """
    Parse one raw XML payload.

    Runs inside a worker process, so it takes and returns plain picklable data.

    Returns:
        {"extracted_ids": [...], "structured_payload": {...}}

    Raises:
        ParseError: If the payload is not well-formed XML
    """
    tree = parse_xml_tree(payload)
    return {
        "extracted_ids": collect_identifiers(tree, identifier_key),
        "structured_payload": to_structured(tree, always_array),
    }
