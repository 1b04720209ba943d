import copy
from typing import List, NamedTuple, Optional, Tuple
from xml.sax.saxutils import quoteattr

from lxml import etree

from forcesource.core.exceptions import XmlParseError
from forcesource.utils.xml import local_name, lxml_parse_file, lxml_parse_string
from forcesource.utils.xml.salesforce_encoding import (
    pretty_serialize,
    serialize_xml_for_salesforce,
)

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'


class MetadataDocumentAnnotation(NamedTuple):
    name: Optional[str]


class MetadataDocument:
    """One XML metadata document held as an lxml tree.

    Documents are created either empty, as ``<metadata_name attrs/>``, or
    from an existing representation. ``get_representation`` always renders
    the canonical pretty form so two documents that differ only in
    whitespace produce identical output.
    """

    def __init__(self, metadata_name=None, xml_attributes=None):
        self.tree = None
        self.annotation: Optional[MetadataDocumentAnnotation] = None
        if metadata_name is not None:
            self.set_representation(_outer_xml(metadata_name, xml_attributes))

    @classmethod
    def from_representation(cls, representation, path=None):
        doc = cls()
        doc.set_representation(representation, path=path)
        return doc

    @classmethod
    def from_file(cls, path):
        doc = cls()
        doc.tree = lxml_parse_file(path)
        return doc

    @property
    def root(self):
        return self.tree.getroot()

    @property
    def metadata_name(self):
        return local_name(self.root)

    def set_representation(self, representation, path=None):
        self.tree = lxml_parse_string(representation, path=path)

    def get_representation(self) -> str:
        return pretty_serialize(self.tree)

    def get_unmodified_representation(self) -> str:
        return serialize_xml_for_salesforce(self.tree)

    def is_equivalent(self, other: "MetadataDocument") -> bool:
        return self.get_representation() == other.get_representation()

    def is_equivalent_to(self, representation, path=None) -> bool:
        """Parse ``representation`` and compare canonical forms."""
        try:
            other = MetadataDocument.from_representation(representation)
        except XmlParseError as err:
            raise err.with_path(path) if path else err
        return self.is_equivalent(other)

    @property
    def xml_attributes(self) -> List[Tuple[str, str]]:
        """Namespace declarations and attributes of the root element."""
        if self.tree is None:
            return []
        root = self.root
        attributes = []
        prefixes = {}
        for prefix, uri in root.nsmap.items():
            prefixes[uri] = prefix
            attributes.append(("xmlns" if prefix is None else f"xmlns:{prefix}", uri))
        for key, value in root.attrib.items():
            qname = etree.QName(key)
            prefix = prefixes.get(qname.namespace) if qname.namespace else None
            attributes.append(
                (f"{prefix}:{qname.localname}" if prefix else qname.localname, value)
            )
        return attributes

    def child_elements(self):
        return [child for child in self.root if isinstance(child.tag, str)]

    def append_child(self, element, parent=None):
        node = copy.deepcopy(element)
        node.tail = None
        (self.root if parent is None else parent).append(node)
        return node

    def append_element(self, name):
        """Add an empty child element in the root's namespace."""
        namespace = etree.QName(self.root).namespace
        tag = etree.QName(namespace, name).text if namespace else name
        return etree.SubElement(self.root, tag)

    def get_child_text(self, name) -> Optional[str]:
        for child in self.child_elements():
            if local_name(child) == name:
                return child.text
        return None

    def write(self, path):
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.get_representation())

    def __repr__(self):
        name = self.metadata_name if self.tree is not None else None
        return f"<MetadataDocument {name} {self.annotation}>"


def _outer_xml(metadata_name, xml_attributes):
    attributes = "".join(
        f" {name}={quoteattr(value)}" for name, value in (xml_attributes or []) if name and value
    )
    return f"{XML_DECLARATION}<{metadata_name}{attributes}/>"
