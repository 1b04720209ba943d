"""Attribute-style access to Metadata API documents such as package.xml.

>>> package = parse("package.xml")
>>> package.types[1].name.text
'ApexClass'

Children are looked up in the document's namespace, so callers write
plain tag names.
"""

from typing import Iterator, Optional, Union

from lxml import etree

from . import METADATA_NAMESPACE, lxml_parse_file, lxml_parse_string
from .salesforce_encoding import pretty_serialize


def parse(source) -> "MetadataElement":
    """Parse a path (str or pathlib) or a binary file object."""
    if hasattr(source, "open"):
        source = str(source)
    return MetadataElement(lxml_parse_file(source).getroot())


def fromstring(source) -> "MetadataElement":
    return MetadataElement(lxml_parse_string(source).getroot())


def new_document(tag, namespace=METADATA_NAMESPACE) -> "MetadataElement":
    """An empty document whose root is ``<tag xmlns=namespace>``."""
    root = etree.Element(etree.QName(namespace, tag).text, nsmap={None: namespace})
    return MetadataElement(root)


class MetadataElement:
    """One element of a metadata document.

    ``element.child`` and ``element["child"]`` return the first child
    called ``child`` and raise ``AttributeError`` when there is none.
    ``element[i]`` returns the i-th sibling sharing the element's tag.
    """

    __slots__ = ["_element", "_parent", "_ns", "tag"]

    def __init__(self, element: etree._Element, parent: Optional[etree._Element] = None):
        qname = etree.QName(element)
        self._element = element
        self._parent = parent
        self._ns = qname.namespace
        self.tag = qname.localname

    def _qualify(self, tag) -> str:
        return etree.QName(self._ns, tag).text if self._ns else tag

    def _wrap(self, element: etree._Element) -> "MetadataElement":
        return MetadataElement(element, self._element)

    def _child(self, tag) -> "MetadataElement":
        element = self._element.find(self._qualify(tag))
        if element is None:
            raise AttributeError(f"{tag} not found in {self.tag}")
        return self._wrap(element)

    @property
    def text(self):
        # a <text> child wins over the element's own text once it has children
        if len(self._element):
            return self._child("text")
        return self._element.text

    @text.setter
    def text(self, value):
        self._element.text = value

    def __getattr__(self, tag):
        return self._child(tag)

    def __getitem__(self, item: Union[int, str]):
        if isinstance(item, str):
            return self._child(item)
        if isinstance(item, int):
            siblings = self._parent.findall(self._element.tag)
            return MetadataElement(siblings[item], self._parent)
        raise TypeError(f"Indices must be integers or strings, not {type(item)}")

    def append(self, tag: str, text: str = None) -> "MetadataElement":
        """Add a child after the last child with the same tag, or at the end."""
        element = etree.Element(self._qualify(tag))
        element.text = text
        existing = self._element.findall(self._qualify(tag))
        if existing:
            existing[-1].addnext(element)
        else:
            self._element.append(element)
        return self._wrap(element)

    def _matches(self, element: etree._Element, criteria: dict) -> bool:
        for name, value in criteria.items():
            child = element.find(self._qualify(name))
            if child is not None:
                actual = child.text
            elif name == "text":
                actual = element.text
            else:
                actual = None
            if actual != value:
                return False
        return True

    def _iter(self, tag, criteria: dict) -> Iterator["MetadataElement"]:
        for element in self._element.iterfind(self._qualify(tag)):
            if self._matches(element, criteria):
                yield self._wrap(element)

    def find(self, tag, **criteria) -> Optional["MetadataElement"]:
        """First direct child ``tag`` whose subelements equal ``criteria``."""
        return next(self._iter(tag, criteria), None)

    def findall(self, tag, **criteria):
        return list(self._iter(tag, criteria))

    def tostring(self, xml_declaration=False) -> str:
        return pretty_serialize(etree.ElementTree(self._element), xml_declaration=xml_declaration)

    def __repr__(self):
        if len(self._element):
            contents = f"<!-- {len(self._element)} children -->"
        else:
            contents = (self._element.text or "").strip()
        return f"<{self.tag}>{contents}</{self.tag}> element"
