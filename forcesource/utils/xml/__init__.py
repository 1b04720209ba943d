import typing as T
from pathlib import Path

from lxml import etree

from forcesource.core.exceptions import XmlParseError

UTF8 = "UTF-8"
METADATA_NAMESPACE = "http://soap.sforce.com/2006/04/metadata"


def _safe_parser():
    return etree.XMLParser(
        resolve_entities=False,
        load_dtd=False,
        no_network=True,
        remove_blank_text=True,
    )


def _parse_error(err: etree.XMLSyntaxError, path=None) -> XmlParseError:
    diagnostics = [(entry.line, entry.message) for entry in err.error_log]
    if not diagnostics:
        diagnostics = [(err.lineno, err.msg)]
    return XmlParseError(diagnostics=diagnostics, path=path)


def lxml_parse_file(path: T.Union[str, Path, T.IO]) -> etree._ElementTree:
    """Parse a file from filename, Path or stream using lxml.

    Syntax errors are reported as XmlParseError with one diagnostic per line."""
    if isinstance(path, Path):
        path = str(path)
    try:
        return etree.parse(path, parser=_safe_parser())
    except etree.XMLSyntaxError as err:
        raise _parse_error(err, path if isinstance(path, str) else None) from err


def lxml_parse_string(string: T.Union[str, bytes], path=None) -> etree._ElementTree:
    """Parse a string using lxml.

    Strings carrying an encoding declaration are encoded first because
    lxml refuses unicode input with a declaration."""
    if isinstance(string, str):
        string = string.encode("utf-8")
    try:
        return etree.ElementTree(etree.fromstring(string, parser=_safe_parser()))
    except etree.XMLSyntaxError as err:
        raise _parse_error(err, path) from err


def local_name(element) -> str:
    return etree.QName(element).localname
