from xml.sax.saxutils import escape

from lxml import etree

xml_encoding = '<?xml version="1.0" encoding="UTF-8"?>\n'
_supported_events = ("start", "end", "start-ns", "end-ns", "comment")
_text_entities = {"'": "&apos;", '"': "&quot;"}
_attr_entities = {'"': "&quot;"}


def serialize_xml_for_salesforce(xdoc, xml_declaration=True):
    """Render a tree the way the Metadata API writes files.

    Quotes are escaped in text, simple elements stay on one line and
    the document ends with a newline."""
    r = xml_encoding if xml_declaration else ""

    new_namespace_declarations = {}
    all_namespaces = {}

    for action, elem in etree.iterwalk(xdoc, events=_supported_events):
        if action == "start-ns":
            prefix, ns = elem
            new_namespace_declarations[prefix] = ns
            all_namespaces[ns] = prefix
        elif action == "start":
            tag = _render_name(elem.tag, all_namespaces)
            text = (
                escape(elem.text, _text_entities) if elem.text is not None else ""
            )
            ns = (
                _render_ns_declarations(new_namespace_declarations)
                if new_namespace_declarations
                else ""
            )
            new_namespace_declarations = {}

            attrs = "".join(
                f' {_render_name(k, all_namespaces)}="{escape(v, _attr_entities)}"'
                for k, v in elem.attrib.items()
            )
            if not _has_content(elem):
                r += f"<{tag}{ns}{attrs}/>"
            else:
                r += f"<{tag}{ns}{attrs}>{text}"
        elif action == "end":
            if _has_content(elem):
                r += f"</{_render_name(elem.tag, all_namespaces)}>"
            r += elem.tail if elem.tail else "\n"
        elif action == "comment":
            r += str(elem) + (elem.tail if elem.tail else "")
    return r


def pretty_serialize(xdoc, xml_declaration=True):
    """Re-indent with four spaces and serialize."""
    etree.indent(xdoc, space="    ")
    return serialize_xml_for_salesforce(xdoc, xml_declaration=xml_declaration)


def _has_content(element):
    return element.text or len(element)


def _render_ns_declarations(declarations):
    def format_ns(prefix, url):
        return (f":{prefix}" if prefix else "") + f'="{url}"'

    return "".join(
        f" xmlns{format_ns(prefix, url)}" for prefix, url in declarations.items()
    )


def _render_name(name, namespaces):
    if name[0] != "{":
        return name
    url, name = name[1:].split("}")
    prefix = namespaces.get(url)

    if prefix:
        return f"{prefix}:{name}"
    else:
        return name
