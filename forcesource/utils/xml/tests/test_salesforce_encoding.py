from forcesource.utils.xml import lxml_parse_string
from forcesource.utils.xml.salesforce_encoding import (
    pretty_serialize,
    serialize_xml_for_salesforce,
)


class TestSalesforceEncoding:
    def test_xml_declaration(self):
        xml = lxml_parse_string("<foo/>")
        out = serialize_xml_for_salesforce(xml, xml_declaration=True)
        assert out.startswith("<?xml")

        out = serialize_xml_for_salesforce(xml, xml_declaration=False)
        assert not out.startswith("<?xml")

        out = serialize_xml_for_salesforce(xml)
        assert out.startswith("<?xml")

    def test_quotes_escaped_in_text(self):
        xml = lxml_parse_string("<foo>it's \"quoted\" &amp; more</foo>")
        out = serialize_xml_for_salesforce(xml, xml_declaration=False)
        assert out == "<foo>it&apos;s &quot;quoted&quot; &amp; more</foo>\n"

    def test_comments_survive(self):
        xml = lxml_parse_string("<foo><!-- note --><bar>1</bar></foo>")
        out = serialize_xml_for_salesforce(xml, xml_declaration=False)
        assert "<!-- note -->" in out

    def test_pretty_serialize(self):
        xml = lxml_parse_string(
            '<CustomObject xmlns="http://soap.sforce.com/2006/04/metadata"><label>Foo</label><fields><fullName>A__c</fullName></fields></CustomObject>'
        )
        out = pretty_serialize(xml)
        assert out == (
            '<?xml version="1.0" encoding="UTF-8"?>\n'
            '<CustomObject xmlns="http://soap.sforce.com/2006/04/metadata">\n'
            "    <label>Foo</label>\n"
            "    <fields>\n"
            "        <fullName>A__c</fullName>\n"
            "    </fields>\n"
            "</CustomObject>\n"
        )

    def test_declaration_in_unicode_input(self):
        xml = lxml_parse_string('<?xml version="1.0" encoding="UTF-8"?><foo>é</foo>')
        assert serialize_xml_for_salesforce(xml, xml_declaration=False) == "<foo>é</foo>\n"
