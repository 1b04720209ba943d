import pytest

from forcesource.core.exceptions import XmlParseError
from forcesource.decomposition.document import MetadataDocument

NS = "http://soap.sforce.com/2006/04/metadata"
COMPACT = f'<?xml version="1.0" encoding="UTF-8"?><CustomObject xmlns="{NS}"><label>Foo</label></CustomObject>'
PRETTY = f"""<?xml version="1.0" encoding="UTF-8"?>
<CustomObject xmlns="{NS}">
    <label>Foo</label>
</CustomObject>
"""


class TestMetadataDocument:
    def test_new_document(self):
        doc = MetadataDocument("CustomObject", [("xmlns", NS)])
        assert doc.metadata_name == "CustomObject"
        assert doc.xml_attributes == [("xmlns", NS)]
        assert doc.child_elements() == []

    def test_representation_is_canonical(self):
        doc = MetadataDocument.from_representation(COMPACT)
        assert doc.get_representation() == PRETTY
        assert doc.is_equivalent_to(PRETTY)
        assert not doc.is_equivalent_to(PRETTY.replace("Foo", "Bar"))

    def test_is_equivalent_to__parse_error_has_path(self):
        doc = MetadataDocument.from_representation(COMPACT)
        with pytest.raises(XmlParseError) as e:
            doc.is_equivalent_to("<CustomObject>", path="objects/Foo.object-meta.xml")
        assert e.value.path == "objects/Foo.object-meta.xml"

    def test_append_element_and_child_text(self):
        doc = MetadataDocument("CustomObject", [("xmlns", NS)])
        label = doc.append_element("label")
        label.text = "Foo"
        assert doc.get_child_text("label") == "Foo"
        assert doc.get_child_text("description") is None

    def test_write_and_read(self, tmp_path):
        path = tmp_path / "Foo.object-meta.xml"
        MetadataDocument.from_representation(COMPACT).write(str(path))
        assert path.read_text() == PRETTY
        assert MetadataDocument.from_file(str(path)).get_child_text("label") == "Foo"

    def test_prefixed_attributes(self):
        doc = MetadataDocument.from_representation(
            f'<Flow xmlns="{NS}" xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" xsi:type="x"/>'
        )
        assert ("xsi:type", "x") in doc.xml_attributes
        assert ("xmlns:xsi", "http://www.w3.org/2001/XMLSchema-instance") in doc.xml_attributes
