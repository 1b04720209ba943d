import os

from pytest import fixture

OBJECT_XML = """<?xml version="1.0" encoding="UTF-8"?>
<CustomObject xmlns="http://soap.sforce.com/2006/04/metadata">
    <label>{label}</label>
    <pluralLabel>{label}s</pluralLabel>
</CustomObject>
"""

FIELD_XML = """<?xml version="1.0" encoding="UTF-8"?>
<CustomField xmlns="http://soap.sforce.com/2006/04/metadata">
    <fullName>{name}</fullName>
    <label>{name}</label>
    <type>Number</type>
</CustomField>
"""

CLASS_META_XML = """<?xml version="1.0" encoding="UTF-8"?>
<ApexClass xmlns="http://soap.sforce.com/2006/04/metadata">
    <apiVersion>50.0</apiVersion>
    <status>Active</status>
</ApexClass>
"""


@fixture
def write_class(make_file):
    def write_class(directory, name):
        make_file(os.path.join(directory, "classes", f"{name}.cls-meta.xml"), CLASS_META_XML)
        return make_file(os.path.join(directory, "classes", f"{name}.cls"), f"public class {name} {{}}")

    return write_class


@fixture
def source_project(default_dir, make_file, write_class):
    """Two classes and a custom object with one field, in source format."""
    write_class(default_dir, "Foo")
    write_class(default_dir, "Bar")
    object_dir = os.path.join(default_dir, "objects", "Widget__c")
    make_file(os.path.join(object_dir, "Widget__c.object-meta.xml"), OBJECT_XML.format(label="Widget"))
    make_file(
        os.path.join(object_dir, "fields", "Size__c.field-meta.xml"), FIELD_XML.format(name="Size__c")
    )
    return default_dir
