import os

import pytest

from forcesource.metadata.registry import (
    MetadataRegistry,
    get_metadata_key,
    load_catalog,
)


ROOT = os.path.join(os.sep, "project", "force-app", "main", "default")


def p(*parts):
    return os.path.join(ROOT, *parts)


class TestMetadataRegistry:
    def test_custom_field_in_decomposed_object(self, registry):
        path = p("objects", "Account", "fields", "MyField__c.field-meta.xml")

        assert registry.get_type_definition_by_file_name(path).metadata_name == "CustomObject"
        true_type = registry.get_type_definition_by_file_name(path, use_true_ext_type=True)
        assert true_type.metadata_name == "CustomField"
        assert true_type.parent.metadata_name == "CustomObject"
        assert true_type.default_directory == "fields"

    @pytest.mark.parametrize(
        "path,expected",
        [
            (p("classes", "MyClass.cls"), "ApexClass"),
            (p("classes", "MyClass.cls-meta.xml"), "ApexClass"),
            (p("objects", "Account", "Account.object-meta.xml"), "CustomObject"),
            (p("aura", "myCmp", "myCmpController.js"), "AuraDefinitionBundle"),
            (p("lwc", "myCmp", "myCmp.js-meta.xml"), "LightningComponentBundle"),
            (p("waveTemplates", "tpl", "template-info.json"), "WaveTemplateBundle"),
            (p("labels", "CustomLabels.labels-meta.xml"), "CustomLabels"),
            (p("reports", "Sales", "Pipeline.report-meta.xml"), "Report"),
            (p("reports", "Sales.reportFolder-meta.xml"), "ReportFolder"),
        ],
    )
    def test_type_by_file_name(self, registry, path, expected):
        assert registry.get_type_definition_by_file_name(path).metadata_name == expected

    def test_type_by_file_name__unknown(self, registry):
        assert registry.get_type_definition_by_file_name(p("classes", "README")) is None
        assert registry.get_type_definition_by_file_name(p("foo", "bar.nope")) is None
        assert registry.get_type_definition_by_file_name("") is None

    def test_document_by_coresident_metadata_file(self, registry, tmp_path):
        folder = tmp_path / "documents" / "Shared"
        folder.mkdir(parents=True)
        (folder / "logo.png").write_bytes(b"png")
        (folder / "logo.document-meta.xml").write_text("<Document/>")

        type_def = registry.get_type_definition_by_file_name(str(folder / "logo.png"))

        assert type_def.metadata_name == "Document"

    def test_static_resource_exploded_directory(self, registry, tmp_path):
        resources = tmp_path / "staticresources"
        (resources / "site" / "css").mkdir(parents=True)
        (resources / "site.resource-meta.xml").write_text("<StaticResource/>")
        content = resources / "site" / "css" / "main.css"
        content.write_text("body {}")

        type_def = registry.get_type_definition_by_file_name(str(content))

        assert type_def.metadata_name == "StaticResource"

    def test_folder_types(self, registry):
        report = registry.get_type_definition_by_metadata_name("Report")
        assert report.in_folder
        assert report.folder_type_def.metadata_name == "ReportFolder"
        assert report.folder_type_def.ext == "reportFolder"
        assert not report.folder_type_def.is_addressable

        email = registry.get_type_definition_by_metadata_name("EmailTemplate")
        assert email.folder_type_def.metadata_name == "EmailFolder"

    def test_settings_and_labels_lookup(self, registry):
        assert registry.get_type_definition_by_metadata_name("AccountSettings").metadata_name == "Settings"
        assert registry.get_type_definition_by_metadata_name("CustomLabel").metadata_name == "CustomLabels"

    def test_flags(self, registry):
        custom_object = registry.get_type_definition_by_metadata_name("CustomObject")
        assert custom_object.has_standard_members
        settings = registry.get_type_definition_by_metadata_name("Settings")
        assert not settings.delete_supported
        labels = registry.get_type_definition_by_metadata_name("CustomLabels")
        assert labels.is_global
        apex = registry.get_type_definition_by_metadata_name("ApexClass")
        assert apex.has_content
        assert apex.name_for_msgs == "Apex Class"
        assert apex.name_for_msgs_plural == "Apex Classes"

    def test_decompositions(self, registry):
        custom_object = registry.get_type_definition_by_metadata_name("CustomObject")
        fields = custom_object.decomposition_config.subtype_for_fragment("fields")
        assert fields.metadata_name == "CustomField"
        assert fields.ext == "field"
        assert fields.default_directory == "fields"

        translation = registry.get_decomposition_by_name("CustomFieldTranslation")
        assert translation.ext == "fieldTranslation"
        assert not translation.is_addressable

    def test_is_supported(self, registry):
        assert registry.is_supported("ApexClass")
        assert registry.is_supported("CustomField")
        assert not registry.is_supported("NotARealType")

    def test_lightning_defs(self, registry):
        controller = registry.get_lightning_def_by_file_name("myCmpController.js")
        assert controller is not None
        assert controller["defType"]
        assert registry.is_valid_aura_suffix(controller["fileSuffix"])
        assert registry.get_lightning_def_by_file_name("readme.md") is None

    def test_custom_catalog(self):
        registry = MetadataRegistry(
            {
                "sourceApiVersion": "50.0",
                "metadataObjects": [
                    {"xmlName": "ApexClass", "directoryName": "classes", "suffix": "cls", "metaFile": True},
                    {"xmlName": "Report", "directoryName": "reports", "suffix": "report", "inFolder": True},
                ],
            }
        )
        assert registry.source_api_version == "50.0"
        assert registry.get_type_definition_by_metadata_name("ReportFolder") is not None
        assert registry.get_type_definition_by_metadata_name("CustomObject") is None


def test_get_metadata_key():
    assert get_metadata_key("CustomObject", "Account") == "CustomObject__Account"


def test_load_catalog():
    catalog = load_catalog()
    assert catalog["sourceApiVersion"]
    assert any(info["xmlName"] == "ApexClass" for info in catalog["metadataObjects"])
