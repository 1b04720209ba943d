import os

import pytest

from forcesource.core.exceptions import MissingContentError, MissingMetadataFileError
from forcesource.metadata import types
from forcesource.metadata.registry import MetadataRegistry
from forcesource.metadata.types import MetadataTypeFactory
from forcesource.tracking.workspace import WorkspaceFileState

ROOT = os.path.join(os.sep, "project", "force-app", "main", "default")
MD_DIR = os.path.join(os.sep, "out")


def p(*parts):
    return os.path.join(ROOT, *parts)


@pytest.fixture(scope="module")
def factory():
    return MetadataTypeFactory(MetadataRegistry())


class TestMetadataTypeFactory:
    @pytest.mark.parametrize(
        "metadata_name,expected",
        [
            ("ApexClass", types.ApexClassMetadataType),
            ("ApexTrigger", types.DefaultMetadataType),
            ("CustomObject", types.CustomObjectMetadataType),
            ("CustomField", types.CustomObjectSubtypeMetadataType),
            ("BotVersion", types.BotSubtypeMetadataType),
            ("CustomFieldTranslation", types.CustomObjectTranslationSubtypeMetadataType),
            ("Report", types.InFolderMetadataType),
            ("ReportFolder", types.FolderMetadataType),
            ("Document", types.DocumentMetadataType),
            ("LightningComponentResource", types.LightningComponentBundleMetadataType),
            ("CustomLabel", types.CustomLabelsMetadataType),
            ("WorkflowRule", types.WorkflowMetadataType),
        ],
    )
    def test_from_metadata_name(self, factory, metadata_name, expected):
        assert type(factory.get_metadata_type_from_metadata_name(metadata_name)) is expected

    def test_from_metadata_name__unsupported(self, factory):
        assert factory.get_metadata_type_from_metadata_name("NotARealType") is None

    def test_from_source_path(self, factory):
        field = factory.get_metadata_type_from_source_path(
            p("objects", "Account", "fields", "MyField__c.field-meta.xml")
        )
        assert field.metadata_name == "CustomField"
        assert field.aggregate_metadata_name == "CustomObject"
        assert field.has_parent

    def test_aggregate_metadata_type(self, factory):
        assert factory.get_aggregate_metadata_type("CustomField").metadata_name == "CustomObject"
        assert factory.get_aggregate_metadata_type("ApexClass").metadata_name == "ApexClass"

    @pytest.mark.parametrize(
        "package_path,expected",
        [
            (os.path.join("classes", "Foo.cls"), "ApexClass"),
            (os.path.join("objects", "Account.object"), "CustomObject"),
            (os.path.join("reports", "Sales-meta.xml"), "ReportFolder"),
            (os.path.join("reports", "Sales", "Pipeline.report"), "Report"),
            (os.path.join("territory2Models", "FY21", "territories", "West.territory2"), "Territory2"),
            (os.path.join("territory2Models", "FY21", "rules", "Big.territory2Rule"), "Territory2Rule"),
            (os.path.join("territory2Models", "FY21", "FY21.territory2Model"), "Territory2Model"),
        ],
    )
    def test_from_mdapi_package_path(self, factory, package_path, expected):
        assert factory.get_metadata_type_from_mdapi_package_path(package_path).metadata_name == expected

    def test_from_mdapi_package_path__unknown(self, factory):
        assert factory.get_metadata_type_from_mdapi_package_path("package.xml") is None
        assert factory.get_metadata_type_from_mdapi_package_path(os.path.join("nope", "x.y")) is None

    def test_from_file_property__folder(self, factory):
        folder = factory.get_metadata_type_from_file_property(
            {"type": "Report", "fileName": "reports/Sales", "fullName": "Sales"}
        )
        assert folder.metadata_name == "ReportFolder"
        report = factory.get_metadata_type_from_file_property(
            {
                "type": "Report",
                "fileName": "reports/Sales/Pipeline.report",
                "fullName": os.path.join("Sales", "Pipeline"),
            }
        )
        assert report.metadata_name == "Report"


class TestDecomposedTypes:
    def test_custom_field_names(self, factory):
        field = factory.get_metadata_type_from_metadata_name("CustomField")
        path = p("objects", "Account", "fields", "MyField__c.field-meta.xml")

        assert field.get_full_name_from_file_path(path) == "Account.MyField__c"
        assert field.get_aggregate_full_name_from_file_path(path) == "Account"
        assert field.get_aggregate_metadata_file_path_from_workspace_path(path) == p(
            "objects", "Account.object-meta.xml"
        )
        assert field.get_aggregate_full_name_from_source_member_name("Account.MyField__c") == "Account"

    def test_custom_object_parent(self, factory):
        custom_object = factory.get_metadata_type_from_metadata_name("CustomObject")
        path = p("objects", "Account", "Account.object-meta.xml")

        assert custom_object.get_aggregate_metadata_file_path_from_workspace_path(path) == p(
            "objects", "Account.object-meta.xml"
        )
        assert custom_object.has_individually_addressable_child_workspace_elements()
        assert custom_object.is_standard_member("Account")
        assert not custom_object.is_standard_member("Foo__c")
        assert not custom_object.delete_supported("Account")
        assert custom_object.get_mdapi_metadata_path(path, "Account", MD_DIR) == os.path.join(
            MD_DIR, "objects", "Account.object"
        )

    def test_bot_version(self, factory):
        version = factory.get_metadata_type_from_metadata_name("BotVersion")
        path = p("bots", "MyBot", "v1.botVersion-meta.xml")
        assert version.get_full_name_from_file_path(path) == "MyBot.v1"


class TestContentTypes:
    def test_apex_class(self, factory):
        apex = factory.get_metadata_type_from_metadata_name("ApexClass")
        meta = p("classes", "Foo.cls-meta.xml")

        assert apex.get_full_name_from_file_path(meta) == "Foo"
        assert apex.get_aggregate_metadata_file_path_from_workspace_path(p("classes", "Foo.cls")) == meta
        assert apex.get_mdapi_metadata_path(meta, "Foo", MD_DIR) == os.path.join(
            MD_DIR, "classes", "Foo.cls-meta.xml"
        )
        assert apex.get_origin_content_paths_for_source_convert(meta) == [p("classes", "Foo.cls")]
        assert apex.is_content_path(p("classes", "Foo.cls"))
        assert not apex.is_content_path(meta)
        assert apex.get_default_aggregate_metadata_path("Foo", ROOT) == meta

    def test_retrieved_paths(self, factory, tmp_path):
        apex = factory.get_metadata_type_from_metadata_name("ApexClass")
        (tmp_path / "unpackaged" / "classes").mkdir(parents=True)
        (tmp_path / "unpackaged" / "classes" / "Foo.cls").write_text("class Foo {}")
        (tmp_path / "unpackaged" / "classes" / "Foo.cls-meta.xml").write_text("<ApexClass/>")
        file_property = {
            "type": "ApexClass",
            "fileName": os.path.join("unpackaged", "classes", "Foo.cls"),
            "fullName": "Foo",
        }

        assert apex.get_retrieved_metadata_path(file_property, str(tmp_path)) == str(
            tmp_path / "unpackaged" / "classes" / "Foo.cls-meta.xml"
        )
        assert apex.get_retrieved_content_path(file_property, str(tmp_path)) == str(
            tmp_path / "unpackaged" / "classes" / "Foo.cls"
        )

    def test_retrieved_metadata_missing(self, factory, tmp_path):
        apex = factory.get_metadata_type_from_metadata_name("ApexClass")
        with pytest.raises(MissingMetadataFileError):
            apex.get_retrieved_metadata_path(
                {"type": "ApexClass", "fileName": "classes/Gone.cls", "fullName": "Gone"}, str(tmp_path)
            )


class TestBundleTypes:
    def test_lwc_names(self, factory):
        lwc = factory.get_metadata_type_from_metadata_name("LightningComponentBundle")
        path = p("lwc", "myCmp", "myCmp.js")

        assert lwc.get_full_name_from_file_path(path) == os.path.join("myCmp", "myCmp.js")
        assert lwc.get_aggregate_full_name_from_file_path(path) == "myCmp"
        assert lwc.get_aggregate_full_name_from_mdapi_package_path(
            os.path.join("lwc", "myCmp", "myCmp.js")
        ) == "myCmp"

    def test_lwc_metadata_file_lookup(self, factory, tmp_path):
        lwc = factory.get_metadata_type_from_metadata_name("LightningComponentBundle")
        bundle = tmp_path / "lwc" / "myCmp"
        bundle.mkdir(parents=True)
        (bundle / "myCmp.js").write_text("export default class {}")
        (bundle / "myCmp.html").write_text("<template></template>")
        (bundle / "myCmp.js-meta.xml").write_text("<LightningComponentBundle/>")

        meta = lwc.get_aggregate_metadata_file_path_from_workspace_path(str(bundle / "myCmp.html"))

        assert meta == str(bundle / "myCmp.js-meta.xml")
        assert lwc.get_origin_content_paths_for_source_convert(meta) == [
            str(bundle / "myCmp.html"),
            str(bundle / "myCmp.js"),
        ]

    def test_bundle_definition_file_property(self, factory, tmp_path):
        aura = factory.get_metadata_type_from_metadata_name("AuraDefinitionBundle")
        bundle = tmp_path / "unpackaged" / "aura" / "myCmp"
        bundle.mkdir(parents=True)
        (bundle / "myCmp.cmp").write_text("<aura:component/>")
        (bundle / "myCmp.cmp-meta.xml").write_text("<AuraDefinitionBundle/>")
        (bundle / "myCmpController.js").write_text("({})")
        file_property = {
            "type": "AuraDefinitionBundle",
            "fileName": os.path.join("unpackaged", "aura", "myCmp", "myCmpController.js"),
            "fullName": "myCmp",
        }

        definition = aura.get_definition_file_property(file_property, str(tmp_path))

        assert definition == {
            "type": "AuraDefinitionBundle",
            "fileName": os.path.join("unpackaged", "aura", "myCmp", "myCmp.cmp"),
            "fullName": "myCmp",
        }
        assert aura.get_default_aggregate_metadata_path("myCmp", ROOT, [definition]) == p(
            "aura", "myCmp", "myCmp.cmp-meta.xml"
        )

    def test_bundle_remote_tracking(self, factory):
        aura = factory.get_metadata_type_from_metadata_name("AuraDefinitionBundle")
        assert not aura.track_remote_change_for_source_member_name("myCmp")
        assert aura.track_remote_change_for_source_member_name("myCmp/myCmp.cmp")
        assert aura.get_aggregate_full_name_from_source_member_name("myCmp/myCmp.cmp") == "myCmp"

    def test_wave_template(self, factory):
        wave = factory.get_metadata_type_from_metadata_name("WaveTemplateBundle")
        path = p("waveTemplates", "tpl", "template-info.json")

        assert wave.get_aggregate_metadata_file_path_from_workspace_path(path) == p("waveTemplates", "tpl")
        assert not wave.should_get_metadata_translation()
        assert wave.get_definition_file_property({"fileName": "x", "fullName": "tpl"}, ROOT) == {
            "fileName": "x",
            "fullName": "tpl",
        }

    def test_aura_deleted_definition(self, factory, registry):
        aura = factory.get_metadata_type_from_metadata_name("AuraDefinitionBundle")
        with pytest.raises(MissingContentError):
            aura.validate_deleted_content_path(
                p("aura", "myCmp", "myCmp.cmp"), [p("aura", "myCmp", "myCmpController.js")], registry
            )
        aura.validate_deleted_content_path(
            p("aura", "myCmp", "myCmpHelper.js"), [p("aura", "myCmp", "myCmp.cmp")], registry
        )


class TestExperienceBundle:
    def test_names(self, factory):
        experience = factory.get_metadata_type_from_metadata_name("ExperienceBundle")
        content = p("experiences", "site1", "views", "home.json")
        meta = p("experiences", "site1.site-meta.xml")

        assert experience.get_aggregate_full_name_from_file_path(content) == "site1"
        assert experience.get_aggregate_full_name_from_file_path(meta) == "site1"
        assert experience.get_aggregate_metadata_file_path_from_workspace_path(content) == meta
        assert experience.get_mdapi_content_path_for_source_convert(content, "site1", MD_DIR) == os.path.join(
            MD_DIR, "experiences", os.path.join("site1", "views", "home.json")
        )


class TestFolderTypes:
    def test_report_folder(self, factory):
        folder = factory.get_metadata_type_from_metadata_name("ReportFolder")
        meta = p("reports", "Sales.reportFolder-meta.xml")

        assert folder.is_folder_type()
        assert folder.get_full_name_from_file_path(meta) == "Sales"
        assert folder.get_mdapi_metadata_path(meta, "Sales", MD_DIR) == os.path.join(
            MD_DIR, "reports", "Sales-meta.xml"
        )
        assert folder.get_aggregate_full_name_from_mdapi_package_path(
            os.path.join("reports", "Sales-meta.xml")
        ) == "Sales"

    def test_report(self, factory):
        report = factory.get_metadata_type_from_metadata_name("Report")
        meta = p("reports", "Sales", "Pipeline.report-meta.xml")
        full_name = os.path.join("Sales", "Pipeline")

        assert report.get_full_name_from_file_path(meta) == full_name
        assert report.get_mdapi_metadata_path(meta, full_name, MD_DIR) == os.path.join(
            MD_DIR, "reports", "Sales", "Pipeline.report"
        )
        assert report.get_default_aggregate_metadata_path("Sales/Pipeline", ROOT) == meta

    def test_create_empty_folder(self, tmp_path):
        meta = str(tmp_path / "reports" / "Sales.reportFolder-meta.xml")
        new = types.WorkspaceElement("ReportFolder", "Sales", meta, WorkspaceFileState.NEW)

        created = types.FolderMetadataType.create_empty_folder([new], meta, "reportFolder")

        assert created == str(tmp_path / "reports" / "Sales")
        assert os.path.isdir(created)
        assert types.FolderMetadataType.create_empty_folder([new], meta, "reportFolder") is None

    def test_document_extension_change(self, factory, tmp_path):
        document = factory.get_metadata_type_from_metadata_name("Document")
        folder = tmp_path / "documents" / "Shared"
        folder.mkdir(parents=True)
        (folder / "logo.png").write_bytes(b"png")
        meta = folder / "logo.document-meta.xml"
        meta.write_text("<Document/>")

        to_delete = document.get_workspace_elements_to_delete(
            str(meta),
            {
                "type": "Document",
                "fileName": "unpackaged/documents/Shared/logo.jpg",
                "fullName": "Shared/logo.jpg",
            },
        )

        assert [(e.full_name, e.source_path, e.state) for e in to_delete] == [
            ("Shared/logo", str(folder / "logo.png"), WorkspaceFileState.DELETED)
        ]
        assert document.get_workspace_elements_to_delete(
            str(meta), {"fileName": "documents/Shared/logo.png", "fullName": "Shared/logo.png"}
        ) == []
        assert document.get_mdapi_metadata_path(
            str(meta), os.path.join("Shared", "logo"), MD_DIR
        ) == os.path.join(MD_DIR, "documents", "Shared", "logo.png-meta.xml")


class TestStaticResourceType:
    def test_names(self, factory):
        resource = factory.get_metadata_type_from_metadata_name("StaticResource")
        content = p("staticresources", "site", "css", "main.css")

        assert resource.resolve_source_path(content) == p("staticresources", "site")
        assert resource.get_aggregate_full_name_from_file_path(content) == "site"
        assert resource.get_aggregate_full_name_from_file_path(p("staticresources", "logo.png")) == "logo"
        assert resource.get_aggregate_full_name_from_file_path(
            p("staticresources", "site.resource-meta.xml")
        ) == "site"
        assert resource.get_aggregate_metadata_file_path_from_workspace_path(content) == p(
            "staticresources", "site.resource-meta.xml"
        )


class TestRemoteChanges:
    def test_custom_labels(self, factory):
        labels = factory.get_metadata_type_from_metadata_name("CustomLabel")
        assert labels.get_aggregate_full_name_from_source_member_name("MyLabel") == "CustomLabels"
        assert labels.parse_source_member_for_metadata_retrieve("MyLabel", "CustomLabel") == {
            "fullName": "*",
            "type": "CustomLabels",
        }
        assert labels.get_display_name_for_remote_change("CustomLabel") == "CustomLabel"
        assert labels.requires_individually_addressable_members_in_package()

    def test_sharing_rules(self, factory):
        rules = factory.get_metadata_type_from_metadata_name("SharingOwnerRule")
        assert rules.parse_source_member_for_metadata_retrieve("Account.MyRule", "SharingOwnerRule") == {
            "fullName": "Account.*",
            "type": "SharingOwnerRule",
        }
        assert rules.get_display_name_for_remote_change("SharingOwnerRule") == "SharingRules"
        assert rules.source_member_full_name_corresponds_with_workspace_full_name("Account.MyRule", "Account")

    def test_default_corresponds_with_encoded_name(self, factory):
        layout = factory.get_metadata_type_from_metadata_name("Layout")
        assert layout.source_member_full_name_corresponds_with_workspace_full_name(
            "Account-Account (Marketing) Layout", "Account-Account (Marketing) Layout"
        )
        assert not layout.source_member_full_name_corresponds_with_workspace_full_name("Foo/Bar", "Foo/Bar")

    def test_territories(self, factory):
        territory = factory.get_metadata_type_from_metadata_name("Territory2")
        meta = p("territory2Models", "FY21", "territories", "West.territory2-meta.xml")

        assert territory.get_full_name_from_file_path(meta) == "FY21.West"
        assert territory.get_default_aggregate_metadata_path("FY21.West", ROOT) == meta
        assert territory.get_aggregate_full_name_from_mdapi_package_path(
            os.path.join("territory2Models", "FY21", "territories", "West.territory2")
        ) == "FY21.West"

    def test_flow_deprecation(self, factory):
        flow = factory.get_metadata_type_from_metadata_name("Flow")
        assert flow.get_deprecation_message("MyFlow-1") == types.FLOW_DEPRECATION
        assert flow.get_deprecation_message("MyFlow") is None
        definition = factory.get_metadata_type_from_metadata_name("FlowDefinition")
        assert definition.get_deprecation_message() == types.FLOW_DEFINITION_DEPRECATION
