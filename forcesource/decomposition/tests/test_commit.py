import pytest

from forcesource.decomposition.commit import (
    DUP_SUFFIX,
    FineGrainTrackingCommitStrategy,
    VirtualDecompositionCommitStrategy,
)
from forcesource.decomposition.config import DecompositionConfig
from forcesource.decomposition.document import MetadataDocument
from forcesource.decomposition.factory import get_commit_strategy

NS = "http://soap.sforce.com/2006/04/metadata"


def field(name, label):
    return MetadataDocument.from_representation(
        f'<CustomField xmlns="{NS}"><fullName>{name}</fullName><label>{label}</label></CustomField>'
    )


@pytest.fixture
def fields_dir(tmp_path):
    path = tmp_path / "objects" / "Account" / "fields"
    path.mkdir(parents=True)
    return path


class TestFineGrainTrackingCommitStrategy:
    def test_commit(self, fields_dir):
        same = str(fields_dir / "Same__c.field-meta.xml")
        changed = str(fields_dir / "Changed__c.field-meta.xml")
        new = str(fields_dir / "New__c.field-meta.xml")
        field("Same__c", "Same").write(same)
        field("Changed__c", "Old").write(changed)
        strategy = FineGrainTrackingCommitStrategy(DecompositionConfig("CustomObject"))

        result = strategy.commit(
            {
                same: field("Same__c", "Same"),
                changed: field("Changed__c", "New"),
                new: field("New__c", "New"),
            },
            [same, changed],
            create_duplicates=False,
        )

        assert result == ([new], [changed], [], [])
        assert MetadataDocument.from_file(changed).get_child_text("label") == "New"

    def test_commit_is_idempotent(self, fields_dir):
        path = str(fields_dir / "A__c.field-meta.xml")
        strategy = FineGrainTrackingCommitStrategy(DecompositionConfig("CustomObject"))

        strategy.commit({path: field("A__c", "A")}, [], create_duplicates=False)
        assert strategy.commit({path: field("A__c", "A")}, [path], create_duplicates=False) == ([], [], [], [])

    def test_force_overwrite(self, fields_dir):
        path = str(fields_dir / "A__c.field-meta.xml")
        field("A__c", "A").write(path)
        strategy = FineGrainTrackingCommitStrategy(DecompositionConfig("CustomObject"))

        result = strategy.commit({path: field("A__c", "A")}, [path], create_duplicates=False, force_overwrite=True)

        assert result == ([], [path], [], [])

    def test_force_overwrite_with_duplicates(self, fields_dir):
        path = str(fields_dir / "A__c.field-meta.xml")
        field("A__c", "A").write(path)
        strategy = FineGrainTrackingCommitStrategy(DecompositionConfig("CustomObject"))

        same = strategy.commit({path: field("A__c", "A")}, [path], create_duplicates=True, force_overwrite=True)
        changed = strategy.commit({path: field("A__c", "B")}, [path], create_duplicates=True, force_overwrite=True)

        assert same == ([], [path], [], [])
        assert changed == ([], [path], [], [])
        assert not (fields_dir / "A__c.field-meta.xml.dup").exists()
        assert MetadataDocument.from_file(path).get_child_text("label") == "B"

    def test_identical_content_never_duplicates(self, fields_dir):
        path = str(fields_dir / "A__c.field-meta.xml")
        field("A__c", "A").write(path)
        strategy = FineGrainTrackingCommitStrategy(DecompositionConfig("CustomObject"))

        result = strategy.commit({path: field("A__c", "A")}, [path], create_duplicates=True)

        assert result == ([], [], [], [])
        assert not (fields_dir / "A__c.field-meta.xml.dup").exists()

    def test_duplicates(self, fields_dir):
        path = str(fields_dir / "A__c.field-meta.xml")
        field("A__c", "Old").write(path)
        strategy = FineGrainTrackingCommitStrategy(DecompositionConfig("CustomObject"))

        result = strategy.commit({path: field("A__c", "New")}, [path], create_duplicates=True)

        assert result == ([], [], [], [path + DUP_SUFFIX])
        assert MetadataDocument.from_file(path).get_child_text("label") == "Old"
        assert MetadataDocument.from_file(path + DUP_SUFFIX).get_child_text("label") == "New"


class TestVirtualDecompositionCommitStrategy:
    def test_deletes_unmatched_fragments(self, fields_dir, registry):
        kept = str(fields_dir / "Kept__c.fieldTranslation-meta.xml")
        stale = str(fields_dir / "Stale__c.fieldTranslation-meta.xml")
        field("Kept__c", "K").write(kept)
        field("Stale__c", "S").write(stale)
        config = registry.get_type_definition_by_metadata_name("CustomObjectTranslation").decomposition_config
        strategy = get_commit_strategy(config)

        result = strategy.commit({kept: field("Kept__c", "K")}, [kept, stale], create_duplicates=False)

        assert isinstance(strategy, VirtualDecompositionCommitStrategy)
        assert result == ([], [], [stale], [])
        assert not (fields_dir / "Stale__c.fieldTranslation-meta.xml").exists()
