import os

import pytest

from forcesource.decomposition.commit import DUP_SUFFIX
from forcesource.decomposition.factory import get_content_strategy
from forcesource.metadata.types import MetadataTypeFactory


@pytest.fixture
def type_factory(registry):
    return MetadataTypeFactory(registry)


def strategy_for(type_factory, metadata_name):
    metadata_type = type_factory.get_metadata_type_from_metadata_name(metadata_name)
    return get_content_strategy(
        metadata_type.decomposition_config, metadata_type, registry=type_factory.registry
    )


@pytest.fixture
def retrieved(tmp_path):
    path = tmp_path / "retrieved" / "classes"
    path.mkdir(parents=True)
    (path / "Foo.cls").write_text("class Foo {}")
    return str(path / "Foo.cls")


class TestNonDecomposedContentStrategy:
    def test_save_new_then_unchanged(self, type_factory, tmp_path, retrieved):
        strategy = strategy_for(type_factory, "ApexClass")
        meta = str(tmp_path / "classes" / "Foo.cls-meta.xml")

        assert strategy.save_content(meta, [retrieved]) == ([str(tmp_path / "classes" / "Foo.cls")], [], [], [])
        assert strategy.save_content(meta, [retrieved]) == ([], [], [], [])
        assert strategy.get_content_paths(meta) == [str(tmp_path / "classes" / "Foo.cls")]

    def test_save_updated_and_duplicate(self, type_factory, tmp_path, retrieved):
        strategy = strategy_for(type_factory, "ApexClass")
        meta = str(tmp_path / "classes" / "Foo.cls-meta.xml")
        workspace_path = str(tmp_path / "classes" / "Foo.cls")
        strategy.save_content(meta, [retrieved])
        with open(retrieved, "w") as f:
            f.write("class Foo { Integer x; }")

        assert strategy.save_content(meta, [retrieved], create_duplicates=True) == (
            [],
            [],
            [],
            [workspace_path + DUP_SUFFIX],
        )
        assert strategy.save_content(meta, [retrieved]) == ([], [workspace_path], [], [])

    def test_bundle_content_paths(self, type_factory, tmp_path):
        strategy = strategy_for(type_factory, "LightningComponentBundle")
        bundle = tmp_path / "lwc" / "myCmp"
        bundle.mkdir(parents=True)
        (bundle / "myCmp.js").write_text("")
        (bundle / "myCmp.js-meta.xml").write_text("")
        (bundle / ".eslintrc").write_text("")

        assert strategy.get_content_paths(str(bundle / "myCmp.js-meta.xml")) == [str(bundle / "myCmp.js")]


class TestExperienceBundleContentStrategy:
    def test_removes_files_not_retrieved(self, type_factory, tmp_path):
        strategy = strategy_for(type_factory, "ExperienceBundle")
        experiences = tmp_path / "project" / "experiences"
        (experiences / "site1" / "views").mkdir(parents=True)
        meta = experiences / "site1.site-meta.xml"
        meta.write_text("<ExperienceBundle/>")
        (experiences / "site1" / "views" / "home.json").write_text("{}")
        (experiences / "site1" / "views" / "old.json").write_text("{}")
        retrieved_dir = tmp_path / "retrieved" / "experiences" / "site1" / "views"
        retrieved_dir.mkdir(parents=True)
        (retrieved_dir / "home.json").write_text('{"changed": true}')

        new, updated, deleted, dups = strategy.save_content(str(meta), [str(retrieved_dir / "home.json")])

        assert new == []
        assert updated == [str(experiences / "site1" / "views" / "home.json")]
        assert deleted == [str(experiences / "site1" / "views" / "old.json")]
        assert not os.path.exists(deleted[0])


class TestStaticResourceContentStrategy:
    def test_no_content(self, type_factory, tmp_path):
        strategy = strategy_for(type_factory, "StaticResource")
        assert strategy.save_content(str(tmp_path / "x.resource-meta.xml"), []) == ([], [], [], [])
