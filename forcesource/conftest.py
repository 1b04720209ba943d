import json
import os
from unittest import mock

from pytest import fixture

from forcesource.core.config import OrgConfig, SfdxProject
from forcesource.core.context import SourceContext
from forcesource.metadata.registry import MetadataRegistry

PROJECT_JSON = {
    "packageDirectories": [{"path": "force-app", "default": True}],
    "namespace": "",
    "sourceApiVersion": "50.0",
}


@fixture(scope="session", autouse=True)
def mock_sleep():
    """Patch time.sleep to avoid delays in unit tests"""
    with mock.patch("time.sleep"):
        yield


@fixture(scope="class", autouse=True)
def restore_cwd():
    d = os.getcwd()
    try:
        yield
    finally:
        os.chdir(d)


def write_file(path, content=""):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    mode = "wb" if isinstance(content, bytes) else "w"
    with open(path, mode) as f:
        f.write(content)
    return path


@fixture
def project_dir(tmp_path):
    """An empty SFDX project with one default package directory, force-app."""
    root = os.path.realpath(str(tmp_path / "project"))
    write_file(os.path.join(root, "sfdx-project.json"), json.dumps(PROJECT_JSON))
    os.makedirs(os.path.join(root, "force-app", "main", "default"))
    return root


@fixture
def default_dir(project_dir):
    return os.path.join(project_dir, "force-app", "main", "default")


@fixture(scope="session")
def registry():
    return MetadataRegistry()


@fixture
def org_config():
    return OrgConfig(
        username="test@example.com",
        instance_url="https://test.my.salesforce.com",
        access_token="TOKEN",
        api_version="50.0",
    )


@fixture
def source_context(project_dir, registry):
    return SourceContext(SfdxProject.load(project_dir), registry=registry)


@fixture
def org_context(project_dir, registry, org_config):
    return SourceContext(SfdxProject.load(project_dir), registry=registry, org_config=org_config)


@fixture
def make_file():
    return write_file
