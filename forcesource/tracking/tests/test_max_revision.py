import json
import os
from unittest import mock

import pytest
import responses
from responses import matchers

from forcesource.core.config import SfdxProject
from forcesource.core.exceptions import AccessError, NonSourceTrackedOrgError
from forcesource.salesforce_api.tooling import ToolingClient
from forcesource.tracking.max_revision import (
    MAX_REVISION_FILE,
    QUERY_ALL_SOURCE_MEMBERS,
    QUERY_MAX_REVISION_COUNTER,
    QUERY_SOURCE_MEMBERS_FROM,
    MaxRevision,
    SourceMember,
)

USERNAME = "test@example.com"

MEMBERS = [
    {"MemberType": "ApexClass", "MemberName": "Foo", "RevisionCounter": 1},
    {"MemberType": "CustomObject", "MemberName": "Widget__c", "RevisionCounter": 2},
    {"MemberType": "CustomLabel", "MemberName": "Greeting", "RevisionCounter": 3},
]


def member(name, revision, member_type="ApexClass", obsolete=False):
    return {
        "MemberType": member_type,
        "MemberName": name,
        "RevisionCounter": revision,
        "IsNameObsolete": obsolete,
    }


class FakeTooling:
    def __init__(self, results, api_version="50.0"):
        self.results = results
        self.api_version = api_version
        self.queries = []

    def query_all(self, soql):
        self.queries.append(soql)
        result = self.results[soql]
        if isinstance(result, Exception):
            raise result
        if callable(result):
            result = result()
        return {"totalSize": len(result), "done": True, "records": result}


@pytest.fixture
def project(project_dir):
    return SfdxProject.load(project_dir)


@pytest.fixture
def cache_path(project):
    return os.path.join(project.org_state_dir(USERNAME), MAX_REVISION_FILE)


def initialized_tooling(**more):
    results = {
        QUERY_MAX_REVISION_COUNTER: [{"MaxRev": 3}],
        QUERY_ALL_SOURCE_MEMBERS: MEMBERS,
        QUERY_SOURCE_MEMBERS_FROM.format(3): [],
    }
    results.update(more)
    return FakeTooling(results)


class TestInitialize:
    def test_backfills_from_org(self, project, cache_path):
        max_revision = MaxRevision(project, USERNAME, initialized_tooling())
        assert max_revision.server_max_revision == 3
        assert set(max_revision.source_members) == {
            "ApexClass__Foo",
            "CustomObject__Widget__c",
            "CustomLabel__Greeting",
        }
        with open(cache_path) as f:
            cached = json.load(f)
        assert cached["serverMaxRevisionCounter"] == 3
        assert cached["sourceMembers"]["ApexClass__Foo"] == {
            "serverRevisionCounter": 1,
            "lastRetrievedFromServer": None,
            "memberType": "ApexClass",
            "isNameObsolete": False,
        }

    def test_empty_org(self, project, cache_path):
        tooling = FakeTooling({QUERY_MAX_REVISION_COUNTER: [{"MaxRev": None}]})
        max_revision = MaxRevision(project, USERNAME, tooling)
        assert max_revision.server_max_revision == 0
        assert max_revision.source_members == {}
        assert tooling.queries == [QUERY_MAX_REVISION_COUNTER]
        assert os.path.exists(cache_path)

    def test_reads_cache(self, project, cache_path):
        MaxRevision(project, USERNAME, initialized_tooling())
        tooling = FakeTooling({})
        max_revision = MaxRevision(project, USERNAME, tooling)
        assert tooling.queries == []
        assert max_revision.has_source_member("CustomLabel__Greeting")

    def test_converts_old_format(self, project, cache_path):
        os.makedirs(os.path.dirname(cache_path))
        with open(cache_path, "w") as f:
            json.dump(12, f)
        max_revision = MaxRevision(project, USERNAME, FakeTooling({}))
        assert max_revision.server_max_revision == 12
        with open(cache_path) as f:
            assert json.load(f) == {"serverMaxRevisionCounter": 12, "sourceMembers": {}}

    def test_non_source_tracked_org(self, project, cache_path):
        error = AccessError("sObject type 'SourceMember' is not supported.", error_code="INVALID_TYPE")
        max_revision = MaxRevision(project, USERNAME, FakeTooling({QUERY_MAX_REVISION_COUNTER: error}))
        assert not max_revision.is_source_tracked_org
        assert not os.path.exists(cache_path)
        with pytest.raises(NonSourceTrackedOrgError):
            max_revision.retrieve_changed_elements()

    def test_other_access_errors_propagate(self, project):
        error = AccessError("Session expired", error_code="INVALID_SESSION_ID")
        with pytest.raises(AccessError):
            MaxRevision(project, USERNAME, FakeTooling({QUERY_MAX_REVISION_COUNTER: error}))

    def test_old_api_version_is_raised(self, project):
        tooling = mock.Mock(api_version="45.0")
        tooling.with_api_version.return_value = initialized_tooling()
        max_revision = MaxRevision(project, USERNAME, tooling)
        tooling.with_api_version.assert_called_once_with("47.0")
        assert max_revision.tooling is tooling.with_api_version.return_value


class TestRevisions:
    def test_retrieve_changed_elements(self, project):
        tooling = initialized_tooling(
            **{QUERY_SOURCE_MEMBERS_FROM.format(3): [member("Foo", 4), member("Bar", 5)]}
        )
        max_revision = MaxRevision(project, USERNAME, tooling)
        changed = {m.key: m for m in max_revision.retrieve_changed_elements()}

        assert set(changed) == {
            "ApexClass__Foo",
            "ApexClass__Bar",
            "CustomObject__Widget__c",
            "CustomLabel__Greeting",
        }
        assert changed["ApexClass__Foo"].revision_counter == 4
        assert changed["CustomObject__Widget__c"].member_name == "Widget__c"
        assert max_revision.server_max_revision == 5

    def test_sync_revision_counter(self, project):
        max_revision = MaxRevision(project, USERNAME, initialized_tooling())
        changed = max_revision.retrieve_changed_elements()
        max_revision.sync_revision_counter(changed)
        max_revision.write()

        tooling = initialized_tooling(**{QUERY_SOURCE_MEMBERS_FROM.format(3): []})
        reloaded = MaxRevision(project, USERNAME, tooling)
        assert reloaded.retrieve_changed_elements() == []

    def test_update_source_tracking(self, project):
        tooling = initialized_tooling(**{QUERY_SOURCE_MEMBERS_FROM.format(3): [member("Foo", 6)]})
        max_revision = MaxRevision(project, USERNAME, tooling)
        max_revision.update_source_tracking()

        foo = max_revision.get_source_member("ApexClass__Foo")
        assert foo.server_revision_counter == 6
        assert foo.is_synced
        assert max_revision.server_max_revision == 6

    def test_obsolete_member(self, project):
        tooling = initialized_tooling(
            **{QUERY_SOURCE_MEMBERS_FROM.format(3): [member("Foo", 4, obsolete=True)]}
        )
        max_revision = MaxRevision(project, USERNAME, tooling)
        changed = {m.key: m for m in max_revision.retrieve_changed_elements()}
        assert changed["ApexClass__Foo"].is_name_obsolete

    def test_server_max_revision_never_decreases(self, project):
        max_revision = MaxRevision(project, USERNAME, initialized_tooling())
        max_revision.set_server_max_revision(1)
        assert max_revision.server_max_revision == 3
        max_revision.set_server_max_revision(9)
        assert max_revision.server_max_revision == 9

    def test_upsert_ignores_nameless_members(self, project):
        max_revision = MaxRevision(project, USERNAME, initialized_tooling())
        max_revision.upsert_source_member(SourceMember(MemberType="ApexClass", RevisionCounter=8))
        assert "ApexClass__None" not in max_revision.source_members


class TestPolling:
    def test_poll_finds_members(self, project):
        batches = iter([[member("Foo", 4)], [member("Foo", 4), member("Bar", 5)]])
        tooling = initialized_tooling(**{QUERY_SOURCE_MEMBERS_FROM.format(3): lambda: next(batches)})
        max_revision = MaxRevision(project, USERNAME, tooling)

        found = max_revision.poll_for_source_members(["Foo", "Bar"])
        assert [m.member_name for m in found] == ["Foo", "Bar"]

    def test_poll_times_out(self, project, caplog):
        max_revision = MaxRevision(project, USERNAME, initialized_tooling())
        assert max_revision.poll_for_source_members(["Missing"], poll_time_limit=2) == []
        assert "timed out" in caplog.text
        assert len(max_revision.tooling.queries) == 2 + 3

    def test_poll_without_names(self, project):
        max_revision = MaxRevision(project, USERNAME, initialized_tooling())
        assert max_revision.poll_for_source_members([]) == []


@responses.activate
def test_queries_the_tooling_api(project, org_config, cache_path):
    url = "https://test.my.salesforce.com/services/data/v50.0/tooling/query/"

    def add_query(soql, records):
        responses.add(
            method=responses.GET,
            url=url,
            json={"totalSize": len(records), "done": True, "records": records},
            match=[matchers.query_param_matcher({"q": soql})],
        )

    add_query(QUERY_MAX_REVISION_COUNTER, [{"attributes": {"type": "AggregateResult"}, "MaxRev": 2}])
    add_query(QUERY_ALL_SOURCE_MEMBERS, MEMBERS[:2])

    max_revision = MaxRevision(project, USERNAME, ToolingClient(org_config))
    assert max_revision.server_max_revision == 2
    assert len(responses.calls) == 2
    assert responses.calls[0].request.headers["Authorization"] == "Bearer TOKEN"


@responses.activate
def test_tooling_api_refuses_source_member(project, org_config):
    responses.add(
        method=responses.GET,
        url="https://test.my.salesforce.com/services/data/v50.0/tooling/query/",
        status=400,
        json=[
            {
                "errorCode": "INVALID_TYPE",
                "message": "sObject type 'SourceMember' is not supported.",
            }
        ],
    )
    max_revision = MaxRevision(project, USERNAME, ToolingClient(org_config))
    assert not max_revision.is_source_tracked_org
