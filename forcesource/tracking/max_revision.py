"""Local cache of the org's ``SourceMember`` revision counters.

The cache lives in ``.sfdx/orgs/<username>/maxRevision.json``::

    {
        "serverMaxRevisionCounter": 3,
        "sourceMembers": {
            "ApexClass__MyClass": {
                "serverRevisionCounter": 3,
                "lastRetrievedFromServer": 2,
                "memberType": "ApexClass",
                "isNameObsolete": false
            }
        }
    }

A member whose ``serverRevisionCounter`` differs from its
``lastRetrievedFromServer`` has changes in the org that were not synced.
"""
import json
import logging
import os
from typing import Dict, List, Optional

from pydantic import Field

from forcesource.core.exceptions import AccessError, NonSourceTrackedOrgError
from forcesource.metadata.registry import get_metadata_key
from forcesource.utils.models import ForceSourceModel
from forcesource.utils.waiting import poll_until

logger = logging.getLogger(__name__)

MAX_REVISION_FILE = "maxRevision.json"
FIRST_REVISION_COUNTER_API_VERSION = "47.0"
QUERY_MAX_REVISION_COUNTER = "SELECT MAX(RevisionCounter) MaxRev FROM SourceMember"
QUERY_ALL_SOURCE_MEMBERS = "SELECT MemberName, MemberType, RevisionCounter FROM SourceMember"
QUERY_SOURCE_MEMBERS_FROM = (
    "SELECT MemberType, MemberName, IsNameObsolete, RevisionCounter "
    "FROM SourceMember WHERE RevisionCounter > {}"
)
SOURCE_MEMBER_NOT_SUPPORTED = "sObject type 'SourceMember' is not supported"


class SourceMember(ForceSourceModel):
    member_type: str = Field(alias="MemberType")
    member_name: Optional[str] = Field(None, alias="MemberName")
    revision_counter: int = Field(0, alias="RevisionCounter")
    is_name_obsolete: bool = Field(False, alias="IsNameObsolete")

    @property
    def key(self) -> str:
        return get_metadata_key(self.member_type, self.member_name)


class MemberRevision(ForceSourceModel):
    server_revision_counter: int = Field(alias="serverRevisionCounter")
    last_retrieved_from_server: Optional[int] = Field(None, alias="lastRetrievedFromServer")
    member_type: str = Field(alias="memberType")
    is_name_obsolete: bool = Field(False, alias="isNameObsolete")

    @property
    def is_synced(self) -> bool:
        return self.server_revision_counter == self.last_retrieved_from_server


class MaxRevisionContents(ForceSourceModel):
    server_max_revision_counter: int = Field(0, alias="serverMaxRevisionCounter")
    source_members: Dict[str, MemberRevision] = Field(default_factory=dict, alias="sourceMembers")


class MaxRevision:
    """Revision counters for one username.

    Construct one per command invocation (see ``UsernameCache``); the
    first construction against an org without a cache file backfills it
    from the org.
    """

    def __init__(self, project, username, tooling):
        self.username = username
        self.path = os.path.join(project.org_state_dir(username), MAX_REVISION_FILE)
        if float(tooling.api_version) < float(FIRST_REVISION_COUNTER_API_VERSION):
            tooling = tooling.with_api_version(FIRST_REVISION_COUNTER_API_VERSION)
        self.tooling = tooling
        self.is_source_tracked_org = True
        self.contents = self._read()
        if not os.path.exists(self.path):
            self._initialize_from_org()

    def _read(self) -> MaxRevisionContents:
        if not os.path.exists(self.path):
            return MaxRevisionContents()
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, int):
            logger.debug("old maxRevision.json detected, converting to new schema")
            contents = MaxRevisionContents(serverMaxRevisionCounter=data)
            contents.write_json(self.path)
            return contents
        return MaxRevisionContents.parse_data(data, self.path)

    def _initialize_from_org(self):
        try:
            records = self.query(QUERY_MAX_REVISION_COUNTER)
        except AccessError as e:
            if e.error_code == "INVALID_TYPE" and SOURCE_MEMBER_NOT_SUPPORTED in str(e):
                self.is_source_tracked_org = False
                return
            raise
        max_revision = (records[0].get("MaxRev") if records else None) or 0
        logger.debug(f"setting serverMaxRevisionCounter to {max_revision} on creation of the file")
        self.contents.server_max_revision_counter = max_revision
        if max_revision > 0:
            self.upsert_source_members(self.query_all_source_members())
        self.write()

    def write(self):
        self.contents.write_json(self.path)

    # Accessors

    @property
    def server_max_revision(self) -> int:
        return self.contents.server_max_revision_counter

    @property
    def source_members(self) -> Dict[str, MemberRevision]:
        return self.contents.source_members

    def has_source_member(self, key) -> bool:
        return key in self.source_members

    def get_source_member(self, key) -> Optional[MemberRevision]:
        return self.source_members.get(key)

    # Updates

    def upsert_source_member(self, change: SourceMember):
        key = change.key
        existing = self.get_source_member(key)
        if existing is not None:
            logger.debug(f"updating {key} to RevisionCounter {change.revision_counter}")
            existing.server_revision_counter = change.revision_counter
            existing.member_type = change.member_type
            existing.is_name_obsolete = change.is_name_obsolete
        elif change.member_name:
            logger.debug(f"inserting {key} with RevisionCounter: {change.revision_counter}")
            self.source_members[key] = MemberRevision(
                serverRevisionCounter=change.revision_counter,
                memberType=change.member_type,
                isNameObsolete=change.is_name_obsolete,
            )

    def upsert_source_members(self, source_members: List[SourceMember]):
        for source_member in source_members:
            self.upsert_source_member(source_member)
        for source_member in source_members:
            if source_member.revision_counter > self.server_max_revision:
                self.contents.server_max_revision_counter = source_member.revision_counter

    def sync_revision_counter(self, source_members: List[SourceMember]):
        for source_member in source_members:
            existing = self.get_source_member(source_member.key)
            if existing is not None:
                existing.last_retrieved_from_server = existing.server_revision_counter

    @staticmethod
    def convert_revision_to_member(key, revision: MemberRevision) -> SourceMember:
        return SourceMember(
            MemberType=revision.member_type,
            MemberName=key[len(f"{revision.member_type}__") :],
            RevisionCounter=revision.server_revision_counter,
            IsNameObsolete=revision.is_name_obsolete,
        )

    def retrieve_changed_elements(self) -> List[SourceMember]:
        """Members changed in the org since they were last synced."""
        self.retrieve_and_write_new_revisions()
        changed = [
            self.convert_revision_to_member(key, revision)
            for key, revision in self.source_members.items()
            if not revision.is_synced
        ]
        logger.debug(f"Found {len(changed)} elements not synced down from server")
        return changed

    def write_source_members(self, source_members: List[SourceMember]):
        if source_members:
            self.upsert_source_members(source_members)
            self.write()

    def update_source_tracking(self, source_members: List[SourceMember] = None):
        """Mark members as synced after a successful pull or push."""
        if source_members is None:
            source_members = self.retrieve_all_source_members()
        if source_members:
            self.upsert_source_members(source_members)
            self.sync_revision_counter(source_members)
            self.write()

    def set_server_max_revision(self, revision):
        if self.server_max_revision < revision:
            logger.debug(f"new serverMaxRevisionCounter = {revision}")
            self.contents.server_max_revision_counter = revision
            self.write()

    def set_max_revision_counter_from_query(self):
        records = self.query(QUERY_MAX_REVISION_COUNTER)
        self.set_server_max_revision((records[0].get("MaxRev") if records else None) or 0)

    def retrieve_and_write_new_revisions(self):
        self.upsert_source_members(self.query_source_members_from(self.server_max_revision))
        self.write()

    def retrieve_all_source_members(self) -> List[SourceMember]:
        self.retrieve_and_write_new_revisions()
        return [
            self.convert_revision_to_member(key, revision)
            for key, revision in self.source_members.items()
        ]

    def poll_for_source_members(self, member_names, poll_time_limit=120) -> List[SourceMember]:
        """Wait for the org to report every name in ``member_names``.

        Gives up after ``poll_time_limit`` seconds and returns whatever
        was found; a timeout is only logged.
        """
        from_revision = self.server_max_revision
        if not member_names:
            poll_time_limit = 0
        logger.debug(
            f"Polling for {len(member_names)} SourceMembers from revision {from_revision} "
            f"with time limit of {poll_time_limit}s"
        )
        remaining = set(member_names)

        def all_found(members):
            remaining.difference_update(member.member_name for member in members)
            return not remaining

        result = poll_until(
            lambda: self.query_source_members_from(from_revision),
            all_found,
            time_limit=poll_time_limit,
            interval=1,
        )
        if result.found:
            logger.debug(f"Retrieved all SourceMember data after {result.elapsed}s")
        else:
            logger.warning(f"Polling for SourceMembers timed out after {result.elapsed}s")
        return result.value

    # Queries

    def query_source_members_from(self, from_revision) -> List[SourceMember]:
        return [
            SourceMember.parse_data(record)
            for record in self.query(QUERY_SOURCE_MEMBERS_FROM.format(from_revision))
        ]

    def query_all_source_members(self) -> List[SourceMember]:
        return [SourceMember.parse_data(record) for record in self.query(QUERY_ALL_SOURCE_MEMBERS)]

    def query(self, soql) -> List[dict]:
        if not self.is_source_tracked_org:
            raise NonSourceTrackedOrgError(self.username)
        return self.tooling.query_all(soql)["records"]
