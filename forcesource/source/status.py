"""Local and remote changes of a source tracked org, and conflicts between them."""
import logging
import os
import shutil
from typing import List, Optional

from forcesource.metadata.registry import get_metadata_key
from forcesource.source.workspace_adapter import SourceWorkspaceAdapter
from forcesource.tracking.max_revision import MAX_REVISION_FILE, MaxRevision, SourceMember
from forcesource.tracking.nondecomposed_index import NON_DECOMPOSED_ELEMENTS_INDEX_FILE
from forcesource.tracking.workspace import SOURCE_PATH_INFOS_FILE, WorkspaceFileState
from forcesource.utils.models import ForceSourceModel

logger = logging.getLogger(__name__)


class StatusOptions(ForceSourceModel):
    local: bool = True
    remote: bool = True


class SourceStatusApi:
    """Compares the workspace snapshot and the org's ``SourceMember`` revisions.

    Local rows come from the workspace elements that changed since the
    last sync. Remote rows come from members whose server revision moved
    past the revision last retrieved. A local row is a conflict when the
    org changed the same element.
    """

    def __init__(self, context, max_revision: MaxRevision, adapter: SourceWorkspaceAdapter = None):
        self.context = context
        self.registry = context.registry
        self.type_factory = context.type_factory
        self.max_revision = max_revision
        self.adapter = adapter or SourceWorkspaceAdapter(context)
        self.local_changes: List[dict] = []
        self.remote_changes: List[dict] = []

    def do_status(self, options: StatusOptions):
        local_elements = []
        if options.local:
            for element in self.adapter.get_aggregate_source_elements(True).values():
                for workspace_element in element.workspace_elements:
                    element.validate_if_deleted_workspace_element(workspace_element)
                    local_elements.append(workspace_element)
        if options.remote:
            self.populate_remote_changes()
        for workspace_element in local_elements:
            change = workspace_element.to_object()
            if options.remote and self._has_conflict(workspace_element):
                change["isConflict"] = True
            self.local_changes.append(change)
        return self

    @property
    def conflicts(self) -> List[dict]:
        return [change for change in self.local_changes if change.get("isConflict")]

    # Remote

    def populate_remote_changes(self):
        source_members = self.max_revision.retrieve_changed_elements()
        remote_changes = []
        for source_member in source_members:
            member_type = self.type_factory.get_metadata_type_from_metadata_name(source_member.member_type)
            if member_type is None:
                continue
            source_member.member_name = member_type.handle_slashes_for_source_member_name(
                source_member.member_name
            )
            if self._is_ignored(source_member, member_type):
                continue
            remote_changes.extend(self._remote_change_rows(source_member, member_type))
        # a member deleted in the org with no local file is nothing to report
        self.remote_changes = [
            change
            for change in remote_changes
            if not (change["state"] == WorkspaceFileState.DELETED.readable and not change.get("filePath"))
        ]

    def _is_ignored(self, source_member: SourceMember, member_type) -> bool:
        aggregate_name = member_type.get_aggregate_full_name_from_source_member_name(
            source_member.member_name
        )
        return self.context.forceignore.denies(
            os.path.join(self.context.project.root, f"{aggregate_name}.{member_type.ext}")
        )

    def _remote_change_rows(self, source_member: SourceMember, member_type) -> List[dict]:
        if not member_type.track_remote_change_for_source_member_name(source_member.member_name):
            return []
        if not self.registry.is_supported(member_type.metadata_name):
            return []
        workspace_elements = self._corresponding_workspace_elements(source_member, member_type)
        if source_member.is_name_obsolete:
            state = WorkspaceFileState.DELETED
        elif workspace_elements:
            state = WorkspaceFileState.CHANGED
        else:
            state = WorkspaceFileState.NEW
        display_type = member_type.get_display_name_for_remote_change(source_member.member_type)
        if not workspace_elements:
            return [
                {
                    "state": state.readable,
                    "fullName": source_member.member_name,
                    "type": display_type,
                    "revisionCounter": source_member.revision_counter,
                }
            ]
        return [
            {
                "state": state.readable,
                "fullName": workspace_element.full_name,
                "type": display_type,
                "filePath": workspace_element.source_path,
                "revisionCounter": source_member.revision_counter,
            }
            for workspace_element in workspace_elements
        ]

    def _corresponding_workspace_elements(self, source_member: SourceMember, member_type):
        aggregate_metadata_name = member_type.aggregate_metadata_name
        if not self.adapter.source_locations.get_file_path(
            aggregate_metadata_name, source_member.member_name
        ):
            return []
        aggregate_full_name = member_type.get_aggregate_full_name_from_source_member_name(
            source_member.member_name
        )
        element = self.adapter.get_aggregate_source_elements(False).get(
            get_metadata_key(aggregate_metadata_name, aggregate_full_name)
        )
        if element is None:
            return []
        matches = []
        for workspace_element in element.workspace_elements:
            element_type = self.type_factory.get_metadata_type_from_metadata_name(
                workspace_element.metadata_name
            )
            if element_type is None:
                continue
            if element_type.source_member_full_name_corresponds_with_workspace_full_name(
                source_member.member_name, workspace_element.full_name
            ) or element_type.source_member_full_name_corresponds_with_workspace_full_name(
                f"{source_member.member_type}s", workspace_element.full_name
            ):
                matches.append(workspace_element)
        return matches

    def _has_conflict(self, workspace_element) -> bool:
        has_conflict = False
        for remote_change in self.remote_changes:
            if remote_change["fullName"] != workspace_element.full_name:
                continue
            if remote_change["type"] != workspace_element.metadata_name:
                continue
            remote_change["isConflict"] = True
            has_conflict = True
        return has_conflict


def reset_source_tracking(context, max_revision: MaxRevision, revision: Optional[int] = None) -> int:
    """Treat the org and the workspace as in sync as of ``revision``.

    Without a revision the org's current maximum is used. Returns the
    revision the tracking was reset to.
    """
    members = max_revision.query_all_source_members()
    if revision is None:
        revision = max((member.revision_counter for member in members), default=0)
    synced = [member for member in members if member.revision_counter <= revision]
    max_revision.upsert_source_members(synced)
    max_revision.sync_revision_counter(synced)
    max_revision.contents.server_max_revision_counter = revision
    max_revision.write()

    adapter = SourceWorkspaceAdapter(context)
    adapter.status_manager.workspace.rewrite_infos()
    adapter.status_manager.commit_changed_path_infos(adapter.status_manager.workspace.values())
    logger.info(f"Reset local tracking files to revision {revision}.")
    return revision


def clear_source_tracking(context) -> List[str]:
    """Delete the tracking files of the context's org; returns the removed paths."""
    org_dir = context.project.org_state_dir(context.username)
    removed = []
    tracking_files = (
        MAX_REVISION_FILE,
        NON_DECOMPOSED_ELEMENTS_INDEX_FILE,
        SOURCE_PATH_INFOS_FILE,
        f"{SOURCE_PATH_INFOS_FILE}.bak",
    )
    for file_name in tracking_files:
        path = os.path.join(org_dir, file_name)
        if os.path.exists(path):
            os.remove(path)
            removed.append(path)
    if os.path.isdir(org_dir) and not os.listdir(org_dir):
        shutil.rmtree(org_dir)
    context.cache.clear(context.username)
    return removed
