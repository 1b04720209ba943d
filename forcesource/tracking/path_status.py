import logging
import os
from typing import Dict, List, NamedTuple, Optional

from forcesource.core.exceptions import ForceSourceUsageError
from forcesource.tracking.workspace import SourcePathInfo, Workspace, WorkspaceFileState

logger = logging.getLogger(__name__)
file_move_logger = logging.getLogger(f"{__name__}.moves")


class PathFilter(NamedTuple):
    changes_only: bool = False
    package_directory: Optional[str] = None
    source_path: Optional[str] = None


def _normalize_directory_path(dir_path):
    if dir_path and not dir_path.endswith(os.sep):
        return dir_path + os.sep
    return dir_path


class SourcePathStatusManager:
    """Reports local changes of the workspace against the last synced snapshot."""

    def __init__(self, context, is_stateless=False):
        self.context = context
        self.forceignore = context.forceignore
        self.package_info = context.package_info
        self.is_stateless = is_stateless
        self.workspace = Workspace(
            context.project,
            context.username,
            context.forceignore,
            context.package_info,
            registry=context.registry,
            is_stateless=is_stateless,
        )

    def get_source_path_infos(self, path_filter: PathFilter = PathFilter()) -> List[SourcePathInfo]:
        tracked_packages = [_normalize_directory_path(p) for p in self.workspace.tracked_packages]
        all_packages = [_normalize_directory_path(p) for p in self.package_info.package_paths]
        untracked_packages = [p for p in all_packages if p not in tracked_packages]

        package_dir_path = _normalize_directory_path(
            os.path.abspath(path_filter.package_directory) if path_filter.package_directory else None
        )
        if package_dir_path and not any(package_dir_path.startswith(p) for p in all_packages):
            raise ForceSourceUsageError(
                "The root directory must be a package directory listed in sfdx-project.json."
            )

        if self.is_stateless and path_filter.source_path:
            self.workspace.handle_artifact(path_filter.source_path)
        elif untracked_packages:
            self.workspace.walk_directories([p.rstrip(os.sep) for p in untracked_packages])

        processed: Dict[str, SourcePathInfo] = {}
        added: List[SourcePathInfo] = []
        deleted: List[SourcePathInfo] = []

        for info in self.workspace.values():
            if info.is_workspace:
                # only records where the project lived
                continue
            include = True
            if package_dir_path:
                include = package_dir_path in _normalize_directory_path(info.source_path)
            if include and path_filter.source_path:
                include = path_filter.source_path in info.source_path
            if self.forceignore.denies(info.source_path):
                include = False

            pending = info.get_pending_path_info(self.package_info)
            if pending is None:
                if not path_filter.changes_only and include:
                    processed[info.source_path] = info
                continue
            if not include:
                continue
            if pending.is_directory and not pending.is_deleted():
                for new_info in self._process_changed_directory(pending.source_path):
                    processed[new_info.source_path] = new_info
                    if new_info.is_new():
                        added.append(new_info)
            processed[pending.source_path] = pending
            if pending.is_deleted():
                deleted.append(pending)

        return self._process_file_moves(added, deleted, processed)

    def _process_file_moves(self, added, deleted, processed) -> List[SourcePathInfo]:
        """Pair deletes with adds of the same relative path and treat them as moves."""
        if not (added and deleted):
            return list(processed.values())
        logger.debug(
            f"There were {len(added)} adds and {len(deleted)} deletes. Checking if these are moves."
        )
        updates = []
        while deleted:
            deleted_info = deleted.pop()
            full_path = deleted_info.source_path
            package_path = self.package_info.get_package_path(deleted_info.package) or ""
            path_after_package_dir = full_path.replace(package_path, "", 1)
            path_within_package = os.sep.join(path_after_package_dir.split(os.sep)[2:])

            match = next(
                (
                    info
                    for info in added
                    if info.source_path.endswith(path_after_package_dir)
                    or info.source_path.endswith(path_within_package)
                ),
                None,
            )
            if match is None:
                continue
            file_move_logger.info(f"{full_path} was moved to {match.source_path}")
            if match.size != deleted_info.size:
                logger.debug(f"{match.source_path} was moved and changed")
                updates.append(
                    match.clone(
                        size=deleted_info.size,
                        state=WorkspaceFileState.CHANGED,
                        content_hash=deleted_info.content_hash,
                    )
                )
            else:
                updates.append(match)
            processed[match.source_path] = match
            processed.pop(full_path, None)
            updates.append(deleted_info)

        if updates:
            for info in list(updates):
                dir_info = processed.get(os.path.dirname(info.source_path))
                if dir_info is not None:
                    updates.append(dir_info)
            self.commit_changed_path_infos(updates)
        return list(processed.values())

    def commit_changed_path_infos(self, source_path_infos: List[SourcePathInfo]):
        """Record the given infos as the new synced state."""
        for info in source_path_infos:
            if info.state is WorkspaceFileState.UNCHANGED:
                continue
            if info.is_deleted():
                self.workspace.unset(info.source_path)
            else:
                info.state = WorkspaceFileState.UNCHANGED
                self.workspace.set(info.source_path, info)
        self.workspace.write()

    def update_infos_for_paths(self, updated_paths: List[str], deleted_paths: List[str]):
        """Refresh the snapshot after files were written or removed by a sync."""
        updated_paths = list(updated_paths)
        for updated_path in list(updated_paths):
            if self.workspace.has(updated_path):
                continue
            parent = updated_path
            while True:
                next_parent = os.path.dirname(parent)
                if next_parent == parent or not next_parent.startswith(self.workspace.workspace_path):
                    break
                parent = next_parent
                updated_paths.append(parent)
                if self.workspace.has(parent):
                    break

        for deleted_path in deleted_paths:
            self.workspace.unset(deleted_path)

        for updated_path in dict.fromkeys(updated_paths):
            existing = self.workspace.get(updated_path)
            info = self.workspace.create_path_info(
                updated_path,
                is_workspace=existing.is_workspace if existing else False,
                is_artifact_root=existing.is_artifact_root if existing else False,
            )
            info.state = WorkspaceFileState.UNCHANGED
            self.workspace.set(updated_path, info)
        self.workspace.write()

    def backup(self):
        self.workspace.backup()

    def revert(self):
        self.workspace.revert()

    def _process_changed_directory(self, directory_path) -> List[SourcePathInfo]:
        infos = []
        for name in sorted(os.listdir(directory_path)):
            full_path = os.path.join(directory_path, name)
            if not self.workspace.has(full_path):
                infos.extend(self._get_new_path_infos(full_path))
        return infos

    def _get_new_path_infos(self, source_path) -> List[SourcePathInfo]:
        info = self.workspace.create_path_info(source_path)
        if not self.workspace.is_valid_source_path(info):
            return []
        infos = [info]
        if info.is_directory:
            for name in sorted(os.listdir(source_path)):
                infos.extend(self._get_new_path_infos(os.path.join(source_path, name)))
        return infos
