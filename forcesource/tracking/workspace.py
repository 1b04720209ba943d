"""The local half of source tracking.

Every file and directory of the tracked package directories is recorded
in ``.sfdx/orgs/<username>/sourcePathInfos.json`` with its size, times
and a content hash. Comparing a fresh stat against that snapshot tells
which paths changed since the last sync with the org.
"""
import enum
import json
import logging
import os
import shutil
from typing import Dict, Iterable, List, NamedTuple, Optional

from pydantic import Field

from forcesource.core.exceptions import InvalidPackageDirectory, UnexpectedFileFound
from forcesource.metadata.registry import METADATA_FILE_EXT
from forcesource.utils.hashing import hash_path
from forcesource.utils.models import ForceSourceModel

logger = logging.getLogger(__name__)

SOURCE_PATH_INFOS_FILE = "sourcePathInfos.json"
PACKAGE2_CONFIG_FILE_NAMES = ("package2-descriptor.json", "package2-manifest.json")


class WorkspaceFileState(enum.Enum):
    UNCHANGED = "u"
    CHANGED = "c"
    DELETED = "d"
    NEW = "n"
    DUP = "p"

    @property
    def readable(self) -> str:
        return READABLE_STATES[self]


READABLE_STATES = {
    WorkspaceFileState.UNCHANGED: "Unchanged",
    WorkspaceFileState.CHANGED: "Changed",
    WorkspaceFileState.DELETED: "Deleted",
    WorkspaceFileState.NEW: "Add",
    WorkspaceFileState.DUP: "Duplicate",
}


class WorkspaceElement(NamedTuple):
    """One file touched by a convert or sync, reported to the user."""

    metadata_name: str
    full_name: str
    source_path: str
    state: WorkspaceFileState
    delete_supported: bool = True

    def to_object(self) -> dict:
        return {
            "state": self.state.readable,
            "fullName": self.full_name,
            "type": self.metadata_name,
            "filePath": self.source_path,
            "deleteSupported": self.delete_supported,
        }


class SourcePathInfo(ForceSourceModel):
    source_path: str = Field(alias="sourcePath")
    is_directory: bool = Field(False, alias="isDirectory")
    size: Optional[int] = None
    modified_time: Optional[float] = Field(None, alias="modifiedTime")
    change_time: Optional[float] = Field(None, alias="changeTime")
    content_hash: Optional[str] = Field(None, alias="contentHash")
    is_metadata_file: bool = Field(False, alias="isMetadataFile")
    state: WorkspaceFileState = WorkspaceFileState.NEW
    is_workspace: bool = Field(False, alias="isWorkspace")
    is_artifact_root: bool = Field(False, alias="isArtifactRoot")
    package: Optional[str] = None
    metadata_type: Optional[str] = Field(None, alias="metadataType")

    @classmethod
    def from_path(
        cls,
        source_path,
        package_info=None,
        registry=None,
        defer_content_hash=False,
        **kwargs,
    ) -> "SourcePathInfo":
        """Stat ``source_path``; a missing path gives a DELETED info."""
        info = cls(sourcePath=source_path, **kwargs)
        info.state = WorkspaceFileState.NEW
        if info.package is None and package_info is not None:
            info.package = package_info.get_package_name_from_source_path(source_path)
        try:
            stat = os.stat(source_path)
        except FileNotFoundError:
            info.state = WorkspaceFileState.DELETED
            return info
        info.is_directory = os.path.isdir(source_path)
        info.is_metadata_file = not info.is_directory and source_path.endswith(METADATA_FILE_EXT)
        if info.metadata_type is None and not info.is_directory and registry is not None:
            type_def = registry.get_type_definition_by_file_name(source_path, use_true_ext_type=True)
            if type_def is not None:
                info.metadata_type = type_def.metadata_name
        info.size = stat.st_size
        info.modified_time = stat.st_mtime
        info.change_time = stat.st_ctime
        if not defer_content_hash:
            info.compute_content_hash()
        return info

    def compute_content_hash(self):
        self.content_hash = hash_path(self.source_path)

    def get_pending_path_info(self, package_info=None) -> Optional["SourcePathInfo"]:
        """Compare the recorded snapshot with the path on disk.

        Returns ``None`` when nothing changed, otherwise a new info in the
        NEW, CHANGED or DELETED state. Timestamps of an unchanged path
        whose stat moved are refreshed in place.
        """
        pending = SourcePathInfo.from_path(
            self.source_path,
            package_info=package_info,
            defer_content_hash=True,
            metadataType=self.metadata_type,
            isWorkspace=self.is_workspace,
            package=self.package,
        )
        if pending.is_deleted():
            pending.is_directory = self.is_directory
            pending.is_metadata_file = self.is_metadata_file
            pending.size = self.size
            return pending
        if self.is_new():
            return self
        if (
            pending.is_directory
            or pending.size != self.size
            or pending.modified_time != self.modified_time
            or pending.change_time != self.change_time
        ):
            pending.compute_content_hash()
            if pending.content_hash != self.content_hash:
                pending.state = WorkspaceFileState.CHANGED
                return pending
            self.size = pending.size
            self.modified_time = pending.modified_time
            self.change_time = pending.change_time
        return None

    def is_deleted(self):
        return self.state is WorkspaceFileState.DELETED

    def is_new(self):
        return self.state is WorkspaceFileState.NEW

    def is_changed(self):
        return self.state is WorkspaceFileState.CHANGED

    def clone(self, **overrides) -> "SourcePathInfo":
        return self.model_copy(update=overrides)


class Workspace:
    """The persisted ``path -> SourcePathInfo`` map for one org."""

    def __init__(
        self,
        project,
        username,
        forceignore,
        package_info,
        registry=None,
        is_stateless=False,
    ):
        self.project = project
        self.workspace_path = project.root
        self.forceignore = forceignore
        self.package_info = package_info
        self.registry = registry
        self.is_stateless = is_stateless
        self.path = None
        self.backup_path = None
        if username:
            self.path = os.path.join(project.org_state_dir(username), SOURCE_PATH_INFOS_FILE)
            self.backup_path = f"{self.path}.bak"
        self.path_infos: Dict[str, SourcePathInfo] = {}
        self.tracked_packages: List[str] = []

        if is_stateless:
            logger.debug("Initializing stateless workspace")
            self.tracked_packages = list(package_info.package_paths)
        elif self.path is None:
            # without an org nothing is persisted and every path stays NEW
            logger.debug("Initializing in-memory workspace")
            self.initialize_stateful()
        else:
            self._initialize_cached()
            if not self.path_infos:
                self.initialize_stateful()

    # Loading

    def _read(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            contents = json.load(f)
        # older caches stored a list of [path, info] pairs
        if isinstance(contents, list):
            contents = dict(contents)
        return contents

    def _initialize_cached(self):
        logger.debug("Reading workspace from cache")
        infos = [SourcePathInfo.parse_data(data, self.path) for data in self._read().values()]
        old_workspace_path = None
        for info in infos:
            if info.package is None:
                info.package = self.package_info.get_package_name_from_source_path(info.source_path)
            if info.is_workspace:
                old_workspace_path = info.source_path
            if info.is_artifact_root:
                self.tracked_packages.append(info.source_path)

        moved = old_workspace_path is not None and old_workspace_path != self.workspace_path
        for info in infos:
            if moved:
                info.source_path = os.path.join(
                    self.workspace_path, os.path.relpath(info.source_path, old_workspace_path)
                )
            self.path_infos[info.source_path] = info
        if moved:
            self.tracked_packages = [
                os.path.join(self.workspace_path, os.path.relpath(p, old_workspace_path))
                for p in self.tracked_packages
            ]
            logger.debug(f"Project moved from {old_workspace_path}; rewriting {self.path}")
            self.write()

    def initialize_stateful(self):
        logger.debug("Initializing stateful workspace")
        self.tracked_packages = list(self.package_info.package_paths)
        self.walk_directories(self.tracked_packages)
        self.write()

    def rewrite_infos(self):
        self.path_infos = {}
        self.initialize_stateful()

    # Walking

    def walk_directories(self, directories: Iterable[str]):
        for directory in directories:
            if not os.path.exists(directory):
                raise InvalidPackageDirectory(directory)
            self.walk(directory)

    def walk(self, directory, recur=False):
        if not recur:
            self.handle_artifact(directory, directory)
        for name in sorted(os.listdir(directory)):
            source_path = os.path.join(directory, name)
            info = self.handle_artifact(source_path, directory)
            if info.is_directory and self.has(source_path):
                self.walk(source_path, recur=True)

    def handle_artifact(self, source_path, parent_directory=None) -> SourcePathInfo:
        info = self.create_path_info(
            source_path, is_artifact_root=bool(parent_directory) and source_path == parent_directory
        )
        if self.is_valid_source_path(info):
            self.path_infos[source_path] = info
        return info

    def create_path_info(self, source_path, is_workspace=False, is_artifact_root=False):
        return SourcePathInfo.from_path(
            source_path,
            package_info=self.package_info,
            registry=self.registry,
            isWorkspace=is_workspace,
            isArtifactRoot=is_artifact_root,
        )

    def is_valid_source_path(self, info: SourcePathInfo) -> bool:
        source_path = info.source_path
        basename = os.path.basename(source_path)
        if (
            basename.startswith(".")
            or basename.endswith(".dup")
            or basename in PACKAGE2_CONFIG_FILE_NAMES
            or self.forceignore.denies(source_path)
        ):
            return False
        if self.registry is not None and not info.is_directory and not info.is_deleted():
            if self.registry.get_type_definition_by_file_name(source_path) is None:
                raise UnexpectedFileFound(source_path)
        return True

    # Map access

    def get(self, source_path) -> Optional[SourcePathInfo]:
        return self.path_infos.get(source_path)

    def has(self, source_path) -> bool:
        return source_path in self.path_infos

    def set(self, source_path, info: SourcePathInfo):
        self.path_infos[source_path] = info

    def unset(self, source_path):
        self.path_infos.pop(source_path, None)

    def values(self) -> List[SourcePathInfo]:
        return list(self.path_infos.values())

    # Persistence

    @property
    def is_persisted(self) -> bool:
        return self.path is not None and not self.is_stateless

    def write(self):
        if not self.has(self.workspace_path):
            self.set(self.workspace_path, self.create_path_info(self.workspace_path, is_workspace=True))
        if not self.is_persisted:
            return
        os.makedirs(os.path.dirname(self.path), exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(
                {path: info.to_json_data() for path, info in self.path_infos.items()}, f, indent=4
            )

    def backup(self):
        if self.is_persisted and os.path.exists(self.path):
            shutil.copyfile(self.path, self.backup_path)

    def revert(self):
        if not self.is_persisted or not os.path.exists(self.backup_path):
            return
        with open(self.backup_path, "r", encoding="utf-8") as f:
            contents = json.load(f)
        self.path_infos = {
            path: SourcePathInfo.parse_data(data, self.backup_path) for path, data in contents.items()
        }
        self.write()
        os.unlink(self.backup_path)
