"""An aggregate entity and every workspace file that makes it up.

``CustomObject__Account`` is one aggregate made of the container
``Account.object-meta.xml`` plus a file per field, list view and so on.
``AggregateSourceElement`` knows the strategies of its type and moves the
entity between the Metadata API format and the source format.
"""
import logging
import os
from typing import Dict, List, Optional, Tuple

from forcesource.core.exceptions import MissingContentError, MissingMetadataFileError
from forcesource.decomposition import factory
from forcesource.decomposition.commit import DUP_SUFFIX
from forcesource.decomposition.document import MetadataDocument
from forcesource.metadata import path_utils
from forcesource.metadata.registry import get_metadata_key
from forcesource.metadata.types import DefaultMetadataType, FolderMetadataType, MetadataTypeFactory
from forcesource.tracking.workspace import WorkspaceElement, WorkspaceFileState
from forcesource.utils import delete_if_exists

__all__ = ("AggregateSourceElement", "WorkspaceElement")

logger = logging.getLogger(__name__)

CommitPaths = Tuple[List[str], List[str], List[str]]


class AggregateSourceElement:
    def __init__(
        self,
        metadata_type: DefaultMetadataType,
        aggregate_full_name: str,
        metadata_file_path: str,
        registry,
        package_info=None,
        source_locations=None,
        forceignore=None,
    ):
        self.metadata_type = metadata_type
        self.aggregate_full_name = aggregate_full_name
        self.metadata_file_path = metadata_file_path
        self.registry = registry
        self.forceignore = forceignore
        self.type_factory = MetadataTypeFactory(registry)

        config = metadata_type.decomposition_config
        self.decomposition_strategy = factory.get_decomposition_strategy(config)
        self.workspace_strategy = factory.get_workspace_strategy(
            config, package_info=package_info, source_locations=source_locations
        )
        self.commit_strategy = factory.get_commit_strategy(config)
        self.content_strategy = factory.get_content_strategy(
            config, metadata_type, registry=registry, forceignore=forceignore
        )

        self.workspace_elements: List[WorkspaceElement] = []
        self.pending_deleted_workspace_elements: List[WorkspaceElement] = []
        self.retrieved_metadata_path: Optional[str] = None
        self.retrieved_content_paths: Optional[List[str]] = None
        self.is_duplicate = False
        self._deleted: Optional[bool] = None

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.key}>"

    @property
    def metadata_name(self) -> str:
        return self.metadata_type.metadata_name

    @property
    def key(self) -> str:
        return get_metadata_key(self.metadata_name, self.aggregate_full_name)

    @property
    def container_path(self) -> Optional[str]:
        return self.workspace_strategy.get_container_path(
            self.metadata_file_path, self.metadata_type.ext
        )

    # Workspace paths

    def get_metadata_paths(self, metadata_file_path=None) -> List[str]:
        """The container and decomposed files of this entity that exist on disk."""
        metadata_file_path = metadata_file_path or self.metadata_file_path
        ext = self.metadata_type.ext
        paths = []
        container_path = self.workspace_strategy.get_container_path(metadata_file_path, ext)
        if container_path is not None and os.path.exists(container_path):
            paths.append(container_path)
        for decomposed_paths in self.workspace_strategy.find_decomposed_paths(
            metadata_file_path, ext
        ).values():
            paths.extend(decomposed_paths)
        return paths

    def get_content_paths(self, metadata_file_path=None) -> List[str]:
        if not self.metadata_type.has_content:
            return []
        return self.content_strategy.get_content_paths(metadata_file_path or self.metadata_file_path)

    def get_workspace_paths_for_type_and_full_name(self, metadata_name, full_name) -> List[str]:
        return self._get_content_paths_for_full_name(
            full_name
        ) + self._get_metadata_paths_for_type_and_full_name(metadata_name, full_name)

    def _get_content_paths_for_full_name(self, full_name) -> List[str]:
        paths = []
        for content_path in self.get_content_paths():
            content_type = self.type_factory.get_metadata_type_from_source_path(content_path)
            if content_type and content_type.get_full_name_from_file_path(content_path) == full_name:
                paths.append(content_path)
        return paths

    def _get_metadata_paths_for_type_and_full_name(self, metadata_name, full_name) -> List[str]:
        wanted_type = self.type_factory.get_metadata_type_from_metadata_name(metadata_name)
        if wanted_type is None:
            return []
        paths = []
        for decomposed_path in self.get_metadata_paths():
            path_type = self.type_factory.get_metadata_type_from_source_path(decomposed_path)
            if (
                type(path_type) is type(wanted_type)
                and path_type.get_full_name_from_file_path(decomposed_path) == full_name
            ):
                paths.append(decomposed_path)
        return paths

    # Workspace elements

    def add_workspace_element(self, workspace_element: WorkspaceElement):
        self.workspace_elements.append(workspace_element)

    def add_pending_deleted_workspace_element(self, workspace_element: WorkspaceElement):
        self.pending_deleted_workspace_elements.append(workspace_element)

    def _workspace_element_for_path(self, path, state) -> Optional[WorkspaceElement]:
        type_path = path[: -len(DUP_SUFFIX)] if path.endswith(DUP_SUFFIX) else path
        path_type = self.type_factory.get_metadata_type_from_source_path(type_path)
        if path_type is None:
            logger.debug(f"No metadata type found for {path}")
            return None
        full_name = path_type.get_full_name_from_file_path(type_path)
        return WorkspaceElement(
            path_type.metadata_name,
            full_name,
            path,
            state,
            path_type.delete_supported(full_name),
        )

    def _add_workspace_elements(self, paths, state):
        for path in paths:
            element = self._workspace_element_for_path(path, state)
            if element is not None:
                self.add_workspace_element(element)

    # Deletes

    def is_deleted(self) -> bool:
        if self._deleted is not None:
            return self._deleted
        return self._is_aggregate_deleted()

    def validate_if_deleted_workspace_element(self, workspace_element: WorkspaceElement):
        """A deleted container is only allowed when nothing else of the entity remains."""
        if workspace_element.state is not WorkspaceFileState.DELETED:
            return
        content_paths = self.get_content_paths()
        if workspace_element.source_path == self.container_path:
            remaining = content_paths or self.get_metadata_paths()
            if remaining and (
                not self.decomposition_strategy.is_composable()
                or not self.metadata_type.is_standard_member(workspace_element.full_name)
            ):
                raise MissingMetadataFileError(workspace_element.source_path)
        self.metadata_type.validate_deleted_content_path(
            workspace_element.source_path, content_paths, self.registry
        )

    def _is_aggregate_deleted(self) -> bool:
        is_deleted = False
        for element in self.workspace_elements:
            self.validate_if_deleted_workspace_element(element)
            if element.state is not WorkspaceFileState.DELETED:
                continue
            deleted_path = element.source_path
            if deleted_path == self.container_path:
                is_deleted = True
                if self.decomposition_strategy.is_composable() and not self.get_metadata_paths():
                    path_utils.clean_empty_dirs(os.path.dirname(self.metadata_file_path))
            if self.metadata_type.is_content_path(deleted_path):
                if self.metadata_type.main_content_file_exists(self.metadata_file_path):
                    is_deleted = False
                elif os.path.exists(self.metadata_file_path):
                    self.mark_for_delete()
        return is_deleted

    def mark_for_delete(self):
        """Queue every remaining file of the entity for deletion on the next commit."""
        self._deleted = True
        for path in self.get_metadata_paths() + self.get_content_paths():
            element = self._workspace_element_for_path(path, WorkspaceFileState.DELETED)
            if element is not None:
                self.add_pending_deleted_workspace_element(element)

    def commit_deletes(self) -> List[str]:
        deleted_paths = sorted(
            (element.source_path for element in self.pending_deleted_workspace_elements),
            key=path_utils.delete_order_key,
        )
        for path in deleted_paths:
            logger.debug(f"Deleting {path}")
            delete_if_exists(path)
        return deleted_paths

    # Metadata API format -> source format

    def check_for_duplicates(self):
        if self.metadata_type.entity_exists_in_workspace(self.metadata_file_path):
            self.is_duplicate = True

    def commit(self, manifest=None, unsupported_mime_types=None) -> CommitPaths:
        """Write the retrieved files of this entity into the workspace.

        Returns ``(new_paths, updated_paths, deleted_paths)``; every path
        touched, including ``.dup`` files, is also added to
        ``workspace_elements``.
        """
        new_paths: List[str] = []
        updated_paths: List[str] = []
        deleted_paths: List[str] = self.commit_deletes()
        dup_paths: List[str] = []

        results = []
        if self.retrieved_metadata_path is not None:
            results.append(self._decompose_metadata(manifest))
        if self.metadata_type.has_content and self.retrieved_content_paths is not None:
            results.append(
                self.content_strategy.save_content(
                    self.metadata_file_path,
                    self.retrieved_content_paths,
                    self.retrieved_metadata_path,
                    self.is_duplicate,
                    unsupported_mime_types,
                )
            )
        for new, updated, deleted, dups in results:
            new_paths.extend(new)
            updated_paths.extend(updated)
            deleted_paths.extend(deleted)
            dup_paths.extend(dups)

        self._add_workspace_elements(new_paths, WorkspaceFileState.NEW)
        self._add_workspace_elements(updated_paths, WorkspaceFileState.CHANGED)
        self._add_workspace_elements(deleted_paths, WorkspaceFileState.DELETED)
        self._add_workspace_elements(dup_paths, WorkspaceFileState.DUP)
        self._add_empty_folder()
        return new_paths, updated_paths, deleted_paths

    def _add_empty_folder(self):
        if not self.metadata_type.is_folder_type():
            return
        folder_path = FolderMetadataType.create_empty_folder(
            self.workspace_elements, self.metadata_file_path, self.metadata_type.ext
        )
        if folder_path:
            self.add_workspace_element(
                WorkspaceElement(
                    self.metadata_name,
                    self.aggregate_full_name,
                    folder_path,
                    WorkspaceFileState.NEW,
                    True,
                )
            )

    def _decompose_metadata(self, manifest=None):
        composed = MetadataDocument.from_file(self.retrieved_metadata_path)
        container, decompositions = self.decomposition_strategy.decompose(
            composed,
            self.metadata_type.get_aggregate_full_name_from_file_path(self.metadata_file_path),
            manifest,
            self.metadata_type,
        )
        documents = self._get_paths(container, decompositions)
        return self.commit_strategy.commit(documents, self.get_metadata_paths(), self.is_duplicate)

    def _get_paths(self, container, decompositions) -> Dict[str, MetadataDocument]:
        ext = self.metadata_type.ext
        documents: Dict[str, MetadataDocument] = {}
        container_path = self.container_path
        if container_path is not None and container is not None:
            documents[container_path] = container
        for subtype_config, subtype_documents in decompositions.items():
            source_dir = self.workspace_strategy.get_decomposed_subtype_dir_from_metadata_file(
                self.metadata_file_path, ext, subtype_config
            )
            for document in subtype_documents:
                file_name = self.workspace_strategy.get_decomposed_file_name(
                    document.annotation, subtype_config
                )
                documents[os.path.join(source_dir, file_name)] = document
        return documents

    # Source format -> Metadata API format

    def get_file_path_translations(
        self, md_dir, tmp_dir, unsupported_mime_types=None, work_dir=None
    ) -> List[Dict[str, str]]:
        """Pairs of ``{"sourcePath", "mdapiPath"}`` to copy into ``md_dir``."""
        translations = []
        if self.metadata_type.has_content:
            translations.extend(
                self._get_content_path_translations(md_dir, unsupported_mime_types, work_dir)
            )
        if self.metadata_type.should_get_metadata_translation():
            translations.append(self._get_metadata_path_translation(md_dir, tmp_dir))
        return translations

    def _get_content_path_translations(self, md_dir, unsupported_mime_types, work_dir):
        translations = []
        for origin_content_path in self.metadata_type.get_origin_content_paths_for_source_convert(
            self.metadata_file_path,
            forceignore=self.forceignore,
            unsupported_mime_types=unsupported_mime_types,
            work_dir=work_dir,
        ):
            mdapi_content_path = self.metadata_type.get_mdapi_content_path_for_source_convert(
                origin_content_path, self.aggregate_full_name, md_dir
            )
            if not origin_content_path or not os.path.exists(origin_content_path):
                raise MissingContentError(mdapi_content_path)
            translations.append({"sourcePath": origin_content_path, "mdapiPath": mdapi_content_path})
        return translations

    def _get_metadata_path_translation(self, md_dir, tmp_dir):
        source_path = self.metadata_file_path
        if self.decomposition_strategy.is_composable():
            source_path = self.compose_metadata(tmp_dir)
        return {
            "sourcePath": source_path,
            "mdapiPath": self.metadata_type.get_mdapi_metadata_path(
                self.metadata_file_path, self.aggregate_full_name, md_dir
            ),
        }

    def _include_decomposition(self, path) -> bool:
        """With sparse composition only new and changed files are sent."""
        if not self.metadata_type.decomposition_config.use_sparse_composition:
            return True
        return any(
            element.source_path == path
            and element.state in (WorkspaceFileState.NEW, WorkspaceFileState.CHANGED)
            for element in self.workspace_elements
        )

    def compose_metadata(self, tmp_dir) -> str:
        """Compose the entity into a single metadata file under ``tmp_dir``."""
        container = None
        container_path = self.container_path
        if container_path is not None and self._include_decomposition(container_path):
            if not os.path.exists(container_path):
                raise MissingMetadataFileError(container_path)
            container = MetadataDocument.from_file(container_path)

        decompositions: Dict = {}
        for subtype_config, paths in self.workspace_strategy.find_decomposed_paths(
            self.metadata_file_path, self.metadata_type.ext
        ).items():
            for path in paths:
                if self._include_decomposition(path):
                    decompositions.setdefault(subtype_config, []).append(
                        MetadataDocument.from_file(path)
                    )

        composed = self.decomposition_strategy.compose(container, decompositions)
        composed_path = self.metadata_type.get_aggregate_metadata_path_in_dir(
            tmp_dir, self.aggregate_full_name
        )
        os.makedirs(os.path.dirname(composed_path), exist_ok=True)
        composed.write(composed_path)
        return composed_path
