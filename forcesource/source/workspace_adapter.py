"""Groups workspace files into aggregate source elements and writes them back."""
import logging
import os
from typing import Dict, List, Optional

from forcesource.metadata.registry import get_metadata_key
from forcesource.metadata.types import MetadataTypeFactory
from forcesource.source.aggregate import AggregateSourceElement
from forcesource.tracking.path_status import PathFilter, SourcePathStatusManager
from forcesource.tracking.source_locations import SourceLocations
from forcesource.tracking.workspace import WorkspaceElement, WorkspaceFileState

logger = logging.getLogger(__name__)

SOURCE_SUBDIRECTORY = os.path.join("main", "default")

SourceElements = Dict[str, AggregateSourceElement]


class SourceWorkspaceAdapter:
    """The bridge between ``SourcePathInfo`` records and ``AggregateSourceElement``.

    ``default_package_path`` is where entities not yet in the workspace are
    written, relative to the project root. ``from_convert`` keeps entities
    found outside that package from being written in place.
    """

    def __init__(self, context, default_package_path=None, is_stateless=False, from_convert=False):
        self.context = context
        self.registry = context.registry
        self.package_info = context.package_info
        self.forceignore = context.forceignore
        self.type_factory = MetadataTypeFactory(self.registry)
        self.is_stateless = is_stateless
        self.from_convert = from_convert
        self.status_manager = SourcePathStatusManager(context, is_stateless=is_stateless)
        self.source_locations = SourceLocations(
            self.registry, self.package_info, self.status_manager.workspace.values()
        )
        project = context.project
        self.default_package_path = default_package_path or os.path.relpath(
            project.default_package_path, project.root
        )
        self.default_src_dir = os.path.join(
            project.root, self.default_package_path, SOURCE_SUBDIRECTORY
        )
        self.pending_source_path_infos = {}
        self.pending_directories = []
        self._all_elements_cache: Optional[SourceElements] = None
        logger.debug(f"Default source directory: {self.default_src_dir}")

    def new_source_element(self, metadata_type, full_name, metadata_file_path):
        return AggregateSourceElement(
            metadata_type,
            full_name,
            metadata_file_path,
            self.registry,
            package_info=self.package_info,
            source_locations=self.source_locations,
            forceignore=self.forceignore,
        )

    # Workspace -> elements

    def get_aggregate_source_elements(
        self,
        changes_only: bool,
        package_directory: str = None,
        update_pending_path_infos: bool = False,
        source_path: str = None,
    ) -> SourceElements:
        cacheable = not changes_only and not package_directory and not source_path
        if cacheable and self._all_elements_cache is not None:
            return self._all_elements_cache

        elements: SourceElements = {}
        path_filter = PathFilter(changes_only, package_directory, source_path)
        for change in self.status_manager.get_source_path_infos(path_filter):
            if change.is_directory:
                if update_pending_path_infos:
                    self.pending_directories.append(change)
                continue
            path_type = self.type_factory.get_metadata_type_from_source_path(change.source_path)
            if path_type is None:
                continue
            if not self.registry.is_supported(path_type.metadata_name):
                logger.warning(f"Unsupported source member {path_type.metadata_name} at {change.source_path}")
                continue

            aggregate_full_name = path_type.get_aggregate_full_name_from_file_path(change.source_path)
            aggregate_type = self.type_factory.get_aggregate_metadata_type(
                path_type.aggregate_metadata_name
            )
            key = get_metadata_key(aggregate_type.metadata_name, aggregate_full_name)
            element = elements.get(key)
            if element is None:
                element = self.new_source_element(
                    aggregate_type,
                    aggregate_full_name,
                    path_type.get_aggregate_metadata_file_path_from_workspace_path(change.source_path),
                )
                elements[key] = element

            full_name = path_type.get_full_name_from_file_path(change.source_path)
            element.add_workspace_element(
                WorkspaceElement(
                    path_type.metadata_name,
                    full_name,
                    change.source_path,
                    change.state,
                    path_type.delete_supported(full_name),
                )
            )
            deprecation_message = aggregate_type.get_deprecation_message(aggregate_full_name)
            if deprecation_message and changes_only:
                logger.warning(deprecation_message)
            if update_pending_path_infos:
                self.pending_source_path_infos[change.source_path] = change

        if cacheable:
            self._all_elements_cache = elements
        return elements

    def commit_pending_changes(self) -> bool:
        pending = self.pending_directories + list(self.pending_source_path_infos.values())
        logger.debug(f"committing {len(pending)} pending changes")
        self.status_manager.commit_changed_path_infos(pending)
        return bool(pending)

    def backup_source_path_infos(self):
        self.status_manager.backup()

    def revert_source_path_infos(self):
        self.status_manager.revert()

    # Elements -> workspace

    def update_source(
        self,
        source_elements: SourceElements,
        manifest=None,
        check_for_duplicates=False,
        unsupported_mime_types=None,
    ) -> SourceElements:
        """Commit every element into the workspace and record the written paths."""
        if check_for_duplicates:
            for element in source_elements.values():
                element.check_for_duplicates()
        updated_paths: List[str] = []
        deleted_paths: List[str] = []
        for element in source_elements.values():
            new, updated, deleted = element.commit(manifest, unsupported_mime_types)
            updated_paths.extend(new + updated)
            deleted_paths.extend(deleted)
        logger.debug(f"updated {len(updated_paths)} and deleted {len(deleted_paths)} paths")
        self.status_manager.update_infos_for_paths(updated_paths, deleted_paths)
        return source_elements

    def process_mdapi_file_property(
        self, source_elements: SourceElements, retrieve_root, file_property, bundle_file_properties=None
    ) -> Optional[AggregateSourceElement]:
        """Attach one retrieved file to the element it belongs to.

        Returns ``None`` for unsupported types and for entities whose
        workspace path is denied by ``.forceignore``.
        """
        aggregate_type = self.type_factory.get_metadata_type_from_file_property(file_property)
        if aggregate_type is None or not self.registry.is_supported(aggregate_type.metadata_name):
            return None
        aggregate_full_name = aggregate_type.get_aggregate_full_name_from_file_property(
            file_property, self.context.project.config.namespace
        )

        metadata_path = self.source_locations.get_metadata_path(
            aggregate_type.metadata_name, aggregate_full_name
        )
        if (
            metadata_path is not None
            and self.from_convert
            and not metadata_path.startswith(self.default_src_dir)
        ):
            metadata_path = None

        elements_to_delete = aggregate_type.get_workspace_elements_to_delete(
            metadata_path, file_property
        )
        if metadata_path is None:
            metadata_path = aggregate_type.get_default_aggregate_metadata_path(
                aggregate_full_name, self.default_src_dir, bundle_file_properties
            )
            self.source_locations.add_metadata_path(
                aggregate_type.aggregate_metadata_name, aggregate_full_name, metadata_path
            )
        if not self.forceignore.accepts(metadata_path):
            logger.debug(f"{metadata_path} is ignored")
            return None

        key = get_metadata_key(aggregate_type.metadata_name, aggregate_full_name)
        element = source_elements.get(key)
        if element is None:
            element = self.new_source_element(aggregate_type, aggregate_full_name, metadata_path)
            source_elements[key] = element
        for deleted_element in elements_to_delete:
            element.add_pending_deleted_workspace_element(deleted_element)

        element.retrieved_metadata_path = aggregate_type.get_retrieved_metadata_path(
            file_property, retrieve_root, bundle_file_properties
        )
        retrieved_content_path = aggregate_type.get_retrieved_content_path(file_property, retrieve_root)
        if retrieved_content_path:
            if element.retrieved_content_paths is None:
                element.retrieved_content_paths = []
            element.retrieved_content_paths.append(retrieved_content_path)
        return element

    def handle_obsolete_source(
        self, source_elements: SourceElements, full_name, metadata_name
    ) -> Optional[AggregateSourceElement]:
        """Queue the workspace files of a member deleted in the org."""
        member_type = self.type_factory.get_metadata_type_from_metadata_name(metadata_name)
        if member_type is None:
            return None
        aggregate_full_name = member_type.get_aggregate_full_name_from_source_member_name(full_name)
        metadata_path = self.source_locations.get_metadata_path(
            member_type.aggregate_metadata_name, aggregate_full_name
        ) or self.source_locations.get_metadata_path(metadata_name, aggregate_full_name)
        if metadata_path is None:
            return None

        key = get_metadata_key(member_type.aggregate_metadata_name, aggregate_full_name)
        element = source_elements.get(key)
        if element is None:
            element = self.new_source_element(
                self.type_factory.get_aggregate_metadata_type(member_type.metadata_name),
                aggregate_full_name,
                metadata_path,
            )
            source_elements[key] = element

        if member_type.should_delete_workspace_aggregate(metadata_name):
            element.mark_for_delete()
        else:
            for path in element.get_workspace_paths_for_type_and_full_name(
                member_type.metadata_name, full_name
            ):
                element.add_pending_deleted_workspace_element(
                    WorkspaceElement(
                        member_type.metadata_name, full_name, path, WorkspaceFileState.DELETED, True
                    )
                )
        return element
