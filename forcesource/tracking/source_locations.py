import logging
from typing import Dict, List, Optional
from urllib.parse import unquote

from forcesource.core.exceptions import ForceSourceFailure
from forcesource.metadata.registry import get_metadata_key
from forcesource.metadata.types import MetadataTypeFactory

logger = logging.getLogger(__name__)


class SourceLocations:
    """Where each metadata entity lives in the workspace.

    ``metadata_paths_index`` maps ``Type__Name`` of an aggregate to its
    metadata files; ``file_paths_index`` maps ``Type__Name`` of every
    element (``CustomObject__Account.Name__c``...) to its files. A key
    can hold one path per package directory.
    """

    def __init__(
        self,
        registry,
        package_info,
        source_path_infos=(),
        nondecomposed_index=None,
        should_build_indices=True,
    ):
        self.registry = registry
        self.package_info = package_info
        self.type_factory = MetadataTypeFactory(registry)
        self.nondecomposed_index = nondecomposed_index
        self.metadata_paths_index: Dict[str, List[str]] = {}
        self.file_paths_index: Dict[str, List[str]] = {}
        if should_build_indices:
            self.build_indices(source_path_infos)

    def get_metadata_path(self, metadata_name, full_name) -> Optional[str]:
        key = get_metadata_key(metadata_name, full_name)
        paths = self.metadata_paths_index.get(key)
        if paths:
            return self._get_path_by_active_package(paths)
        logger.debug(f"No metadata path found for {key}")
        return None

    def add_metadata_path(self, metadata_name, full_name, metadata_path):
        key = get_metadata_key(metadata_name, full_name)
        self.metadata_paths_index.setdefault(key, []).append(metadata_path)

    def get_file_path(self, metadata_name, full_name) -> Optional[str]:
        key = get_metadata_key(metadata_name, full_name)
        paths = self.file_paths_index.get(key)
        if not paths and self.nondecomposed_index is not None:
            metadata_file_path = self.nondecomposed_index.get_metadata_file_path(key)
            paths = [metadata_file_path] if metadata_file_path else None
        if paths:
            return self._get_path_by_active_package(paths)
        logger.debug(f"No file path found for {key}")
        return None

    def add_file_path(self, path_metadata_type, source_path):
        full_name = unquote(path_metadata_type.get_full_name_from_file_path(source_path))
        key = get_metadata_key(path_metadata_type.aggregate_metadata_name, full_name)
        self.file_paths_index.setdefault(key, []).append(source_path)

    def _get_path_by_active_package(self, paths) -> str:
        if len(paths) == 1:
            return paths[0]
        active_package = self.package_info.active_package
        for path in paths:
            if self.package_info.get_package_name_from_source_path(path) == active_package:
                return path
        return paths[0]

    def build_indices(self, source_path_infos):
        for info in source_path_infos:
            if not info.metadata_type:
                continue
            path_metadata_type = self.type_factory.get_metadata_type_from_metadata_name(
                info.metadata_type
            )
            if path_metadata_type is None:
                continue
            if info.is_metadata_file:
                if not info.source_path:
                    raise ForceSourceFailure(
                        f"Invalid source path for metadata type: {path_metadata_type}"
                    )
                if self.nondecomposed_index is not None and self.nondecomposed_index.is_non_decomposed_element(
                    info.metadata_type
                ):
                    self.nondecomposed_index.handle_decomposed_elements(info)
                aggregate_full_name = path_metadata_type.get_aggregate_full_name_from_file_path(
                    info.source_path
                )
                self.add_metadata_path(
                    path_metadata_type.metadata_name,
                    aggregate_full_name,
                    path_metadata_type.get_aggregate_metadata_file_path_from_workspace_path(
                        info.source_path
                    ),
                )
                self.add_file_path(path_metadata_type, info.source_path)
            elif not info.is_directory:
                self.add_file_path(path_metadata_type, info.source_path)
