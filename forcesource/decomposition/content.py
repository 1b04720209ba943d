"""Storing content files (everything that is not a ``-meta.xml``) in the workspace."""
import logging
import os
import shutil
from typing import List, Tuple

from forcesource.decomposition.commit import DUP_SUFFIX
from forcesource.metadata.registry import METADATA_FILE_EXT
from forcesource.metadata.static_resource import StaticResource
from forcesource.utils import delete_if_exists, walk_files
from forcesource.utils.hashing import files_equal

logger = logging.getLogger(__name__)

ContentResult = Tuple[List[str], List[str], List[str], List[str]]


class NonDecomposedContentStrategy:
    """Content files are copied next to the metadata file under their retrieved names."""

    def __init__(self, metadata_type, registry=None, forceignore=None):
        self.metadata_type = metadata_type
        self.registry = registry
        self.forceignore = forceignore

    def get_content_paths(self, metadata_file_path) -> List[str]:
        aggregate_full_name = self.metadata_type.get_aggregate_full_name_from_file_path(
            metadata_file_path
        )
        workspace_dir = os.path.dirname(metadata_file_path)
        if not os.path.isdir(workspace_dir):
            return []
        return sorted(
            path
            for path in walk_files(workspace_dir)
            if not os.path.basename(path).startswith(".")
            and not path.endswith(METADATA_FILE_EXT)
            and self.metadata_type.get_aggregate_full_name_from_file_path(path)
            == aggregate_full_name
        )

    def save_content(
        self,
        metadata_file_path,
        retrieved_content_file_paths,
        retrieved_metadata_file_path=None,
        create_duplicates=False,
        unsupported_mime_types=None,
    ) -> ContentResult:
        """Returns ``(new_paths, updated_paths, deleted_paths, dup_paths)``."""
        new_paths, updated_paths, dup_paths = [], [], []
        for retrieved_path in retrieved_content_file_paths:
            workspace_path = self.metadata_type.get_workspace_content_file_path(
                metadata_file_path, retrieved_path
            )
            if not os.path.exists(workspace_path):
                os.makedirs(os.path.dirname(workspace_path) or ".", exist_ok=True)
                shutil.copyfile(retrieved_path, workspace_path)
                new_paths.append(workspace_path)
            elif files_equal(retrieved_path, workspace_path):
                continue
            elif create_duplicates:
                dup_path = workspace_path + DUP_SUFFIX
                shutil.copyfile(retrieved_path, dup_path)
                dup_paths.append(dup_path)
            else:
                shutil.copyfile(retrieved_path, workspace_path)
                updated_paths.append(workspace_path)
        return new_paths, updated_paths, [], dup_paths


class StaticResourceContentStrategy(NonDecomposedContentStrategy):
    def _static_resource(self, metadata_file_path, retrieved_metadata_file_path=None, unsupported_mime_types=None):
        return StaticResource(
            metadata_file_path,
            self.metadata_type.ext,
            retrieved_metadata_file_path=retrieved_metadata_file_path,
            unsupported_mime_types=unsupported_mime_types,
        )

    def get_content_paths(self, metadata_file_path):
        return self._static_resource(metadata_file_path).get_content_paths()

    def save_content(
        self,
        metadata_file_path,
        retrieved_content_file_paths,
        retrieved_metadata_file_path=None,
        create_duplicates=False,
        unsupported_mime_types=None,
    ):
        if not retrieved_content_file_paths:
            return [], [], [], []
        static_resource = self._static_resource(
            metadata_file_path, retrieved_metadata_file_path, unsupported_mime_types
        )
        updated_paths, dup_paths, deleted_paths = static_resource.save_resource(
            retrieved_content_file_paths[0], create_duplicates
        )
        return [], updated_paths, deleted_paths, dup_paths


class ExperienceBundleContentStrategy(NonDecomposedContentStrategy):
    """Files of the site that the retrieve no longer returns are removed."""

    def get_content_paths(self, metadata_file_path):
        return self.metadata_type.get_origin_content_paths_for_source_convert(
            metadata_file_path, self.forceignore
        )

    def save_content(
        self,
        metadata_file_path,
        retrieved_content_file_paths,
        retrieved_metadata_file_path=None,
        create_duplicates=False,
        unsupported_mime_types=None,
    ):
        existing_paths = self.get_content_paths(metadata_file_path)
        new_paths, updated_paths, deleted_paths, dup_paths = super().save_content(
            metadata_file_path,
            retrieved_content_file_paths,
            retrieved_metadata_file_path,
            create_duplicates,
            unsupported_mime_types,
        )
        retrieved = {
            self.metadata_type.get_relative_content_path(path)
            for path in retrieved_content_file_paths
        }
        for path in existing_paths:
            if self.metadata_type.get_relative_content_path(path) not in retrieved:
                logger.debug(f"Removing {path}")
                delete_if_exists(path)
                deleted_paths.append(path)
        return new_paths, updated_paths, deleted_paths, dup_paths
